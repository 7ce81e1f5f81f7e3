"""LiteLLM Router configuration for retry, fallback, and cooldown.

Every agent call goes through this router, so transient API failures are
retried at the call level before they ever reach the work queue (which can
only retry the whole document).

Supports multiple LLM providers:
- OpenRouter (default): Uses OPENROUTER_API_KEY
- Azure OpenAI: Uses AZURE_API_KEY, AZURE_API_BASE, AZURE_API_VERSION
"""

import os

from litellm import Router

from revenue_extractor.core.config import (
    LLM_PROVIDER,
    API_KEY_ENV_VAR,
    SMART_MODEL,
    FAST_MODEL,
)

# Extra OpenRouter model kept warm as the fallback target for the fast tier.
OPENROUTER_FALLBACK_MODEL = "openrouter/openai/gpt-4-turbo"


def _deployment(model_name: str, **params) -> dict:
    """One entry of the Router model_list."""
    return {
        "model_name": model_name,
        "litellm_params": {"model": model_name, **params},
    }


def _build_openrouter_model_list() -> list[dict]:
    """Fast, smart and fallback models through OpenRouter."""
    api_key_ref = f"os.environ/{API_KEY_ENV_VAR}"
    names = dict.fromkeys([FAST_MODEL, SMART_MODEL, OPENROUTER_FALLBACK_MODEL])
    return [_deployment(name, api_key=api_key_ref) for name in names]


def _build_azure_model_list() -> list[dict]:
    """Fast and smart deployments on Azure OpenAI.

    Deployment names come from config (AZURE_DEPLOYMENT_GPT_4O and
    AZURE_DEPLOYMENT_GPT_4O_MINI overrides are resolved there).
    """
    azure_params = {
        "api_key": os.environ.get("AZURE_API_KEY", ""),
        "api_base": os.environ.get("AZURE_API_BASE", ""),
        "api_version": os.environ.get("AZURE_API_VERSION", "2024-02-15-preview"),
    }
    names = dict.fromkeys([FAST_MODEL, SMART_MODEL])
    return [_deployment(name, **azure_params) for name in names]


def _build_fallbacks() -> list[dict]:
    """Fast tier falls back to a stronger model once its retries are spent."""
    if LLM_PROVIDER == "azure":
        return [{FAST_MODEL: [SMART_MODEL]}]
    return [{FAST_MODEL: [OPENROUTER_FALLBACK_MODEL]}]


def build_router() -> Router:
    """Build the LLM Router with retry and fallback configuration.

    Provider is determined by the LLM_PROVIDER env var ("openrouter" or "azure").
    """
    if LLM_PROVIDER == "azure":
        model_list = _build_azure_model_list()
    else:
        model_list = _build_openrouter_model_list()

    return Router(
        model_list=model_list,
        num_retries=2,
        retry_after=4,
        cooldown_time=60,
        allowed_fails=2,
        fallbacks=_build_fallbacks(),
    )


router = build_router()
