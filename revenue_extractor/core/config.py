"""Centralized configuration for the revenue extraction pipeline.

All magic numbers, thresholds, and configuration constants are documented here.
Each constant includes:
- What it controls
- Why this value was chosen
- What changing it affects
"""

import os
from typing import Final


# =============================================================================
# LLM Provider Configuration
# =============================================================================
#
# To switch providers, set the LLM_PROVIDER environment variable:
#   - "openrouter" (default): Uses OpenRouter API gateway
#   - "azure": Uses Azure OpenAI Service
#
# For Azure, also set:
#   - AZURE_API_KEY: Your Azure OpenAI API key
#   - AZURE_API_BASE: Your Azure endpoint (e.g., https://your-resource.openai.azure.com/)
#   - AZURE_API_VERSION: API version (e.g., 2024-02-15-preview)
#   - AZURE_DEPLOYMENT_GPT_4O / AZURE_DEPLOYMENT_GPT_4O_MINI: deployment names
#
# =============================================================================

LLM_PROVIDER: Final[str] = os.environ.get("LLM_PROVIDER", "openrouter")
"""LLM provider to use. Set via LLM_PROVIDER env var.

Supported values:
- "openrouter": OpenRouter API gateway (default)
- "azure": Azure OpenAI Service
"""

API_KEY_ENV_VARS: Final[dict[str, str]] = {
    "openrouter": "OPENROUTER_API_KEY",
    "azure": "AZURE_API_KEY",
}

API_KEY_ENV_VAR: Final[str] = API_KEY_ENV_VARS.get(LLM_PROVIDER, "OPENROUTER_API_KEY")
"""Environment variable name for the LLM API key (provider-dependent)."""


def _get_model_name(base_model: str) -> str:
    """Convert a base model name to provider-specific format.

    Args:
        base_model: Base model name (e.g., "gpt-4o", "gpt-4o-mini")

    Returns:
        Provider-specific model identifier.
    """
    if LLM_PROVIDER == "azure":
        deployment_env = f"AZURE_DEPLOYMENT_{base_model.upper().replace('-', '_')}"
        return f"azure/{os.environ.get(deployment_env, base_model)}"
    return f"openrouter/openai/{base_model}"


SMART_MODEL: Final[str] = _get_model_name("gpt-4o")
"""Model for the structure analyzer, where page ranges must be reasoned about."""

FAST_MODEL: Final[str] = _get_model_name("gpt-4o-mini")
"""Model for high-volume calls (classification, verification, extraction)."""

DEFAULT_MODELS: Final[dict[str, str]] = {
    "classifier": FAST_MODEL,
    "structure": FAST_MODEL,
    "verifier": FAST_MODEL,
    "revenue": FAST_MODEL,
    "business": FAST_MODEL,
}
"""Default LLM models for each agent type.

Everything defaults to the fast model. A single annual report fans out into
dozens of verification and extraction calls, so the cheap tier is the safe
default; pass smart_model to the Orchestrator to upgrade structure analysis.
"""


# Reconciliation

class ReconcileConfig:
    """Conflict resolution between near-duplicate revenue records."""

    EPSILON: Final[float] = 0.1
    """Largest revenue difference (millions USD) treated as corroboration.

    Two records for the same therapy/period/region whose amounts differ by
    at most this much are the same fact reported twice (rounding in tables
    vs. prose). Larger differences are genuine conflicts and the higher
    confidence extraction wins.
    """


# Verification Gate

class VerificationConfig:
    """Revenue verifier gate applied to keyword snippets."""

    MIN_CONFIDENCE: Final[int] = 50
    """Minimum verifier confidence (0-100) for a snippet to be extracted."""

    SNIPPET_MAX_CHARS: Final[int] = 2000
    """Full-context text sent to the verifier is truncated to this length."""

    HIGHLIGHT_RADIUS: Final[int] = 200
    """Characters kept on each side of a therapy mention in highlighted snippets."""

    MAX_HIGHLIGHTS: Final[int] = 10
    """Maximum number of highlighted mention windows sent to the verifier."""


# Section Extraction

class SectionConfig:
    """Keyword window and routing parameters."""

    CONTEXT_PAGES: Final[int] = 1
    """Pages included before and after each keyword match.

    One page catches tables that start on the page before the therapy name
    and footnotes on the page after. Larger values grow every snippet and
    the extraction bill with it.
    """

    HIGHLIGHT_MARKER: Final[str] = "**"
    """Emphasis marker wrapped around every search term occurrence."""

    REVENUE_KEYWORDS: Final[tuple[str, ...]] = (
        "revenue", "sales", "earnings", "income", "financial",
        "quarter", "$", "million", "billion",
    )
    """Vocabulary scored for untyped sections (revenue track)."""

    CLINICAL_KEYWORDS: Final[tuple[str, ...]] = (
        "trial", "patient", "efficacy", "safety", "clinical", "study", "endpoint",
    )
    """Vocabulary scored for untyped sections (clinical content goes to revenue track)."""

    BUSINESS_KEYWORDS: Final[tuple[str, ...]] = (
        "market", "competition", "partnership", "strategy", "commercial", "licensing",
    )
    """Vocabulary scored for untyped sections (business-insight track)."""


# Strategy Selection

class StrategyConfig:
    """Thresholds for choosing the extraction strategy."""

    SMALL_DOCUMENT_PAGES: Final[int] = 15
    """Documents with fewer pages are extracted as one block (smart-complete)."""


# Classification

class ClassifierConfig:
    """Document classifier input limits."""

    FIRST_PAGES: Final[int] = 3
    """Number of leading pages shown to the classifier."""

    MAX_CHARS: Final[int] = 2000
    """Classifier input is truncated to this many characters."""

    NOT_REGISTERED: Final[str] = "Not Registered"
    """Sentinel the classifier returns when the company is not in the registry."""

    COMPANY_MATCH_THRESHOLD: Final[int] = 85
    """Minimum rapidfuzz token_sort_ratio to snap a company onto the registry.

    Lets "Acme Therapeutics Inc." resolve to "Acme Therapeutics" without
    confusing two different companies that share a word.
    """


# Structure Analysis

class StructureConfig:
    """Document structure analysis parameters."""

    SHORT_DOCUMENT_PAGES: Final[int] = 15
    """Documents up to this length are analyzed in a single LLM call."""

    MEDIUM_DOCUMENT_PAGES: Final[int] = 50
    """Upper bound for the "medium" document length class."""

    WINDOW_SIZE: Final[int] = 20
    """Pages per window when inferring structure of long documents."""

    WINDOW_OVERLAP: Final[int] = 2
    """Pages shared by consecutive windows so sections at borders are seen whole."""

    TOC_SEARCH_CHARS: Final[int] = 10000
    """Characters from the start of the document scanned for a table of contents."""

    TOC_CONFIDENCE: Final[int] = 90
    """Confidence assigned to sections derived from a table of contents."""

    FALLBACK_CONFIDENCE: Final[int] = 50
    """Confidence of the single "Complete Document" fallback section."""

    FALLBACK_TITLE: Final[str] = "Complete Document"


# Extraction Agents

class ExtractionLimits:
    """Input limits for the extraction agents."""

    REVENUE_MAX_CHARS: Final[int] = 25000
    """Revenue extractor input is truncated to this many characters."""

    BUSINESS_MAX_CHARS: Final[int] = 15000
    """Business analyzer input is truncated to this many characters."""

    LARGE_REVENUE_WARNING: Final[float] = 1_000_000
    """Amounts above this (millions USD, i.e. one trillion) are logged as suspicious."""


# Work Queue

def _read_int_env(name: str, default: int) -> int:
    """Read a positive integer from the environment, falling back on bad input."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


class QueueConfig:
    """Worker loop and queue housekeeping settings.

    Every value can be overridden through the environment variable of the
    same name; non-positive or non-numeric values fall back to the default.
    """

    POLL_INTERVAL_MS: Final[int] = _read_int_env("QUEUE_POLL_INTERVAL_MS", 5000)
    """Sleep between polls when the queue is empty."""

    CHECK_STUCK_INTERVAL_MS: Final[int] = _read_int_env("QUEUE_CHECK_STUCK_INTERVAL_MS", 60000)
    """Interval of the periodic stuck-job sweep (independent of polling)."""

    STUCK_JOB_TIMEOUT_MINUTES: Final[int] = _read_int_env("QUEUE_STUCK_JOB_TIMEOUT_MINUTES", 60)
    """Timeout used by the startup sweep, regardless of job type."""

    EXTRACTION_TIMEOUT_MINUTES: Final[int] = _read_int_env("QUEUE_EXTRACTION_TIMEOUT_MINUTES", 30)
    """Periodic sweep timeout for extraction jobs."""

    REPROCESSING_TIMEOUT_MINUTES: Final[int] = _read_int_env("QUEUE_REPROCESSING_TIMEOUT_MINUTES", 45)
    """Periodic sweep timeout for reprocessing jobs (they re-run every phase)."""

    PURGE_AFTER_DAYS: Final[int] = _read_int_env("QUEUE_PURGE_AFTER_DAYS", 30)
    """Completed jobs older than this are deleted by housekeeping."""

    DB_PATH: Final[str] = os.environ.get("QUEUE_DB_PATH", "revenue_queue.db")
    """SQLite database holding jobs, documents, therapies and results."""

    DEFAULT_PRIORITY: Final[int] = 3
    """Priority of uploaded documents (1 = high, 3 = low)."""

    REPROCESS_PRIORITY: Final[int] = 1
    """Manual reprocess requests jump ahead of the upload backlog."""

    DEFAULT_MAX_ATTEMPTS: Final[int] = 3


# LLM Call Configuration

class LLMConfig:
    """Default parameters for LLM API calls."""

    TEMPERATURE: Final[float] = 0.0
    """Sampling temperature for all calls.

    0.0 keeps extractions reproducible across retried jobs.
    """

    RESPONSE_FORMAT: Final[dict[str, str]] = {"type": "json_object"}
    """Response format enforcing JSON output."""

    MAX_CONCURRENT: Final[int] = 5
    """Default cap on in-flight LLM calls per document."""
