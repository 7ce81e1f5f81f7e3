"""LLM client shared by every agent.

Agents never talk to litellm directly. The client builds the message list,
sends it through the Router (retries and fallbacks live there), records token
usage on the run's CostTracker and turns the reply into either a JSON dict
(``complete``) or a validated pydantic model (``complete_structured``).

``complete`` is used where the reply is untrusted and must be parsed field by
field (the revenue extractor). ``complete_structured`` is used where the
response model is small and instructor's validate-and-retry loop is enough.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, TypeVar

from revenue_extractor.core.config import LLMConfig
from revenue_extractor.core.cost_tracker import CostTracker
from revenue_extractor.core.llm_router import router

logger = logging.getLogger(__name__)

logging.getLogger("litellm").setLevel(logging.ERROR)
logging.getLogger("httpx").setLevel(logging.ERROR)

T = TypeVar("T")


@dataclass
class LLMResponse:
    """Parsed response from an LLM call.

    Attributes:
        content: Parsed JSON content. Usually a dict, but a model may answer
            with a bare list, so callers must check.
        raw_content: Raw string content from the LLM.
        model: Model identifier used for the call.
    """

    content: Any
    raw_content: str
    model: str


class LLMClient:
    """Client for making LLM API calls.

    Usage:
        client = LLMClient(cost_tracker=tracker)

        response = await client.complete(
            system_prompt="You extract revenue tables.",
            user_prompt="...",
            model="openrouter/openai/gpt-4o-mini",
            agent="revenue",
        )
        data = response.content

        info = await client.complete_structured(
            system_prompt="Classify this report.",
            user_prompt="...",
            model="openrouter/openai/gpt-4o-mini",
            response_model=DocumentInfo,
            agent="classifier",
        )
    """

    def __init__(self, cost_tracker: CostTracker | None = None) -> None:
        """Initialize the client.

        Args:
            cost_tracker: Optional tracker for recording API token usage.
        """
        self.cost_tracker = cost_tracker

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        agent: str = "",
        temperature: float | None = None,
    ) -> LLMResponse:
        """Make a JSON-mode completion call.

        Args:
            system_prompt: System message content (instructions/persona).
            user_prompt: User message content (the actual request).
            model: LLM model identifier.
            agent: Agent name for cost tracking (e.g., "revenue", "verifier").
            temperature: Sampling temperature. Defaults to LLMConfig.TEMPERATURE.

        Returns:
            LLMResponse with parsed JSON content.

        Raises:
            litellm exceptions: For API errors left after Router retries.
        """
        response = await router.acompletion(
            model=model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            response_format=LLMConfig.RESPONSE_FORMAT,
            temperature=temperature if temperature is not None else LLMConfig.TEMPERATURE,
        )

        if self.cost_tracker:
            self.cost_tracker.record(model, response.usage, agent=agent)

        raw_content = response.choices[0].message.content or ""
        try:
            content = json.loads(raw_content)
        except json.JSONDecodeError:
            from json_repair import repair_json
            logger.warning(f"[{agent or 'llm'}] JSON parse failed, attempting repair")
            content = repair_json(raw_content, return_objects=True)

        return LLMResponse(content=content, raw_content=raw_content, model=model)

    async def complete_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        response_model: type[T],
        agent: str = "",
        temperature: float | None = None,
        max_retries: int = 2,
    ) -> T:
        """Make an LLM call that returns a validated pydantic model.

        Instructor validates the reply against ``response_model`` and, on a
        validation error, sends the error back so the model can fix its JSON.

        Args:
            system_prompt: System message content.
            user_prompt: User message content.
            model: LLM model identifier.
            response_model: Pydantic model class to validate against.
            agent: Agent name for cost tracking.
            temperature: Sampling temperature.
            max_retries: Max validation retries.

        Returns:
            Validated instance of response_model.
        """
        import instructor

        instructor_client = instructor.from_litellm(router.acompletion)

        result, raw_completion = await instructor_client.chat.completions.create_with_completion(
            model=model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            response_model=response_model,
            temperature=temperature if temperature is not None else LLMConfig.TEMPERATURE,
            max_retries=max_retries,
        )

        if self.cost_tracker:
            self.cost_tracker.record(model, raw_completion.usage, agent=agent)

        return result
