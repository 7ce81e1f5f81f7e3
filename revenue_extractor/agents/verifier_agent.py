"""Revenue verifier: a cheap gate in front of keyword-window extraction.

Keyword windows are noisy: a therapy name in a pipeline table or a press
quote pulls in pages with no revenue figures at all. The verifier looks at
the window (truncated) plus short highlighted excerpts around each mention
and answers whether the therapy appears in revenue table data.

The gate fails closed: any error is treated as "no revenue data".
"""

import logging
import re

from revenue_extractor.core.config import DEFAULT_MODELS, SectionConfig, VerificationConfig
from revenue_extractor.core.cost_tracker import CostTracker
from revenue_extractor.core.llm_client import LLMClient
from revenue_extractor.pydantic_models import VerificationResult
from revenue_extractor.prompts.verifier_prompt import VERIFIER_SYSTEM_PROMPT, build_verifier_prompt

logger = logging.getLogger(__name__)


def _strip_markers(text: str, therapy_name: str, marker: str = SectionConfig.HIGHLIGHT_MARKER) -> str:
    """Undo keyword-window highlighting so mentions are not wrapped twice."""
    wrapped = re.compile(
        re.escape(marker) + "(" + re.escape(therapy_name) + ")" + re.escape(marker),
        re.IGNORECASE,
    )
    return wrapped.sub(r"\1", text)


def build_highlighted_snippets(
    text: str,
    therapy_name: str,
    radius: int = VerificationConfig.HIGHLIGHT_RADIUS,
    max_snippets: int = VerificationConfig.MAX_HIGHLIGHTS,
) -> str:
    """Excerpts of ``radius`` characters around each therapy mention, numbered.

    Mentions are wrapped in the highlight marker. At most ``max_snippets``
    excerpts are returned.
    """
    if not therapy_name:
        return "No specific therapy provided for highlighting."

    plain = _strip_markers(text, therapy_name)
    pattern = re.compile(re.escape(therapy_name), re.IGNORECASE)
    marker = SectionConfig.HIGHLIGHT_MARKER

    snippets = []
    for match in pattern.finditer(plain):
        start = max(0, match.start() - radius)
        end = min(len(plain), match.end() + radius)
        excerpt = pattern.sub(lambda m: f"{marker}{m.group(0)}{marker}", plain[start:end])
        if start > 0:
            excerpt = "..." + excerpt
        if end < len(plain):
            excerpt = excerpt + "..."
        snippets.append(f"SNIPPET {len(snippets) + 1}: {excerpt}")
        if len(snippets) >= max_snippets:
            break

    if not snippets:
        return f'No mentions of "{therapy_name}" found in the text.'
    return "\n\n".join(snippets)


def passes_gate(
    result: VerificationResult,
    min_confidence: int = VerificationConfig.MIN_CONFIDENCE,
) -> bool:
    """A snippet is extracted only if it contains revenue data with enough confidence."""
    return result.contains_revenue_data and result.confidence >= min_confidence


async def verify_revenue(
    snippet_text: str,
    therapy_name: str,
    model: str = DEFAULT_MODELS["verifier"],
    cost_tracker: CostTracker | None = None,
) -> VerificationResult:
    """Ask whether a keyword window holds revenue data for ``therapy_name``.

    Args:
        snippet_text: Keyword window text.
        therapy_name: Therapy the window was built around.
        model: LLM model to use.
        cost_tracker: Optional tracker to record token usage.

    Returns:
        VerificationResult. Never raises; on error returns a negative result
        with confidence 0.
    """
    client = LLMClient(cost_tracker=cost_tracker)

    try:
        return await client.complete_structured(
            system_prompt=VERIFIER_SYSTEM_PROMPT,
            user_prompt=build_verifier_prompt(
                therapy_name,
                snippet_text[:VerificationConfig.SNIPPET_MAX_CHARS],
                build_highlighted_snippets(snippet_text, therapy_name),
            ),
            model=model,
            response_model=VerificationResult,
            agent="verifier",
        )
    except Exception as e:
        logger.warning(f"Verification failed for {therapy_name}, treating as no revenue data: {e}")
        return VerificationResult(
            contains_revenue_data=False,
            confidence=0,
            reasoning=f"Verification failed due to error: {e}",
        )
