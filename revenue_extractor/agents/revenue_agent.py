"""Revenue extraction agent.

The reply is parsed field by field instead of through a response model:
amounts arrive as numbers, as strings ("1,860", "$1.2 billion") or not at
all, and one bad record must not throw away the good ones next to it.
Every value goes through core.normalization, which falls back to a typed
default and logs a warning.
"""

import logging
from typing import Any, Literal

from revenue_extractor.core.config import DEFAULT_MODELS, ExtractionLimits
from revenue_extractor.core.cost_tracker import CostTracker
from revenue_extractor.core.llm_client import LLMClient
from revenue_extractor.core.normalization import (
    normalize_period,
    normalize_region,
    parse_amount,
    parse_confidence,
    therapy_relevant_text,
    truncate,
)
from revenue_extractor.pydantic_models import DocumentInfo, ExtractionResult, RevenueRecord
from revenue_extractor.prompts.revenue_prompt import REVENUE_SYSTEM_PROMPT, build_revenue_prompt

logger = logging.getLogger(__name__)


def prepare_text(snippet_text: str, therapy_name: str | None = None) -> str:
    """Filter to therapy-relevant paragraphs (when scoped) and truncate."""
    if therapy_name:
        relevant = therapy_relevant_text(snippet_text, therapy_name)
        if relevant.strip():
            snippet_text = relevant
    return truncate(snippet_text, ExtractionLimits.REVENUE_MAX_CHARS)


def _first(item: dict, *keys: str) -> Any:
    for key in keys:
        if key in item and item[key] is not None:
            return item[key]
    return None


def parse_revenue_record(
    item: Any,
    document_info: DocumentInfo,
    therapy_name: str | None = None,
) -> RevenueRecord | None:
    """Validate one raw record; None when it cannot be used.

    A record without a therapy name falls back to the scoped therapy. A
    record without any period falls back to the document's reporting period.
    """
    if not isinstance(item, dict):
        logger.warning(f"Skipping non-object revenue record: {item!r}")
        return None

    name = _first(item, "therapy_name", "therapyName") or therapy_name
    if not isinstance(name, str) or not name.strip():
        logger.warning(f"Skipping revenue record without therapy name: {item!r}")
        return None

    raw_period = _first(item, "period")
    period = normalize_period(
        str(raw_period) if raw_period is not None else "",
        document_info.reporting_period,
    )
    if not period:
        logger.warning(f"Skipping revenue record without period: {item!r}")
        return None

    raw_region = _first(item, "region")
    sources = _first(item, "sources") or []
    if isinstance(sources, str):
        sources = [sources]

    return RevenueRecord(
        therapy_name=name.strip(),
        period=period,
        region=normalize_region(str(raw_region) if raw_region is not None else None),
        revenue_millions_usd=parse_amount(_first(item, "revenue_millions_usd", "revenueMillionsUsd")),
        sources=[str(s) for s in sources if s],
    )


def parse_revenue_response(
    content: Any,
    document_info: DocumentInfo,
    therapy_name: str | None = None,
    track: Literal["structure", "keyword"] = "structure",
    section_label: str = "",
) -> ExtractionResult:
    """Turn the raw JSON reply into an ExtractionResult.

    Raises:
        ValueError: If the reply is not a JSON object.
    """
    if not isinstance(content, dict):
        raise ValueError(f"Revenue response is not a JSON object: {type(content).__name__}")

    raw_records = _first(content, "revenue", "revenue_records", "revenueRecords") or []
    if not isinstance(raw_records, list):
        logger.warning(f"Revenue list has unexpected type {type(raw_records).__name__}, ignoring")
        raw_records = []

    records = [
        record
        for record in (parse_revenue_record(item, document_info, therapy_name) for item in raw_records)
        if record is not None
    ]

    return ExtractionResult(
        revenue_records=records,
        confidence=parse_confidence(content.get("confidence")),
        track=track,
        section_label=section_label,
    )


async def extract_revenue(
    snippet_text: str,
    document_info: DocumentInfo,
    therapy_name: str | None = None,
    model: str = DEFAULT_MODELS["revenue"],
    cost_tracker: CostTracker | None = None,
    track: Literal["structure", "keyword"] = "structure",
    section_label: str = "",
) -> ExtractionResult:
    """Extract revenue records from one snippet.

    Args:
        snippet_text: Snippet text with "[Page N]" markers.
        document_info: Classifier output used as context and period fallback.
        therapy_name: Scope extraction to this therapy.
        model: LLM model to use.
        cost_tracker: Optional tracker to record token usage.
        track: Track the snippet belongs to (kept on the result).
        section_label: Snippet label for logs.

    Returns:
        ExtractionResult for the snippet.

    Raises:
        litellm exceptions, ValueError: the caller drops the snippet.
    """
    client = LLMClient(cost_tracker=cost_tracker)

    response = await client.complete(
        system_prompt=REVENUE_SYSTEM_PROMPT,
        user_prompt=build_revenue_prompt(
            prepare_text(snippet_text, therapy_name),
            document_info,
            therapy_name,
        ),
        model=model,
        agent="revenue",
    )

    return parse_revenue_response(
        response.content,
        document_info,
        therapy_name=therapy_name,
        track=track,
        section_label=section_label,
    )
