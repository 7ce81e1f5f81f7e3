"""Business analysis agent: partnerships, licensing, market position, strategy.

Runs over structure sections routed to the business-insight track. Insights
are stored alongside the reconciled revenue but never reconciled themselves.
"""

import logging

from revenue_extractor.core.config import DEFAULT_MODELS, ExtractionLimits
from revenue_extractor.core.cost_tracker import CostTracker
from revenue_extractor.core.llm_client import LLMClient
from revenue_extractor.core.normalization import truncate
from revenue_extractor.pydantic_models import BusinessAnalysis, BusinessInsight
from revenue_extractor.prompts.business_prompt import BUSINESS_SYSTEM_PROMPT, build_business_prompt

logger = logging.getLogger(__name__)


async def analyze_business(
    section_text: str,
    section_title: str | None = None,
    model: str = DEFAULT_MODELS["business"],
    cost_tracker: CostTracker | None = None,
) -> BusinessAnalysis:
    """Extract business insights from one section.

    Returns:
        BusinessAnalysis; empty with confidence 0 on any error.
    """
    client = LLMClient(cost_tracker=cost_tracker)

    try:
        return await client.complete_structured(
            system_prompt=BUSINESS_SYSTEM_PROMPT,
            user_prompt=build_business_prompt(
                truncate(section_text, ExtractionLimits.BUSINESS_MAX_CHARS),
                section_title,
            ),
            model=model,
            response_model=BusinessAnalysis,
            agent="business",
        )
    except Exception as e:
        logger.warning(f"Business analysis failed for {section_title or 'section'}: {e}")
        return BusinessAnalysis(business=[], confidence=0)


def deduplicate_insights(insights: list[BusinessInsight]) -> list[BusinessInsight]:
    """Drop insights repeating an earlier (type, description), case-insensitive."""
    seen: set[tuple[str, str]] = set()
    unique = []
    for insight in insights:
        key = (insight.type, " ".join(insight.description.lower().split()))
        if key not in seen:
            seen.add(key)
            unique.append(insight)
    return unique
