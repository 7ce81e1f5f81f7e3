"""Strategy phase - decides how much work each extraction track gets.

Strategies:
- smart-complete: small document, the whole text goes to the structure track
  as one financial block; no keyword search.
- full-parallel: outline and therapies both available, both tracks run.
- structure-only: outline available, nothing to search for.
- hybrid: no usable outline, keyword windows only.
"""

from dataclasses import dataclass

from revenue_extractor.core.config import StrategyConfig
from revenue_extractor.phases.phase_base import PhaseRunner
from revenue_extractor.pydantic_models import ExtractionStrategy


def determine_strategy(
    page_count: int,
    structure_found: bool,
    has_therapies: bool,
    small_document_pages: int = StrategyConfig.SMALL_DOCUMENT_PAGES,
) -> ExtractionStrategy:
    """Pick the extraction strategy. First matching rule wins.

    Example:
        >>> determine_strategy(10, True, True)
        <ExtractionStrategy.SMART_COMPLETE: 'smart-complete'>
        >>> determine_strategy(40, False, True)
        <ExtractionStrategy.HYBRID: 'hybrid'>
    """
    if page_count < small_document_pages:
        return ExtractionStrategy.SMART_COMPLETE
    if structure_found and has_therapies:
        return ExtractionStrategy.FULL_PARALLEL
    if structure_found:
        return ExtractionStrategy.STRUCTURE_ONLY
    return ExtractionStrategy.HYBRID


@dataclass
class StrategyResult:
    """Result from the strategy phase."""

    strategy: ExtractionStrategy


class StrategyPhase(PhaseRunner[StrategyResult]):
    """Phase 4: Strategy selection (no LLM call)."""

    name = "Strategy"

    async def run(self) -> StrategyResult:
        structure = self.context.structure
        strategy = determine_strategy(
            self.context.pages.page_count,
            structure_found=structure is not None and structure.is_usable,
            has_therapies=bool(self.context.therapies),
        )
        self.context.strategy = strategy
        self.logger.milestone(
            f"Strategy: {strategy}",
            pages=self.context.pages.page_count,
            therapies=len(self.context.therapies),
        )
        return StrategyResult(strategy=strategy)
