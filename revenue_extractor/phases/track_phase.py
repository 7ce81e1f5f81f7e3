"""Tracks phase - structure and keyword extraction, run concurrently.

Two independent tracks:

- **StructureTrack**: one unscoped revenue extraction per revenue-routed
  structure section, plus one business analysis per business-routed section.
- **KeywordTrack**: for each therapy keyword window, a verification call gates
  a therapy-scoped revenue extraction. The gate fails closed.

Both tracks always run (an empty one returns immediately) and every snippet
inside a track is issued at once, bounded by the shared semaphore. A snippet
that fails is logged, recorded in the run errors and left out; the track goes on.

Each track records token usage on its own branch of the cost tracker. The
branches are merged back afterwards so the one-time classification and
structure calls are counted once.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Literal

from revenue_extractor.core import CostTracker, TokenUsage
from revenue_extractor.core.errors import llm_api_error, llm_parse_error
from revenue_extractor.phases.phase_base import PhaseContext, PhaseRunner
from revenue_extractor.agents.revenue_agent import extract_revenue
from revenue_extractor.agents.verifier_agent import passes_gate, verify_revenue
from revenue_extractor.agents.business_agent import analyze_business, deduplicate_insights
from revenue_extractor.pydantic_models import (
    BusinessInsight,
    DocumentInfo,
    ExtractionResult,
    TextSection,
    Track,
)


def _page_range(section: TextSection) -> tuple[int, int] | None:
    if not section.page_numbers:
        return None
    return section.page_numbers[0], section.page_numbers[-1]


@dataclass
class TrackOutcome:
    """What one track produced."""

    track: Literal["structure", "keyword"]
    results: list[ExtractionResult] = field(default_factory=list)
    business_insights: list[BusinessInsight] = field(default_factory=list)
    attempted: int = 0
    failed: int = 0
    rejected: int = 0  # Keyword windows stopped by the verify gate
    token_usage: TokenUsage = field(default_factory=TokenUsage)


class _Track:
    """Shared plumbing for one extraction track."""

    track: Literal["structure", "keyword"] = "structure"

    def __init__(self, context: PhaseContext, cost_tracker: CostTracker):
        self.context = context
        self.cost_tracker = cost_tracker
        self.logger = context.logger

    @property
    def document_info(self) -> DocumentInfo:
        return self.context.document_info or DocumentInfo()

    def record_failure(self, section: TextSection, error: Exception, phase: str):
        # Unparseable responses are warnings; API failures mark the section failed
        factory = llm_parse_error if isinstance(error, ValueError) else llm_api_error
        self.logger.warning(f"[{phase}] {section.label} failed, skipping: {error}")
        self.context.errors.add(factory(
            str(error),
            phase,
            therapy=section.search_term,
            section=section.label,
            page_range=_page_range(section),
            original=error,
        ))

    async def extract(self, section: TextSection) -> ExtractionResult:
        return await extract_revenue(
            section.text,
            self.document_info,
            therapy_name=section.search_term,
            model=self.context.config.revenue_model,
            cost_tracker=self.cost_tracker,
            track=self.track,
            section_label=section.label,
        )


class StructureTrack(_Track):
    """Revenue and business analysis over structure-based sections."""

    track = "structure"

    def __init__(
        self,
        context: PhaseContext,
        cost_tracker: CostTracker,
        revenue_sections: list[TextSection],
        business_sections: list[TextSection],
    ):
        super().__init__(context, cost_tracker)
        self.revenue_sections = revenue_sections
        self.business_sections = business_sections if context.config.analyze_business else []

    async def run(self) -> TrackOutcome:
        outcome = TrackOutcome(
            track=self.track,
            attempted=len(self.revenue_sections) + len(self.business_sections),
        )
        if not outcome.attempted:
            return outcome

        async def extract_one(section: TextSection) -> ExtractionResult | None:
            async with self.context.semaphore:
                try:
                    result = await self.extract(section)
                except Exception as e:
                    self.record_failure(section, e, "Structure Track")
                    return None
                self.logger.tick(f"{section.label}: {len(result.revenue_records)} records")
                return result

        async def analyze_one(section: TextSection) -> list[BusinessInsight] | None:
            async with self.context.semaphore:
                try:
                    analysis = await analyze_business(
                        section.text,
                        section.section_title,
                        model=self.context.config.business_model,
                        cost_tracker=self.cost_tracker,
                    )
                except Exception as e:
                    self.record_failure(section, e, "Business Track")
                    return None
                self.logger.tick(f"{section.label}: {len(analysis.business)} insights")
                return analysis.business

        revenue_results, business_results = await asyncio.gather(
            asyncio.gather(*(extract_one(s) for s in self.revenue_sections)),
            asyncio.gather(*(analyze_one(s) for s in self.business_sections)),
        )

        for result in revenue_results:
            if result is None:
                outcome.failed += 1
            else:
                outcome.results.append(result)

        insights: list[BusinessInsight] = []
        for items in business_results:
            if items is None:
                outcome.failed += 1
            else:
                insights.extend(items)
        outcome.business_insights = deduplicate_insights(insights)
        return outcome


class KeywordTrack(_Track):
    """Verified, therapy-scoped revenue extraction over keyword windows."""

    track = "keyword"

    def __init__(self, context: PhaseContext, cost_tracker: CostTracker, sections: list[TextSection]):
        super().__init__(context, cost_tracker)
        self.sections = sections

    async def run(self) -> TrackOutcome:
        outcome = TrackOutcome(track=self.track, attempted=len(self.sections))
        if not self.sections:
            return outcome

        async def process(section: TextSection) -> ExtractionResult | bool | None:
            """ExtractionResult, False when the gate rejects, None on failure."""
            async with self.context.semaphore:
                verification = await verify_revenue(
                    section.text,
                    section.search_term or "",
                    model=self.context.config.verifier_model,
                    cost_tracker=self.cost_tracker,
                )
                if not passes_gate(verification, self.context.min_verify_confidence):
                    self.logger.debug(
                        f"[Keyword Track] {section.label} rejected by verifier "
                        f"(confidence {verification.confidence}): {verification.reasoning}"
                    )
                    self.logger.tick(f"{section.label}: no revenue data")
                    return False

                try:
                    result = await self.extract(section)
                except Exception as e:
                    self.record_failure(section, e, "Keyword Track")
                    return None
                self.logger.tick(f"{section.label}: {len(result.revenue_records)} records")
                return result

        for result in await asyncio.gather(*(process(s) for s in self.sections)):
            if result is None:
                outcome.failed += 1
            elif result is False:
                outcome.rejected += 1
            else:
                outcome.results.append(result)
        return outcome


@dataclass
class TracksResult:
    """Result from the tracks phase."""

    structure: TrackOutcome
    keyword: TrackOutcome
    token_usage: TokenUsage

    @property
    def results(self) -> list[ExtractionResult]:
        """Structure-track results followed by keyword-track results."""
        return self.structure.results + self.keyword.results


class TracksPhase(PhaseRunner[TracksResult]):
    """Phase 6: Concurrent structure and keyword tracks."""

    name = "Tracks"

    async def run(self) -> TracksResult:
        state = self.context.state
        revenue_sections = state.routed_sections.get(Track.REVENUE, [])
        business_sections = state.routed_sections.get(Track.BUSINESS, [])

        structure_branch = self.context.cost_tracker.branch()
        keyword_branch = self.context.cost_tracker.branch()

        structure_track = StructureTrack(self.context, structure_branch, revenue_sections, business_sections)
        keyword_track = KeywordTrack(self.context, keyword_branch, state.keyword_sections)

        total = (
            len(structure_track.revenue_sections)
            + len(structure_track.business_sections)
            + len(keyword_track.sections)
        )
        self.start(total, model=self.context.config.revenue_model)

        structure_outcome, keyword_outcome = await asyncio.gather(
            structure_track.run(),
            keyword_track.run(),
        )

        structure_outcome.token_usage = structure_branch.token_usage()
        keyword_outcome.token_usage = keyword_branch.token_usage()
        self.context.cost_tracker.absorb(structure_branch)
        self.context.cost_tracker.absorb(keyword_branch)

        state.structure_results = structure_outcome.results
        state.keyword_results = keyword_outcome.results
        state.business_insights = structure_outcome.business_insights

        result = TracksResult(
            structure=structure_outcome,
            keyword=keyword_outcome,
            token_usage=structure_outcome.token_usage.merge(keyword_outcome.token_usage),
        )

        self.logger.phase_result(
            "Tracks",
            f"{len(result.results)} results",
            structure=len(structure_outcome.results),
            keyword=len(keyword_outcome.results),
            rejected=keyword_outcome.rejected,
            failed=structure_outcome.failed + keyword_outcome.failed,
            insights=len(structure_outcome.business_insights),
        )
        self.end()
        return result
