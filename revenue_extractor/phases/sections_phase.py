"""Sections phase - turns page text into routed snippets for each track.

Which maps get built depends on the strategy:

    smart-complete  -> whole document as one financial structure section
    full-parallel   -> structure sections + keyword windows
    structure-only  -> structure sections
    hybrid          -> keyword windows

Structure sections are routed to the revenue or business-insight track.
Keyword windows always go to revenue extraction, scoped to their therapy.
Overlaps between the two maps are logged and counted; nothing is removed.
"""

from dataclasses import dataclass, field

from revenue_extractor.core.section_extractor import (
    StructureSections,
    KeywordSections,
    detect_overlaps,
    extract_keyword_sections,
    extract_structure_sections,
    route_keyword_sections,
    route_structure_sections,
    whole_document_section,
)
from revenue_extractor.phases.phase_base import PhaseRunner
from revenue_extractor.pydantic_models import ExtractionStrategy, SectionOverlap, TextSection, Track


_STRUCTURE_STRATEGIES = frozenset({ExtractionStrategy.FULL_PARALLEL, ExtractionStrategy.STRUCTURE_ONLY})
_KEYWORD_STRATEGIES = frozenset({ExtractionStrategy.FULL_PARALLEL, ExtractionStrategy.HYBRID})


@dataclass
class SectionsResult:
    """Result from the sections phase."""

    revenue_sections: list[TextSection] = field(default_factory=list)
    business_sections: list[TextSection] = field(default_factory=list)
    keyword_sections: list[TextSection] = field(default_factory=list)
    overlaps: list[SectionOverlap] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.revenue_sections) + len(self.business_sections) + len(self.keyword_sections)


class SectionsPhase(PhaseRunner[SectionsResult]):
    """Phase 5: Section extraction and routing (no LLM call)."""

    name = "Sections"

    async def run(self) -> SectionsResult:
        strategy = self.context.strategy
        if strategy is None:
            raise RuntimeError("Sections phase requires a strategy; run StrategyPhase first")

        pages = self.context.pages
        structure_sections: StructureSections = {}
        keyword_map: KeywordSections = {}

        if strategy == ExtractionStrategy.SMART_COMPLETE:
            structure_sections = whole_document_section(pages)
        elif strategy in _STRUCTURE_STRATEGIES and self.context.structure is not None:
            structure_sections = extract_structure_sections(self.context.structure, pages)

        if strategy in _KEYWORD_STRATEGIES:
            keyword_map = extract_keyword_sections(
                pages,
                self.context.state.therapy_names,
                context_pages=self.context.context_pages,
            )
            for therapy in self.context.state.therapy_names:
                if therapy not in keyword_map:
                    self.log(f"No mentions of {therapy} found", "debug")

        overlaps = detect_overlaps(keyword_map, structure_sections)
        for overlap in overlaps:
            self.log(
                f"{overlap.therapy} overlaps {overlap.structure_type} section "
                f"'{overlap.structure_title}' on pages {overlap.overlap_pages}",
                "debug",
            )

        routed = route_structure_sections(structure_sections)
        keyword_sections = route_keyword_sections(keyword_map)

        state = self.context.state
        state.routed_sections = routed
        state.keyword_sections = keyword_sections
        state.overlaps = overlaps

        result = SectionsResult(
            revenue_sections=routed[Track.REVENUE],
            business_sections=routed[Track.BUSINESS],
            keyword_sections=keyword_sections,
            overlaps=overlaps,
        )
        self.logger.phase_result(
            "Sections",
            f"{result.total} snippets",
            revenue=len(result.revenue_sections),
            business=len(result.business_sections),
            keyword=len(result.keyword_sections),
            overlaps=len(overlaps),
        )
        return result
