"""Structure phase - document outline, analyzed once per document."""

from dataclasses import dataclass

from revenue_extractor.phases.phase_base import PhaseRunner
from revenue_extractor.agents.structure_agent import analyze_structure
from revenue_extractor.pydantic_models import DocumentStructure


@dataclass
class StructureResult:
    """Result from the structure phase."""

    structure: DocumentStructure

    @property
    def structure_found(self) -> bool:
        return self.structure.is_usable


class StructurePhase(PhaseRunner[StructureResult]):
    """Phase 3: Structure analysis.

    The analyzer falls back to a single "Complete Document" outline on its
    own; that outline is kept for logging but does not count as structure.
    """

    name = "Structure"

    async def run(self) -> StructureResult:
        self.start(self.context.pages.page_count, model=self.context.config.structure_model)

        structure = await analyze_structure(
            self.context.pages,
            native_toc=list(self.context.resources.toc),
            model=self.context.config.structure_model,
            cost_tracker=self.context.cost_tracker,
            semaphore=self.context.semaphore,
        )
        self.context.structure = structure

        for section in structure.sections:
            self.log(
                f"{section.title}: pages {section.page_start}-{section.page_end} ({section.type})",
                "debug",
            )

        self.logger.phase_result(
            "Structure",
            "fallback outline" if structure.is_fallback else f"{len(structure.sections)} sections",
            explicit=structure.has_explicit_structure,
            length=structure.document_length,
        )
        self.end()
        return StructureResult(structure=structure)
