"""Pipeline orchestrator: runs every phase of one document's extraction in order.

Phases are separate classes so each one can be tested and reasoned about in
isolation. Between phases, data flows through a PipelineState (see
phases/phase_base.py): one phase writes its output, the next phase reads it.
An Orchestrator is built for a single document and thrown away afterwards.

High-level flow:
  Classify → Lookup → Structure → Strategy → Sections
  → {StructureTrack ∥ KeywordTrack} → Reconcile
"""

import asyncio
from pathlib import Path

from revenue_extractor.core import CostTracker, PageIndexedText, PipelineErrors, PipelineLogger, load_document_text
from revenue_extractor.core.config import DEFAULT_MODELS, LLMConfig, ReconcileConfig, SectionConfig, VerificationConfig
from revenue_extractor.phases import (
    PhaseContext,
    ExtractionResources,
    ExtractionConfig,
    PipelineState,
    ClassifyPhase,
    TherapyLookupPhase,
    StructurePhase,
    StrategyPhase,
    SectionsPhase,
    TracksPhase,
    ReconcilePhase,
)
from revenue_extractor.phases.phase_base import TherapyLookup
from revenue_extractor.pydantic_models import PipelineOutput


class Orchestrator:
    """Pipeline orchestrator coordinating phase runners for one document."""

    def __init__(
        self,
        pages: PageIndexedText,
        therapy_lookup: TherapyLookup,
        registered_companies: list[str] | None = None,
        toc: list[tuple[int, str, int]] | None = None,
        source_name: str = "document",
        classifier_model: str = DEFAULT_MODELS["classifier"],
        structure_model: str = DEFAULT_MODELS["structure"],
        verifier_model: str = DEFAULT_MODELS["verifier"],
        revenue_model: str = DEFAULT_MODELS["revenue"],
        business_model: str = DEFAULT_MODELS["business"],
        max_concurrent: int = LLMConfig.MAX_CONCURRENT,
        context_pages: int = SectionConfig.CONTEXT_PAGES,
        epsilon: float = ReconcileConfig.EPSILON,
        min_verify_confidence: int = VerificationConfig.MIN_CONFIDENCE,
        analyze_business: bool = True,
        logger: PipelineLogger | None = None,
        verbose: bool = False,
        log_dir: str | Path | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            pages: Page text of the document.
            therapy_lookup: Company name -> registered therapies.
            registered_companies: Companies the classifier may answer with.
            toc: Native PDF outline as (level, title, page) entries.
            source_name: Name shown in logs and used for the log file.
            classifier_model: Model for document classification.
            structure_model: Model for structure analysis.
            verifier_model: Model for the keyword verify gate.
            revenue_model: Model for revenue extraction.
            business_model: Model for business analysis.
            max_concurrent: Max concurrent LLM calls.
            context_pages: Pages added around each keyword match.
            epsilon: Amount difference (millions USD) treated as the same fact.
            min_verify_confidence: Verifier confidence needed to extract a window.
            analyze_business: Whether to run business analysis on business sections.
            logger: Job-scoped logger; a fresh one is created when omitted.
            verbose: If True, print detailed logs.
            log_dir: Directory for log files.
        """
        self.source_name = source_name
        self.logger = logger or PipelineLogger(verbose=verbose, log_dir=log_dir)

        resources = ExtractionResources(
            pages=pages,
            semaphore=asyncio.Semaphore(max_concurrent),
            logger=self.logger,
            cost_tracker=CostTracker(),
            therapy_lookup=therapy_lookup,
            registered_companies=tuple(registered_companies or ()),
            toc=tuple(toc or ()),
        )

        config = ExtractionConfig(
            classifier_model=classifier_model,
            structure_model=structure_model,
            verifier_model=verifier_model,
            revenue_model=revenue_model,
            business_model=business_model,
            context_pages=context_pages,
            epsilon=epsilon,
            min_verify_confidence=min_verify_confidence,
            analyze_business=analyze_business,
            verbose=verbose,
        )

        self.context = PhaseContext(
            resources=resources,
            config=config,
            state=PipelineState(),
        )

        self._sections_result = None
        self._tracks_result = None
        self._reconcile_result = None

    @classmethod
    def from_pdf(cls, pdf_path: str | Path, therapy_lookup: TherapyLookup, **kwargs) -> "Orchestrator":
        """Build an orchestrator by reading a PDF's text and outline with PyMuPDF."""
        pages, toc = load_document_text(pdf_path)
        kwargs.setdefault("source_name", Path(pdf_path).name)
        return cls(pages, therapy_lookup, toc=toc, **kwargs)

    @property
    def cost_tracker(self) -> CostTracker:
        return self.context.cost_tracker

    async def run(self) -> PipelineOutput:
        """Run the complete extraction pipeline.

        Returns:
            PipelineOutput with the reconciled result, business insights and
            token usage.

        Raises:
            NoRegisteredTherapiesError: Company known, nothing registered.
            NothingToReconcileError: Neither track produced a usable result.
            Exception: Classifier or structure failures propagate unchanged.
        """
        self.logger.start_pipeline(self.source_name)

        try:
            await ClassifyPhase(self.context).run()
            await TherapyLookupPhase(self.context).run()
            await StructurePhase(self.context).run()
            await StrategyPhase(self.context).run()
            self._sections_result = await SectionsPhase(self.context).run()
            self._tracks_result = await TracksPhase(self.context).run()
            self._reconcile_result = await ReconcilePhase(self.context).run()

            output = PipelineOutput(
                reconciled=self._reconcile_result.reconciled,
                business_insights=self.context.state.business_insights,
                strategy=str(self.context.strategy),
                token_usage=self._tracks_result.token_usage.to_dict(),
                overlaps=len(self.context.state.overlaps),
                snippet_results=len(self._tracks_result.results),
                errors=self.context.errors.to_dict(),
            )

            self.logger.end_pipeline(success=True, stats=self.get_stats())
            return output

        except Exception as e:
            self.logger.error("Pipeline failed", exc=e)
            self.logger.end_pipeline(success=False, stats=self.get_stats())
            raise

    def get_stats(self) -> dict:
        """Get extraction statistics."""
        state = self.context.state

        sections_stats = {}
        if self._sections_result:
            sections_stats = {
                "revenue": len(self._sections_result.revenue_sections),
                "business": len(self._sections_result.business_sections),
                "keyword": len(self._sections_result.keyword_sections),
                "overlaps": len(self._sections_result.overlaps),
            }

        tracks_stats = {}
        if self._tracks_result:
            tracks_stats = {
                "structure_results": len(self._tracks_result.structure.results),
                "keyword_results": len(self._tracks_result.keyword.results),
                "verify_rejected": self._tracks_result.keyword.rejected,
                "failed_snippets": self._tracks_result.structure.failed + self._tracks_result.keyword.failed,
            }

        reconcile_stats = {}
        if self._reconcile_result:
            reconcile_stats = self._reconcile_result.report.summary()
            reconcile_stats["confidence"] = self._reconcile_result.reconciled.confidence

        return {
            "company": state.document_info.company_name if state.document_info else None,
            "therapies": len(state.therapies),
            "strategy": str(state.strategy) if state.strategy else None,
            "sections": sections_stats,
            "tracks": tracks_stats,
            "reconcile": reconcile_stats,
            "tokens": self.cost_tracker.token_usage().to_dict(),
            "cost_usd": round(self.cost_tracker.total_cost, 4),
            "errors": self.context.errors.summary(),
        }

    def get_errors(self) -> PipelineErrors:
        """Get pipeline errors."""
        return self.context.errors
