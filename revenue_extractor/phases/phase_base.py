"""Base classes for pipeline phases.

The context is split into three parts so responsibilities are clear:
- **ExtractionResources** (frozen): things created once per document run:
  page text, concurrency semaphore, job-scoped logger, cost tracker, and the
  therapy registry lookup.
- **ExtractionConfig** (frozen): settings that never change mid-run: model
  names, keyword context pages, reconcile epsilon, verify threshold.
- **PipelineState** (mutable): the data that accumulates as each phase runs:
  classification, therapies, structure, strategy, sections, track results.

PhaseContext wraps all three and exposes convenience properties so phases can
write ``ctx.pages`` instead of ``ctx.resources.pages``. A context is built for
one document and dropped afterwards; nothing in it is shared across documents.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Generic, TypeVar, TYPE_CHECKING

from revenue_extractor.core import PageIndexedText, PipelineErrors, PipelineLogger, CostTracker
from revenue_extractor.core.config import (
    DEFAULT_MODELS,
    ReconcileConfig,
    SectionConfig,
    VerificationConfig,
)
from revenue_extractor.pydantic_models import ExtractionStrategy, Track

if TYPE_CHECKING:
    from revenue_extractor.pydantic_models import (
        BusinessInsight,
        DocumentInfo,
        DocumentStructure,
        ExtractionResult,
        ReconciledResult,
        SectionOverlap,
        TextSection,
        Therapy,
    )


TherapyLookup = Callable[[str], "list[Therapy]"]


# Split Context Classes

@dataclass(frozen=True)
class ExtractionResources:
    """Shared resources - created once per document, never modified."""

    pages: PageIndexedText
    semaphore: asyncio.Semaphore
    logger: PipelineLogger
    cost_tracker: CostTracker
    therapy_lookup: TherapyLookup
    registered_companies: tuple[str, ...] = ()
    toc: tuple[tuple[int, str, int], ...] = ()  # Native PDF outline (level, title, page)


@dataclass(frozen=True)
class ExtractionConfig:
    """Configuration - set at init, never modified.

    Default models come from revenue_extractor.core.config.DEFAULT_MODELS.
    """

    classifier_model: str = DEFAULT_MODELS["classifier"]
    structure_model: str = DEFAULT_MODELS["structure"]
    verifier_model: str = DEFAULT_MODELS["verifier"]
    revenue_model: str = DEFAULT_MODELS["revenue"]
    business_model: str = DEFAULT_MODELS["business"]
    context_pages: int = SectionConfig.CONTEXT_PAGES
    epsilon: float = ReconcileConfig.EPSILON
    min_verify_confidence: int = VerificationConfig.MIN_CONFIDENCE
    analyze_business: bool = True  # Run the business-insight track
    verbose: bool = False


@dataclass
class PipelineState:
    """Mutable state that accumulates during the pipeline.

    Each field is written by exactly one phase and read by downstream phases:
    - document_info: Written by Classify, read by Lookup/Tracks
    - therapies: Written by Lookup, read by Strategy/Sections
    - structure: Written by Structure, read by Strategy/Sections
    - strategy: Written by Strategy, read by Sections
    - routed_sections / keyword_sections: Written by Sections, read by Tracks
    - structure_results / keyword_results: Written by Tracks, read by Reconcile
    - business_insights: Written by Tracks
    - reconciled: Written by Reconcile
    - errors: Accumulated by all phases
    """

    document_info: DocumentInfo | None = None
    therapies: list[Therapy] = field(default_factory=list)
    structure: DocumentStructure | None = None
    strategy: ExtractionStrategy | None = None

    routed_sections: dict[Track, list[TextSection]] = field(default_factory=dict)
    keyword_sections: list[TextSection] = field(default_factory=list)
    overlaps: list[SectionOverlap] = field(default_factory=list)

    structure_results: list[ExtractionResult] = field(default_factory=list)
    keyword_results: list[ExtractionResult] = field(default_factory=list)
    business_insights: list[BusinessInsight] = field(default_factory=list)

    reconciled: ReconciledResult | None = None

    errors: PipelineErrors = field(default_factory=PipelineErrors)

    @property
    def therapy_names(self) -> list[str]:
        return [t.name for t in self.therapies]


class PhaseContext:
    """Slim context holding references to the three component contexts.

    All sub-context fields phases need are accessible directly via the
    properties below.
    """

    def __init__(self, resources: ExtractionResources, config: ExtractionConfig, state: PipelineState):
        self.resources = resources
        self.config = config
        self.state = state

    # -- Resource properties (read-only) --

    @property
    def pages(self) -> PageIndexedText:
        return self.resources.pages

    @property
    def semaphore(self) -> asyncio.Semaphore:
        return self.resources.semaphore

    @property
    def logger(self) -> PipelineLogger:
        return self.resources.logger

    @property
    def cost_tracker(self) -> CostTracker:
        return self.resources.cost_tracker

    # -- Config properties (read-only) --

    @property
    def context_pages(self) -> int:
        return self.config.context_pages

    @property
    def epsilon(self) -> float:
        return self.config.epsilon

    @property
    def min_verify_confidence(self) -> int:
        return self.config.min_verify_confidence

    # -- State properties (read-write) --

    @property
    def document_info(self) -> DocumentInfo | None:
        return self.state.document_info

    @document_info.setter
    def document_info(self, value: DocumentInfo | None) -> None:
        self.state.document_info = value

    @property
    def therapies(self) -> list[Therapy]:
        return self.state.therapies

    @therapies.setter
    def therapies(self, value: list[Therapy]) -> None:
        self.state.therapies = value

    @property
    def structure(self) -> DocumentStructure | None:
        return self.state.structure

    @structure.setter
    def structure(self, value: DocumentStructure | None) -> None:
        self.state.structure = value

    @property
    def strategy(self) -> ExtractionStrategy | None:
        return self.state.strategy

    @strategy.setter
    def strategy(self, value: ExtractionStrategy | None) -> None:
        self.state.strategy = value

    @property
    def errors(self) -> PipelineErrors:
        return self.state.errors


T = TypeVar("T")


class PhaseRunner(ABC, Generic[T]):
    """Base class for pipeline phase runners.

    Each phase:
    - Has a name for logging
    - Takes a PhaseContext with shared state
    - Produces a typed result
    """

    name: str = "unnamed"

    def __init__(self, context: PhaseContext):
        self.context = context
        self.logger = context.logger

    @abstractmethod
    async def run(self) -> T:
        """Execute the phase."""

    def log(self, message: str, level: str = "info", **data):
        """Log a message with phase context."""
        if level == "debug":
            self.logger.debug(f"[{self.name}] {message}", **data)
        elif level == "warning":
            self.logger.warning(f"[{self.name}] {message}", **data)
        elif level == "error":
            self.logger.error(f"[{self.name}] {message}", **data)
        else:
            self.logger.info(f"[{self.name}] {message}", **data)

    def start(self, total: int = 0, model: str = ""):
        """Signal phase start."""
        self.logger.start_phase(self.name, total, model)

    def end(self, message: str = ""):
        """Signal phase end."""
        self.logger.end_phase(message)

    def progress(self, current: int, total: int, item: str = ""):
        """Report progress."""
        self.logger.progress(current, total, item)
