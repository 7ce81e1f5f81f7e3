"""Phase runners for the extraction pipeline.

Each phase is encapsulated in its own runner class with:
- Clear inputs and outputs
- Logging
- Progress tracking
"""

from revenue_extractor.phases.phase_base import (
    PhaseRunner,
    PhaseContext,
    ExtractionResources,
    ExtractionConfig,
    PipelineState,
)
from revenue_extractor.phases.classify_phase import ClassifyPhase, ClassifyResult
from revenue_extractor.phases.therapy_lookup_phase import TherapyLookupPhase, TherapyLookupResult
from revenue_extractor.phases.structure_phase import StructurePhase, StructureResult
from revenue_extractor.phases.strategy_phase import StrategyPhase, StrategyResult, determine_strategy
from revenue_extractor.phases.sections_phase import SectionsPhase, SectionsResult
from revenue_extractor.phases.track_phase import (
    TracksPhase,
    TracksResult,
    TrackOutcome,
    StructureTrack,
    KeywordTrack,
)
from revenue_extractor.phases.reconcile_phase import ReconcilePhase, ReconcileResult, drop_empty_results

__all__ = [
    "PhaseRunner",
    "PhaseContext",
    "ExtractionResources",
    "ExtractionConfig",
    "PipelineState",
    "ClassifyPhase",
    "ClassifyResult",
    "TherapyLookupPhase",
    "TherapyLookupResult",
    "StructurePhase",
    "StructureResult",
    "StrategyPhase",
    "StrategyResult",
    "determine_strategy",
    "SectionsPhase",
    "SectionsResult",
    "TracksPhase",
    "TracksResult",
    "TrackOutcome",
    "StructureTrack",
    "KeywordTrack",
    "ReconcilePhase",
    "ReconcileResult",
    "drop_empty_results",
]
