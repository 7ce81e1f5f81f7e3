"""Core utilities for the revenue extraction pipeline."""

from revenue_extractor.core.pdf_reader import PDFReader, PageIndexedText, load_document_text
from revenue_extractor.core.config import (
    LLM_PROVIDER,
    API_KEY_ENV_VAR,
    API_KEY_ENV_VARS,
    DEFAULT_MODELS,
    SMART_MODEL,
    FAST_MODEL,
    ReconcileConfig,
    VerificationConfig,
    SectionConfig,
    StrategyConfig,
    ClassifierConfig,
    StructureConfig,
    ExtractionLimits,
    QueueConfig,
    LLMConfig,
)
from revenue_extractor.core.llm_client import LLMClient, LLMResponse
from revenue_extractor.core.pipeline_logger import PipelineLogger
from revenue_extractor.core.errors import (
    ErrorSeverity,
    ErrorCategory,
    ExtractionError,
    PipelineErrors,
    PipelineError,
    NoRegisteredTherapiesError,
    NothingToReconcileError,
    DocumentNotFoundError,
    LeaseLostError,
    llm_api_error,
    llm_parse_error,
)
from revenue_extractor.core.cost_tracker import CostTracker, CallUsage, TokenUsage
from revenue_extractor.core.section_extractor import (
    StructureSections,
    KeywordSections,
    extract_structure_sections,
    extract_keyword_sections,
    whole_document_section,
    merge_page_windows,
    detect_overlaps,
    route_structure_sections,
    route_keyword_sections,
)
from revenue_extractor.core.reconciler import (
    reconcile,
    reconcile_with_report,
    ReconciliationReport,
    ConflictResolution,
    ResolutionStrategy,
)
from revenue_extractor.core.normalization import (
    normalize_period,
    normalize_region,
    parse_amount,
)

__all__ = [
    # PDF
    "PDFReader",
    "PageIndexedText",
    "load_document_text",
    # Config
    "LLM_PROVIDER",
    "API_KEY_ENV_VAR",
    "API_KEY_ENV_VARS",
    "DEFAULT_MODELS",
    "SMART_MODEL",
    "FAST_MODEL",
    "ReconcileConfig",
    "VerificationConfig",
    "SectionConfig",
    "StrategyConfig",
    "ClassifierConfig",
    "StructureConfig",
    "ExtractionLimits",
    "QueueConfig",
    "LLMConfig",
    # LLM
    "LLMClient",
    "LLMResponse",
    # Logging
    "PipelineLogger",
    # Errors
    "ErrorSeverity",
    "ErrorCategory",
    "ExtractionError",
    "PipelineErrors",
    "PipelineError",
    "NoRegisteredTherapiesError",
    "NothingToReconcileError",
    "DocumentNotFoundError",
    "LeaseLostError",
    "llm_api_error",
    "llm_parse_error",
    # Cost tracking
    "CostTracker",
    "CallUsage",
    "TokenUsage",
    # Sections
    "StructureSections",
    "KeywordSections",
    "extract_structure_sections",
    "extract_keyword_sections",
    "whole_document_section",
    "merge_page_windows",
    "detect_overlaps",
    "route_structure_sections",
    "route_keyword_sections",
    # Reconciliation
    "reconcile",
    "reconcile_with_report",
    "ReconciliationReport",
    "ConflictResolution",
    "ResolutionStrategy",
    # Normalization
    "normalize_period",
    "normalize_region",
    "parse_amount",
]
