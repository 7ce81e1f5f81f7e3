"""Pydantic models for queue entities, document structure and extracted facts."""

from revenue_extractor.pydantic_models.queue_models import (
    JobType,
    JobStatus,
    Job,
    DocumentMetadata,
    Document,
    Therapy,
    QueueStats,
    StoredResult,
    ExtractionStatus,
)
from revenue_extractor.pydantic_models.structure_models import (
    SectionType,
    SECTION_TYPES,
    Section,
    DocumentStructure,
    TextSection,
    SectionOverlap,
    Track,
    ExtractionStrategy,
)
from revenue_extractor.pydantic_models.extraction_models import (
    RevenueRecord,
    ExtractionResult,
    SourceCitation,
    ReconciledResult,
    BusinessInsight,
    PipelineOutput,
)
from revenue_extractor.pydantic_models.llm_responses import (
    DocumentInfo,
    VerificationResult,
    TocEntry,
    TableOfContents,
    StructureInference,
    BusinessAnalysis,
)

__all__ = [
    # Queue
    "JobType",
    "JobStatus",
    "Job",
    "DocumentMetadata",
    "Document",
    "Therapy",
    "QueueStats",
    "StoredResult",
    "ExtractionStatus",
    # Structure
    "SectionType",
    "SECTION_TYPES",
    "Section",
    "DocumentStructure",
    "TextSection",
    "SectionOverlap",
    "Track",
    "ExtractionStrategy",
    # Extraction
    "RevenueRecord",
    "ExtractionResult",
    "SourceCitation",
    "ReconciledResult",
    "BusinessInsight",
    "PipelineOutput",
    # LLM responses
    "DocumentInfo",
    "VerificationResult",
    "TocEntry",
    "TableOfContents",
    "StructureInference",
    "BusinessAnalysis",
]
