"""Therapy Revenue Extraction Pipeline.

Extracts per-therapy revenue figures from pharmaceutical company reports
(PDF), running a structure-based and a keyword-based extraction track
concurrently and reconciling their results into one answer per document.

Architecture:
    core/            - PDF reader, section extraction, reconciler, logging, errors
    prompts/         - LLM prompt templates
    agents/          - Agent implementations (classifier, structure, verifier, revenue, business)
    pydantic_models/ - Pydantic models for queue entities, structure and extracted facts
    phases/          - Phase runner classes for the per-document state machine
    storage/         - SQLite work queue and repositories
    worker.py        - Queue worker loop
    service.py       - Submit / status / reprocess operations

Usage:
    from revenue_extractor import ExtractionService, QueueWorker

    service = ExtractionService("revenue_queue.db")
    job_id = service.submit_document(DocumentMetadata(file_location="report.pdf"))
    await QueueWorker("revenue_queue.db").run_once()

CLI:
    revenue-extract submit reports/acme_q1_2024.pdf
"""

from revenue_extractor.orchestrator import Orchestrator
from revenue_extractor.service import ExtractionService
from revenue_extractor.worker import QueueWorker
from revenue_extractor.pydantic_models import (
    # Queue
    Job,
    JobType,
    JobStatus,
    DocumentMetadata,
    ExtractionStatus,
    # Extracted facts
    RevenueRecord,
    ExtractionResult,
    ReconciledResult,
    SourceCitation,
    BusinessInsight,
    PipelineOutput,
)

__all__ = [
    # Main entry points
    "Orchestrator",
    "ExtractionService",
    "QueueWorker",
    # Queue
    "Job",
    "JobType",
    "JobStatus",
    "DocumentMetadata",
    "ExtractionStatus",
    # Extracted facts
    "RevenueRecord",
    "ExtractionResult",
    "ReconciledResult",
    "SourceCitation",
    "BusinessInsight",
    "PipelineOutput",
]
