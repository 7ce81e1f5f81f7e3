"""Pydantic schemas for persisted queue entities.

Jobs, documents and therapies as the storage layer returns them. These are
plain value objects: every mutation goes through WorkQueue or a repository.
"""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from revenue_extractor.pydantic_models.extraction_models import PipelineOutput, ReconciledResult


class JobType(str, Enum):
    """Why a job was created."""

    EXTRACTION = "extraction"        # First run after upload
    REPROCESSING = "reprocessing"    # Manual re-run; overwrites the stored result

    def __str__(self) -> str:
        return self.value


class JobStatus(str, Enum):
    """Job lifecycle. COMPLETED and FAILED are terminal."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


class Job(BaseModel):
    """One unit of queued work: process a document once."""

    id: str
    document_id: str
    job_type: JobType = JobType.EXTRACTION
    priority: int = Field(default=3, ge=1, le=3, description="1 = high, 3 = low")
    status: JobStatus = JobStatus.PENDING
    attempts: int = 0
    max_attempts: int = 3
    last_error: str | None = None
    lease_token: str | None = Field(
        default=None,
        description="Random token stamped on lease; a worker may only finish the job while it still matches",
    )
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)


class DocumentMetadata(BaseModel):
    """What a caller supplies when submitting a document."""

    file_location: str = Field(description="Local path of the PDF")
    file_name: str | None = Field(default=None, description="Display name; defaults to the path's file name")
    content_hash: str | None = Field(
        default=None,
        description="SHA-256 of the file; computed from file_location when omitted",
    )


class Document(BaseModel):
    """A submitted PDF. Classification metadata is backfilled after the first run."""

    id: str
    file_location: str
    file_name: str
    content_hash: str
    company_name: str | None = None
    report_type: str | None = None
    reporting_period: str | None = None
    created_at: datetime


class Therapy(BaseModel):
    """A registered therapy; the keyword track searches for its name."""

    id: str
    name: str
    manufacturer: str


class QueueStats(BaseModel):
    """Counts per job status, for operators."""

    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    stuck: int = Field(default=0, description="Processing jobs older than the stuck timeout")

    @property
    def total(self) -> int:
        return self.pending + self.processing + self.completed + self.failed


class StoredResult(BaseModel):
    """The latest pipeline output persisted for a document."""

    document_id: str
    job_id: str | None = None
    output: PipelineOutput
    requires_review: bool = True
    created_at: datetime
    updated_at: datetime


class ExtractionStatus(BaseModel):
    """Answer to "where is this document?".

    ``status`` is the latest job's status, or ``not_submitted`` when the
    document has never been queued. ``result`` is the stored output, which
    may belong to an earlier run while a reprocess is pending.
    """

    document_id: str
    status: Literal["not_submitted", "pending", "processing", "completed", "failed"]
    job_id: str | None = None
    job_type: JobType | None = None
    attempts: int = 0
    last_error: str | None = None
    result: StoredResult | None = None

    @property
    def reconciled(self) -> ReconciledResult | None:
        return self.result.output.reconciled if self.result else None
