"""Outward operations: submit, inspect and reprocess documents.

ExtractionService is synchronous; it only touches the database. Extraction
itself happens in a QueueWorker, possibly in another process.
"""

import hashlib
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable

from revenue_extractor.core import DocumentNotFoundError
from revenue_extractor.core.config import QueueConfig
from revenue_extractor.pydantic_models import (
    DocumentMetadata,
    ExtractionStatus,
    Job,
    JobType,
    QueueStats,
    Therapy,
)
from revenue_extractor.storage import (
    DocumentRepository,
    ResultStore,
    TherapyRepository,
    WorkQueue,
    connect,
    initialize_schema,
    transaction,
)
from revenue_extractor.storage.sqlite import utc_now

logger = logging.getLogger(__name__)

_HASH_CHUNK_BYTES = 1024 * 1024


def file_sha256(path: str | Path) -> str:
    """Hex SHA-256 of a file's content."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_HASH_CHUNK_BYTES), b""):
            digest.update(chunk)
    return digest.hexdigest()


class ExtractionService:
    """Facade over the queue and repositories for callers and the CLI."""

    def __init__(
        self,
        db_path: str | Path = QueueConfig.DB_PATH,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db_path = Path(db_path)
        initialize_schema(self.db_path)
        self.queue = WorkQueue(self.db_path, clock=clock)
        self.documents = DocumentRepository(self.db_path, clock=clock)
        self.therapies = TherapyRepository(self.db_path, clock=clock)
        self.results = ResultStore(self.db_path, clock=clock)

    def submit_document(self, metadata: DocumentMetadata) -> str:
        """Register a document and queue its extraction.

        A file whose content hash is already known resolves to the existing
        document. If that document already has a job, its latest job id is
        returned instead of queueing a duplicate. Registration and enqueue
        share one write transaction, so concurrent submits of the same file
        all get the same job.

        Returns:
            Job id.
        """
        content_hash = metadata.content_hash or file_sha256(metadata.file_location)
        file_name = metadata.file_name or Path(metadata.file_location).name

        with connect(self.db_path) as conn, transaction(conn):
            document, created = self.documents.create(
                metadata.file_location, file_name, content_hash, conn=conn
            )
            existing = None if created else self.queue.latest_job_for_document(document.id, conn=conn)
            if existing is None:
                job_id = self.queue.enqueue(
                    document.id, JobType.EXTRACTION, priority=QueueConfig.DEFAULT_PRIORITY, conn=conn
                )

        if existing is not None:
            logger.info(f"Document {document.id} already submitted (job {existing.id})")
            return existing.id
        logger.info(f"Queued extraction job {job_id} for document {document.id} ({file_name})")
        return job_id

    def get_extraction_status(self, document_id: str) -> ExtractionStatus:
        """Latest job status plus the stored result, if any.

        Raises:
            DocumentNotFoundError: If the document does not exist.
        """
        if self.documents.get(document_id) is None:
            raise DocumentNotFoundError(document_id)

        job = self.queue.latest_job_for_document(document_id)
        result = self.results.get(document_id)
        if job is None:
            return ExtractionStatus(document_id=document_id, status="not_submitted", result=result)

        return ExtractionStatus(
            document_id=document_id,
            status=job.status.value,
            job_id=job.id,
            job_type=job.job_type,
            attempts=job.attempts,
            last_error=job.last_error,
            result=result,
        )

    def trigger_reprocess(self, document_id: str) -> str:
        """Queue a high-priority reprocessing job; its result overwrites the stored one.

        Raises:
            DocumentNotFoundError: If the document does not exist.
        """
        if self.documents.get(document_id) is None:
            raise DocumentNotFoundError(document_id)

        job_id = self.queue.enqueue(document_id, JobType.REPROCESSING, priority=QueueConfig.REPROCESS_PRIORITY)
        logger.info(f"Queued reprocessing job {job_id} for document {document_id}")
        return job_id

    def register_therapy(self, name: str, manufacturer: str) -> Therapy:
        return self.therapies.register(name, manufacturer)

    def queue_stats(self) -> QueueStats:
        return self.queue.stats()

    def retry_failed_job(self, job_id: str) -> Job:
        """Put a failed job back in the queue with a fresh attempt budget."""
        return self.queue.retry_failed(job_id)
