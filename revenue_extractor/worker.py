"""Queue worker: leases jobs and runs the pipeline for each one.

One job at a time per process; several processes may share the queue
database because leasing is atomic. SQLite and PDF reading are synchronous
and run in a thread with ``asyncio.to_thread`` so the event loop stays free
for the pipeline's LLM calls.

Housekeeping runs between jobs:
- a stuck-job sweep on startup (general timeout) and then periodically
  (per job type: extraction and reprocessing have their own timeouts);
- purging of completed jobs older than ``QueueConfig.PURGE_AFTER_DAYS``,
  at most once a day.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable

from revenue_extractor.core import DocumentNotFoundError, LeaseLostError, PageIndexedText, PipelineLogger
from revenue_extractor.core.config import QueueConfig
from revenue_extractor.core.pdf_reader import load_document_text
from revenue_extractor.orchestrator import Orchestrator
from revenue_extractor.pydantic_models import Job, JobType
from revenue_extractor.storage import (
    DocumentRepository,
    ResultStore,
    TherapyRepository,
    WorkQueue,
    initialize_schema,
)
from revenue_extractor.storage.sqlite import utc_now

logger = logging.getLogger(__name__)

PageLoader = Callable[[str], tuple[PageIndexedText, list[tuple[int, str, int]]]]

_PURGE_INTERVAL_SECONDS = 24 * 60 * 60


class QueueWorker:
    """Polls the work queue and processes one job at a time."""

    def __init__(
        self,
        db_path: str | Path = QueueConfig.DB_PATH,
        page_loader: PageLoader = load_document_text,
        orchestrator_factory: Callable[..., Orchestrator] = Orchestrator,
        clock: Callable[[], datetime] = utc_now,
        poll_interval_ms: int = QueueConfig.POLL_INTERVAL_MS,
        check_stuck_interval_ms: int = QueueConfig.CHECK_STUCK_INTERVAL_MS,
        verbose: bool = False,
        log_dir: str | Path | None = None,
        **orchestrator_kwargs,
    ):
        """Initialize the worker.

        Args:
            db_path: Queue database; the schema is created if missing.
            page_loader: Reads (page text, native outline) from a file path.
            orchestrator_factory: Builds the per-job Orchestrator.
            clock: Current UTC time, shared with the queue and repositories.
            poll_interval_ms: Sleep between polls when the queue is empty.
            check_stuck_interval_ms: Interval between periodic stuck sweeps.
            verbose: If True, job loggers print DEBUG lines.
            log_dir: Directory for per-job log files.
            **orchestrator_kwargs: Passed to every Orchestrator (models, limits).
        """
        self.db_path = Path(db_path)
        initialize_schema(self.db_path)

        self.queue = WorkQueue(self.db_path, clock=clock)
        self.documents = DocumentRepository(self.db_path, clock=clock)
        self.therapies = TherapyRepository(self.db_path, clock=clock)
        self.results = ResultStore(self.db_path, clock=clock)

        self.page_loader = page_loader
        self.orchestrator_factory = orchestrator_factory
        self.poll_interval = poll_interval_ms / 1000
        self.check_stuck_interval = check_stuck_interval_ms / 1000
        self.verbose = verbose
        self.log_dir = log_dir
        self.orchestrator_kwargs = orchestrator_kwargs

        self._stop = asyncio.Event()
        self._last_stuck_check = 0.0
        self._last_purge = 0.0
        self.processed = 0
        self.failed = 0

    # -------------------------------------------------------------------------
    # Loop control
    # -------------------------------------------------------------------------

    async def start(self):
        """Sweep stuck jobs, then poll until ``stop()`` is called."""
        self._stop.clear()
        logger.info(f"Worker started on {self.db_path}")

        await asyncio.to_thread(self.recover_stuck_jobs)
        await asyncio.to_thread(self.purge)
        self._last_stuck_check = self._last_purge = time.monotonic()

        while not self._stop.is_set():
            await self._housekeeping()

            job = await self.run_once()
            if job is not None:
                continue

            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

        logger.info(f"Worker stopped ({self.processed} completed, {self.failed} failed)")

    def stop(self):
        """Ask the loop to exit after the current job."""
        self._stop.set()

    async def run_once(self) -> Job | None:
        """Lease and process a single job.

        Returns:
            The leased job (as leased), or None if the queue was empty.
        """
        job = await asyncio.to_thread(self.queue.lease_next)
        if job is None:
            return None
        await self.process_job(job)
        return job

    # -------------------------------------------------------------------------
    # Housekeeping
    # -------------------------------------------------------------------------

    def recover_stuck_jobs(self) -> list[Job]:
        """Startup sweep with the general stuck timeout."""
        return self.queue.recover_stuck(timedelta(minutes=QueueConfig.STUCK_JOB_TIMEOUT_MINUTES))

    def recover_stuck_by_type(self) -> list[Job]:
        """Periodic sweep with the per-job-type timeouts."""
        recovered = self.queue.recover_stuck(
            timedelta(minutes=QueueConfig.EXTRACTION_TIMEOUT_MINUTES),
            job_type=JobType.EXTRACTION,
        )
        recovered += self.queue.recover_stuck(
            timedelta(minutes=QueueConfig.REPROCESSING_TIMEOUT_MINUTES),
            job_type=JobType.REPROCESSING,
        )
        return recovered

    def purge(self) -> int:
        return self.queue.purge_completed(timedelta(days=QueueConfig.PURGE_AFTER_DAYS))

    async def _housekeeping(self):
        now = time.monotonic()
        try:
            if now - self._last_stuck_check >= self.check_stuck_interval:
                self._last_stuck_check = now
                await asyncio.to_thread(self.recover_stuck_by_type)
            if now - self._last_purge >= _PURGE_INTERVAL_SECONDS:
                self._last_purge = now
                await asyncio.to_thread(self.purge)
        except Exception as e:
            # Housekeeping failures must not stop job processing.
            logger.error(f"Queue housekeeping failed: {e}")

    # -------------------------------------------------------------------------
    # Job processing
    # -------------------------------------------------------------------------

    async def process_job(self, job: Job) -> bool:
        """Run the pipeline for a leased job and record the outcome.

        Returns:
            True if the result was persisted and the job completed.
        """
        job_logger = PipelineLogger(session_id=job.id, verbose=self.verbose, log_dir=self.log_dir)
        job_logger.info(
            f"Processing {job.job_type} job for document {job.document_id} "
            f"(attempt {job.attempts + 1}/{job.max_attempts})"
        )

        try:
            completed = await self._run_pipeline(job, job_logger)
        except Exception as e:
            message = str(e) or type(e).__name__
            job_logger.error(f"Job {job.id} failed", exc=e)
            updated = await asyncio.to_thread(self.queue.fail, job.id, message, job.lease_token)
            if updated is not None:
                job_logger.info(f"Job is now {updated.status} ({updated.attempts}/{updated.max_attempts} attempts)")
            self.failed += 1
            return False
        finally:
            job_logger.close()

        if not completed:
            job_logger.warning(str(LeaseLostError(job.id)))
            return False

        self.processed += 1
        return True

    async def _run_pipeline(self, job: Job, job_logger: PipelineLogger) -> bool:
        document = await asyncio.to_thread(self.documents.get, job.document_id)
        if document is None:
            raise DocumentNotFoundError(job.document_id)

        pages, toc = await asyncio.to_thread(self.page_loader, document.file_location)
        registered = await asyncio.to_thread(self.therapies.list_companies)

        orchestrator = self.orchestrator_factory(
            pages,
            self.therapies.find_by_company,
            registered_companies=registered,
            toc=toc,
            source_name=document.file_name,
            logger=job_logger,
            **self.orchestrator_kwargs,
        )
        output = await orchestrator.run()
        document_info = orchestrator.context.document_info

        def persist(conn):
            self.results.upsert(conn, document.id, output, job_id=job.id)
            if document_info is not None:
                DocumentRepository.update_metadata(conn, document.id, document_info)

        return await asyncio.to_thread(self.queue.complete, job.id, job.lease_token, persist)
