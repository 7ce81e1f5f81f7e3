"""Durable priority-FIFO work queue backed by SQLite.

Job lifecycle:

    pending --lease_next--> processing --complete--> completed
       ^                        |
       +---- fail / recover ----+---- (attempts >= max_attempts) --> failed

Leasing picks the pending job with the lowest priority number, then the
oldest ``created_at``, and flips it to processing inside one ``BEGIN
IMMEDIATE`` transaction, so concurrent workers (threads or processes) never
receive the same job.

Every lease stamps a fresh ``lease_token``. A stuck-job sweep may hand a job
to a second worker while the first is still running; the first worker's
``complete``/``fail`` then no longer matches the token and is rejected, and
its result is never persisted.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable

from revenue_extractor.core.config import QueueConfig
from revenue_extractor.pydantic_models import Job, JobStatus, JobType, QueueStats
from revenue_extractor.storage.sqlite import (
    connect,
    from_timestamp,
    new_id,
    to_timestamp,
    transaction,
    utc_now,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
BeforeCommit = Callable[[sqlite3.Connection], None]


def _row_to_job(row: sqlite3.Row) -> Job:
    return Job(
        id=row["id"],
        document_id=row["document_id"],
        job_type=JobType(row["job_type"]),
        priority=row["priority"],
        status=JobStatus(row["status"]),
        attempts=row["attempts"],
        max_attempts=row["max_attempts"],
        last_error=row["last_error"],
        lease_token=row["lease_token"],
        created_at=from_timestamp(row["created_at"]),
        started_at=from_timestamp(row["started_at"]),
        completed_at=from_timestamp(row["completed_at"]),
    )


class WorkQueue:
    """Job table operations. All methods are synchronous and thread-safe.

    Args:
        db_path: SQLite database file (schema must be initialized).
        clock: Returns the current UTC time. Injected in tests to control
            stuck-job boundaries.
    """

    def __init__(self, db_path: str | Path, clock: Clock = utc_now) -> None:
        self.db_path = Path(db_path)
        self._clock = clock

    def _now(self) -> str:
        return to_timestamp(self._clock())

    def _select(self, conn: sqlite3.Connection, job_id: str) -> Job | None:
        row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
        return _row_to_job(row) if row else None

    # -------------------------------------------------------------------------
    # Core operations
    # -------------------------------------------------------------------------

    def enqueue(
        self,
        document_id: str,
        job_type: JobType = JobType.EXTRACTION,
        priority: int = QueueConfig.DEFAULT_PRIORITY,
        max_attempts: int = QueueConfig.DEFAULT_MAX_ATTEMPTS,
        conn: sqlite3.Connection | None = None,
    ) -> str:
        """Insert a pending job and return its id.

        Pass ``conn`` to insert inside the caller's transaction.

        Raises:
            ValueError: If priority is outside 1-3 or max_attempts < 1.
        """
        if not 1 <= priority <= 3:
            raise ValueError(f"priority must be 1-3, got {priority}")
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

        job_id = new_id()
        params = (job_id, document_id, JobType(job_type).value, priority, max_attempts, self._now())
        insert = """
            INSERT INTO jobs (
                id, document_id, job_type, priority, status,
                attempts, max_attempts, created_at
            ) VALUES (?, ?, ?, ?, 'pending', 0, ?, ?)
        """
        if conn is not None:
            conn.execute(insert, params)
        else:
            with connect(self.db_path) as own:
                own.execute(insert, params)
        logger.debug(f"Enqueued {job_type} job {job_id} for document {document_id} (priority {priority})")
        return job_id

    def lease_next(self) -> Job | None:
        """Atomically claim the next pending job, or return None if there is none."""
        with connect(self.db_path) as conn, transaction(conn):
            row = conn.execute(
                """
                SELECT id FROM jobs
                WHERE status = 'pending'
                ORDER BY priority ASC, created_at ASC, rowid ASC
                LIMIT 1
                """
            ).fetchone()
            if row is None:
                return None

            cursor = conn.execute(
                """
                UPDATE jobs
                SET status = 'processing', started_at = ?, lease_token = ?
                WHERE id = ? AND status = 'pending'
                """,
                (self._now(), new_id(), row["id"]),
            )
            if cursor.rowcount != 1:
                return None
            return self._select(conn, row["id"])

    def complete(
        self,
        job_id: str,
        lease_token: str | None = None,
        before_commit: BeforeCommit | None = None,
    ) -> bool:
        """Mark a processing job completed.

        Args:
            job_id: Job to complete.
            lease_token: When given, the job is only completed if it is still
                leased under this token.
            before_commit: Called with the open connection after the status
                flip and before commit, so a result can be persisted in the
                same transaction. Not called when the lease was lost. If it
                raises, nothing is written.

        Returns:
            False if the job was not processing (or the token did not match).
        """
        with connect(self.db_path) as conn, transaction(conn):
            if lease_token is None:
                cursor = conn.execute(
                    """
                    UPDATE jobs SET status = 'completed', completed_at = ?
                    WHERE id = ? AND status = 'processing'
                    """,
                    (self._now(), job_id),
                )
            else:
                cursor = conn.execute(
                    """
                    UPDATE jobs SET status = 'completed', completed_at = ?
                    WHERE id = ? AND status = 'processing' AND lease_token = ?
                    """,
                    (self._now(), job_id, lease_token),
                )
            if cursor.rowcount != 1:
                logger.warning(f"Job {job_id} not completed: no longer leased by this worker")
                return False
            if before_commit is not None:
                before_commit(conn)
        return True

    def _record_failure(self, conn: sqlite3.Connection, job: Job, error: str) -> Job:
        """Count an attempt and either retry (pending) or give up (failed)."""
        attempts = job.attempts + 1
        if attempts >= job.max_attempts:
            conn.execute(
                """
                UPDATE jobs
                SET status = 'failed', attempts = ?, last_error = ?,
                    lease_token = NULL, completed_at = ?
                WHERE id = ?
                """,
                (attempts, error, self._now(), job.id),
            )
            logger.info(f"Job {job.id} failed permanently after {attempts}/{job.max_attempts} attempts")
        else:
            conn.execute(
                """
                UPDATE jobs
                SET status = 'pending', attempts = ?, last_error = ?,
                    lease_token = NULL, started_at = NULL
                WHERE id = ?
                """,
                (attempts, error, job.id),
            )
            logger.info(f"Job {job.id} reset to pending (attempt {attempts}/{job.max_attempts})")
        return self._select(conn, job.id)

    def fail(self, job_id: str, error: str, lease_token: str | None = None) -> Job | None:
        """Record a failed attempt.

        Below ``max_attempts`` the job goes back to pending with ``started_at``
        cleared; at the limit it becomes failed. The error is kept either way.

        Returns:
            The updated job, or None if the job is not processing (or the
            lease token no longer matches).
        """
        with connect(self.db_path) as conn, transaction(conn):
            job = self._select(conn, job_id)
            if job is None or job.status != JobStatus.PROCESSING:
                return None
            if lease_token is not None and job.lease_token != lease_token:
                logger.warning(f"Job {job_id} failure ignored: lease token no longer matches")
                return None
            return self._record_failure(conn, job, error)

    def recover_stuck(self, timeout: timedelta, job_type: JobType | None = None) -> list[Job]:
        """Return abandoned processing jobs to the queue.

        A job is stuck when ``started_at`` is strictly older than
        ``now - timeout``; a job exactly at the boundary is left alone. Each
        stuck job counts one attempt, like ``fail``.

        Args:
            timeout: How long a job may stay in processing.
            job_type: Only sweep jobs of this type.

        Returns:
            The recovered jobs in their new state.
        """
        now = self._clock()
        cutoff = to_timestamp(now - timeout)
        minutes = int(timeout.total_seconds() // 60)
        message = (
            f"Job was stuck (processing for more than {minutes} minutes). "
            f"Recovered at {now.isoformat()}"
        )

        query = "SELECT * FROM jobs WHERE status = 'processing' AND started_at < ?"
        params: list = [cutoff]
        if job_type is not None:
            query += " AND job_type = ?"
            params.append(JobType(job_type).value)

        recovered = []
        with connect(self.db_path) as conn, transaction(conn):
            for row in conn.execute(query, params).fetchall():
                recovered.append(self._record_failure(conn, _row_to_job(row), message))

        if recovered:
            logger.warning(f"Recovered {len(recovered)} stuck job(s) older than {minutes} minutes")
        return recovered

    def purge_completed(self, older_than: timedelta) -> int:
        """Delete completed jobs finished more than ``older_than`` ago."""
        cutoff = to_timestamp(self._clock() - older_than)
        with connect(self.db_path) as conn:
            purged = conn.execute(
                "DELETE FROM jobs WHERE status = 'completed' AND completed_at < ?",
                (cutoff,),
            ).rowcount
        if purged:
            logger.info(f"Purged {purged} completed job(s)")
        return purged

    # -------------------------------------------------------------------------
    # Inspection and operator actions
    # -------------------------------------------------------------------------

    def get_job(self, job_id: str) -> Job | None:
        with connect(self.db_path) as conn:
            return self._select(conn, job_id)

    def latest_job_for_document(self, document_id: str, conn: sqlite3.Connection | None = None) -> Job | None:
        if conn is None:
            with connect(self.db_path) as conn:
                return self.latest_job_for_document(document_id, conn=conn)

        row = conn.execute(
            """
            SELECT * FROM jobs WHERE document_id = ?
            ORDER BY created_at DESC, rowid DESC LIMIT 1
            """,
            (document_id,),
        ).fetchone()
        return _row_to_job(row) if row else None

    def stats(self, stuck_timeout: timedelta | None = None) -> QueueStats:
        """Count jobs per status, plus processing jobs past ``stuck_timeout``."""
        if stuck_timeout is None:
            stuck_timeout = timedelta(minutes=QueueConfig.STUCK_JOB_TIMEOUT_MINUTES)
        cutoff = to_timestamp(self._clock() - stuck_timeout)

        with connect(self.db_path) as conn:
            counts = {
                row["status"]: row["n"]
                for row in conn.execute("SELECT status, COUNT(*) AS n FROM jobs GROUP BY status")
            }
            stuck = conn.execute(
                "SELECT COUNT(*) FROM jobs WHERE status = 'processing' AND started_at < ?",
                (cutoff,),
            ).fetchone()[0]

        return QueueStats(
            pending=counts.get("pending", 0),
            processing=counts.get("processing", 0),
            completed=counts.get("completed", 0),
            failed=counts.get("failed", 0),
            stuck=stuck,
        )

    def retry_failed(self, job_id: str) -> Job:
        """Put a failed job back in the queue with a fresh attempt budget.

        Raises:
            KeyError: If the job does not exist.
            ValueError: If the job is not failed.
        """
        with connect(self.db_path) as conn, transaction(conn):
            job = self._select(conn, job_id)
            if job is None:
                raise KeyError(f"Job not found: {job_id}")
            if job.status != JobStatus.FAILED:
                raise ValueError(f"Can only retry failed jobs (job {job_id} is {job.status})")
            conn.execute(
                """
                UPDATE jobs
                SET status = 'pending', attempts = 0, last_error = NULL,
                    lease_token = NULL, started_at = NULL, completed_at = NULL
                WHERE id = ?
                """,
                (job_id,),
            )
            return self._select(conn, job_id)

    def cancel(self, job_id: str, reason: str = "Cancelled by operator") -> Job:
        """Mark a non-completed job failed without counting an attempt.

        Raises:
            KeyError: If the job does not exist.
            ValueError: If the job already completed.
        """
        with connect(self.db_path) as conn, transaction(conn):
            job = self._select(conn, job_id)
            if job is None:
                raise KeyError(f"Job not found: {job_id}")
            if job.status == JobStatus.COMPLETED:
                raise ValueError(f"Cannot cancel completed job {job_id}")
            conn.execute(
                """
                UPDATE jobs
                SET status = 'failed', last_error = ?, lease_token = NULL, completed_at = ?
                WHERE id = ?
                """,
                (reason, self._now(), job_id),
            )
            return self._select(conn, job_id)
