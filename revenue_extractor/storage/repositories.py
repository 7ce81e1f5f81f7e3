"""Repositories for documents, therapies and stored results.

Each method opens its own connection, except the ones the worker calls from
inside ``WorkQueue.complete(before_commit=...)``: those take the caller's
connection so the result and the job status commit together.
``DocumentRepository.create`` takes an optional connection for the same
reason, so submission can register a document and queue its job atomically.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Callable

from revenue_extractor.pydantic_models import (
    Document,
    DocumentInfo,
    PipelineOutput,
    StoredResult,
    Therapy,
)
from revenue_extractor.storage.sqlite import (
    connect,
    from_timestamp,
    new_id,
    to_timestamp,
    transaction,
    utc_now,
)


def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        file_location=row["file_location"],
        file_name=row["file_name"],
        content_hash=row["content_hash"],
        company_name=row["company_name"],
        report_type=row["report_type"],
        reporting_period=row["reporting_period"],
        created_at=from_timestamp(row["created_at"]),
    )


class DocumentRepository:
    def __init__(self, db_path: str | Path, clock: Callable[[], datetime] = utc_now) -> None:
        self.db_path = Path(db_path)
        self._clock = clock

    def create(
        self,
        file_location: str,
        file_name: str,
        content_hash: str,
        conn: sqlite3.Connection | None = None,
    ) -> tuple[Document, bool]:
        """Insert a document unless one with the same content hash exists.

        Pass ``conn`` to run inside the caller's transaction.

        Returns:
            Tuple of (document, created). ``created`` is False when an
            existing document was returned instead.
        """
        if conn is None:
            with connect(self.db_path) as conn, transaction(conn):
                return self.create(file_location, file_name, content_hash, conn=conn)

        cursor = conn.execute(
            """
            INSERT INTO documents (id, file_location, file_name, content_hash, created_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(content_hash) DO NOTHING
            """,
            (new_id(), file_location, file_name, content_hash, to_timestamp(self._clock())),
        )
        row = conn.execute(
            "SELECT * FROM documents WHERE content_hash = ?", (content_hash,)
        ).fetchone()
        return _row_to_document(row), cursor.rowcount == 1

    def get(self, document_id: str) -> Document | None:
        with connect(self.db_path) as conn:
            row = conn.execute("SELECT * FROM documents WHERE id = ?", (document_id,)).fetchone()
        return _row_to_document(row) if row else None

    def get_by_hash(self, content_hash: str) -> Document | None:
        with connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM documents WHERE content_hash = ?", (content_hash,)
            ).fetchone()
        return _row_to_document(row) if row else None

    @staticmethod
    def update_metadata(conn: sqlite3.Connection, document_id: str, info: DocumentInfo) -> None:
        """Backfill classification metadata; fields the classifier left empty are kept."""
        conn.execute(
            """
            UPDATE documents
            SET company_name = COALESCE(?, company_name),
                report_type = COALESCE(?, report_type),
                reporting_period = COALESCE(?, reporting_period)
            WHERE id = ?
            """,
            (info.company_name, info.report_type, info.reporting_period, document_id),
        )


class TherapyRepository:
    def __init__(self, db_path: str | Path, clock: Callable[[], datetime] = utc_now) -> None:
        self.db_path = Path(db_path)
        self._clock = clock

    def register(self, name: str, manufacturer: str) -> Therapy:
        """Add a therapy; registering the same name twice returns the existing row."""
        name, manufacturer = name.strip(), manufacturer.strip()
        if not name or not manufacturer:
            raise ValueError("Therapy name and manufacturer are required")

        with connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO therapies (id, name, manufacturer, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (new_id(), name, manufacturer, to_timestamp(self._clock())),
            )
            row = conn.execute(
                "SELECT id, name, manufacturer FROM therapies WHERE name = ? AND manufacturer = ?",
                (name, manufacturer),
            ).fetchone()
        return Therapy(id=row["id"], name=row["name"], manufacturer=row["manufacturer"])

    def find_by_company(self, company_name: str) -> list[Therapy]:
        """Therapies whose manufacturer matches ``company_name`` (case-insensitive)."""
        with connect(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT id, name, manufacturer FROM therapies
                WHERE manufacturer = ? COLLATE NOCASE
                ORDER BY name
                """,
                (company_name.strip(),),
            ).fetchall()
        return [Therapy(id=r["id"], name=r["name"], manufacturer=r["manufacturer"]) for r in rows]

    def list_companies(self) -> list[str]:
        with connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT DISTINCT manufacturer FROM therapies ORDER BY manufacturer"
            ).fetchall()
        return [r["manufacturer"] for r in rows]


class ResultStore:
    """One row per document holding the latest PipelineOutput."""

    def __init__(self, db_path: str | Path, clock: Callable[[], datetime] = utc_now) -> None:
        self.db_path = Path(db_path)
        self._clock = clock

    def upsert(
        self,
        conn: sqlite3.Connection,
        document_id: str,
        output: PipelineOutput,
        job_id: str | None = None,
        requires_review: bool = True,
    ) -> None:
        """Write or overwrite the document's result on the caller's connection."""
        now = to_timestamp(self._clock())
        conn.execute(
            """
            INSERT INTO results (
                document_id, job_id, output_json, confidence,
                requires_review, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (document_id) DO UPDATE SET
                job_id = excluded.job_id,
                output_json = excluded.output_json,
                confidence = excluded.confidence,
                requires_review = excluded.requires_review,
                updated_at = excluded.updated_at
            """,
            (
                document_id,
                job_id,
                output.model_dump_json(),
                output.reconciled.confidence,
                int(requires_review),
                now,
                now,
            ),
        )

    def get(self, document_id: str) -> StoredResult | None:
        with connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM results WHERE document_id = ?", (document_id,)
            ).fetchone()
        if row is None:
            return None
        return StoredResult(
            document_id=row["document_id"],
            job_id=row["job_id"],
            output=PipelineOutput.model_validate(json.loads(row["output_json"])),
            requires_review=bool(row["requires_review"]),
            created_at=from_timestamp(row["created_at"]),
            updated_at=from_timestamp(row["updated_at"]),
        )
