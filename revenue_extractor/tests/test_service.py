"""Tests for revenue_extractor.service and the storage repositories.

- submit_document: content-hash dedup, hashing files, job creation
- get_extraction_status: not_submitted / pending / completed with result
- trigger_reprocess: high-priority reprocessing job
- Therapy registry and result store
"""

import hashlib
import threading

import pytest

from revenue_extractor.core import DocumentNotFoundError
from revenue_extractor.pydantic_models import (
    DocumentInfo,
    DocumentMetadata,
    JobStatus,
    JobType,
    PipelineOutput,
    ReconciledResult,
)
from revenue_extractor.service import ExtractionService, file_sha256
from revenue_extractor.storage import DocumentRepository, connect, transaction


@pytest.fixture
def service(db_path, clock):
    return ExtractionService(db_path, clock=clock)


@pytest.fixture
def pdf_file(tmp_path):
    path = tmp_path / "acme_q1_2024.pdf"
    path.write_bytes(b"%PDF-1.4 acme quarterly report")
    return path


def _output(confidence: int = 85) -> PipelineOutput:
    return PipelineOutput(
        reconciled=ReconciledResult(revenue_records=[], confidence=confidence),
        strategy="full-parallel",
    )


# =============================================================================
# submit_document
# =============================================================================


class TestSubmitDocument:
    """Tests for ExtractionService.submit_document."""

    def test_file_sha256(self, pdf_file):
        assert file_sha256(pdf_file) == hashlib.sha256(pdf_file.read_bytes()).hexdigest()

    def test_submit_creates_document_and_job(self, service, pdf_file):
        job_id = service.submit_document(DocumentMetadata(file_location=str(pdf_file)))

        job = service.queue.get_job(job_id)
        assert job.status == JobStatus.PENDING
        assert job.job_type == JobType.EXTRACTION
        assert job.priority == 3

        document = service.documents.get(job.document_id)
        assert document.file_name == "acme_q1_2024.pdf"
        assert document.content_hash == file_sha256(pdf_file)

    def test_resubmit_same_content_returns_existing_job(self, service, pdf_file, tmp_path):
        copy = tmp_path / "renamed.pdf"
        copy.write_bytes(pdf_file.read_bytes())

        first = service.submit_document(DocumentMetadata(file_location=str(pdf_file)))
        second = service.submit_document(DocumentMetadata(file_location=str(copy)))
        assert first == second
        assert service.queue_stats().pending == 1

    def test_explicit_hash_skips_reading_file(self, service):
        job_id = service.submit_document(DocumentMetadata(
            file_location="/does/not/exist.pdf",
            file_name="report.pdf",
            content_hash="abc123",
        ))
        document = service.documents.get(service.queue.get_job(job_id).document_id)
        assert document.content_hash == "abc123"
        assert document.file_name == "report.pdf"

    def test_concurrent_submits_share_one_job(self, service):
        metadata = DocumentMetadata(file_location="/reports/acme_q1_2024.pdf", content_hash="same-content")
        barrier = threading.Barrier(8)
        job_ids: list[str] = []
        failures: list[Exception] = []
        lock = threading.Lock()

        def submit():
            barrier.wait()
            try:
                job_id = service.submit_document(metadata)
            except Exception as e:
                with lock:
                    failures.append(e)
                return
            with lock:
                job_ids.append(job_id)

        threads = [threading.Thread(target=submit) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert failures == []
        assert len(job_ids) == 8
        assert len(set(job_ids)) == 1
        assert service.queue_stats().pending == 1

    def test_document_without_job_gets_one(self, service, db_path, clock):
        document, created = DocumentRepository(db_path, clock=clock).create("/reports/a.pdf", "a.pdf", "h1")
        assert created

        job_id = service.submit_document(DocumentMetadata(file_location="/reports/a.pdf", content_hash="h1"))

        assert service.queue.get_job(job_id).document_id == document.id
        assert service.submit_document(DocumentMetadata(file_location="/reports/b.pdf", content_hash="h1")) == job_id


# =============================================================================
# get_extraction_status / trigger_reprocess
# =============================================================================


class TestStatusAndReprocess:
    """Tests for get_extraction_status / trigger_reprocess."""

    def test_unknown_document(self, service):
        with pytest.raises(DocumentNotFoundError):
            service.get_extraction_status("missing")
        with pytest.raises(DocumentNotFoundError):
            service.trigger_reprocess("missing")

    def test_not_submitted(self, service):
        document, _ = service.documents.create("/tmp/x.pdf", "x.pdf", "hash-x")
        status = service.get_extraction_status(document.id)
        assert status.status == "not_submitted"
        assert status.result is None
        assert status.reconciled is None

    def test_pending(self, service, pdf_file):
        job_id = service.submit_document(DocumentMetadata(file_location=str(pdf_file)))
        document_id = service.queue.get_job(job_id).document_id
        status = service.get_extraction_status(document_id)
        assert status.status == "pending"
        assert status.job_id == job_id

    def test_completed_with_result(self, service, pdf_file):
        job_id = service.submit_document(DocumentMetadata(file_location=str(pdf_file)))
        job = service.queue.lease_next()

        def persist(conn):
            service.results.upsert(conn, job.document_id, _output(85), job_id=job.id)

        assert service.queue.complete(job_id, job.lease_token, persist)

        status = service.get_extraction_status(job.document_id)
        assert status.status == "completed"
        assert status.reconciled.confidence == 85
        assert status.result.requires_review is True
        assert status.result.job_id == job_id

    def test_reprocess_is_high_priority(self, service, pdf_file):
        job_id = service.submit_document(DocumentMetadata(file_location=str(pdf_file)))
        document_id = service.queue.get_job(job_id).document_id

        reprocess_id = service.trigger_reprocess(document_id)
        job = service.queue.get_job(reprocess_id)
        assert job.job_type == JobType.REPROCESSING
        assert job.priority == 1
        assert service.queue.lease_next().id == reprocess_id

        status = service.get_extraction_status(document_id)
        assert status.job_id == reprocess_id

    def test_retry_failed_job(self, service, pdf_file):
        job_id = service.submit_document(DocumentMetadata(file_location=str(pdf_file)))
        for _ in range(3):
            job = service.queue.lease_next()
            service.queue.fail(job.id, "boom", job.lease_token)
        assert service.queue.get_job(job_id).status == JobStatus.FAILED

        assert service.retry_failed_job(job_id).status == JobStatus.PENDING


# =============================================================================
# Repositories
# =============================================================================


class TestRepositories:
    """Tests for TherapyRepository / DocumentRepository / ResultStore."""

    def test_register_therapy_is_idempotent(self, service):
        first = service.register_therapy("Acme-T", "Acme Therapeutics")
        second = service.register_therapy(" Acme-T ", "Acme Therapeutics")
        assert first.id == second.id

    def test_register_requires_names(self, service):
        with pytest.raises(ValueError):
            service.register_therapy("", "Acme Therapeutics")

    def test_find_by_company_is_case_insensitive(self, service):
        service.register_therapy("Acme-T", "Acme Therapeutics")
        service.register_therapy("Acme-X", "Acme Therapeutics")
        service.register_therapy("Other", "Other Pharma")
        names = [t.name for t in service.therapies.find_by_company("acme therapeutics")]
        assert names == ["Acme-T", "Acme-X"]
        assert service.therapies.list_companies() == ["Acme Therapeutics", "Other Pharma"]

    def test_update_metadata_keeps_known_fields(self, service, db_path):
        document, _ = service.documents.create("/tmp/x.pdf", "x.pdf", "hash-x")
        with connect(db_path) as conn, transaction(conn):
            DocumentRepository.update_metadata(conn, document.id, DocumentInfo(
                company_name="Acme Therapeutics", report_type="quarterly", reporting_period="Q1 2024",
            ))
        with connect(db_path) as conn, transaction(conn):
            DocumentRepository.update_metadata(conn, document.id, DocumentInfo(reporting_period="Q2 2024"))

        updated = service.documents.get(document.id)
        assert updated.company_name == "Acme Therapeutics"
        assert updated.report_type == "quarterly"
        assert updated.reporting_period == "Q2 2024"

    def test_result_upsert_overwrites(self, service, db_path, clock):
        document, _ = service.documents.create("/tmp/x.pdf", "x.pdf", "hash-x")
        with connect(db_path) as conn:
            service.results.upsert(conn, document.id, _output(60), job_id="job-1")
        clock.advance(hours=1)
        with connect(db_path) as conn:
            service.results.upsert(conn, document.id, _output(90), job_id="job-2")

        stored = service.results.get(document.id)
        assert stored.output.reconciled.confidence == 90
        assert stored.job_id == "job-2"
        assert stored.updated_at > stored.created_at
