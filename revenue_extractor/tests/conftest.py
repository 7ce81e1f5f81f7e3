"""Pytest configuration and shared fixtures.

Provides reusable test fixtures for:
- Page-indexed documents
- A fresh SQLite queue database
- Job-scoped pipeline loggers
- A mocked litellm Router
- Phase contexts for running single phases
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from revenue_extractor.core import CostTracker, PageIndexedText, PipelineLogger
from revenue_extractor.phases import ExtractionConfig, ExtractionResources, PhaseContext, PipelineState
from revenue_extractor.pydantic_models import (
    DocumentInfo,
    DocumentStructure,
    ExtractionResult,
    RevenueRecord,
    Section,
    Therapy,
)
from revenue_extractor.storage import initialize_schema


# =============================================================================
# Documents
# =============================================================================


@pytest.fixture
def make_pages():
    """Factory: page count plus {page: text} overrides -> PageIndexedText."""
    def _make(page_count: int, overrides: dict[int, str] | None = None) -> PageIndexedText:
        overrides = overrides or {}
        return PageIndexedText([
            overrides.get(p, f"Generic content for page {p}") for p in range(1, page_count + 1)
        ])
    return _make


@pytest.fixture
def acme_pages(make_pages):
    """20-page quarterly report mentioning Acme-T on page 6 only."""
    return make_pages(20, {
        1: "Acme Therapeutics\nQuarterly Report\nFirst Quarter 2024",
        5: "Financial Results\nTotal revenues increased compared to the prior year.",
        6: "Net product sales of Acme-T were $120 million in the United States.",
        7: "Operating expenses were in line with guidance.",
        8: "Cash and equivalents at quarter end.",
    })


@pytest.fixture
def acme_structure():
    return DocumentStructure(
        has_explicit_structure=True,
        document_length="medium",
        sections=[Section(title="Financial Results", page_start=5, page_end=8, type="financial", confidence=90)],
    )


@pytest.fixture
def acme_info():
    return DocumentInfo(company_name="Acme Therapeutics", report_type="quarterly", reporting_period="Q1 2024")


@pytest.fixture
def acme_therapy():
    return Therapy(id="t-1", name="Acme-T", manufacturer="Acme Therapeutics")


@pytest.fixture
def make_result():
    """Factory for an ExtractionResult holding one Acme-T record."""
    def _make(
        amount: float = 120.0,
        confidence: float = 80,
        sources: list[str] | None = None,
        track: str = "structure",
        period: str = "Q1 2024",
        region: str = "United States",
        therapy: str = "Acme-T",
    ) -> ExtractionResult:
        return ExtractionResult(
            revenue_records=[RevenueRecord(
                therapy_name=therapy,
                period=period,
                region=region,
                revenue_millions_usd=amount,
                sources=sources if sources is not None else ["Page 6: Acme-T net product sales were $120 million"],
            )],
            confidence=confidence,
            track=track,
        )
    return _make


# =============================================================================
# Storage
# =============================================================================


@pytest.fixture
def db_path(tmp_path):
    """Path to a freshly initialized queue database."""
    path = tmp_path / "queue.db"
    initialize_schema(path)
    return path


class FakeClock:
    """Settable UTC clock for stuck-job and purge boundaries."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


# =============================================================================
# Logging and LLM
# =============================================================================


@pytest.fixture
def pipeline_logger():
    logger = PipelineLogger(session_id="test-session")
    yield logger
    logger.close()


@pytest.fixture
def mock_router():
    """Patch the litellm Router's acompletion used by LLMClient."""
    with patch("revenue_extractor.core.llm_client.router") as mock:
        mock.acompletion = AsyncMock()
        mock.acompletion.return_value = MagicMock(
            choices=[MagicMock(message=MagicMock(content='{"revenue": [], "confidence": 0}'))],
            usage=MagicMock(prompt_tokens=100, completion_tokens=50),
        )
        yield mock


# =============================================================================
# Phase context
# =============================================================================


@pytest.fixture
def make_context(pipeline_logger):
    """Factory for a PhaseContext over the given pages."""
    def _make(
        pages: PageIndexedText,
        therapies: dict[str, list[Therapy]] | None = None,
        **config,
    ) -> PhaseContext:
        registry = therapies or {}
        resources = ExtractionResources(
            pages=pages,
            semaphore=asyncio.Semaphore(5),
            logger=pipeline_logger,
            cost_tracker=CostTracker(),
            therapy_lookup=lambda company: list(registry.get(company, [])),
            registered_companies=tuple(registry),
        )
        return PhaseContext(resources=resources, config=ExtractionConfig(**config), state=PipelineState())
    return _make


@pytest.fixture
def document(db_path, clock):
    """A stored document for jobs to reference."""
    from revenue_extractor.storage import DocumentRepository

    doc, _ = DocumentRepository(db_path, clock=clock).create("/tmp/acme_q1_2024.pdf", "acme_q1_2024.pdf", "hash-acme")
    return doc
