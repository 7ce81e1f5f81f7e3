"""End-to-end tests for revenue_extractor.orchestrator with the agents mocked.

The 20-page Acme report mentions Acme-T on page 6 only and has a financial
section on pages 5-8, so both tracks see the same fact and the reconciler
must merge them into one record.
"""

from contextlib import ExitStack
from unittest.mock import AsyncMock, patch

import pytest

from revenue_extractor.core import NoRegisteredTherapiesError, NothingToReconcileError
from revenue_extractor.orchestrator import Orchestrator
from revenue_extractor.pydantic_models import (
    DocumentInfo,
    ExtractionResult,
    RevenueRecord,
    VerificationResult,
)

STRUCTURE_SOURCE = "Page 6: Acme-T net product sales were $120 million"
KEYWORD_SOURCE = "Page 6: Net product sales of Acme-T were $120.0 million in the United States"


async def _extract(text, document_info, therapy_name=None, model=None, cost_tracker=None,
                   track="structure", section_label=""):
    keyword = track == "keyword"
    return ExtractionResult(
        revenue_records=[RevenueRecord(
            therapy_name="Acme-T",
            period="Q1 2024",
            region="United States",
            revenue_millions_usd=120.05 if keyword else 120.0,
            sources=[KEYWORD_SOURCE if keyword else STRUCTURE_SOURCE],
        )],
        confidence=90 if keyword else 80,
        track=track,
        section_label=section_label,
    )


@pytest.fixture
def mocked_agents(acme_info, acme_structure):
    """Patch every LLM-backed agent the phases call."""
    with ExitStack() as stack:
        mocks = {
            "classifier": stack.enter_context(patch(
                "revenue_extractor.phases.classify_phase.run_classifier",
                new=AsyncMock(return_value=acme_info),
            )),
            "structure": stack.enter_context(patch(
                "revenue_extractor.phases.structure_phase.analyze_structure",
                new=AsyncMock(return_value=acme_structure),
            )),
            "verifier": stack.enter_context(patch(
                "revenue_extractor.phases.track_phase.verify_revenue",
                new=AsyncMock(return_value=VerificationResult(contains_revenue_data=True, confidence=85)),
            )),
            "revenue": stack.enter_context(patch(
                "revenue_extractor.phases.track_phase.extract_revenue",
                new=AsyncMock(side_effect=_extract),
            )),
        }
        yield mocks


@pytest.fixture
def orchestrator(acme_pages, acme_therapy, pipeline_logger):
    registry = {"Acme Therapeutics": [acme_therapy]}
    return Orchestrator(
        acme_pages,
        lambda company: registry.get(company, []),
        registered_companies=list(registry),
        source_name="acme_q1_2024.pdf",
        logger=pipeline_logger,
    )


class TestOrchestratorRun:
    """Tests for Orchestrator.run."""

    @pytest.mark.asyncio
    async def test_full_parallel_merges_tracks(self, orchestrator, mocked_agents):
        output = await orchestrator.run()

        assert output.strategy == "full-parallel"
        assert output.overlaps == 1
        assert output.snippet_results == 2

        reconciled = output.reconciled
        assert len(reconciled.revenue_records) == 1
        record = reconciled.revenue_records[0]
        assert record.therapy_name == "Acme-T"
        assert record.revenue_millions_usd == 120.0
        assert record.sources == [STRUCTURE_SOURCE, KEYWORD_SOURCE]
        assert reconciled.confidence == 85
        assert [c.page for c in reconciled.sources] == [6, 6]

        assert mocked_agents["verifier"].await_count == 1
        scoped = [c for c in mocked_agents["revenue"].await_args_list if c.kwargs["track"] == "keyword"]
        assert scoped[0].kwargs["therapy_name"] == "Acme-T"

    @pytest.mark.asyncio
    async def test_stats(self, orchestrator, mocked_agents):
        await orchestrator.run()
        stats = orchestrator.get_stats()

        assert stats["company"] == "Acme Therapeutics"
        assert stats["strategy"] == "full-parallel"
        assert stats["sections"] == {"revenue": 1, "business": 0, "keyword": 1, "overlaps": 1}
        assert stats["tracks"]["verify_rejected"] == 0
        assert stats["reconcile"]["corroborations"] == 1
        assert stats["reconcile"]["confidence"] == 85
        assert orchestrator.get_errors().error_count == 0

    @pytest.mark.asyncio
    async def test_rejected_keyword_window(self, orchestrator, mocked_agents):
        mocked_agents["verifier"].return_value = VerificationResult(contains_revenue_data=False, confidence=95)

        output = await orchestrator.run()

        assert output.snippet_results == 1
        assert output.reconciled.confidence == 80
        assert output.reconciled.revenue_records[0].sources == [STRUCTURE_SOURCE]

    @pytest.mark.asyncio
    async def test_unregistered_company_runs_structure_only(self, orchestrator, mocked_agents):
        mocked_agents["classifier"].return_value = DocumentInfo(reporting_period="Q1 2024")

        output = await orchestrator.run()

        assert output.strategy == "structure-only"
        mocked_agents["verifier"].assert_not_called()

    @pytest.mark.asyncio
    async def test_company_without_therapies_fails(self, acme_pages, pipeline_logger, mocked_agents):
        orchestrator = Orchestrator(acme_pages, lambda company: [], logger=pipeline_logger)

        with pytest.raises(NoRegisteredTherapiesError):
            await orchestrator.run()
        mocked_agents["structure"].assert_not_called()

    @pytest.mark.asyncio
    async def test_nothing_extracted_fails(self, orchestrator, mocked_agents):
        mocked_agents["revenue"].side_effect = None
        mocked_agents["revenue"].return_value = ExtractionResult(confidence=70)

        with pytest.raises(NothingToReconcileError):
            await orchestrator.run()

    @pytest.mark.asyncio
    async def test_classifier_errors_propagate(self, orchestrator, mocked_agents):
        mocked_agents["classifier"].side_effect = RuntimeError("provider unavailable")

        with pytest.raises(RuntimeError, match="provider unavailable"):
            await orchestrator.run()


class TestFromPdf:
    """Tests for Orchestrator.from_pdf."""

    def test_reads_pages_and_outline(self, acme_pages, tmp_path):
        toc = [(1, "Financial Results", 5)]
        with patch(
            "revenue_extractor.orchestrator.load_document_text",
            return_value=(acme_pages, toc),
        ) as loader:
            orchestrator = Orchestrator.from_pdf(tmp_path / "acme_q1_2024.pdf", lambda company: [])

        loader.assert_called_once()
        assert orchestrator.source_name == "acme_q1_2024.pdf"
        assert orchestrator.context.resources.toc == ((1, "Financial Results", 5),)
        assert orchestrator.context.pages.page_count == 20
