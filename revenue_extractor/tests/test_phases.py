"""Tests for the pipeline phases run one at a time.

- Classify / Lookup / Structure / Strategy
- Sections per strategy (which maps get built, routing, overlaps)
- Tracks: verify gate, per-snippet failures, business track, token branches
- Reconcile: empty-result dropping and NothingToReconcileError
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from revenue_extractor.core import NoRegisteredTherapiesError, NothingToReconcileError
from revenue_extractor.core.errors import ErrorCategory
from revenue_extractor.phases import (
    ClassifyPhase,
    ReconcilePhase,
    SectionsPhase,
    StrategyPhase,
    StructurePhase,
    TherapyLookupPhase,
    TracksPhase,
    determine_strategy,
)
from revenue_extractor.phases.reconcile_phase import drop_empty_results
from revenue_extractor.pydantic_models import (
    BusinessAnalysis,
    BusinessInsight,
    DocumentInfo,
    DocumentStructure,
    ExtractionResult,
    ExtractionStrategy,
    RevenueRecord,
    Section,
    TextSection,
    Track,
    VerificationResult,
)


def _usage(prompt_tokens: int, completion_tokens: int = 0):
    return MagicMock(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens)


@pytest.fixture
def acme_context(make_context, acme_pages, acme_therapy, acme_info, acme_structure):
    """Context positioned after Strategy: classified, looked up, structured."""
    context = make_context(acme_pages, {"Acme Therapeutics": [acme_therapy]})
    context.document_info = acme_info
    context.therapies = [acme_therapy]
    context.structure = acme_structure
    return context


# =============================================================================
# Classify / Lookup / Structure / Strategy
# =============================================================================


class TestClassifyPhase:
    """Tests for ClassifyPhase."""

    @pytest.mark.asyncio
    async def test_sets_document_info(self, make_context, acme_pages, acme_therapy, acme_info):
        context = make_context(acme_pages, {"Acme Therapeutics": [acme_therapy]})

        with patch(
            "revenue_extractor.phases.classify_phase.run_classifier",
            new=AsyncMock(return_value=acme_info),
        ) as classifier:
            result = await ClassifyPhase(context).run()

        assert result.is_registered
        assert context.document_info == acme_info
        assert classifier.call_args.args[1] == ["Acme Therapeutics"]

    @pytest.mark.asyncio
    async def test_unregistered_company(self, make_context, acme_pages):
        context = make_context(acme_pages)
        with patch(
            "revenue_extractor.phases.classify_phase.run_classifier",
            new=AsyncMock(return_value=DocumentInfo()),
        ):
            result = await ClassifyPhase(context).run()
        assert not result.is_registered


class TestTherapyLookupPhase:
    """Tests for TherapyLookupPhase."""

    @pytest.mark.asyncio
    async def test_no_company_is_not_fatal(self, make_context, acme_pages):
        context = make_context(acme_pages)
        context.document_info = DocumentInfo()

        result = await TherapyLookupPhase(context).run()
        assert result.company_name is None
        assert context.therapies == []

    @pytest.mark.asyncio
    async def test_loads_therapies(self, make_context, acme_pages, acme_therapy, acme_info):
        context = make_context(acme_pages, {"Acme Therapeutics": [acme_therapy]})
        context.document_info = acme_info

        result = await TherapyLookupPhase(context).run()
        assert result.therapies == [acme_therapy]
        assert context.state.therapy_names == ["Acme-T"]

    @pytest.mark.asyncio
    async def test_company_without_therapies_raises(self, make_context, acme_pages):
        context = make_context(acme_pages)
        context.document_info = DocumentInfo(company_name="Gamma Pharma")

        with pytest.raises(NoRegisteredTherapiesError, match="Gamma Pharma"):
            await TherapyLookupPhase(context).run()


class TestStructurePhase:
    """Tests for StructurePhase."""

    @pytest.mark.asyncio
    async def test_fallback_is_not_structure(self, make_context, acme_pages):
        from revenue_extractor.agents.structure_agent import fallback_structure

        context = make_context(acme_pages)
        with patch(
            "revenue_extractor.phases.structure_phase.analyze_structure",
            new=AsyncMock(return_value=fallback_structure(20)),
        ):
            result = await StructurePhase(context).run()

        assert not result.structure_found
        assert context.structure.is_fallback

    @pytest.mark.asyncio
    async def test_passes_native_outline(self, make_context, acme_pages, acme_structure):
        context = make_context(acme_pages)
        with patch(
            "revenue_extractor.phases.structure_phase.analyze_structure",
            new=AsyncMock(return_value=acme_structure),
        ) as analyzer:
            result = await StructurePhase(context).run()

        assert result.structure_found
        assert analyzer.call_args.kwargs["native_toc"] == []


class TestStrategy:
    """Tests for determine_strategy / StrategyPhase."""

    @pytest.mark.parametrize("pages,structure,therapies,expected", [
        (10, True, True, ExtractionStrategy.SMART_COMPLETE),
        (14, False, False, ExtractionStrategy.SMART_COMPLETE),
        (15, True, True, ExtractionStrategy.FULL_PARALLEL),
        (40, True, False, ExtractionStrategy.STRUCTURE_ONLY),
        (40, False, True, ExtractionStrategy.HYBRID),
        (40, False, False, ExtractionStrategy.HYBRID),
    ])
    def test_determine_strategy(self, pages, structure, therapies, expected):
        assert determine_strategy(pages, structure, therapies) == expected

    @pytest.mark.asyncio
    async def test_fallback_structure_means_hybrid(self, acme_context):
        from revenue_extractor.agents.structure_agent import fallback_structure

        acme_context.structure = fallback_structure(20)
        result = await StrategyPhase(acme_context).run()
        assert result.strategy == ExtractionStrategy.HYBRID

    @pytest.mark.asyncio
    async def test_full_parallel(self, acme_context):
        result = await StrategyPhase(acme_context).run()
        assert result.strategy == ExtractionStrategy.FULL_PARALLEL
        assert acme_context.strategy == ExtractionStrategy.FULL_PARALLEL


# =============================================================================
# Sections
# =============================================================================


class TestSectionsPhase:
    """Tests for SectionsPhase per strategy."""

    @pytest.mark.asyncio
    async def test_requires_strategy(self, acme_context):
        with pytest.raises(RuntimeError):
            await SectionsPhase(acme_context).run()

    @pytest.mark.asyncio
    async def test_full_parallel(self, acme_context):
        acme_context.strategy = ExtractionStrategy.FULL_PARALLEL
        result = await SectionsPhase(acme_context).run()

        assert [s.section_title for s in result.revenue_sections] == ["Financial Results"]
        assert result.business_sections == []
        assert len(result.keyword_sections) == 1
        window = result.keyword_sections[0]
        assert window.page_numbers == (5, 6, 7)
        assert window.search_term == "Acme-T"
        assert "**Acme-T**" in window.text

        assert len(result.overlaps) == 1
        assert result.overlaps[0].overlap_pages == [5, 6, 7]
        assert acme_context.state.keyword_sections == result.keyword_sections

    @pytest.mark.asyncio
    async def test_structure_only_skips_keywords(self, acme_context):
        acme_context.strategy = ExtractionStrategy.STRUCTURE_ONLY
        result = await SectionsPhase(acme_context).run()
        assert len(result.revenue_sections) == 1
        assert result.keyword_sections == []
        assert result.overlaps == []

    @pytest.mark.asyncio
    async def test_hybrid_skips_structure(self, acme_context):
        acme_context.strategy = ExtractionStrategy.HYBRID
        result = await SectionsPhase(acme_context).run()
        assert result.revenue_sections == []
        assert len(result.keyword_sections) == 1

    @pytest.mark.asyncio
    async def test_smart_complete_is_one_block(self, acme_context):
        acme_context.strategy = ExtractionStrategy.SMART_COMPLETE
        result = await SectionsPhase(acme_context).run()

        assert len(result.revenue_sections) == 1
        block = result.revenue_sections[0]
        assert block.page_numbers == tuple(range(1, 21))
        assert block.section_type == "financial"
        assert result.keyword_sections == []

    @pytest.mark.asyncio
    async def test_business_sections_routed(self, acme_context):
        acme_context.structure = DocumentStructure(
            has_explicit_structure=True,
            sections=[
                Section(title="Financial Results", page_start=5, page_end=8, type="financial"),
                Section(title="Business Overview", page_start=9, page_end=10, type="business"),
            ],
        )
        acme_context.strategy = ExtractionStrategy.STRUCTURE_ONLY
        result = await SectionsPhase(acme_context).run()

        assert [s.section_title for s in result.business_sections] == ["Business Overview"]
        assert acme_context.state.routed_sections[Track.BUSINESS] == result.business_sections


# =============================================================================
# Tracks
# =============================================================================


def _section(title: str, pages: tuple[int, ...], term: str | None = None) -> TextSection:
    return TextSection(
        text=f"[Page {pages[0]}]\n{title} text",
        page_numbers=pages,
        section_title=None if term else title,
        section_type=None if term else "financial",
        search_term=term,
    )


def _result_for(section_label: str, amount: float = 120.0, track: str = "structure") -> ExtractionResult:
    return ExtractionResult(
        revenue_records=[RevenueRecord(
            therapy_name="Acme-T",
            period="Q1 2024",
            region="United States",
            revenue_millions_usd=amount,
            sources=[f"Page 6: {section_label}"],
        )],
        confidence=80,
        track=track,
        section_label=section_label,
    )


@pytest.fixture
def tracks_context(acme_context):
    state = acme_context.state
    state.routed_sections = {
        Track.REVENUE: [_section("Financial Results", (5, 6, 7, 8))],
        Track.BUSINESS: [],
    }
    state.keyword_sections = [
        _section("Acme-T", (5, 6, 7), term="Acme-T"),
        _section("Acme-T", (15, 16, 17), term="Acme-T"),
    ]
    return acme_context


async def _fake_extract(text, document_info, therapy_name=None, model=None, cost_tracker=None,
                        track="structure", section_label=""):
    cost_tracker.record(model, _usage(100), agent="revenue")
    return _result_for(section_label, track=track)


class TestTracksPhase:
    """Tests for TracksPhase."""

    @pytest.mark.asyncio
    async def test_gate_rejects_low_confidence(self, tracks_context):
        verdicts = {
            (5, 6, 7): VerificationResult(contains_revenue_data=True, confidence=90),
            (15, 16, 17): VerificationResult(contains_revenue_data=True, confidence=49),
        }

        async def fake_verify(text, therapy_name, model=None, cost_tracker=None):
            page = int(text.split("]")[0].removeprefix("[Page "))
            return next(v for pages, v in verdicts.items() if pages[0] == page)

        with patch("revenue_extractor.phases.track_phase.verify_revenue", new=AsyncMock(side_effect=fake_verify)), \
             patch("revenue_extractor.phases.track_phase.extract_revenue",
                   new=AsyncMock(side_effect=_fake_extract)) as extract:
            result = await TracksPhase(tracks_context).run()

        assert len(result.structure.results) == 1
        assert len(result.keyword.results) == 1
        assert result.keyword.rejected == 1
        assert result.keyword.results[0].section_label == "Acme-T p5-7"
        assert extract.await_count == 2
        assert [r.track for r in result.results] == ["structure", "keyword"]

    @pytest.mark.asyncio
    async def test_failed_snippet_is_excluded(self, tracks_context):
        async def flaky_extract(*args, **kwargs):
            if kwargs["track"] == "keyword" and kwargs["section_label"].endswith("p15-17"):
                raise ValueError("Revenue response is not a JSON object: list")
            return await _fake_extract(*args, **kwargs)

        passing = VerificationResult(contains_revenue_data=True, confidence=80)
        with patch("revenue_extractor.phases.track_phase.verify_revenue", new=AsyncMock(return_value=passing)), \
             patch("revenue_extractor.phases.track_phase.extract_revenue",
                   new=AsyncMock(side_effect=flaky_extract)):
            result = await TracksPhase(tracks_context).run()

        assert result.keyword.failed == 1
        assert len(result.results) == 2
        warnings = tracks_context.errors.warnings
        assert len(warnings) == 1
        assert warnings[0].category == ErrorCategory.LLM_PARSE
        assert warnings[0].page_range == (15, 17)
        assert warnings[0].therapy == "Acme-T"

    @pytest.mark.asyncio
    async def test_api_failure_marks_section_failed(self, tracks_context):
        async def outage_on_structure(*args, **kwargs):
            if kwargs["track"] == "structure":
                raise RuntimeError("Router: no deployments available")
            return await _fake_extract(*args, **kwargs)

        passing = VerificationResult(contains_revenue_data=True, confidence=80)
        with patch("revenue_extractor.phases.track_phase.verify_revenue", new=AsyncMock(return_value=passing)), \
             patch("revenue_extractor.phases.track_phase.extract_revenue",
                   new=AsyncMock(side_effect=outage_on_structure)):
            result = await TracksPhase(tracks_context).run()

        assert result.structure.failed == 1
        assert len(result.keyword.results) == 2
        errors = tracks_context.errors
        assert errors.warning_count == 0
        assert errors.errors[0].category == ErrorCategory.LLM_API
        assert errors.errors[0].phase == "Structure Track"
        assert errors.errors[0].page_range == (5, 8)
        assert errors.failed_sections == [errors.errors[0].section]

    @pytest.mark.asyncio
    async def test_verifier_outage_extracts_nothing(self, tracks_context):
        closed = VerificationResult(contains_revenue_data=False, confidence=0, reasoning="error")
        with patch("revenue_extractor.phases.track_phase.verify_revenue", new=AsyncMock(return_value=closed)), \
             patch("revenue_extractor.phases.track_phase.extract_revenue",
                   new=AsyncMock(side_effect=_fake_extract)):
            result = await TracksPhase(tracks_context).run()

        assert result.keyword.results == []
        assert result.keyword.rejected == 2
        assert len(result.structure.results) == 1

    @pytest.mark.asyncio
    async def test_token_branches(self, tracks_context):
        tracks_context.cost_tracker.record("m", _usage(30), agent="classifier")
        tracks_context.cost_tracker.record("m", _usage(70), agent="structure")

        passing = VerificationResult(contains_revenue_data=True, confidence=80)
        with patch("revenue_extractor.phases.track_phase.verify_revenue", new=AsyncMock(return_value=passing)), \
             patch("revenue_extractor.phases.track_phase.extract_revenue",
                   new=AsyncMock(side_effect=_fake_extract)):
            result = await TracksPhase(tracks_context).run()

        assert result.structure.token_usage.extraction == 100
        assert result.keyword.token_usage.extraction == 200
        assert result.token_usage.classification == 30
        assert result.token_usage.structure == 70
        assert result.token_usage.extraction == 300
        assert tracks_context.cost_tracker.token_usage() == result.token_usage

    @pytest.mark.asyncio
    async def test_business_track(self, tracks_context):
        business = _section("Business Overview", (9, 10))
        tracks_context.state.routed_sections[Track.BUSINESS] = [business, business]
        tracks_context.state.keyword_sections = []

        insight = BusinessInsight(type="partnership", description="Co-promotion with Beta Biologics")
        with patch("revenue_extractor.phases.track_phase.analyze_business",
                   new=AsyncMock(return_value=BusinessAnalysis(business=[insight], confidence=80))), \
             patch("revenue_extractor.phases.track_phase.extract_revenue",
                   new=AsyncMock(side_effect=_fake_extract)):
            result = await TracksPhase(tracks_context).run()

        assert result.structure.business_insights == [insight]
        assert tracks_context.state.business_insights == [insight]

    @pytest.mark.asyncio
    async def test_business_track_disabled(self, make_context, acme_pages):
        context = make_context(acme_pages, analyze_business=False)
        context.state.routed_sections = {Track.REVENUE: [], Track.BUSINESS: [_section("Business", (9,))]}

        with patch("revenue_extractor.phases.track_phase.analyze_business", new=AsyncMock()) as analyzer:
            result = await TracksPhase(context).run()

        analyzer.assert_not_called()
        assert result.results == []


# =============================================================================
# Reconcile
# =============================================================================


class TestReconcilePhase:
    """Tests for ReconcilePhase."""

    def test_drop_empty_results(self, make_result):
        kept = make_result()
        assert drop_empty_results([ExtractionResult(confidence=90), kept]) == [kept]

    @pytest.mark.asyncio
    async def test_empty_results_do_not_dilute_confidence(self, acme_context, make_result):
        acme_context.state.structure_results = [make_result(confidence=80), ExtractionResult(confidence=0)]
        acme_context.state.keyword_results = [make_result(
            amount=120.05,
            confidence=90,
            track="keyword",
            sources=["Page 6: Net product sales of Acme-T were $120 million"],
        )]

        result = await ReconcilePhase(acme_context).run()

        assert result.dropped_empty == 1
        assert result.reconciled.confidence == 85
        assert len(result.reconciled.revenue_records) == 1
        assert len(result.reconciled.revenue_records[0].sources) == 2
        assert acme_context.state.reconciled == result.reconciled

    @pytest.mark.asyncio
    async def test_nothing_to_reconcile(self, acme_context):
        acme_context.state.structure_results = [ExtractionResult(confidence=50)]
        with pytest.raises(NothingToReconcileError):
            await ReconcilePhase(acme_context).run()

    @pytest.mark.asyncio
    async def test_custom_epsilon(self, make_context, acme_pages, make_result):
        context = make_context(acme_pages, epsilon=0.01)
        context.state.structure_results = [make_result(amount=120.0, confidence=60)]
        context.state.keyword_results = [make_result(amount=120.05, confidence=90, track="keyword")]

        result = await ReconcilePhase(context).run()
        assert result.reconciled.revenue_records[0].revenue_millions_usd == 120.05
        assert result.report.conflicts == 1
