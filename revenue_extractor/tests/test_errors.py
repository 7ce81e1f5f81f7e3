"""Tests for revenue_extractor.core.errors module.

Tests the error handling infrastructure:
- ExtractionError dataclass
- PipelineErrors accumulator
- Raised pipeline errors
- Error factory functions
"""

from revenue_extractor.core.errors import (
    DocumentNotFoundError,
    ErrorCategory,
    ErrorSeverity,
    ExtractionError,
    LeaseLostError,
    NoRegisteredTherapiesError,
    NothingToReconcileError,
    PipelineError,
    PipelineErrors,
    llm_api_error,
    llm_parse_error,
)


# =============================================================================
# ExtractionError tests
# =============================================================================


class TestExtractionError:
    """Tests for ExtractionError dataclass."""

    def test_str_includes_context(self):
        error = ExtractionError(
            category=ErrorCategory.LLM_API,
            severity=ErrorSeverity.WARNING,
            message="Rate limited",
            phase="Keyword Track",
            therapy="Acme-T",
            section="Acme-T p5-7",
        )
        text = str(error)
        assert text.startswith("[WARNING] llm_api: Rate limited")
        assert "therapy=Acme-T" in text
        assert "section=Acme-T p5-7" in text
        assert "phase=Keyword Track" in text

    def test_to_dict(self):
        error = ExtractionError(
            category=ErrorCategory.LLM_PARSE,
            severity=ErrorSeverity.WARNING,
            message="not an object",
            phase="Structure Track",
            page_range=(5, 8),
            original_error=ValueError("not an object"),
        )
        data = error.to_dict()
        assert data["category"] == "llm_parse"
        assert data["page_range"] == [5, 8]
        assert "original_error" not in data


# =============================================================================
# PipelineErrors tests
# =============================================================================


class TestPipelineErrors:
    """Tests for PipelineErrors accumulator."""

    def test_warnings_and_errors_split(self):
        errors = PipelineErrors()
        errors.add(llm_parse_error("bad json", "Keyword Track", therapy="Acme-T"))
        errors.add(llm_api_error("timeout", "Structure Track", section="Financial Results p5-8"))
        errors.add(llm_api_error("timeout again", "Structure Track", section="Financial Results p5-8"))

        assert errors.warning_count == 1
        assert errors.error_count == 2
        assert errors.failed_sections == ["Financial Results p5-8"]

    def test_summary(self):
        errors = PipelineErrors()
        errors.add(llm_api_error("a", "Tracks"))
        errors.add(ExtractionError(ErrorCategory.QUEUE, ErrorSeverity.ERROR, "b", "Worker"))

        summary = errors.summary()
        assert summary["total_errors"] == 2
        assert summary["errors_by_category"] == {"llm_api": 1, "queue": 1}
        assert errors.to_dict()["summary"] == summary


# =============================================================================
# Raised errors
# =============================================================================


class TestRaisedErrors:
    """Tests for PipelineError subclasses."""

    def test_no_registered_therapies_message(self):
        error = NoRegisteredTherapiesError("Acme Therapeutics")
        assert isinstance(error, PipelineError)
        assert error.company_name == "Acme Therapeutics"
        assert str(error).startswith("No registered therapies found for company: Acme Therapeutics")

    def test_others(self):
        assert str(NothingToReconcileError()) == "No revenue results to reconcile"
        assert DocumentNotFoundError("doc-1").document_id == "doc-1"
        assert "job-1" in str(LeaseLostError("job-1"))


# =============================================================================
# Factory functions
# =============================================================================


class TestFactories:
    """Tests for error factory functions."""

    def test_parse_error_truncates_raw_response(self):
        error = llm_parse_error("bad", "Keyword Track", raw_response="x" * 1000)
        assert len(error.context["raw_response"]) == 500

    def test_api_error_carries_section_scope(self):
        cause = RuntimeError("rate limited")
        error = llm_api_error(
            "rate limited", "Structure Track",
            section="Financial Results p5-8", page_range=(5, 8), original=cause,
        )
        assert error.severity == ErrorSeverity.ERROR
        assert error.page_range == (5, 8)
        assert error.original_error is cause
