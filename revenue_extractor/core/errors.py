"""Structured error types for the revenue extraction pipeline.

Two kinds of errors live here:
- Recorded errors (ExtractionError / PipelineErrors): absorbed failures such as
  a snippet whose extraction call failed. The pipeline keeps going and the
  record ends up in the run statistics.
- Raised errors (PipelineError subclasses): conditions that abort the job.
  The worker catches them and marks the job failed with the message.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorSeverity(Enum):
    """Severity levels for extraction errors."""
    WARNING = "warning"   # Non-fatal, item skipped
    ERROR = "error"       # Fatal for this item, pipeline continued
    CRITICAL = "critical" # Pipeline halted


class ErrorCategory(Enum):
    """Categories of extraction errors."""
    LLM_API = "llm_api"           # OpenRouter/LiteLLM errors
    LLM_PARSE = "llm_parse"       # Malformed or out-of-contract LLM output
    PDF_READ = "pdf_read"         # PDF reading errors
    VALIDATION = "validation"     # Pydantic validation errors
    TIMEOUT = "timeout"           # Operation timeout / stuck lease
    QUEUE = "queue"               # Work queue and persistence errors
    UNKNOWN = "unknown"           # Unclassified errors


@dataclass
class ExtractionError:
    """Structured extraction error with context."""

    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    phase: str                      # Pipeline phase where error occurred
    therapy: str | None = None      # Therapy scope of the failed call, if any
    section: str | None = None      # Section title or keyword window label
    page_range: tuple[int, int] | None = None
    original_error: Exception | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        parts = [f"[{self.severity.value.upper()}] {self.category.value}: {self.message}"]
        if self.therapy:
            parts.append(f"therapy={self.therapy}")
        if self.section:
            parts.append(f"section={self.section}")
        if self.phase:
            parts.append(f"phase={self.phase}")
        return " | ".join(parts)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "message": self.message,
            "phase": self.phase,
            "therapy": self.therapy,
            "section": self.section,
            "page_range": list(self.page_range) if self.page_range else None,
            "context": self.context,
        }


@dataclass
class PipelineErrors:
    """Aggregate errors across one document run."""

    errors: list[ExtractionError] = field(default_factory=list)
    warnings: list[ExtractionError] = field(default_factory=list)
    failed_sections: list[str] = field(default_factory=list)

    def add(self, error: ExtractionError):
        """Add an error or warning."""
        if error.severity == ErrorSeverity.WARNING:
            self.warnings.append(error)
        else:
            self.errors.append(error)
            if error.section and error.section not in self.failed_sections:
                self.failed_sections.append(error.section)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def summary(self) -> dict:
        """Get summary statistics."""
        by_category = {}
        for error in self.errors:
            cat = error.category.value
            by_category[cat] = by_category.get(cat, 0) + 1

        return {
            "total_errors": self.error_count,
            "total_warnings": self.warning_count,
            "failed_sections": len(self.failed_sections),
            "errors_by_category": by_category,
        }

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "failed_sections": self.failed_sections,
            "summary": self.summary(),
        }


# Raised errors

class PipelineError(Exception):
    """Base class for errors that abort processing of a document."""


class NoRegisteredTherapiesError(PipelineError):
    """The classified company has no therapies in the registry.

    Retrying cannot help until an operator registers therapies, but the job
    still counts the attempt like any other failure.
    """

    def __init__(self, company_name: str):
        self.company_name = company_name
        super().__init__(
            f"No registered therapies found for company: {company_name}. "
            "Please register therapies for this company before processing documents."
        )


class NothingToReconcileError(PipelineError):
    """Neither track produced a single extraction result."""

    def __init__(self, message: str = "No revenue results to reconcile"):
        super().__init__(message)


class DocumentNotFoundError(PipelineError):
    """A job or request referenced a document id that does not exist."""

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


class LeaseLostError(PipelineError):
    """The worker no longer owns the job it tried to finish."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Lease lost for job {job_id}; result discarded")


# Factory functions for common error types

def llm_api_error(
    message: str,
    phase: str,
    therapy: str | None = None,
    section: str | None = None,
    page_range: tuple[int, int] | None = None,
    original: Exception | None = None,
) -> ExtractionError:
    """Create an LLM API error."""
    return ExtractionError(
        category=ErrorCategory.LLM_API,
        severity=ErrorSeverity.ERROR,
        message=message,
        phase=phase,
        therapy=therapy,
        section=section,
        page_range=page_range,
        original_error=original,
    )


def llm_parse_error(
    message: str,
    phase: str,
    therapy: str | None = None,
    section: str | None = None,
    page_range: tuple[int, int] | None = None,
    raw_response: str | None = None,
    original: Exception | None = None,
) -> ExtractionError:
    """Create an LLM parse error."""
    return ExtractionError(
        category=ErrorCategory.LLM_PARSE,
        severity=ErrorSeverity.WARNING,
        message=message,
        phase=phase,
        therapy=therapy,
        section=section,
        page_range=page_range,
        original_error=original,
        context={"raw_response": raw_response[:500] if raw_response else None},
    )
