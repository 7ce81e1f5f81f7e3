"""Pydantic models for structured LLM responses.

These are passed as ``response_model`` to ``LLMClient.complete_structured``.
Instructor validates the reply and, when validation fails, retries with the
error in the prompt. The revenue extractor does not use a response model:
its numbers are parsed explicitly (see agents/revenue_agent.py).
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from revenue_extractor.pydantic_models.extraction_models import BusinessInsight
from revenue_extractor.pydantic_models.structure_models import Section


class DocumentInfo(BaseModel):
    """Classifier output. Every field is optional."""

    company_name: str | None = Field(
        default=None,
        description="Exact company name from the registered list, or 'Not Registered'",
    )
    report_type: Literal["annual", "quarterly"] | None = Field(
        default=None,
        description="annual or quarterly",
    )
    reporting_period: str | None = Field(
        default=None,
        description="Period covered, e.g. 'Q3 2024' or '2024'",
    )


class VerificationResult(BaseModel):
    """Verifier output for one keyword snippet."""

    contains_revenue_data: bool = Field(
        description="True only if a revenue/sales table lists the therapy with figures"
    )
    confidence: int = Field(default=0, description="Confidence 0-100")
    reasoning: str = Field(default="", description="Brief explanation")

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, value):
        try:
            value = round(float(value))
        except (TypeError, ValueError):
            return 0
        return max(0, min(100, value))


class TocEntry(BaseModel):
    """One line of a table of contents."""

    title: str
    page: int = Field(ge=1)


class TableOfContents(BaseModel):
    """TOC detection output; empty when the text has no table of contents."""

    entries: list[TocEntry] = Field(default_factory=list)


class StructureInference(BaseModel):
    """Sections inferred from document text (whole document or one window)."""

    has_explicit_structure: bool = False
    sections: list[Section] = Field(default_factory=list)


class BusinessAnalysis(BaseModel):
    """Business analyzer output for one section."""

    business: list[BusinessInsight] = Field(default_factory=list)
    confidence: int = Field(default=0, ge=0, le=100)
