"""Pydantic schemas for extracted facts and the reconciled output.

Raw per-snippet ExtractionResults live only until reconciliation. The
ReconciledResult (plus business insights and token usage, bundled as a
PipelineOutput) is what gets persisted for the document.
"""

from typing import Literal

from pydantic import BaseModel, Field


class RevenueRecord(BaseModel):
    """One revenue fact for one therapy, period and region.

    Example:
        {
            "therapy_name": "Acme-T",
            "period": "Q1 2024",
            "region": "United States",
            "revenue_millions_usd": 120.0,
            "sources": ["Page 6: Acme-T net product sales were $120 million"]
        }
    """

    therapy_name: str = Field(description="Therapy/product name")
    period: str = Field(description="Normalized period, 'Q3 2024' or '2024'")
    region: str = Field(description="Normalized region, e.g. 'United States', 'Europe', 'Global'")
    revenue_millions_usd: float = Field(ge=0, description="Revenue in millions of USD")
    sources: list[str] = Field(
        default_factory=list,
        description="Citation strings, 'Page N: quote'",
    )

    @property
    def dedup_key(self) -> str:
        """Identity used to detect the same fact reported twice."""
        return f"{self.therapy_name.lower()}|{self.period}|{self.region.lower()}"


class ExtractionResult(BaseModel):
    """Output of one extraction call over one snippet."""

    revenue_records: list[RevenueRecord] = Field(default_factory=list)
    confidence: float = Field(default=0, ge=0, le=100)
    track: Literal["structure", "keyword"] = "structure"
    section_label: str = ""


class SourceCitation(BaseModel):
    """A page/quote pair parsed from a citation string."""

    page: int = Field(ge=1)
    quote: str


class ReconciledResult(BaseModel):
    """Deduplicated, confidence-scored revenue facts for a document."""

    revenue_records: list[RevenueRecord] = Field(default_factory=list)
    confidence: int = Field(ge=0, le=100)
    sources: list[SourceCitation] = Field(default_factory=list)


class BusinessInsight(BaseModel):
    """A partnership, licensing deal, market position or strategy item."""

    type: Literal["partnership", "licensing", "market_position", "strategy"]
    description: str
    parties: list[str] = Field(default_factory=list)
    value_millions_usd: float | None = None
    date: str | None = None
    sources: list[str] = Field(default_factory=list)


class PipelineOutput(BaseModel):
    """Everything persisted for one successful document run."""

    reconciled: ReconciledResult
    business_insights: list[BusinessInsight] = Field(default_factory=list)
    strategy: str
    token_usage: dict[str, int] = Field(default_factory=dict)
    overlaps: int = 0
    snippet_results: int = 0
    errors: dict = Field(default_factory=dict)
