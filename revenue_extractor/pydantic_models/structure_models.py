"""Pydantic schemas for document structure and text sections.

DocumentStructure is produced once per document by the structure analyzer.
TextSection is the unit of work handed to one extraction call.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

SectionType = Literal["financial", "clinical", "regulatory", "pipeline", "business", "other"]

SECTION_TYPES: tuple[str, ...] = ("financial", "clinical", "regulatory", "pipeline", "business", "other")


class Section(BaseModel):
    """A logical section of the document.

    Attributes:
        title: Section name as it appears in the document
        page_start: First page (1-indexed)
        page_end: Last page, or -1 for "to the end of the document"
        type: Content category used for routing
        confidence: Analyzer confidence 0-100
    """

    title: str = Field(description="Section name as it appears in the document")
    page_start: int = Field(ge=1, description="First page of the section (1-indexed)")
    page_end: int = Field(description="Last page of the section, or -1 for the end of the document")
    type: SectionType = Field(default="other", description="financial|clinical|regulatory|pipeline|business|other")
    confidence: int = Field(default=50, ge=0, le=100, description="Confidence 0-100")

    def resolved_end(self, last_page: int) -> int:
        """Concrete last page, clamped to the document."""
        if self.page_end == -1 or self.page_end > last_page:
            return last_page
        return self.page_end


class DocumentStructure(BaseModel):
    """Outline of a document.

    ``is_fallback`` marks the single "Complete Document" outline returned
    when analysis failed; it carries no structural information.
    """

    has_explicit_structure: bool = False
    document_length: Literal["short", "medium", "long"] = "short"
    sections: list[Section] = Field(default_factory=list)
    is_fallback: bool = False

    @property
    def is_usable(self) -> bool:
        """True when the outline can drive the structure track."""
        return bool(self.sections) and not self.is_fallback


class TextSection(BaseModel):
    """A snippet: concatenated page text handed to one extraction call.

    Attributes:
        text: Page text with "[Page N]" markers
        page_numbers: Pages included, ascending
        section_title: Title of the structure section it came from
        section_type: Type of that section
        search_term: Therapy name for keyword windows
    """

    model_config = ConfigDict(frozen=True)

    text: str
    page_numbers: tuple[int, ...]
    section_title: str | None = None
    section_type: SectionType | None = None
    search_term: str | None = None

    @property
    def label(self) -> str:
        """Short human-readable identifier for logs."""
        name = self.search_term or self.section_title or "section"
        if not self.page_numbers:
            return name
        return f"{name} p{self.page_numbers[0]}-{self.page_numbers[-1]}"


class SectionOverlap(BaseModel):
    """Pages shared by a keyword window and a structure section."""

    therapy: str
    structure_type: SectionType
    structure_title: str | None = None
    overlap_pages: list[int]


class Track(str, Enum):
    """Destination of a routed section."""

    REVENUE = "revenue"
    BUSINESS = "business"

    def __str__(self) -> str:
        return self.value


class ExtractionStrategy(str, Enum):
    """How much work each extraction track receives."""

    SMART_COMPLETE = "smart-complete"    # Small document, one block
    FULL_PARALLEL = "full-parallel"      # Structure track and keyword track
    STRUCTURE_ONLY = "structure-only"    # Outline found, no therapies to search for
    HYBRID = "hybrid"                    # No outline, keyword windows only

    def __str__(self) -> str:
        return self.value
