"""Structure analysis prompts.

Two prompts: table-of-contents detection over the start of the document,
and section inference over the whole document (short reports) or over one
page window (long reports).
"""

TOC_SYSTEM_PROMPT = """You find tables of contents at the start of company reports.

Look for:
- A "Table of Contents" or "Contents" header
- Section titles followed by page numbers
- Dot leaders (....) connecting titles to page numbers
- Numbered sections with page references

Be thorough: include ALL sections you find, not just major headings.

Return JSON:
{
  "entries": [
    {"title": "Section Title", "page": 1}
  ]
}

If there is no table of contents, return {"entries": []}."""


STRUCTURE_SYSTEM_PROMPT = """You identify the logical sections of pharmaceutical/biotech financial reports.

## Section Types

- **financial**: Revenue, earnings, costs, financial statements, financial results
- **clinical**: Trial results, efficacy data, safety data, patient outcomes
- **regulatory**: FDA/EMA approvals, regulatory milestones, compliance
- **pipeline**: Development pipeline, R&D, future products, ongoing trials
- **business**: Market analysis, partnerships, licensing, competitive landscape, strategy
- **other**: Anything that fits none of the above

## Page Numbers

The text contains "[Page N]" markers. Use them for page_start and page_end.
Page ranges must not have gaps between consecutive sections.

## Output Format

Return JSON:
{
  "has_explicit_structure": true | false,
  "sections": [
    {
      "title": "Section name as it appears in the document",
      "page_start": 1,
      "page_end": 5,
      "type": "financial|clinical|regulatory|pipeline|business|other",
      "confidence": 85
    }
  ]
}"""


def build_toc_prompt(document_text: str) -> str:
    """Build the user prompt for table-of-contents detection."""
    return f"""Find the table of contents in the beginning of this document.

## Document Text
{document_text}"""


def build_structure_prompt(
    document_text: str,
    page_count: int,
    document_length: str,
    page_start: int | None = None,
    page_end: int | None = None,
) -> str:
    """Build the user prompt for section inference.

    Args:
        document_text: Page text with "[Page N]" markers.
        page_count: Total pages in the document.
        document_length: "short", "medium" or "long".
        page_start: First page of the window, if analyzing one window.
        page_end: Last page of the window, if analyzing one window.

    Returns:
        Formatted user prompt.
    """
    if page_start is None:
        scope = (
            "This is a short document. Analyze the complete text and identify "
            "all sections precisely."
        )
    else:
        scope = (
            f"You are seeing pages {page_start}-{page_end} only. Report sections "
            f"within this range; a section that continues past page {page_end} "
            f"should end at page {page_end}."
        )

    return f"""Identify the logical sections of this {document_length} report ({page_count} pages).

{scope}

## Document Text
{document_text}"""
