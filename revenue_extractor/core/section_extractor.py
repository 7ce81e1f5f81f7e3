"""Section extraction: turns page-indexed text into TextSections.

Two modes, both pure functions over PageIndexedText:

- Structure-based: one TextSection per outline section, bucketed by section
  type.
- Keyword-based: for each therapy name, pages mentioning it are grown by
  ``context_pages`` on each side and merged into maximal windows; every
  occurrence of the name is wrapped in ``**`` so downstream agents can see
  where the therapy sits in the text.

The module also reports page overlaps between the two modes (for logs only;
both tracks keep their copies and the reconciler absorbs duplicate facts) and
routes sections to the revenue or business-insight track.
"""

import re
from collections import defaultdict

from revenue_extractor.core.config import SectionConfig, StructureConfig
from revenue_extractor.core.pdf_reader import PageIndexedText
from revenue_extractor.pydantic_models import (
    DocumentStructure,
    SectionOverlap,
    TextSection,
    Track,
)

StructureSections = dict[str, list[TextSection]]
KeywordSections = dict[str, list[TextSection]]

# Section types whose content goes to the revenue track. Clinical, regulatory
# and pipeline sections still carry sales figures often enough to be worth it.
_REVENUE_TYPES = frozenset({"financial", "clinical", "regulatory", "pipeline"})


# =============================================================================
# Structure-based extraction
# =============================================================================


def extract_structure_sections(
    structure: DocumentStructure,
    pages: PageIndexedText,
) -> StructureSections:
    """Build one TextSection per outline section, grouped by section type.

    Sections starting past the last page, or whose pages are all blank, are
    skipped. ``page_end == -1`` runs to the last page.

    Args:
        structure: Outline from the structure analyzer.
        pages: Page text of the document.

    Returns:
        Map of section type to its TextSections, in outline order.
    """
    by_type: StructureSections = defaultdict(list)
    last_page = pages.page_count

    for section in structure.sections:
        if section.page_start > last_page:
            continue
        end = section.resolved_end(last_page)
        if end < section.page_start:
            continue

        page_numbers = tuple(range(section.page_start, end + 1))
        if not any(pages.page(p).strip() for p in page_numbers):
            continue

        by_type[section.type].append(TextSection(
            text=pages.render_pages(section.page_start, end),
            page_numbers=page_numbers,
            section_title=section.title,
            section_type=section.type,
        ))

    return dict(by_type)


def whole_document_section(pages: PageIndexedText) -> StructureSections:
    """Treat a small document as one financial block (smart-complete strategy)."""
    if pages.page_count == 0:
        return {}
    return {
        "financial": [TextSection(
            text=pages.full_text(),
            page_numbers=tuple(range(1, pages.page_count + 1)),
            section_title=StructureConfig.FALLBACK_TITLE,
            section_type="financial",
        )]
    }


# =============================================================================
# Keyword-based extraction
# =============================================================================


def find_matching_pages(pages: PageIndexedText, term: str) -> list[int]:
    """Pages whose text contains ``term`` (case-insensitive substring)."""
    needle = term.lower()
    return [page_num for page_num, text in pages if needle in text.lower()]


def merge_page_windows(
    match_pages: list[int],
    context_pages: int,
    last_page: int,
) -> list[tuple[int, int]]:
    """Grow each match by ``context_pages`` and merge windows that overlap or touch.

    Windows are clamped to ``[1, last_page]``. Two windows merge when the next
    one starts at most one page after the current one ends.

    Example:
        >>> merge_page_windows([3, 4, 10], 1, 12)
        [(2, 5), (9, 11)]
    """
    if not match_pages:
        return []

    ordered = sorted(set(match_pages))
    windows: list[tuple[int, int]] = []
    current_start = max(1, ordered[0] - context_pages)
    current_end = min(last_page, ordered[0] + context_pages)

    for page in ordered[1:]:
        expanded_start = max(1, page - context_pages)
        expanded_end = min(last_page, page + context_pages)
        if expanded_start <= current_end + 1:
            current_end = max(current_end, expanded_end)
        else:
            windows.append((current_start, current_end))
            current_start, current_end = expanded_start, expanded_end

    windows.append((current_start, current_end))
    return windows


def highlight_term(text: str, term: str, marker: str = SectionConfig.HIGHLIGHT_MARKER) -> str:
    """Wrap every case-insensitive occurrence of ``term``, keeping its original casing."""
    if not term:
        return text
    pattern = re.compile(re.escape(term), re.IGNORECASE)
    return pattern.sub(lambda m: f"{marker}{m.group(0)}{marker}", text)


def extract_keyword_sections(
    pages: PageIndexedText,
    search_terms: list[str],
    context_pages: int = SectionConfig.CONTEXT_PAGES,
) -> KeywordSections:
    """Build highlighted page windows around every mention of each search term.

    Args:
        pages: Page text of the document.
        search_terms: Therapy names. Blank and repeated names are ignored.
        context_pages: Pages added before and after each match.

    Returns:
        Map of therapy name to its windows. Terms with no match are omitted.
    """
    sections: KeywordSections = {}
    seen: set[str] = set()

    for term in search_terms:
        term = term.strip()
        if not term or term.lower() in seen:
            continue
        seen.add(term.lower())

        windows = merge_page_windows(
            find_matching_pages(pages, term), context_pages, pages.page_count,
        )
        if not windows:
            continue

        sections[term] = [
            TextSection(
                text=highlight_term(pages.render_pages(start, end), term),
                page_numbers=tuple(range(start, end + 1)),
                search_term=term,
            )
            for start, end in windows
        ]

    return sections


# =============================================================================
# Overlap detection
# =============================================================================


def detect_overlaps(
    keyword_sections: KeywordSections,
    structure_sections: StructureSections,
) -> list[SectionOverlap]:
    """Pages covered both by a therapy's keyword windows and a structure section.

    One entry per (therapy, structure section) pair with a non-empty
    intersection. Used only for logging and statistics.
    """
    overlaps: list[SectionOverlap] = []

    for therapy, windows in keyword_sections.items():
        therapy_pages = {p for window in windows for p in window.page_numbers}
        for section_type, sections in structure_sections.items():
            for section in sections:
                shared = therapy_pages.intersection(section.page_numbers)
                if shared:
                    overlaps.append(SectionOverlap(
                        therapy=therapy,
                        structure_type=section_type,
                        structure_title=section.section_title,
                        overlap_pages=sorted(shared),
                    ))

    return overlaps


# =============================================================================
# Routing
# =============================================================================


def _keyword_score(text: str, vocabulary: tuple[str, ...]) -> int:
    return sum(text.count(word) for word in vocabulary)


def route_by_content(text: str) -> Track:
    """Route an untyped section by vocabulary counts.

    Business wins only with a strictly highest count. Revenue and clinical
    vocabulary both lead to the revenue track, which is also the default on
    ties or when nothing matches.
    """
    lowered = text.lower()
    revenue = _keyword_score(lowered, SectionConfig.REVENUE_KEYWORDS)
    clinical = _keyword_score(lowered, SectionConfig.CLINICAL_KEYWORDS)
    business = _keyword_score(lowered, SectionConfig.BUSINESS_KEYWORDS)

    if business > revenue and business > clinical:
        return Track.BUSINESS
    return Track.REVENUE


def route_section(section: TextSection) -> Track:
    """Track for one structure-based section."""
    if section.section_type in _REVENUE_TYPES:
        return Track.REVENUE
    if section.section_type == "business":
        return Track.BUSINESS
    return route_by_content(section.text)


def route_structure_sections(structure_sections: StructureSections) -> dict[Track, list[TextSection]]:
    """Split structure-based sections between the revenue and business-insight tracks."""
    routed: dict[Track, list[TextSection]] = {Track.REVENUE: [], Track.BUSINESS: []}
    for sections in structure_sections.values():
        for section in sections:
            routed[route_section(section)].append(section)
    return routed


def route_keyword_sections(keyword_sections: KeywordSections) -> list[TextSection]:
    """Keyword windows always go to the revenue track, scoped to their therapy."""
    return [
        section if section.search_term == therapy else section.model_copy(update={"search_term": therapy})
        for therapy, sections in keyword_sections.items()
        for section in sections
    ]
