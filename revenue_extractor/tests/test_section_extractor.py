"""Tests for revenue_extractor.core.section_extractor.

- Structure-based sections (outline -> TextSections by type)
- Keyword windows (match, expand, merge, highlight)
- Overlap detection
- Routing to the revenue and business-insight tracks
"""

from revenue_extractor.core.section_extractor import (
    detect_overlaps,
    extract_keyword_sections,
    extract_structure_sections,
    find_matching_pages,
    highlight_term,
    merge_page_windows,
    route_by_content,
    route_keyword_sections,
    route_section,
    route_structure_sections,
    whole_document_section,
)
from revenue_extractor.pydantic_models import DocumentStructure, Section, TextSection, Track


# =============================================================================
# Window merging
# =============================================================================


class TestMergePageWindows:
    """Tests for merge_page_windows."""

    def test_reference_example(self):
        assert merge_page_windows([3, 4, 10], 1, 12) == [(2, 5), (9, 11)]

    def test_empty_matches(self):
        assert merge_page_windows([], 1, 12) == []

    def test_clamps_to_document(self):
        assert merge_page_windows([1, 12], 1, 12) == [(1, 2), (11, 12)]

    def test_touching_windows_merge(self):
        # [2,4] and [5,7] touch (5 == 4 + 1)
        assert merge_page_windows([3, 6], 1, 12) == [(2, 7)]

    def test_gap_of_one_page_does_not_merge(self):
        assert merge_page_windows([3, 7], 1, 12) == [(2, 4), (6, 8)]

    def test_zero_context(self):
        assert merge_page_windows([3, 4, 10], 0, 12) == [(3, 4), (10, 10)]

    def test_unsorted_and_duplicate_input(self):
        assert merge_page_windows([10, 3, 4, 3], 1, 12) == [(2, 5), (9, 11)]

    def test_windows_are_disjoint_and_cover_matches(self):
        matches = [2, 5, 9, 14, 15, 30]
        windows = merge_page_windows(matches, 2, 40)
        for (_, end), (start, _) in zip(windows, windows[1:]):
            assert start > end + 1
        for page in matches:
            assert any(start <= page <= end for start, end in windows)


# =============================================================================
# Keyword sections
# =============================================================================


class TestKeywordSections:
    """Tests for find_matching_pages / extract_keyword_sections."""

    def test_find_matching_pages_is_case_insensitive(self, make_pages):
        pages = make_pages(5, {2: "ACME-T sales", 4: "acme-t pipeline"})
        assert find_matching_pages(pages, "Acme-T") == [2, 4]

    def test_window_around_single_match(self, acme_pages):
        sections = extract_keyword_sections(acme_pages, ["Acme-T"], context_pages=1)
        assert list(sections) == ["Acme-T"]
        (window,) = sections["Acme-T"]
        assert window.page_numbers == (5, 6, 7)
        assert window.search_term == "Acme-T"

    def test_mentions_are_highlighted(self, acme_pages):
        (window,) = extract_keyword_sections(acme_pages, ["acme-t"])["acme-t"]
        assert "**Acme-T**" in window.text
        assert "[Page 6]" in window.text

    def test_term_without_matches_is_omitted(self, acme_pages):
        assert extract_keyword_sections(acme_pages, ["Nothingumab"]) == {}

    def test_blank_and_repeated_terms_ignored(self, acme_pages):
        sections = extract_keyword_sections(acme_pages, ["Acme-T", " ", "ACME-T"])
        assert list(sections) == ["Acme-T"]

    def test_highlight_keeps_original_casing(self):
        assert highlight_term("acme-t and ACME-T", "Acme-T") == "**acme-t** and **ACME-T**"


# =============================================================================
# Structure sections
# =============================================================================


class TestStructureSections:
    """Tests for extract_structure_sections / whole_document_section."""

    def test_groups_by_type(self, acme_pages, acme_structure):
        sections = extract_structure_sections(acme_structure, acme_pages)
        assert list(sections) == ["financial"]
        (section,) = sections["financial"]
        assert section.page_numbers == (5, 6, 7, 8)
        assert section.section_title == "Financial Results"
        assert "[Page 5]" in section.text and "[Page 8]" in section.text

    def test_open_ended_section_runs_to_last_page(self, make_pages):
        structure = DocumentStructure(sections=[
            Section(title="Risk Factors", page_start=3, page_end=-1, type="other"),
        ])
        sections = extract_structure_sections(structure, make_pages(6))
        assert sections["other"][0].page_numbers == (3, 4, 5, 6)

    def test_section_past_last_page_skipped(self, make_pages):
        structure = DocumentStructure(sections=[
            Section(title="Appendix", page_start=30, page_end=35, type="other"),
        ])
        assert extract_structure_sections(structure, make_pages(10)) == {}

    def test_blank_section_skipped(self, make_pages):
        pages = make_pages(4, {2: "   ", 3: ""})
        structure = DocumentStructure(sections=[
            Section(title="Empty", page_start=2, page_end=3, type="financial"),
        ])
        assert extract_structure_sections(structure, pages) == {}

    def test_whole_document_section(self, make_pages):
        sections = whole_document_section(make_pages(3))
        (section,) = sections["financial"]
        assert section.page_numbers == (1, 2, 3)
        assert section.section_title == "Complete Document"


# =============================================================================
# Overlaps
# =============================================================================


class TestOverlaps:
    """Tests for detect_overlaps."""

    def test_reports_shared_pages(self, acme_pages, acme_structure):
        keyword = extract_keyword_sections(acme_pages, ["Acme-T"])
        structure = extract_structure_sections(acme_structure, acme_pages)
        (overlap,) = detect_overlaps(keyword, structure)
        assert overlap.therapy == "Acme-T"
        assert overlap.structure_type == "financial"
        assert overlap.structure_title == "Financial Results"
        assert overlap.overlap_pages == [5, 6, 7]

    def test_no_overlap_when_disjoint(self, make_pages):
        pages = make_pages(20, {15: "Acme-T"})
        keyword = extract_keyword_sections(pages, ["Acme-T"])
        structure = extract_structure_sections(
            DocumentStructure(sections=[Section(title="Intro", page_start=1, page_end=3, type="other")]),
            pages,
        )
        assert detect_overlaps(keyword, structure) == []


# =============================================================================
# Routing
# =============================================================================


def _section(section_type=None, text="", search_term=None) -> TextSection:
    return TextSection(text=text, page_numbers=(1,), section_type=section_type, search_term=search_term)


class TestRouting:
    """Tests for route_section / route_by_content / route_*_sections."""

    def test_typed_sections(self):
        for section_type in ("financial", "clinical", "regulatory", "pipeline"):
            assert route_section(_section(section_type)) == Track.REVENUE
        assert route_section(_section("business")) == Track.BUSINESS

    def test_untyped_business_text(self):
        text = "Our partnership and licensing strategy strengthens our market competition position."
        assert route_by_content(text) == Track.BUSINESS
        assert route_section(_section("other", text)) == Track.BUSINESS

    def test_ties_default_to_revenue(self):
        assert route_by_content("nothing relevant here") == Track.REVENUE
        assert route_by_content("revenue partnership") == Track.REVENUE

    def test_route_structure_sections(self):
        routed = route_structure_sections({
            "financial": [_section("financial", "revenue table")],
            "business": [_section("business", "partnership")],
        })
        assert len(routed[Track.REVENUE]) == 1
        assert len(routed[Track.BUSINESS]) == 1

    def test_route_keyword_sections_sets_scope(self):
        routed = route_keyword_sections({"Acme-T": [_section(text="x")]})
        assert [s.search_term for s in routed] == ["Acme-T"]
