"""Agent implementations for the extraction pipeline.

Each agent wraps one collaborator call with fresh LLM context, so data from
different documents or snippets never leaks between calls.
"""

from revenue_extractor.agents.classifier_agent import run_classifier, snap_company_name
from revenue_extractor.agents.structure_agent import (
    analyze_structure,
    infer_section_type,
    sections_from_toc,
    merge_window_sections,
    build_windows,
)
from revenue_extractor.agents.verifier_agent import (
    verify_revenue,
    passes_gate,
    build_highlighted_snippets,
)
from revenue_extractor.agents.revenue_agent import (
    extract_revenue,
    parse_revenue_response,
)
from revenue_extractor.agents.business_agent import analyze_business, deduplicate_insights

__all__ = [
    # Classifier
    "run_classifier",
    "snap_company_name",
    # Structure
    "analyze_structure",
    "infer_section_type",
    "sections_from_toc",
    "merge_window_sections",
    "build_windows",
    # Verifier
    "verify_revenue",
    "passes_gate",
    "build_highlighted_snippets",
    # Revenue
    "extract_revenue",
    "parse_revenue_response",
    # Business
    "analyze_business",
    "deduplicate_insights",
]
