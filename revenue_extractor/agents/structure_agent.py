"""Structure analyzer: builds a DocumentStructure for a document.

Sources are tried in order:

1. The PDF's native outline (bookmarks). Free and exact when present.
2. A table of contents detected by the LLM in the first 10000 characters,
   attempted only when the text shows TOC indicators.
3. LLM inference over the text: one call for short documents, concurrent
   20-page windows (2 pages of overlap) for longer ones, whose sections are
   merged afterwards.
4. A single "Complete Document" fallback outline when inference fails.
"""

import asyncio
import logging
import re

from revenue_extractor.core.config import DEFAULT_MODELS, StructureConfig
from revenue_extractor.core.cost_tracker import CostTracker
from revenue_extractor.core.llm_client import LLMClient
from revenue_extractor.core.pdf_reader import PageIndexedText
from revenue_extractor.pydantic_models import (
    DocumentStructure,
    Section,
    SectionType,
    StructureInference,
    TableOfContents,
)
from revenue_extractor.prompts.structure_prompt import (
    STRUCTURE_SYSTEM_PROMPT,
    TOC_SYSTEM_PROMPT,
    build_structure_prompt,
    build_toc_prompt,
)

logger = logging.getLogger(__name__)

_TYPE_PATTERNS: tuple[tuple[SectionType, re.Pattern], ...] = (
    ("financial", re.compile(r"financial|revenue|earnings|income|cash flow|balance sheet|profit|loss")),
    ("clinical", re.compile(r"clinical|trial|patient|efficacy|safety|adverse|endpoint|study")),
    ("regulatory", re.compile(r"regulatory|fda|ema|approval|compliance|filing")),
    ("pipeline", re.compile(r"pipeline|development|r&d|research|candidate|phase|discovery")),
    ("business", re.compile(r"business|market|competition|strategy|partnership|licensing|commercial")),
)

_TOC_LEADER = re.compile(r"\d+\.{2,}|\.{2,}\s*\d+")


def infer_section_type(title: str) -> SectionType:
    """Section type from title keywords, first match wins."""
    lowered = title.lower()
    for section_type, pattern in _TYPE_PATTERNS:
        if pattern.search(lowered):
            return section_type
    return "other"


def classify_length(page_count: int) -> str:
    if page_count <= StructureConfig.SHORT_DOCUMENT_PAGES:
        return "short"
    if page_count <= StructureConfig.MEDIUM_DOCUMENT_PAGES:
        return "medium"
    return "long"


def fallback_structure(page_count: int) -> DocumentStructure:
    """The whole document as one untyped section."""
    return DocumentStructure(
        has_explicit_structure=False,
        document_length=classify_length(page_count),
        sections=[Section(
            title=StructureConfig.FALLBACK_TITLE,
            page_start=1,
            page_end=max(page_count, 1),
            type="other",
            confidence=StructureConfig.FALLBACK_CONFIDENCE,
        )],
        is_fallback=True,
    )


def sections_from_toc(entries: list[tuple[str, int]], page_count: int) -> list[Section]:
    """Turn (title, start page) entries into sections.

    Each section ends one page before the next entry starts; the last runs
    to the end of the document (-1). Entries pointing outside the document
    are dropped.
    """
    valid = [(title.strip(), page) for title, page in entries if title.strip() and 1 <= page <= page_count]
    sections = []
    for i, (title, page) in enumerate(valid):
        if i + 1 < len(valid):
            page_end = max(page, valid[i + 1][1] - 1)
        else:
            page_end = -1
        sections.append(Section(
            title=title,
            page_start=page,
            page_end=page_end,
            type=infer_section_type(title),
            confidence=StructureConfig.TOC_CONFIDENCE,
        ))
    return sections


def sections_from_native_toc(toc: list[tuple[int, str, int]], page_count: int) -> list[Section]:
    """Sections from the PDF outline, using its top level only."""
    if not toc:
        return []
    top_level = min(level for level, _, _ in toc)
    return sections_from_toc(
        [(title, page) for level, title, page in toc if level == top_level],
        page_count,
    )


def has_toc_indicators(text: str) -> bool:
    lowered = text.lower()
    return "contents" in lowered or bool(_TOC_LEADER.search(text))


def build_windows(
    page_count: int,
    size: int = StructureConfig.WINDOW_SIZE,
    overlap: int = StructureConfig.WINDOW_OVERLAP,
) -> list[tuple[int, int]]:
    """Page windows of ``size`` pages, consecutive windows sharing ``overlap`` pages.

    Example:
        >>> build_windows(40)
        [(1, 20), (19, 38), (37, 40)]
    """
    step = max(1, size - overlap)
    windows = []
    start = 1
    while start <= page_count:
        end = min(start + size - 1, page_count)
        windows.append((start, end))
        if end == page_count:
            break
        start += step
    return windows


def merge_window_sections(sections: list[Section], page_count: int) -> list[Section]:
    """Merge same-type sections that overlap or touch, in page order.

    Merged titles are joined with " / " and keep the lower confidence.
    """
    if not sections:
        return []

    ordered = sorted(sections, key=lambda s: s.page_start)
    merged: list[Section] = []
    current = ordered[0]

    for section in ordered[1:]:
        current_end = current.resolved_end(page_count)
        if current_end >= section.page_start - 1 and current.type == section.type:
            current = Section(
                title=f"{current.title} / {section.title}",
                page_start=current.page_start,
                page_end=max(current_end, section.resolved_end(page_count)),
                type=current.type,
                confidence=min(current.confidence, section.confidence),
            )
        else:
            merged.append(current)
            current = section

    merged.append(current)
    return merged


async def _detect_toc(
    client: LLMClient,
    pages: PageIndexedText,
    model: str,
) -> list[Section]:
    text = pages.full_text()[:StructureConfig.TOC_SEARCH_CHARS]
    if not has_toc_indicators(text):
        logger.debug("No TOC indicators in document start")
        return []

    try:
        toc = await client.complete_structured(
            system_prompt=TOC_SYSTEM_PROMPT,
            user_prompt=build_toc_prompt(text),
            model=model,
            response_model=TableOfContents,
            agent="structure",
        )
    except Exception as e:
        logger.warning(f"TOC detection failed: {e}")
        return []

    return sections_from_toc([(e.title, e.page) for e in toc.entries], pages.page_count)


async def _infer_range(
    client: LLMClient,
    pages: PageIndexedText,
    model: str,
    document_length: str,
    start: int | None = None,
    end: int | None = None,
) -> StructureInference:
    if start is None:
        text = pages.full_text()
    else:
        text = pages.render_pages(start, end)

    return await client.complete_structured(
        system_prompt=STRUCTURE_SYSTEM_PROMPT,
        user_prompt=build_structure_prompt(text, pages.page_count, document_length, start, end),
        model=model,
        response_model=StructureInference,
        agent="structure",
    )


async def analyze_structure(
    pages: PageIndexedText,
    native_toc: list[tuple[int, str, int]] | None = None,
    model: str = DEFAULT_MODELS["structure"],
    cost_tracker: CostTracker | None = None,
    semaphore: asyncio.Semaphore | None = None,
) -> DocumentStructure:
    """Analyze a document's structure.

    Args:
        pages: Page text of the document.
        native_toc: (level, title, page) entries from the PDF outline.
        model: LLM model to use.
        cost_tracker: Optional tracker to record token usage.
        semaphore: Caps concurrent window calls for long documents.

    Returns:
        DocumentStructure. On inference failure a fallback outline with
        ``is_fallback=True``.
    """
    page_count = pages.page_count
    document_length = classify_length(page_count)
    client = LLMClient(cost_tracker=cost_tracker)

    native_sections = sections_from_native_toc(native_toc or [], page_count)
    if native_sections:
        logger.debug(f"Using native PDF outline ({len(native_sections)} sections)")
        return DocumentStructure(
            has_explicit_structure=True,
            document_length=document_length,
            sections=native_sections,
        )

    toc_sections = await _detect_toc(client, pages, model)
    if toc_sections:
        return DocumentStructure(
            has_explicit_structure=True,
            document_length=document_length,
            sections=toc_sections,
        )

    if page_count <= StructureConfig.SHORT_DOCUMENT_PAGES:
        try:
            inference = await _infer_range(client, pages, model, document_length)
        except Exception as e:
            logger.warning(f"Structure inference failed, using fallback: {e}")
            return fallback_structure(page_count)
        sections = inference.sections
        has_explicit = inference.has_explicit_structure
    else:
        semaphore = semaphore or asyncio.Semaphore(len(build_windows(page_count)))

        async def analyze_window(start: int, end: int) -> list[Section]:
            async with semaphore:
                try:
                    inference = await _infer_range(client, pages, model, document_length, start, end)
                except Exception as e:
                    logger.warning(f"Structure window {start}-{end} failed: {e}")
                    return []
                return [
                    s if s.page_end != -1 else s.model_copy(update={"page_end": end})
                    for s in inference.sections
                ]

        window_results = await asyncio.gather(
            *(analyze_window(start, end) for start, end in build_windows(page_count))
        )
        sections = merge_window_sections(
            [s for window in window_results for s in window], page_count,
        )
        has_explicit = False

    if not sections:
        return fallback_structure(page_count)

    return DocumentStructure(
        has_explicit_structure=has_explicit,
        document_length=document_length,
        sections=sections,
    )
