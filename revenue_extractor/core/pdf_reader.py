"""Page-indexed text for the extraction pipeline.

Pure Python + PyMuPDF. The PDF is read once per document into a
PageIndexedText; every phase after that works on the in-memory page map.
"""

from pathlib import Path
from types import MappingProxyType
from typing import Iterator, Mapping

import fitz  # PyMuPDF


class PageIndexedText:
    """Read-only mapping of 1-based page number to raw page text.

    Pages are contiguous from 1 to ``page_count``. Instances are shared by
    both extraction tracks and never mutated.
    """

    def __init__(self, pages: Mapping[int, str] | list[str]):
        """Build from a page map or a list of page texts (first item = page 1).

        Raises:
            ValueError: If page numbers are not contiguous from 1.
        """
        if isinstance(pages, Mapping):
            ordered = dict(sorted(pages.items()))
        else:
            ordered = {i + 1: text for i, text in enumerate(pages)}

        if list(ordered) != list(range(1, len(ordered) + 1)):
            raise ValueError("Page numbers must be contiguous and start at 1")

        self._pages = MappingProxyType(ordered)

    @property
    def page_count(self) -> int:
        return len(self._pages)

    @property
    def pages(self) -> Mapping[int, str]:
        return self._pages

    def page(self, page_num: int) -> str:
        """Text of one page, empty string when out of range."""
        return self._pages.get(page_num, "")

    def first_pages(self, count: int) -> str:
        """Plain text of the first ``count`` pages joined by newlines."""
        return "\n".join(self.page(p) for p in range(1, min(count, self.page_count) + 1))

    def render_pages(self, start: int, end: int) -> str:
        """Pages ``start..end`` (inclusive, clamped) with page markers.

        Each page renders as ``"\\n[Page N]\\n{text}\\n"`` so extraction agents
        can cite page numbers.
        """
        start = max(1, start)
        end = min(self.page_count, end)
        return "".join(f"\n[Page {p}]\n{self._pages[p]}\n" for p in range(start, end + 1))

    def full_text(self) -> str:
        return self.render_pages(1, self.page_count)

    def __iter__(self) -> Iterator[tuple[int, str]]:
        return iter(self._pages.items())

    def __len__(self) -> int:
        return self.page_count


class PDFReader:
    """PDF document reader producing PageIndexedText and the native outline."""

    def __init__(self, path: str | Path):
        """Load a PDF document.

        Args:
            path: Path to the PDF file.
        """
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"PDF not found: {self.path}")

        self._doc = fitz.open(str(self.path))

    @property
    def page_count(self) -> int:
        """Total number of pages in the document."""
        return len(self._doc)

    @property
    def filename(self) -> str:
        """Filename without path."""
        return self.path.name

    def read_page_texts(self) -> PageIndexedText:
        """Extract every page's text once."""
        return PageIndexedText([page.get_text() for page in self._doc])

    def get_toc(self) -> list[tuple[int, str, int]]:
        """Extract native TOC from PDF metadata.

        PyMuPDF returns TOC as list of [level, title, page_num] where:
        - level: nesting depth (1 = top level, 2 = subsection, etc.)
        - title: section title string
        - page_num: 1-indexed page number

        Returns:
            List of (level, title, page_num) tuples.
            Empty list if no TOC embedded in PDF.
        """
        if not self._doc:
            return []
        return [tuple(entry[:3]) for entry in self._doc.get_toc()]

    def close(self):
        """Close the document."""
        if self._doc:
            self._doc.close()
            self._doc = None

    def __enter__(self):
        return self

    def __exit__(self, _exc_type, _exc_val, _exc_tb):
        self.close()
        return False


def load_document_text(path: str | Path) -> tuple[PageIndexedText, list[tuple[int, str, int]]]:
    """Read a PDF's page text and native outline in one pass."""
    with PDFReader(path) as reader:
        return reader.read_page_texts(), reader.get_toc()
