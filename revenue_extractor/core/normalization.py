"""Normalization helpers for values returned by the revenue extractor.

The extraction service is untrusted input: amounts sometimes arrive as
strings ("$1.2 billion", "1,860"), periods in free form ("third quarter
2024", "FY2023") and regions as abbreviations. Everything here parses
explicitly and falls back to a typed default with a warning instead of
relying on implicit coercion.
"""

import logging
import re
from typing import Any

from revenue_extractor.core.config import ExtractionLimits

logger = logging.getLogger(__name__)


# =============================================================================
# Periods
# =============================================================================

_STANDARD_PERIOD = re.compile(r"^(Q[1-4] \d{4}|\d{4})$")
_YEAR = re.compile(r"\b((?:19|20)\d{2})\b")
_QUARTER_PATTERNS = (
    re.compile(r"\bQ\s?([1-4])\b", re.IGNORECASE),
    re.compile(r"\b([1-4])Q\b", re.IGNORECASE),
    re.compile(r"\b([1-4])(?:st|nd|rd|th)\s+quarter\b", re.IGNORECASE),
)
_QUARTER_WORDS = {
    "first": "1",
    "second": "2",
    "third": "3",
    "fourth": "4",
}
_QUARTER_WORD_PATTERN = re.compile(r"\b(first|second|third|fourth)\s+quarter\b", re.IGNORECASE)


def _find_quarter(period: str) -> str | None:
    for pattern in _QUARTER_PATTERNS:
        match = pattern.search(period)
        if match:
            return match.group(1)
    match = _QUARTER_WORD_PATTERN.search(period)
    if match:
        return _QUARTER_WORDS[match.group(1).lower()]
    return None


def normalize_period(period: str, context_period: str | None = None) -> str:
    """Normalize a period to ``Q[1-4] YYYY`` or ``YYYY``.

    Falls back to the document's reporting period when no year can be found,
    then to the raw value.

    Example:
        >>> normalize_period("third quarter 2024")
        'Q3 2024'
        >>> normalize_period("FY2023")
        '2023'
    """
    period = (period or "").strip()
    if _STANDARD_PERIOD.match(period):
        return period

    year_match = _YEAR.search(period)
    if year_match is None:
        # "FY2023" has no word boundary before the year
        year_match = re.search(r"((?:19|20)\d{2})", period)

    if year_match:
        quarter = _find_quarter(period)
        if quarter:
            return f"Q{quarter} {year_match.group(1)}"
        return year_match.group(1)

    return context_period or period


# =============================================================================
# Regions
# =============================================================================

REGION_ALIASES: dict[str, str] = {
    "us": "United States",
    "u.s.": "United States",
    "usa": "United States",
    "united states": "United States",
    "north america": "United States",
    "eu": "Europe",
    "europe": "Europe",
    "european union": "Europe",
    "japan": "Japan",
    "china": "China",
    "rest of world": "Rest of World",
    "rest of the world": "Rest of World",
    "row": "Rest of World",
    "international": "International",
    "global": "Global",
    "worldwide": "Global",
    "total": "Global",
}


def normalize_region(region: str | None) -> str:
    """Map a region alias to its canonical name; unknown regions pass through."""
    if not region or not region.strip():
        return "Global"
    return REGION_ALIASES.get(region.strip().lower(), region.strip())


# =============================================================================
# Amounts
# =============================================================================

_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")
_SCALES = (
    (re.compile(r"\b(?:billion|bn|b)\b", re.IGNORECASE), 1000.0),
    (re.compile(r"\b(?:thousand|k)\b", re.IGNORECASE), 0.001),
)


def parse_amount(value: Any, field_name: str = "revenue_millions_usd") -> float:
    """Parse a revenue amount in millions of USD.

    Numbers pass through; strings have currency symbols and thousands
    separators stripped and honour a trailing billion/thousand unit.
    Unparseable values become 0.0 and negative values are made absolute,
    both with a warning.
    """
    if isinstance(value, bool):
        logger.warning(f"Unparseable {field_name}: {value!r}, using 0")
        return 0.0

    if isinstance(value, (int, float)):
        amount = float(value)
    elif isinstance(value, str):
        cleaned = value.replace(",", "").strip()
        match = _NUMBER.search(cleaned)
        if match is None:
            logger.warning(f"Unparseable {field_name}: {value!r}, using 0")
            return 0.0
        amount = float(match.group(0))
        for pattern, factor in _SCALES:
            if pattern.search(cleaned[match.end():]):
                amount *= factor
                break
    else:
        logger.warning(f"Unparseable {field_name}: {value!r}, using 0")
        return 0.0

    if amount != amount:  # NaN
        logger.warning(f"Unparseable {field_name}: {value!r}, using 0")
        return 0.0
    if amount < 0:
        logger.warning(f"Negative {field_name} detected: {amount}, converting to positive")
        amount = abs(amount)
    if amount > ExtractionLimits.LARGE_REVENUE_WARNING:
        logger.warning(f"Extremely large {field_name}: {amount}, might be a conversion error")
    return amount


def parse_confidence(value: Any) -> float:
    """Parse a 0-100 confidence score; anything unparseable is 0."""
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    if confidence != confidence:
        return 0.0
    return max(0.0, min(100.0, confidence))


# =============================================================================
# Text filtering
# =============================================================================

_FINANCIAL_PATTERNS = (
    re.compile(r"[\$€£¥]\s*[\d,]+(?:\.\d+)?(?:\s*(?:million|billion|M|B))?", re.IGNORECASE),
    re.compile(r"\b\d+(?:\.\d+)?\s*(?:million|billion|M|B)\b", re.IGNORECASE),
    re.compile(r"\b(?:revenue|sales|income|earnings)\b", re.IGNORECASE),
    re.compile(r"\b(?:Q[1-4]|quarter|annual|year)\s+\d{4}\b", re.IGNORECASE),
)
_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")


def has_financial_data(text: str) -> bool:
    """True if the text carries currency amounts, scaled numbers or revenue vocabulary."""
    return any(pattern.search(text) for pattern in _FINANCIAL_PATTERNS)


def therapy_relevant_text(text: str, therapy_name: str) -> str:
    """Keep paragraphs mentioning the therapy (with one paragraph of context
    either side) plus any paragraph with financial data, in document order.
    """
    paragraphs = _PARAGRAPH_SPLIT.split(text)
    needle = therapy_name.lower()
    keep: set[int] = set()

    for index, paragraph in enumerate(paragraphs):
        if needle in paragraph.lower():
            keep.update(range(max(0, index - 1), min(len(paragraphs), index + 2)))
        elif has_financial_data(paragraph):
            keep.add(index)

    return "\n\n".join(paragraphs[i] for i in sorted(keep))


def truncate(text: str, max_chars: int) -> str:
    """Cut text to ``max_chars``, marking the cut with an ellipsis."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."
