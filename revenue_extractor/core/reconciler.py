"""Results reconciler - merges per-snippet extractions into one result.

Both tracks keep every raw per-snippet ExtractionResult, so the same revenue
fact usually arrives several times (a financial section and a keyword window
covering the same table). Reconciliation is a pure function over that list:

1. Records are keyed by ``lower(therapy) | period | lower(region)``.
2. The first record seen for a key is the running winner.
3. A later record within EPSILON of the winner's amount corroborates it.
   A later record further away is a genuine conflict and replaces the winner
   only when its extraction confidence is strictly higher.
4. Either way the later record's sources are unioned into the winner's.

Iteration order is the input order (structure track first, then keyword
track, each in snippet order), so reconciling the same list twice gives the
same output.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from enum import Enum

from revenue_extractor.core.config import ReconcileConfig
from revenue_extractor.core.errors import NothingToReconcileError
from revenue_extractor.pydantic_models import (
    ExtractionResult,
    ReconciledResult,
    RevenueRecord,
    SourceCitation,
)

_PAGE_PATTERN = re.compile(r"Page (\d+)", re.IGNORECASE)


class ResolutionStrategy(Enum):
    """How a duplicate record was resolved."""
    CORROBORATED = "corroborated"      # Amounts within epsilon, winner kept
    CONFIDENCE = "confidence"          # Conflict, higher confidence candidate won
    KEPT_EXISTING = "kept_existing"    # Conflict, candidate not strictly more confident


@dataclass
class ConflictResolution:
    """Record of how one duplicate record was handled."""
    key: str
    existing_amount: float
    existing_confidence: float
    candidate_amount: float
    candidate_confidence: float
    resolution: ResolutionStrategy

    @property
    def kept_amount(self) -> float:
        if self.resolution == ResolutionStrategy.CONFIDENCE:
            return self.candidate_amount
        return self.existing_amount


@dataclass
class ReconciliationReport:
    """Audit trail of one reconciliation."""
    input_results: int = 0
    input_records: int = 0
    resolutions: list[ConflictResolution] = field(default_factory=list)

    @property
    def conflicts(self) -> int:
        return sum(1 for r in self.resolutions if r.resolution != ResolutionStrategy.CORROBORATED)

    @property
    def corroborations(self) -> int:
        return sum(1 for r in self.resolutions if r.resolution == ResolutionStrategy.CORROBORATED)

    def summary(self) -> dict:
        return {
            "input_results": self.input_results,
            "input_records": self.input_records,
            "duplicates": len(self.resolutions),
            "conflicts": self.conflicts,
            "corroborations": self.corroborations,
        }


@dataclass
class _Winner:
    record: RevenueRecord
    confidence: float
    sources: dict[str, None]  # ordered set


def parse_citation(source: str) -> SourceCitation | None:
    """Parse a citation string; None when it names no page."""
    match = _PAGE_PATTERN.search(source)
    if not match:
        return None
    page = int(match.group(1))
    if page < 1:
        return None
    return SourceCitation(page=page, quote=source)


def collect_sources(records: list[RevenueRecord]) -> list[SourceCitation]:
    """Citations from every record, deduplicated by (page, quote), sorted by page."""
    seen: set[tuple[int, str]] = set()
    citations: list[SourceCitation] = []
    for record in records:
        for source in record.sources:
            citation = parse_citation(source)
            if citation is None:
                continue
            key = (citation.page, citation.quote)
            if key not in seen:
                seen.add(key)
                citations.append(citation)
    return sorted(citations, key=lambda c: c.page)


def aggregate_confidence(results: list[ExtractionResult]) -> int:
    """Mean confidence of all input results, rounded half up."""
    mean = sum(r.confidence for r in results) / len(results)
    return int(math.floor(mean + 0.5))


def reconcile_with_report(
    results: list[ExtractionResult],
    epsilon: float = ReconcileConfig.EPSILON,
) -> tuple[ReconciledResult, ReconciliationReport]:
    """Merge extraction results and return the audit trail alongside.

    Args:
        results: Per-snippet results in track-then-snippet order.
        epsilon: Largest amount difference treated as the same fact.

    Returns:
        Tuple of (reconciled result, report).

    Raises:
        NothingToReconcileError: If ``results`` is empty.
    """
    if not results:
        raise NothingToReconcileError()

    all_records = [record for result in results for record in result.revenue_records]
    report = ReconciliationReport(input_results=len(results), input_records=len(all_records))
    confidence = aggregate_confidence(results)

    if len(results) == 1:
        reconciled = ReconciledResult(
            revenue_records=list(results[0].revenue_records),
            confidence=confidence,
            sources=collect_sources(all_records),
        )
        return reconciled, report

    winners: dict[str, _Winner] = {}
    for result in results:
        for record in result.revenue_records:
            key = record.dedup_key
            winner = winners.get(key)
            if winner is None:
                winners[key] = _Winner(record, result.confidence, dict.fromkeys(record.sources))
                continue

            difference = abs(winner.record.revenue_millions_usd - record.revenue_millions_usd)
            if difference <= epsilon:
                resolution = ResolutionStrategy.CORROBORATED
            elif result.confidence > winner.confidence:
                resolution = ResolutionStrategy.CONFIDENCE
            else:
                resolution = ResolutionStrategy.KEPT_EXISTING

            report.resolutions.append(ConflictResolution(
                key=key,
                existing_amount=winner.record.revenue_millions_usd,
                existing_confidence=winner.confidence,
                candidate_amount=record.revenue_millions_usd,
                candidate_confidence=result.confidence,
                resolution=resolution,
            ))

            if resolution == ResolutionStrategy.CONFIDENCE:
                winner.record = record
                winner.confidence = result.confidence
            winner.sources.update(dict.fromkeys(record.sources))

    merged = [
        w.record.model_copy(update={"sources": list(w.sources)})
        for w in winners.values()
    ]
    reconciled = ReconciledResult(
        revenue_records=merged,
        confidence=confidence,
        sources=collect_sources(all_records),
    )
    return reconciled, report


def reconcile(
    results: list[ExtractionResult],
    epsilon: float = ReconcileConfig.EPSILON,
) -> ReconciledResult:
    """Merge extraction results into one deduplicated, confidence-scored result.

    Raises:
        NothingToReconcileError: If ``results`` is empty.
    """
    reconciled, _ = reconcile_with_report(results, epsilon=epsilon)
    return reconciled
