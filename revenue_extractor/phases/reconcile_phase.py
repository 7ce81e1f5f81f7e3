"""Reconcile phase - merges every track's results into one answer."""

from dataclasses import dataclass

from revenue_extractor.core import NothingToReconcileError
from revenue_extractor.core.reconciler import ReconciliationReport, reconcile_with_report
from revenue_extractor.phases.phase_base import PhaseRunner
from revenue_extractor.pydantic_models import ExtractionResult, ReconciledResult


def drop_empty_results(results: list[ExtractionResult]) -> list[ExtractionResult]:
    """Results without records carry no facts and would only dilute confidence."""
    return [r for r in results if r.revenue_records]


@dataclass
class ReconcileResult:
    """Result from the reconcile phase."""

    reconciled: ReconciledResult
    report: ReconciliationReport
    dropped_empty: int = 0


class ReconcilePhase(PhaseRunner[ReconcileResult]):
    """Phase 7: Reconciliation.

    Input order is structure-track results followed by keyword-track results,
    each in snippet order, so reruns over the same results are reproducible.
    """

    name = "Reconcile"

    async def run(self) -> ReconcileResult:
        state = self.context.state
        all_results = state.structure_results + state.keyword_results
        results = drop_empty_results(all_results)
        dropped = len(all_results) - len(results)

        self.start(len(results))
        if dropped:
            self.log(f"Dropped {dropped} results without revenue records", "debug")

        if not results:
            raise NothingToReconcileError(
                f"No revenue results to reconcile ({len(all_results)} snippet results, all empty)"
            )

        reconciled, report = reconcile_with_report(results, epsilon=self.context.epsilon)
        state.reconciled = reconciled

        for resolution in report.resolutions:
            self.log(
                f"{resolution.key}: {resolution.resolution.value} "
                f"({resolution.existing_amount} @ {resolution.existing_confidence} vs "
                f"{resolution.candidate_amount} @ {resolution.candidate_confidence})",
                "debug",
            )

        self.logger.phase_result(
            "Reconcile",
            f"{len(reconciled.revenue_records)} records",
            confidence=reconciled.confidence,
            sources=len(reconciled.sources),
            **report.summary(),
        )
        self.end()
        return ReconcileResult(reconciled=reconciled, report=report, dropped_empty=dropped)
