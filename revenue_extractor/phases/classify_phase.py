"""Classify phase - company, report type and reporting period.

The classifier only sees the first pages. Missing fields are not an error:
an unknown company simply means no therapies to search for, and an unknown
period leaves record periods as the extractor reported them.
"""

from dataclasses import dataclass

from revenue_extractor.phases.phase_base import PhaseRunner
from revenue_extractor.agents.classifier_agent import run_classifier
from revenue_extractor.pydantic_models import DocumentInfo


@dataclass
class ClassifyResult:
    """Result from the classify phase."""

    document_info: DocumentInfo

    @property
    def is_registered(self) -> bool:
        return self.document_info.company_name is not None


class ClassifyPhase(PhaseRunner[ClassifyResult]):
    """Phase 1: Document classification.

    Errors from the classifier propagate; without classification the
    remaining phases have nothing to scope on.
    """

    name = "Classify"

    async def run(self) -> ClassifyResult:
        self.start(1, model=self.context.config.classifier_model)

        info = await run_classifier(
            self.context.pages,
            list(self.context.resources.registered_companies),
            model=self.context.config.classifier_model,
            cost_tracker=self.context.cost_tracker,
        )
        self.context.document_info = info

        missing = [
            name for name in ("company_name", "report_type", "reporting_period")
            if getattr(info, name) is None
        ]
        if missing:
            self.log(f"Classifier left fields empty: {', '.join(missing)}", "warning")

        self.logger.phase_result(
            "Classify",
            info.company_name or "unregistered company",
            type=info.report_type or "?",
            period=info.reporting_period or "?",
        )
        self.end()
        return ClassifyResult(document_info=info)
