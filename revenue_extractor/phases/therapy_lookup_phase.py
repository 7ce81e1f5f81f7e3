"""Therapy lookup phase - registered therapies for the classified company."""

import asyncio
from dataclasses import dataclass

from revenue_extractor.core import NoRegisteredTherapiesError
from revenue_extractor.phases.phase_base import PhaseRunner
from revenue_extractor.pydantic_models import Therapy


@dataclass
class TherapyLookupResult:
    """Result from the therapy lookup phase."""

    company_name: str | None
    therapies: list[Therapy]


class TherapyLookupPhase(PhaseRunner[TherapyLookupResult]):
    """Phase 2: Therapy lookup.

    No company means no keyword search terms, which is fine: the structure
    track can still run. A company that is known but has nothing registered
    is a configuration problem and fails the job.
    """

    name = "Lookup"

    async def run(self) -> TherapyLookupResult:
        self.start()

        info = self.context.document_info
        company = info.company_name if info else None

        if not company:
            self.log("No registered company identified, skipping therapy lookup")
            self.context.therapies = []
            self.end()
            return TherapyLookupResult(company_name=None, therapies=[])

        therapies = await asyncio.to_thread(self.context.resources.therapy_lookup, company)
        if not therapies:
            raise NoRegisteredTherapiesError(company)

        self.context.therapies = therapies
        self.logger.phase_result(
            "Lookup",
            company,
            therapies=", ".join(t.name for t in therapies),
        )
        self.end()
        return TherapyLookupResult(company_name=company, therapies=therapies)
