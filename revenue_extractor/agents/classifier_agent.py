"""Classifier agent: who published this report, and for which period.

The classifier sees only the first pages. It is told which companies have
registered therapies and must answer with one of those names; the answer is
then snapped onto the registry with rapidfuzz so that small spelling drift
("Acme Therapeutics Inc" vs "Acme Therapeutics") still resolves.
"""

from rapidfuzz import fuzz, process, utils

from revenue_extractor.core.config import DEFAULT_MODELS, ClassifierConfig
from revenue_extractor.core.cost_tracker import CostTracker
from revenue_extractor.core.llm_client import LLMClient
from revenue_extractor.core.pdf_reader import PageIndexedText
from revenue_extractor.pydantic_models import DocumentInfo
from revenue_extractor.prompts.classifier_prompt import CLASSIFIER_SYSTEM_PROMPT, build_classifier_prompt


def snap_company_name(
    company_name: str | None,
    registered_companies: list[str],
    threshold: int = ClassifierConfig.COMPANY_MATCH_THRESHOLD,
) -> str | None:
    """Map a classifier answer onto the registry.

    "Not Registered" and blank answers become None. Exact (case-insensitive)
    and fuzzy matches return the registered spelling; anything else is kept
    as returned so the lookup phase can report it.
    """
    if company_name is None:
        return None
    name = company_name.strip()
    if not name or name.lower() == ClassifierConfig.NOT_REGISTERED.lower():
        return None

    for registered in registered_companies:
        if registered.lower() == name.lower():
            return registered

    if registered_companies:
        match = process.extractOne(
            name,
            registered_companies,
            scorer=fuzz.token_sort_ratio,
            processor=utils.default_process,
        )
        if match and match[1] >= threshold:
            return match[0]

    return name


async def run_classifier(
    pages: PageIndexedText,
    registered_companies: list[str],
    model: str = DEFAULT_MODELS["classifier"],
    cost_tracker: CostTracker | None = None,
) -> DocumentInfo:
    """Classify a document from its first pages.

    Args:
        pages: Page text of the document.
        registered_companies: Companies with registered therapies.
        model: LLM model to use.
        cost_tracker: Optional tracker to record token usage.

    Returns:
        DocumentInfo with the company snapped onto the registry.

    Raises:
        litellm / instructor exceptions: classification failures fail the job.
    """
    client = LLMClient(cost_tracker=cost_tracker)
    document_text = pages.first_pages(ClassifierConfig.FIRST_PAGES)[:ClassifierConfig.MAX_CHARS]

    info = await client.complete_structured(
        system_prompt=CLASSIFIER_SYSTEM_PROMPT,
        user_prompt=build_classifier_prompt(document_text, registered_companies),
        model=model,
        response_model=DocumentInfo,
        agent="classifier",
    )

    return info.model_copy(update={
        "company_name": snap_company_name(info.company_name, registered_companies),
    })
