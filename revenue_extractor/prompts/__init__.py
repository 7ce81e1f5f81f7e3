"""Prompt templates for LLM agents.

Each module contains the system prompts and user prompt builders
for a specific agent type.
"""

from revenue_extractor.prompts.classifier_prompt import CLASSIFIER_SYSTEM_PROMPT, build_classifier_prompt
from revenue_extractor.prompts.structure_prompt import (
    TOC_SYSTEM_PROMPT,
    STRUCTURE_SYSTEM_PROMPT,
    build_toc_prompt,
    build_structure_prompt,
)
from revenue_extractor.prompts.verifier_prompt import VERIFIER_SYSTEM_PROMPT, build_verifier_prompt
from revenue_extractor.prompts.revenue_prompt import REVENUE_SYSTEM_PROMPT, build_revenue_prompt
from revenue_extractor.prompts.business_prompt import BUSINESS_SYSTEM_PROMPT, build_business_prompt

__all__ = [
    # Classifier
    "CLASSIFIER_SYSTEM_PROMPT",
    "build_classifier_prompt",
    # Structure
    "TOC_SYSTEM_PROMPT",
    "STRUCTURE_SYSTEM_PROMPT",
    "build_toc_prompt",
    "build_structure_prompt",
    # Verifier
    "VERIFIER_SYSTEM_PROMPT",
    "build_verifier_prompt",
    # Revenue
    "REVENUE_SYSTEM_PROMPT",
    "build_revenue_prompt",
    # Business
    "BUSINESS_SYSTEM_PROMPT",
    "build_business_prompt",
]
