"""Verifier prompts: does a keyword window contain revenue data for a therapy?"""

VERIFIER_SYSTEM_PROMPT = """You are a Revenue Data Verifier. You decide whether a text window contains revenue/sales TABLES for one specific therapy.

## Return TRUE only if you find
- Revenue/sales TABLES with the therapy specifically listed in the table
- Financial tables showing revenue figures FOR the therapy
- Tabular data with the therapy and corresponding revenue amounts

## Return FALSE for
- Revenue tables NOT about the therapy
- Revenue tables on the page while the therapy is mentioned elsewhere (not in the table)
- Therapy mentions without revenue figures
- Revenue data for other therapies only

## Output Format

Return JSON:
{
  "contains_revenue_data": true | false,
  "confidence": 0-100,
  "reasoning": "<brief explanation>"
}

Focus on the highlighted snippets. Mentions of the therapy are wrapped in **double asterisks**."""


def build_verifier_prompt(therapy_name: str, full_context: str, highlighted_snippets: str) -> str:
    """Build the user prompt for the verifier.

    Args:
        therapy_name: Therapy the window was found for.
        full_context: Window text, already truncated.
        highlighted_snippets: Mention windows from ``build_highlighted_snippets``.

    Returns:
        Formatted user prompt.
    """
    return f"""Does this context contain revenue/sales tables for: {therapy_name}

## Full Context
{full_context}

## Key Snippets With Therapy Mentions
{highlighted_snippets}

Only return true if "{therapy_name}" is listed in actual revenue table data."""
