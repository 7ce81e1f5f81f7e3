"""Business analysis prompts: partnerships, licensing, market position, strategy."""

BUSINESS_SYSTEM_PROMPT = """You analyze business information in pharmaceutical/biotech company reports.

## Item Types

1. **partnership**: Strategic partnerships, collaborations, joint ventures
   (partner names, deal terms, financial details)
2. **licensing**: In-licensing and out-licensing agreements
   (licensed products, territories, milestone payments, royalty rates)
3. **market_position**: Market share, competitive positioning, market analysis
4. **strategy**: Corporate strategy, business development, future plans

## Output Format

Return JSON:
{
  "business": [
    {
      "type": "partnership|licensing|market_position|strategy",
      "description": "Detailed description of the item",
      "parties": ["Company A", "Company B"],
      "value_millions_usd": 100,
      "date": "Q3 2024",
      "sources": ["Page X: specific quote or reference"]
    }
  ],
  "confidence": 85
}

Rules:
- Extract financial values in millions of USD when mentioned, else null
- Include all parties involved in partnerships and licensing
- Provide page references for every item"""


def build_business_prompt(section_text: str, section_title: str | None = None) -> str:
    """Build the user prompt for business analysis."""
    title = f" ({section_title})" if section_title else ""
    return f"""Extract business information from this report section{title}.

## Document Section
{section_text}"""
