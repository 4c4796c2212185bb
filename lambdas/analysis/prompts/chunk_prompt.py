"""Prompt for analyzing one excerpt of a contract."""

STYLE_RULES = """STYLE:
- Year-7 reading level. Max 12 words per sentence.
- Everyday words only: deal, payment, ending, fix, promise, owns, share, deadline, refund.
- Avoid words: clause, indemnify, perpetual, herein, pursuant, assignor/assignee, liability.
- Keep everything short: 1-2 sentences each.
- Pros/Cons titles: 3-6 words.
- red_flags.clause = short headline like "Label owns your songs".
- Each red flag must include "source_excerpt": a direct quote (max 30 words) copied from the contract that triggered it.
- Prefer numbers over vague words. If missing, suggest a range (e.g., "15-20%", "30-60 days")."""

RISK_RUBRIC = """RISK SCORING:
- Start at 70. Each red flag: -25 (high), -15 (medium), -8 (low). Each con: -4. Each pro: +4.
- Clamp 0-100. Map to labels."""


def build_chunk_prompt(excerpt: str) -> str:
    """Build the prompt for one chunk.

    Args:
        excerpt: Chunk text

    Returns:
        Prompt asking for a partial analysis of only this excerpt
    """
    return f"""You are helping someone who hates legal jargon review a contract.
Analyze ONLY the excerpt and return STRICT JSON that matches the schema.

{STYLE_RULES}

SUMMARY:
- 2-3 short sentences. Friendly, plain English. No recommendations.

TOP RECOMMENDATION:
- Put your single best numeric recommendation as the FIRST item in negotiation_levers.

{RISK_RUBRIC}

Return STRICT JSON only.

EXCERPT:
\"\"\"{excerpt}\"\"\""""
