"""Prompt for merging partial analyses into one."""

import json

from .chunk_prompt import RISK_RUBRIC


def build_reduce_prompt(partials: list[dict]) -> str:
    """Build the merge prompt.

    Args:
        partials: Per-chunk results in document order, as plain dicts

    Returns:
        Prompt asking for a single merged analysis
    """
    return f"""Merge these partial analyses for ONE contract into a single final JSON.
- Year-7 reading level; dedupe similar points; prefer numbers.
- First negotiation_levers item must be one clear numeric ask.
- Recalculate risk using the same rule.

{RISK_RUBRIC}

Return STRICT JSON only.
PARTIALS:
{json.dumps(partials, ensure_ascii=False)}"""
