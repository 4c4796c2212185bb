"""Mistral prompt format builder."""

import json


def build_mistral_prompt(prompt: str, schema: dict) -> str:
    """Build Mistral-formatted prompt asking for schema-shaped JSON.

    Mistral has no structured-output mode on Bedrock, so the schema is
    embedded in the instruction and the reply is parsed afterwards.

    Args:
        prompt: Task prompt (chunk or reduce)
        schema: JSON schema the reply must match

    Returns:
        Formatted prompt string for Mistral
    """
    return f"""<s>[INST] {prompt}

Reply with a single JSON object inside a ```json code block. It must match this JSON schema:
{json.dumps(schema)} [/INST]"""
