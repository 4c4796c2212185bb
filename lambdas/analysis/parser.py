"""Parser for turning analyzer output into AnalysisResult."""

import json
import re
from typing import Any

from aws_lambda_powertools import Logger
from pydantic import ValidationError

from shared.exceptions import MalformedOutputError

from .models import AnalysisResult

logger = Logger(child=True)

# Pattern to find JSON code blocks in the response
JSON_BLOCK_PATTERN = re.compile(r"```json\s*(.*?)```", re.DOTALL | re.IGNORECASE)

# Outermost JSON object when the model skips the code fence
RAW_JSON_PATTERN = re.compile(r"\{[\s\S]*\}")


def parse_analysis_payload(data: Any, provider: str | None = None) -> AnalysisResult:
    """Validate an already-decoded payload.

    Args:
        data: Decoded JSON (expected to be an object)
        provider: Provider name for error reporting

    Returns:
        Validated AnalysisResult

    Raises:
        MalformedOutputError: If the payload does not fit the schema
    """
    if not isinstance(data, dict):
        raise MalformedOutputError(
            f"Expected a JSON object, got {type(data).__name__}", provider=provider
        )
    try:
        return AnalysisResult.model_validate(data)
    except ValidationError as e:
        logger.warning("Analyzer output failed validation", extra={"error": str(e)})
        raise MalformedOutputError(
            f"Analyzer output failed validation: {e.error_count()} errors",
            provider=provider,
        ) from None


def parse_analysis_text(response_text: str, provider: str | None = None) -> AnalysisResult:
    """Parse raw model text into an AnalysisResult.

    Accepts a ```json fenced block, bare JSON, or JSON surrounded by prose.

    Args:
        response_text: Raw response text from the model
        provider: Provider name for error reporting

    Returns:
        Validated AnalysisResult

    Raises:
        MalformedOutputError: If no valid JSON object can be found
    """
    text = (response_text or "").strip()
    if not text:
        raise MalformedOutputError("Analyzer returned empty output", provider=provider)

    match = JSON_BLOCK_PATTERN.search(text)
    if match:
        text = match.group(1).strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        raw_match = RAW_JSON_PATTERN.search(text)
        if not raw_match:
            raise MalformedOutputError(
                "No JSON object found in analyzer output", provider=provider
            ) from None
        try:
            data = json.loads(raw_match.group())
        except json.JSONDecodeError as e:
            raise MalformedOutputError(
                f"Analyzer output is not valid JSON: {e}", provider=provider
            ) from None

    return parse_analysis_payload(data, provider=provider)
