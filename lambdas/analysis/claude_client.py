"""Claude API client returning structured analyses."""

import anthropic
from aws_lambda_powertools import Logger

from shared.exceptions import (
    FatalProviderError,
    MalformedOutputError,
    ProviderError,
    TransientProviderError,
)
from shared.modes import Policy

from .analyzer import AnalyzerResponse
from .parser import parse_analysis_payload

logger = Logger(child=True)

PROVIDER = "claude"


def classify_anthropic_error(error: anthropic.APIError) -> ProviderError:
    """Map an SDK error to a transient or fatal provider error.

    Rate limits, overload (529), 5xx, timeouts and connection failures
    are transient.
    """
    if isinstance(error, anthropic.APIConnectionError):
        return TransientProviderError(f"Claude connection error: {error}", provider=PROVIDER)
    if isinstance(error, anthropic.APIStatusError):
        status = error.status_code
        message = f"Claude API error {status}: {error.message}"
        if status == 429 or status >= 500:
            return TransientProviderError(message, provider=PROVIDER)
        return FatalProviderError(message, provider=PROVIDER)
    return FatalProviderError(f"Claude API error: {error}", provider=PROVIDER)


class ClaudeClient:
    """Wrapper for Claude API forcing schema-shaped output via a tool call."""

    name = PROVIDER
    TOOL_NAME = "record_analysis"
    TIMEOUT_SECONDS = 60.0
    TEMPERATURE = 0.2

    def __init__(self, api_key: str):
        """Initialize Claude client.

        SDK retries are disabled; the orchestrator owns retry policy.

        Args:
            api_key: Anthropic API key
        """
        self.client = anthropic.Anthropic(
            api_key=api_key,
            timeout=self.TIMEOUT_SECONDS,
            max_retries=0,
        )

    def model_for(self, policy: Policy) -> str:
        """Claude model follows the active mode's policy."""
        return policy.model

    def generate(
        self,
        prompt: str,
        schema: dict,
        max_output_tokens: int,
        model: str,
    ) -> AnalyzerResponse:
        """Ask Claude for an analysis matching schema.

        Args:
            prompt: Chunk or reduce prompt
            schema: JSON schema for the tool input
            max_output_tokens: Output budget for this call
            model: Claude model identifier

        Returns:
            AnalyzerResponse with the parsed result and reported usage

        Raises:
            TransientProviderError: Retryable API failure
            FatalProviderError: Any other API failure or unusable output
        """
        try:
            response = self.client.messages.create(
                model=model,
                max_tokens=max_output_tokens,
                temperature=self.TEMPERATURE,
                tools=[
                    {
                        "name": self.TOOL_NAME,
                        "description": "Record the structured contract analysis.",
                        "input_schema": schema,
                    }
                ],
                tool_choice={"type": "tool", "name": self.TOOL_NAME},
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as e:
            error = classify_anthropic_error(e)
            logger.error(
                "Claude API error",
                extra={
                    "model": model,
                    "error": str(e),
                    "transient": isinstance(error, TransientProviderError),
                },
            )
            raise error from e

        tool_use = next(
            (block for block in response.content if getattr(block, "type", None) == "tool_use"),
            None,
        )
        if tool_use is None:
            raise MalformedOutputError("Claude returned no tool call", provider=PROVIDER)

        result = parse_analysis_payload(tool_use.input, provider=PROVIDER)

        usage = response.usage
        logger.info(
            "Claude API usage",
            extra={
                "model": model,
                "input_tokens": usage.input_tokens,
                "output_tokens": usage.output_tokens,
                "stop_reason": getattr(response, "stop_reason", None),
            },
        )

        return AnalyzerResponse(
            result=result,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )
