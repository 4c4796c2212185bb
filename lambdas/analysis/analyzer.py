"""Interface shared by the external analyzer providers."""

from dataclasses import dataclass
from typing import Protocol

from shared.modes import Policy

from .models import AnalysisResult


@dataclass
class AnalyzerResponse:
    """Structured output from one analyzer call with usage estimates."""

    result: AnalysisResult
    input_tokens: int
    output_tokens: int


class Analyzer(Protocol):
    """Protocol for analyzer clients (Claude or Bedrock).

    Implementations raise TransientProviderError for retryable failures
    and FatalProviderError for everything else.
    """

    name: str

    def model_for(self, policy: Policy) -> str:
        """Model identifier to use under a policy."""
        ...

    def generate(
        self,
        prompt: str,
        schema: dict,
        max_output_tokens: int,
        model: str,
    ) -> AnalyzerResponse:
        """Run one structured generation call."""
        ...
