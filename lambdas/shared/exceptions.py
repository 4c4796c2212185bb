"""Custom exceptions for Clause Guard."""


class ClauseGuardError(Exception):
    """Base exception for all service errors."""

    def __init__(self, message: str = "An error occurred") -> None:
        """Initialize exception with message.

        Args:
            message: Error message
        """
        self.message = message
        super().__init__(self.message)


class ConfigurationError(ClauseGuardError):
    """Configuration or environment error."""

    def __init__(self, message: str, config_key: str | None = None) -> None:
        """Initialize configuration error.

        Args:
            message: Error message
            config_key: Optional configuration key that caused the error
        """
        self.config_key = config_key
        super().__init__(message)


class AnalysisError(ClauseGuardError):
    """Request-facing failure with a stable code and HTTP status."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, mode: str | None = None) -> None:
        """Initialize analysis error.

        Args:
            message: Human-readable error message
            mode: Operating mode active when the error occurred
        """
        self.mode = mode
        super().__init__(message)

    def to_body(self) -> dict:
        """Render the error as a response body."""
        body = {"ok": False, "error": self.code, "message": self.message}
        if self.mode is not None:
            body["mode"] = self.mode
        return body


class Unauthenticated(AnalysisError):
    """Missing, invalid or mismatched credentials."""

    status_code = 401
    code = "unauthenticated"


class InvalidInput(AnalysisError):
    """Malformed request or unusable document."""

    status_code = 400
    code = "invalid_input"


class UnsupportedContentType(InvalidInput):
    """Document type is not on the allow-list."""

    status_code = 415
    code = "unsupported_type"


class TooLarge(AnalysisError):
    """Document exceeds the active mode's byte or page ceiling."""

    status_code = 413
    code = "too_large"


class BudgetExhausted(AnalysisError):
    """Monthly spend estimate reached the configured ceiling."""

    status_code = 402
    code = "budget_exhausted"


class DailyCapReached(AnalysisError):
    """User used up today's analyses."""

    status_code = 429
    code = "daily_cap_reached"


class UserBusy(AnalysisError):
    """User already has the maximum number of analyses in flight."""

    status_code = 429
    code = "user_busy"


class ServerBusy(AnalysisError):
    """Global concurrency ceiling reached."""

    status_code = 429
    code = "server_busy"


class FetchFailed(AnalysisError):
    """Document could not be downloaded."""

    code = "fetch_failed"


class ExtractionFailed(AnalysisError):
    """Text could not be extracted from the document."""

    code = "extraction_failed"


class ProviderFailed(AnalysisError):
    """Analyzer call failed fatally or ran out of retries."""

    code = "provider_failed"


class MergeFailed(AnalysisError):
    """Reduce step returned output that could not be used."""

    code = "merge_failed"


class UnexpectedFailure(AnalysisError):
    """Unclassified fault inside the pipeline."""

    code = "internal_error"


class ProviderError(ClauseGuardError):
    """Failure reported by an analyzer provider."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        """Initialize provider error.

        Args:
            message: Error message
            provider: Provider name (e.g., "claude", "mistral")
        """
        self.provider = provider
        super().__init__(message)


class TransientProviderError(ProviderError):
    """Rate limit, overload, timeout or internal error. Safe to retry."""


class FatalProviderError(ProviderError):
    """Any provider failure that retrying will not fix."""


class MalformedOutputError(FatalProviderError):
    """Provider output could not be parsed into an analysis result."""
