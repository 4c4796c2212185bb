"""Download documents from presigned URLs."""

from dataclasses import dataclass

import httpx
from aws_lambda_powertools import Logger

from shared.exceptions import FetchFailed, TooLarge, UnsupportedContentType
from shared.modes import Mode

logger = Logger(child=True)

ALLOWED_CONTENT_TYPES = ("application/pdf", "text/plain", "application/octet-stream")
FETCH_TIMEOUT_SECONDS = 30.0


@dataclass
class FetchedFile:
    """Downloaded document bytes and their declared metadata."""

    content: bytes
    content_type: str
    content_length: int | None


def is_allowed_content_type(content_type: str) -> bool:
    """Check a content type against the allow-list (substring match)."""
    content_type = (content_type or "").lower()
    return any(allowed in content_type for allowed in ALLOWED_CONTENT_TYPES)


def _declared_length(headers: httpx.Headers) -> int | None:
    raw = headers.get("content-length")
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


class FileSource:
    """Fetches documents over HTTP with a size ceiling."""

    def __init__(self, client: httpx.Client | None = None):
        """Initialize file source.

        Args:
            client: Optional pre-configured httpx client (for testing)
        """
        self._client = client

    @property
    def client(self) -> httpx.Client:
        """Lazily created HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                timeout=FETCH_TIMEOUT_SECONDS, follow_redirects=True
            )
        return self._client

    def fetch(self, url: str, max_bytes: int, mode: Mode) -> FetchedFile:
        """Download a document.

        Reading stops as soon as the body passes max_bytes.

        Args:
            url: Presigned http(s) URL
            max_bytes: Byte ceiling from the active policy
            mode: Mode fixed for this request

        Returns:
            FetchedFile

        Raises:
            FetchFailed: Non-2xx status, timeout or transport error
            UnsupportedContentType: Content type not on the allow-list
            TooLarge: Declared or actual size above max_bytes
        """
        too_large = f"File too large for {mode.value} mode."
        try:
            with self.client.stream("GET", url, timeout=FETCH_TIMEOUT_SECONDS) as response:
                if not response.is_success:
                    raise FetchFailed(
                        f"Fetch failed: {response.status_code}", mode=mode.value
                    )

                content_type = response.headers.get("content-type", "").lower()
                if not is_allowed_content_type(content_type):
                    raise UnsupportedContentType(
                        f"Unsupported content-type: {content_type}", mode=mode.value
                    )

                declared = _declared_length(response.headers)
                if declared and declared > max_bytes:
                    raise TooLarge(too_large, mode=mode.value)

                body = bytearray()
                for part in response.iter_bytes():
                    body.extend(part)
                    if len(body) > max_bytes:
                        raise TooLarge(too_large, mode=mode.value)
        except httpx.TimeoutException as e:
            logger.warning("Document fetch timed out", extra={"error": str(e)})
            raise FetchFailed("Fetch timed out", mode=mode.value) from e
        except httpx.HTTPError as e:
            logger.warning("Document fetch failed", extra={"error": str(e)})
            raise FetchFailed(f"Fetch failed: {e}", mode=mode.value) from e

        logger.info(
            "Fetched document",
            extra={"content_type": content_type, "bytes": len(body)},
        )
        return FetchedFile(
            content=bytes(body),
            content_type=content_type,
            content_length=declared,
        )
