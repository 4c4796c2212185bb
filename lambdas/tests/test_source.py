"""Tests for document fetching."""

import httpx
import pytest

from analysis.source import FileSource, is_allowed_content_type
from shared.exceptions import FetchFailed, TooLarge, UnsupportedContentType
from shared.modes import Mode

URL = "https://files.example.com/contract.pdf?sig=abc"


def make_source(handler) -> FileSource:
    """FileSource backed by a mock transport."""
    return FileSource(client=httpx.Client(transport=httpx.MockTransport(handler)))


class TestAllowedContentTypes:
    """Tests for the content-type allow-list."""

    @pytest.mark.parametrize(
        "content_type",
        ["application/pdf", "text/plain; charset=utf-8", "APPLICATION/OCTET-STREAM"],
    )
    def test_allowed(self, content_type):
        """Listed types pass, with parameters and any case."""
        assert is_allowed_content_type(content_type) is True

    @pytest.mark.parametrize("content_type", ["text/html", "image/png", ""])
    def test_rejected(self, content_type):
        """Other types are rejected."""
        assert is_allowed_content_type(content_type) is False


class TestFileSource:
    """Tests for FileSource.fetch."""

    def test_fetch_success(self):
        """Body and metadata are returned."""
        source = make_source(
            lambda request: httpx.Response(
                200, headers={"content-type": "application/pdf"}, content=b"%PDF-1.7 data"
            )
        )

        fetched = source.fetch(URL, 1024, Mode.NORMAL)

        assert fetched.content == b"%PDF-1.7 data"
        assert fetched.content_type == "application/pdf"
        assert fetched.content_length == len(b"%PDF-1.7 data")

    def test_non_2xx(self):
        """Error statuses fail the fetch."""
        source = make_source(lambda request: httpx.Response(403, content=b"denied"))

        with pytest.raises(FetchFailed) as exc_info:
            source.fetch(URL, 1024, Mode.NORMAL)

        assert "403" in exc_info.value.message
        assert exc_info.value.mode == "normal"

    def test_unsupported_type(self):
        """HTML pages are refused with 415."""
        source = make_source(
            lambda request: httpx.Response(
                200, headers={"content-type": "text/html"}, content=b"<html></html>"
            )
        )

        with pytest.raises(UnsupportedContentType) as exc_info:
            source.fetch(URL, 1024, Mode.NORMAL)

        assert exc_info.value.status_code == 415

    def test_declared_length_too_large(self):
        """A declared size over the ceiling is refused."""
        source = make_source(
            lambda request: httpx.Response(
                200,
                headers={"content-type": "application/pdf", "content-length": "5000"},
                content=b"x" * 5000,
            )
        )

        with pytest.raises(TooLarge) as exc_info:
            source.fetch(URL, 1000, Mode.LIGHT)

        assert exc_info.value.message == "File too large for light mode."

    def test_streamed_body_too_large(self):
        """A body larger than the ceiling is refused without a declared size."""

        def stream():
            for _ in range(10):
                yield b"x" * 500

        source = make_source(
            lambda request: httpx.Response(
                200, headers={"content-type": "text/plain"}, content=stream()
            )
        )

        with pytest.raises(TooLarge):
            source.fetch(URL, 1000, Mode.CRITICAL)

    def test_body_at_ceiling_allowed(self):
        """A body exactly at the ceiling is accepted."""
        source = make_source(
            lambda request: httpx.Response(
                200, headers={"content-type": "text/plain"}, content=b"x" * 1000
            )
        )

        assert len(source.fetch(URL, 1000, Mode.NORMAL).content) == 1000

    def test_transport_error(self):
        """Connection failures fail the fetch."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        source = make_source(handler)

        with pytest.raises(FetchFailed):
            source.fetch(URL, 1024, Mode.NORMAL)

    def test_timeout(self):
        """Timeouts fail the fetch."""

        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        source = make_source(handler)

        with pytest.raises(FetchFailed) as exc_info:
            source.fetch(URL, 1024, Mode.NORMAL)

        assert "timed out" in exc_info.value.message
