"""Text extraction and normalization."""

import re
from dataclasses import dataclass

import fitz  # PyMuPDF
from aws_lambda_powertools import Logger

from shared.exceptions import ExtractionFailed, InvalidInput, UnsupportedContentType
from shared.modes import Mode, get_policy

from .source import FetchedFile

logger = Logger(child=True)

MIN_TEXT_CHARS = 80

_TRAILING_SPACE = re.compile(r"[ \t]+\n")
_EXTRA_NEWLINES = re.compile(r"\n{3,}")


@dataclass
class ExtractedText:
    """Normalized document text and the document's full page count."""

    text: str
    total_pages: int


def normalize_text(text: str) -> str:
    """Drop NULs, trailing spaces before newlines and extra blank lines."""
    text = text.replace("\x00", "")
    text = _TRAILING_SPACE.sub("\n", text)
    text = _EXTRA_NEWLINES.sub("\n\n", text)
    return text.strip()


def looks_like_pdf(content_type: str, url: str) -> bool:
    """PDF by content type, or octet-stream served from a .pdf URL."""
    content_type = content_type.lower()
    return "pdf" in content_type or (
        "octet-stream" in content_type and ".pdf" in url.lower()
    )


def looks_like_text(content_type: str, url: str) -> bool:
    """Plain text by content type or .txt URL."""
    return content_type.lower().startswith("text/") or url.lower().endswith(".txt")


def extract_pdf_text(data: bytes, page_cap: int) -> tuple[str, int]:
    """Read text from at most page_cap pages.

    Args:
        data: PDF bytes
        page_cap: Maximum number of pages to read

    Returns:
        Tuple of (text with pages separated by blank lines, total page count)
    """
    with fitz.open(stream=data, filetype="pdf") as doc:
        total_pages = doc.page_count
        parts = [doc[i].get_text() for i in range(min(total_pages, page_cap))]
    return "\n\n".join(parts), total_pages


def extract_text(file: FetchedFile, url: str, mode: Mode) -> ExtractedText:
    """Extract and normalize a document's text.

    Args:
        file: Fetched document
        url: Source URL, used to sniff the type of octet-stream bodies
        mode: Mode fixed for this request (supplies the page cap)

    Returns:
        ExtractedText

    Raises:
        UnsupportedContentType: Neither PDF nor plain text
        ExtractionFailed: PDF could not be parsed
        InvalidInput: Too little text after normalization
    """
    policy = get_policy(mode)

    if looks_like_pdf(file.content_type, url):
        try:
            text, total_pages = extract_pdf_text(file.content, policy.max_pages)
        except (RuntimeError, ValueError) as e:
            logger.warning("PDF extraction failed", extra={"error": str(e)})
            raise ExtractionFailed(
                f"Could not read PDF: {e}", mode=mode.value
            ) from e
        if total_pages > policy.max_pages:
            text += (
                f"\n\n[Truncated after {policy.max_pages} pages due to {mode.value} mode]"
            )
    elif looks_like_text(file.content_type, url):
        text = file.content.decode("utf-8", errors="replace")
        total_pages = 1
    else:
        raise UnsupportedContentType(
            f"Unsupported file type. content-type={file.content_type} url={url}",
            mode=mode.value,
        )

    text = normalize_text(text)
    if len(text) < MIN_TEXT_CHARS:
        raise InvalidInput("No meaningful text extracted.", mode=mode.value)

    logger.info(
        "Extracted document text",
        extra={"chars": len(text), "total_pages": total_pages},
    )
    return ExtractedText(text=text, total_pages=total_pages)
