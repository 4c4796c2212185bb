"""Utility functions for Clause Guard Lambda handlers."""
import hashlib


def get_header(headers: dict[str, str] | None, name: str) -> str | None:
    """Look up a request header case-insensitively.

    Args:
        headers: Request headers dict (may be None)
        name: Header name

    Returns:
        Header value or None if not found
    """
    if not headers:
        return None
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def fingerprint_bytes(data: bytes) -> str:
    """Deterministic content hash used to key cached analyses.

    Args:
        data: Raw document bytes

    Returns:
        SHA-256 hex digest
    """
    return hashlib.sha256(data).hexdigest()
