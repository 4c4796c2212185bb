"""In-memory TTL cache for analyzer results."""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from aws_lambda_powertools import Logger

logger = Logger(child=True)

DEFAULT_TTL_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class CacheEntry:
    """Serialized payload with its expiry (epoch seconds)."""

    key: str
    payload: str
    expires_at: float


class ResultCache:
    """Content-addressed store for serialized partial and merged results.

    Entries are never updated in place; a write replaces the entry.
    Expired entries are evicted lazily when looked up. There is no size
    bound.
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] | None = None,
    ):
        """Initialize an empty cache.

        Args:
            ttl_seconds: Default lifetime for new entries
            clock: Returns current epoch seconds. Defaults to time.time.
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.time
        self._lock = threading.Lock()
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> str | None:
        """Get a payload, or None if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() > entry.expires_at:
                del self._entries[key]
                logger.debug("Cache entry expired", extra={"cache_key": key})
                return None
            return entry.payload

    def set(self, key: str, payload: str, ttl_seconds: int | None = None) -> CacheEntry:
        """Store a payload under key.

        Args:
            key: Deterministic cache key
            payload: Serialized result
            ttl_seconds: Lifetime override for this entry

        Returns:
            The stored CacheEntry
        """
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        entry = CacheEntry(key=key, payload=payload, expires_at=self._clock() + ttl)
        with self._lock:
            self._entries[key] = entry
        return entry

    def delete(self, key: str) -> None:
        """Drop an entry if present."""
        with self._lock:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def chunk_cache_key(
    fingerprint: str, index: int, provider: str, model: str, max_output_tokens: int
) -> str:
    """Cache key for one chunk's partial result."""
    return f"{fingerprint}:chunk:{index}:prov:{provider}:model:{model}:oot:{max_output_tokens}"


def merge_cache_key(
    fingerprint: str, provider: str, model: str, max_output_tokens: int
) -> str:
    """Cache key for the merged result of a whole document."""
    return f"{fingerprint}:merge:prov:{provider}:model:{model}:oot:{max_output_tokens}"
