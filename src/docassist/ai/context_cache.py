"""Document-context cache for AI prompts.

Large document text dominates the size of every AI request. The cache keeps
the last text sent for a document and hands it back on follow-up requests that
arrive inside the freshness window, trading a short staleness window for
much smaller payload churn.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from ..documents.models import DocumentSnapshot

__all__ = [
    "ContextCache",
    "CacheEntry",
    "CacheConfig",
    "CacheStats",
    "DEFAULT_FRESHNESS_WINDOW_MS",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_FRESHNESS_WINDOW_MS = 5_000


# -----------------------------------------------------------------------------
# Cache Configuration
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class CacheConfig:
    """Configuration for the context cache.

    Attributes:
        freshness_window_ms: Age past which an entry must be rebuilt.
        max_entries: Number of documents kept at once. ``1`` keeps a single
            working document; caching another document evicts it.
        track_stats: Whether to track cache statistics.
    """

    freshness_window_ms: int = DEFAULT_FRESHNESS_WINDOW_MS
    max_entries: int = 1
    track_stats: bool = True

    @property
    def freshness_window(self) -> timedelta:
        return timedelta(milliseconds=self.freshness_window_ms)


# -----------------------------------------------------------------------------
# Cache Entry
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class CacheEntry:
    """Document text as it was last sent to the model."""

    document_id: str
    content: str
    captured_at: datetime


# -----------------------------------------------------------------------------
# Cache Statistics
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class CacheStats:
    """Statistics for cache operations.

    Attributes:
        hits: Requests answered from a cached entry.
        refreshes: Requests that rebuilt the entry (includes forced ones).
        forced: Refreshes requested by the caller.
        evictions: Entries dropped to honour ``max_entries``.
        invalidations: Explicit invalidations.
    """

    hits: int = 0
    refreshes: int = 0
    forced: int = 0
    evictions: int = 0
    invalidations: int = 0

    @property
    def total_requests(self) -> int:
        return self.hits + self.refreshes

    @property
    def hit_rate(self) -> float:
        total = self.total_requests
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for logging."""
        return {
            "hits": self.hits,
            "refreshes": self.refreshes,
            "forced": self.forced,
            "evictions": self.evictions,
            "invalidations": self.invalidations,
            "total_requests": self.total_requests,
            "hit_rate": self.hit_rate,
        }

    def reset(self) -> None:
        self.hits = 0
        self.refreshes = 0
        self.forced = 0
        self.evictions = 0
        self.invalidations = 0


# -----------------------------------------------------------------------------
# Context Cache
# -----------------------------------------------------------------------------


class ContextCache:
    """Thread-safe cache of the document text embedded in AI prompts.

    Example:
        >>> cache = ContextCache()
        >>> text = cache.get_context(snapshot)
        >>> again = cache.get_context(later_snapshot)  # reused within 5 s
    """

    def __init__(self, config: CacheConfig | None = None) -> None:
        self._config = config or CacheConfig()
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.RLock()
        self._stats = CacheStats() if self._config.track_stats else None
        self._last_hit = False

    @property
    def config(self) -> CacheConfig:
        return self._config

    @property
    def stats(self) -> CacheStats | None:
        """Cache statistics (None if tracking disabled)."""
        return self._stats

    @property
    def last_hit(self) -> bool:
        """Whether the most recent :meth:`get_context` call reused an entry."""
        return self._last_hit

    def get_context(self, snapshot: DocumentSnapshot, force_refresh: bool = False) -> str:
        """Return the document text to embed in the next prompt.

        Rebuilds the entry from ``snapshot`` when forced, when no entry exists
        for the document, when the cached content is empty, or when the
        snapshot was captured more than the freshness window after the entry.
        Otherwise returns the previously cached text, which may be older than
        ``snapshot.full_text``.
        """
        with self._lock:
            entry = self._entries.get(snapshot.document_id)
            if entry is not None and not force_refresh and not self._is_stale(entry, snapshot):
                self._entries.move_to_end(snapshot.document_id)
                self._last_hit = True
                if self._stats:
                    self._stats.hits += 1
                return entry.content

            self._store(
                CacheEntry(
                    document_id=snapshot.document_id,
                    content=snapshot.full_text,
                    captured_at=snapshot.captured_at,
                )
            )
            self._last_hit = False
            if self._stats:
                self._stats.refreshes += 1
                if force_refresh:
                    self._stats.forced += 1
            LOGGER.debug(
                "Context refreshed for %s (forced=%s, %d chars)",
                snapshot.document_id,
                force_refresh,
                len(snapshot.full_text),
            )
            return snapshot.full_text

    def peek(self, document_id: str) -> CacheEntry | None:
        """Return the entry for ``document_id`` without touching recency."""
        with self._lock:
            return self._entries.get(document_id)

    def invalidate(self, document_id: str) -> bool:
        with self._lock:
            if document_id in self._entries:
                del self._entries[document_id]
                if self._stats:
                    self._stats.invalidations += 1
                LOGGER.debug("Invalidated context for %s", document_id)
                return True
            return False

    def invalidate_all(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            if self._stats:
                self._stats.invalidations += count
            return count

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def _is_stale(self, entry: CacheEntry, snapshot: DocumentSnapshot) -> bool:
        if entry.document_id != snapshot.document_id:
            return True
        if not entry.content:
            return True
        return snapshot.captured_at - entry.captured_at > self._config.freshness_window

    def _store(self, entry: CacheEntry) -> None:
        if entry.document_id in self._entries:
            self._entries[entry.document_id] = entry
            self._entries.move_to_end(entry.document_id)
            return
        limit = max(1, self._config.max_entries)
        while len(self._entries) >= limit:
            evicted_id, _ = self._entries.popitem(last=False)
            if self._stats:
                self._stats.evictions += 1
            LOGGER.debug("Evicted context for %s", evicted_id)
        self._entries[entry.document_id] = entry
