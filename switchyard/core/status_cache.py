"""
In-memory cache for sync-status and liveness lookups.

Entries are keyed by (subject, dimension) and never expire on their own;
every write path that can change an answer invalidates it explicitly. A miss
always falls back to a direct probe, so the cache is never the source of
truth.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

logger = logging.getLogger(__name__)

LIVENESS = "liveness"
SYNC_PREFIX = "sync:"


def sync_dimension(target_id: str) -> str:
    return f"{SYNC_PREFIX}{target_id}"


@dataclass
class CacheEntry:
    value: Any
    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class StatusCache:
    """Thread-safe (subject, dimension) -> value map.

    Readers on the status queue and writers on the mutation queue may run on
    different threads, so every access takes the lock.
    """

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, subject: str, dimension: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get((subject, dimension))

    def put(self, subject: str, dimension: str, value: Any) -> CacheEntry:
        entry = CacheEntry(value)
        with self._lock:
            self._entries[(subject, dimension)] = entry
        return entry

    def get_or_compute(self, subject: str, dimension: str, probe: Callable[[], Any]) -> Any:
        """Cached value, or run `probe` and cache its result.

        The probe runs outside the lock; two concurrent misses may both probe,
        the later result wins.
        """
        entry = self.get(subject, dimension)
        if entry is not None:
            return entry.value
        value = probe()
        self.put(subject, dimension, value)
        return value

    def invalidate(self, subject: Optional[str] = None, dimension: Optional[str] = None) -> int:
        """Drop entries matching the given subject and/or dimension.

        With neither argument everything is dropped. A dimension ending in
        ':' matches as a prefix (e.g. "sync:" for every target).
        Returns the number of entries removed.
        """
        with self._lock:
            doomed = [
                key for key in self._entries
                if (subject is None or key[0] == subject)
                and (dimension is None or _dimension_matches(key[1], dimension))
            ]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.debug(f"Invalidated {len(doomed)} cache entries (subject={subject}, dimension={dimension})")
        return len(doomed)

    def replace_dimension(
        self, dimension: str, entries: Iterable[tuple[str, str, Any]]
    ) -> None:
        """Swap out every entry matching `dimension` for a fresh set in one step.

        `entries` are (subject, dimension, value) triples; used by bulk
        refreshes so readers never see a half-refreshed state.
        """
        fresh = {(s, d): CacheEntry(v) for s, d, v in entries}
        with self._lock:
            for key in [k for k in self._entries if _dimension_matches(k[1], dimension)]:
                del self._entries[key]
            self._entries.update(fresh)

    def snapshot(self) -> dict[tuple[str, str], Any]:
        with self._lock:
            return {key: entry.value for key, entry in self._entries.items()}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def _dimension_matches(actual: str, wanted: str) -> bool:
    if wanted.endswith(":"):
        return actual.startswith(wanted)
    return actual == wanted
