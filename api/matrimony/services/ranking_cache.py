import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass
class CachedRanking:
    viewer_id: str
    ranked: list[Any]
    total_considered: int
    expires_at: float

    def contains(self, user_id: str) -> bool:
        return any(getattr(r, "user_id", None) == user_id for r in self.ranked)


class InMemoryRankingCache:
    """Ranked candidate lists per viewer, so paging does not re-score the pool."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[tuple[str, ...], CachedRanking] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: tuple[str, ...]) -> CachedRanking | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at <= now:
                del self._entries[key]
                return None
            return entry

    def set(self, key: tuple[str, ...], viewer_id: str, ranked: list[Any], total_considered: int, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            return
        entry = CachedRanking(
            viewer_id=viewer_id,
            ranked=list(ranked),
            total_considered=total_considered,
            expires_at=self._clock() + ttl_seconds,
        )
        with self._lock:
            self._entries[key] = entry

    def invalidate_user(self, user_id: str) -> int:
        """Drop rankings owned by ``user_id`` and every ranking that lists them."""
        with self._lock:
            stale = [k for k, e in self._entries.items() if e.viewer_id == user_id or e.contains(user_id)]
            for k in stale:
                del self._entries[k]
        if stale:
            logger.info("[CACHE] invalidated %s rankings for user_id=%s", len(stale), user_id)
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


ranking_cache = InMemoryRankingCache()
