"""In-memory TTL cache for price histories, injected into providers."""

from __future__ import annotations

import time
from typing import Callable, Optional

from tradelens.core.config import settings
from tradelens.core.logging import get_logger
from tradelens.quant_engine.types import PriceBar

logger = get_logger("data_providers.cache")


def cache_key(*parts: str | int) -> str:
    """
    Generate a consistent cache key from parts.

    Usage:
        cache_key("AAPL", "stocks", 400) -> "history:AAPL:stocks:400"
    """
    sanitized = [str(part).replace(":", "_") for part in parts]
    return f"history:{':'.join(sanitized)}"


class HistoryCache:
    """
    Process-local cache of fetched histories with a fixed TTL.

    Entries older than `ttl` seconds are treated as missing. An expired entry
    is evicted when read, and every write sweeps out all expired entries.
    A TTL of 0 disables caching.
    """

    def __init__(
        self,
        ttl: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = settings.history_cache_ttl if ttl is None else ttl
        self._clock = clock
        self._entries: dict[str, tuple[float, tuple[PriceBar, ...]]] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[list[PriceBar]]:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        stored_at, bars = entry
        if self._expired(stored_at, self._clock()):
            del self._entries[key]
            self.misses += 1
            logger.debug(f"Cache expired: {key}")
            return None

        self.hits += 1
        logger.debug(f"Cache hit: {key}")
        return list(bars)

    def set(self, key: str, bars: list[PriceBar]) -> None:
        if self.ttl <= 0:
            return
        now = self._clock()
        self._purge_expired(now)
        self._entries[key] = (now, tuple(bars))

    def _expired(self, stored_at: float, now: float) -> bool:
        return now - stored_at >= self.ttl

    def _purge_expired(self, now: float) -> None:
        stale = [key for key, (stored_at, _) in self._entries.items() if self._expired(stored_at, now)]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug(f"Cache purged {len(stale)} expired entries")

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, int]:
        return {"entries": len(self._entries), "hits": self.hits, "misses": self.misses}
