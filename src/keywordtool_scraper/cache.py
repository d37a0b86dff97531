from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .models import KeywordResultSet


logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    value: KeywordResultSet
    stored_at: float


class ResponseCache:
    """
    In-process cache of successful scrape results keyed by `ScrapeRequest.cache_key()`.

    Lives for one process run; a ttl of 0 disables it.
    """

    def __init__(self, ttl_seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: dict[str, _Entry] = {}

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[KeywordResultSet]:
        if not self.enabled:
            return None
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        logger.info("Cache hit (key=%s)", key)
        return entry.value

    def set(self, key: str, value: KeywordResultSet) -> None:
        if not self.enabled:
            return
        self._entries[key] = _Entry(value=value, stored_at=self._clock())

    def clear(self) -> int:
        n = len(self._entries)
        self._entries.clear()
        return n
