from __future__ import annotations

import random
from typing import Any, Optional


def random_delay_ms(min_ms: int, max_ms: int, *, scale: float = 1.0, rng: Optional[random.Random] = None) -> int:
    if max_ms < min_ms:
        min_ms, max_ms = max_ms, min_ms
    r = rng or random
    return max(0, int(r.randint(int(min_ms), int(max_ms)) * max(0.0, scale)))


def human_pause(page: Any, min_ms: int = 1000, max_ms: int = 3000, *, scale: float = 1.0) -> int:
    """
    Wait a random amount of time on `page` so the automation doesn't act at machine speed.

    Returns the number of milliseconds waited.
    """
    ms = random_delay_ms(min_ms, max_ms, scale=scale)
    if ms > 0:
        page.wait_for_timeout(ms)
    return ms
