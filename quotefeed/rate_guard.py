from __future__ import annotations

import time
from collections.abc import Callable
from datetime import UTC, datetime


class RateGuard:
    """
    Process-wide cooldown gate for the upstream provider.

    Once the provider reports quota exhaustion, every upstream call is refused
    until `blocked_until` passes. A plain float read/write is enough here: a
    racing reader can at worst make one extra call that the provider rejects.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self.blocked_until: float = 0.0

    def available(self) -> bool:
        return self._clock() > self.blocked_until

    def block(self, seconds: float) -> None:
        self.blocked_until = self._clock() + seconds

    def blocked_until_iso(self) -> str | None:
        if self.available():
            return None
        return datetime.fromtimestamp(self.blocked_until, tz=UTC).isoformat()
