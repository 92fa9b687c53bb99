"""
Cooldown tracker for the indexed graph service.

After a rate-limit signal the service is skipped for a backoff window
that doubles per signal (capped) and resets on the next success.
"""

import math
import time
from collections.abc import Callable

from loguru import logger

from cundina.config.constants import GRAPH_COOLDOWN_BASE, GRAPH_COOLDOWN_MAX


class CooldownTracker:
    """Process-wide rate-limit state with an injectable monotonic clock."""

    def __init__(
        self,
        base_window: float = GRAPH_COOLDOWN_BASE,
        max_window: float = GRAPH_COOLDOWN_MAX,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.base_window = base_window
        self.max_window = max_window
        self._clock = clock
        self._window = base_window
        self._last_rate_limited_at: float | None = None

    @property
    def window(self) -> float:
        """Current backoff window in seconds."""
        return self._window

    def record_rate_limit(self) -> None:
        """Start (or extend) a cooldown and double the window."""
        self._last_rate_limited_at = self._clock()
        self._window = min(self._window * 2, self.max_window)
        logger.warning(f"[Throttle] Indexed graph rate limited, cooling down for {self._window:.0f}s")

    def record_success(self) -> None:
        if self._last_rate_limited_at is not None:
            logger.info("[Throttle] Indexed graph recovered, cooldown cleared")
        self.reset()

    def in_cooldown(self) -> bool:
        if self._last_rate_limited_at is None:
            return False
        return self._clock() - self._last_rate_limited_at < self._window

    def remaining_seconds(self) -> int:
        """Whole seconds left in the cooldown, rounded up; 0 when idle."""
        if not self.in_cooldown():
            return 0
        elapsed = self._clock() - self._last_rate_limited_at
        return max(0, math.ceil(self._window - elapsed))

    def reset(self) -> None:
        self._window = self.base_window
        self._last_rate_limited_at = None
