"""
Query context.

Holds every piece of process-wide read state (response cache, claimed
set, level order, graph cooldown) in one explicit object shared by the
query engine, the orchestrators and the event watcher.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from cundina.config.constants import CLAIMED_CACHE_TTL, RANKING_CACHE_TTL
from cundina.models.group import GroupRecord, GroupStatus

from .block_numbering import BlockNumberingService
from .throttle import CooldownTracker


@dataclass
class CachedResult:
    records: list[GroupRecord]
    fetched_at: float


class QueryContext:
    """Caches and cooldown state for the dual-source query engine."""

    def __init__(
        self,
        ranking_ttl: float = RANKING_CACHE_TTL,
        claimed_ttl: float = CLAIMED_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ranking_ttl = ranking_ttl
        self.claimed_ttl = claimed_ttl
        self.clock = clock
        self.cooldown = CooldownTracker(clock=clock)
        self.numbering = BlockNumberingService(clock=clock)
        self._results: dict[tuple[int, GroupStatus], CachedResult] = {}
        self._claimed: tuple[frozenset[str], float] | None = None

    # Response cache

    def fresh_result(self, level: int, status: GroupStatus) -> list[GroupRecord] | None:
        entry = self._results.get((level, status))
        if entry is None or self.clock() - entry.fetched_at >= self.ranking_ttl:
            return None
        return entry.records

    def stale_result(self, level: int, status: GroupStatus) -> list[GroupRecord] | None:
        """Last stored result regardless of age."""
        entry = self._results.get((level, status))
        return entry.records if entry else None

    def store_result(self, level: int, status: GroupStatus, records: list[GroupRecord]) -> None:
        self._results[(level, status)] = CachedResult(list(records), self.clock())

    # Claimed-set cache

    def fresh_claimed(self) -> frozenset[str] | None:
        if self._claimed is None:
            return None
        claimed, fetched_at = self._claimed
        if self.clock() - fetched_at >= self.claimed_ttl:
            return None
        return claimed

    def store_claimed(self, claimed: frozenset[str]) -> None:
        self._claimed = (claimed, self.clock())

    # Invalidation

    def invalidate(self) -> None:
        """
        Expire cached results early; stale copies stay available.

        Level order is dropped as well.
        """
        for entry in self._results.values():
            entry.fetched_at = float("-inf")
        self._claimed = None
        self.numbering.clear()
        logger.info("[QueryContext] Ranking caches invalidated")

    def reset(self) -> None:
        """Drop all state, including cooldown and level order."""
        self._results.clear()
        self._claimed = None
        self.numbering.clear()
        self.cooldown.reset()
