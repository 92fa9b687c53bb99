"""
Dual-source query engine.

Serves group rankings from the indexed graph service and falls back to
direct ledger reads when that service errors, is rate limited, or has
nothing to say. Results are cached per (level, status) in the shared
query context; a stale result beats an empty one.
"""

from loguru import logger

from cundina.models.group import GroupRecord, GroupStatus
from cundina.utils.exceptions import (
    GraphCooldownError,
    GraphError,
    GraphRateLimitedError,
)

from .aggregator import mark_claimed, rank_groups
from .claimed import ClaimedScanner
from .context import QueryContext
from .indexer_source import IndexerGroupSource
from .ledger_source import LedgerGroupSource
from .log_scanner import LEDGER_READ_ERRORS


class DualSourceQueryEngine:
    """
    Ranking reads with cache, cooldown-aware indexer and ledger fallback.

    Never raises from ``fetch_groups``: the worst case is an empty list.
    """

    def __init__(
        self,
        indexer: IndexerGroupSource | None,
        ledger: LedgerGroupSource,
        claimed: ClaimedScanner,
        context: QueryContext,
    ) -> None:
        self.indexer = indexer
        self.ledger = ledger
        self.claimed = claimed
        self.context = context

    async def fetch_groups(self, level: int, status: GroupStatus | str) -> list[GroupRecord]:
        """
        Ranked groups at a level with a given status.

        Args:
            level: Tier 1..7
            status: ``active``, ``completed`` or ``claimed``

        Returns:
            Groups sorted by queue priority
        """
        status = GroupStatus(status)

        cached = self.context.fresh_result(level, status)
        if cached is not None:
            logger.debug(f"[QueryEngine] Cache hit level={level} status={status.value}")
            return cached

        records = await self._from_indexer(level, status)
        if records is None:
            records = await self._from_ledger(level, status)

        if records:
            self.context.store_result(level, status, records)
            return records

        stale = self.context.stale_result(level, status)
        if stale:
            logger.info(f"[QueryEngine] Serving stale ranking level={level} status={status.value}")
            return stale
        return records

    async def _claimed_for(self, status: GroupStatus) -> frozenset[str]:
        # Active groups can never be claimed
        if status == GroupStatus.ACTIVE:
            return frozenset()
        return await self.claimed.claimed_groups()

    async def _from_indexer(self, level: int, status: GroupStatus) -> list[GroupRecord] | None:
        """
        Ranked indexer result.

        Returns:
            Ranked list (possibly empty) when the indexer knows the level,
            None when the ledger path must answer instead
        """
        if self.indexer is None or not self.indexer.available:
            return None
        if self.context.cooldown.in_cooldown():
            logger.info(
                f"[QueryEngine] Indexer cooling down "
                f"({self.context.cooldown.remaining_seconds()}s), using ledger"
            )
            return None

        try:
            groups, numbers = await self.indexer.fetch_level(level)
        except (GraphRateLimitedError, GraphCooldownError) as e:
            logger.warning(f"[QueryEngine] Indexer unavailable: {e}")
            return None
        except GraphError as e:
            logger.warning(f"[QueryEngine] Indexer query failed, falling back: {e}")
            self.context.cooldown.record_rate_limit()
            return None

        if not groups:
            if self.context.stale_result(level, status):
                logger.warning("[QueryEngine] Indexer returned nothing after earlier data")
                self.context.cooldown.record_rate_limit()
            return None

        self.context.numbering.remember(level, numbers)
        return rank_groups(groups, status, await self._claimed_for(status))

    async def _from_ledger(self, level: int, status: GroupStatus) -> list[GroupRecord]:
        try:
            groups, numbers = await self.ledger.fetch_level(level)
        except LEDGER_READ_ERRORS as e:
            logger.error(f"[QueryEngine] Ledger fallback failed for level {level}: {e}")
            return []

        if groups and self.context.numbering.numbers_for_level(level) is None:
            self.context.numbering.remember(level, numbers)
        return rank_groups(groups, status, await self._claimed_for(status))

    async def fetch_group_detail(self, address: str) -> GroupRecord | None:
        """
        One group with its sequence number and claimed flag.

        The sequence number comes from the level order cache and is None
        until the group's level has been ranked once.
        """
        address = address.lower()
        record: GroupRecord | None = None

        if self.indexer is not None and self.indexer.available and not self.context.cooldown.in_cooldown():
            try:
                record = await self.indexer.fetch_group(address)
            except GraphError as e:
                logger.warning(f"[QueryEngine] Indexer detail failed, falling back: {e}")

        if record is None:
            record = await self.ledger.read_group(address)
        if record is None:
            return None

        record.sequence_number = self.context.numbering.number_for(address, record.level)
        (record,) = mark_claimed([record], await self._claimed_for(record.status))
        return record

    async def fetch_member_groups(self, member: str) -> list[str]:
        """Addresses of groups owned by a member."""
        if self.indexer is not None and self.indexer.available and not self.context.cooldown.in_cooldown():
            try:
                groups = await self.indexer.fetch_member_groups(member)
                if groups:
                    return groups
            except GraphError as e:
                logger.warning(f"[QueryEngine] Indexer member lookup failed: {e}")

        try:
            return await self.ledger.fetch_member_groups(member)
        except LEDGER_READ_ERRORS as e:
            logger.error(f"[QueryEngine] Member lookup failed: {e}")
            return []

    def invalidate(self) -> None:
        self.context.invalidate()
