"""
Ranking event watcher.

Polls the Registry for new events and expires ranking caches shortly
after activity, leaving the indexer time to catch up first.
"""

import asyncio

from loguru import logger

from cundina.config.constants import EVENT_POLL_INTERVAL, INDEXING_DELAY
from cundina.models.chain import LogEntry
from cundina.services.blockchain.chain_client import ChainClient
from cundina.services.blockchain.event_resolver import (
    BLOCK_SETTLED,
    INVITE_COUNT_UPDATED,
    MEMBER_JOINED,
    MY_BLOCK_CREATED,
    USER_REGISTERED,
)

from .context import QueryContext
from .log_scanner import LEDGER_READ_ERRORS

# Provider answers that only mean "nothing to see yet"
KNOWN_RPC_ISSUES = (
    "invalid block range",
    "rate limit",
    "filter not found",
    "missing or invalid parameters",
)

WATCHED_EVENTS = (
    USER_REGISTERED,
    MEMBER_JOINED,
    MY_BLOCK_CREATED,
    INVITE_COUNT_UPDATED,
    BLOCK_SETTLED,
)


def summarize_events(logs: list[LogEntry]) -> dict[str, int]:
    """Count logs per event name; unknown topics count as ``other``."""
    counts: dict[str, int] = {}
    for log in logs:
        name = next((d.name for d in WATCHED_EVENTS if d.matches(log)), "other")
        counts[name] = counts.get(name, 0) + 1
    return counts


class RankingEventWatcher:
    """Debounced cache invalidation on Registry activity."""

    def __init__(
        self,
        chain: ChainClient,
        registry_address: str,
        context: QueryContext,
        poll_interval: float = EVENT_POLL_INTERVAL,
        indexing_delay: float = INDEXING_DELAY,
    ) -> None:
        self.chain = chain
        self.registry_address = registry_address.lower()
        self.context = context
        self.poll_interval = poll_interval
        self.indexing_delay = indexing_delay
        self._last_block: int | None = None
        self._pending: asyncio.Task | None = None

    @property
    def last_block(self) -> int | None:
        return self._last_block

    async def poll_once(self) -> int:
        """
        Check for Registry logs since the last poll.

        The first poll only records the current block.

        Returns:
            Number of new logs seen
        """
        latest = await self.chain.block_number()
        if self._last_block is None:
            self._last_block = latest
            logger.debug(f"[EventWatcher] Baseline at block {latest}")
            return 0
        if latest <= self._last_block:
            return 0

        try:
            logs = await self.chain.get_logs(
                self.registry_address, [], self._last_block + 1, latest
            )
        except LEDGER_READ_ERRORS as e:
            message = str(e).lower()
            if any(issue in message for issue in KNOWN_RPC_ISSUES):
                logger.debug(f"[EventWatcher] Ignoring provider hiccup: {e}")
            else:
                logger.warning(f"[EventWatcher] Log poll failed: {e}")
            return 0

        self._last_block = latest
        if logs:
            logger.info(
                f"[EventWatcher] Registry activity {summarize_events(logs)}, "
                f"refreshing rankings soon"
            )
            self._schedule_invalidation()
        return len(logs)

    def _schedule_invalidation(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.create_task(self._invalidate_later())

    async def _invalidate_later(self) -> None:
        await asyncio.sleep(self.indexing_delay)
        self.context.invalidate()

    async def run(self, stop_event: asyncio.Event) -> None:
        """Poll until ``stop_event`` is set."""
        logger.info(f"[EventWatcher] Watching Registry every {self.poll_interval}s")
        while not stop_event.is_set():
            try:
                await self.poll_once()
            except LEDGER_READ_ERRORS as e:
                logger.warning(f"[EventWatcher] Poll error: {e}")
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval)
            except TimeoutError:
                pass
        await self.stop()

    async def stop(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
            try:
                await self._pending
            except asyncio.CancelledError:
                pass
        self._pending = None
