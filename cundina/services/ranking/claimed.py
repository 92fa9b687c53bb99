"""
Claimed-set scanner.

A completed group is claimed once its owner advanced or cashed out.
The set is rebuilt from recent PayoutModule events and cached in the
query context.
"""

from loguru import logger

from cundina.config.constants import CLAIMED_SCAN_WINDOWS
from cundina.services.blockchain.chain_client import ChainClient
from cundina.services.blockchain.event_resolver import (
    ADVANCE_EXECUTED,
    CASHOUT_EXECUTED,
    decode_events,
)

from .context import QueryContext
from .log_scanner import LEDGER_READ_ERRORS, scan_recent_logs


class ClaimedScanner:
    """Builds the set of claimed group addresses."""

    def __init__(
        self,
        chain: ChainClient,
        payout_module_address: str,
        context: QueryContext,
    ) -> None:
        self.chain = chain
        self.payout_module_address = payout_module_address.lower()
        self.context = context

    async def claimed_groups(self) -> frozenset[str]:
        """
        Claimed group addresses (lower-case).

        A failed scan yields an empty set that is not cached.
        """
        cached = self.context.fresh_claimed()
        if cached is not None:
            return cached

        topics = [[ADVANCE_EXECUTED.topic, CASHOUT_EXECUTED.topic]]
        try:
            logs = await scan_recent_logs(
                self.chain,
                self.payout_module_address,
                topics,
                CLAIMED_SCAN_WINDOWS,
                label="claimed",
            )
        except LEDGER_READ_ERRORS as e:
            logger.warning(f"[ClaimedScanner] Payout event scan failed, assuming none claimed: {e}")
            return frozenset()

        claimed: set[str] = set()
        for decoder in (ADVANCE_EXECUTED, CASHOUT_EXECUTED):
            for event in decode_events(logs, decoder, emitter=self.payout_module_address):
                claimed.add(event["blockAddr"])

        result = frozenset(claimed)
        self.context.store_claimed(result)
        logger.debug(f"[ClaimedScanner] {len(result)} claimed groups")
        return result
