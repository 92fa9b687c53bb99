"""
Ledger log scanner.

eth_getLogs over the most recent blocks, retrying with progressively
smaller windows when the provider refuses a range.
"""

from collections.abc import Sequence
from typing import Any

import aiohttp
from loguru import logger
from web3.exceptions import Web3Exception

from cundina.models.chain import LogEntry
from cundina.services.blockchain.chain_client import ChainClient
from cundina.utils.exceptions import CundinaError
from cundina.utils.security import mask_address

# Errors a direct ledger read may raise; the read path absorbs these
LEDGER_READ_ERRORS = (
    CundinaError,
    Web3Exception,
    ValueError,
    aiohttp.ClientError,
    TimeoutError,
)


async def scan_recent_logs(
    chain: ChainClient,
    address: str,
    topics: list[Any],
    windows: Sequence[int],
    label: str = "logs",
) -> list[LogEntry]:
    """
    Fetch logs from the last ``window`` blocks, shrinking on failure.

    Args:
        chain: Chain client
        address: Emitting contract
        topics: Topic filter
        windows: Block ranges to try, largest first
        label: Name for log messages

    Returns:
        Logs ordered by (block number, log index)

    Raises:
        The error of the last (smallest) window when every attempt fails
    """
    if not windows:
        raise ValueError("At least one scan window is required")

    latest = await chain.block_number()
    *wider, smallest = windows

    for window in wider:
        try:
            return await _scan_window(chain, address, topics, latest, window, label)
        except LEDGER_READ_ERRORS as e:
            logger.warning(
                f"[LogScanner] {label}: {window}-block window on {mask_address(address)} failed: {e}"
            )

    return await _scan_window(chain, address, topics, latest, smallest, label)


async def _scan_window(
    chain: ChainClient,
    address: str,
    topics: list[Any],
    latest: int,
    window: int,
    label: str,
) -> list[LogEntry]:
    from_block = max(0, latest - window)
    logs = await chain.get_logs(address, topics, from_block, latest)
    logger.debug(f"[LogScanner] {label}: {len(logs)} logs in blocks {from_block}-{latest}")
    return sorted(logs, key=lambda log: (log.block_number, log.log_index))
