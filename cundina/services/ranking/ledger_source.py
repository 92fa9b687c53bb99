"""
Ledger fallback source.

Rebuilds a level's groups from direct ledger reads: recent
``MyBlockCreated`` events give the addresses in creation order, then
each group's state is read in concurrent chunks.
"""

import asyncio

from loguru import logger

from cundina.config.constants import CREATION_SCAN_WINDOWS, GROUP_READ_CHUNK_SIZE
from cundina.config.levels import MAX_TIER, MIN_TIER
from cundina.models.group import GroupRecord, GroupStatus
from cundina.services.blockchain.chain_client import ChainClient
from cundina.services.blockchain.contract_reads import ContractReader
from cundina.services.blockchain.event_resolver import MY_BLOCK_CREATED, decode_events
from cundina.utils.exceptions import ContractReadError
from cundina.utils.security import mask_address

from .block_numbering import SequenceInput, compute_sequence_numbers
from .log_scanner import scan_recent_logs


class LedgerGroupSource:
    """Group reads straight from the contracts."""

    def __init__(
        self,
        chain: ChainClient,
        reader: ContractReader,
        chunk_size: int = GROUP_READ_CHUNK_SIZE,
    ) -> None:
        self.chain = chain
        self.reader = reader
        self.registry_address = reader.registry_address
        self.chunk_size = chunk_size

    async def scan_created_groups(self, level: int) -> list[str]:
        """
        Addresses of groups created at a level, in emission order.

        Raises:
            The last scan error when every window fails
        """
        topics = [MY_BLOCK_CREATED.topic, None, MY_BLOCK_CREATED.topic_for(level)]
        logs = await scan_recent_logs(
            self.chain,
            self.registry_address,
            topics,
            CREATION_SCAN_WINDOWS,
            label=f"creations level {level}",
        )

        addresses: list[str] = []
        for event in decode_events(logs, MY_BLOCK_CREATED, emitter=self.registry_address):
            address = event["blockAddress"]
            if event["level"] == level and address not in addresses:
                addresses.append(address)
        return addresses

    async def read_group(self, address: str) -> GroupRecord | None:
        """Current state of one group, None when unreadable."""
        try:
            snapshot = await self.reader.block_snapshot(address)
        except ContractReadError as e:
            logger.debug(f"[LedgerSource] Skipping {mask_address(address)}: {e}")
            return None

        try:
            invited = await self.reader.invited_count(address)
        except ContractReadError:
            invited = 0

        return GroupRecord(
            address=snapshot.address,
            owner=snapshot.owner,
            level=snapshot.level,
            status=GroupStatus.ACTIVE if snapshot.is_active else GroupStatus.COMPLETED,
            member_count=snapshot.member_count,
            required_members=snapshot.required_members,
            invited_count=invited,
            created_at=snapshot.created_at,
            completed_at=snapshot.completed_at or None,
        )

    async def read_groups(self, addresses: list[str]) -> list[GroupRecord]:
        """Read groups in concurrent chunks, keeping input order."""
        records: list[GroupRecord] = []
        for start in range(0, len(addresses), self.chunk_size):
            chunk = addresses[start:start + self.chunk_size]
            results = await asyncio.gather(*(self.read_group(a) for a in chunk))
            records.extend(r for r in results if r is not None)
        return records

    async def fetch_level(self, level: int) -> tuple[list[GroupRecord], dict[str, int]]:
        """
        Groups at a level numbered by event emission order.

        Returns:
            (records, numbering)
        """
        addresses = await self.scan_created_groups(level)
        numbers = compute_sequence_numbers(
            SequenceInput(address, index) for index, address in enumerate(addresses)
        )
        records = [r for r in await self.read_groups(addresses) if r.level == level]
        for record in records:
            record.sequence_number = numbers.get(record.address)
        logger.info(
            f"[LedgerSource] Level {level}: {len(records)}/{len(addresses)} groups readable"
        )
        return records, numbers

    async def fetch_member_groups(self, member: str) -> list[str]:
        """Groups owned by a member, falling back to per-level lookups."""
        try:
            return await self.reader.all_user_blocks(member)
        except ContractReadError as e:
            logger.debug(f"[LedgerSource] getAllUserBlocks unavailable: {e}")

        results = await asyncio.gather(
            *(self.reader.my_block_at_level(member, level) for level in range(MIN_TIER, MAX_TIER + 1)),
            return_exceptions=True,
        )
        return [r for r in results if isinstance(r, str)]
