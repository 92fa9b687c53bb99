"""
Indexed graph source.

Reads groups from the indexed graph service and converts them into
GroupRecord instances numbered by creation time.
"""

from typing import Any

from pydantic import ValidationError

from cundina.config.constants import GRAPH_PAGE_SIZE
from cundina.config.levels import TIERS
from cundina.models.group import GroupRecord, GroupStatus
from cundina.utils.exceptions import GraphQueryError

from .block_numbering import SequenceInput, compute_sequence_numbers
from .graph_client import GraphClient
from .queries import GROUP_DETAIL_QUERY, GROUPS_BY_LEVEL_QUERY, USER_GROUPS_QUERY


def _int(value: Any, default: int = 0) -> int:
    if value is None:
        return default
    return int(value)


def parse_group(raw: dict[str, Any], level: int | None = None) -> GroupRecord:
    """
    Convert an indexed ``block`` entity.

    Raises:
        GraphQueryError: Entity is missing fields or has invalid values
    """
    try:
        group_level = _int(raw.get("levelId"), level or 0)
        tier = TIERS.get(group_level)
        owner = raw.get("owner") or {}
        completed_at = _int(raw.get("completedAt"))
        return GroupRecord(
            address=str(raw["id"]).lower(),
            owner=str(owner.get("id", "")).lower() if isinstance(owner, dict) else str(owner).lower(),
            level=group_level,
            status=GroupStatus.COMPLETED if _int(raw.get("status")) == 1 else GroupStatus.ACTIVE,
            member_count=len(raw.get("members") or []),
            required_members=tier.required_members if tier else 0,
            invited_count=_int(raw.get("invitedCount")),
            created_at=_int(raw.get("createdAt")),
            completed_at=completed_at or None,
        )
    except (KeyError, TypeError, ValueError, ValidationError) as e:
        raise GraphQueryError(f"Malformed block entity: {e}") from e


class IndexerGroupSource:
    """Group reads through the indexed graph service."""

    def __init__(self, client: GraphClient) -> None:
        self.client = client

    @property
    def available(self) -> bool:
        return self.client.configured

    async def fetch_level(self, level: int) -> tuple[list[GroupRecord], dict[str, int]]:
        """
        All groups at a level with sequence numbers.

        Returns:
            (records, numbering) where numbering maps address to number
        """
        data = await self.client.query(
            GROUPS_BY_LEVEL_QUERY, {"levelId": level, "first": GRAPH_PAGE_SIZE}
        )
        blocks = data.get("blocks")
        if not isinstance(blocks, list):
            raise GraphQueryError("Response has no blocks list")

        records = [parse_group(raw, level) for raw in blocks]
        numbers = compute_sequence_numbers(
            SequenceInput(r.address, r.created_at) for r in records
        )
        for record in records:
            record.sequence_number = numbers[record.address]
        return records, numbers

    async def fetch_group(self, address: str) -> GroupRecord | None:
        data = await self.client.query(GROUP_DETAIL_QUERY, {"blockId": address.lower()})
        raw = data.get("block")
        if raw is None:
            return None
        return parse_group(raw)

    async def fetch_member_groups(self, member: str) -> list[str]:
        data = await self.client.query(USER_GROUPS_QUERY, {"userId": member.lower()})
        user = data.get("user")
        if not user:
            return []
        return [str(block["id"]).lower() for block in user.get("blocks") or []]
