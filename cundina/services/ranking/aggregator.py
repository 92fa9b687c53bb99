"""
Ranking aggregator.

Pure functions turning raw group records into a ranked view: claimed
marking, status filtering and queue-priority ordering.
"""

from collections.abc import Iterable

from cundina.models.group import GroupRecord, GroupStatus


def mark_claimed(records: Iterable[GroupRecord], claimed: frozenset[str]) -> list[GroupRecord]:
    """Copy records, flagging completed groups found in the claimed set."""
    marked = []
    for record in records:
        if record.status != GroupStatus.ACTIVE and record.address in claimed:
            record = record.model_copy(update={"status": GroupStatus.CLAIMED, "claimed": True})
        marked.append(record)
    return marked


def filter_by_status(records: Iterable[GroupRecord], status: GroupStatus) -> list[GroupRecord]:
    return [r for r in records if r.status == status]


def sort_by_queue_priority(records: Iterable[GroupRecord]) -> list[GroupRecord]:
    """Invited count desc, then member count desc, then oldest first."""
    return sorted(records, key=lambda r: (-r.invited_count, -r.member_count, r.created_at))


def rank_groups(
    records: Iterable[GroupRecord],
    status: GroupStatus,
    claimed: frozenset[str],
) -> list[GroupRecord]:
    return sort_by_queue_priority(filter_by_status(mark_claimed(records, claimed), status))
