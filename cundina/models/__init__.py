"""Models package."""

from cundina.models.base import Base
from cundina.models.chain import BlockSnapshot, LogEntry, OnChainStatus, TopBlock, TxReceipt
from cundina.models.group import GroupRecord, GroupStatus
from cundina.models.notification import Notification

__all__ = [
    "Base",
    "BlockSnapshot",
    "GroupRecord",
    "GroupStatus",
    "LogEntry",
    "Notification",
    "OnChainStatus",
    "TopBlock",
    "TxReceipt",
]
