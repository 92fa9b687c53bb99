"""
Notification repository.

Data access layer for Notification model.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from cundina.models.notification import Notification
from cundina.repositories.base import BaseRepository
from cundina.utils.validation import normalize_address


class NotificationRepository(BaseRepository[Notification]):
    """Notification repository."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(Notification, session)

    async def add_for_wallet(
        self,
        wallet_address: str,
        title: str,
        message: str,
        type: str = "info",
    ) -> Notification:
        return await self.create(
            wallet_address=normalize_address(wallet_address),
            title=title,
            message=message,
            type=type,
        )
