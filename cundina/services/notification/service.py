"""
Notification service.

Fire-and-forget: a failing write is logged and never reaches the
membership operation that triggered it.
"""

from typing import Any

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from cundina.config.levels import from_token_units
from cundina.repositories.notification_repository import NotificationRepository
from cundina.services.membership.outcomes import MembershipOutcome
from cundina.utils.security import mask_address

_TITLES = {
    "join": "Joined a group",
    "create": "Group created",
    "advance": "Advanced to the next tier",
    "cashout": "Payout collected",
}


class NotificationService:
    """Writes notification rows through an optional session factory."""

    def __init__(self, session_factory: Any = None) -> None:
        """
        Initialize notification service.

        Args:
            session_factory: async_sessionmaker, or None to disable writes
        """
        self.session_factory = session_factory

    @property
    def enabled(self) -> bool:
        return self.session_factory is not None

    async def notify(
        self,
        wallet_address: str,
        title: str,
        message: str,
        type: str = "info",
    ) -> bool:
        """
        Store one notification.

        Returns:
            True if written, False if disabled or the write failed
        """
        if not self.enabled:
            return False
        try:
            async with self.session_factory() as session:
                repo = NotificationRepository(session)
                await repo.add_for_wallet(wallet_address, title, message, type)
                await session.commit()
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Notification for {mask_address(wallet_address)} not stored: {e}")
            return False
        except Exception as e:
            logger.warning(
                f"Unexpected error storing notification for {mask_address(wallet_address)}: {e}"
            )
            return False

    async def notify_outcome(self, outcome: MembershipOutcome) -> bool:
        """Describe a completed membership operation for its member."""
        title = _TITLES.get(outcome.action, outcome.action.title())
        parts = [f"Transaction {outcome.tx_hash}"]
        if outcome.group:
            parts.append(f"group {outcome.group}")
        if outcome.new_group:
            parts.append(f"new group {outcome.new_group}")
        if outcome.payout is not None:
            parts.append(f"payout {from_token_units(outcome.payout)}")
        if outcome.auxiliary_failed:
            failed = ", ".join(s.name for s in outcome.auxiliary if not s.succeeded)
            parts.append(f"pending follow-up: {failed}")
        return await self.notify(outcome.member, title, "; ".join(parts), type="success")
