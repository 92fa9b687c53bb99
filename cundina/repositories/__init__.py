"""Repositories package."""

from cundina.repositories.base import BaseRepository
from cundina.repositories.notification_repository import NotificationRepository

__all__ = ["BaseRepository", "NotificationRepository"]
