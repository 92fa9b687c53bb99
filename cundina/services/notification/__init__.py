"""
Notification services.

Best-effort writes of membership events to the relational store.
"""

from .service import NotificationService

__all__ = ["NotificationService"]
