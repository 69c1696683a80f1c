"""Notification dispatcher module.

Provides functionality for:
- Due-soon reminders and overdue notices
- Reservation-ready notices for the head of a queue
- New-arrival notices matched to favorite genres
- Unread tracking
"""

from .manager import NotificationDispatcher
from .models import Notification
from .schemas import NotificationKind, NotificationResponse

__all__ = [
    "NotificationDispatcher",
    "Notification",
    "NotificationKind",
    "NotificationResponse",
]
