"""Pydantic schemas for notifications."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class NotificationKind(str, Enum):
    """Kinds of notice the dispatcher records."""

    DUE_SOON = "due_soon"
    OVERDUE = "overdue"
    RESERVATION_READY = "reservation_ready"
    NEW_ARRIVAL = "new_arrival"
    ANNOUNCEMENT = "announcement"


class NotificationResponse(BaseModel):
    """Schema for notification responses."""

    id: int
    patron_id: str
    kind: NotificationKind
    message: str
    item_id: Optional[str]
    loan_id: Optional[str]
    read: bool
    created_at: datetime

    model_config = {"from_attributes": True}
