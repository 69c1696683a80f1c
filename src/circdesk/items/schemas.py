"""Pydantic schemas for lendable items."""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ItemStatus(str, Enum):
    """Availability state of one copy."""

    AVAILABLE = "available"
    BORROWED = "borrowed"
    RESERVED = "reserved"
    LOST = "lost"
    DAMAGED = "damaged"
    MAINTENANCE = "maintenance"


# Statuses set only by administrative override
ADMIN_STATUSES = frozenset({ItemStatus.LOST, ItemStatus.DAMAGED, ItemStatus.MAINTENANCE})

# Statuses that accept new reservations
RESERVABLE_STATUSES = frozenset(
    {ItemStatus.AVAILABLE, ItemStatus.RESERVED, ItemStatus.BORROWED}
)


class HistoryAction(str, Enum):
    """Entries in an item's borrow history."""

    BORROWED = "borrowed"
    RETURNED = "returned"


class ItemState(BaseModel):
    """Snapshot of one copy's circulation state."""

    id: str
    title: str
    status: ItemStatus
    borrow_count: int
    queue: list[str]
    hold_until: Optional[date] = None
