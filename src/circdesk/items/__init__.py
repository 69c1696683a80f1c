"""Lendable item module.

Provides functionality for:
- Per-copy availability status
- Status transitions on borrow, return, reserve and cancel
- Administrative withdrawal and restore
- Borrow history
"""

from .models import Item, ItemHistory
from .schemas import ItemState, ItemStatus
from .status import ItemStatusMachine

__all__ = [
    "Item",
    "ItemHistory",
    "ItemState",
    "ItemStatus",
    "ItemStatusMachine",
]
