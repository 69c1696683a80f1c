"""Catalog module.

A deliberately small catalog: titles with a format variant, their copies,
and the arrival event the notification dispatcher listens for.
"""

from .formats import estimate_reading_minutes, is_digital
from .manager import CatalogManager
from .models import CatalogEntry
from .schemas import ItemCategory, ItemCreate, ItemFormat

__all__ = [
    "CatalogManager",
    "CatalogEntry",
    "ItemCategory",
    "ItemCreate",
    "ItemFormat",
    "estimate_reading_minutes",
    "is_digital",
]
