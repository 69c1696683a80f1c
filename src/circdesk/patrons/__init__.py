"""Patron loan account module.

Provides functionality for:
- Patron classes and their borrow limits and windows
- Account standing (active/inactive)
- Outstanding balance from late fees
- Favorite genres for arrival notices
"""

from .manager import PatronManager
from .models import PatronAccount
from .policy import CirculationPolicy
from .schemas import PatronClass, PatronCreate, PatronSummary

__all__ = [
    "PatronManager",
    "PatronAccount",
    "CirculationPolicy",
    "PatronClass",
    "PatronCreate",
    "PatronSummary",
]
