"""Circulation ledger module.

Provides functionality for:
- Borrow, return, reserve, cancel and renew requests
- Late fees in whole cents
- Due-date sweeps that record reminders and overdue notices
- Transaction journal and circulation statistics
"""

from .manager import CirculationLedger
from .models import JournalEntry, LoanTransaction
from .schemas import CirculationStats, LoanState, LoanSummary, SweepReport, TransactionKind

__all__ = [
    "CirculationLedger",
    "JournalEntry",
    "LoanTransaction",
    "CirculationStats",
    "LoanState",
    "LoanSummary",
    "SweepReport",
    "TransactionKind",
]
