"""Pydantic schemas for loans and the circulation journal."""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class LoanState(str, Enum):
    """Lifecycle of a loan."""

    OPEN = "open"
    RETURNED = "returned"


class TransactionKind(str, Enum):
    """Kinds of journal entry."""

    BORROW = "borrow"
    RETURN = "return"
    RENEW = "renew"
    RESERVE = "reserve"
    CANCEL = "cancel"
    WITHDRAW = "withdraw"  # Administrative override out of circulation
    RESTORE = "restore"
    REMOVE = "remove"  # Copy deleted from the collection


class LoanSummary(BaseModel):
    """Summary of a loan for listing."""

    id: str
    patron_id: str
    item_id: str
    title: Optional[str] = None
    state: LoanState
    due_date: date
    days_overdue: int
    late_fee_cents: int
    renewals: int


class SweepReport(BaseModel):
    """Outcome of one due-date sweep."""

    as_of: date
    scanned: int
    due_soon: int
    overdue: int


class CirculationStats(BaseModel):
    """Overall circulation statistics."""

    total_items: int
    items_by_status: dict[str, int]
    open_loans: int
    overdue_loans: int
    total_loans: int
    pending_reservations: int
    fees_assessed_cents: int
