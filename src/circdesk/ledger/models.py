"""SQLAlchemy models for the circulation ledger.

Tables:
- loans: one row per borrow episode, never deleted
- journal: append-only record of every circulation transaction
"""

from datetime import date
from typing import Optional

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..clock import days_between
from ..db.models import Base, generate_uuid, utc_now_iso
from .schemas import LoanState


class LoanTransaction(Base):
    """Loan model - one borrow episode of one item by one patron."""

    __tablename__ = "loans"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    patron_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("patrons.id"), nullable=False, index=True
    )
    item_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("items.id"), nullable=False, index=True
    )

    state: Mapped[str] = mapped_column(String(20), default=LoanState.OPEN.value, index=True)

    # Dates
    checkout_at: Mapped[str] = mapped_column(String(26), nullable=False)  # ISO timestamp
    due_date: Mapped[str] = mapped_column(String(10), nullable=False)  # ISO date
    returned_at: Mapped[Optional[str]] = mapped_column(String(26))

    late_fee_cents: Mapped[int] = mapped_column(Integer, default=0)
    renewals: Mapped[int] = mapped_column(Integer, default=0)

    def __repr__(self) -> str:
        return f"<LoanTransaction(id={self.id}, item_id={self.item_id}, state={self.state})>"

    @property
    def is_open(self) -> bool:
        return self.state == LoanState.OPEN.value

    @property
    def due(self) -> date:
        return date.fromisoformat(self.due_date)

    def days_overdue(self, as_of: date) -> int:
        """Days past due as of a date (0 if not overdue or returned)."""
        if not self.is_open:
            return 0
        return max(0, days_between(self.due_date, as_of))

    def is_overdue(self, as_of: date) -> bool:
        return self.days_overdue(as_of) > 0


class JournalEntry(Base):
    """Journal entry - one circulation transaction."""

    __tablename__ = "journal"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    patron_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    item_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    loan_id: Mapped[Optional[str]] = mapped_column(String(36))
    detail: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[str] = mapped_column(String(26), default=utc_now_iso)

    def __repr__(self) -> str:
        return f"<JournalEntry(id={self.id}, kind={self.kind}, item_id={self.item_id})>"
