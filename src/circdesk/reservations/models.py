"""SQLAlchemy model for reservation tickets."""

from datetime import date
from typing import Optional

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ..db.models import Base, utc_now_iso


class Reservation(Base):
    """A patron's place in an item's waiting queue.

    ``position`` only ever grows, so ordering by it gives insertion order.
    """

    __tablename__ = "reservations"
    __table_args__ = (UniqueConstraint("item_id", "patron_id", name="uq_reservation"),)

    position: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("items.id"), nullable=False, index=True
    )
    patron_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("patrons.id"), nullable=False, index=True
    )
    hold_until: Mapped[Optional[str]] = mapped_column(String(10))  # ISO date
    created_at: Mapped[str] = mapped_column(String(26), default=utc_now_iso)

    def __repr__(self) -> str:
        return f"<Reservation(item_id={self.item_id}, patron_id={self.patron_id})>"

    @property
    def hold_date(self) -> Optional[date]:
        return date.fromisoformat(self.hold_until) if self.hold_until else None
