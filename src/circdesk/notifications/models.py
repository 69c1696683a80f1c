"""SQLAlchemy model for recorded notifications."""

from typing import Optional

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..db.models import Base, utc_now_iso


class Notification(Base):
    """Notification model - one message queued for a patron.

    ``dedupe_key`` is unique, so a notice carrying one is recorded at most
    once.
    """

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    patron_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    item_id: Mapped[Optional[str]] = mapped_column(String(36))
    loan_id: Mapped[Optional[str]] = mapped_column(String(36))
    dedupe_key: Mapped[Optional[str]] = mapped_column(String(120), unique=True)
    read: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[str] = mapped_column(String(26), default=utc_now_iso)

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, kind={self.kind}, patron_id={self.patron_id})>"
