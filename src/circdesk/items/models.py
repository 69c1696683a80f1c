"""SQLAlchemy models for lendable items.

Tables:
- items: one row per physical or digital copy
- item_history: append-only borrow/return log per copy
"""

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.models import Base, generate_uuid, utc_now_iso
from .schemas import ItemStatus

if TYPE_CHECKING:
    from ..catalog.models import CatalogEntry


class Item(Base):
    """Item model - one lendable copy."""

    __tablename__ = "items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    entry_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("catalog_entries.id"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(
        String(20), default=ItemStatus.AVAILABLE.value, index=True
    )
    borrow_count: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[str] = mapped_column(String(26), default=utc_now_iso)
    updated_at: Mapped[str] = mapped_column(
        String(26), default=utc_now_iso, onupdate=utc_now_iso
    )

    entry: Mapped["CatalogEntry"] = relationship("CatalogEntry", lazy="joined")

    def __repr__(self) -> str:
        return f"<Item(id={self.id}, status={self.status})>"

    @property
    def item_status(self) -> ItemStatus:
        return ItemStatus(self.status)


class ItemHistory(Base):
    """Borrow-history entry for one copy."""

    __tablename__ = "item_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("items.id"), nullable=False, index=True
    )
    patron_id: Mapped[str] = mapped_column(String(36), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[str] = mapped_column(String(26), default=utc_now_iso)

    def __repr__(self) -> str:
        return f"<ItemHistory(item_id={self.item_id}, action={self.action})>"
