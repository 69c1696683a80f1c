"""SQLAlchemy model for catalog entries."""

from typing import Optional

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ..db.models import Base, generate_uuid, utc_now_iso
from .formats import estimate_reading_minutes
from .schemas import ItemFormat


class CatalogEntry(Base):
    """Catalog entry - one title, shared by all of its copies."""

    __tablename__ = "catalog_entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    author: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    genre: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    category: Mapped[str] = mapped_column(String(20), default="fiction")
    format: Mapped[str] = mapped_column(String(20), default=ItemFormat.PAPERBACK.value)
    isbn: Mapped[Optional[str]] = mapped_column(String(13), index=True)
    page_count: Mapped[Optional[int]] = mapped_column(Integer)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer)

    created_at: Mapped[str] = mapped_column(String(26), default=utc_now_iso)

    def __repr__(self) -> str:
        return f"<CatalogEntry(id={self.id}, title='{self.title}')>"

    @property
    def reading_minutes(self) -> Optional[int]:
        """Estimated reading (or listening) time."""
        return estimate_reading_minutes(
            ItemFormat(self.format), self.page_count, self.duration_minutes
        )
