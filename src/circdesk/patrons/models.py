"""SQLAlchemy model for patron accounts."""

import json
from typing import Optional

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..db.models import Base, generate_uuid, utc_now_iso
from .schemas import PatronClass


class PatronAccount(Base):
    """Patron account - class, standing and balance.

    Loans and reservations point at the account; the account itself keeps
    no copies of them.
    """

    __tablename__ = "patrons"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(200))
    patron_class: Mapped[str] = mapped_column(
        String(20), default=PatronClass.STANDARD.value
    )
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    balance_cents: Mapped[int] = mapped_column(Integer, default=0)
    favorite_genres: Mapped[Optional[str]] = mapped_column(Text)  # JSON array

    created_at: Mapped[str] = mapped_column(String(26), default=utc_now_iso)
    updated_at: Mapped[str] = mapped_column(
        String(26), default=utc_now_iso, onupdate=utc_now_iso
    )

    def __repr__(self) -> str:
        return f"<PatronAccount(id={self.id}, name='{self.name}')>"

    def get_favorite_genres(self) -> list[str]:
        return json.loads(self.favorite_genres) if self.favorite_genres else []

    def set_favorite_genres(self, genres: list[str]) -> None:
        self.favorite_genres = json.dumps(genres)

    @property
    def account_class(self) -> PatronClass:
        return PatronClass(self.patron_class)
