"""Narrow interfaces to the collaborators around the circulation engine.

The engine reads catalog and account facts through these and never reaches
into their storage. ``CatalogManager`` and ``PatronManager`` are the
default implementations.
"""

from typing import Optional, Protocol

from sqlalchemy.orm import Session

from .patrons.schemas import PatronClass


class CatalogDirectory(Protocol):
    """What the engine needs to know about the catalog."""

    def item_exists(self, item_id: str) -> bool: ...

    def genre_of(self, item_id: str) -> Optional[str]: ...

    def title_of(self, item_id: str) -> Optional[str]: ...


class AccountDirectory(Protocol):
    """What the engine needs to know about patron accounts."""

    def account_class(self, patron_id: str) -> PatronClass: ...

    def is_active(self, patron_id: str) -> bool: ...

    def patrons_with_favorite_genre(self, genre: str) -> list[str]: ...

    def charge(self, patron_id: str, cents: int, session: Optional[Session] = None) -> int: ...

    def pay(
        self, patron_id: str, cents: Optional[int] = None, session: Optional[Session] = None
    ) -> int: ...
