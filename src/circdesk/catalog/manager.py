"""Catalog manager: titles, copies and arrival notices."""

import logging
from typing import TYPE_CHECKING, Optional

from sqlalchemy import or_, select

from ..db.sqlite import Database, get_db
from ..errors import NotFoundError
from ..items.models import Item
from .models import CatalogEntry
from .schemas import ItemCreate

if TYPE_CHECKING:
    from ..notifications.manager import NotificationDispatcher

logger = logging.getLogger(__name__)


class CatalogManager:
    """Manages catalog entries and their lendable copies."""

    def __init__(
        self,
        db: Optional[Database] = None,
        dispatcher: Optional["NotificationDispatcher"] = None,
    ):
        """Initialize catalog manager.

        Args:
            db: Database instance
            dispatcher: Receives arrival events for new titles
        """
        self.db = db or get_db()
        self.dispatcher = dispatcher

    def add_item(self, data: ItemCreate) -> list[Item]:
        """Catalog a new title with its copies.

        Patrons with a matching favorite genre are notified once the copies
        are stored.

        Args:
            data: Title and copy data

        Returns:
            The new copies
        """
        with self.db.get_session() as session:
            entry = CatalogEntry(
                title=data.title,
                author=data.author,
                genre=data.genre.strip().lower() if data.genre else None,
                category=data.category.value,
                format=data.format.value,
                isbn=data.isbn,
                page_count=data.page_count,
                duration_minutes=data.duration_minutes,
            )
            session.add(entry)
            session.flush()

            items = [Item(entry_id=entry.id) for _ in range(data.copies)]
            session.add_all(items)
            session.flush()
            for item in items:
                session.refresh(item)
                session.expunge(item)
            logger.info("Cataloged '%s' with %d copies", entry.title, len(items))

        if self.dispatcher is not None:
            self.dispatcher.on_arrival(items[0].id, title=data.title)
        return items

    def add_copy(self, entry_id: str) -> Item:
        """Add another copy of an existing title."""
        with self.db.get_session() as session:
            if session.get(CatalogEntry, entry_id) is None:
                raise NotFoundError(f"Catalog entry not found: {entry_id}")
            item = Item(entry_id=entry_id)
            session.add(item)
            session.flush()
            session.refresh(item)
            session.expunge(item)
            return item

    def get_item(self, item_id: str) -> Optional[Item]:
        """Get a copy (with its catalog entry) by ID."""
        with self.db.get_session() as session:
            item = session.get(Item, item_id)
            if item:
                session.expunge(item)
            return item

    def list_items(self, entry_id: Optional[str] = None) -> list[Item]:
        """List copies, optionally of one title."""
        with self.db.get_session() as session:
            stmt = select(Item).join(CatalogEntry).order_by(CatalogEntry.title, Item.created_at)
            if entry_id:
                stmt = stmt.where(Item.entry_id == entry_id)
            items = session.execute(stmt).unique().scalars().all()
            for item in items:
                session.expunge(item)
            return list(items)

    def search(self, query: str, limit: int = 20) -> list[CatalogEntry]:
        """Search titles by title, author or genre."""
        with self.db.get_session() as session:
            pattern = f"%{query}%"
            stmt = (
                select(CatalogEntry)
                .where(
                    or_(
                        CatalogEntry.title.ilike(pattern),
                        CatalogEntry.author.ilike(pattern),
                        CatalogEntry.genre.ilike(pattern),
                    )
                )
                .order_by(CatalogEntry.title)
                .limit(limit)
            )
            entries = session.execute(stmt).scalars().all()
            for e in entries:
                session.expunge(e)
            return list(entries)

    # -------------------------------------------------------------------------
    # Catalog directory (read by the circulation engine)
    # -------------------------------------------------------------------------

    def item_exists(self, item_id: str) -> bool:
        with self.db.get_session() as session:
            return session.get(Item, item_id) is not None

    def genre_of(self, item_id: str) -> Optional[str]:
        with self.db.get_session() as session:
            item = session.get(Item, item_id)
            return item.entry.genre if item else None

    def title_of(self, item_id: str) -> Optional[str]:
        with self.db.get_session() as session:
            item = session.get(Item, item_id)
            return item.entry.title if item else None
