"""Notification dispatcher.

Records notices for patrons when circulation state changes. Delivery and
display belong to whoever reads ``pending_for``.
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..clock import Clock, SystemClock
from ..db.sqlite import Database, get_db
from ..errors import NoSuchNotification
from ..interfaces import AccountDirectory, CatalogDirectory
from .models import Notification
from .schemas import NotificationKind

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Records due-soon, overdue, reservation-ready and new-arrival notices."""

    def __init__(
        self,
        db: Optional[Database] = None,
        catalog: Optional[CatalogDirectory] = None,
        accounts: Optional[AccountDirectory] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize dispatcher.

        Args:
            db: Database instance
            catalog: Catalog lookups for arrival notices
            accounts: Account lookups for arrival notices
            clock: Source of timestamps
        """
        self.db = db or get_db()
        self.catalog = catalog
        self.accounts = accounts
        self.clock = clock or SystemClock()

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------

    def notify(
        self,
        patron_id: str,
        kind: NotificationKind,
        message: str,
        item_id: Optional[str] = None,
        loan_id: Optional[str] = None,
        dedupe_key: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> Optional[Notification]:
        """Record a notice.

        Returns:
            The new notification, or None if one with the same dedupe key
            was already recorded
        """

        def _notify(s: Session) -> Optional[Notification]:
            if dedupe_key is not None:
                existing = s.execute(
                    select(Notification.id).where(Notification.dedupe_key == dedupe_key)
                ).scalar_one_or_none()
                if existing is not None:
                    return None

            note = Notification(
                patron_id=patron_id,
                kind=NotificationKind(kind).value,
                message=message,
                item_id=item_id,
                loan_id=loan_id,
                dedupe_key=dedupe_key,
                created_at=self.clock.now().isoformat(),
            )
            s.add(note)
            s.flush()
            logger.info("Notified %s (%s): %s", patron_id, note.kind, message)
            return note

        if session is not None:
            return _notify(session)
        with self.db.get_session() as s:
            note = _notify(s)
            if note:
                s.refresh(note)
                s.expunge(note)
            return note

    def reservation_ready(
        self,
        patron_id: str,
        item_id: str,
        hold_until: Optional[date] = None,
        session: Optional[Session] = None,
    ) -> Optional[Notification]:
        """Tell the head of a queue their reserved item is on the shelf."""
        message = f"The item you reserved (ID: {item_id}) is now available."
        if hold_until:
            message += f" It is held for you until {hold_until.isoformat()}."
        return self.notify(
            patron_id,
            NotificationKind.RESERVATION_READY,
            message,
            item_id=item_id,
            session=session,
        )

    def due_soon(
        self,
        patron_id: str,
        item_id: str,
        loan_id: str,
        due_date: date,
        session: Optional[Session] = None,
    ) -> Optional[Notification]:
        """Reminder one day before the due date. Once per loan and due date."""
        return self.notify(
            patron_id,
            NotificationKind.DUE_SOON,
            f"Your borrowed item (ID: {item_id}) is due tomorrow ({due_date.isoformat()}).",
            item_id=item_id,
            loan_id=loan_id,
            dedupe_key=f"due-soon:{loan_id}:{due_date.isoformat()}",
            session=session,
        )

    def overdue(
        self,
        patron_id: str,
        item_id: str,
        loan_id: str,
        days_overdue: int,
        as_of: date,
        session: Optional[Session] = None,
    ) -> Optional[Notification]:
        """Overdue notice. At most once per loan per day."""
        return self.notify(
            patron_id,
            NotificationKind.OVERDUE,
            f"Your borrowed item (ID: {item_id}) is overdue by {days_overdue} days.",
            item_id=item_id,
            loan_id=loan_id,
            dedupe_key=f"overdue:{loan_id}:{as_of.isoformat()}",
            session=session,
        )

    def announce(self, patron_id: str, message: str) -> Optional[Notification]:
        """General announcement to one patron."""
        return self.notify(patron_id, NotificationKind.ANNOUNCEMENT, message)

    def on_arrival(self, item_id: str, title: Optional[str] = None) -> list[Notification]:
        """Notify patrons whose favorite genres match a newly cataloged item.

        Args:
            item_id: The new item
            title: Title for the message, if known

        Returns:
            Notifications recorded
        """
        if self.catalog is None or self.accounts is None:
            return []
        genre = self.catalog.genre_of(item_id)
        if not genre:
            return []

        label = title or f"ID: {item_id}"
        notes = []
        for patron_id in self.accounts.patrons_with_favorite_genre(genre):
            note = self.notify(
                patron_id,
                NotificationKind.NEW_ARRIVAL,
                f"New item added in your favorite genre ({genre.lower()}): {label}",
                item_id=item_id,
                dedupe_key=f"arrival:{item_id}:{patron_id}",
            )
            if note:
                notes.append(note)
        return notes

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def pending_for(self, patron_id: str) -> list[Notification]:
        """Unread notifications for a patron, oldest first."""
        return self.all_for(patron_id, unread_only=True)

    def all_for(self, patron_id: str, unread_only: bool = False) -> list[Notification]:
        """Notifications for a patron, oldest first."""
        with self.db.get_session() as session:
            stmt = select(Notification).where(Notification.patron_id == patron_id)
            if unread_only:
                stmt = stmt.where(Notification.read.is_(False))
            stmt = stmt.order_by(Notification.id)
            notes = session.execute(stmt).scalars().all()
            for n in notes:
                session.expunge(n)
            return list(notes)

    def mark_read(self, notification_id: int) -> Notification:
        """Mark one notification read.

        Raises:
            NoSuchNotification: if the id is unknown
        """
        with self.db.get_session() as session:
            note = session.get(Notification, notification_id)
            if note is None:
                raise NoSuchNotification(f"Notification not found: {notification_id}")
            note.read = True
            session.flush()
            session.refresh(note)
            session.expunge(note)
            return note

    def mark_all_read(self, patron_id: str) -> int:
        """Mark every notification for a patron read. Returns how many changed."""
        with self.db.get_session() as session:
            result = session.execute(
                update(Notification)
                .where(Notification.patron_id == patron_id, Notification.read.is_(False))
                .values(read=True)
            )
            return result.rowcount or 0
