"""Per-item FIFO reservation queue.

The queue is never dequeued by the system: the head is only told the item
is waiting for them. A ticket leaves the queue when its patron cancels or
borrows the item.
"""

from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..clock import add_days
from .models import Reservation


class ReservationQueue:
    """Reservation queue of one item, bound to an open session."""

    def __init__(self, session: Session, item_id: str):
        self.session = session
        self.item_id = item_id

    def _tickets(self) -> list[Reservation]:
        stmt = (
            select(Reservation)
            .where(Reservation.item_id == self.item_id)
            .order_by(Reservation.position)
        )
        return list(self.session.execute(stmt).scalars().all())

    def _ticket(self, patron_id: str) -> Optional[Reservation]:
        stmt = select(Reservation).where(
            Reservation.item_id == self.item_id,
            Reservation.patron_id == patron_id,
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def __len__(self) -> int:
        return len(self._tickets())

    def patrons(self) -> list[str]:
        """Queued patron ids, head first."""
        return [t.patron_id for t in self._tickets()]

    def is_empty(self) -> bool:
        return self.head_ticket() is None

    def head_ticket(self) -> Optional[Reservation]:
        stmt = (
            select(Reservation)
            .where(Reservation.item_id == self.item_id)
            .order_by(Reservation.position)
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def head(self) -> Optional[str]:
        ticket = self.head_ticket()
        return ticket.patron_id if ticket else None

    def contains(self, patron_id: str) -> bool:
        return self._ticket(patron_id) is not None

    def position_of(self, patron_id: str) -> Optional[int]:
        """1-based place in line, or None if not queued."""
        for index, queued in enumerate(self.patrons(), start=1):
            if queued == patron_id:
                return index
        return None

    def enqueue(self, patron_id: str) -> Reservation:
        """Append a patron to the tail. Caller checks for duplicates."""
        ticket = Reservation(item_id=self.item_id, patron_id=patron_id)
        self.session.add(ticket)
        self.session.flush()
        return ticket

    def remove(self, patron_id: str) -> bool:
        """Drop a patron's ticket. Returns False if they were not queued."""
        ticket = self._ticket(patron_id)
        if ticket is None:
            return False
        self.session.delete(ticket)
        self.session.flush()
        return True

    def drop_inactive_heads(self) -> list[str]:
        """Remove tickets from the front of the line whose accounts are inactive.

        Returns the dropped patron ids.
        """
        from ..patrons.models import PatronAccount

        dropped = []
        ticket = self.head_ticket()
        while ticket is not None:
            account = self.session.get(PatronAccount, ticket.patron_id)
            if account is not None and account.active:
                break
            dropped.append(ticket.patron_id)
            self.session.delete(ticket)
            self.session.flush()
            ticket = self.head_ticket()
        return dropped

    def start_hold(self, today: date, hold_days: int) -> Optional[date]:
        """Open an exclusive pickup window for the current head.

        Returns the last day of the window, or None when holds are disabled
        or the queue is empty.
        """
        ticket = self.head_ticket()
        if ticket is None or hold_days <= 0:
            return None
        until = add_days(today, hold_days)
        ticket.hold_until = until.isoformat()
        self.session.flush()
        return until

    def hold_until(self) -> Optional[date]:
        ticket = self.head_ticket()
        return ticket.hold_date if ticket else None

    def hold_active(self, today: date) -> bool:
        """Whether the head's pickup window covers ``today``."""
        until = self.hold_until()
        return until is not None and today <= until
