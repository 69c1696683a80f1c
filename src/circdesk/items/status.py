"""Item status machine.

Owns every write to ``Item.status``. The circulation ledger validates the
patron side of a request and then calls in here inside its own session;
these methods never open sessions or commit.
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..errors import (
    AlreadyReserved,
    InvariantViolation,
    ItemUnavailable,
    NoSuchReservation,
    NotReservable,
    ValidationError,
)
from ..reservations.models import Reservation
from ..reservations.queue import ReservationQueue
from .models import Item, ItemHistory
from .schemas import ADMIN_STATUSES, RESERVABLE_STATUSES, HistoryAction, ItemStatus

logger = logging.getLogger(__name__)


class ItemStatusMachine:
    """Availability transitions for lendable items.

    Args:
        hold_days: Length of the head's exclusive pickup window. 0 leaves a
            reserved item on the shelf for whoever asks first.
    """

    def __init__(self, hold_days: int = 3):
        self.hold_days = hold_days

    def queue(self, session: Session, item: Item) -> ReservationQueue:
        return ReservationQueue(session, item.id)

    def _set_status(self, item: Item, status: ItemStatus) -> None:
        if item.status != status.value:
            logger.info("Item %s: %s -> %s", item.id, item.status, status.value)
        item.status = status.value

    def _history(self, session: Session, item: Item, patron_id: str, action: HistoryAction) -> None:
        session.add(ItemHistory(item_id=item.id, patron_id=patron_id, action=action.value))

    def _set_aside(
        self, session: Session, item: Item, today: date
    ) -> Optional[tuple[str, Optional[date]]]:
        """Shelve the item for the first active patron in line.

        Inactive accounts at the front of the queue lose their place. With
        nobody left the item goes back to AVAILABLE and None is returned.
        """
        queue = self.queue(session, item)
        for patron_id in queue.drop_inactive_heads():
            logger.info(
                "Dropped inactive patron %s from the queue for item %s", patron_id, item.id
            )
        if queue.is_empty():
            self._set_status(item, ItemStatus.AVAILABLE)
            return None
        self._set_status(item, ItemStatus.RESERVED)
        return queue.head(), queue.start_hold(today, self.hold_days)

    # -------------------------------------------------------------------------
    # Reservations
    # -------------------------------------------------------------------------

    def reserve(
        self, session: Session, item: Item, patron_id: str, today: date
    ) -> tuple[Reservation, Optional[date]]:
        """Queue a patron for an item.

        Returns the ticket and, when the item was sitting on the shelf, the
        end of the pickup window now running for the new head.
        """
        status = item.item_status
        if status not in RESERVABLE_STATUSES:
            raise NotReservable(f"Item {item.id} is {status.value} and cannot be reserved")

        queue = self.queue(session, item)
        if queue.contains(patron_id):
            raise AlreadyReserved(f"Patron {patron_id} already has a reservation on item {item.id}")

        ticket = queue.enqueue(patron_id)
        hold_until = None
        if status == ItemStatus.AVAILABLE:
            self._set_status(item, ItemStatus.RESERVED)
            hold_until = queue.start_hold(today, self.hold_days)
        return ticket, hold_until

    def cancel_reservation(
        self, session: Session, item: Item, patron_id: str, today: date
    ) -> Optional[tuple[str, Optional[date]]]:
        """Remove a patron from the queue.

        Returns (new head, hold end) when the cancellation hands a shelved,
        reserved item to the next patron in line, else None.
        """
        queue = self.queue(session, item)
        was_head = queue.head() == patron_id
        if not queue.remove(patron_id):
            raise NoSuchReservation(f"Patron {patron_id} has no reservation on item {item.id}")

        if item.item_status != ItemStatus.RESERVED:
            return None
        if was_head or queue.is_empty():
            return self._set_aside(session, item, today)
        return None

    # -------------------------------------------------------------------------
    # Borrow / return
    # -------------------------------------------------------------------------

    def ensure_borrowable(self, session: Session, item: Item, patron_id: str, today: date) -> None:
        """Raise ItemUnavailable unless this patron may check the item out now."""
        status = item.item_status
        if status == ItemStatus.AVAILABLE:
            return
        if status == ItemStatus.RESERVED:
            queue = self.queue(session, item)
            if queue.head() == patron_id or not queue.hold_active(today):
                return
            raise ItemUnavailable(
                f"Item {item.id} is held for another patron until {queue.hold_until()}"
            )
        raise ItemUnavailable(f"Item {item.id} is {status.value}")

    def record_borrow(self, session: Session, item: Item, patron_id: str) -> None:
        """Mark the item checked out. The patron leaves the queue if queued."""
        self.queue(session, item).remove(patron_id)
        item.borrow_count = (item.borrow_count or 0) + 1
        self._history(session, item, patron_id, HistoryAction.BORROWED)
        self._set_status(item, ItemStatus.BORROWED)

    def record_return(
        self, session: Session, item: Item, patron_id: str, today: date
    ) -> Optional[tuple[str, Optional[date]]]:
        """Put a returned item back on the shelf.

        Returns (queue head, hold end) when the item is now waiting for a
        reserving patron, else None. Items under an administrative status
        keep it.
        """
        self._history(session, item, patron_id, HistoryAction.RETURNED)
        if item.item_status in ADMIN_STATUSES:
            return None
        return self._set_aside(session, item, today)

    # -------------------------------------------------------------------------
    # Administrative overrides
    # -------------------------------------------------------------------------

    def mark_unavailable(self, item: Item, status: ItemStatus) -> None:
        """Withdraw an item as lost, damaged or under maintenance."""
        status = ItemStatus(status)
        if status not in ADMIN_STATUSES:
            raise ValidationError(f"{status.value} is not an administrative status")
        self._set_status(item, status)

    def restore(
        self, session: Session, item: Item, today: date
    ) -> Optional[tuple[str, Optional[date]]]:
        """Return a withdrawn item to circulation.

        An item restored while still on loan goes back to BORROWED; otherwise
        it is AVAILABLE, or RESERVED for the queue head.
        """
        if item.item_status not in ADMIN_STATUSES:
            raise ValidationError(f"Item {item.id} is not withdrawn from circulation")

        if self.open_loan_count(session, item) > 0:
            self._set_status(item, ItemStatus.BORROWED)
            return None
        return self._set_aside(session, item, today)

    # -------------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------------

    def open_loan_count(self, session: Session, item: Item) -> int:
        from ..ledger.models import LoanTransaction
        from ..ledger.schemas import LoanState

        stmt = select(func.count()).where(
            LoanTransaction.item_id == item.id,
            LoanTransaction.state == LoanState.OPEN.value,
        )
        return session.execute(stmt).scalar() or 0

    def check_invariants(self, session: Session, item: Item) -> None:
        """Verify status, queue and open loans agree for one item.

        Raises:
            InvariantViolation: if the stored state is inconsistent
        """
        session.flush()
        status = item.item_status
        open_loans = self.open_loan_count(session, item)
        queued = not self.queue(session, item).is_empty()

        problem = None
        if open_loans > 1:
            problem = f"{open_loans} open loans"
        elif status in ADMIN_STATUSES:
            problem = None
        elif status == ItemStatus.BORROWED and open_loans != 1:
            problem = "borrowed without an open loan"
        elif status != ItemStatus.BORROWED and open_loans:
            problem = f"{status.value} with an open loan"
        elif (status == ItemStatus.RESERVED) != (queued and status != ItemStatus.BORROWED):
            problem = f"{status.value} with {'a' if queued else 'an empty'} reservation queue"

        if problem:
            logger.error("Invariant violated for item %s: %s", item.id, problem)
            raise InvariantViolation(f"Item {item.id}: {problem}")
