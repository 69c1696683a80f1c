"""Circulation ledger.

Entry point for every circulation request. Each public operation takes the
ledger lock, opens one session, validates, mutates items, loans and
accounts together, journals the transaction and records notices. Any
failure rolls the whole session back.
"""

import logging
import threading
from collections import Counter
from datetime import date
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from ..catalog.manager import CatalogManager
from ..clock import Clock, SystemClock, add_days, days_between
from ..config import get_config
from ..db.sqlite import Database, get_db
from ..errors import (
    AlreadyBorrowed,
    AlreadyReturned,
    BorrowLimitReached,
    InactiveAccount,
    NoSuchLoan,
    RenewalBlocked,
    UnknownItem,
    ValidationError,
)
from ..interfaces import AccountDirectory, CatalogDirectory
from ..items.models import Item, ItemHistory
from ..items.schemas import ItemState, ItemStatus
from ..items.status import ItemStatusMachine
from ..notifications.manager import NotificationDispatcher
from ..patrons.manager import PatronManager
from ..patrons.policy import CirculationPolicy
from ..reservations.models import Reservation
from .models import JournalEntry, LoanTransaction
from .schemas import CirculationStats, LoanState, LoanSummary, SweepReport, TransactionKind

logger = logging.getLogger(__name__)


class CirculationLedger:
    """Borrow, return, reserve, cancel and renew, with fees and notices."""

    def __init__(
        self,
        db: Optional[Database] = None,
        catalog: Optional[CatalogDirectory] = None,
        accounts: Optional[AccountDirectory] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        clock: Optional[Clock] = None,
        policy: Optional[CirculationPolicy] = None,
    ):
        """Initialize the ledger and wire its collaborators.

        Args:
            db: Database instance
            catalog: Catalog lookups (default: CatalogManager on ``db``)
            accounts: Account lookups (default: PatronManager on ``db``)
            dispatcher: Notification sink (default: NotificationDispatcher on ``db``)
            clock: Source of "today" (default: system clock)
            policy: Circulation policy (default: from configuration)
        """
        self.db = db or get_db()
        self.clock = clock or SystemClock()
        self.policy = policy or get_config().policy
        self.accounts = accounts or PatronManager(self.db, self.policy)
        self.dispatcher = dispatcher or NotificationDispatcher(
            self.db, accounts=self.accounts, clock=self.clock
        )
        if catalog is None:
            catalog = CatalogManager(self.db, dispatcher=self.dispatcher)
        self.catalog = catalog
        if self.dispatcher.catalog is None:
            self.dispatcher.catalog = catalog
        if self.dispatcher.accounts is None:
            self.dispatcher.accounts = self.accounts
        self.status_machine = ItemStatusMachine(hold_days=self.policy.hold_days)
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _require_item(self, session: Session, item_id: str) -> Item:
        item = session.get(Item, item_id) if self.catalog.item_exists(item_id) else None
        if item is None:
            raise UnknownItem(f"Item not found: {item_id}")
        return item

    def _require_active(self, patron_id: str) -> None:
        # Raises UnknownPatron for ids the account directory does not know
        if not self.accounts.is_active(patron_id):
            raise InactiveAccount(f"Patron {patron_id} is inactive")

    def _open_loans_for(self, session: Session, patron_id: str) -> list[LoanTransaction]:
        stmt = select(LoanTransaction).where(
            LoanTransaction.patron_id == patron_id,
            LoanTransaction.state == LoanState.OPEN.value,
        )
        return list(session.execute(stmt).scalars().all())

    def _open_loan(self, session: Session, patron_id: str, item_id: str) -> Optional[LoanTransaction]:
        stmt = select(LoanTransaction).where(
            LoanTransaction.patron_id == patron_id,
            LoanTransaction.item_id == item_id,
            LoanTransaction.state == LoanState.OPEN.value,
        )
        return session.execute(stmt).scalar_one_or_none()

    def _journal(
        self,
        session: Session,
        kind: TransactionKind,
        item_id: str,
        patron_id: Optional[str] = None,
        loan_id: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> JournalEntry:
        entry = JournalEntry(
            kind=kind.value,
            patron_id=patron_id,
            item_id=item_id,
            loan_id=loan_id,
            detail=detail,
            created_at=self.clock.now().isoformat(),
        )
        session.add(entry)
        return entry

    def _detach(self, session: Session, obj):
        session.flush()
        session.refresh(obj)
        session.expunge(obj)
        return obj

    def _notify_ready(self, session: Session, item: Item, ready) -> None:
        if ready is None:
            return
        head, hold_until = ready
        self.dispatcher.reservation_ready(head, item.id, hold_until, session=session)

    # -------------------------------------------------------------------------
    # Circulation requests
    # -------------------------------------------------------------------------

    def borrow(self, patron_id: str, item_id: str) -> LoanTransaction:
        """Check an item out to a patron.

        Args:
            patron_id: Borrowing patron
            item_id: Item to check out

        Returns:
            The new open loan

        Raises:
            UnknownItem, UnknownPatron, InactiveAccount, AlreadyBorrowed,
            ItemUnavailable, BorrowLimitReached
        """
        with self._lock, self.db.get_session() as session:
            today = self.clock.today()
            item = self._require_item(session, item_id)
            self._require_active(patron_id)

            if self._open_loan(session, patron_id, item_id) is not None:
                logger.debug("Borrow refused: %s already holds %s", patron_id, item_id)
                raise AlreadyBorrowed(f"Patron {patron_id} already has item {item_id}")

            self.status_machine.ensure_borrowable(session, item, patron_id, today)

            patron_class = self.accounts.account_class(patron_id)
            limit = self.policy.borrow_limit(patron_class)
            if len(self._open_loans_for(session, patron_id)) >= limit:
                logger.debug("Borrow refused: %s is at the limit of %d", patron_id, limit)
                raise BorrowLimitReached(
                    f"Borrow limit reached ({limit} items). Return something first."
                )

            loan = LoanTransaction(
                patron_id=patron_id,
                item_id=item_id,
                state=LoanState.OPEN.value,
                checkout_at=self.clock.now().isoformat(),
                due_date=add_days(today, self.policy.borrow_window(patron_class)).isoformat(),
                late_fee_cents=0,
                renewals=0,
            )
            session.add(loan)
            session.flush()

            self.status_machine.record_borrow(session, item, patron_id)
            self._journal(session, TransactionKind.BORROW, item_id, patron_id, loan.id,
                          detail=f"due {loan.due_date}")
            self.status_machine.check_invariants(session, item)

            logger.info("Patron %s borrowed item %s, due %s", patron_id, item_id, loan.due_date)
            return self._detach(session, loan)

    def return_item(self, patron_id: str, item_id: str) -> LoanTransaction:
        """Close the patron's open loan on an item.

        Any late fee is charged to the patron's balance. If others are
        waiting, the item is set aside for the head of the queue and they
        are notified.

        Raises:
            NoSuchLoan: if the patron has no open loan on the item
        """
        with self._lock, self.db.get_session() as session:
            today = self.clock.today()
            loan = self._open_loan(session, patron_id, item_id)
            if loan is None:
                raise NoSuchLoan(f"Patron {patron_id} has no open loan on item {item_id}")
            item = self._require_item(session, item_id)

            fee = self.policy.late_fee(days_between(loan.due_date, today))
            loan.state = LoanState.RETURNED.value
            loan.returned_at = self.clock.now().isoformat()
            loan.late_fee_cents = fee
            if fee > 0:
                self.accounts.charge(patron_id, fee, session=session)

            ready = self.status_machine.record_return(session, item, patron_id, today)
            self._notify_ready(session, item, ready)

            detail = f"late fee {fee} cents" if fee else None
            self._journal(session, TransactionKind.RETURN, item_id, patron_id, loan.id, detail)
            self.status_machine.check_invariants(session, item)

            logger.info("Patron %s returned item %s (fee %d)", patron_id, item_id, fee)
            return self._detach(session, loan)

    def reserve(self, patron_id: str, item_id: str) -> Reservation:
        """Put a patron in an item's reservation queue.

        Raises:
            UnknownItem, UnknownPatron, InactiveAccount, AlreadyBorrowed,
            NotReservable, AlreadyReserved
        """
        with self._lock, self.db.get_session() as session:
            today = self.clock.today()
            item = self._require_item(session, item_id)
            self._require_active(patron_id)
            if self._open_loan(session, patron_id, item_id) is not None:
                raise AlreadyBorrowed(f"Patron {patron_id} already has item {item_id}")

            was_available = item.item_status == ItemStatus.AVAILABLE
            ticket, hold_until = self.status_machine.reserve(session, item, patron_id, today)
            if was_available:
                # The item is on the shelf, so the new head can pick it up now
                self.dispatcher.reservation_ready(patron_id, item_id, hold_until, session=session)

            self._journal(session, TransactionKind.RESERVE, item_id, patron_id)
            self.status_machine.check_invariants(session, item)

            logger.info("Patron %s reserved item %s", patron_id, item_id)
            return self._detach(session, ticket)

    def cancel_reservation(self, patron_id: str, item_id: str) -> None:
        """Remove a patron from an item's reservation queue.

        Raises:
            UnknownItem, NoSuchReservation
        """
        with self._lock, self.db.get_session() as session:
            today = self.clock.today()
            item = self._require_item(session, item_id)

            ready = self.status_machine.cancel_reservation(session, item, patron_id, today)
            self._notify_ready(session, item, ready)

            self._journal(session, TransactionKind.CANCEL, item_id, patron_id)
            self.status_machine.check_invariants(session, item)
            logger.info("Patron %s cancelled reservation on item %s", patron_id, item_id)

    def renew(self, loan_id: str, additional_days: int) -> LoanTransaction:
        """Push an open loan's due date forward.

        The new due date counts from the current due date, not from today.
        Renewal is refused while anyone is waiting for the item.

        Raises:
            ValidationError, NoSuchLoan, AlreadyReturned, RenewalBlocked
        """
        if additional_days <= 0:
            raise ValidationError("Renewal must add at least one day")

        with self._lock, self.db.get_session() as session:
            loan = session.get(LoanTransaction, loan_id)
            if loan is None:
                raise NoSuchLoan(f"Loan not found: {loan_id}")
            if not loan.is_open:
                raise AlreadyReturned(f"Loan {loan_id} was already returned")

            waiting = session.execute(
                select(func.count()).where(Reservation.item_id == loan.item_id)
            ).scalar() or 0
            if waiting:
                logger.debug("Renewal refused: %d waiting for item %s", waiting, loan.item_id)
                raise RenewalBlocked(
                    f"Item {loan.item_id} has {waiting} pending reservation(s)"
                )

            old_due = loan.due_date
            loan.due_date = add_days(loan.due_date, additional_days).isoformat()
            loan.renewals = (loan.renewals or 0) + 1
            self._journal(session, TransactionKind.RENEW, loan.item_id, loan.patron_id, loan.id,
                          detail=f"{old_due} -> {loan.due_date}")

            logger.info("Loan %s renewed: due %s -> %s", loan_id, old_due, loan.due_date)
            return self._detach(session, loan)

    # -------------------------------------------------------------------------
    # Fees
    # -------------------------------------------------------------------------

    def late_fee_for(self, loan: LoanTransaction, as_of: Optional[date] = None) -> int:
        """Late fee in cents.

        Projected as of ``as_of`` (default today) for open loans; the fee
        charged at return for returned loans. Never mutates anything.
        """
        if not loan.is_open:
            return loan.late_fee_cents or 0
        as_of = as_of or self.clock.today()
        return self.policy.late_fee(days_between(loan.due_date, as_of))

    def pay(self, patron_id: str, cents: Optional[int] = None) -> int:
        """Apply a payment to a patron's balance.

        Runs under the ledger lock so it never interleaves with a return
        that is charging a late fee.

        Returns:
            Amount actually applied, in cents
        """
        with self._lock, self.db.get_session() as session:
            return self.accounts.pay(patron_id, cents, session=session)

    # -------------------------------------------------------------------------
    # Administrative overrides
    # -------------------------------------------------------------------------

    def mark_unavailable(self, item_id: str, status: ItemStatus, reason: Optional[str] = None) -> Item:
        """Withdraw an item as lost, damaged or under maintenance."""
        with self._lock, self.db.get_session() as session:
            item = self._require_item(session, item_id)
            self.status_machine.mark_unavailable(item, status)
            self._journal(session, TransactionKind.WITHDRAW, item_id,
                          detail=f"{ItemStatus(status).value}: {reason}" if reason else ItemStatus(status).value)
            self.status_machine.check_invariants(session, item)
            return self._detach(session, item)

    def restore(self, item_id: str) -> Item:
        """Put a withdrawn item back into circulation."""
        with self._lock, self.db.get_session() as session:
            item = self._require_item(session, item_id)
            ready = self.status_machine.restore(session, item, self.clock.today())
            self._notify_ready(session, item, ready)
            self._journal(session, TransactionKind.RESTORE, item_id, detail=item.status)
            self.status_machine.check_invariants(session, item)
            return self._detach(session, item)

    def remove_item(self, item_id: str, reason: Optional[str] = None) -> None:
        """Delete a copy from the collection.

        Refused while the copy is on loan or anyone is queued for it. Its
        loans and journal entries are kept.

        Raises:
            UnknownItem, ValidationError
        """
        with self._lock, self.db.get_session() as session:
            item = self._require_item(session, item_id)
            if self.status_machine.open_loan_count(session, item):
                raise ValidationError(f"Item {item_id} is on loan and cannot be removed")
            waiting = len(self.status_machine.queue(session, item))
            if waiting:
                raise ValidationError(
                    f"Item {item_id} has {waiting} pending reservation(s) and cannot be removed"
                )

            session.execute(delete(ItemHistory).where(ItemHistory.item_id == item_id))
            session.delete(item)
            self._journal(session, TransactionKind.REMOVE, item_id, detail=reason)
            logger.info("Removed item %s from the collection", item_id)

    # -------------------------------------------------------------------------
    # Due-date sweep
    # -------------------------------------------------------------------------

    def sweep(self, as_of: Optional[date] = None) -> SweepReport:
        """Scan open loans and record due-soon and overdue notices.

        Safe to run repeatedly: due-soon fires once per due date and overdue
        at most once per loan per day.
        """
        with self._lock, self.db.get_session() as session:
            as_of = as_of or self.clock.today()
            loans = session.execute(
                select(LoanTransaction).where(LoanTransaction.state == LoanState.OPEN.value)
            ).scalars().all()

            due_soon = overdue = 0
            for loan in loans:
                remaining = days_between(as_of, loan.due_date)
                if remaining == 1:
                    if self.dispatcher.due_soon(
                        loan.patron_id, loan.item_id, loan.id, loan.due, session=session
                    ):
                        due_soon += 1
                elif remaining < 0:
                    if self.dispatcher.overdue(
                        loan.patron_id, loan.item_id, loan.id, -remaining, as_of, session=session
                    ):
                        overdue += 1

            logger.info(
                "Sweep %s: %d open loans, %d due-soon, %d overdue notices",
                as_of, len(loans), due_soon, overdue,
            )
            return SweepReport(as_of=as_of, scanned=len(loans), due_soon=due_soon, overdue=overdue)

    # -------------------------------------------------------------------------
    # Read-only snapshots
    # -------------------------------------------------------------------------

    def _loans(self, stmt) -> list[LoanTransaction]:
        with self._lock, self.db.get_session() as session:
            loans = session.execute(stmt).scalars().all()
            for loan in loans:
                session.expunge(loan)
            return list(loans)

    def get_loan(self, loan_id: str) -> LoanTransaction:
        with self._lock, self.db.get_session() as session:
            loan = session.get(LoanTransaction, loan_id)
            if loan is None:
                raise NoSuchLoan(f"Loan not found: {loan_id}")
            session.expunge(loan)
            return loan

    def open_loans(self) -> list[LoanTransaction]:
        """All open loans, earliest due first."""
        return self._loans(
            select(LoanTransaction)
            .where(LoanTransaction.state == LoanState.OPEN.value)
            .order_by(LoanTransaction.due_date, LoanTransaction.checkout_at)
        )

    def overdue_loans(self, as_of: Optional[date] = None) -> list[LoanTransaction]:
        """Open loans past their due date."""
        as_of = as_of or self.clock.today()
        return self._loans(
            select(LoanTransaction)
            .where(
                LoanTransaction.state == LoanState.OPEN.value,
                LoanTransaction.due_date < as_of.isoformat(),
            )
            .order_by(LoanTransaction.due_date)
        )

    def loans_for(self, patron_id: str, open_only: bool = False) -> list[LoanTransaction]:
        """A patron's loans, newest first."""
        stmt = select(LoanTransaction).where(LoanTransaction.patron_id == patron_id)
        if open_only:
            stmt = stmt.where(LoanTransaction.state == LoanState.OPEN.value)
        return self._loans(stmt.order_by(LoanTransaction.checkout_at.desc()))

    def borrow_counts(self) -> dict[str, int]:
        """Times each item has been borrowed."""
        with self._lock, self.db.get_session() as session:
            rows = session.execute(select(Item.id, Item.borrow_count)).all()
            return {item_id: count or 0 for item_id, count in rows}

    def most_borrowed(self, limit: int = 10) -> list[tuple[str, int]]:
        """Most borrowed items, busiest first."""
        return Counter(self.borrow_counts()).most_common(limit)

    def summarize(self, loan: LoanTransaction, as_of: Optional[date] = None) -> LoanSummary:
        """Listing view of a loan."""
        as_of = as_of or self.clock.today()
        title = self.catalog.title_of(loan.item_id)
        return LoanSummary(
            id=loan.id,
            patron_id=loan.patron_id,
            item_id=loan.item_id,
            title=title,
            state=LoanState(loan.state),
            due_date=loan.due,
            days_overdue=loan.days_overdue(as_of),
            late_fee_cents=self.late_fee_for(loan, as_of),
            renewals=loan.renewals or 0,
        )

    def item_state(self, item_id: str) -> ItemState:
        """Status, queue and hold of one item."""
        with self._lock, self.db.get_session() as session:
            item = self._require_item(session, item_id)
            queue = self.status_machine.queue(session, item)
            return ItemState(
                id=item.id,
                title=item.entry.title,
                status=item.item_status,
                borrow_count=item.borrow_count or 0,
                queue=queue.patrons(),
                hold_until=queue.hold_until() if item.item_status == ItemStatus.RESERVED else None,
            )

    def item_history(self, item_id: str) -> list[ItemHistory]:
        """Borrow history of one item, oldest first."""
        with self._lock, self.db.get_session() as session:
            self._require_item(session, item_id)
            rows = session.execute(
                select(ItemHistory).where(ItemHistory.item_id == item_id).order_by(ItemHistory.id)
            ).scalars().all()
            for row in rows:
                session.expunge(row)
            return list(rows)

    def journal(
        self,
        item_id: Optional[str] = None,
        patron_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[JournalEntry]:
        """Journal entries, oldest first."""
        with self._lock, self.db.get_session() as session:
            stmt = select(JournalEntry)
            if item_id:
                stmt = stmt.where(JournalEntry.item_id == item_id)
            if patron_id:
                stmt = stmt.where(JournalEntry.patron_id == patron_id)
            stmt = stmt.order_by(JournalEntry.id)
            entries = list(session.execute(stmt).scalars().all())
            if limit:
                entries = entries[-limit:]
            for e in entries:
                session.expunge(e)
            return entries

    def stats(self, as_of: Optional[date] = None) -> CirculationStats:
        """Overall circulation statistics."""
        as_of = as_of or self.clock.today()
        with self._lock, self.db.get_session() as session:
            by_status = dict(
                session.execute(select(Item.status, func.count()).group_by(Item.status)).all()
            )
            total_loans = session.execute(
                select(func.count()).select_from(LoanTransaction)
            ).scalar() or 0
            open_count = session.execute(
                select(func.count()).where(LoanTransaction.state == LoanState.OPEN.value)
            ).scalar() or 0
            overdue_count = session.execute(
                select(func.count()).where(
                    LoanTransaction.state == LoanState.OPEN.value,
                    LoanTransaction.due_date < as_of.isoformat(),
                )
            ).scalar() or 0
            pending = session.execute(
                select(func.count()).select_from(Reservation)
            ).scalar() or 0
            fees = session.execute(
                select(func.coalesce(func.sum(LoanTransaction.late_fee_cents), 0))
            ).scalar() or 0

            return CirculationStats(
                total_items=sum(by_status.values()),
                items_by_status={s.value: by_status.get(s.value, 0) for s in ItemStatus},
                open_loans=open_count,
                overdue_loans=overdue_count,
                total_loans=total_loans,
                pending_reservations=pending,
                fees_assessed_cents=fees,
            )
