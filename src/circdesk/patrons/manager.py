"""Patron manager for account class, standing and balance."""

import logging
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from ..db.sqlite import Database, get_db
from ..errors import UnknownPatron, ValidationError
from .models import PatronAccount
from .policy import CirculationPolicy
from .schemas import PatronClass, PatronCreate, PatronSummary

logger = logging.getLogger(__name__)


class PatronManager:
    """Manages patron accounts and their borrow-limit policy."""

    def __init__(self, db: Optional[Database] = None, policy: Optional[CirculationPolicy] = None):
        """Initialize patron manager.

        Args:
            db: Database instance
            policy: Circulation policy (defaults to the configured one)
        """
        if policy is None:
            from ..config import get_config

            policy = get_config().policy
        self.db = db or get_db()
        self.policy = policy

    def _require(self, session: Session, patron_id: str) -> PatronAccount:
        patron = session.get(PatronAccount, patron_id)
        if patron is None:
            raise UnknownPatron(f"Patron not found: {patron_id}")
        return patron

    # -------------------------------------------------------------------------
    # Account Management
    # -------------------------------------------------------------------------

    def register(self, data: PatronCreate) -> PatronAccount:
        """Register a new patron account.

        Args:
            data: Patron creation data

        Returns:
            Created account
        """
        with self.db.get_session() as session:
            patron = PatronAccount(
                name=data.name,
                email=data.email,
                patron_class=data.patron_class.value,
            )
            patron.set_favorite_genres(data.favorite_genres)
            session.add(patron)
            session.flush()
            session.refresh(patron)
            session.expunge(patron)
            logger.info("Registered patron %s (%s)", patron.id, patron.patron_class)
            return patron

    def get(self, patron_id: str) -> Optional[PatronAccount]:
        """Get a patron by ID."""
        with self.db.get_session() as session:
            patron = session.get(PatronAccount, patron_id)
            if patron:
                session.expunge(patron)
            return patron

    def get_by_name(self, name: str) -> Optional[PatronAccount]:
        """Get a patron by name (case insensitive)."""
        with self.db.get_session() as session:
            stmt = select(PatronAccount).where(func.lower(PatronAccount.name) == name.lower())
            patron = session.execute(stmt).scalars().first()
            if patron:
                session.expunge(patron)
            return patron

    def list_patrons(self, active_only: bool = False) -> list[PatronAccount]:
        """List patron accounts ordered by name."""
        with self.db.get_session() as session:
            stmt = select(PatronAccount).order_by(PatronAccount.name)
            if active_only:
                stmt = stmt.where(PatronAccount.active.is_(True))
            patrons = session.execute(stmt).scalars().all()
            for p in patrons:
                session.expunge(p)
            return list(patrons)

    def change_class(self, patron_id: str, patron_class: PatronClass) -> PatronAccount:
        """Move a patron to another class. Takes effect on the next borrow."""
        with self.db.get_session() as session:
            patron = self._require(session, patron_id)
            patron.patron_class = PatronClass(patron_class).value
            session.flush()
            session.refresh(patron)
            session.expunge(patron)
            logger.info("Patron %s is now %s", patron_id, patron.patron_class)
            return patron

    def set_active(self, patron_id: str, active: bool) -> PatronAccount:
        """Activate or deactivate an account."""
        with self.db.get_session() as session:
            patron = self._require(session, patron_id)
            patron.active = active
            session.flush()
            session.refresh(patron)
            session.expunge(patron)
            return patron

    def add_favorite_genre(self, patron_id: str, genre: str) -> list[str]:
        """Add a genre to the patron's favorites.

        Returns:
            Updated list of favorite genres
        """
        genre = genre.strip().lower()
        if not genre:
            raise ValidationError("Genre cannot be empty")
        with self.db.get_session() as session:
            patron = self._require(session, patron_id)
            genres = patron.get_favorite_genres()
            if genre not in genres:
                genres.append(genre)
                patron.set_favorite_genres(genres)
            return genres

    # -------------------------------------------------------------------------
    # Balance
    # -------------------------------------------------------------------------

    def charge(self, patron_id: str, cents: int, session: Optional[Session] = None) -> int:
        """Add an amount to the patron's outstanding balance.

        The balance is updated in one statement so concurrent writers
        cannot lose each other's changes.

        Returns:
            New balance in cents
        """

        def _charge(s: Session) -> int:
            stmt = (
                update(PatronAccount)
                .where(PatronAccount.id == patron_id)
                .values(balance_cents=PatronAccount.balance_cents + cents)
                .returning(PatronAccount.balance_cents)
            )
            balance = s.execute(stmt).scalar_one_or_none()
            if balance is None:
                raise UnknownPatron(f"Patron not found: {patron_id}")
            return balance

        if session is not None:
            return _charge(session)
        with self.db.get_session() as s:
            return _charge(s)

    def pay(
        self, patron_id: str, cents: Optional[int] = None, session: Optional[Session] = None
    ) -> int:
        """Pay down the outstanding balance.

        The write only lands if the balance is still the one the payment was
        computed from; otherwise the payment is recomputed.

        Args:
            patron_id: Patron ID
            cents: Amount to pay (default: the whole balance)
            session: Session to run in (default: a new one)

        Returns:
            Amount actually applied, in cents
        """
        if cents is not None and cents <= 0:
            raise ValidationError("Payment must be positive")

        def _pay(s: Session) -> int:
            while True:
                balance = s.execute(
                    select(PatronAccount.balance_cents).where(PatronAccount.id == patron_id)
                ).scalar_one_or_none()
                if balance is None:
                    raise UnknownPatron(f"Patron not found: {patron_id}")
                paid = balance if cents is None else min(cents, balance)
                result = s.execute(
                    update(PatronAccount)
                    .where(
                        PatronAccount.id == patron_id,
                        PatronAccount.balance_cents == balance,
                    )
                    .values(balance_cents=balance - paid)
                )
                if result.rowcount:
                    logger.info("Patron %s paid %d cents", patron_id, paid)
                    return paid

        if session is not None:
            return _pay(session)
        with self.db.get_session() as s:
            return _pay(s)

    # -------------------------------------------------------------------------
    # Account directory (read by the circulation ledger)
    # -------------------------------------------------------------------------

    def account_class(self, patron_id: str) -> PatronClass:
        with self.db.get_session() as session:
            return self._require(session, patron_id).account_class

    def is_active(self, patron_id: str) -> bool:
        with self.db.get_session() as session:
            return bool(self._require(session, patron_id).active)

    def patrons_with_favorite_genre(self, genre: str) -> list[str]:
        """IDs of active patrons who list ``genre`` among their favorites."""
        genre = genre.strip().lower()
        return [
            p.id
            for p in self.list_patrons(active_only=True)
            if genre in p.get_favorite_genres()
        ]

    # -------------------------------------------------------------------------
    # Loan account
    # -------------------------------------------------------------------------

    def borrow_limit(self, patron_id: str) -> int:
        return self.policy.borrow_limit(self.account_class(patron_id))

    def active_loan_ids(self, patron_id: str) -> list[str]:
        """IDs of the patron's open loans."""
        from ..ledger.models import LoanTransaction
        from ..ledger.schemas import LoanState

        with self.db.get_session() as session:
            self._require(session, patron_id)
            stmt = (
                select(LoanTransaction.id)
                .where(
                    LoanTransaction.patron_id == patron_id,
                    LoanTransaction.state == LoanState.OPEN.value,
                )
                .order_by(LoanTransaction.checkout_at)
            )
            return list(session.execute(stmt).scalars().all())

    def reserved_item_ids(self, patron_id: str) -> list[str]:
        """IDs of the items the patron is queued for."""
        from ..reservations.models import Reservation

        with self.db.get_session() as session:
            self._require(session, patron_id)
            stmt = (
                select(Reservation.item_id)
                .where(Reservation.patron_id == patron_id)
                .order_by(Reservation.position)
            )
            return list(session.execute(stmt).scalars().all())

    def can_borrow_more(self, patron_id: str) -> bool:
        """Whether the patron is under their class's borrow limit right now."""
        return len(self.active_loan_ids(patron_id)) < self.borrow_limit(patron_id)

    def summary(self, patron_id: str) -> PatronSummary:
        """Account with its derived loan state."""
        patron = self.get(patron_id)
        if patron is None:
            raise UnknownPatron(f"Patron not found: {patron_id}")
        return PatronSummary(
            id=patron.id,
            name=patron.name,
            patron_class=patron.account_class,
            active=patron.active,
            balance_cents=patron.balance_cents,
            borrow_limit=self.policy.borrow_limit(patron.account_class),
            open_loans=len(self.active_loan_ids(patron_id)),
            reservations=len(self.reserved_item_ids(patron_id)),
            favorite_genres=patron.get_favorite_genres(),
        )
