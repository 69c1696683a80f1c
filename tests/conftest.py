"""Pytest configuration and shared fixtures.

This module provides fixtures for testing circdesk: an in-memory database,
a pinned clock, the default collaborators wired to one ledger, and small
factories for items and patrons.
"""

from datetime import date

import pytest

from circdesk.catalog import CatalogManager, ItemCreate
from circdesk.clock import FixedClock
from circdesk.db.sqlite import Database
from circdesk.ledger import CirculationLedger
from circdesk.notifications import NotificationDispatcher
from circdesk.patrons import CirculationPolicy, PatronClass, PatronCreate, PatronManager


DAY_0 = date(2025, 3, 1)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def db():
    """Create an in-memory database for testing."""
    database = Database(":memory:")
    database.create_tables()
    return database


@pytest.fixture
def clock():
    """Clock pinned to day 0."""
    return FixedClock(DAY_0)


@pytest.fixture
def policy():
    """Default circulation policy, stated explicitly."""
    return CirculationPolicy(
        borrow_limit_base=5,
        base_window_days=14,
        extended_window_days=21,
        late_fee_cents_per_day=50,
        hold_days=3,
    )


# ============================================================================
# Component Fixtures
# ============================================================================


@pytest.fixture
def patrons(db, policy):
    return PatronManager(db, policy)


@pytest.fixture
def dispatcher(db, patrons, clock):
    return NotificationDispatcher(db, accounts=patrons, clock=clock)


@pytest.fixture
def catalog(db, dispatcher):
    manager = CatalogManager(db, dispatcher=dispatcher)
    dispatcher.catalog = manager
    return manager


@pytest.fixture
def ledger(db, catalog, patrons, dispatcher, clock, policy):
    """Circulation ledger wired to the shared collaborators."""
    return CirculationLedger(
        db,
        catalog=catalog,
        accounts=patrons,
        dispatcher=dispatcher,
        clock=clock,
        policy=policy,
    )


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def make_item(catalog):
    """Factory: catalog a title with one copy and return the copy's ID."""
    counter = iter(range(1, 1000))

    def _make(title=None, genre="fiction", **kwargs):
        n = next(counter)
        data = ItemCreate(
            title=title or f"Test Book {n}",
            author=f"Author {n}",
            genre=genre,
            **kwargs,
        )
        return catalog.add_item(data)[0].id

    return _make


@pytest.fixture
def make_patron(patrons):
    """Factory: register a patron and return their ID."""

    def _make(name="Patron", patron_class=PatronClass.STANDARD, genres=None):
        account = patrons.register(
            PatronCreate(name=name, patron_class=patron_class, favorite_genres=genres or [])
        )
        return account.id

    return _make


@pytest.fixture
def item(make_item):
    return make_item("The Left Hand of Darkness")


@pytest.fixture
def p1(make_patron):
    return make_patron("Alice")


@pytest.fixture
def p2(make_patron):
    return make_patron("Bob")


@pytest.fixture
def p3(make_patron):
    return make_patron("Carol")
