"""SQLAlchemy base for the circulation tables.

Feature packages declare their own tables on ``Base``:
- catalog_entries (catalog)
- items, item_history (items)
- reservations (reservations)
- loans, journal (ledger)
- patrons (patrons)
- notifications (notifications)
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def generate_uuid() -> str:
    """Generate a UUID string for primary keys."""
    return str(uuid4())


def utc_now_iso() -> str:
    """Current UTC timestamp as an ISO string."""
    return datetime.now(timezone.utc).isoformat()
