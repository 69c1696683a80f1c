"""Borrow-limit and borrow-window policy by patron class."""

from dataclasses import dataclass

from .schemas import PatronClass

# Classes with a fixed quota regardless of the configured base.
FIXED_LIMITS = {
    PatronClass.FACULTY: 10,
    PatronClass.STAFF: 8,
    PatronClass.GUEST: 2,
}

EXTENDED_WINDOW_CLASSES = frozenset(
    {PatronClass.PREMIUM, PatronClass.FACULTY, PatronClass.STAFF}
)


@dataclass(frozen=True)
class CirculationPolicy:
    """Adjustable circulation constants."""

    borrow_limit_base: int = 5
    base_window_days: int = 14
    extended_window_days: int = 21
    late_fee_cents_per_day: int = 50
    hold_days: int = 3

    def borrow_limit(self, patron_class: PatronClass) -> int:
        """Maximum number of simultaneous open loans for a class."""
        patron_class = PatronClass(patron_class)
        if patron_class in FIXED_LIMITS:
            return FIXED_LIMITS[patron_class]
        if patron_class == PatronClass.PREMIUM:
            return self.borrow_limit_base * 2
        return self.borrow_limit_base

    def borrow_window(self, patron_class: PatronClass) -> int:
        """Days between checkout and due date for a class."""
        if PatronClass(patron_class) in EXTENDED_WINDOW_CLASSES:
            return self.extended_window_days
        return self.base_window_days

    def late_fee(self, days_late: int) -> int:
        """Fee in cents for a number of days past due (never negative)."""
        return max(0, days_late) * self.late_fee_cents_per_day
