"""Error taxonomy for circulation requests.

Every user-facing failure is a ``CirculationError``: either a
``ValidationError`` (a precondition does not hold) or a ``NotFoundError``
(an unknown reference). Both leave state untouched. ``InvariantViolation``
sits outside this hierarchy: it signals a corrupted model, not a bad
request, and is never caught by the engine.
"""


class CirculationError(Exception):
    """Base class for recoverable circulation failures."""


class ValidationError(CirculationError):
    """A request precondition does not hold."""


class NotFoundError(CirculationError):
    """A request names an item, patron, loan or notification that does not exist."""


# Validation failures


class ItemUnavailable(ValidationError):
    """Item cannot be borrowed in its current state."""


class BorrowLimitReached(ValidationError):
    """Patron already holds as many open loans as their class allows."""


class AlreadyBorrowed(ValidationError):
    """Patron already has an open loan for this item."""


class InactiveAccount(ValidationError):
    """Patron account is deactivated."""


class AlreadyReserved(ValidationError):
    """Patron is already in the item's reservation queue."""


class NotReservable(ValidationError):
    """Item is withdrawn from circulation and takes no reservations."""


class NotOpen(ValidationError):
    """Loan is not open."""


class AlreadyReturned(NotOpen):
    """Loan has already been returned."""


class RenewalBlocked(ValidationError):
    """Loan cannot be renewed while other patrons are waiting for the item."""


# Lookup failures


class UnknownItem(NotFoundError):
    """No item with this id."""


class UnknownPatron(NotFoundError):
    """No patron account with this id."""


class NoSuchLoan(NotFoundError):
    """No matching loan."""


class NoSuchReservation(NotFoundError):
    """Patron has no reservation on this item."""


class NoSuchNotification(NotFoundError):
    """No notification with this id."""


class InvariantViolation(RuntimeError):
    """Stored circulation state contradicts the model."""
