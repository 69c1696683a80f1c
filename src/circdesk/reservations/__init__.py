"""Reservation queue module.

Provides functionality for:
- Per-item FIFO waiting lists
- Exclusive pickup windows for the head of the queue
"""

from .models import Reservation
from .queue import ReservationQueue

__all__ = [
    "Reservation",
    "ReservationQueue",
]
