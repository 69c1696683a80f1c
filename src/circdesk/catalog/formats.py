"""Computed fields keyed by item format."""

from typing import Optional

from .schemas import ItemFormat

# Average pages per minute by format
PAGES_PER_MINUTE = {
    ItemFormat.HARDCOVER: 1.0,
    ItemFormat.PAPERBACK: 1.0,
    ItemFormat.EBOOK_PDF: 0.8,
    ItemFormat.EBOOK_EPUB: 1.2,
    ItemFormat.EBOOK_MOBI: 1.2,
}


def is_digital(fmt: ItemFormat) -> bool:
    """Whether the format is an electronic file or audio."""
    return ItemFormat(fmt) not in (ItemFormat.HARDCOVER, ItemFormat.PAPERBACK)


def estimate_reading_minutes(
    fmt: ItemFormat,
    page_count: Optional[int] = None,
    duration_minutes: Optional[int] = None,
) -> Optional[int]:
    """Estimated time to finish a copy, in minutes.

    Audiobooks report their running time; everything else is derived from
    the page count.
    """
    fmt = ItemFormat(fmt)
    if fmt == ItemFormat.AUDIOBOOK:
        return duration_minutes
    if not page_count:
        return None
    return round(page_count / PAGES_PER_MINUTE[fmt])
