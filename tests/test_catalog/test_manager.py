"""Tests for CatalogManager and format-derived fields."""

import pytest
from pydantic import ValidationError as SchemaError

from circdesk.catalog import ItemCreate, ItemFormat, estimate_reading_minutes, is_digital
from circdesk.errors import NotFoundError
from circdesk.items import ItemStatus


class TestAddItem:
    """Tests for cataloging titles."""

    def test_add_with_copies(self, catalog):
        """Test each copy is a separate available item."""
        items = catalog.add_item(
            ItemCreate(title="Beloved", author="Toni Morrison", genre="Literary", copies=3)
        )

        assert len(items) == 3
        assert len({i.id for i in items}) == 3
        assert all(i.status == ItemStatus.AVAILABLE.value for i in items)
        assert items[0].entry.genre == "literary"

    def test_add_copy(self, catalog):
        item = catalog.add_item(ItemCreate(title="Emma", author="Jane Austen"))[0]
        copy = catalog.add_copy(item.entry_id)
        assert copy.entry_id == item.entry_id
        assert len(catalog.list_items(item.entry_id)) == 2

    def test_add_copy_unknown_entry(self, catalog):
        with pytest.raises(NotFoundError):
            catalog.add_copy("missing")

    def test_invalid_isbn(self):
        """Test ISBNs must be 10 or 13 digits."""
        with pytest.raises(SchemaError):
            ItemCreate(title="Bad", author="Anon", isbn="12345")


class TestLookup:
    """Tests for catalog lookups."""

    def test_directory_lookups(self, catalog, item):
        assert catalog.item_exists(item)
        assert not catalog.item_exists("missing")
        assert catalog.genre_of(item) == "fiction"
        assert catalog.title_of(item) == "The Left Hand of Darkness"
        assert catalog.genre_of("missing") is None

    def test_search(self, catalog):
        """Test search matches title, author and genre."""
        catalog.add_item(ItemCreate(title="Dune", author="Frank Herbert", genre="science fiction"))
        catalog.add_item(ItemCreate(title="Emma", author="Jane Austen", genre="romance"))

        assert [e.title for e in catalog.search("dune")] == ["Dune"]
        assert [e.title for e in catalog.search("austen")] == ["Emma"]
        assert [e.title for e in catalog.search("science")] == ["Dune"]
        assert catalog.search("zzz") == []

    def test_get_item(self, catalog, item):
        assert catalog.get_item(item).entry.title == "The Left Hand of Darkness"
        assert catalog.get_item("missing") is None


class TestFormats:
    """Tests for reading-time estimates by format."""

    def test_print_formats(self):
        assert estimate_reading_minutes(ItemFormat.PAPERBACK, page_count=300) == 300
        assert estimate_reading_minutes(ItemFormat.EBOOK_EPUB, page_count=300) == 250
        assert estimate_reading_minutes(ItemFormat.EBOOK_PDF, page_count=200) == 250

    def test_audiobook_uses_duration(self):
        assert estimate_reading_minutes(ItemFormat.AUDIOBOOK, page_count=300, duration_minutes=600) == 600

    def test_missing_pages(self):
        assert estimate_reading_minutes(ItemFormat.HARDCOVER) is None

    def test_is_digital(self):
        assert not is_digital(ItemFormat.HARDCOVER)
        assert is_digital(ItemFormat.EBOOK_MOBI)
        assert is_digital(ItemFormat.AUDIOBOOK)

    def test_entry_reading_minutes(self, catalog):
        item = catalog.add_item(
            ItemCreate(title="Neuromancer", author="William Gibson", format=ItemFormat.EBOOK_EPUB, page_count=240)
        )[0]
        assert item.entry.reading_minutes == 200
