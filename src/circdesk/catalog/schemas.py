"""Pydantic schemas for catalog entries."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ItemFormat(str, Enum):
    """Physical or digital format of a copy."""

    HARDCOVER = "hardcover"
    PAPERBACK = "paperback"
    EBOOK_PDF = "ebook_pdf"
    EBOOK_EPUB = "ebook_epub"
    EBOOK_MOBI = "ebook_mobi"
    AUDIOBOOK = "audiobook"


class ItemCategory(str, Enum):
    """Broad shelving category."""

    FICTION = "fiction"
    NONFICTION = "nonfiction"


class ItemCreate(BaseModel):
    """Schema for adding a title (and its first copies) to the catalog."""

    title: str = Field(..., min_length=1, max_length=500)
    author: str = Field(..., min_length=1, max_length=500)
    genre: Optional[str] = Field(None, max_length=100)
    category: ItemCategory = ItemCategory.FICTION
    format: ItemFormat = ItemFormat.PAPERBACK
    isbn: Optional[str] = Field(None, pattern=r"^(\d{10}|\d{13})$")
    page_count: Optional[int] = Field(None, ge=1)
    duration_minutes: Optional[int] = Field(None, ge=1)
    copies: int = Field(1, ge=1, le=100)
