"""Pydantic schemas for patron accounts."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class PatronClass(str, Enum):
    """Account class, drives borrow limit and borrow window."""

    STANDARD = "standard"
    PREMIUM = "premium"
    STUDENT = "student"
    FACULTY = "faculty"
    STAFF = "staff"
    GUEST = "guest"


class PatronCreate(BaseModel):
    """Schema for registering a patron account."""

    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = Field(None, max_length=200)
    patron_class: PatronClass = PatronClass.STANDARD
    favorite_genres: list[str] = Field(default_factory=list)

    @field_validator("favorite_genres")
    @classmethod
    def normalize_genres(cls, v):
        """Lowercase and de-duplicate genres, keeping first-seen order."""
        seen: list[str] = []
        for genre in v:
            g = genre.strip().lower()
            if g and g not in seen:
                seen.append(g)
        return seen


class PatronSummary(BaseModel):
    """Patron account with its derived loan state."""

    id: str
    name: str
    patron_class: PatronClass
    active: bool
    balance_cents: int
    borrow_limit: int
    open_loans: int
    reservations: int
    favorite_genres: list[str]
