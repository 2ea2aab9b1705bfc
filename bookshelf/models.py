"""Data models for books, categories and profiles."""
import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any


TO_READ = "to-read"
IN_PROGRESS = "in-progress"
COMPLETED = "completed"

# Fixed display order of the status shelves
STATUSES = (TO_READ, IN_PROGRESS, COMPLETED)

DEFAULT_TITLE = "Unknown Title"
DEFAULT_AUTHOR = "Unknown Author"
DEFAULT_SUMMARY = "No summary available."

RATING_LABELS = ["Terrible", "Poor", "Average", "Good", "Excellent"]


def slugify(name: str) -> str:
    """
    Derive a category identifier from a display name.

    Args:
        name: Display name as entered

    Returns:
        Lowercased name with every run of whitespace replaced by a hyphen
    """
    return re.sub(r"\s+", "-", name.strip().lower())


def validate_status(status: str) -> str:
    """Return the status unchanged, or raise ValueError if it is unknown."""
    if status not in STATUSES:
        raise ValueError(f"Unknown status: {status!r} (expected one of {', '.join(STATUSES)})")
    return status


def validate_rating(rating: float) -> float:
    """
    Check a star rating.

    Ratings go from 0 to 5 in half-star steps; 0 means unrated.

    Args:
        rating: Rating value

    Returns:
        The rating as a float
    """
    value = float(rating)
    if not 0 <= value <= 5 or (value * 2) != int(value * 2):
        raise ValueError(f"Invalid rating: {rating!r} (expected 0-5 in steps of 0.5)")
    return value


def unique_ids(ids) -> List[str]:
    """Drop duplicate ids, keeping first occurrence order."""
    seen = set()
    result = []
    for item in ids or []:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


@dataclass
class Book:
    """A book in a user's library."""
    id: str
    title: str = DEFAULT_TITLE
    author: str = DEFAULT_AUTHOR
    cover: Optional[str] = None
    summary: str = DEFAULT_SUMMARY
    year: Optional[str] = None
    status: str = TO_READ
    rating: float = 0
    review: str = ""
    categories: List[str] = field(default_factory=list)
    is_public: bool = False
    added_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "Book":
        """
        Build a Book from a stored document, filling in missing fields.

        Args:
            doc_id: Document identifier
            data: Raw document fields (any of them may be missing or None)

        Returns:
            Book with defaults applied
        """
        status = data.get("status") or TO_READ
        if status not in STATUSES:
            status = TO_READ

        return cls(
            id=doc_id,
            title=data.get("title") or DEFAULT_TITLE,
            author=data.get("author") or DEFAULT_AUTHOR,
            cover=data.get("cover"),
            summary=data.get("summary") or DEFAULT_SUMMARY,
            year=data.get("year"),
            status=status,
            rating=data.get("rating") or 0,
            review=data.get("review") or "",
            categories=unique_ids(data.get("categories")),
            is_public=bool(data.get("is_public", data.get("isPublic", False))),
            added_at=data.get("added_at"),
        )

    def to_document(self) -> Dict[str, Any]:
        """Fields as persisted (the id is the document key, not a field)."""
        return {
            "title": self.title,
            "author": self.author,
            "cover": self.cover,
            "summary": self.summary,
            "year": self.year,
            "status": self.status,
            "rating": self.rating,
            "review": self.review,
            "categories": list(self.categories),
            "is_public": self.is_public,
            "added_at": self.added_at,
        }

    @property
    def is_unassigned(self) -> bool:
        return not self.categories

    @property
    def rating_label(self) -> str:
        """Word for the whole-star part of the rating."""
        stars = math.floor(self.rating)
        if stars < 1:
            return ""
        return RATING_LABELS[stars - 1]


@dataclass
class Category:
    """A user-defined category. Membership lives on the books."""
    id: str
    name: str

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "Category":
        return cls(id=doc_id, name=data.get("name") or doc_id)

    def to_document(self) -> Dict[str, Any]:
        return {"name": self.name}


@dataclass
class CatalogBook:
    """Normalized catalog search result, not yet in anyone's library."""
    id: str
    title: str
    author: str
    cover: Optional[str]
    summary: str
    year: Optional[str]

    def to_book(
        self,
        status: str = TO_READ,
        rating: float = 0,
        categories: Optional[List[str]] = None,
        added_at: Optional[datetime] = None
    ) -> Book:
        """Turn the selection into a library book."""
        return Book(
            id=self.id,
            title=self.title,
            author=self.author,
            cover=self.cover,
            summary=self.summary,
            year=self.year,
            status=status,
            rating=rating,
            categories=unique_ids(categories),
            added_at=added_at,
        )


@dataclass
class Profile:
    """Public profile of a library owner."""
    uid: str
    display_name: str = ""
    avatar: Optional[str] = None
    bio: str = ""
    favorite_book_id: Optional[str] = None

    @classmethod
    def from_document(cls, uid: str, data: Dict[str, Any]) -> "Profile":
        return cls(
            uid=uid,
            display_name=data.get("display_name") or data.get("displayName") or "",
            avatar=data.get("avatar"),
            bio=data.get("bio") or "",
            favorite_book_id=data.get("favorite_book_id") or data.get("favoriteBookId"),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "display_name": self.display_name,
            "avatar": self.avatar,
            "bio": self.bio,
            "favorite_book_id": self.favorite_book_id,
        }
