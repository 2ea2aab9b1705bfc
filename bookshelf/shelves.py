"""Group a library into displayable shelves."""
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from bookshelf.membership import MembershipModel
from bookshelf.models import Book, STATUSES

logger = logging.getLogger(__name__)

UNASSIGNED = "unassigned"
UNASSIGNED_TITLE = "Unassigned Books"
UNCATEGORIZED = "Uncategorized"

STATUS_KIND = "status"
UNASSIGNED_KIND = "unassigned"
CATEGORY_KIND = "category"


def status_title(status: str) -> str:
    """'in-progress' -> 'IN PROGRESS'."""
    return status.replace("-", " ").upper()


@dataclass
class Shelf:
    """A named, collapsible group of books."""
    key: str
    title: str
    kind: str
    books: List[Book] = field(default_factory=list)
    is_open: bool = False

    @property
    def editable(self) -> bool:
        """Only category shelves can be renamed or deleted."""
        return self.kind == CATEGORY_KIND

    @property
    def count(self) -> int:
        return len(self.books)


class ShelfState:
    """Expand/collapse state per shelf key, persisted as JSON."""

    def __init__(self, path: Optional[str] = None):
        """
        Load saved state.

        Args:
            path: JSON file to persist to (None keeps state in memory only)
        """
        self.path = Path(path) if path else None
        self._open: Dict[str, bool] = self._load()

    def _load(self) -> Dict[str, bool]:
        if not self.path or not self.path.exists():
            return {}
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable shelf state {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed shelf state {self.path}")
            return {}
        return {str(key): bool(value) for key, value in data.items()}

    def _save(self):
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(self._open, f, indent=2)

    def sync(self, keys: Iterable[str]):
        """
        Match the stored state to the current shelf keys.

        Keys seen for the first time start collapsed; keys of shelves that
        no longer exist are dropped, so a re-created category starts
        collapsed too.
        """
        keys = list(keys)
        stale = [key for key in self._open if key not in keys]
        for key in stale:
            del self._open[key]
        added = [key for key in keys if key not in self._open]
        for key in added:
            self._open[key] = False
        if added or stale:
            self._save()

    def is_open(self, key: str) -> bool:
        return self._open.get(key, False)

    def toggle(self, key: str) -> bool:
        """Flip a shelf open/closed and return the new state."""
        self._open[key] = not self._open.get(key, False)
        self._save()
        return self._open[key]

    def as_dict(self) -> Dict[str, bool]:
        return dict(self._open)


class ShelfPartitioner:
    """Derive the ordered shelf list from a membership snapshot."""

    def shelf_keys(self, model: MembershipModel) -> List[str]:
        return list(STATUSES) + [UNASSIGNED] + [category.id for category in model.categories]

    def partition(self, model: MembershipModel, state: Optional[ShelfState] = None) -> List[Shelf]:
        """
        Build shelves in display order.

        Status shelves come first in fixed order, then the unassigned
        shelf, then one shelf per category in store order.

        Args:
            model: Membership snapshot
            state: Expand/collapse state (all collapsed when omitted)

        Returns:
            List of shelves
        """
        if state is not None:
            state.sync(self.shelf_keys(model))

        def is_open(key):
            return state.is_open(key) if state is not None else False

        shelves = [
            Shelf(
                key=status,
                title=status_title(status),
                kind=STATUS_KIND,
                books=model.books_by_status(status),
                is_open=is_open(status),
            )
            for status in STATUSES
        ]

        shelves.append(Shelf(
            key=UNASSIGNED,
            title=UNASSIGNED_TITLE,
            kind=UNASSIGNED_KIND,
            books=model.unassigned_books(),
            is_open=is_open(UNASSIGNED),
        ))

        for category in model.categories:
            shelves.append(Shelf(
                key=category.id,
                title=category.name,
                kind=CATEGORY_KIND,
                books=model.books_by_category(category.id),
                is_open=is_open(category.id),
            ))

        return shelves


def books_for_shelf(model: MembershipModel, key: str) -> List[Book]:
    """Resolve a shelf key (status, 'unassigned' or category id) to its books."""
    if key == UNASSIGNED:
        return model.unassigned_books()
    if key in STATUSES:
        return model.books_by_status(key)
    return model.books_by_category(key)


def filter_books(books: List[Book], term: str) -> List[Book]:
    """Case-insensitive match on title or author. Blank terms match all."""
    needle = term.strip().lower()
    if not needle:
        return list(books)
    return [
        book for book in books
        if needle in book.title.lower() or needle in book.author.lower()
    ]


def public_shelves(books: List[Book]) -> Dict[str, List[Book]]:
    """
    Group public books by category for someone else's view of a library.

    Books without categories land under 'Uncategorized'. Private books are
    skipped.
    """
    grouped: Dict[str, List[Book]] = {}
    for book in books:
        if not book.is_public:
            continue
        for category_id in book.categories or [UNCATEGORIZED]:
            grouped.setdefault(category_id, []).append(book)
    return grouped
