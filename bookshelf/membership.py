"""In-memory snapshot of a user's books and categories."""
import logging
from typing import List, Optional

from bookshelf.models import Book, Category
from bookshelf.store import DocumentStore

logger = logging.getLogger(__name__)


class MembershipModel:
    """
    Last-fetched books and categories for one user.

    Queries are pure projections over the snapshot. The snapshot is only
    ever replaced wholesale, never patched.
    """

    def __init__(self, books: Optional[List[Book]] = None, categories: Optional[List[Category]] = None):
        self._books: List[Book] = list(books or [])
        self._categories: List[Category] = list(categories or [])

    async def refresh(self, store: DocumentStore, user_id: str):
        """
        Re-fetch books and categories from the store.

        The snapshot is left untouched if either fetch fails.

        Args:
            store: Document store
            user_id: Owner of the library
        """
        books = await store.list_books(user_id)
        categories = await store.list_categories(user_id)
        self.replace(books, categories)
        logger.info(f"Loaded {len(books)} books and {len(categories)} categories for {user_id}")

    def replace(self, books: List[Book], categories: List[Category]):
        self._books = list(books)
        self._categories = list(categories)

    @property
    def books(self) -> List[Book]:
        return list(self._books)

    @property
    def categories(self) -> List[Category]:
        return list(self._categories)

    def get_book(self, book_id: str) -> Optional[Book]:
        for book in self._books:
            if book.id == book_id:
                return book
        return None

    def get_category(self, category_id: str) -> Optional[Category]:
        for category in self._categories:
            if category.id == category_id:
                return category
        return None

    def books_by_status(self, status: str) -> List[Book]:
        """All books whose status equals the argument, in snapshot order."""
        return [book for book in self._books if book.status == status]

    def books_by_category(self, category_id: str) -> List[Book]:
        """All books whose category set contains the id."""
        return [book for book in self._books if category_id in book.categories]

    def unassigned_books(self) -> List[Book]:
        """Books with no categories, whatever their status."""
        return [book for book in self._books if book.is_unassigned]
