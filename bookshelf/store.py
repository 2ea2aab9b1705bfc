"""Per-user document store contract and an in-memory implementation."""
import copy
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from bookshelf.models import Book, Category, Profile


class StoreError(Exception):
    """A read or write against the document store failed."""


class DocumentStore(ABC):
    """
    Async document store scoped per user.

    Books and categories are independent collections under a user's
    namespace. Each single-document write is atomic; nothing else is.
    """

    @abstractmethod
    async def list_books(self, user_id: str) -> List[Book]:
        ...

    @abstractmethod
    async def list_categories(self, user_id: str) -> List[Category]:
        ...

    @abstractmethod
    async def set_book(self, user_id: str, book: Book) -> None:
        """Create or overwrite a book document."""

    @abstractmethod
    async def update_book(self, user_id: str, book_id: str, fields: Dict[str, Any]) -> None:
        """Merge fields into an existing book. Raises StoreError if it is missing."""

    @abstractmethod
    async def delete_book(self, user_id: str, book_id: str) -> None:
        ...

    @abstractmethod
    async def create_category(self, user_id: str, category_id: str, fields: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def update_category(self, user_id: str, category_id: str, fields: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def delete_category(self, user_id: str, category_id: str) -> None:
        ...

    @abstractmethod
    async def list_public_books(self, user_id: str) -> List[Book]:
        ...

    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[Profile]:
        ...

    @abstractmethod
    async def update_profile(self, user_id: str, fields: Dict[str, Any]) -> None:
        """Merge fields into a profile, creating it if it does not exist."""


class InMemoryDocumentStore(DocumentStore):
    """Dictionary-backed store. Documents keep insertion order."""

    def __init__(self):
        self._books: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._categories: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._profiles: Dict[str, Dict[str, Any]] = {}

    async def list_books(self, user_id: str) -> List[Book]:
        docs = self._books.get(user_id, {})
        return [Book.from_document(doc_id, copy.deepcopy(data)) for doc_id, data in docs.items()]

    async def list_categories(self, user_id: str) -> List[Category]:
        docs = self._categories.get(user_id, {})
        return [Category.from_document(doc_id, dict(data)) for doc_id, data in docs.items()]

    async def set_book(self, user_id: str, book: Book) -> None:
        self._books.setdefault(user_id, {})[book.id] = copy.deepcopy(book.to_document())

    async def update_book(self, user_id: str, book_id: str, fields: Dict[str, Any]) -> None:
        doc = self._books.get(user_id, {}).get(book_id)
        if doc is None:
            raise StoreError(f"Book not found: users/{user_id}/books/{book_id}")
        doc.update(copy.deepcopy(fields))

    async def delete_book(self, user_id: str, book_id: str) -> None:
        self._books.get(user_id, {}).pop(book_id, None)

    async def create_category(self, user_id: str, category_id: str, fields: Dict[str, Any]) -> None:
        self._categories.setdefault(user_id, {})[category_id] = dict(fields)

    async def update_category(self, user_id: str, category_id: str, fields: Dict[str, Any]) -> None:
        doc = self._categories.get(user_id, {}).get(category_id)
        if doc is None:
            raise StoreError(f"Category not found: users/{user_id}/categories/{category_id}")
        doc.update(fields)

    async def delete_category(self, user_id: str, category_id: str) -> None:
        self._categories.get(user_id, {}).pop(category_id, None)

    async def list_public_books(self, user_id: str) -> List[Book]:
        return [book for book in await self.list_books(user_id) if book.is_public]

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        data = self._profiles.get(user_id)
        if data is None:
            return None
        return Profile.from_document(user_id, dict(data))

    async def update_profile(self, user_id: str, fields: Dict[str, Any]) -> None:
        self._profiles.setdefault(user_id, {}).update(fields)

    def put_profile(self, profile: Profile) -> None:
        """Seed a profile document."""
        self._profiles[profile.uid] = profile.to_document()
