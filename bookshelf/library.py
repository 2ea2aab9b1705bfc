"""A user's library session: snapshot, shelves, engine and book edits."""
import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from bookshelf.async_client import AsyncGoogleBooksClient
from bookshelf.engine import Confirm, Prompt, ReassignmentEngine
from bookshelf.membership import MembershipModel
from bookshelf.models import (
    Book, CatalogBook, COMPLETED, Profile, TO_READ, unique_ids, validate_rating, validate_status
)
from bookshelf.profile_cache import ProfileCache
from bookshelf.shelves import Shelf, ShelfPartitioner, ShelfState, public_shelves
from bookshelf.store import DocumentStore

logger = logging.getLogger(__name__)

_UNSET = object()


class Library:
    """
    Everything a UI shell needs for one signed-in user.

    Book-level edits live here; membership moves go through `engine`.
    """

    def __init__(
        self,
        store: DocumentStore,
        user_id: str,
        confirm: Confirm,
        shelf_state: Optional[ShelfState] = None,
        catalog: Optional[AsyncGoogleBooksClient] = None,
        profiles: Optional[ProfileCache] = None
    ):
        self.store = store
        self.user_id = user_id
        self.model = MembershipModel()
        self.engine = ReassignmentEngine(store, user_id, confirm, self.model)
        self.shelf_state = shelf_state if shelf_state is not None else ShelfState()
        self.partitioner = ShelfPartitioner()
        self.catalog = catalog
        self.profiles = profiles if profiles is not None else ProfileCache(store)

    async def load(self):
        await self.model.refresh(self.store, self.user_id)

    def shelves(self) -> List[Shelf]:
        return self.partitioner.partition(self.model, self.shelf_state)

    def toggle_shelf(self, key: str) -> bool:
        return self.shelf_state.toggle(key)

    async def search_catalog(self, query: str, max_results: int = 10) -> List[CatalogBook]:
        if self.catalog is None:
            raise RuntimeError("No catalog client configured")
        return await self.catalog.search(query, max_results)

    async def add_from_catalog(
        self,
        candidate: CatalogBook,
        status: str = TO_READ,
        rating: float = 0,
        categories: Optional[List[str]] = None
    ) -> Book:
        """
        Save a catalog selection to the library.

        Args:
            candidate: Selected search result
            status: Initial reading status
            rating: Star rating, kept only for completed books
            categories: Category ids; ids missing from the loaded snapshot are dropped

        Returns:
            The stored book
        """
        validate_status(status)
        rating = validate_rating(rating) if status == COMPLETED else 0

        book = candidate.to_book(
            status=status,
            rating=rating,
            categories=self._existing_categories(categories or []),
            added_at=datetime.now(),
        )
        await self.store.set_book(self.user_id, book)
        logger.info(f"Added {book.id} ({book.title}) to {self.user_id}'s library")
        await self.load()
        return book

    async def edit_book(
        self,
        book_id: str,
        status=_UNSET,
        rating=_UNSET,
        review=_UNSET,
        is_public=_UNSET,
        categories=_UNSET
    ) -> bool:
        """
        Save edits to one book. Only the arguments that are passed change.

        Raises:
            ValueError: for an unknown status or out-of-range rating
            KeyError: if the book is not in the library
        """
        book = self.model.get_book(book_id)
        if book is None:
            raise KeyError(book_id)

        fields = {}
        if status is not _UNSET:
            fields["status"] = validate_status(status)
        if rating is not _UNSET:
            fields["rating"] = validate_rating(rating)
        if review is not _UNSET:
            fields["review"] = review.strip()
        if is_public is not _UNSET:
            fields["is_public"] = bool(is_public)
        if categories is not _UNSET:
            fields["categories"] = self._existing_categories(categories)

        # Ratings only mean something for finished books
        if fields.get("status", book.status) != COMPLETED and (fields.get("rating") or book.rating):
            fields["rating"] = 0

        if not fields:
            return False

        await self.store.update_book(self.user_id, book_id, fields)
        logger.info(f"Updated {book_id}: {', '.join(sorted(fields))}")
        await self.load()
        return True

    async def delete_book(self, book_id: str) -> bool:
        """Permanently remove a book after confirmation."""
        book = self.model.get_book(book_id)
        if book is None:
            return False

        prompt = Prompt(
            title="Delete Book?",
            text="This will permanently remove the book from your library.",
        )
        if not await self.engine.ask(prompt):
            return False

        await self.store.delete_book(self.user_id, book_id)
        logger.info(f"Deleted {book_id} from {self.user_id}'s library")
        await self.load()
        return True

    async def public_library(self, uid: str) -> Tuple[Optional[str], Dict[str, List[Book]]]:
        """
        Another user's public books grouped by category.

        Returns:
            (display name or None, category id -> books)
        """
        profile = await self.profiles.get(uid)
        books = await self.store.list_public_books(uid)
        return (profile.display_name if profile else None), public_shelves(books)

    async def update_profile(
        self,
        display_name=_UNSET,
        bio=_UNSET,
        avatar=_UNSET,
        favorite_book_id=_UNSET
    ) -> Optional[Profile]:
        """
        Save edits to the signed-in user's profile and refresh the cached copy.

        Only the arguments that are passed change; the profile is created on
        first edit.

        Raises:
            KeyError: if the favorite book is not in the library
        """
        fields = {}
        if display_name is not _UNSET:
            fields["display_name"] = display_name.strip()
        if bio is not _UNSET:
            fields["bio"] = bio.strip()
        if avatar is not _UNSET:
            fields["avatar"] = avatar or None
        if favorite_book_id is not _UNSET:
            if favorite_book_id and self.model.get_book(favorite_book_id) is None:
                raise KeyError(favorite_book_id)
            fields["favorite_book_id"] = favorite_book_id or None

        if fields:
            await self.store.update_profile(self.user_id, fields)
            logger.info(f"Updated profile of {self.user_id}: {', '.join(sorted(fields))}")
        return await self.profiles.refresh(self.user_id)

    def _existing_categories(self, category_ids: List[str]) -> List[str]:
        known = {category.id for category in self.model.categories}
        return [c for c in unique_ids(category_ids) if c in known]
