"""Drag-and-drop and category operations on a user's library."""
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from bookshelf.membership import MembershipModel
from bookshelf.models import STATUSES, slugify, unique_ids, validate_status
from bookshelf.shelves import UNASSIGNED, status_title
from bookshelf.store import DocumentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Prompt:
    """Yes/no question put to the user before a write."""
    title: str
    text: str


Confirm = Callable[[Prompt], Union[bool, Awaitable[bool]]]


@dataclass(frozen=True)
class Dragging:
    """A drag in flight. origin_category_id is None unless it started on a category shelf."""
    book_id: str
    origin_category_id: Optional[str] = None


class ReassignmentEngine:
    """
    Applies membership changes for one user's library.

    Holds the current drag gesture (None while idle), asks the injected
    confirmation callable before every write, and refreshes the model
    wholesale after each committed write. Removal and deletion requests are
    mutually exclusive: one arriving while another is in flight is ignored.
    """

    def __init__(
        self,
        store: DocumentStore,
        user_id: str,
        confirm: Confirm,
        model: Optional[MembershipModel] = None
    ):
        """
        Initialize the engine.

        Args:
            store: Document store the writes go to
            user_id: Owner of the library
            confirm: Callable taking a Prompt and returning (or resolving to) a bool
            model: Membership snapshot to keep refreshed (a new one if omitted)
        """
        self.store = store
        self.user_id = user_id
        self.confirm = confirm
        self.model = model if model is not None else MembershipModel()
        self.gesture: Optional[Dragging] = None
        self._removal_in_progress = False

    async def refresh(self):
        await self.model.refresh(self.store, self.user_id)

    @property
    def is_dragging(self) -> bool:
        return self.gesture is not None

    @property
    def removal_in_progress(self) -> bool:
        return self._removal_in_progress

    @property
    def can_remove_from_origin(self) -> bool:
        """Whether the 'remove from dragged category' target applies right now."""
        return self.gesture is not None and self.gesture.origin_category_id is not None

    # Gesture

    def start_drag(self, book_id: str, origin_category_id: Optional[str] = None):
        """
        Begin dragging a book card.

        Args:
            book_id: Book being dragged
            origin_category_id: Category shelf it was picked up from, None for
                status and unassigned shelves
        """
        self.gesture = Dragging(book_id, origin_category_id)
        logger.debug(f"Drag started: {self.gesture}")

    def cancel_drag(self):
        """Drop outside any target, or drag-end without a drop."""
        if self.gesture is not None:
            logger.debug(f"Drag cancelled: {self.gesture}")
        self.gesture = None

    def _resolve_drag(self) -> Optional[Dragging]:
        gesture, self.gesture = self.gesture, None
        return gesture

    async def drop_on_shelf(self, key: str) -> bool:
        """
        Drop on a shelf header identified by its key.

        The unassigned shelf is not a drop target; dropping there cancels.
        """
        if key in STATUSES:
            return await self.drop_on_status(key)
        if key == UNASSIGNED:
            self.cancel_drag()
            return False
        return await self.drop_on_category(key)

    async def drop_on_category(self, category_id: str) -> bool:
        """Add the dragged book to a category. Already a member is a no-op."""
        gesture = self._resolve_drag()
        if gesture is None:
            return False

        book = self.model.get_book(gesture.book_id)
        category = self.model.get_category(category_id)
        if book is None or category is None:
            logger.info(f"Ignoring drop of {gesture.book_id} on {category_id}: not in library")
            return False
        if category_id in book.categories:
            return False

        prompt = Prompt(
            title="Add to category?",
            text=f'This will add "{book.title}" to "{category.name}".',
        )
        if not await self.ask(prompt):
            return False

        await self._update_book(book.id, {"categories": unique_ids(book.categories + [category_id])})
        logger.info(f"Added {book.id} to category {category_id}")
        return True

    async def drop_on_status(self, status: str) -> bool:
        """Set the dragged book's status, replacing the previous one."""
        gesture = self._resolve_drag()
        validate_status(status)
        if gesture is None:
            return False

        book = self.model.get_book(gesture.book_id)
        if book is None or book.status == status:
            return False

        prompt = Prompt(
            title=f"Move to {status_title(status)}?",
            text=f'This will change the status of "{book.title}".',
        )
        if not await self.ask(prompt):
            return False

        await self._update_book(book.id, {"status": status})
        logger.info(f"Moved {book.id} from {book.status} to {status}")
        return True

    async def drop_on_remove_from_origin(self) -> bool:
        """Remove the dragged book from the category shelf it came from, and only that one."""
        gesture = self._resolve_drag()
        if gesture is None or gesture.origin_category_id is None:
            return False

        prompt = Prompt(
            title="Remove from this category?",
            text="This will remove the book only from the category it was dragged from.",
        )
        return await self._exclusive(self._remove, gesture.book_id, gesture.origin_category_id, prompt)

    async def drop_on_remove_from_all(self) -> bool:
        """Clear every category of the dragged book. Status is left alone."""
        gesture = self._resolve_drag()
        if gesture is None:
            return False

        prompt = Prompt(
            title="Remove from all categories?",
            text="This will move the book to Unassigned.",
        )
        return await self._exclusive(self._remove, gesture.book_id, None, prompt)

    # Explicit removal

    async def remove_from_category(self, book_id: str, category_id: str) -> bool:
        prompt = Prompt(
            title="Remove from this category?",
            text="This will remove the book from this category.",
        )
        return await self._exclusive(self._remove, book_id, category_id, prompt)

    async def remove_from_all_categories(self, book_id: str) -> bool:
        prompt = Prompt(
            title="Remove from all categories?",
            text="This will remove the book from all categories.",
        )
        return await self._exclusive(self._remove, book_id, None, prompt)

    # Category CRUD

    async def create_category(self, name: str) -> bool:
        """
        Create an empty category.

        Blank names, names whose slug is already taken and names whose slug
        is a reserved shelf key (a status or "unassigned") are ignored.

        Args:
            name: Display name as entered; stored trimmed

        Returns:
            True if a category was created
        """
        display_name = name.strip()
        if not display_name:
            return False

        category_id = slugify(display_name)
        if category_id in STATUSES or category_id == UNASSIGNED:
            logger.info(f"Category name {display_name!r} clashes with a built-in shelf")
            return False
        if self.model.get_category(category_id) is not None:
            logger.info(f"Category {category_id} already exists")
            return False

        await self.store.create_category(self.user_id, category_id, {"name": display_name})
        logger.info(f"Created category {category_id} ({display_name})")
        await self.refresh()
        return True

    async def rename_category(self, category_id: str, name: str) -> bool:
        """Change a category's display name. Its id, and so every book's reference, stays put."""
        display_name = name.strip()
        category = self.model.get_category(category_id)
        if not display_name or category is None or category.name == display_name:
            return False

        await self.store.update_category(self.user_id, category_id, {"name": display_name})
        logger.info(f"Renamed category {category_id}: {category.name} -> {display_name}")
        await self.refresh()
        return True

    async def delete_category(self, category_id: str) -> bool:
        """Delete a category and take its id off every book that has it."""
        return await self._exclusive(self._delete_category, category_id)

    async def _delete_category(self, category_id: str) -> bool:
        if self.model.get_category(category_id) is None:
            return False

        prompt = Prompt(
            title="Delete category?",
            text="This will remove the category but not delete any books.",
        )
        if not await self.ask(prompt):
            return False

        await self.store.delete_category(self.user_id, category_id)

        # Cascade against the store's view, not the snapshot
        books = await self.store.list_books(self.user_id)
        affected = [book for book in books if category_id in book.categories]
        for book in affected:
            remaining = [c for c in book.categories if c != category_id]
            await self.store.update_book(self.user_id, book.id, {"categories": remaining})

        logger.info(f"Deleted category {category_id}, updated {len(affected)} books")
        await self.refresh()
        return True

    # Helpers

    async def _remove(self, book_id: str, category_id: Optional[str], prompt: Prompt) -> bool:
        book = self.model.get_book(book_id)
        if book is None:
            return False

        if category_id is not None:
            if category_id not in book.categories:
                return False
            remaining: List[str] = [c for c in book.categories if c != category_id]
        else:
            if not book.categories:
                return False
            remaining = []

        if not await self.ask(prompt):
            return False

        await self._update_book(book_id, {"categories": remaining})
        logger.info(f"Removed {book_id} from {category_id or 'all categories'}")
        return True

    async def _exclusive(self, operation, *args) -> bool:
        if self._removal_in_progress:
            logger.info("Removal already in progress, ignoring request")
            return False

        self._removal_in_progress = True
        try:
            return await operation(*args)
        finally:
            self._removal_in_progress = False

    async def ask(self, prompt: Prompt) -> bool:
        answer = self.confirm(prompt)
        if inspect.isawaitable(answer):
            answer = await answer
        if not answer:
            logger.debug(f"Declined: {prompt.title}")
        return bool(answer)

    async def _update_book(self, book_id: str, fields: Dict[str, Any]):
        await self.store.update_book(self.user_id, book_id, fields)
        await self.refresh()
