"""
Shared fixtures for library tests.

Everything runs against InMemoryDocumentStore; async code is driven with
asyncio.run so no plugin is needed.
"""
import asyncio

import pytest

from bookshelf.models import Book, Category
from bookshelf.store import InMemoryDocumentStore

USER = "reader-1"


class ConfirmRecorder:
    """Confirmation callable that records prompts and answers a fixed value."""

    def __init__(self, answer=True):
        self.answer = answer
        self.prompts = []

    def __call__(self, prompt):
        self.prompts.append(prompt)
        return self.answer


def seed(store, books=(), categories=(), user=USER):
    """Write books and categories straight into the store."""
    async def _seed():
        for category in categories:
            await store.create_category(user, category.id, {"name": category.name})
        for book in books:
            await store.set_book(user, book)
    asyncio.run(_seed())


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def confirm():
    return ConfirmRecorder()


@pytest.fixture
def sample_library(store):
    """b1 unassigned, b2 in sci-fi and fantasy, b3 completed in fantasy."""
    seed(
        store,
        books=[
            Book(id="b1", title="Dune", author="Frank Herbert"),
            Book(id="b2", title="The Hobbit", author="J.R.R. Tolkien",
                 status="in-progress", categories=["scifi", "fantasy"]),
            Book(id="b3", title="Earthsea", author="Ursula K. Le Guin",
                 status="completed", rating=4.5, categories=["fantasy"], is_public=True),
        ],
        categories=[Category("scifi", "Sci-Fi"), Category("fantasy", "Fantasy")],
    )
    return store
