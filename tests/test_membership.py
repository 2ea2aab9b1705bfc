"""Tests for the membership snapshot."""
import asyncio

import pytest

from bookshelf.membership import MembershipModel
from bookshelf.models import Book, Category
from bookshelf.store import InMemoryDocumentStore, StoreError

from conftest import USER


def make_model():
    books = [
        Book(id="b1", status="completed", categories=[]),
        Book(id="b2", status="to-read", categories=["scifi"]),
        Book(id="b3", status="completed", categories=["scifi", "fantasy"]),
        Book(id="b4", status="in-progress"),
    ]
    return MembershipModel(books, [Category("scifi", "Sci-Fi"), Category("fantasy", "Fantasy")])


def ids(books):
    return [book.id for book in books]


def test_books_by_status_keeps_input_order():
    model = make_model()

    assert ids(model.books_by_status("completed")) == ["b1", "b3"]
    assert ids(model.books_by_status("to-read")) == ["b2"]


def test_books_by_category():
    model = make_model()

    assert ids(model.books_by_category("scifi")) == ["b2", "b3"]
    assert ids(model.books_by_category("fantasy")) == ["b3"]
    assert model.books_by_category("horror") == []


def test_unassigned_books_ignore_status():
    """Unassigned means no categories, whatever the status."""
    model = make_model()

    assert ids(model.unassigned_books()) == ["b1", "b4"]


def test_every_book_has_exactly_one_status_bucket():
    model = make_model()

    buckets = [ids(model.books_by_status(s)) for s in ("to-read", "in-progress", "completed")]
    flat = [book_id for bucket in buckets for book_id in bucket]

    assert sorted(flat) == ["b1", "b2", "b3", "b4"]


def test_refresh_replaces_snapshot(sample_library):
    model = MembershipModel([Book(id="stale")])

    asyncio.run(model.refresh(sample_library, USER))

    assert ids(model.books) == ["b1", "b2", "b3"]
    assert [c.id for c in model.categories] == ["scifi", "fantasy"]
    assert model.get_book("stale") is None


class BrokenCategoriesStore(InMemoryDocumentStore):
    async def list_categories(self, user_id):
        raise StoreError("permission denied")


def test_failed_refresh_keeps_previous_snapshot():
    """Books fetched but categories failed: nothing is replaced."""
    store = BrokenCategoriesStore()
    asyncio.run(store.set_book(USER, Book(id="new")))
    model = make_model()

    with pytest.raises(StoreError):
        asyncio.run(model.refresh(store, USER))

    assert ids(model.books) == ["b1", "b2", "b3", "b4"]
