"""Tests for the PostgreSQL store, against a scripted connection pool."""
import asyncio

import psycopg2
import pytest

from bookshelf.database import Database, PostgresDocumentStore
from bookshelf.store import StoreError


class FakeCursor:
    def __init__(self, rowcount=1, row=None, error=None):
        self.rowcount = rowcount
        self.row = row
        self.error = error
        self.executed = []

    def execute(self, query, params=None):
        self.executed.append((query, params))
        if self.error is not None:
            raise self.error

    def fetchone(self):
        return self.row

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeConnection:
    def __init__(self, cursor):
        self._cursor = cursor
        self.committed = False
        self.rolled_back = False

    def cursor(self, cursor_factory=None):
        return self._cursor

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True


class FakePool:
    def __init__(self, cursor):
        self.conn = FakeConnection(cursor)
        self.borrowed = 0
        self.returned = 0

    def getconn(self):
        self.borrowed += 1
        return self.conn

    def putconn(self, conn):
        self.returned += 1


def make_db(**cursor_kwargs):
    db = Database.__new__(Database)
    db.connection_pool = FakePool(FakeCursor(**cursor_kwargs))
    return db


def test_update_book_sends_values_then_keys():
    db = make_db()

    db.update_book("reader-1", "b1", {"status": "completed", "rating": 4.5})

    (_, params), = db.connection_pool.conn._cursor.executed
    assert params == ["completed", 4.5, "reader-1", "b1"]
    assert db.connection_pool.conn.committed is True
    assert db.connection_pool.returned == 1


def test_update_book_missing_row_raises_and_rolls_back():
    db = make_db(rowcount=0)

    with pytest.raises(StoreError):
        db.update_book("reader-1", "ghost", {"status": "completed"})

    assert db.connection_pool.conn.rolled_back is True
    assert db.connection_pool.conn.committed is False
    assert db.connection_pool.returned == 1


def test_update_book_rejects_unknown_columns_before_connecting():
    db = make_db()

    with pytest.raises(ValueError):
        db.update_book("reader-1", "b1", {"id": "other"})

    assert db.connection_pool.borrowed == 0


def test_driver_errors_become_store_errors():
    db = make_db(error=psycopg2.OperationalError("server closed the connection"))

    with pytest.raises(StoreError):
        db.delete_book("reader-1", "b1")

    assert db.connection_pool.conn.rolled_back is True
    assert db.connection_pool.returned == 1


def test_upsert_profile_sends_uid_then_values():
    db = make_db()

    db.upsert_profile("reader-1", {"display_name": "Ged", "favorite_book_id": "b3"})

    (_, params), = db.connection_pool.conn._cursor.executed
    assert params == ["reader-1", "Ged", "b3"]

    with pytest.raises(ValueError):
        db.upsert_profile("reader-1", {"uid": "someone-else"})


def test_async_store_reads_profile_rows():
    db = make_db(row={"display_name": "Ged", "avatar": None, "bio": "Mage", "favorite_book_id": "b3"})
    store = PostgresDocumentStore(db)

    profile = asyncio.run(store.get_profile("reader-1"))

    assert profile.display_name == "Ged"
    assert profile.favorite_book_id == "b3"
    _, params = db.connection_pool.conn._cursor.executed[0]
    assert params == ("reader-1",)


def test_async_store_update_propagates_store_error():
    store = PostgresDocumentStore(make_db(rowcount=0))

    with pytest.raises(StoreError):
        asyncio.run(store.update_book("reader-1", "ghost", {"review": "x"}))
