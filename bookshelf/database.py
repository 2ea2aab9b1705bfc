"""PostgreSQL storage for libraries, profiles and the catalog cache."""
import asyncio
import json
import logging
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any

import psycopg2
from psycopg2 import pool, sql
from psycopg2.extras import RealDictCursor

from bookshelf.models import Book, Category, Profile
from bookshelf.store import DocumentStore, StoreError

logger = logging.getLogger(__name__)

BOOK_COLUMNS = (
    "title", "author", "cover", "summary", "year", "status",
    "rating", "review", "categories", "is_public", "added_at"
)

PROFILE_COLUMNS = ("display_name", "avatar", "bio", "favorite_book_id")


class Database:
    """PostgreSQL database with connection pooling."""

    def __init__(self, connection_string: str, min_conn: int = 1, max_conn: int = 10):
        """
        Initialize database connection pool.

        Args:
            connection_string: PostgreSQL connection string
            min_conn: Minimum connections in pool
            max_conn: Maximum connections in pool
        """
        try:
            self.connection_pool = pool.ThreadedConnectionPool(min_conn, max_conn, connection_string)
        except psycopg2.Error as e:
            raise StoreError(f"Failed to create connection pool: {e}") from e
        logger.info("Database connection pool created successfully")

    @contextmanager
    def _cursor(self, dict_rows: bool = False):
        """Borrow a connection; commit on success, roll back and raise StoreError on failure."""
        conn = self.connection_pool.getconn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor if dict_rows else None) as cur:
                yield cur
            conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Database error: {e}")
            raise StoreError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            self.connection_pool.putconn(conn)

    def init_schema(self):
        """Create database tables if they don't exist."""
        with self._cursor() as cur:
            cur.execute("""
                CREATE TABLE IF NOT EXISTS books (
                    user_id VARCHAR(128) NOT NULL,
                    id VARCHAR(255) NOT NULL,
                    title TEXT NOT NULL,
                    author TEXT,
                    cover TEXT,
                    summary TEXT,
                    year VARCHAR(10),
                    status VARCHAR(20) NOT NULL DEFAULT 'to-read',
                    rating REAL NOT NULL DEFAULT 0,
                    review TEXT,
                    categories TEXT[] NOT NULL DEFAULT '{}',
                    is_public BOOLEAN NOT NULL DEFAULT FALSE,
                    added_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (user_id, id)
                )
            """)

            cur.execute("""
                CREATE TABLE IF NOT EXISTS categories (
                    user_id VARCHAR(128) NOT NULL,
                    id VARCHAR(255) NOT NULL,
                    name TEXT NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (user_id, id)
                )
            """)

            cur.execute("""
                CREATE TABLE IF NOT EXISTS profiles (
                    uid VARCHAR(128) PRIMARY KEY,
                    display_name TEXT,
                    avatar TEXT,
                    bio TEXT,
                    favorite_book_id VARCHAR(255)
                )
            """)
            cur.execute("ALTER TABLE profiles ADD COLUMN IF NOT EXISTS favorite_book_id VARCHAR(255)")

            cur.execute("""
                CREATE TABLE IF NOT EXISTS api_cache (
                    cache_key VARCHAR(512) PRIMARY KEY,
                    response_data JSONB NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    expires_at TIMESTAMP NOT NULL
                )
            """)

            # Category membership lookups during cascade
            cur.execute("""
                CREATE INDEX IF NOT EXISTS idx_books_categories
                ON books USING gin(categories)
            """)

            cur.execute("""
                CREATE INDEX IF NOT EXISTS idx_cache_expires
                ON api_cache (expires_at)
            """)

        logger.info("Database schema initialized successfully")

    # Books

    def fetch_books(self, user_id: str, public_only: bool = False) -> List[Book]:
        query = "SELECT id, " + ", ".join(BOOK_COLUMNS) + " FROM books WHERE user_id = %s"
        if public_only:
            query += " AND is_public"
        query += " ORDER BY added_at, id"

        with self._cursor(dict_rows=True) as cur:
            cur.execute(query, (user_id,))
            rows = cur.fetchall()

        return [Book.from_document(row.pop("id"), dict(row)) for row in rows]

    def upsert_book(self, user_id: str, book: Book):
        doc = book.to_document()
        if doc["added_at"] is None:
            doc["added_at"] = datetime.now()

        columns = sql.SQL(", ").join(sql.Identifier(c) for c in BOOK_COLUMNS)
        updates = sql.SQL(", ").join(
            sql.SQL("{col} = EXCLUDED.{col}").format(col=sql.Identifier(c)) for c in BOOK_COLUMNS
        )
        query = sql.SQL("""
            INSERT INTO books (user_id, id, {columns}, updated_at)
            VALUES (%s, %s, {placeholders}, CURRENT_TIMESTAMP)
            ON CONFLICT (user_id, id) DO UPDATE SET {updates}, updated_at = CURRENT_TIMESTAMP
        """).format(
            columns=columns,
            placeholders=sql.SQL(", ").join(sql.Placeholder() * len(BOOK_COLUMNS)),
            updates=updates,
        )

        with self._cursor() as cur:
            cur.execute(query, [user_id, book.id] + [doc[c] for c in BOOK_COLUMNS])

    def update_book(self, user_id: str, book_id: str, fields: Dict[str, Any]):
        """
        Update some columns of one book.

        Args:
            user_id: Owner
            book_id: Book to update
            fields: Column values; unknown columns raise ValueError

        Raises:
            StoreError: if the book does not exist or the write fails
        """
        unknown = set(fields) - set(BOOK_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown book fields: {', '.join(sorted(unknown))}")
        if not fields:
            return

        names = list(fields)
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(name)) for name in names
        )
        query = sql.SQL(
            "UPDATE books SET {}, updated_at = CURRENT_TIMESTAMP WHERE user_id = %s AND id = %s"
        ).format(assignments)

        with self._cursor() as cur:
            cur.execute(query, [fields[name] for name in names] + [user_id, book_id])
            if cur.rowcount == 0:
                raise StoreError(f"Book not found: {user_id}/{book_id}")

    def delete_book(self, user_id: str, book_id: str):
        with self._cursor() as cur:
            cur.execute("DELETE FROM books WHERE user_id = %s AND id = %s", (user_id, book_id))

    # Categories

    def fetch_categories(self, user_id: str) -> List[Category]:
        with self._cursor() as cur:
            cur.execute("""
                SELECT id, name FROM categories
                WHERE user_id = %s
                ORDER BY created_at, id
            """, (user_id,))
            rows = cur.fetchall()

        return [Category(id=row[0], name=row[1]) for row in rows]

    def upsert_category(self, user_id: str, category_id: str, name: str):
        with self._cursor() as cur:
            cur.execute("""
                INSERT INTO categories (user_id, id, name)
                VALUES (%s, %s, %s)
                ON CONFLICT (user_id, id) DO UPDATE SET name = EXCLUDED.name
            """, (user_id, category_id, name))

    def update_category(self, user_id: str, category_id: str, name: str):
        with self._cursor() as cur:
            cur.execute(
                "UPDATE categories SET name = %s WHERE user_id = %s AND id = %s",
                (name, user_id, category_id)
            )
            if cur.rowcount == 0:
                raise StoreError(f"Category not found: {user_id}/{category_id}")

    def delete_category(self, user_id: str, category_id: str):
        with self._cursor() as cur:
            cur.execute("DELETE FROM categories WHERE user_id = %s AND id = %s", (user_id, category_id))

    # Profiles

    def get_profile(self, uid: str) -> Optional[Profile]:
        with self._cursor(dict_rows=True) as cur:
            cur.execute(
                "SELECT " + ", ".join(PROFILE_COLUMNS) + " FROM profiles WHERE uid = %s", (uid,)
            )
            row = cur.fetchone()
        if row is None:
            return None
        return Profile.from_document(uid, dict(row))

    def upsert_profile(self, uid: str, fields: Dict[str, Any]):
        """
        Insert a profile or update the given columns of an existing one.

        Args:
            uid: Profile owner
            fields: Column values; unknown columns raise ValueError
        """
        unknown = set(fields) - set(PROFILE_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown profile fields: {', '.join(sorted(unknown))}")
        if not fields:
            return

        names = list(fields)
        query = sql.SQL("""
            INSERT INTO profiles (uid, {columns})
            VALUES (%s, {placeholders})
            ON CONFLICT (uid) DO UPDATE SET {updates}
        """).format(
            columns=sql.SQL(", ").join(sql.Identifier(n) for n in names),
            placeholders=sql.SQL(", ").join(sql.Placeholder() * len(names)),
            updates=sql.SQL(", ").join(
                sql.SQL("{col} = EXCLUDED.{col}").format(col=sql.Identifier(n)) for n in names
            ),
        )

        with self._cursor() as cur:
            cur.execute(query, [uid] + [fields[n] for n in names])

    # Catalog response cache

    def cache_get(self, cache_key: str) -> Optional[Dict[str, Any]]:
        """
        Get cached API response if not expired.

        Args:
            cache_key: Cache key

        Returns:
            Cached response or None
        """
        with self._cursor() as cur:
            cur.execute("""
                SELECT response_data
                FROM api_cache
                WHERE cache_key = %s AND expires_at > CURRENT_TIMESTAMP
            """, (cache_key,))
            row = cur.fetchone()

        if row:
            logger.info(f"Cache hit: {cache_key}")
            return row[0]  # JSONB is automatically deserialized

        logger.info(f"Cache miss: {cache_key}")
        return None

    def cache_set(self, cache_key: str, response_data: Dict[str, Any], ttl_seconds: int = 3600) -> bool:
        """
        Cache API response with TTL. A failed write is logged, not raised.

        Returns:
            True if successful
        """
        expires_at = datetime.now() + timedelta(seconds=ttl_seconds)
        try:
            with self._cursor() as cur:
                cur.execute("""
                    INSERT INTO api_cache (cache_key, response_data, expires_at)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (cache_key) DO UPDATE SET
                        response_data = EXCLUDED.response_data,
                        expires_at = EXCLUDED.expires_at,
                        created_at = CURRENT_TIMESTAMP
                """, (cache_key, json.dumps(response_data), expires_at))
        except StoreError:
            return False

        logger.info(f"Cached response: {cache_key} (TTL: {ttl_seconds}s)")
        return True

    def cleanup_expired_cache(self) -> int:
        """Remove expired cache entries."""
        with self._cursor() as cur:
            cur.execute("DELETE FROM api_cache WHERE expires_at <= CURRENT_TIMESTAMP")
            deleted = cur.rowcount
        logger.info(f"Cleaned up {deleted} expired cache entries")
        return deleted

    def get_stats(self, user_id: str) -> Dict[str, Any]:
        """Library and cache counts for one user."""
        with self._cursor() as cur:
            cur.execute("SELECT status, COUNT(*) FROM books WHERE user_id = %s GROUP BY status", (user_id,))
            by_status = dict(cur.fetchall())

            cur.execute("SELECT COUNT(*) FROM books WHERE user_id = %s AND categories = '{}'", (user_id,))
            unassigned = cur.fetchone()[0]

            cur.execute("SELECT COUNT(*) FROM categories WHERE user_id = %s", (user_id,))
            category_count = cur.fetchone()[0]

            cur.execute("SELECT COUNT(*) FROM api_cache WHERE expires_at > CURRENT_TIMESTAMP")
            cache_count = cur.fetchone()[0]

        return {
            "total_books": sum(by_status.values()),
            "books_by_status": by_status,
            "unassigned_books": unassigned,
            "categories": category_count,
            "cached_responses": cache_count
        }

    def close(self):
        """Close all connections in the pool."""
        if self.connection_pool:
            self.connection_pool.closeall()
            logger.info("Database connection pool closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class PostgresDocumentStore(DocumentStore):
    """DocumentStore over Database; blocking calls run in a worker thread."""

    def __init__(self, db: Database):
        self.db = db

    async def list_books(self, user_id: str) -> List[Book]:
        return await asyncio.to_thread(self.db.fetch_books, user_id)

    async def list_categories(self, user_id: str) -> List[Category]:
        return await asyncio.to_thread(self.db.fetch_categories, user_id)

    async def set_book(self, user_id: str, book: Book) -> None:
        await asyncio.to_thread(self.db.upsert_book, user_id, book)

    async def update_book(self, user_id: str, book_id: str, fields: Dict[str, Any]) -> None:
        await asyncio.to_thread(self.db.update_book, user_id, book_id, fields)

    async def delete_book(self, user_id: str, book_id: str) -> None:
        await asyncio.to_thread(self.db.delete_book, user_id, book_id)

    async def create_category(self, user_id: str, category_id: str, fields: Dict[str, Any]) -> None:
        await asyncio.to_thread(self.db.upsert_category, user_id, category_id, fields["name"])

    async def update_category(self, user_id: str, category_id: str, fields: Dict[str, Any]) -> None:
        await asyncio.to_thread(self.db.update_category, user_id, category_id, fields["name"])

    async def delete_category(self, user_id: str, category_id: str) -> None:
        await asyncio.to_thread(self.db.delete_category, user_id, category_id)

    async def list_public_books(self, user_id: str) -> List[Book]:
        return await asyncio.to_thread(self.db.fetch_books, user_id, True)

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        return await asyncio.to_thread(self.db.get_profile, user_id)

    async def update_profile(self, user_id: str, fields: Dict[str, Any]) -> None:
        await asyncio.to_thread(self.db.upsert_profile, user_id, fields)
