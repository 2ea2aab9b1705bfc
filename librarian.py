#!/usr/bin/env python3
"""Librarian CLI - manage a personal book library."""
import argparse
import asyncio
import json
import logging
import sys

from tabulate import tabulate

from bookshelf.async_client import AsyncGoogleBooksClient
from bookshelf.client import GoogleBooksClient
from bookshelf.config import Config
from bookshelf.database import Database, PostgresDocumentStore
from bookshelf.engine import Prompt
from bookshelf.library import Library
from bookshelf.models import STATUSES
from bookshelf.parse import deduplicate, parse_search_response
from bookshelf.profile_cache import ProfileCache
from bookshelf.shelves import ShelfState, books_for_shelf, filter_books
from bookshelf.store import StoreError

logger = logging.getLogger(__name__)


def setup_database(config: Config) -> Database:
    """Initialize database."""
    db = Database(config.DATABASE_URL)
    db.init_schema()
    return db


def make_confirm(assume_yes: bool):
    """Build a confirmation callable answering from the terminal."""
    def confirm(prompt: Prompt) -> bool:
        if assume_yes:
            return True
        answer = input(f"{prompt.title} {prompt.text} [y/N] ")
        return answer.strip().lower() in ("y", "yes")
    return confirm


def truncate(text: str, width: int) -> str:
    return text[:width] + "..." if len(text) > width else text


def display_books(books, format_type: str = "table"):
    """Display library books in the chosen format."""
    if format_type == "json":
        rows = [dict(id=book.id, **book.to_document()) for book in books]
        print(json.dumps(rows, indent=2, default=str))
        return

    if format_type == "compact":
        for i, book in enumerate(books, 1):
            print(f"{i}. {book.title} - {book.author} [{book.status}]")
        return

    headers = ["ID", "Title", "Author", "Status", "Rating", "Categories", "Public"]
    rows = [
        [
            book.id,
            truncate(book.title, 50),
            truncate(book.author, 30),
            book.status,
            f"{book.rating:g} {book.rating_label}".strip() if book.rating else "",
            ", ".join(book.categories) or "-",
            "yes" if book.is_public else ""
        ]
        for book in books
    ]
    print("\n" + tabulate(rows, headers=headers, tablefmt="grid"))


def search_catalog(args, config: Config):
    """Search Google Books, caching responses in the database."""
    db = setup_database(config)

    try:
        with GoogleBooksClient(
            api_key=config.GOOGLE_BOOKS_API_KEY,
            timeout=config.DEFAULT_TIMEOUT,
            max_retries=config.DEFAULT_MAX_RETRIES
        ) as client:
            response = client.search_with_cache(
                args.query,
                max_results=args.limit,
                cache_db=db if not args.no_cache else None,
                cache_ttl=args.cache_ttl
            )

        if not response:
            logger.error("Failed to fetch data")
            return

        candidates = deduplicate(parse_search_response(response))

        if args.format == "json":
            print(json.dumps([vars(c) for c in candidates], indent=2))
        else:
            rows = [
                [c.id, truncate(c.title, 50), truncate(c.author, 30), c.year or "Unknown"]
                for c in candidates
            ]
            print("\n" + tabulate(rows, headers=["Volume ID", "Title", "Author", "Year"], tablefmt="grid"))

    finally:
        db.close()


async def run_library_command(args, config: Config):
    """Open a library session and run one library command against it."""
    db = setup_database(config)
    store = PostgresDocumentStore(db)

    try:
        async with AsyncGoogleBooksClient(
            api_key=config.GOOGLE_BOOKS_API_KEY,
            timeout=config.DEFAULT_TIMEOUT
        ) as catalog:
            library = Library(
                store,
                config.LIBRARY_USER_ID,
                make_confirm(args.yes),
                shelf_state=ShelfState(config.SHELF_STATE_PATH),
                catalog=catalog,
                profiles=ProfileCache(store, config.PROFILE_CACHE_TTL)
            )
            await library.load()
            await LIBRARY_COMMANDS[args.command](library, args)
    finally:
        db.close()


async def cmd_add(library: Library, args):
    candidates = await library.catalog.get_volumes(args.volume_ids)
    if not candidates:
        logger.error("No volumes found")
        return
    for candidate in candidates:
        book = await library.add_from_catalog(
            candidate,
            status=args.status,
            rating=args.rating,
            categories=args.category
        )
        print(f"✅ Saved {book.title} ({book.id})")


async def cmd_shelves(library: Library, args):
    shelves = library.shelves()
    rows = [
        [
            "▾" if shelf.is_open else "▸",
            shelf.title,
            shelf.key,
            shelf.count,
            "yes" if shelf.editable else ""
        ]
        for shelf in shelves
    ]
    print("\n" + tabulate(rows, headers=["", "Shelf", "Key", "Books", "Editable"], tablefmt="simple"))

    for shelf in shelves:
        if (shelf.is_open or args.expand) and shelf.books:
            print(f"\n{shelf.title}")
            display_books(shelf.books, "compact")


async def cmd_show(library: Library, args):
    books = filter_books(books_for_shelf(library.model, args.key), args.search or "")
    display_books(books, args.format)


async def cmd_toggle(library: Library, args):
    state = "open" if library.toggle_shelf(args.key) else "collapsed"
    print(f"{args.key}: {state}")


async def cmd_move(library: Library, args):
    engine = library.engine
    engine.start_drag(args.book_id, args.origin)
    if args.target == "remove-origin":
        applied = await engine.drop_on_remove_from_origin()
    elif args.target == "remove-all":
        applied = await engine.drop_on_remove_from_all()
    else:
        applied = await engine.drop_on_shelf(args.target)
    print("✅ Moved" if applied else "No change")


async def cmd_remove(library: Library, args):
    if args.category:
        applied = await library.engine.remove_from_category(args.book_id, args.category)
    else:
        applied = await library.engine.remove_from_all_categories(args.book_id)
    print("✅ Removed" if applied else "No change")


async def cmd_category(library: Library, args):
    engine = library.engine
    if args.action == "create":
        applied = await engine.create_category(args.name)
    elif args.action == "rename":
        applied = await engine.rename_category(args.category_id, args.name)
    else:
        applied = await engine.delete_category(args.category_id)
    print("✅ Done" if applied else "No change")


async def cmd_edit(library: Library, args):
    changes = {}
    for name in ("status", "rating", "review", "is_public"):
        value = getattr(args, name)
        if value is not None:
            changes[name] = value
    if args.category is not None:
        changes["categories"] = args.category
    applied = await library.edit_book(args.book_id, **changes)
    print("✅ Saved" if applied else "No change")


async def cmd_delete(library: Library, args):
    applied = await library.delete_book(args.book_id)
    print("✅ Deleted" if applied else "No change")


async def cmd_public(library: Library, args):
    name, grouped = await library.public_library(args.uid)
    print(f"\n{name or args.uid}'s Public Library")
    if not grouped:
        print("No public books found.")
    for category, books in grouped.items():
        print(f"\n{category}")
        display_books(books, "compact")


async def cmd_profile(library: Library, args):
    changes = {}
    for name in ("display_name", "bio", "avatar", "favorite_book_id"):
        value = getattr(args, name)
        if value is not None:
            changes[name] = value
    profile = await library.update_profile(**changes)
    if profile is None:
        print("No profile yet. Set one with --name.")
        return
    favorite = library.model.get_book(profile.favorite_book_id) if profile.favorite_book_id else None
    print(f"\n{profile.display_name or profile.uid}")
    if profile.bio:
        print(profile.bio)
    if favorite:
        print(f"Favorite: {favorite.title} by {favorite.author}")

LIBRARY_COMMANDS = {
    "add": cmd_add,
    "shelves": cmd_shelves,
    "show": cmd_show,
    "toggle": cmd_toggle,
    "move": cmd_move,
    "remove": cmd_remove,
    "category": cmd_category,
    "edit": cmd_edit,
    "delete": cmd_delete,
    "public": cmd_public,
    "profile": cmd_profile,
}


def show_stats(args, config: Config):
    """Show library statistics."""
    db = setup_database(config)

    try:
        stats = db.get_stats(config.LIBRARY_USER_ID)

        print("\n" + "=" * 50)
        print("LIBRARY STATISTICS")
        print("=" * 50)
        print(f"Total books: {stats['total_books']}")
        for status in STATUSES:
            print(f"  {status}: {stats['books_by_status'].get(status, 0)}")
        print(f"Unassigned books: {stats['unassigned_books']}")
        print(f"Categories: {stats['categories']}")
        print(f"Cached catalog responses: {stats['cached_responses']}")
        print("=" * 50 + "\n")

        if args.cleanup:
            deleted = db.cleanup_expired_cache()
            print(f"✅ Cleaned up {deleted} expired cache entries\n")

    finally:
        db.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Librarian - personal book library CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s search "ursula le guin"
  %(prog)s add zyTCAlFPjgYC --status completed --rating 4.5 --category sci-fi
  %(prog)s category create "Cozy Fantasy"
  %(prog)s move zyTCAlFPjgYC cozy-fantasy
  %(prog)s move zyTCAlFPjgYC remove-origin --origin cozy-fantasy
  %(prog)s shelves --expand
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("-y", "--yes", action="store_true", help="Answer yes to every confirmation")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    search_parser = subparsers.add_parser("search", help="Search the Google Books catalog")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("--limit", type=int, default=10, help="Max results (default: 10)")
    search_parser.add_argument("--format", choices=["table", "json"], default="table", help="Output format")
    search_parser.add_argument("--cache-ttl", type=int, default=3600, help="Cache TTL in seconds (default: 3600)")
    search_parser.add_argument("--no-cache", action="store_true", help="Disable caching")

    add_parser = subparsers.add_parser("add", help="Add catalog volumes to the library")
    add_parser.add_argument("volume_ids", nargs="+", help="Google Books volume IDs")
    add_parser.add_argument("--status", choices=STATUSES, default=STATUSES[0])
    add_parser.add_argument("--rating", type=float, default=0, help="0-5 in steps of 0.5 (completed only)")
    add_parser.add_argument("--category", action="append", default=[], help="Category id (repeatable)")

    shelves_parser = subparsers.add_parser("shelves", help="List shelves")
    shelves_parser.add_argument("--expand", action="store_true", help="List books on every shelf")

    show_parser = subparsers.add_parser("show", help="Show every book on one shelf")
    show_parser.add_argument("key", help="Status, 'unassigned' or category id")
    show_parser.add_argument("--search", help="Filter by title or author")
    show_parser.add_argument("--format", choices=["table", "json", "compact"], default="table")

    toggle_parser = subparsers.add_parser("toggle", help="Expand or collapse a shelf")
    toggle_parser.add_argument("key", help="Shelf key")

    move_parser = subparsers.add_parser("move", help="Drag a book onto a shelf or removal target")
    move_parser.add_argument("book_id")
    move_parser.add_argument("target", help="Shelf key, 'remove-origin' or 'remove-all'")
    move_parser.add_argument("--origin", help="Category shelf the book is dragged from")

    remove_parser = subparsers.add_parser("remove", help="Take a book out of categories")
    remove_parser.add_argument("book_id")
    remove_parser.add_argument("--category", help="Only this category (default: all)")

    category_parser = subparsers.add_parser("category", help="Manage categories")
    category_actions = category_parser.add_subparsers(dest="action", required=True)
    create_parser = category_actions.add_parser("create")
    create_parser.add_argument("name")
    rename_parser = category_actions.add_parser("rename")
    rename_parser.add_argument("category_id")
    rename_parser.add_argument("name")
    delete_category_parser = category_actions.add_parser("delete")
    delete_category_parser.add_argument("category_id")

    edit_parser = subparsers.add_parser("edit", help="Edit a book")
    edit_parser.add_argument("book_id")
    edit_parser.add_argument("--status", choices=STATUSES)
    edit_parser.add_argument("--rating", type=float)
    edit_parser.add_argument("--review")
    edit_parser.add_argument("--public", dest="is_public", action="store_true", default=None)
    edit_parser.add_argument("--private", dest="is_public", action="store_false")
    edit_parser.add_argument("--category", action="append", help="Replace categories (repeatable)")

    delete_parser = subparsers.add_parser("delete", help="Delete a book from the library")
    delete_parser.add_argument("book_id")

    public_parser = subparsers.add_parser("public", help="Show another user's public library")
    public_parser.add_argument("uid")

    profile_parser = subparsers.add_parser("profile", help="Show or edit your profile")
    profile_parser.add_argument("--name", dest="display_name", help="Display name")
    profile_parser.add_argument("--bio")
    profile_parser.add_argument("--avatar", help="Avatar image URL")
    profile_parser.add_argument("--favorite", dest="favorite_book_id", help="Book id of your favorite book")

    stats_parser = subparsers.add_parser("stats", help="Show library statistics")
    stats_parser.add_argument("--cleanup", action="store_true", help="Clean up expired cache")

    return parser


def main():
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )
    config = Config()

    try:
        if args.command == "search":
            search_catalog(args, config)
        elif args.command == "stats":
            show_stats(args, config)
        else:
            asyncio.run(run_library_command(args, config))

    except KeyboardInterrupt:
        logger.info("\n⚠️  Interrupted by user")
        sys.exit(0)
    except (StoreError, ValueError, KeyError) as e:
        logger.error(f"❌ {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
