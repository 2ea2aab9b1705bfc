"""Parse and normalize Google Books API responses."""
import logging
from typing import Dict, Any, List, Optional

from bookshelf.models import CatalogBook, DEFAULT_AUTHOR, DEFAULT_SUMMARY, DEFAULT_TITLE

logger = logging.getLogger(__name__)


def parse_catalog_book(item: Dict[str, Any]) -> Optional[CatalogBook]:
    """
    Parse a single volume from Google Books API.

    Args:
        item: Single item from Google Books API response

    Returns:
        CatalogBook or None if parsing fails
    """
    try:
        volume_info = item.get("volumeInfo", {})

        book_id = item.get("id", "")
        if not book_id:
            return None

        authors = volume_info.get("authors") or []
        published_date = volume_info.get("publishedDate")

        # Prefer the larger thumbnail
        image_links = volume_info.get("imageLinks", {})
        cover = image_links.get("thumbnail") or image_links.get("smallThumbnail")

        return CatalogBook(
            id=book_id,
            title=volume_info.get("title") or DEFAULT_TITLE,
            author=", ".join(authors) if authors else DEFAULT_AUTHOR,
            cover=cover,
            summary=volume_info.get("description") or DEFAULT_SUMMARY,
            year=published_date.split("-")[0] if published_date else None
        )
    except (AttributeError, TypeError) as e:
        # Malformed volume; skip it rather than failing the whole page
        logger.warning(f"Failed to parse volume: {e}")
        return None


def parse_search_response(response_json: Dict[str, Any]) -> List[CatalogBook]:
    """
    Parse full Google Books API response.

    Args:
        response_json: Complete API response JSON

    Returns:
        List of CatalogBook objects (empty if no items found)
    """
    items = response_json.get("items", [])
    candidates = []

    for item in items:
        candidate = parse_catalog_book(item)
        if candidate:
            candidates.append(candidate)

    return candidates


def deduplicate(candidates: List[CatalogBook]) -> List[CatalogBook]:
    """Remove duplicate results by volume ID, keeping the first."""
    seen_ids = set()
    unique = []

    for candidate in candidates:
        if candidate.id not in seen_ids:
            seen_ids.add(candidate.id)
            unique.append(candidate)

    return unique
