"""Async Google Books client used inside a library session."""
import asyncio
import logging
from typing import List, Optional, Dict, Any

import httpx

from bookshelf.models import CatalogBook
from bookshelf.parse import deduplicate, parse_catalog_book, parse_search_response

logger = logging.getLogger(__name__)


class AsyncGoogleBooksClient:
    """Non-blocking catalog lookups with a cap on concurrent requests."""

    BASE_URL = "https://www.googleapis.com/books/v1/volumes"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: int = 10,
        max_concurrent: int = 5,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize async client.

        Args:
            api_key: Optional API key
            timeout: Request timeout
            max_concurrent: Maximum concurrent requests
            transport: Custom httpx transport (tests)
        """
        self.api_key = api_key
        self.semaphore = asyncio.Semaphore(max_concurrent)
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def _get(self, url: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if self.api_key:
            params = dict(params, key=self.api_key)

        async with self.semaphore:
            try:
                response = await self.client.get(url, params=params)
            except httpx.HTTPError as e:
                logger.error(f"Catalog request failed: {e}")
                return None

        if response.status_code != 200:
            logger.warning(f"Status {response.status_code} for {url}")
            return None
        return response.json()

    async def search(self, query: str, max_results: int = 10) -> List[CatalogBook]:
        """
        Search the catalog.

        Args:
            query: Search query; blank queries return nothing
            max_results: Max results

        Returns:
            Parsed, de-duplicated results (empty on failure)
        """
        if not query.strip():
            return []

        logger.info(f"Catalog search: {query}")
        data = await self._get(self.BASE_URL, {"q": query, "maxResults": min(max_results, 40)})
        if data is None:
            return []
        return deduplicate(parse_search_response(data))

    async def get_volume(self, volume_id: str) -> Optional[CatalogBook]:
        data = await self._get(f"{self.BASE_URL}/{volume_id}", {})
        if data is None:
            return None
        return parse_catalog_book(data)

    async def get_volumes(self, volume_ids: List[str]) -> List[CatalogBook]:
        """Fetch several volumes in parallel, skipping any that fail."""
        results = await asyncio.gather(*(self.get_volume(v) for v in volume_ids))
        return [r for r in results if r is not None]

    async def close(self):
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
