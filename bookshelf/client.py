"""Blocking Google Books client used by the command line."""
import logging
import random
import time
from typing import Optional, Dict, Any

import requests

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class GoogleBooksClient:
    """Catalog lookups with timeouts, retries and exponential backoff."""

    BASE_URL = "https://www.googleapis.com/books/v1/volumes"
    MAX_PAGE_SIZE = 40

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: int = 10,
        max_retries: int = 3,
        base_backoff: float = 1.0
    ):
        """
        Initialize the client.

        Args:
            api_key: Optional API key (raises rate limits)
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts per request
            base_backoff: Base delay for exponential backoff
        """
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_backoff = base_backoff
        self.session = requests.Session()

    def search(self, query: str, max_results: int = 10, start_index: int = 0) -> Optional[Dict[str, Any]]:
        """
        Search volumes.

        Args:
            query: Search query string
            max_results: Results per page (capped at 40 by the API)
            start_index: Pagination offset

        Returns:
            API response JSON or None if every attempt failed
        """
        params = {
            "q": query,
            "maxResults": min(max_results, self.MAX_PAGE_SIZE),
            "startIndex": start_index
        }
        return self._get(self.BASE_URL, params)

    def search_with_cache(
        self,
        query: str,
        max_results: int = 10,
        cache_db=None,
        cache_ttl: int = 3600
    ) -> Optional[Dict[str, Any]]:
        """
        Search, going through the database response cache when one is given.

        Args:
            query: Search query
            max_results: Max results
            cache_db: Database instance (optional)
            cache_ttl: Cache TTL in seconds

        Returns:
            API response or None
        """
        cache_key = f"catalog:search:{query.strip().lower()}:{max_results}"

        if cache_db:
            cached = cache_db.cache_get(cache_key)
            if cached:
                return cached

        response = self.search(query, max_results)

        if response and cache_db:
            cache_db.cache_set(cache_key, response, cache_ttl)

        return response

    def _get(self, url: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if self.api_key:
            params = dict(params, key=self.api_key)

        for attempt in range(self.max_retries):
            last_attempt = attempt == self.max_retries - 1
            try:
                logger.info(f"Request attempt {attempt + 1}/{self.max_retries}: {url}")
                response = self.session.get(url, params=params, timeout=self.timeout)
            except requests.exceptions.Timeout:
                logger.warning(f"Timeout on attempt {attempt + 1}")
            except requests.exceptions.ConnectionError as e:
                logger.warning(f"Connection error on attempt {attempt + 1}: {e}")
            else:
                if response.status_code == 200:
                    return response.json()
                if response.status_code not in RETRYABLE_STATUS:
                    # Client error, retrying won't help
                    logger.error(f"Client error ({response.status_code}): {response.text}")
                    return None
                logger.warning(f"Retryable status {response.status_code} on attempt {attempt + 1}")

            if not last_attempt:
                self._backoff(attempt)

        logger.error(f"All {self.max_retries} attempts failed")
        return None

    def _backoff(self, attempt: int):
        """Sleep base * 2^attempt plus up to the same again in jitter."""
        delay = self.base_backoff * (2 ** attempt)
        total_delay = delay + random.uniform(0, delay)
        logger.info(f"Backing off for {total_delay:.2f} seconds")
        time.sleep(total_delay)

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
