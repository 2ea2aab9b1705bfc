"""Tests for the catalog clients, without touching the network."""
import asyncio

import httpx
import requests

from bookshelf.async_client import AsyncGoogleBooksClient
from bookshelf.client import GoogleBooksClient


class FakeResponse:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = payload or {}
        self.text = str(self._payload)

    def json(self):
        return self._payload


class FakeSession:
    """Replays a scripted list of responses or exceptions."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self):
        pass


def make_client(outcomes, **kwargs):
    client = GoogleBooksClient(**kwargs)
    client.session = FakeSession(outcomes)
    client._backoff = lambda attempt: None
    return client


def test_search_retries_server_errors_then_succeeds():
    client = make_client([
        FakeResponse(503),
        requests.exceptions.Timeout(),
        FakeResponse(200, {"items": []}),
    ], max_retries=3)

    assert client.search("dune") == {"items": []}
    assert len(client.session.calls) == 3


def test_search_does_not_retry_client_errors():
    client = make_client([FakeResponse(400)], max_retries=3)

    assert client.search("dune") is None
    assert len(client.session.calls) == 1


def test_search_gives_up_after_max_retries():
    client = make_client([FakeResponse(429), FakeResponse(429)], max_retries=2)

    assert client.search("dune") is None


def test_search_caps_page_size_and_sends_key():
    client = make_client([FakeResponse(200, {})], api_key="k")

    client.search("dune", max_results=100)

    _, params = client.session.calls[0]
    assert params["maxResults"] == 40
    assert params["key"] == "k"


class FakeCache:
    def __init__(self, cached=None):
        self.cached = cached
        self.stored = {}

    def cache_get(self, key):
        return self.cached

    def cache_set(self, key, data, ttl):
        self.stored[key] = data
        return True


def test_search_with_cache_hit_skips_request():
    client = make_client([])
    cache = FakeCache(cached={"items": ["cached"]})

    assert client.search_with_cache("Dune", cache_db=cache) == {"items": ["cached"]}
    assert client.session.calls == []


def test_search_with_cache_miss_stores_response():
    client = make_client([FakeResponse(200, {"items": []})])
    cache = FakeCache()

    client.search_with_cache("  Dune ", max_results=5, cache_db=cache)

    assert cache.stored == {"catalog:search:dune:5": {"items": []}}


def volume(volume_id, title):
    return {"id": volume_id, "volumeInfo": {"title": title, "authors": ["A"]}}


def test_async_search_parses_and_deduplicates():
    def handler(request):
        assert request.url.params["q"] == "earthsea"
        return httpx.Response(200, json={"items": [volume("1", "A Wizard"), volume("1", "A Wizard")]})

    async def run():
        async with AsyncGoogleBooksClient(transport=httpx.MockTransport(handler)) as client:
            return await client.search("earthsea")

    results = asyncio.run(run())

    assert [r.title for r in results] == ["A Wizard"]


def test_async_get_volumes_skips_failures():
    def handler(request):
        if request.url.path.endswith("/missing"):
            return httpx.Response(404)
        return httpx.Response(200, json=volume(request.url.path.rsplit("/", 1)[-1], "Found"))

    async def run():
        async with AsyncGoogleBooksClient(transport=httpx.MockTransport(handler)) as client:
            blank = await client.search("   ")
            found = await client.get_volumes(["v1", "missing", "v2"])
            return blank, found

    blank, found = asyncio.run(run())

    assert blank == []
    assert [c.id for c in found] == ["v1", "v2"]
