"""Tests for the remote quote client."""

import json

import httpx
import pytest

from quotesync.client import RemoteQuoteClient
from quotesync.exceptions import SyncUnavailable
from quotesync.models import Quote, QuoteSource

BASE_URL = "https://remote.example.com/posts"


def make_client(handler, **kwargs):
    return RemoteQuoteClient(
        base_url=BASE_URL, transport=httpx.MockTransport(handler), **kwargs
    )


def json_handler(payload, status_code=200, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=payload)

    return handler


class TestMapItem:
    """Tests for mapping remote items onto quotes."""

    def test_post_shaped_item(self):
        client = make_client(json_handler([]))
        quote = client.map_item({"id": 7, "title": " Hello ", "body": "...", "userId": 2})

        assert quote.id == "remote-7"
        assert quote.remote_ref == "7"
        assert quote.text == "Hello"
        assert quote.category == "User 2"
        assert quote.source == QuoteSource.REMOTE

    def test_text_and_category_preferred(self):
        client = make_client(json_handler([]))
        quote = client.map_item(
            {"id": "abc", "text": "Quote", "title": "Ignored", "category": "Wisdom"}
        )
        assert quote.text == "Quote"
        assert quote.category == "Wisdom"

    def test_missing_category_uses_sentinel(self):
        client = make_client(json_handler([]))
        assert client.map_item({"id": 1, "title": "T"}).category == "Uncategorized"

    @pytest.mark.parametrize(
        "item",
        [{"title": "no id"}, {"id": 1}, {"id": 1, "title": "  "}, "string", None, {"id": True, "title": "x"}],
    )
    def test_unusable_items(self, item):
        client = make_client(json_handler([]))
        assert client.map_item(item) is None


class TestFetchBatch:
    """Tests for RemoteQuoteClient.fetch_batch."""

    @pytest.mark.asyncio
    async def test_fetch_maps_items_in_order(self):
        seen = []
        payload = [
            {"id": 1, "title": "One", "userId": 1},
            {"id": 2, "title": "Two", "userId": 1},
            {"nope": True},
        ]
        async with make_client(json_handler(payload, seen=seen), fetch_limit=3) as client:
            result = await client.fetch_batch()

        assert result.ok
        assert [q.id for q in result.quotes] == ["remote-1", "remote-2"]
        assert seen[0].method == "GET"
        assert seen[0].url.params["_limit"] == "3"

    @pytest.mark.asyncio
    async def test_fetch_without_limit(self):
        seen = []
        async with make_client(json_handler([], seen=seen), fetch_limit=None) as client:
            await client.fetch_batch()
        assert "_limit" not in seen[0].url.params

    @pytest.mark.asyncio
    async def test_fetched_quotes_get_fresh_timestamps(self):
        payload = [{"id": 1, "title": "One"}, {"id": 2, "title": "Two"}]
        async with make_client(json_handler(payload)) as client:
            result = await client.fetch_batch()
        first, second = result.quotes
        assert second.last_modified > first.last_modified

    @pytest.mark.asyncio
    async def test_http_error_returns_empty_batch(self):
        async with make_client(json_handler({"error": "boom"}, status_code=500)) as client:
            result = await client.fetch_batch()

        assert not result.ok
        assert result.quotes == []
        assert isinstance(result.error, SyncUnavailable)

    @pytest.mark.asyncio
    async def test_transport_error_returns_empty_batch(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        async with make_client(handler) as client:
            result = await client.fetch_batch()

        assert not result.ok
        assert result.quotes == []

    @pytest.mark.asyncio
    async def test_invalid_json_returns_empty_batch(self):
        def handler(request):
            return httpx.Response(200, content=b"<html>")

        async with make_client(handler) as client:
            result = await client.fetch_batch()

        assert isinstance(result.error, SyncUnavailable)

    @pytest.mark.asyncio
    async def test_non_list_payload_returns_empty_batch(self):
        async with make_client(json_handler({"id": 1})) as client:
            result = await client.fetch_batch()
        assert not result.ok


class TestPush:
    """Tests for RemoteQuoteClient.push."""

    @pytest.fixture
    def quote(self):
        return Quote(id="local-1", text="Mine", category="Me", last_modified=1)

    @pytest.mark.asyncio
    async def test_push_returns_remote_ref(self, quote):
        seen = []
        async with make_client(json_handler({"id": 101}, status_code=201, seen=seen)) as client:
            ref = await client.push(quote)

        assert ref == "101"
        assert seen[0].method == "POST"
        assert json.loads(seen[0].content) == {"title": "Mine", "body": "Me", "userId": 1}

    @pytest.mark.asyncio
    async def test_push_failure_returns_none(self, quote):
        async with make_client(json_handler({}, status_code=503)) as client:
            assert await client.push(quote) is None

    @pytest.mark.asyncio
    async def test_push_without_id_returns_none(self, quote):
        async with make_client(json_handler({"ok": True})) as client:
            assert await client.push(quote) is None

    @pytest.mark.asyncio
    async def test_push_transport_error_returns_none(self, quote):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        async with make_client(handler) as client:
            assert await client.push(quote) is None
