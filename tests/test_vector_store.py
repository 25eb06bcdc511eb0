"""
Tests for search response extraction, the Qdrant REST backend, the local
LanceDB backend and the timeout-enforcing search client.
"""

import json

import httpx
import pytest

from tests.conftest import FakeVectorStore
from voosh.src.core.exceptions import SearchError
from voosh.src.database.vector_store import LanceVectorStore, QdrantVectorStore, VectorSearchClient, extract_hits


class TestExtractHits:
    def test_bare_list(self):
        assert extract_hits([{"id": 1}]) == [{"id": 1}]

    @pytest.mark.parametrize("field", ["result", "data", "hits"])
    def test_wrapped_list(self, field):
        assert extract_hits({field: [{"id": 1}]}) == [{"id": 1}]

    def test_first_field_holding_a_list_wins(self):
        assert extract_hits({"result": "not a list", "data": [{"id": 2}], "hits": [{"id": 3}]}) == [{"id": 2}]

    @pytest.mark.parametrize("response", [{"result": {"points": []}}, None, "error", 42])
    def test_unknown_shapes_yield_no_hits(self, response):
        assert extract_hits(response) == []


class TestQdrantVectorStore:
    @pytest.mark.asyncio
    async def test_search_request(self):
        captured = {}

        def handler(request):
            captured["method"] = request.method
            captured["url"] = str(request.url)
            captured["api_key"] = request.headers.get("api-key")
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"result": [{"id": 1, "score": 0.9, "payload": {"title": "T"}}], "status": "ok"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = VectorSearchClient(QdrantVectorStore(http, "http://qdrant:6333/", "qkey"), "voosh_news_v1")
            hits = await client.search([0.1, 0.2], top_k=5)

        assert hits == [{"id": 1, "score": 0.9, "payload": {"title": "T"}}]
        assert captured["method"] == "POST"
        assert captured["url"] == "http://qdrant:6333/collections/voosh_news_v1/points/search"
        assert captured["api_key"] == "qkey"
        assert captured["body"] == {"vector": [0.1, 0.2], "limit": 5, "with_payload": True, "with_vector": False}

    @pytest.mark.asyncio
    async def test_no_api_key_header_when_unset(self):
        seen = {}

        def handler(request):
            seen["has_key"] = "api-key" in request.headers
            return httpx.Response(200, json={"result": []})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            await VectorSearchClient(QdrantVectorStore(http, "http://qdrant:6333"), "c").search([0.1], top_k=1)

        assert seen["has_key"] is False

    @pytest.mark.asyncio
    async def test_server_error_becomes_search_error(self):
        def handler(request):
            return httpx.Response(500, text="collection not found")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = VectorSearchClient(QdrantVectorStore(http, "http://qdrant:6333"), "missing")
            with pytest.raises(SearchError) as excinfo:
                await client.search([0.1], top_k=3)

        assert "HTTP 500" in str(excinfo.value)
        assert "collection not found" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_count_points(self):
        def handler(request):
            assert request.url.path == "/collections/voosh_news_v1/points/count"
            assert json.loads(request.content) == {"exact": True}
            return httpx.Response(200, json={"result": {"count": 42}, "status": "ok"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            count = await QdrantVectorStore(http, "http://qdrant:6333").count_points("voosh_news_v1")

        assert count == 42

    @pytest.mark.asyncio
    async def test_collection_info(self):
        def handler(request):
            assert request.method == "GET"
            return httpx.Response(200, json={"result": {"status": "green"}})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            info = await QdrantVectorStore(http, "http://qdrant:6333").collection_info("voosh_news_v1")

        assert info == {"result": {"status": "green"}}


class TestVectorSearchClient:
    @pytest.mark.asyncio
    async def test_timeout(self):
        client = VectorSearchClient(FakeVectorStore(delay=1.0), "c", timeout_ms=10)
        with pytest.raises(SearchError, match="timed out after 10ms"):
            await client.search([0.1], top_k=5)

    @pytest.mark.asyncio
    async def test_backend_exception_is_wrapped(self):
        client = VectorSearchClient(FakeVectorStore(error=ConnectionError("connection refused")), "c")
        with pytest.raises(SearchError, match="connection refused"):
            await client.search([0.1], top_k=5)

    @pytest.mark.asyncio
    async def test_rejects_non_positive_top_k(self):
        store = FakeVectorStore()
        with pytest.raises(ValueError):
            await VectorSearchClient(store, "c").search([0.1], top_k=0)
        assert store.limits == []

    @pytest.mark.asyncio
    async def test_passes_limit_through(self):
        store = FakeVectorStore(hits=[{"id": 1}])
        hits = await VectorSearchClient(store, "c").search([0.1], top_k=7)
        assert hits == [{"id": 1}]
        assert store.limits == [7]


class TestLanceVectorStore:
    @pytest.mark.asyncio
    async def test_search_returns_scored_hits(self, tmp_path):
        import lancedb

        db = lancedb.connect(str(tmp_path))
        db.create_table(
            "news",
            data=[
                {"id": "a", "vector": [1.0, 0.0], "title": "Same direction", "url": "http://a"},
                {"id": "b", "vector": [0.0, 1.0], "title": "Orthogonal", "url": "http://b"},
            ],
        )

        hits = await VectorSearchClient(LanceVectorStore(tmp_path), "news").search([1.0, 0.0], top_k=2)

        assert [h["id"] for h in hits] == ["a", "b"]
        assert hits[0]["score"] == pytest.approx(1.0, abs=1e-5)
        assert hits[1]["score"] == pytest.approx(0.0, abs=1e-5)
        assert hits[0]["payload"]["title"] == "Same direction"
        assert "vector" not in hits[0]["payload"]
        assert "_distance" not in hits[0]["payload"]
