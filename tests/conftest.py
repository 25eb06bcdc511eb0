"""
Shared fakes for the retrieval tests.

No test touches the network: embedding providers and vector stores are
replaced by the small in-memory doubles below.
"""

import asyncio

import pytest

from voosh.src.core.embedder import EmbeddingClient
from voosh.src.core.rag_engine import RetrievalConfig, RetrievalPipeline
from voosh.src.database.vector_store import VectorSearchClient


class FakeEmbedProvider:
    """Returns a fixed response (or raises) and records every call."""

    def __init__(self, response=None, error=None, delay=0.0, label="Cohere"):
        self.label = label
        self.response = response if response is not None else {"embeddings": {"float": [[0.1, 0.2, 0.3]]}}
        self.error = error
        self.delay = delay
        self.calls = []

    async def embed(self, text, model, timeout_ms):
        self.calls.append((text, model, timeout_ms))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response


class FakeVectorStore:
    """Returns a fixed hit list (or raises) and records the requested limits."""

    def __init__(self, hits=None, error=None, delay=0.0, label="Qdrant"):
        self.label = label
        self.hits = hits if hits is not None else []
        self.error = error
        self.delay = delay
        self.limits = []

    async def search(self, collection, vector, limit, timeout_ms):
        self.limits.append(limit)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return {"result": list(self.hits)}


class InMemoryTranscriptStore:
    def __init__(self):
        self.sessions = {}

    async def append_entry(self, session_id, entry):
        self.sessions.setdefault(session_id, []).append(entry)

    async def get_history(self, session_id):
        return list(self.sessions.get(session_id, []))

    async def clear_session(self, session_id):
        return self.sessions.pop(session_id, None) is not None


def make_hit(hit_id, score, title="", text="", url=None, **extra):
    payload = {"title": title, "text": text, **extra}
    if url is not None:
        payload["url"] = url
    return {"id": hit_id, "score": score, "payload": payload}


def make_pipeline(provider=None, store=None, config=None):
    provider = provider or FakeEmbedProvider()
    store = store or FakeVectorStore()
    embedder = EmbeddingClient(provider, "embed-english-light-v3.0", timeout_ms=1000)
    searcher = VectorSearchClient(store, "voosh_news_v1", timeout_ms=1000)
    return RetrievalPipeline(embedder, searcher, config or RetrievalConfig())


@pytest.fixture
def transcript_store():
    return InMemoryTranscriptStore()


@pytest.fixture
def news_hits():
    return [
        make_hit("1", 0.82, title="Who is the President of France", text="Emmanuel Macron is the President of France.", url="http://a"),
        make_hit("2", 0.78, title="Election results announced", text="The national election results were announced on Sunday.", url="http://b"),
        make_hit("3", 0.55, title="Markets rally", text="Stocks closed higher after the central bank decision.", url="http://c"),
    ]
