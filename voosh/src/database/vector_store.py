"""
Voosh - Vector Search
=======================
Similarity search against the news index, behind one narrow interface.

Backends:
  • ``QdrantVectorStore`` — Qdrant REST API over a shared
    ``httpx.AsyncClient`` (production).
  • ``LanceVectorStore``  — local LanceDB table, for development without
    a Qdrant cluster.  The collection name is the table name.

Design decisions:
  • **Raw responses** — a backend returns the decoded provider response
    untouched; ``extract_hits`` is the only code that reads its shape.
  • **Never throw on odd success** — a successful response in an
    unrecognised shape yields no hits (logged), not an exception.
  • **One DB connection per store** — ``LanceVectorStore`` opens its
    connection lazily behind a lock and reuses it for every search.
  • **Timeouts** — ``VectorSearchClient`` cancels the backend call when the
    configured deadline expires and raises ``SearchError``.

Usage:
    store = QdrantVectorStore(http_client, url=settings.QDRANT_URL, api_key=key)
    client = VectorSearchClient(store, collection="voosh_news_v1", timeout_ms=30_000)
    raw_hits = await client.search(vector, top_k=5)
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol, runtime_checkable
from urllib.parse import quote

import httpx
import lancedb

from voosh.src.core.embedder import Vector, describe_shape
from voosh.src.core.exceptions import SearchError
from voosh.src.utils.http_utils import get_json, post_json
from voosh.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type Aliases ──────────────────────────────────────────────────────
RawHit = dict[str, object]

# Wrapper fields a search response may nest its hit list under, in order
_HIT_WRAPPER_FIELDS: tuple[str, ...] = ("result", "data", "hits")


# ══════════════════════════════════════════════════════════════════════
#  BACKEND PROTOCOL
# ══════════════════════════════════════════════════════════════════════


@runtime_checkable
class VectorStore(Protocol):
    """Anything that can run a nearest-neighbour query and return the raw response."""

    label: str

    async def search(self, collection: str, vector: Vector, limit: int, timeout_ms: int) -> object: ...


# ══════════════════════════════════════════════════════════════════════
#  QDRANT (REST)
# ══════════════════════════════════════════════════════════════════════


class QdrantVectorStore:
    """
    Qdrant collection accessed through its REST API.

    Parameters
    ----------
    client
        Shared ``httpx.AsyncClient`` (owned by the application container).
    url
        Cluster base URL, e.g. ``https://<host>:6333``.
    api_key
        Optional key, sent as the ``api-key`` header.
    """

    label = "Qdrant"

    __slots__ = ("_client", "_url", "_api_key")

    def __init__(self, client: httpx.AsyncClient, url: str, api_key: str | None = None) -> None:
        self._client = client
        self._url = url.rstrip("/")
        self._api_key = api_key


    def _headers(self) -> dict[str, str]:
        return {"api-key": self._api_key} if self._api_key else {}


    def _collection_url(self, collection: str) -> str:
        return f"{self._url}/collections/{quote(collection, safe='')}"


    async def search(self, collection: str, vector: Vector, limit: int, timeout_ms: int) -> object:
        payload = {"vector": vector, "limit": max(1, int(limit)), "with_payload": True, "with_vector": False}
        return await post_json(self._client, f"{self._collection_url(collection)}/points/search", payload, headers=self._headers(), timeout_ms=timeout_ms)


    async def collection_info(self, collection: str, timeout_ms: int | None = None) -> object:
        """``GET /collections/{name}`` — used by the diagnostics CLI."""
        return await get_json(self._client, self._collection_url(collection), headers=self._headers(), timeout_ms=timeout_ms)


    async def count_points(self, collection: str, timeout_ms: int | None = None) -> int | None:
        """Exact point count, or ``None`` when the response carries none."""
        response = await post_json(self._client, f"{self._collection_url(collection)}/points/count", {"exact": True}, headers=self._headers(), timeout_ms=timeout_ms)
        result = response.get("result") if isinstance(response, Mapping) else None
        count = result.get("count") if isinstance(result, Mapping) else None
        return count if isinstance(count, int) else None


# ══════════════════════════════════════════════════════════════════════
#  LANCEDB (LOCAL)
# ══════════════════════════════════════════════════════════════════════


class LanceVectorStore:
    """
    Local LanceDB table shaped to look like a Qdrant response.

    Rows keep every stored column except the vector; ``_distance`` (cosine)
    becomes ``score = 1 - distance`` so higher is better, as with Qdrant.
    """

    label = "LanceDB"

    __slots__ = ("_db_path", "_db", "_lock")

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)
        self._db: lancedb.DBConnection | None = None
        self._lock = threading.Lock()


    def _connection(self) -> lancedb.DBConnection:
        """Open the LanceDB connection on first use (searches run in worker threads)."""
        if self._db is None:
            with self._lock:
                if self._db is None:
                    logger.info("Opening LanceDB connection: %s", self._db_path)
                    Path(self._db_path).mkdir(parents=True, exist_ok=True)
                    self._db = lancedb.connect(self._db_path)
        return self._db


    def _search_sync(self, collection: str, vector: Vector, limit: int) -> dict[str, list[RawHit]]:
        table = self._connection().open_table(collection)
        rows = table.search(vector).distance_type("cosine").limit(max(1, int(limit))).to_list()

        hits: list[RawHit] = []
        for row in rows:
            distance = row.get("_distance")
            payload = {k: v for k, v in row.items() if k not in ("vector", "_distance")}
            hits.append({"id": row.get("id"), "score": 1.0 - float(distance) if distance is not None else None, "payload": payload})
        return {"result": hits}


    async def search(self, collection: str, vector: Vector, limit: int, timeout_ms: int) -> object:
        return await asyncio.to_thread(self._search_sync, collection, vector, limit)


# ══════════════════════════════════════════════════════════════════════
#  RESPONSE SHAPE EXTRACTION
# ══════════════════════════════════════════════════════════════════════


def extract_hits(response: object) -> list[object]:
    """
    Return the hit list of a search response.

    Accepts a bare list, or a mapping with the list under ``result``,
    ``data`` or ``hits`` (first field holding a list wins).  Anything else
    yields ``[]``.
    """
    if isinstance(response, list):
        return response
    if isinstance(response, Mapping):
        for field in _HIT_WRAPPER_FIELDS:
            value = response.get(field)
            if isinstance(value, list):
                return value
    logger.warning("[SEARCH] Unrecognised search response shape: %s; treating as no hits.", describe_shape(response))
    return []


# ══════════════════════════════════════════════════════════════════════
#  SEARCH CLIENT
# ══════════════════════════════════════════════════════════════════════


class VectorSearchClient:
    """
    Collection-bound search with timeout enforcement.

    Parameters
    ----------
    store
        A ``VectorStore`` backend.
    collection
        Collection (or table) to query.
    timeout_ms
        Hard deadline for one search call.
    """

    __slots__ = ("_store", "_collection", "_timeout_ms")

    def __init__(self, store: VectorStore, collection: str, timeout_ms: int = 30_000) -> None:
        self._store = store
        self._collection = collection
        self._timeout_ms = timeout_ms


    @property
    def provider_label(self) -> str:
        return getattr(self._store, "label", type(self._store).__name__)


    async def search(self, vector: Vector, top_k: int) -> list[object]:
        """
        Fetch the *top_k* nearest records, payload attached, vectors excluded.

        Raises:
            ValueError:  *top_k* < 1.
            SearchError: network / auth / timeout failure.
        """
        if top_k < 1:
            raise ValueError(f"top_k must be ≥ 1, got {top_k}")

        t_start = time.perf_counter()
        try:
            response = await asyncio.wait_for(self._store.search(self._collection, vector, top_k, self._timeout_ms), timeout=self._timeout_ms / 1000)
        except asyncio.TimeoutError as exc:
            raise SearchError(f"timed out after {self._timeout_ms}ms") from exc
        except Exception as exc:
            raise SearchError(str(exc) or type(exc).__name__) from exc

        hits = extract_hits(response)
        logger.info("[SEARCH] %s '%s' top_k=%d → %d hit(s) in %.1fms", self.provider_label, self._collection, top_k, len(hits), (time.perf_counter() - t_start) * 1000)
        return hits
