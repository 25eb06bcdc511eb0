"""
Voosh - Embedding Client
==========================
Turns a query string into one embedding vector through an external
embedding provider.

Architecture
------------
``EmbedProvider``
    Structural type for a provider adapter.  An adapter performs the
    network call and hands back the *raw* decoded response; it does not
    interpret it.

``CohereEmbedProvider``
    Cohere v2 REST ``/v2/embed`` over a shared ``httpx.AsyncClient``.

``GeminiEmbedProvider``
    ``GoogleGenerativeAIEmbeddings`` from LangChain, wrapped so its result
    looks like any other provider response.

``extract_embedding``
    Pure function over a JSON-like tree.  Tries an ordered table of shape
    extractors, first non-empty numeric sequence wins; a ``body`` wrapper is
    unwrapped once.

``EmbeddingClient``
    Validates input, enforces the per-call timeout (the provider call is
    cancelled on expiry) and converts every failure into ``EmbeddingError``.

Usage:
    client = EmbeddingClient(CohereEmbedProvider(http, api_key), "embed-english-light-v3.0", timeout_ms=15_000)
    vector = await client.embed("who won the match?")
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Callable, Mapping
from typing import Protocol, runtime_checkable

import httpx

from voosh.src.core.exceptions import EmbeddingError, InvalidQueryError, UpstreamShapeError
from voosh.src.utils.http_utils import post_json
from voosh.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type aliases ───────────────────────────────────────────────────────
Vector = list[float]


# ══════════════════════════════════════════════════════════════════════
#  PROVIDER PROTOCOL
# ══════════════════════════════════════════════════════════════════════


@runtime_checkable
class EmbedProvider(Protocol):
    """Anything that can fetch a raw embedding response for one text."""

    label: str

    async def embed(self, text: str, model: str, timeout_ms: int) -> object: ...


# ══════════════════════════════════════════════════════════════════════
#  PROVIDER ADAPTERS
# ══════════════════════════════════════════════════════════════════════


class CohereEmbedProvider:
    """Cohere v2 embeddings over REST (``input_type="search_query"``)."""

    label = "Cohere"

    __slots__ = ("_client", "_api_key", "_base_url")

    def __init__(self, client: httpx.AsyncClient, api_key: str, base_url: str = "https://api.cohere.com") -> None:
        self._client = client
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")


    async def embed(self, text: str, model: str, timeout_ms: int) -> object:
        payload = {"model": model, "texts": [text], "input_type": "search_query", "embedding_types": ["float"]}
        headers = {"Authorization": f"Bearer {self._api_key}"}
        return await post_json(self._client, f"{self._base_url}/v2/embed", payload, headers=headers, timeout_ms=timeout_ms)


class GeminiEmbedProvider:
    """Google Gemini embeddings via ``langchain-google-genai``."""

    label = "Gemini"

    __slots__ = ("_api_key", "_embedders")

    def __init__(self, api_key: str) -> None:
        self._api_key = api_key
        self._embedders: dict[str, object] = {}


    def _embedder_for(self, model: str) -> object:
        """One LangChain embeddings object per model name, built on first use."""
        if model not in self._embedders:
            from langchain_google_genai import GoogleGenerativeAIEmbeddings

            self._embedders[model] = GoogleGenerativeAIEmbeddings(model=model, google_api_key=self._api_key)
            logger.info("[EMBED] Gemini embedder initialised: %s", model)
        return self._embedders[model]


    async def embed(self, text: str, model: str, timeout_ms: int) -> object:
        vector = await self._embedder_for(model).aembed_query(text)  # type: ignore[attr-defined]
        return {"embeddings": [list(vector)]}


# ══════════════════════════════════════════════════════════════════════
#  RESPONSE SHAPE EXTRACTION
# ══════════════════════════════════════════════════════════════════════


def _get(node: object, key: str) -> object:
    return node.get(key) if isinstance(node, Mapping) else None


def _first(node: object) -> object:
    if isinstance(node, (list, tuple)) and node:
        return node[0]
    return None


def _is_vector(candidate: object) -> bool:
    if not isinstance(candidate, (list, tuple)) or not candidate:
        return False
    return all(isinstance(x, (int, float)) and not isinstance(x, bool) for x in candidate)


def describe_shape(node: object) -> str:
    """Short, log-friendly description of a response: type + top-level keys."""
    if isinstance(node, Mapping):
        return f"dict(keys={sorted(str(k) for k in node.keys())})"
    if isinstance(node, (list, tuple)):
        return f"{type(node).__name__}(len={len(node)})"
    return type(node).__name__


# Ordered (name, extractor) pairs; the first extractor yielding a vector wins
_SHAPE_EXTRACTORS: tuple[tuple[str, Callable[[object], object]], ...] = (
    ("embeddings.float[0]", lambda r: _first(_get(_get(r, "embeddings"), "float"))),
    ("embeddings[0]", lambda r: _first(_get(r, "embeddings"))),
    ("embeddings[0].embedding", lambda r: _get(_first(_get(r, "embeddings")), "embedding")),
    ("data[0].embedding", lambda r: _get(_first(_get(r, "data")), "embedding")),
)


def extract_embedding(response: object, _unwrapped: bool = False) -> Vector:
    """
    Pull the query vector out of a provider response.

    Recognised shapes, in order:
        (a) ``{"embeddings": {"float": [[...]]}}``
        (b) ``{"embeddings": [[...]]}``
        (c) ``{"embeddings": [{"embedding": [...]}]}``
        (d) ``{"data": [{"embedding": [...]}]}``
        (e) any of the above inside a ``body`` field (object or JSON
            string), unwrapped once.

    Raises:
        UpstreamShapeError: when no shape yields a non-empty numeric sequence.
    """
    for name, extractor in _SHAPE_EXTRACTORS:
        candidate = extractor(response)
        if _is_vector(candidate):
            logger.debug("[EMBED] Vector extracted via shape '%s' (dim=%d).", name, len(candidate))  # type: ignore[arg-type]
            return [float(x) for x in candidate]  # type: ignore[union-attr]

    body = _get(response, "body")
    if body is not None and not _unwrapped:
        if isinstance(body, str):
            try:
                body = json.loads(body)
            except ValueError:
                body = None
        if body is not None:
            return extract_embedding(body, _unwrapped=True)

    raise UpstreamShapeError(f"Unrecognised embedding response shape: {describe_shape(response)}", raw=response)


# ══════════════════════════════════════════════════════════════════════
#  EMBEDDING CLIENT
# ══════════════════════════════════════════════════════════════════════


class EmbeddingClient:
    """
    Query embedding with timeout enforcement and failure normalisation.

    Parameters
    ----------
    provider
        An ``EmbedProvider`` adapter.
    model
        Model identifier passed through to the provider on every call.
    timeout_ms
        Hard deadline for one call.  On expiry the provider coroutine is
        cancelled and ``EmbeddingError`` is raised.
    """

    __slots__ = ("_provider", "_model", "_timeout_ms")

    def __init__(self, provider: EmbedProvider, model: str, timeout_ms: int = 15_000) -> None:
        self._provider = provider
        self._model = model
        self._timeout_ms = timeout_ms


    @property
    def provider_label(self) -> str:
        return getattr(self._provider, "label", type(self._provider).__name__)


    async def embed(self, text: str) -> Vector:
        """
        Embed one query string.

        Raises
        ------
        InvalidQueryError
            *text* is empty after trimming.
        EmbeddingError
            Network / auth / timeout failure, or an unreadable response
            (``UpstreamShapeError``).
        """
        cleaned = (text or "").strip()
        if not cleaned:
            raise InvalidQueryError("Cannot embed empty text")

        t_start = time.perf_counter()
        try:
            response = await asyncio.wait_for(self._provider.embed(cleaned, self._model, self._timeout_ms), timeout=self._timeout_ms / 1000)
        except asyncio.TimeoutError as exc:
            raise EmbeddingError(f"timed out after {self._timeout_ms}ms") from exc
        except EmbeddingError:
            raise
        except Exception as exc:
            raise EmbeddingError(str(exc) or type(exc).__name__) from exc

        try:
            vector = extract_embedding(response)
        except UpstreamShapeError:
            logger.warning("[EMBED] %s returned an unrecognised shape: %s", self.provider_label, describe_shape(response))
            raise

        logger.info("[EMBED] %s/%s → dim=%d in %.1fms", self.provider_label, self._model, len(vector), (time.perf_counter() - t_start) * 1000)
        return vector
