"""
Voosh - RAG Engine
====================
Query-time Retrieval-Augmented Generation for the news chat.

Architecture
------------
``RetrievalPipeline``
    Stateless orchestrator behind ``get_context(query, top_k)``.  Flow:
        1. Blank query → empty result, no network calls
        2. Embed query                      (``EmbeddingClient``)
        3. Vector search                    (``VectorSearchClient``)
        4. Normalise provider hits          (``ranking.normalize_hits``)
        5. Title-match boost                (``ranking.rescore_hits``)
        6. De-duplicate first N hits        (``ranking.dedupe_hits``)
        7. Sort, best first                 (``ranking.sort_hits``)
        8. Assemble bounded context         (``context_builder``)
    Embedding / search failures never escape: they come back as an empty
    ``RetrievalResult`` with an ``error`` string.

``GeminiAnswerer``
    Answer synthesis through ``ChatGoogleGenerativeAI``.  Never raises.

``ChatService``
    One chat turn: retrieve (with widen-and-retry) → answer → persist the
    turn to the session transcript.

Concurrency
-----------
Each call is a strictly sequential chain (embed, then search).  Nothing
here holds request-scoped state, so one pipeline instance is shared by
all concurrent requests.

Usage:
    pipeline = RetrievalPipeline(embedding_client, search_client, RetrievalConfig.from_settings(settings))
    result = await pipeline.get_context("who won the election?")
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from voosh.config.prompt_templates import ANSWER_PROMPT_TEMPLATE, LLM_FAILURE_RESPONSE, NO_CONTEXT_RESPONSE, SYSTEM_PROMPT
from voosh.src.core.context_builder import assemble_context
from voosh.src.core.embedder import EmbeddingClient
from voosh.src.core.exceptions import EmbeddingError, SearchError
from voosh.src.core.ranking import RescoredHit, dedupe_hits, normalize_hits, rescore_hits, sort_hits
from voosh.src.database.vector_store import VectorSearchClient
from voosh.src.utils.logger import get_logger
from voosh.src.utils.text_utils import first_present, tokenize

logger = get_logger(__name__)

# ── Type aliases ───────────────────────────────────────────────────────
HitDict = dict[str, object]
ChatEntry = dict[str, object]

# Query tokens shorter than this are ignored by the relevance check
_MIN_MATCH_TOKEN_LEN = 4


# ══════════════════════════════════════════════════════════════════════
#  CONFIGURATION & RESULT TYPES
# ══════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class RetrievalConfig:
    """Read-only retrieval tuning, derived once from ``Settings``."""

    default_top_k: int = 5
    max_context_chars: int = 1500
    max_hits_considered: int = 20
    max_hits_in_context: int = 5
    title_boost_alpha: float = 0.12
    retry_top_k_ceiling: int = 20

    @classmethod
    def from_settings(cls, settings: object) -> "RetrievalConfig":
        return cls(
            default_top_k=settings.DEFAULT_TOP_K,  # type: ignore[attr-defined]
            max_context_chars=settings.MAX_CONTEXT_CHARS,  # type: ignore[attr-defined]
            max_hits_considered=settings.MAX_HITS_CONSIDERED,  # type: ignore[attr-defined]
            max_hits_in_context=settings.MAX_HITS_IN_CONTEXT,  # type: ignore[attr-defined]
            title_boost_alpha=settings.TITLE_BOOST_ALPHA,  # type: ignore[attr-defined]
            retry_top_k_ceiling=settings.RETRY_TOP_K_CEILING,  # type: ignore[attr-defined]
        )


@dataclass(frozen=True, slots=True)
class RetrievalResult:
    """
    Outcome of one ``get_context`` call.

    ``hits`` is the full de-duplicated, score-sorted set, not only the hits
    rendered into ``context``.  A non-``None`` ``error`` means "no usable
    context".
    """

    context: str = ""
    hits: tuple[RescoredHit, ...] = ()
    top_k_used: int = 0
    error: str | None = None

    def hit_dicts(self) -> list[HitDict]:
        """Wire form of ``hits``, each annotated with its resolved ``source`` and ``title_match``."""
        return [{"id": hit.id, "score": hit.score, "payload": hit.payload, "source": first_present(hit.payload, "source"), "title_match": hit.title_match} for hit in self.hits]


    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"context": self.context, "hits": self.hit_dicts(), "top_k_used": self.top_k_used}
        if self.error is not None:
            data["error"] = self.error
        return data


def context_matches_query(context: str, query: str) -> bool:
    """True when any query token of 4+ characters occurs in *context* (case-insensitive substring)."""
    if not context:
        return False
    lowered = context.lower()
    tokens = [t for t in tokenize(query) if len(t) >= _MIN_MATCH_TOKEN_LEN]
    return any(token in lowered for token in tokens)


# ══════════════════════════════════════════════════════════════════════
#  RETRIEVAL PIPELINE
# ══════════════════════════════════════════════════════════════════════


class RetrievalPipeline:
    """
    Embed → search → normalise → rescore → dedupe → sort → assemble.

    Parameters
    ----------
    embedder
        ``EmbeddingClient`` for the query vector.
    searcher
        ``VectorSearchClient`` bound to the news collection.
    config
        Frozen ``RetrievalConfig``.
    """

    __slots__ = ("_embedder", "_searcher", "_config")

    def __init__(self, embedder: EmbeddingClient, searcher: VectorSearchClient, config: RetrievalConfig | None = None) -> None:
        self._embedder = embedder
        self._searcher = searcher
        self._config = config or RetrievalConfig()


    @property
    def config(self) -> RetrievalConfig:
        return self._config


    async def get_context(self, query: str, top_k: int | None = None) -> RetrievalResult:
        """
        Retrieve, rank and assemble context for *query*.

        ``top_k`` falls back to ``config.default_top_k`` when omitted or below 1.
        Never raises for provider failures.
        """
        if not top_k or top_k < 1:
            top_k = self._config.default_top_k
        cleaned = (query or "").strip()
        if not cleaned:
            return RetrievalResult(top_k_used=top_k)

        t_start = time.perf_counter()

        # ── 1. Embed ──────────────────────────────────────────────────
        try:
            vector = await self._embedder.embed(cleaned)
        except EmbeddingError as exc:
            logger.warning("[RAG] Embedding failed: %s", exc)
            return RetrievalResult(top_k_used=top_k, error=f"{self._embedder.provider_label} embed failed: {exc}")

        # ── 2. Search ─────────────────────────────────────────────────
        try:
            raw_hits = await self._searcher.search(vector, top_k)
        except SearchError as exc:
            logger.warning("[RAG] Search failed: %s", exc)
            return RetrievalResult(top_k_used=top_k, error=f"{self._searcher.provider_label} search failed: {exc}")

        # ── 3. Rank ───────────────────────────────────────────────────
        normalized = normalize_hits(raw_hits)
        rescored = rescore_hits(normalized, cleaned, self._config.title_boost_alpha)
        ranked = sort_hits(dedupe_hits(rescored, self._config.max_hits_considered))

        # ── 4. Assemble ───────────────────────────────────────────────
        bundle = assemble_context(ranked, max_hits=self._config.max_hits_in_context, max_chars=self._config.max_context_chars)

        logger.info("[RAG] '%s' top_k=%d: %d raw → %d ranked → %d piece(s), %d chars in %.1fms", cleaned[:50], top_k, len(raw_hits), len(ranked), len(bundle.pieces), len(bundle.context), (time.perf_counter() - t_start) * 1000)
        return RetrievalResult(context=bundle.context, hits=tuple(ranked), top_k_used=top_k)


    async def get_context_widening(self, query: str, top_k: int | None = None) -> RetrievalResult:
        """
        ``get_context`` with one widened retry.

        When the context shares no 4+ character token with the query and
        ``top_k`` is below the ceiling, the whole pipeline is re-run with
        ``min(ceiling, 4 × top_k)`` and that result is returned instead.
        A failed retrieval leaves the context empty, so it is retried too.
        """
        result = await self.get_context(query, top_k)
        if not (query or "").strip():
            return result

        ceiling = self._config.retry_top_k_ceiling
        if context_matches_query(result.context, query) or result.top_k_used >= ceiling:
            return result

        retry_k = min(ceiling, result.top_k_used * 4)
        logger.info("[RAG] Context does not mention the query; retrying with top_k=%d", retry_k)
        return await self.get_context(query, retry_k)


# ══════════════════════════════════════════════════════════════════════
#  ANSWER GENERATION
# ══════════════════════════════════════════════════════════════════════


@runtime_checkable
class Answerer(Protocol):
    """Black-box answer synthesis: ``(query, context) -> text``."""

    async def answer(self, query: str, context: str) -> str: ...


def extract_answer_text(response: object) -> str:
    """
    Normalise a chat-model response to plain text.

    Handles ``AIMessage``-like objects whose ``content`` is a string or a
    list of parts (strings or ``{"type": "text", "text": ...}`` dicts), and
    bare strings.
    """
    content = getattr(response, "content", response)
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts: list[str] = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, Mapping) and isinstance(part.get("text"), str):
                parts.append(part["text"])  # type: ignore[arg-type]
        return "".join(parts).strip()
    return ""


class GeminiAnswerer:
    """
    Gemini answer model via ``langchain-google-genai``.

    Parameters
    ----------
    api_key
        Google AI Studio key.
    model
        Chat model identifier.
    temperature
        Sampling temperature.
    llm
        Optional pre-built chat model (anything with ``ainvoke``).
    """

    __slots__ = ("_llm", "_model")

    def __init__(self, api_key: str = "", model: str = "gemini-2.5-flash-lite", temperature: float = 0.2, llm: object | None = None) -> None:
        self._model = model
        self._llm = llm or self._init_llm(api_key, model, temperature)


    @staticmethod
    def _init_llm(api_key: str, model: str, temperature: float) -> object:
        """Initialise the Gemini LLM via LangChain."""
        from langchain_google_genai import ChatGoogleGenerativeAI

        llm = ChatGoogleGenerativeAI(model=model, temperature=temperature, google_api_key=api_key)
        logger.info("[LLM] Initialised: %s (temperature=%.1f)", model, temperature)
        return llm


    async def answer(self, query: str, context: str) -> str:
        """Answer *query* from *context*; on any failure return the canned apology."""
        from langchain_core.messages import HumanMessage, SystemMessage

        prompt = ANSWER_PROMPT_TEMPLATE.format(context=context, question=query)
        t_llm = time.perf_counter()
        try:
            response = await self._llm.ainvoke([SystemMessage(content=SYSTEM_PROMPT), HumanMessage(content=prompt)])  # type: ignore[attr-defined]
        except Exception:
            logger.exception("[LLM] %s call failed.", self._model)
            return LLM_FAILURE_RESPONSE

        text = extract_answer_text(response)
        if not text:
            logger.error("[LLM] Could not extract text from response of type %s.", type(response).__name__)
            return LLM_FAILURE_RESPONSE

        logger.info("[LLM] Response: %.1fms (%d chars, prompt %d chars)", (time.perf_counter() - t_llm) * 1000, len(text), len(prompt))
        return text


# ══════════════════════════════════════════════════════════════════════
#  CHAT SERVICE
# ══════════════════════════════════════════════════════════════════════


@runtime_checkable
class TranscriptStore(Protocol):
    """Session-keyed append-only transcript with expiry."""

    async def append_entry(self, session_id: str, entry: ChatEntry) -> None: ...

    async def get_history(self, session_id: str) -> list[ChatEntry]: ...

    async def clear_session(self, session_id: str) -> bool: ...


@dataclass(slots=True)
class ChatTurn:
    answer: str
    retrieval: RetrievalResult
    entry: ChatEntry = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {"answer": self.answer, "context": self.retrieval.context, "hits": self.retrieval.hit_dicts(), "top_k_used": self.retrieval.top_k_used}


class ChatService:
    """
    One chat turn: retrieval → answer → transcript.

    Parameters
    ----------
    pipeline
        ``RetrievalPipeline`` (widen-and-retry is applied here).
    answerer
        ``Answerer`` used when usable context exists.
    store
        ``TranscriptStore`` for the per-session history.
    context_summary_chars
        Prefix of the context persisted with each turn.
    """

    __slots__ = ("_pipeline", "_answerer", "_store", "_summary_chars")

    def __init__(self, pipeline: RetrievalPipeline, answerer: Answerer, store: TranscriptStore, context_summary_chars: int = 500) -> None:
        self._pipeline = pipeline
        self._answerer = answerer
        self._store = store
        self._summary_chars = context_summary_chars


    async def handle_chat(self, session_id: str, query: str, top_k: int | None = None) -> ChatTurn:
        """
        Answer *query* within *session_id* and persist the turn.

        Without usable context (retrieval error or empty context) the model
        is not called and the fixed "not enough information" answer is used.
        """
        t_start = time.perf_counter()
        retrieval = await self._pipeline.get_context_widening(query, top_k)

        if retrieval.error is not None or not retrieval.context:
            logger.warning("[CHAT] No usable context for session '%s' (error=%s).", session_id, retrieval.error)
            answer = NO_CONTEXT_RESPONSE
        else:
            answer = await self._answerer.answer(query, retrieval.context)

        entry: ChatEntry = {"query": query, "answer": answer, "context_summary": retrieval.context[: self._summary_chars], "timestamp": int(time.time() * 1000)}
        await self._store.append_entry(session_id, entry)

        logger.info("[CHAT] Session '%s' turn done in %.1fms (top_k_used=%d, %d hit(s)).", session_id, (time.perf_counter() - t_start) * 1000, retrieval.top_k_used, len(retrieval.hits))
        return ChatTurn(answer=answer, retrieval=retrieval, entry=entry)


    async def get_history(self, session_id: str) -> list[ChatEntry]:
        return await self._store.get_history(session_id)


    async def clear_history(self, session_id: str) -> bool:
        return await self._store.clear_session(session_id)
