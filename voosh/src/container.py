"""
Voosh - Dependency Wiring
===========================
Builds every long-lived component once, from one ``Settings`` instance,
and owns the network handles they share.

The container is constructed at process start (FastAPI lifespan or a CLI
script), handed to request handlers read-only, and closed at shutdown.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import motor.motor_asyncio

from voosh.config.settings import Settings
from voosh.src.core.embedder import CohereEmbedProvider, EmbeddingClient, EmbedProvider, GeminiEmbedProvider
from voosh.src.core.featured import FeaturedService
from voosh.src.core.rag_engine import ChatService, GeminiAnswerer, RetrievalConfig, RetrievalPipeline, TranscriptStore
from voosh.src.database.session_store import MongoSessionManager
from voosh.src.database.vector_store import LanceVectorStore, QdrantVectorStore, VectorSearchClient, VectorStore
from voosh.src.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(slots=True)
class ServiceContainer:
    """Components shared by all requests, plus the handles to close at shutdown."""

    pipeline: RetrievalPipeline
    chat: ChatService
    featured: FeaturedService
    sessions: TranscriptStore
    http_client: httpx.AsyncClient | None = None
    mongo_client: motor.motor_asyncio.AsyncIOMotorClient | None = None

    async def aclose(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()
        if self.mongo_client is not None:
            self.mongo_client.close()
        logger.info("Service container closed.")


def build_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=httpx.Timeout(30.0))


def build_embed_provider(settings: Settings, http_client: httpx.AsyncClient) -> EmbedProvider:
    if settings.EMBEDDING_PROVIDER == "cohere":
        return CohereEmbedProvider(http_client, settings.COHERE_API_KEY.get_secret_value(), settings.COHERE_BASE_URL)  # type: ignore[union-attr]
    return GeminiEmbedProvider(settings.GOOGLE_API_KEY.get_secret_value())


def build_vector_store(settings: Settings, http_client: httpx.AsyncClient) -> VectorStore:
    if settings.VECTOR_BACKEND == "qdrant":
        api_key = settings.QDRANT_API_KEY.get_secret_value() if settings.QDRANT_API_KEY else None
        return QdrantVectorStore(http_client, settings.QDRANT_URL, api_key)  # type: ignore[arg-type]
    return LanceVectorStore(settings.LANCEDB_PATH)


def build_pipeline(settings: Settings, http_client: httpx.AsyncClient) -> RetrievalPipeline:
    embedder = EmbeddingClient(build_embed_provider(settings, http_client), settings.EMBEDDING_MODEL, settings.EMBED_TIMEOUT_MS)
    searcher = VectorSearchClient(build_vector_store(settings, http_client), settings.COLLECTION_NAME, settings.SEARCH_TIMEOUT_MS)
    return RetrievalPipeline(embedder, searcher, RetrievalConfig.from_settings(settings))


def build_services(settings: Settings) -> ServiceContainer:
    """Instantiate the production stack described by *settings*."""
    http_client = build_http_client()
    pipeline = build_pipeline(settings, http_client)

    mongo_client = motor.motor_asyncio.AsyncIOMotorClient(settings.MONGO_URI.get_secret_value())
    sessions = MongoSessionManager.from_client(mongo_client, settings.MONGO_DB_NAME, settings.CHAT_COLLECTION, max_entries=settings.CHAT_HISTORY_MAX_ENTRIES, ttl_seconds=settings.CHAT_HISTORY_TTL_SECONDS)

    answerer = GeminiAnswerer(settings.GOOGLE_API_KEY.get_secret_value(), settings.LLM_MODEL, settings.LLM_TEMPERATURE)
    chat = ChatService(pipeline, answerer, sessions, settings.CONTEXT_SUMMARY_CHARS)
    featured = FeaturedService(pipeline, settings.FEATURED_DEFAULT_QUERY, settings.FEATURED_DEFAULT_K, settings.FEATURED_EXCERPT_CHARS)

    logger.info("Services built: embed=%s/%s, search=%s/%s, llm=%s", settings.EMBEDDING_PROVIDER, settings.EMBEDDING_MODEL, settings.VECTOR_BACKEND, settings.COLLECTION_NAME, settings.LLM_MODEL)
    return ServiceContainer(pipeline=pipeline, chat=chat, featured=featured, sessions=sessions, http_client=http_client, mongo_client=mongo_client)
