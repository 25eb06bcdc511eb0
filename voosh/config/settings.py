"""
Voosh - Centralized Configuration
==================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``GOOGLE_API_KEY`` and ``MONGO_URI`` are typed as ``SecretStr`` and have
  **no default value**.  If either is missing at startup, Pydantic raises a
  ``ValidationError`` with a clear error message.
- ``COHERE_API_KEY`` / ``QDRANT_API_KEY`` are optional ``SecretStr`` fields.
  ``COHERE_API_KEY`` becomes required when ``EMBEDDING_PROVIDER="cohere"``,
  and ``QDRANT_URL`` when ``VECTOR_BACKEND="qdrant"``.

Lifecycle
---------
There is no module-level instance.  The application factory (or a CLI
script) builds ``Settings()`` exactly once and passes it down; the
retrieval core only ever sees a frozen ``RetrievalConfig`` derived from it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).
    Fields *without* a default are **required**.

    Attributes
    ----------
    GOOGLE_API_KEY : SecretStr
        Google AI Studio key, used by the Gemini answer model (and by the
        Gemini embedder when selected).  **Required.**
    MONGO_URI : SecretStr
        MongoDB connection string for the chat transcript store.  **Required.**
    EMBEDDING_PROVIDER : Literal["cohere", "gemini"]
        Which embedding service turns queries into vectors.
    VECTOR_BACKEND : Literal["qdrant", "lancedb"]
        Remote Qdrant collection, or a local LanceDB table for development.
    EMBED_TIMEOUT_MS / SEARCH_TIMEOUT_MS : int
        Per-call timeouts for the two outbound calls of a retrieval.
    DEFAULT_TOP_K : int
        Nearest neighbours requested when the caller does not say.
    MAX_CONTEXT_CHARS : int
        Character budget of the assembled context.
    MAX_HITS_CONSIDERED : int
        How many provider-ordered hits take part in de-duplication.
    MAX_HITS_IN_CONTEXT : int
        How many ranked hits may be rendered into the context.
    TITLE_BOOST_ALPHA : float
        Weight of the lexical title-match boost.
    RETRY_TOP_K_CEILING : int
        Upper bound for the widened top-K of the retry policy.
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent
    LANCEDB_PATH: Path = BASE_DIR / "data" / "lancedb"

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"

    # ── API Keys ───────────────────────────────────────────────────────
    GOOGLE_API_KEY: SecretStr
    COHERE_API_KEY: SecretStr | None = None
    QDRANT_API_KEY: SecretStr | None = None

    # ── MongoDB (REQUIRED, no default) ─────────────────────────────────
    MONGO_URI: SecretStr
    MONGO_DB_NAME: str = "voosh"
    CHAT_COLLECTION: str = "chat_sessions"
    CHAT_HISTORY_MAX_ENTRIES: int = 1000
    CHAT_HISTORY_TTL_SECONDS: int = 60 * 60 * 24 * 30
    CONTEXT_SUMMARY_CHARS: int = 500

    # ── Model Configuration ────────────────────────────────────────────
    LLM_MODEL: str = "gemini-2.5-flash-lite"
    LLM_TEMPERATURE: float = 0.2
    EMBEDDING_PROVIDER: Literal["cohere", "gemini"] = "cohere"
    EMBEDDING_MODEL: str = "embed-english-light-v3.0"
    COHERE_BASE_URL: str = "https://api.cohere.com"
    EMBED_TIMEOUT_MS: int = 15_000

    # ── Vector Store ───────────────────────────────────────────────────
    VECTOR_BACKEND: Literal["qdrant", "lancedb"] = "qdrant"
    QDRANT_URL: str | None = None
    COLLECTION_NAME: str = "voosh_news_v1"
    SEARCH_TIMEOUT_MS: int = 30_000

    # ── Retrieval Tuning ───────────────────────────────────────────────
    DEFAULT_TOP_K: int = 5
    MAX_CONTEXT_CHARS: int = 1500
    MAX_HITS_CONSIDERED: int = 20
    MAX_HITS_IN_CONTEXT: int = 5
    TITLE_BOOST_ALPHA: float = 0.12
    RETRY_TOP_K_CEILING: int = 20

    # ── Featured Items ─────────────────────────────────────────────────
    FEATURED_DEFAULT_QUERY: str = "latest news"
    FEATURED_DEFAULT_K: int = 3
    FEATURED_EXCERPT_CHARS: int = 200

    # ── HTTP Server ────────────────────────────────────────────────────
    HOST: str = "0.0.0.0"
    PORT: int = 5000

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("DEFAULT_TOP_K", "MAX_HITS_CONSIDERED", "MAX_HITS_IN_CONTEXT", "RETRY_TOP_K_CEILING", "FEATURED_DEFAULT_K", "CHAT_HISTORY_MAX_ENTRIES")
    @classmethod
    def _count_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be ≥ 1, got {v}")
        return v


    @field_validator("EMBED_TIMEOUT_MS", "SEARCH_TIMEOUT_MS", "MAX_CONTEXT_CHARS", "FEATURED_EXCERPT_CHARS", "CHAT_HISTORY_TTL_SECONDS")
    @classmethod
    def _budget_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"must be > 0, got {v}")
        return v


    @field_validator("TITLE_BOOST_ALPHA")
    @classmethod
    def _alpha_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"TITLE_BOOST_ALPHA must be ≥ 0, got {v}")
        return v


    @model_validator(mode="after")
    def _provider_credentials(self) -> "Settings":
        if self.EMBEDDING_PROVIDER == "cohere" and self.COHERE_API_KEY is None:
            raise ValueError("COHERE_API_KEY is required when EMBEDDING_PROVIDER='cohere'")
        if self.VECTOR_BACKEND == "qdrant" and not self.QDRANT_URL:
            raise ValueError("QDRANT_URL is required when VECTOR_BACKEND='qdrant'")
        return self

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent.parent / ".env", env_file_encoding="utf-8", extra="ignore", frozen=True)
