"""
Tests for Settings loading and validation.
"""

import pytest
from pydantic import ValidationError

from voosh.config.settings import Settings
from voosh.src.core.rag_engine import RetrievalConfig

REQUIRED = {"GOOGLE_API_KEY": "g-key", "MONGO_URI": "mongodb://localhost:27017", "COHERE_API_KEY": "c-key", "QDRANT_URL": "http://qdrant:6333"}

_ENV_VARS = ("GOOGLE_API_KEY", "MONGO_URI", "COHERE_API_KEY", "QDRANT_URL", "QDRANT_API_KEY", "EMBEDDING_PROVIDER", "VECTOR_BACKEND", "DEFAULT_TOP_K", "TITLE_BOOST_ALPHA")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def _settings(**overrides):
    return Settings(_env_file=None, **{**REQUIRED, **overrides})


class TestSettings:
    def test_defaults(self):
        settings = _settings()
        assert settings.DEFAULT_TOP_K == 5
        assert settings.MAX_CONTEXT_CHARS == 1500
        assert settings.MAX_HITS_CONSIDERED == 20
        assert settings.TITLE_BOOST_ALPHA == pytest.approx(0.12)
        assert settings.EMBED_TIMEOUT_MS == 15_000
        assert settings.SEARCH_TIMEOUT_MS == 30_000
        assert settings.EMBEDDING_PROVIDER == "cohere"
        assert settings.VECTOR_BACKEND == "qdrant"
        assert settings.COLLECTION_NAME == "voosh_news_v1"

    def test_secrets_are_masked(self):
        settings = _settings()
        assert "g-key" not in repr(settings)
        assert settings.GOOGLE_API_KEY.get_secret_value() == "g-key"

    def test_missing_google_key(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, MONGO_URI="mongodb://x", COHERE_API_KEY="c", QDRANT_URL="http://q")

    def test_cohere_requires_key(self):
        with pytest.raises(ValidationError, match="COHERE_API_KEY"):
            Settings(_env_file=None, GOOGLE_API_KEY="g", MONGO_URI="mongodb://x", QDRANT_URL="http://q")

    def test_qdrant_requires_url(self):
        with pytest.raises(ValidationError, match="QDRANT_URL"):
            Settings(_env_file=None, GOOGLE_API_KEY="g", MONGO_URI="mongodb://x", COHERE_API_KEY="c")

    def test_local_backends_need_no_extra_credentials(self):
        settings = Settings(_env_file=None, GOOGLE_API_KEY="g", MONGO_URI="mongodb://x", EMBEDDING_PROVIDER="gemini", VECTOR_BACKEND="lancedb")
        assert settings.COHERE_API_KEY is None
        assert settings.QDRANT_URL is None

    @pytest.mark.parametrize("field, value", [("DEFAULT_TOP_K", 0), ("MAX_CONTEXT_CHARS", 0), ("EMBED_TIMEOUT_MS", -1), ("TITLE_BOOST_ALPHA", -0.1)])
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            _settings(**{field: value})

    def test_frozen(self):
        settings = _settings()
        with pytest.raises(ValidationError):
            settings.DEFAULT_TOP_K = 10

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_TOP_K", "8")
        assert Settings(_env_file=None, GOOGLE_API_KEY="g", MONGO_URI="m", COHERE_API_KEY="c", QDRANT_URL="http://q").DEFAULT_TOP_K == 8

    def test_retrieval_config_from_settings(self):
        config = RetrievalConfig.from_settings(_settings(DEFAULT_TOP_K=7, TITLE_BOOST_ALPHA=0.2))
        assert config.default_top_k == 7
        assert config.title_boost_alpha == pytest.approx(0.2)
        assert config.max_context_chars == 1500
