"""
Unit tests for MemoryConfig.
"""

import pytest

from context_space.config import MemoryConfig
from context_space.exceptions import ConfigurationError

ENV_VARS = (
    "MONGODB_URI",
    "MONGODB_DB_NAME",
    "REDIS_URL",
    "MONGO_MAX_POOL_SIZE",
    "MONGO_MIN_POOL_SIZE",
    "MONGO_SERVER_SELECTION_TIMEOUT_MS",
    "OPENAI_API_KEY",
    "EMBEDDING_MODEL",
    "EMBEDDING_DIMENSIONS",
    "SESSION_TTL_SECONDS",
    "RETRIEVAL_TOP_K",
    "MAX_SESSION_MESSAGES",
    "STORE_READ_TIMEOUT_MS",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDefaults:
    def test_defaults(self, clean_env):
        config = MemoryConfig()
        assert config.mongo_uri == "mongodb://localhost:27017"
        assert config.db_name == "context_space"
        assert config.redis_url == "redis://localhost:6379/0"
        assert config.max_pool_size == 50
        assert config.min_pool_size == 5
        assert config.embedding_model == "text-embedding-3-large"
        assert config.embedding_dimensions == 1536
        assert config.session_ttl_seconds == 48 * 3600
        assert config.retrieval_top_k == 10
        assert config.max_session_messages == 50
        assert config.store_read_timeout_seconds is None
        config.validate()


class TestEnvironment:
    def test_reads_environment(self, clean_env):
        clean_env.setenv("MONGODB_URI", "mongodb://db:27017")
        clean_env.setenv("REDIS_URL", "redis://cache:6379/1")
        clean_env.setenv("RETRIEVAL_TOP_K", "5")
        clean_env.setenv("STORE_READ_TIMEOUT_MS", "250")
        config = MemoryConfig()
        assert config.mongo_uri == "mongodb://db:27017"
        assert config.redis_url == "redis://cache:6379/1"
        assert config.retrieval_top_k == 5
        assert config.store_read_timeout_seconds == 0.25

    def test_arguments_override_environment(self, clean_env):
        clean_env.setenv("RETRIEVAL_TOP_K", "5")
        assert MemoryConfig(retrieval_top_k=3).retrieval_top_k == 3

    def test_non_integer_environment_value(self, clean_env):
        clean_env.setenv("MAX_SESSION_MESSAGES", "lots")
        with pytest.raises(ConfigurationError) as exc_info:
            MemoryConfig()
        assert exc_info.value.config_key == "MAX_SESSION_MESSAGES"


class TestValidate:
    def test_min_pool_above_max(self, clean_env):
        config = MemoryConfig(max_pool_size=5, min_pool_size=10)
        with pytest.raises(ConfigurationError) as exc_info:
            config.validate()
        assert exc_info.value.config_key == "min_pool_size"

    def test_short_server_selection_timeout(self, clean_env):
        config = MemoryConfig(server_selection_timeout_ms=10)
        with pytest.raises(ConfigurationError):
            config.validate()

    def test_negative_read_timeout(self, clean_env):
        config = MemoryConfig(store_read_timeout_ms=-1)
        with pytest.raises(ConfigurationError) as exc_info:
            config.validate()
        assert exc_info.value.config_key == "store_read_timeout_ms"
