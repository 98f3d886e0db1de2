"""
Shared pytest fixtures for MemoryCacheAI tests.

This module provides:
- A controllable clock
- In-process session and vector backends
- A deterministic embedding service
- A mocked task dispatcher
- A MemoryManager wired to all of the above
"""

from typing import Callable
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from memorycache.memory_manager import MemoryManager
from memorycache.stores import (
    InMemoryKeyValueStore,
    InMemoryVectorIndex,
    MemoryVectorStore,
    SessionStore,
)
from memorycache.tasks import TaskDispatcher
from tests.fixtures import FakeClock, FakeEmbeddingService, make_session


# =============================================================================
# Core Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    """Provide a clock that only moves when told to."""
    return FakeClock()


@pytest.fixture
def fake_embeddings() -> FakeEmbeddingService:
    """Provide deterministic keyword-concept embeddings."""
    return FakeEmbeddingService()


@pytest.fixture
def kv_backend(clock) -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(clock=clock.time)


@pytest.fixture
def vector_index() -> InMemoryVectorIndex:
    return InMemoryVectorIndex()


@pytest.fixture
def session_store(kv_backend) -> SessionStore:
    return SessionStore(kv_backend)


@pytest.fixture
def vector_store(vector_index) -> MemoryVectorStore:
    return MemoryVectorStore(vector_index)


@pytest.fixture
def mock_dispatcher():
    """Mock TaskDispatcher returning fixed ids."""
    dispatcher = MagicMock(spec=TaskDispatcher)
    dispatcher.publish = AsyncMock(return_value="msg_123")
    dispatcher.schedule = AsyncMock(return_value="scd_123")
    dispatcher.cancel = AsyncMock(return_value=None)
    dispatcher.list_schedules = AsyncMock(return_value=[{"scheduleId": "scd_123"}])
    dispatcher.close = AsyncMock(return_value=None)
    return dispatcher


@pytest.fixture
def manager(session_store, vector_store, fake_embeddings, mock_dispatcher, clock) -> MemoryManager:
    """MemoryManager over in-process backends."""
    return MemoryManager(
        session_store=session_store,
        vector_store=vector_store,
        embedding_service=fake_embeddings,
        dispatcher=mock_dispatcher,
        clock=clock,
        scan_page_size=2,
        owner_cleanup_batch=2,
    )


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def sample_session():
    """Provide a session with one message."""
    return make_session()


@pytest.fixture
def sample_config_yaml(tmp_path):
    """Create a sample config.yaml file."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text("""
app:
  backend: memory

session_store:
  ttl_seconds: 3600

vector_store:
  scan_page_size: 50

tasks:
  retries: 5
  cleanup_cron: "30 3 * * *"

embedding:
  provider: openai
  openai_model: text-embedding-3-large
  dimensions: 1024

logging:
  level: DEBUG
""")
    return config_path


# =============================================================================
# Mock External Services
# =============================================================================


@pytest.fixture
def mock_openai():
    """Mock AsyncOpenAI for OpenAI embedding tests."""
    # Patch at the module where it's imported, not where it's defined
    with patch("memorycache.embeddings.openai_client.AsyncOpenAI") as mock_client_class:
        mock_client = MagicMock()

        mock_item = MagicMock()
        mock_item.index = 0
        mock_item.embedding = [0.1] * 1536

        mock_response = MagicMock()
        mock_response.data = [mock_item]

        mock_client.embeddings.create = AsyncMock(return_value=mock_response)
        mock_client.close = AsyncMock()
        mock_client_class.return_value = mock_client
        yield mock_client_class


@pytest.fixture
def http_recorder():
    """
    Build an httpx.AsyncClient whose requests are answered by a handler.

    Returns (make_client, requests): call make_client(handler) to get the
    client; every request it sends is appended to requests.
    """
    requests: list[httpx.Request] = []

    def make_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        def record(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        return httpx.AsyncClient(transport=httpx.MockTransport(record))

    return make_client, requests


# =============================================================================
# Config Fixtures
# =============================================================================


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set mock environment variables for testing."""
    monkeypatch.setenv("UPSTASH_REDIS_URL", "https://redis.example.upstash.io")
    monkeypatch.setenv("UPSTASH_REDIS_TOKEN", "redis-token")
    monkeypatch.setenv("UPSTASH_VECTOR_URL", "https://vector.example.upstash.io")
    monkeypatch.setenv("UPSTASH_VECTOR_TOKEN", "vector-token")
    monkeypatch.setenv("QSTASH_TOKEN", "qstash-token")
    monkeypatch.setenv("JINA_API_KEY", "test-jina-key")
    monkeypatch.setenv("OPENAI_API_KEY", "test-openai-key")
