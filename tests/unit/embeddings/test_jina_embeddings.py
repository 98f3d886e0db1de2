"""
Unit tests for memorycache/embeddings/jina_client.py

Tests request shaping and error handling against a mocked HTTP transport.
"""

import httpx
import pytest

from memorycache.embeddings.jina_client import JinaEmbeddingService
from memorycache.errors import UpstreamError
from tests.fixtures import json_body


def jina_response(*values: float, dimension: int = 1024, reverse: bool = False) -> httpx.Response:
    data = [
        {"object": "embedding", "index": i, "embedding": [v] * dimension}
        for i, v in enumerate(values)
    ]
    if reverse:
        data.reverse()
    return httpx.Response(200, json={"model": "jina-embeddings-v3", "data": data})


class TestJinaEmbeddingService:
    """Tests for JinaEmbeddingService."""

    def test_properties(self):
        service = JinaEmbeddingService(api_key="k")

        assert service.provider_name == "jina"
        assert service.model_name == "jina-embeddings-v3"
        assert service.dimension == 1024

    @pytest.mark.asyncio
    async def test_embed_sends_array_input(self, http_recorder):
        make_client, requests = http_recorder
        service = JinaEmbeddingService(api_key="jina-key", client=make_client(lambda r: jina_response(0.5)))

        embedding = await service.embed("hello")

        assert len(embedding) == 1024
        request = requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://api.jina.ai/v1/embeddings"
        assert request.headers["Authorization"] == "Bearer jina-key"
        assert json_body(request) == {
            "model": "jina-embeddings-v3",
            "input": ["hello"],
            "normalized": True,
            "embedding_type": "float",
        }

    @pytest.mark.asyncio
    async def test_embed_batch_sorts_by_index(self, http_recorder):
        make_client, requests = http_recorder
        service = JinaEmbeddingService(
            api_key="k",
            client=make_client(lambda r: jina_response(0.1, 0.2, 0.3, reverse=True)),
        )

        embeddings = await service.embed_batch(["a", "b", "c"])

        assert [e[0] for e in embeddings] == [0.1, 0.2, 0.3]
        assert json_body(requests[0])["input"] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_embed_many_returns_first(self, http_recorder):
        make_client, requests = http_recorder
        service = JinaEmbeddingService(api_key="k", client=make_client(lambda r: jina_response(0.1, 0.2)))

        embedding = await service.embed_many(["a", "b"])

        assert embedding[0] == 0.1
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_embed_many_empty_raises(self):
        with pytest.raises(ValueError):
            await JinaEmbeddingService(api_key="k").embed_many([])

    @pytest.mark.asyncio
    async def test_embed_batch_empty_makes_no_request(self, http_recorder):
        make_client, requests = http_recorder
        service = JinaEmbeddingService(api_key="k", client=make_client(lambda r: jina_response(0.1)))

        assert await service.embed_batch([]) == []
        assert requests == []

    @pytest.mark.asyncio
    async def test_http_error_becomes_upstream_error(self, http_recorder):
        make_client, _ = http_recorder
        service = JinaEmbeddingService(
            api_key="k",
            client=make_client(lambda r: httpx.Response(401, json={"detail": "invalid key"})),
        )

        with pytest.raises(UpstreamError, match="status 401") as exc_info:
            await service.embed("hello")
        assert exc_info.value.adapter == "Jina embeddings"

    @pytest.mark.asyncio
    async def test_empty_data_is_upstream_error(self, http_recorder):
        make_client, _ = http_recorder
        service = JinaEmbeddingService(api_key="k", client=make_client(lambda r: httpx.Response(200, json={"data": []})))

        with pytest.raises(UpstreamError, match="no embeddings"):
            await service.embed("hello")

    @pytest.mark.asyncio
    async def test_timeout_becomes_upstream_error(self, http_recorder):
        make_client, _ = http_recorder

        def timeout(request):
            raise httpx.ReadTimeout("slow", request=request)

        service = JinaEmbeddingService(api_key="k", client=make_client(timeout))

        with pytest.raises(UpstreamError, match="timed out"):
            await service.embed("hello")

    def test_info(self):
        info = JinaEmbeddingService(api_key="k").info()

        assert info["provider"] == "jina"
        assert info["api_url"] == "https://api.jina.ai/v1"
        assert "multilingual" in info["features"]

    @pytest.mark.asyncio
    async def test_close_leaves_injected_client_open(self, http_recorder):
        make_client, _ = http_recorder
        client = make_client(lambda r: jina_response(0.1))
        service = JinaEmbeddingService(api_key="k", client=client)

        await service.close()

        assert not client.is_closed
        await client.aclose()
