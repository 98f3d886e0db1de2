"""
Unit tests for memorycache/stores/upstash_redis.py

Tests command encoding and error translation against a mocked HTTP transport.
"""

import httpx
import pytest

from memorycache.errors import UpstreamError
from memorycache.stores import SessionStore, UpstashRedisStore
from tests.fixtures import json_body, make_session

REDIS_URL = "https://redis.example.upstash.io"


def result(value) -> httpx.Response:
    return httpx.Response(200, json={"result": value})


class TestUpstashRedisStore:
    """Tests for UpstashRedisStore."""

    @pytest.mark.asyncio
    async def test_set_sends_command_array_with_expiry(self, http_recorder):
        make_client, requests = http_recorder
        store = UpstashRedisStore(REDIS_URL, "redis-token", client=make_client(lambda r: result("OK")))

        await store.set("session:s1", "{}", 86400)

        request = requests[0]
        assert request.method == "POST"
        assert str(request.url) == f"{REDIS_URL}/"
        assert request.headers["Authorization"] == "Bearer redis-token"
        assert json_body(request) == ["SET", "session:s1", "{}", "EX", 86400]

    @pytest.mark.asyncio
    async def test_get_returns_none_for_missing_key(self, http_recorder):
        make_client, _ = http_recorder
        store = UpstashRedisStore(REDIS_URL, "t", client=make_client(lambda r: result(None)))

        assert await store.get("session:missing") is None

    @pytest.mark.asyncio
    async def test_get_rejects_non_string(self, http_recorder):
        make_client, _ = http_recorder
        store = UpstashRedisStore(REDIS_URL, "t", client=make_client(lambda r: result(42)))

        with pytest.raises(UpstreamError, match="invalid value format"):
            await store.get("k")

    @pytest.mark.asyncio
    async def test_counts_and_members(self, http_recorder):
        make_client, requests = http_recorder
        responses = iter([result(1), result(1), result(1), result(["s1", "s2"])])
        store = UpstashRedisStore(REDIS_URL, "t", client=make_client(lambda r: next(responses)))

        assert await store.delete("k") == 1
        assert await store.sadd("user_sessions:alice", "s1") == 1
        assert await store.expire("user_sessions:alice", 60) is True
        assert await store.smembers("user_sessions:alice") == {"s1", "s2"}
        assert [json_body(r)[0] for r in requests] == ["DEL", "SADD", "EXPIRE", "SMEMBERS"]

    @pytest.mark.asyncio
    async def test_redis_error_becomes_upstream_error(self, http_recorder):
        make_client, _ = http_recorder
        store = UpstashRedisStore(
            REDIS_URL,
            "t",
            client=make_client(lambda r: httpx.Response(200, json={"error": "WRONGTYPE"})),
        )

        with pytest.raises(UpstreamError, match="Redis error: WRONGTYPE") as exc_info:
            await store.get("k")
        assert exc_info.value.adapter == "session store"
        assert exc_info.value.operation == "GET"

    @pytest.mark.asyncio
    async def test_http_failure_becomes_upstream_error(self, http_recorder):
        make_client, _ = http_recorder
        store = UpstashRedisStore(REDIS_URL, "t", client=make_client(lambda r: httpx.Response(500, text="boom")))

        with pytest.raises(UpstreamError, match="status 500"):
            await store.set("k", "v", 10)

    @pytest.mark.asyncio
    async def test_connection_error_becomes_upstream_error(self, http_recorder):
        make_client, _ = http_recorder

        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        store = UpstashRedisStore(REDIS_URL, "t", client=make_client(refuse))

        with pytest.raises(UpstreamError, match="request failed"):
            await store.get("k")

    @pytest.mark.asyncio
    async def test_session_store_over_redis(self, http_recorder):
        make_client, requests = http_recorder
        replies = {"SET": "OK", "SADD": 1, "EXPIRE": 1}
        store = UpstashRedisStore(
            REDIS_URL,
            "t",
            client=make_client(lambda r: result(replies[json_body(r)[0]])),
        )
        sessions = SessionStore(store, ttl_seconds=86400)

        await sessions.save(make_session())

        commands = [json_body(r) for r in requests]
        assert commands[0][:2] == ["SET", "session:session-1"]
        assert commands[0][3:] == ["EX", 86400]
        assert commands[1] == ["SADD", "user_sessions:alice", "session-1"]
        assert commands[2] == ["EXPIRE", "user_sessions:alice", 86400]

    @pytest.mark.asyncio
    async def test_corrupt_session_is_upstream_error(self, http_recorder):
        make_client, _ = http_recorder
        store = UpstashRedisStore(REDIS_URL, "t", client=make_client(lambda r: result("not json")))

        with pytest.raises(UpstreamError, match="decode session"):
            await SessionStore(store).get("s1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("command, reply", [("DEL", "OK"), ("SADD", None), ("EXPIRE", "1"), ("EXPIRE", True)])
    async def test_non_integer_reply_is_upstream_error(self, http_recorder, command, reply):
        make_client, _ = http_recorder
        store = UpstashRedisStore(REDIS_URL, "t", client=make_client(lambda r: result(reply)))
        calls = {
            "DEL": lambda: store.delete("k"),
            "SADD": lambda: store.sadd("user_sessions:alice", "s1"),
            "EXPIRE": lambda: store.expire("user_sessions:alice", 60),
        }

        with pytest.raises(UpstreamError, match="expected integer reply") as exc_info:
            await calls[command]()
        assert exc_info.value.adapter == "session store"
        assert exc_info.value.operation == command

    @pytest.mark.asyncio
    async def test_expire_on_missing_key(self, http_recorder):
        make_client, _ = http_recorder
        store = UpstashRedisStore(REDIS_URL, "t", client=make_client(lambda r: result(0)))

        assert await store.expire("user_sessions:ghost", 60) is False
