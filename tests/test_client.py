"""
Integration tests for ParseableClient using MockParseableServer.

Tests the full flow: cache -> request -> status classification -> decode.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from urllib.parse import unquote

import httpx
import pytest

from parseable_client import (
    ClientClosedError,
    Connection,
    DecodingError,
    FilterQuery,
    InvalidResponseError,
    InvalidURLError,
    MemoryCredentialStore,
    ParseableClient,
    ParseableFilter,
    ServerError,
    UnauthorizedError,
    user_friendly_message,
)
from parseable_client import messages
from parseable_client.client import format_timestamp


class TestStatusClassification:
    """Tests for uniform HTTP status handling."""

    @pytest.mark.asyncio
    async def test_401_is_unauthorized(self, server, make_client):
        """Test bad credentials surface as UnauthorizedError."""
        async with make_client(server, password="wrong") as client:
            with pytest.raises(UnauthorizedError):
                await client.list_streams()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [b"", b"Unauthorized", b'{"error": "token expired"}', b"\xff\xfe"])
    async def test_401_ignores_body(self, server, make_client, body):
        """Test a 401 is never reported as ServerError, whatever the body."""
        server.add_custom_handler(r"/api/v1/about", lambda r: httpx.Response(401, content=body))
        async with make_client(server) as client:
            with pytest.raises(UnauthorizedError):
                await client.get_about()

    @pytest.mark.asyncio
    async def test_server_error_carries_body(self, server, make_client):
        server.add_custom_handler(r"/api/v1/user", lambda r: httpx.Response(500, text="database locked"))
        async with make_client(server) as client:
            with pytest.raises(ServerError) as exc_info:
                await client.list_users()
        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "database locked"

    @pytest.mark.asyncio
    async def test_server_error_undecodable_body(self, server, make_client):
        server.add_custom_handler(r"/api/v1/user", lambda r: httpx.Response(502, content=b"\xff\xfe\xfa"))
        async with make_client(server) as client:
            with pytest.raises(ServerError) as exc_info:
                await client.list_users()
        assert exc_info.value.message == "Unknown error"

    @pytest.mark.asyncio
    async def test_malformed_response_is_invalid_response(self, server, make_client):
        def broken(request):
            raise httpx.RemoteProtocolError("illegal status line", request=request)

        server.add_custom_handler(r"/api/v1/about", broken)
        async with make_client(server) as client:
            with pytest.raises(InvalidResponseError):
                await client.get_about()

    @pytest.mark.asyncio
    async def test_transport_errors_propagate(self, server, make_client):
        """Test connection failures are left for the caller to translate."""
        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        server.add_custom_handler(r"/api/v1/logstream", refuse)
        async with make_client(server) as client:
            with pytest.raises(httpx.ConnectError):
                await client.list_streams()

    @pytest.mark.asyncio
    async def test_resource_timeout_is_timeout(self, server, make_client, test_config):
        """Test a response that never completes hits resource_timeout and reads as a timeout."""
        async def hang(request):
            await asyncio.sleep(10)
            return httpx.Response(200, json=[])

        test_config.resource_timeout = 0.05
        server.add_custom_handler(r"/api/v1/logstream", hang)
        async with make_client(server) as client:
            with pytest.raises(httpx.TimeoutException) as exc_info:
                await client.list_streams()
            assert not client.closed
        assert user_friendly_message(exc_info.value) == messages.TIMED_OUT


class TestHealthCheck:

    @pytest.mark.asyncio
    async def test_healthy(self, server, make_client):
        async with make_client(server) as client:
            await client.check_health()
        assert server.get_calls("/liveness")[0][0] == "HEAD"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [204, 503])
    async def test_non_200_fails(self, server, make_client, status):
        """Test only 200 counts as healthy."""
        server.liveness_status = status
        async with make_client(server) as client:
            with pytest.raises(ServerError) as exc_info:
                await client.check_health()
        assert exc_info.value.status_code == status
        assert exc_info.value.message == "Health check failed"

    @pytest.mark.asyncio
    async def test_unauthorized(self, server, make_client):
        async with make_client(server, password="nope") as client:
            with pytest.raises(UnauthorizedError):
                await client.check_health()


class TestStreams:

    @pytest.mark.asyncio
    async def test_list_streams(self, server, make_client):
        async with make_client(server) as client:
            streams = await client.list_streams()
        assert [s.name for s in streams] == ["app-logs", "audit"]

    @pytest.mark.asyncio
    async def test_schema_stats_info(self, server, make_client):
        async with make_client(server) as client:
            schema = await client.get_stream_schema("app-logs")
            bare_schema = await client.get_stream_schema("audit")
            stats = await client.get_stream_stats("app-logs")
            info = await client.get_stream_info("audit")

        assert schema.field_names == ["level", "p_timestamp"]
        assert bare_schema.field_names == ["actor"]
        assert stats.ingestion.count == 1200
        assert stats.ingestion.size == "1.5 MB"
        assert stats.storage.type == "parquet"
        assert info.time_partition == "event_time"
        assert info.created_at is None

    @pytest.mark.asyncio
    async def test_reserved_characters_in_stream_name(self, server, make_client):
        """Test a stream name with reserved characters is one encoded segment."""
        name = "team/a?b#c&d=e"
        async with make_client(server) as client:
            await client.create_stream(name)

        method, raw_path, _ = server.get_calls()[-1]
        assert method == "PUT"
        prefix = "/api/v1/logstream/"
        assert raw_path.startswith(prefix)
        segment = raw_path[len(prefix):]
        assert "/" not in segment
        assert unquote(segment) == name
        assert name in server.streams

    @pytest.mark.asyncio
    async def test_delete_missing_stream(self, server, make_client):
        async with make_client(server) as client:
            with pytest.raises(ServerError) as exc_info:
                await client.delete_stream("nope")
        assert exc_info.value.status_code == 404


class TestCaching:
    """Tests for cached reads and invalidation on mutation."""

    @pytest.mark.asyncio
    async def test_schema_fetched_once(self, server, make_client):
        async with make_client(server) as client:
            first = await client.get_stream_schema("app-logs")
            second = await client.get_stream_schema("app-logs")
        assert first == second
        assert len(server.get_calls("/app-logs/schema")) == 1

    @pytest.mark.asyncio
    async def test_caller_changes_do_not_reach_cache(self, server, make_client):
        """Test each caller gets its own copy of a cached value."""
        async with make_client(server) as client:
            schema = await client.get_stream_schema("app-logs")
            schema.fields.clear()
            again = await client.get_stream_schema("app-logs")
            again.fields.pop()
            third = await client.get_stream_schema("app-logs")
        assert [f.name for f in third.fields] == ["level", "p_timestamp"]
        assert len(server.get_calls("/app-logs/schema")) == 1

    @pytest.mark.asyncio
    async def test_about_cached(self, server, make_client):
        async with make_client(server) as client:
            await client.get_about()
            about = await client.get_about()
        assert about.version == "v1.6.0"
        assert len(server.get_calls("/about")) == 1

    @pytest.mark.asyncio
    async def test_entries_keyed_by_stream(self, server, make_client):
        async with make_client(server) as client:
            await client.get_stream_stats("app-logs")
            await client.get_stream_stats("audit")
        assert len(server.get_calls("/stats")) == 2

    @pytest.mark.asyncio
    async def test_expiry_refetches(self, server, make_client, clock):
        async with make_client(server) as client:
            await client.get_stream_info("app-logs")
            clock.advance(61)
            await client.get_stream_info("app-logs")
        assert len(server.get_calls("/info")) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mutation", ["create_stream", "delete_stream"])
    async def test_stream_mutation_invalidates_unrelated_entries(self, server, make_client, mutation):
        """Test creating or deleting a stream forces a refetch of other cached schemas."""
        server.add_stream("scratch")
        async with make_client(server) as client:
            await client.get_stream_schema("app-logs")
            server.schemas["app-logs"] = {"fields": [{"name": "changed", "data_type": "Utf8"}]}

            target = "scratch" if mutation == "delete_stream" else "new-stream"
            await getattr(client, mutation)(target)
            schema = await client.get_stream_schema("app-logs")

        assert schema.field_names == ["changed"]
        assert len(server.get_calls("/app-logs/schema")) == 2

    @pytest.mark.asyncio
    async def test_filter_mutations_invalidate(self, server, make_client):
        async with make_client(server) as client:
            await client.get_about()
            saved = await client.create_filter(ParseableFilter(
                filter_name="errors",
                stream_name="app-logs",
                query=FilterQuery(filter_query="SELECT * FROM app-logs WHERE level='error'"),
            ))
            await client.get_about()
            await client.delete_filter(saved.id)
            await client.get_about()
        assert len(server.get_calls("/about")) == 3

    @pytest.mark.asyncio
    async def test_failed_mutation_keeps_cache(self, server, make_client):
        async with make_client(server) as client:
            await client.get_about()
            with pytest.raises(ServerError):
                await client.delete_stream("missing")
            await client.get_about()
        assert len(server.get_calls("/about")) == 1

    @pytest.mark.asyncio
    async def test_explicit_invalidation(self, server, make_client):
        async with make_client(server) as client:
            await client.get_about()
            client.invalidate_cache()
            await client.get_about()
        assert len(server.get_calls("/about")) == 2

    @pytest.mark.asyncio
    async def test_errors_not_cached(self, server, make_client):
        async with make_client(server) as client:
            with pytest.raises(ServerError):
                await client.get_stream_schema("missing")
            server.add_stream("missing", schema=[])
            schema = await client.get_stream_schema("missing")
        assert schema.fields == []


class TestQuery:

    @pytest.mark.asyncio
    async def test_request_body_time_format(self, server, make_client):
        """Test times are sent as ISO-8601 with milliseconds and Z."""
        start = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
        async with make_client(server) as client:
            await client.query("SELECT * FROM logs", start, start + timedelta(hours=1))

        method, _, body = server.get_calls("/api/v1/query")[0]
        assert method == "POST"
        assert json.loads(body) == {
            "query": "SELECT * FROM logs",
            "startTime": "2024-01-01T00:00:00.000Z",
            "endTime": "2024-01-01T01:00:00.000Z",
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"records": [{"a": 1}], "fields": ["a"]},
        [{"a": 1}],
    ])
    async def test_both_response_shapes(self, server, make_client, payload):
        server.query_response = payload
        now = datetime.now(timezone.utc)
        async with make_client(server) as client:
            result = await client.query("SELECT a FROM t", now - timedelta(minutes=5), now)
        assert result.records == [{"a": 1}]

    @pytest.mark.asyncio
    async def test_empty_body(self, server, make_client):
        server.query_response = b""
        now = datetime.now(timezone.utc)
        async with make_client(server) as client:
            result = await client.query("SELECT 1", now, now)
        assert result.records == []

    @pytest.mark.asyncio
    async def test_garbage_body(self, server, make_client):
        server.query_response = b"{bad json"
        now = datetime.now(timezone.utc)
        async with make_client(server) as client:
            with pytest.raises(DecodingError):
                await client.query("SELECT 1", now, now)


class TestFormatTimestamp:

    def test_utc(self):
        value = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
        assert format_timestamp(value) == "2024-01-01T00:00:00.000Z"

    def test_milliseconds_truncated(self):
        value = datetime(2024, 3, 5, 7, 8, 9, 123987, tzinfo=timezone.utc)
        assert format_timestamp(value) == "2024-03-05T07:08:09.123Z"

    def test_offset_converted_to_utc(self):
        value = datetime(2024, 1, 1, 2, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        assert format_timestamp(value) == "2024-01-01T00:00:00.000Z"

    def test_naive_taken_as_utc(self):
        assert format_timestamp(datetime(2024, 1, 1, 12, 30)) == "2024-01-01T12:30:00.000Z"


class TestAlertsNegotiation:

    @pytest.mark.asyncio
    async def test_consolidated_endpoint(self, server, make_client):
        server.alerts = [{"id": "a1", "title": "High CPU"}]
        async with make_client(server) as client:
            config = await client.get_alerts("app-logs")
        assert config.alerts[0].display_name == "High CPU"
        assert server.get_calls("/alert") == server.get_calls("/api/v1/alerts")

    @pytest.mark.asyncio
    async def test_falls_back_on_404(self, server, make_client):
        """Test a 404 from /alerts triggers exactly one legacy call."""
        server.legacy_alerts["app-logs"] = {"version": "v1", "alerts": [{"name": "disk-full"}]}
        async with make_client(server) as client:
            config = await client.get_alerts("app-logs")

        assert config.version == "v1"
        assert config.alerts[0].name == "disk-full"
        assert len(server.get_calls("/api/v1/alerts")) == 1
        assert len(server.get_calls("/api/v1/logstream/app-logs/alert")) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 500])
    async def test_no_fallback_on_other_errors(self, server, make_client, status):
        server.add_custom_handler(r"/api/v1/alerts", lambda r: httpx.Response(status, text="nope"))
        async with make_client(server) as client:
            with pytest.raises((UnauthorizedError, ServerError)):
                await client.get_alerts("app-logs")
        assert server.get_calls("/logstream/app-logs/alert") == []


class TestRetentionUsersFilters:

    @pytest.mark.asyncio
    async def test_retention_list(self, server, make_client):
        async with make_client(server) as client:
            configs = await client.get_retention("app-logs")
        assert configs[0].duration == "30d"

    @pytest.mark.asyncio
    async def test_retention_single_object(self, server, make_client):
        server.retention["audit"] = {"duration": "7d", "action": "delete"}
        async with make_client(server) as client:
            configs = await client.get_retention("audit")
        assert [c.duration for c in configs] == ["7d"]

    @pytest.mark.asyncio
    async def test_retention_empty_body(self, server, make_client):
        server.retention["audit"] = b""
        async with make_client(server) as client:
            assert await client.get_retention("audit") == []

    @pytest.mark.asyncio
    async def test_list_users(self, server, make_client):
        server.users = [{"id": "admin", "method": "native"}, "reader"]
        async with make_client(server) as client:
            users = await client.list_users()
        assert [u.id for u in users] == ["admin", "reader"]

    @pytest.mark.asyncio
    async def test_list_users_empty_body_is_error(self, server, make_client):
        """Test an empty body is only tolerated where documented."""
        server.users = b""
        async with make_client(server) as client:
            with pytest.raises(DecodingError):
                await client.list_users()

    @pytest.mark.asyncio
    async def test_filters_lifecycle(self, server, make_client):
        async with make_client(server) as client:
            assert await client.list_filters() == []
            saved = await client.create_filter(ParseableFilter(
                filter_name="errors",
                stream_name="app-logs",
                query=FilterQuery(filter_query="SELECT * FROM app-logs"),
            ))
            listed = await client.list_filters()
            await client.delete_filter(saved.id)
            remaining = await client.list_filters()

        assert saved.filter_id == "f1"
        assert [f.filter_name for f in listed] == ["errors"]
        assert remaining == []
        _, _, body = server.get_calls("/api/v1/filters")[1]
        assert json.loads(body)["query"] == {"filter_type": "sql", "filter_query": "SELECT * FROM app-logs"}

    @pytest.mark.asyncio
    async def test_list_filters_empty_body(self, server, make_client):
        server.add_custom_handler(r"/api/v1/filters", lambda r: httpx.Response(200, content=b""))
        async with make_client(server) as client:
            assert await client.list_filters() == []

    @pytest.mark.asyncio
    async def test_list_filters_whitespace_body_is_error(self, server, make_client):
        """Test only a truly empty body means no saved filters."""
        server.add_custom_handler(r"/api/v1/filters", lambda r: httpx.Response(200, content=b" \n"))
        async with make_client(server) as client:
            with pytest.raises(DecodingError):
                await client.list_filters()


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_parallel_reads(self, server, make_client):
        """Test schema and stats for several streams can be fetched together."""
        async with make_client(server) as client:
            results = await asyncio.gather(
                client.get_stream_schema("app-logs"),
                client.get_stream_stats("app-logs"),
                client.get_stream_schema("audit"),
                client.get_stream_stats("audit"),
            )
        assert results[0].field_names == ["level", "p_timestamp"]
        assert results[3].stream == "audit"
        assert len(client.cache) == 4

    @pytest.mark.asyncio
    async def test_requests_overlap(self, server, make_client):
        """Test in-flight requests are not serialized."""
        both_started = asyncio.Event()
        started = 0

        async def slow(request):
            nonlocal started
            started += 1
            if started == 2:
                both_started.set()
            await asyncio.wait_for(both_started.wait(), timeout=5)
            return httpx.Response(200, json={"version": "v1"})

        server.add_custom_handler(r"/api/v1/about", slow)
        async with make_client(server) as client:
            # Two uncached reads racing on the same key both go to the server
            await asyncio.gather(client.get_about(), client.get_about())
        assert started == 2


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_close_waits_for_in_flight(self, server, make_client):
        """Test closing lets a running query finish and refuses new requests."""
        entered = asyncio.Event()
        release = asyncio.Event()

        async def slow_query(request):
            entered.set()
            await release.wait()
            return httpx.Response(200, json=[{"n": 1}])

        server.add_custom_handler(r"/api/v1/query", slow_query)
        client = make_client(server)
        now = datetime.now(timezone.utc)

        query_task = asyncio.create_task(client.query("SELECT 1", now, now))
        await entered.wait()
        close_task = asyncio.create_task(client.aclose())
        await asyncio.sleep(0)

        assert client.closed
        with pytest.raises(ClientClosedError):
            await client.list_streams()
        assert not close_task.done()

        release.set()
        result = await query_task
        await close_task
        assert result.records == [{"n": 1}]

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, server, make_client):
        client = make_client(server)
        await client.aclose()
        await client.aclose()
        with pytest.raises(ClientClosedError):
            await client.get_about()


class TestFromConnection:

    @pytest.mark.asyncio
    async def test_resolves_secret_from_store(self, server):
        conn = Connection(name="local", url="parseable.test:8000/", username="admin")
        store = MemoryCredentialStore({conn.id: "admin"})

        client = ParseableClient.from_connection(conn, store, transport=server.get_transport())
        async with client:
            await client.check_health()
        assert client.base_url == "https://parseable.test:8000"
        assert client.username == "admin"

    def test_invalid_url(self):
        conn = Connection(name="broken", url="   ", username="admin")
        with pytest.raises(InvalidURLError):
            ParseableClient.from_connection(conn, MemoryCredentialStore())
