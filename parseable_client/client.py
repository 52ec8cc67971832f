"""Main client class."""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Mapping, TypeVar

import httpx

from .cache import ResponseCache, cache_key
from .config import ClientConfig
from .connection import Connection
from .credentials import CredentialStore
from .decoding import (
    decode_list,
    decode_model,
    decode_query_result,
    decode_retention,
)
from .errors import (
    ClientClosedError,
    InvalidResponseError,
    InvalidURLError,
    ServerError,
    UnauthorizedError,
)
from .models import (
    AlertConfig,
    LogStream,
    ParseableFilter,
    QueryResult,
    RetentionConfig,
    ServerAbout,
    StreamInfo,
    StreamSchema,
    StreamStats,
    UserInfo,
)
from .negotiation import EndpointNegotiator
from .request import RequestBuilder, encode_path_segment

logger = logging.getLogger(__name__)

T = TypeVar("T")

API_PREFIX = "/api/v1"


def format_timestamp(value: datetime) -> str:
    """
    Format a time for the query API: ``2024-01-01T00:00:00.000Z``.

    Aware datetimes are converted to UTC; naive ones are taken as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class ParseableClient:
    """
    Async client for one Parseable server.

    Holds a pooled transport and a response cache; nothing else is shared
    between operations, so independent calls may run concurrently.

    Usage:
        async with ParseableClient.from_connection(conn, store) as client:
            streams = await client.list_streams()
            result = await client.query(
                "SELECT * FROM app", start_time=start, end_time=end,
            )
            print(result.records)
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        config: ClientConfig | None = None,
        cache: ResponseCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Create a client.

        Args:
            base_url: Absolute server URL, e.g. "https://logs.example.com:8000"
            username: Account name for Basic authentication
            password: Account secret
            config: Transport settings (defaults from environment)
            cache: Response cache (a private one is created if omitted)
            transport: Optional httpx transport, mainly for tests
        """
        self.config = config or ClientConfig()
        self.cache = cache if cache is not None else ResponseCache()
        self._builder = RequestBuilder(
            base_url,
            username,
            password,
            timeout=httpx.Timeout(self.config.timeout),
        )
        self._http = httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.timeout),
            limits=httpx.Limits(
                max_connections=self.config.max_connections,
                max_keepalive_connections=self.config.max_keepalive_connections,
            ),
            verify=self.config.verify_ssl,
            headers={"User-Agent": self.config.user_agent},
            transport=transport,
        )

        self._closing = False
        self._in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @classmethod
    def from_connection(
        cls,
        connection: Connection,
        store: CredentialStore,
        **kwargs: Any,
    ) -> ParseableClient:
        """
        Create a client for a saved connection.

        Raises:
            InvalidURLError: If the connection's URL is unusable
        """
        base_url = connection.base_url
        if base_url is None:
            raise InvalidURLError(f"Invalid server URL: {connection.url!r}")
        return cls(base_url, connection.username, connection.password(store), **kwargs)

    @property
    def base_url(self) -> str:
        return self._builder.base_url

    @property
    def username(self) -> str:
        return self._builder.username

    @property
    def closed(self) -> bool:
        return self._closing

    async def __aenter__(self) -> ParseableClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """
        Shut the client down.

        New requests are refused immediately; requests already in flight
        (e.g. a long-running query) are allowed to finish before the
        connection pool is released.
        """
        if self._closing:
            return
        self._closing = True
        if self._in_flight:
            logger.debug(f"Waiting for {self._in_flight} in-flight request(s) before closing")
        await self._idle.wait()
        await self._http.aclose()

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def _send(
        self,
        method: str,
        path: str,
        body: bytes | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> httpx.Response:
        """Send one request, bounding the whole exchange by resource_timeout."""
        if self._closing:
            raise ClientClosedError()

        request = self._builder.build(method, path, body=body, params=params)
        self._in_flight += 1
        self._idle.clear()
        try:
            logger.debug(f"{method} {request.url.path}")
            response = await asyncio.wait_for(
                self._http.send(request),
                timeout=self.config.resource_timeout,
            )
        except httpx.RemoteProtocolError as e:
            raise InvalidResponseError(f"Invalid response from server: {e}") from e
        except asyncio.TimeoutError as e:
            raise httpx.TimeoutException(
                f"No complete response within {self.config.resource_timeout}s",
                request=request,
            ) from e
        finally:
            self._in_flight -= 1
            if not self._in_flight:
                self._idle.set()

        logger.debug(f"{method} {request.url.path} -> {response.status_code}")
        return response

    async def _request(
        self,
        method: str,
        path: str,
        body: bytes | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> bytes:
        """
        Send a request and classify the response status.

        Returns:
            The raw body of a 2xx response

        Raises:
            UnauthorizedError: On 401, whatever the body says
            ServerError: On any other non-2xx status
        """
        response = await self._send(method, path, body=body, params=params)
        status = response.status_code

        if status == 401:
            raise UnauthorizedError()
        if not 200 <= status < 300:
            try:
                message = response.content.decode("utf-8")
            except UnicodeDecodeError:
                message = "Unknown error"
            raise ServerError(status, message)
        return response.content

    async def _cached(self, key: str, fetch: Callable[[], Awaitable[T]]) -> T:
        """Serve from cache or fetch and store; callers always get their own copy."""
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit: {key}")
            return copy.deepcopy(cached)
        result = await fetch()
        self.cache.set(key, result)
        return copy.deepcopy(result)

    def _invalidate(self, reason: str) -> None:
        self.cache.invalidate_all()
        logger.info(f"Response cache cleared after {reason}")

    # -------------------------------------------------------------------------
    # Health / system
    # -------------------------------------------------------------------------

    async def check_health(self) -> None:
        """
        Check server liveness.

        Only HTTP 200 counts as healthy.

        Raises:
            UnauthorizedError: On 401
            ServerError: On any other non-200 status
        """
        response = await self._send("HEAD", f"{API_PREFIX}/liveness")
        if response.status_code == 401:
            raise UnauthorizedError()
        if response.status_code != 200:
            raise ServerError(response.status_code, "Health check failed")

    async def get_about(self) -> ServerAbout:
        """Get server version, mode and storage (cached)."""
        async def fetch() -> ServerAbout:
            data = await self._request("GET", f"{API_PREFIX}/about")
            return decode_model(data, ServerAbout.from_dict)

        return await self._cached(cache_key("about"), fetch)

    # -------------------------------------------------------------------------
    # Log streams
    # -------------------------------------------------------------------------

    async def list_streams(self) -> list[LogStream]:
        data = await self._request("GET", f"{API_PREFIX}/logstream")
        return decode_list(data, LogStream.from_dict, "streams")

    async def create_stream(self, name: str) -> None:
        path = f"{API_PREFIX}/logstream/{encode_path_segment(name)}"
        await self._request("PUT", path)
        self._invalidate(f"creating stream {name!r}")

    async def delete_stream(self, name: str) -> None:
        path = f"{API_PREFIX}/logstream/{encode_path_segment(name)}"
        await self._request("DELETE", path)
        self._invalidate(f"deleting stream {name!r}")

    async def get_stream_schema(self, stream: str) -> StreamSchema:
        """Get field names and types for a stream (cached)."""
        async def fetch() -> StreamSchema:
            path = f"{API_PREFIX}/logstream/{encode_path_segment(stream)}/schema"
            return decode_model(await self._request("GET", path), StreamSchema.from_dict)

        return await self._cached(cache_key("schema", stream), fetch)

    async def get_stream_stats(self, stream: str) -> StreamStats:
        """Get ingestion and storage statistics for a stream (cached)."""
        async def fetch() -> StreamStats:
            path = f"{API_PREFIX}/logstream/{encode_path_segment(stream)}/stats"
            return decode_model(await self._request("GET", path), StreamStats.from_dict)

        return await self._cached(cache_key("stats", stream), fetch)

    async def get_stream_info(self, stream: str) -> StreamInfo:
        """Get creation time and partitioning for a stream (cached)."""
        async def fetch() -> StreamInfo:
            path = f"{API_PREFIX}/logstream/{encode_path_segment(stream)}/info"
            return decode_model(await self._request("GET", path), StreamInfo.from_dict)

        return await self._cached(cache_key("info", stream), fetch)

    # -------------------------------------------------------------------------
    # Query
    # -------------------------------------------------------------------------

    async def query(self, sql: str, start_time: datetime, end_time: datetime) -> QueryResult:
        """
        Run a SQL query over a time range.

        Args:
            sql: Query text, e.g. "SELECT * FROM app-logs"
            start_time: Range start
            end_time: Range end

        Returns:
            QueryResult with the records in server order
        """
        body = json.dumps({
            "query": sql,
            "startTime": format_timestamp(start_time),
            "endTime": format_timestamp(end_time),
        }).encode("utf-8")
        data = await self._request("POST", f"{API_PREFIX}/query", body=body)
        return decode_query_result(data)

    # -------------------------------------------------------------------------
    # Alerts / retention / users
    # -------------------------------------------------------------------------

    async def get_alerts(self, stream: str) -> AlertConfig:
        """
        Get alert rules.

        Newer servers expose a consolidated /alerts endpoint; older ones
        only have the per-stream endpoint, which is used when the former
        answers 404.
        """
        async def consolidated() -> AlertConfig:
            data = await self._request("GET", f"{API_PREFIX}/alerts")
            return decode_model(data, AlertConfig.from_dict)

        async def per_stream() -> AlertConfig:
            path = f"{API_PREFIX}/logstream/{encode_path_segment(stream)}/alert"
            return decode_model(await self._request("GET", path), AlertConfig.from_dict)

        negotiator = EndpointNegotiator(consolidated, per_stream, name="alerts endpoint")
        return await negotiator.run()

    async def get_retention(self, stream: str) -> list[RetentionConfig]:
        path = f"{API_PREFIX}/logstream/{encode_path_segment(stream)}/retention"
        return decode_retention(await self._request("GET", path))

    async def list_users(self) -> list[UserInfo]:
        data = await self._request("GET", f"{API_PREFIX}/user")
        return decode_list(data, UserInfo.from_dict, "users")

    # -------------------------------------------------------------------------
    # Saved filters
    # -------------------------------------------------------------------------

    async def list_filters(self) -> list[ParseableFilter]:
        data = await self._request("GET", f"{API_PREFIX}/filters")
        # No body when nothing has been saved yet
        if not data:
            return []
        return decode_list(data, ParseableFilter.from_dict, "filters")

    async def create_filter(self, saved_filter: ParseableFilter) -> ParseableFilter:
        body = json.dumps(saved_filter.to_dict()).encode("utf-8")
        data = await self._request("POST", f"{API_PREFIX}/filters", body=body)
        self._invalidate(f"creating filter {saved_filter.filter_name!r}")
        return decode_model(data, ParseableFilter.from_dict)

    async def delete_filter(self, filter_id: str) -> None:
        path = f"{API_PREFIX}/filters/{encode_path_segment(filter_id)}"
        await self._request("DELETE", path)
        self._invalidate(f"deleting filter {filter_id!r}")

    def invalidate_cache(self) -> None:
        """Drop every cached response, e.g. after the connection changed."""
        self._invalidate("explicit request")
