"""Async client for the Parseable log analytics HTTP API."""

from .cache import CACHE_TTL_SECONDS, ResponseCache, cache_key
from .client import ParseableClient, format_timestamp
from .config import ClientConfig
from .connection import Connection
from .credentials import CredentialStore, MemoryCredentialStore
from .errors import (
    ClientClosedError,
    DecodingError,
    InvalidResponseError,
    InvalidURLError,
    NotConnectedError,
    ParseableError,
    ServerError,
    UnauthorizedError,
)
from .messages import user_friendly_message
from .models import (
    AlertConfig,
    AlertRule,
    FilterQuery,
    LogStream,
    ParseableFilter,
    QueryResult,
    RetentionConfig,
    SchemaField,
    ServerAbout,
    StreamInfo,
    StreamSchema,
    StreamStats,
    UserInfo,
)
from .negotiation import EndpointNegotiator
from .request import RequestBuilder, encode_path_segment

__all__ = [
    "CACHE_TTL_SECONDS",
    "AlertConfig",
    "AlertRule",
    "ClientClosedError",
    "ClientConfig",
    "Connection",
    "CredentialStore",
    "DecodingError",
    "EndpointNegotiator",
    "FilterQuery",
    "InvalidResponseError",
    "InvalidURLError",
    "LogStream",
    "MemoryCredentialStore",
    "NotConnectedError",
    "ParseableClient",
    "ParseableError",
    "ParseableFilter",
    "QueryResult",
    "RequestBuilder",
    "ResponseCache",
    "RetentionConfig",
    "SchemaField",
    "ServerAbout",
    "ServerError",
    "StreamInfo",
    "StreamSchema",
    "StreamStats",
    "UnauthorizedError",
    "UserInfo",
    "cache_key",
    "encode_path_segment",
    "format_timestamp",
    "user_friendly_message",
]
