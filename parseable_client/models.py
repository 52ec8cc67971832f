"""Response models.

Servers of different versions add, drop and retype optional fields, so each
model's ``from_dict`` only insists on the fields it cannot work without.
Optional fields that are missing or carry an unexpected type come back as
None.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from typing import Any

from .errors import DecodingError

_BYTE_UNITS = ("KB", "MB", "GB", "TB", "PB")


def _opt(data: dict[str, Any], key: str, kind: type) -> Any:
    """Return data[key] if it has the expected type, else None."""
    value = data.get(key)
    if isinstance(value, bool) and kind is not bool:
        return None
    if isinstance(value, kind):
        return value
    return None


def _opt_str_list(data: dict[str, Any], key: str) -> list[str] | None:
    value = data.get(key)
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return value
    return None


def _require_str(data: dict[str, Any], key: str, model: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise DecodingError(f"{model}: missing or invalid '{key}'")
    return value


def _require_object(value: Any, model: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise DecodingError(f"{model}: expected an object, got {type(value).__name__}")
    return value


def format_byte_count(count: int) -> str:
    """Human-readable size using decimal units, e.g. 1536 -> "1.5 KB"."""
    if abs(count) < 1000:
        return f"{count} bytes"
    value = float(count)
    for unit in _BYTE_UNITS:
        value /= 1000
        if abs(value) < 1000 or unit == _BYTE_UNITS[-1]:
            text = f"{value:.1f}".rstrip("0").rstrip(".")
            return f"{text} {unit}"
    raise AssertionError("unreachable")


def _size(data: dict[str, Any], key: str) -> str | None:
    """Sizes arrive as preformatted strings or raw byte counts."""
    value = data.get(key)
    if isinstance(value, str):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return format_byte_count(value)
    return None


# =============================================================================
# Server
# =============================================================================


@dataclass
class StoreInfo:
    type: str | None = None
    path: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StoreInfo:
        return cls(type=_opt(data, "type", str), path=_opt(data, "path", str))


@dataclass
class ServerAbout:
    """Server version, deployment mode and storage backend."""
    version: str | None = None
    ui_version: str | None = None
    commit: str | None = None
    deployment_id: str | None = None
    mode: str | None = None
    staging: str | None = None
    store: StoreInfo | None = None
    license: str | None = None
    grpc_port: int | None = None
    update_available: bool | None = None
    latest_version: str | None = None
    llm_active: bool | None = None
    oidc_active: bool | None = None

    @classmethod
    def from_dict(cls, data: Any) -> ServerAbout:
        data = _require_object(data, "ServerAbout")
        store = data.get("store")
        return cls(
            version=_opt(data, "version", str),
            ui_version=_opt(data, "ui_version", str),
            commit=_opt(data, "commit", str),
            deployment_id=_opt(data, "deployment_id", str),
            mode=_opt(data, "mode", str),
            staging=_opt(data, "staging", str),
            store=StoreInfo.from_dict(store) if isinstance(store, dict) else None,
            license=_opt(data, "license", str),
            grpc_port=_opt(data, "grpc_port", int),
            update_available=_opt(data, "updateAvailable", bool),
            latest_version=_opt(data, "latestVersion", str),
            llm_active=_opt(data, "llmActive", bool),
            oidc_active=_opt(data, "oidcActive", bool),
        )


@dataclass
class UserInfo:
    id: str
    method: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> UserInfo:
        # Older servers list users as bare strings
        if isinstance(data, str):
            return cls(id=data)
        data = _require_object(data, "UserInfo")
        return cls(id=_require_str(data, "id", "UserInfo"), method=_opt(data, "method", str))


# =============================================================================
# Streams
# =============================================================================


@dataclass(frozen=True)
class LogStream:
    name: str

    @classmethod
    def from_dict(cls, data: Any) -> LogStream:
        if isinstance(data, str):
            return cls(name=data)
        data = _require_object(data, "LogStream")
        return cls(name=_require_str(data, "name", "LogStream"))


@dataclass(frozen=True)
class SchemaField:
    name: str
    data_type: str

    @classmethod
    def from_dict(cls, data: Any) -> SchemaField:
        data = _require_object(data, "SchemaField")
        name = _require_str(data, "name", "SchemaField")
        # data_type is a string for scalars and an object for nested types,
        # e.g. {"List": "Utf8"}
        raw_type = data.get("data_type")
        if isinstance(raw_type, str):
            data_type = raw_type
        elif raw_type is not None:
            data_type = json.dumps(raw_type, separators=(",", ":"), sort_keys=True)
        else:
            data_type = "Unknown"
        return cls(name=name, data_type=data_type)


@dataclass
class StreamSchema:
    fields: list[SchemaField] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> StreamSchema:
        if isinstance(data, dict):
            data = data.get("fields")
        if not isinstance(data, list):
            raise DecodingError("StreamSchema: expected 'fields' list")
        return cls(fields=[SchemaField.from_dict(f) for f in data])

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]


@dataclass
class IngestionStats:
    count: int | None = None
    size: str | None = None
    format: str | None = None
    lifetime_count: int | None = None
    lifetime_size: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IngestionStats:
        return cls(
            count=_opt(data, "count", int),
            size=_size(data, "size"),
            format=_opt(data, "format", str),
            lifetime_count=_opt(data, "lifetime_count", int),
            lifetime_size=_size(data, "lifetime_size"),
        )


@dataclass
class StorageStats:
    size: str | None = None
    type: str | None = None
    lifetime_size: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StorageStats:
        return cls(
            size=_size(data, "size"),
            type=_opt(data, "type", str),
            lifetime_size=_size(data, "lifetime_size"),
        )


@dataclass
class StreamStats:
    ingestion: IngestionStats | None = None
    storage: StorageStats | None = None
    stream: str | None = None
    time: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> StreamStats:
        data = _require_object(data, "StreamStats")
        ingestion = data.get("ingestion")
        storage = data.get("storage")
        return cls(
            ingestion=IngestionStats.from_dict(ingestion) if isinstance(ingestion, dict) else None,
            storage=StorageStats.from_dict(storage) if isinstance(storage, dict) else None,
            stream=_opt(data, "stream", str),
            time=_opt(data, "time", str),
        )


@dataclass
class StreamInfo:
    created_at: str | None = None
    first_event_at: str | None = None
    cache_enabled: bool | None = None
    time_partition: str | None = None
    static_schema_flag: bool | None = None

    @classmethod
    def from_dict(cls, data: Any) -> StreamInfo:
        data = _require_object(data, "StreamInfo")
        return cls(
            created_at=_opt(data, "created-at", str),
            first_event_at=_opt(data, "first-event-at", str),
            cache_enabled=_opt(data, "cache-enabled", bool),
            time_partition=_opt(data, "time-partition", str),
            static_schema_flag=_opt(data, "static-schema-flag", bool),
        )


@dataclass
class RetentionConfig:
    description: str | None = None
    duration: str | None = None
    action: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RetentionConfig:
        return cls(
            description=_opt(data, "description", str),
            duration=_opt(data, "duration", str),
            action=_opt(data, "action", str),
        )


# =============================================================================
# Query
# =============================================================================


@dataclass
class QueryResult:
    """Rows returned by a SQL query, in server order."""
    records: list[dict[str, Any]] = field(default_factory=list)
    fields: list[str] | None = None

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)


# =============================================================================
# Alerts
# =============================================================================


@dataclass
class AlertRuleSpec:
    type: str | None = None
    config: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AlertRuleSpec:
        return cls(type=_opt(data, "type", str), config=_opt(data, "config", str))


@dataclass
class AlertTarget:
    type: str | None = None
    endpoint: str | None = None
    repeat_interval: str | None = None
    repeat_times: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AlertTarget:
        return cls(
            type=_opt(data, "type", str),
            endpoint=_opt(data, "endpoint", str),
            repeat_interval=_opt(data, "repeat_interval", str),
            repeat_times=_opt(data, "repeat_times", int),
        )


@dataclass
class AlertRule:
    """
    An alert rule from either alert API.

    The consolidated /api/v1/alerts endpoint returns the summary fields
    (id, title, severity, ...); the legacy per-stream endpoint returns
    name, message, rule and targets.
    """
    alert_id: str | None = None
    title: str | None = None
    severity: str | None = None
    state: str | None = None
    alert_type: str | None = None
    notification_state: str | None = None
    created: str | None = None
    tags: list[str] | None = None
    datasets: list[str] | None = None
    last_triggered_at: str | None = None

    # Legacy fields
    name: str | None = None
    message: str | None = None
    rule: AlertRuleSpec | None = None
    targets: list[AlertTarget] | None = None

    _fallback_id: str = field(default_factory=lambda: str(uuid.uuid4()), repr=False, compare=False)

    @property
    def display_name(self) -> str:
        return self.title or self.name or "Unnamed Alert"

    @property
    def id(self) -> str:
        return self.alert_id or self.name or self.title or self._fallback_id

    @classmethod
    def from_dict(cls, data: Any) -> AlertRule:
        data = _require_object(data, "AlertRule")
        rule = data.get("rule")
        targets = data.get("targets")
        if isinstance(targets, list) and all(isinstance(t, dict) for t in targets):
            parsed_targets = [AlertTarget.from_dict(t) for t in targets]
        else:
            parsed_targets = None
        return cls(
            alert_id=_opt(data, "id", str),
            title=_opt(data, "title", str),
            severity=_opt(data, "severity", str),
            state=_opt(data, "state", str),
            alert_type=_opt(data, "alertType", str),
            notification_state=_opt(data, "notificationState", str),
            created=_opt(data, "created", str),
            tags=_opt_str_list(data, "tags"),
            datasets=_opt_str_list(data, "datasets"),
            last_triggered_at=_opt(data, "lastTriggeredAt", str),
            name=_opt(data, "name", str),
            message=_opt(data, "message", str),
            rule=AlertRuleSpec.from_dict(rule) if isinstance(rule, dict) else None,
            targets=parsed_targets,
        )


@dataclass
class AlertConfig:
    alerts: list[AlertRule] | None = None
    version: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> AlertConfig:
        if isinstance(data, list):
            alerts, version = data, None
        elif isinstance(data, dict):
            alerts, version = data.get("alerts"), _opt(data, "version", str)
        else:
            raise DecodingError(f"AlertConfig: unexpected {type(data).__name__}")

        if isinstance(alerts, list) and all(isinstance(a, dict) for a in alerts):
            return cls(alerts=[AlertRule.from_dict(a) for a in alerts], version=version)
        return cls(alerts=None, version=version)


# =============================================================================
# Saved filters
# =============================================================================


@dataclass
class FilterQuery:
    filter_type: str = "sql"
    filter_query: str | None = None
    filter_builder: Any = None

    @classmethod
    def from_dict(cls, data: Any) -> FilterQuery:
        data = _require_object(data, "FilterQuery")
        return cls(
            filter_type=_require_str(data, "filter_type", "FilterQuery"),
            filter_query=_opt(data, "filter_query", str),
            filter_builder=data.get("filter_builder"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"filter_type": self.filter_type}
        if self.filter_query is not None:
            out["filter_query"] = self.filter_query
        if self.filter_builder is not None:
            out["filter_builder"] = self.filter_builder
        return out


@dataclass
class ParseableFilter:
    """A filter saved on the server."""
    filter_name: str
    stream_name: str
    query: FilterQuery
    filter_id: str | None = None
    version: str | None = None
    user_id: str | None = None
    time_filter: Any = None

    @property
    def id(self) -> str:
        return self.filter_id or f"{self.stream_name}:{self.filter_name}"

    @classmethod
    def from_dict(cls, data: Any) -> ParseableFilter:
        data = _require_object(data, "ParseableFilter")
        return cls(
            filter_id=_opt(data, "filter_id", str),
            filter_name=_require_str(data, "filter_name", "ParseableFilter"),
            stream_name=_require_str(data, "stream_name", "ParseableFilter"),
            query=FilterQuery.from_dict(data.get("query")),
            version=_opt(data, "version", str),
            user_id=_opt(data, "user_id", str),
            time_filter=data.get("time_filter"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "filter_name": self.filter_name,
            "stream_name": self.stream_name,
            "query": self.query.to_dict(),
        }
        if self.filter_id is not None:
            out["filter_id"] = self.filter_id
        if self.version is not None:
            out["version"] = self.version
        if self.user_id is not None:
            out["user_id"] = self.user_id
        if self.time_filter is not None:
            out["time_filter"] = self.time_filter
        return out
