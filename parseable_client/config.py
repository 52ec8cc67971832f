"""Client configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# Config file search paths (in order of precedence, last wins)
CONFIG_SEARCH_PATHS = [
    Path.home() / ".parseable" / "client.yaml",  # User-level defaults
    Path(".parseable.yaml"),  # Project-level overrides
]


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() == "true"


@dataclass
class ClientConfig:
    """
    Transport settings for the Parseable client.

    Precedence (lowest to highest):
    1. Defaults
    2. ~/.parseable/client.yaml
    3. .parseable.yaml (project root)
    4. Explicit config file passed to load()
    5. Constructor arguments

    Environment variables (PARSEABLE_*) replace the built-in defaults.
    """
    # Per-request timeout (seconds)
    timeout: float = field(
        default_factory=lambda: float(os.environ.get("PARSEABLE_TIMEOUT", "30"))
    )

    # Bound on a whole exchange, including large query bodies (seconds)
    resource_timeout: float = field(
        default_factory=lambda: float(os.environ.get("PARSEABLE_RESOURCE_TIMEOUT", "120"))
    )

    # Connection pool sizing
    max_connections: int = field(
        default_factory=lambda: int(os.environ.get("PARSEABLE_MAX_CONNECTIONS", "20"))
    )
    max_keepalive_connections: int = field(
        default_factory=lambda: int(os.environ.get("PARSEABLE_MAX_KEEPALIVE", "10"))
    )

    # TLS certificate verification
    verify_ssl: bool = field(
        default_factory=lambda: _env_bool("PARSEABLE_VERIFY_SSL", "true")
    )

    user_agent: str = field(
        default_factory=lambda: os.environ.get("PARSEABLE_USER_AGENT", "parseable-client")
    )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClientConfig:
        """Create config from dictionary."""
        return cls(
            timeout=float(data.get("timeout", os.environ.get("PARSEABLE_TIMEOUT", "30"))),
            resource_timeout=float(data.get("resource_timeout", os.environ.get("PARSEABLE_RESOURCE_TIMEOUT", "120"))),
            max_connections=int(data.get("max_connections", os.environ.get("PARSEABLE_MAX_CONNECTIONS", "20"))),
            max_keepalive_connections=int(data.get("max_keepalive_connections", os.environ.get("PARSEABLE_MAX_KEEPALIVE", "10"))),
            verify_ssl=data.get("verify_ssl", _env_bool("PARSEABLE_VERIFY_SSL", "true")),
            user_agent=data.get("user_agent", os.environ.get("PARSEABLE_USER_AGENT", "parseable-client")),
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> ClientConfig:
        """Load config from YAML file."""
        import yaml
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def load(cls, config_file: str | Path | None = None) -> ClientConfig:
        """
        Load config with auto-discovery.

        Search order (last wins):
        1. ~/.parseable/client.yaml
        2. .parseable.yaml
        3. Explicit config_file argument
        """
        import yaml

        merged: dict[str, Any] = {}

        for path in CONFIG_SEARCH_PATHS:
            if path.exists():
                with open(path, "r") as f:
                    data = yaml.safe_load(f) or {}
                merged.update(data)

        if config_file:
            with open(config_file, "r") as f:
                data = yaml.safe_load(f) or {}
            merged.update(data)

        return cls.from_dict(merged)
