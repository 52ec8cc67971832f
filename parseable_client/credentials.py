"""Credential store interface consumed by the client."""

from __future__ import annotations

import logging
import threading
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class CredentialStore(Protocol):
    """
    Secret storage keyed by connection id.

    Persistence and any migration between storage backends are the
    implementation's concern.
    """

    def load(self, connection_id: str) -> str | None:
        ...

    def save(self, connection_id: str, secret: str) -> None:
        ...

    def delete(self, connection_id: str) -> None:
        ...


class MemoryCredentialStore:
    """In-process credential store."""

    def __init__(self, secrets: dict[str, str] | None = None):
        self._secrets: dict[str, str] = dict(secrets or {})
        self._lock = threading.Lock()

    def load(self, connection_id: str) -> str | None:
        with self._lock:
            return self._secrets.get(connection_id)

    def save(self, connection_id: str, secret: str) -> None:
        with self._lock:
            self._secrets[connection_id] = secret
        logger.debug(f"Stored secret for connection {connection_id}")

    def delete(self, connection_id: str) -> None:
        # Deleting a missing entry is not an error
        with self._lock:
            self._secrets.pop(connection_id, None)
