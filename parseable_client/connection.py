"""Server connection record."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from .credentials import CredentialStore


@dataclass(frozen=True)
class Connection:
    """
    A saved server connection.

    The password is never part of the record. It lives in a
    CredentialStore keyed by ``id``.

    Usage:
        conn = Connection(name="prod", url="logs.example.com:8000", username="admin")
        store.save(conn.id, "secret")
        client = ParseableClient.from_connection(conn, store)
    """
    name: str
    url: str
    username: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def base_url(self) -> str | None:
        """
        Normalized base URL, or None if ``url`` cannot be used.

        Adds ``https://`` when no scheme is given and strips trailing slashes.
        """
        url = self.url.strip()
        if not url:
            return None
        if not url.startswith(("http://", "https://")):
            url = f"https://{url}"
        url = url.rstrip("/")

        try:
            parsed = httpx.URL(url)
        except httpx.InvalidURL:
            return None
        if not parsed.host:
            return None
        return url

    def password(self, store: CredentialStore) -> str:
        """Resolve the secret for this connection."""
        return store.load(self.id) or ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "username": self.username,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Connection:
        return cls(
            id=data["id"],
            name=data["name"],
            url=data["url"],
            username=data["username"],
        )
