"""Authenticated request construction."""

from __future__ import annotations

from typing import Any, Mapping
from urllib.parse import quote

import httpx

from .auth import basic_auth_header
from .errors import InvalidURLError

# Unreserved characters plus ":". Everything else, including
# / ? # [ ] @ ! $ & ' ( ) * + , ; = and %, is percent-encoded.
_SEGMENT_SAFE = ":"


def encode_path_segment(value: str) -> str:
    """
    Percent-encode a user-supplied identifier for use as one path segment.

    Raises:
        InvalidURLError: If the value cannot be encoded
    """
    try:
        return quote(value, safe=_SEGMENT_SAFE)
    except UnicodeEncodeError as e:
        raise InvalidURLError(f"Cannot encode path segment {value!r}") from e


class RequestBuilder:
    """
    Builds authenticated JSON requests against one server.

    The Authorization header is computed once from the connection's
    username and the secret resolved from the credential store.
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        timeout: httpx.Timeout | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.username = username
        self._auth_header = basic_auth_header(username, password)
        self._timeout = timeout

    def url(self, path: str, params: Mapping[str, Any] | None = None) -> httpx.URL:
        """
        Join the base URL and path, appending query parameters.

        Raises:
            InvalidURLError: If the result is not an absolute http(s) URL
        """
        if not path.startswith("/"):
            path = f"/{path}"
        try:
            url = httpx.URL(f"{self.base_url}{path}", params=params or None)
        except (httpx.InvalidURL, TypeError, ValueError) as e:
            raise InvalidURLError(f"Invalid server URL: {e}") from e

        if url.scheme not in ("http", "https") or not url.host:
            raise InvalidURLError(f"Invalid server URL: {self.base_url}")
        return url

    def headers(self) -> dict[str, str]:
        return {
            "Authorization": self._auth_header,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def build(
        self,
        method: str,
        path: str,
        body: bytes | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> httpx.Request:
        """
        Build a request.

        Args:
            method: HTTP method
            path: Path relative to the base URL, with identifiers already
                encoded via encode_path_segment()
            body: Optional raw JSON body
            params: Optional query parameters

        Returns:
            An httpx.Request ready for AsyncClient.send()
        """
        extensions = {}
        if self._timeout is not None:
            extensions["timeout"] = self._timeout.as_dict()

        return httpx.Request(
            method,
            self.url(path, params),
            headers=self.headers(),
            content=body,
            extensions=extensions,
        )
