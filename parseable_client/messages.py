"""User-facing error messages.

Translates client errors and transport failures into guidance a person can
act on. This is presentation logic; the client itself only raises typed
errors.
"""

from __future__ import annotations

import asyncio
import errno
import socket
import ssl
from typing import Iterator

import httpx

from .errors import InvalidURLError, ParseableError, ServerError, UnauthorizedError

NO_CONNECTIVITY = "No internet connection. Check your network and try again."
HOST_NOT_FOUND = "Cannot find server. Check the URL and your network connection."
CONNECTION_REFUSED = "Cannot connect to server. Check the URL and that the server is running."
TIMED_OUT = "Connection timed out. The server may be unreachable."
TLS_FAILURE = "SSL/TLS error. The server certificate may be invalid or untrusted."
CANCELLED = "Request cancelled"

_NO_NETWORK_ERRNOS = {errno.ENETUNREACH, errno.ENETDOWN, errno.EHOSTUNREACH}


def _causes(error: BaseException) -> Iterator[BaseException]:
    """Walk the exception and its causes, guarding against cycles."""
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _transport_message(error: BaseException) -> str | None:
    for exc in _causes(error):
        if isinstance(exc, ssl.SSLError):
            return TLS_FAILURE
        if isinstance(exc, socket.gaierror):
            return HOST_NOT_FOUND
        if isinstance(exc, ConnectionRefusedError):
            return CONNECTION_REFUSED
        if isinstance(exc, OSError) and exc.errno in _NO_NETWORK_ERRNOS:
            return NO_CONNECTIVITY

    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return TIMED_OUT
    if isinstance(error, httpx.ConnectError):
        text = str(error).lower()
        if "certificate" in text or "ssl" in text:
            return TLS_FAILURE
        if "name or service not known" in text or "nodename nor servname" in text:
            return HOST_NOT_FOUND
        return CONNECTION_REFUSED
    if isinstance(error, httpx.NetworkError):
        return NO_CONNECTIVITY
    if isinstance(error, httpx.TransportError):
        return f"Network error: {error}"
    return None


def user_friendly_message(error: BaseException) -> str:
    """Return a human-readable description of ``error``."""
    if isinstance(error, UnauthorizedError):
        return "Authentication failed. Check your username and password."
    if isinstance(error, InvalidURLError):
        return "The server URL is invalid. Check the format (e.g. https://host:port)."
    if isinstance(error, ServerError):
        message = error.message.strip()
        if not message or message == "Unknown error":
            return f"Server returned error {error.status_code}."
        return f"Server error ({error.status_code}): {message}"
    if isinstance(error, ParseableError):
        return str(error)
    if isinstance(error, asyncio.CancelledError):
        return CANCELLED

    transport = _transport_message(error)
    if transport is not None:
        return transport
    return str(error)
