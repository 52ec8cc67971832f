"""Authentication helpers for the Parseable client."""

from __future__ import annotations

import base64
import logging

logger = logging.getLogger(__name__)

# Sent when the credentials cannot be encoded; the server answers 401
PLACEHOLDER_AUTH_HEADER = "Basic "


def basic_auth_header(username: str, password: str) -> str:
    """
    Build an HTTP Basic Authorization header value.

    Args:
        username: Account name
        password: Secret resolved from the credential store

    Returns:
        "Basic <base64(username:password)>", or a placeholder the server
        rejects when the credentials are not encodable as UTF-8
    """
    try:
        raw = f"{username}:{password}".encode("utf-8")
    except UnicodeEncodeError:
        logger.warning(f"Credentials for {username!r} are not valid UTF-8; sending placeholder auth header")
        return PLACEHOLDER_AUTH_HEADER
    return f"Basic {base64.b64encode(raw).decode('ascii')}"
