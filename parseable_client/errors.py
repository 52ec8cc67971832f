"""Exception taxonomy for the Parseable client."""

from __future__ import annotations


class ParseableError(Exception):
    """Base exception for Parseable client errors."""
    pass


class InvalidURLError(ParseableError):
    """Base URL, path or query parameters do not form a valid URL."""

    def __init__(self, message: str = "Invalid server URL"):
        super().__init__(message)


class InvalidResponseError(ParseableError):
    """The transport did not yield a well-formed HTTP response."""

    def __init__(self, message: str = "Invalid response from server"):
        super().__init__(message)


class ServerError(ParseableError):
    """Non-2xx, non-401 HTTP status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"Server error ({status_code}): {message}")
        self.status_code = status_code
        self.message = message


class DecodingError(ParseableError):
    """Response body did not match any accepted payload shape."""

    def __init__(self, reason: str):
        super().__init__(f"Failed to decode response: {reason}")
        self.reason = reason


class NotConnectedError(ParseableError):
    """
    No active connection.

    Raised by callers that hold no client; the client itself never raises it.
    """

    def __init__(self, message: str = "Not connected to server"):
        super().__init__(message)


class UnauthorizedError(ParseableError):
    """HTTP 401 from any endpoint."""

    def __init__(self, message: str = "Authentication failed. Check your credentials."):
        super().__init__(message)


class ClientClosedError(ParseableError):
    """Request issued after the client started shutting down."""

    def __init__(self, message: str = "Client has been closed"):
        super().__init__(message)
