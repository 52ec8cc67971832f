"""Endpoint version negotiation."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Generic, TypeVar

from .errors import ServerError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_not_found(error: BaseException) -> bool:
    """True if the error means the server does not expose the endpoint."""
    return isinstance(error, ServerError) and error.status_code == 404


class EndpointNegotiator(Generic[T]):
    """
    Call a newer endpoint, falling back to a legacy one on "not found".

    Only errors accepted by ``should_fall_back`` (a 404 by default) trigger
    the single legacy attempt. Unauthorized, network and other server errors
    from the preferred endpoint propagate untouched.

    Usage:
        negotiator = EndpointNegotiator(
            preferred=lambda: client.fetch("/api/v1/alerts"),
            legacy=lambda: client.fetch(f"/api/v1/logstream/{name}/alert"),
        )
        config = await negotiator.run()
    """

    def __init__(
        self,
        preferred: Callable[[], Awaitable[T]],
        legacy: Callable[[], Awaitable[T]],
        should_fall_back: Callable[[BaseException], bool] = is_not_found,
        name: str = "endpoint",
    ):
        self.preferred = preferred
        self.legacy = legacy
        self.should_fall_back = should_fall_back
        self.name = name

    async def run(self) -> T:
        try:
            return await self.preferred()
        except Exception as e:
            if not self.should_fall_back(e):
                raise
            logger.info(f"Preferred {self.name} unavailable ({e}); using legacy endpoint")
        return await self.legacy()
