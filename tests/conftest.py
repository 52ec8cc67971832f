"""Shared pytest fixtures for parseable_client tests."""

from __future__ import annotations

import pytest

from parseable_client import ClientConfig, ParseableClient, ResponseCache

from tests.fixtures.mock_server import MockParseableServer, create_mock_server_with_streams


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def server():
    """Mock server pre-populated with the app-logs and audit streams."""
    return create_mock_server_with_streams()


@pytest.fixture
def empty_server():
    return MockParseableServer()


@pytest.fixture
def test_config():
    return ClientConfig(
        timeout=5.0,
        resource_timeout=10.0,
        max_connections=10,
        max_keepalive_connections=5,
        verify_ssl=True,
        user_agent="parseable-client-tests",
    )


@pytest.fixture
def make_client(test_config, clock):
    """Factory fixture for clients wired to a mock server."""
    def _factory(
        mock: MockParseableServer,
        username: str = "admin",
        password: str = "admin",
        base_url: str = "http://parseable.test:8000",
    ) -> ParseableClient:
        return ParseableClient(
            base_url,
            username,
            password,
            config=test_config,
            cache=ResponseCache(clock=clock),
            transport=mock.get_transport(),
        )
    return _factory
