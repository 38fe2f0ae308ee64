"""Shared test fixtures and configuration for turnbridge tests."""

from collections.abc import Callable, Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from turnbridge.api.app import create_app
from turnbridge.config.settings import Settings
from turnbridge.core.logging import setup_logging
from tests.fixtures.upstream import MockUpstream


def pytest_configure(config: pytest.Config) -> None:
    """Reuse the application logging pipeline in tests."""
    setup_logging(json_logs=False, log_level_name="DEBUG")


def make_settings(**upstream: Any) -> Settings:
    """Settings isolated from ``.env`` with upstream overrides."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        upstream={"host": "upstream.test", "port": 3456, **upstream},
    )


@pytest.fixture
def settings() -> Settings:
    return make_settings()


ClientFactory = Callable[..., TestClient]


@pytest.fixture
def client_factory(
    mock_upstream: MockUpstream,
) -> Generator[ClientFactory, None, None]:
    """Build a TestClient whose upstream is ``mock_upstream``.

    Keyword arguments override upstream settings, e.g.
    ``client_factory(native_tools=False)``.
    """
    clients: list[TestClient] = []

    def _factory(**upstream: Any) -> TestClient:
        app = create_app(
            settings=make_settings(**upstream),
            upstream_transport=mock_upstream.transport,
        )
        client = TestClient(app, raise_server_exceptions=False)
        client.__enter__()
        clients.append(client)
        return client

    yield _factory

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(client_factory: ClientFactory) -> TestClient:
    """TestClient with default settings (native tools, streaming follows caller)."""
    return client_factory()
