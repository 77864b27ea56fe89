"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import pytest

from kinto_client.core.client import KintoClient
from kinto_client.core.config import ClientConfig
from kinto_client.core.http import HTTP
from kinto_client.core.observers import BaseObserver

REMOTE = "http://kinto.test/v1"

Handler = Callable[[httpx.Request], Any]


class RecordingObserver(BaseObserver):
    """Observer keeping every advisory it receives."""

    def __init__(self) -> None:
        self.backoffs: list[float] = []
        self.alerts: list[dict[str, Any]] = []
        self.retry_afters: list[float] = []

    def on_backoff(self, release_at: float) -> None:
        self.backoffs.append(release_at)

    def on_deprecated(self, alert: dict[str, Any]) -> None:
        self.alerts.append(alert)

    def on_retry_after(self, retry_at: float) -> None:
        self.retry_afters.append(retry_at)


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
async def make_client():
    """Factory building KintoClients backed by an httpx.MockTransport.

    Usage:
        client = make_client(handler, safe=True, retry=1)
    """
    clients: list[KintoClient] = []

    def _make(handler: Handler, *, observers: tuple = (), **options: Any) -> KintoClient:
        config = ClientConfig(remote=REMOTE, **options)
        client = KintoClient(config, observers=observers, transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.close()


@pytest.fixture
async def make_http():
    """Factory building bare HTTP transports backed by an httpx.MockTransport."""
    transports: list[HTTP] = []

    def _make(handler: Handler, **kwargs: Any) -> HTTP:
        http = HTTP(transport=httpx.MockTransport(handler), **kwargs)
        transports.append(http)
        return http

    yield _make

    for http in transports:
        await http.close()
