"""Contract tests for transport observer protocol compliance."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from kinto_client.core.client import _BackoffTracker
from kinto_client.core.exceptions import ServerResponseError
from kinto_client.core.http import HTTP
from kinto_client.core.observers import BaseObserver, TransportObserver


class PartialObserver:
    def on_backoff(self, release_at: float) -> None:
        pass


class DuckObserver:
    """Implements the protocol without inheriting from BaseObserver."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    def on_backoff(self, release_at: float) -> None:
        self.events.append(("backoff", release_at))

    def on_deprecated(self, alert: dict[str, Any]) -> None:
        self.events.append(("deprecated", alert))

    def on_retry_after(self, retry_at: float) -> None:
        self.events.append(("retry_after", retry_at))


class TestObserverProtocol:
    @pytest.mark.parametrize("observer_cls", [BaseObserver, DuckObserver, _BackoffTracker])
    def test_implements_protocol(self, observer_cls: type) -> None:
        assert isinstance(observer_cls(), TransportObserver)

    def test_partial_observer_rejected(self) -> None:
        assert not isinstance(PartialObserver(), TransportObserver)

    def test_base_observer_is_noop(self) -> None:
        observer = BaseObserver()
        assert observer.on_backoff(0.0) is None
        assert observer.on_deprecated({"message": "x"}) is None
        assert observer.on_retry_after(0.0) is None

    async def test_duck_observer_receives_every_advisory(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                503,
                json={"errno": 201},
                headers={
                    "Alert": '{"message": "Bye", "url": "http://kinto.test/eol"}',
                    "Backoff": "2",
                    "Retry-After": "4",
                },
            )

        observer = DuckObserver()
        http = HTTP(observers=[observer], transport=httpx.MockTransport(handler))
        try:
            with pytest.raises(ServerResponseError):
                await http.request("http://kinto.test/v1/")
        finally:
            await http.close()

        assert [name for name, _ in observer.events] == ["deprecated", "backoff", "retry_after"]
        assert observer.events[0][1] == {"message": "Bye", "url": "http://kinto.test/eol"}
