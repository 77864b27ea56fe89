"""Transport observer protocol.

Observers receive the advisory signals the server attaches to responses.
They are registered per client instance; notifications never affect the
outcome of the request that carried them.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class TransportObserver(Protocol):
    """Receiver for server advisories."""

    def on_backoff(self, release_at: float) -> None:
        """Backoff window end as a UNIX timestamp, or 0 when none is ongoing."""
        ...

    def on_deprecated(self, alert: dict[str, Any]) -> None:
        """Decoded ``Alert`` header, typically with ``message`` and ``url``."""
        ...

    def on_retry_after(self, retry_at: float) -> None:
        """UNIX timestamp after which the server accepts a resubmission."""
        ...


class BaseObserver:
    """No-op observer; subclass and override what you need."""

    def on_backoff(self, release_at: float) -> None:
        pass

    def on_deprecated(self, alert: dict[str, Any]) -> None:
        pass

    def on_retry_after(self, retry_at: float) -> None:
        pass
