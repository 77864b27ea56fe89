"""Result layer - reduce batch responses into categorized outcomes."""

from __future__ import annotations

from kinto_client.result.aggregate import aggregate
from kinto_client.result.types import AggregateResult, Conflict, FailedRequest, SubResponse

__all__ = [
    "aggregate",
    "AggregateResult",
    "Conflict",
    "FailedRequest",
    "SubResponse",
]
