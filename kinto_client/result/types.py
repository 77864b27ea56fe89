"""Batch result data classes.

Frozen dataclasses describing composite batch responses and their
categorized reduction.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from kinto_client.core.requests import RequestDescriptor


@dataclass(frozen=True)
class SubResponse:
    """One element of a composite batch response."""

    status: int
    path: str
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, response: Mapping[str, Any]) -> SubResponse:
        return cls(
            status=int(response["status"]),
            path=response.get("path", ""),
            body=response.get("body"),
            headers=dict(response.get("headers") or {}),
        )


@dataclass(frozen=True)
class Conflict:
    """A write rejected by a failed precondition (HTTP 412)."""

    type: str
    local: Any
    remote: Any


@dataclass(frozen=True)
class FailedRequest:
    """A subrequest that failed for any reason other than 404/412."""

    path: str
    sent: RequestDescriptor | Mapping[str, Any]
    error: Any


@dataclass(frozen=True)
class AggregateResult:
    """Categorized outcome of a batch."""

    published: list[Any] = field(default_factory=list)
    conflicts: list[Conflict] = field(default_factory=list)
    skipped: list[Any] = field(default_factory=list)
    errors: list[FailedRequest] = field(default_factory=list)
