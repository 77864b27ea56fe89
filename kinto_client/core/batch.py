"""Batch request collection and chunked dispatch.

A Batch is handed to the caller's describe function: each operation it
exposes appends a descriptor to the batch buffer instead of sending it.
Once the function returns, the buffer is sealed, split into chunks bounded by
the server's ``batch_max_requests`` setting and dispatched.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Iterable, Sequence
from enum import Enum
from typing import TypeVar

from kinto_client.core.config import RequestOptions
from kinto_client.core.exceptions import BatchStateError
from kinto_client.core.requests import RequestDescriptor
from kinto_client.core.resources import RequestFactory

T = TypeVar("T")


class _BatchState(Enum):
    COLLECTING = "collecting"
    SENT = "sent"


class Batch(RequestFactory):
    """Batch-scoped request factory.

    Operations are appended to ``buffer`` in call order. The buffer is
    append-only while collecting and read-only once sealed.
    """

    is_batch = True

    def __init__(self, options: RequestOptions, buffer: list[RequestDescriptor]) -> None:
        super().__init__(options)
        self._buffer = buffer
        self._state = _BatchState.COLLECTING

    @property
    def requests(self) -> tuple[RequestDescriptor, ...]:
        return tuple(self._buffer)

    def _emit(self, request: RequestDescriptor) -> RequestDescriptor:
        if self._state != _BatchState.COLLECTING:
            raise BatchStateError(self._state.value, "append to")
        self._buffer.append(request)
        return request

    def seal(self) -> None:
        self._state = _BatchState.SENT


def partition(items: Sequence[T], size: int | None) -> list[list[T]]:
    """Split ``items`` into contiguous chunks of at most ``size`` elements.

    A missing or non-positive ``size`` means unlimited: one chunk.
    """
    if not size or size <= 0:
        return [list(items)]
    return [list(items[start : start + size]) for start in range(0, len(items), size)]


async def gather_in_order(awaitables: Iterable[Awaitable[T]]) -> list[T]:
    """Run ``awaitables`` concurrently; results keep submission order.

    The first failure cancels whatever is still in flight and propagates.
    """
    tasks = [asyncio.ensure_future(aw) for aw in awaitables]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
