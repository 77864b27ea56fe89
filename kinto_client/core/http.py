"""HTTP transport.

Performs a single JSON round trip against the server: applies default
headers, enforces the timeout, reacts to the Alert/Backoff/Retry-After
advisories and classifies the outcome into a parsed HttpResponse or a typed
error.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from kinto_client.core.enums import HttpMethod
from kinto_client.core.exceptions import (
    NetworkError,
    NetworkTimeoutError,
    ServerResponseError,
    UnparseableResponseError,
)
from kinto_client.core.observers import TransportObserver
from kinto_client.core.requests import Multipart

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_HEADERS: dict[str, str] = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}


@dataclass(frozen=True)
class HttpResponse:
    """Parsed outcome of a successful round trip."""

    status: int
    json: Any
    headers: httpx.Headers


async def _delay(seconds: float) -> None:
    await asyncio.sleep(seconds)


def obscure_authorization_header(headers: Mapping[str, str]) -> dict[str, str]:
    """Copy of ``headers`` safe to attach to errors and logs."""
    return {
        key: "**** (suppressed)" if key.lower() == "authorization" else value
        for key, value in headers.items()
    }


class HTTP:
    """Asynchronous HTTP client for the server protocol.

    Args:
        timeout: Request timeout in seconds, or None to wait indefinitely.
        observers: Receivers for backoff, deprecation and retry-after advisories.
        transport: Optional httpx transport (e.g. ``httpx.MockTransport``).
    """

    def __init__(
        self,
        *,
        timeout: float | None = None,
        observers: Iterable[TransportObserver] = (),
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self._observers = list(observers)
        # Timeouts are enforced per request below, not by httpx.
        self._client = httpx.AsyncClient(transport=transport, timeout=None)

    def add_observer(self, observer: TransportObserver) -> None:
        self._observers.append(observer)

    async def close(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        url: str,
        *,
        method: HttpMethod | str = HttpMethod.GET,
        headers: Mapping[str, str] | None = None,
        body: Any = None,
        retry: int = 0,
    ) -> HttpResponse:
        """Perform an HTTP request.

        When the server answers with ``Retry-After`` and ``retry`` is above
        zero, the same request is resent after the advised delay with the
        budget decremented.

        Raises:
            NetworkTimeoutError: If no response arrives within ``timeout``.
            NetworkError: If the server cannot be reached.
            UnparseableResponseError: If a non-empty body is not JSON.
            ServerResponseError: If the response status is >= 400.
        """
        method = HttpMethod(method)
        request_headers = httpx.Headers(DEFAULT_REQUEST_HEADERS)
        request_headers.update(dict(headers or {}))

        payload: dict[str, Any] = {}
        if isinstance(body, Multipart):
            # httpx sets the multipart boundary itself.
            request_headers.pop("Content-Type", None)
            payload["data"] = body.fields
            payload["files"] = body.files
        elif body is not None:
            payload["content"] = json.dumps(body)

        logger.debug("%s %s", method.value, url)
        response = await self._timed_send(url, method, request_headers, payload)

        self._check_deprecation_header(response.headers)
        self._check_backoff_header(response.headers)
        retry_after = self._check_retry_after_header(response.headers)

        if retry_after and retry > 0:
            logger.debug("Retrying %s %s in %ss (%d left)", method.value, url, retry_after, retry)
            await _delay(retry_after)
            return await self.request(
                url, method=method, headers=headers, body=body, retry=retry - 1
            )
        return self._process_response(response)

    async def _timed_send(
        self,
        url: str,
        method: HttpMethod,
        headers: httpx.Headers,
        payload: dict[str, Any],
    ) -> httpx.Response:
        send = self._client.request(method.value, url, headers=headers, **payload)
        try:
            if self.timeout:
                # Cancels the in-flight request: a late response is dropped.
                return await asyncio.wait_for(send, self.timeout)
            return await send
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise NetworkTimeoutError(
                url, obscure_authorization_header(headers), self.timeout
            ) from e
        except httpx.HTTPError as e:
            raise NetworkError(url, str(e)) from e

    def _process_response(self, response: httpx.Response) -> HttpResponse:
        status = response.status_code
        text = response.text
        data: Any = None
        if text:
            try:
                data = json.loads(text)
            except ValueError as e:
                raise UnparseableResponseError(status, text, e) from e
        if status >= 400:
            raise ServerResponseError(status, response.reason_phrase, data)
        return HttpResponse(status=status, json=data, headers=response.headers)

    def _check_deprecation_header(self, headers: httpx.Headers) -> None:
        alert_header = headers.get("Alert")
        if not alert_header:
            return
        try:
            alert = json.loads(alert_header)
        except ValueError:
            logger.warning("Unable to parse Alert header message: %s", alert_header)
            return
        logger.warning("%s %s", alert.get("message"), alert.get("url"))
        for observer in self._observers:
            observer.on_deprecated(alert)

    def _check_backoff_header(self, headers: httpx.Headers) -> None:
        try:
            backoff_seconds = int(headers.get("Backoff", 0))
        except ValueError:
            backoff_seconds = 0
        release_at = time.time() + backoff_seconds if backoff_seconds > 0 else 0.0
        for observer in self._observers:
            observer.on_backoff(release_at)

    def _check_retry_after_header(self, headers: httpx.Headers) -> int | None:
        retry_after = headers.get("Retry-After")
        if not retry_after:
            return None
        try:
            delay = int(retry_after)
        except ValueError:
            return None
        for observer in self._observers:
            observer.on_retry_after(time.time() + delay)
        return delay
