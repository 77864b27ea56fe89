"""Paginated list walking.

Follows the server's ``Next-Page`` continuation URLs, optionally
accumulating several pages into one result.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote, urlencode

from kinto_client.core.exceptions import (
    InvalidSinceError,
    PaginationExhaustedError,
    UnparseableResponseError,
)
from kinto_client.core.http import HTTP, HttpResponse
from kinto_client.core.requests import unquote_etag


def qsify(params: Mapping[str, Any]) -> str:
    """Encode query parameters; None values are skipped, lists comma-joined."""
    pairs: list[tuple[str, str]] = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            value = ",".join(str(item) for item in value)
        elif isinstance(value, bool):
            value = str(value).lower()
        pairs.append((key, str(value)))
    return urlencode(pairs, safe="", quote_via=quote)


def build_list_query(
    *,
    sort: str = "-last_modified",
    filters: Mapping[str, Any] | None = None,
    limit: int | None = None,
    since: str | None = None,
    fields: list[str] | None = None,
) -> str:
    """Query string for a list endpoint.

    Raises:
        InvalidSinceError: If ``since`` is not an ETag string.
    """
    if since is not None and not isinstance(since, str):
        raise InvalidSinceError(since)
    query: dict[str, Any] = {
        **(filters or {}),
        "_sort": sort,
        "_limit": limit,
        "_since": since,
        "_fields": fields or None,
    }
    return qsify(query)


@dataclass
class PageResult:
    """One page (or several accumulated pages) of a list endpoint."""

    data: list[Any]
    last_modified: str | None
    next_page: str | None
    total_records: int | None
    _paginator: Paginator = field(repr=False, compare=False)

    @property
    def has_next_page(self) -> bool:
        return bool(self.next_page)

    async def next(self) -> PageResult:
        """Fetch exactly one more page.

        Raises:
            PaginationExhaustedError: If there is no further page.
        """
        return await self._paginator.follow(self.next_page)


class Paginator:
    """Cursor over a paginated list.

    Args:
        http: Transport used for every page.
        headers: Headers sent with every page request.
        retry: Retry-After budget for each page request.
        pages: Number of pages to aggregate; None fetches one page per call,
            ``math.inf`` fetches everything.
    """

    def __init__(
        self,
        http: HTTP,
        *,
        headers: Mapping[str, str] | None = None,
        retry: int = 0,
        pages: int | float | None = None,
    ) -> None:
        self._http = http
        self._headers = dict(headers or {})
        self._retry = retry
        self._pages = pages
        self._results: list[Any] = []
        self._pages_consumed = 0

    @property
    def pages_consumed(self) -> int:
        return self._pages_consumed

    async def walk(self, url: str) -> PageResult:
        """Fetch from ``url``, following continuations up to the page budget."""
        response = await self._fetch(url)
        if not self._pages:
            self._pages_consumed += 1
            return self._page_result(response, _page_data(response))

        while True:
            self._accumulate(response)
            next_page = response.headers.get("Next-Page")
            if self._pages_consumed >= self._pages or not next_page:
                return self._page_result(response, list(self._results))
            response = await self._fetch(next_page)

    async def follow(self, next_page: str | None) -> PageResult:
        """Fetch the single page at ``next_page``."""
        if not next_page:
            raise PaginationExhaustedError()
        response = await self._fetch(next_page)
        if not self._pages:
            self._pages_consumed += 1
            return self._page_result(response, _page_data(response))
        self._accumulate(response)
        return self._page_result(response, list(self._results))

    async def _fetch(self, url: str) -> HttpResponse:
        return await self._http.request(url, headers=self._headers, retry=self._retry)

    def _accumulate(self, response: HttpResponse) -> None:
        self._results.extend(_page_data(response))
        self._pages_consumed += 1

    def _page_result(self, response: HttpResponse, data: list[Any]) -> PageResult:
        etag = response.headers.get("ETag")
        return PageResult(
            data=data,
            last_modified=unquote_etag(etag) if etag else None,
            next_page=response.headers.get("Next-Page"),
            total_records=total_records(response),
            _paginator=self,
        )


def total_records(response: HttpResponse) -> int | None:
    """Value of the ``Total-Records`` header, None when it is absent.

    Raises:
        UnparseableResponseError: If the header is not an integer.
    """
    value = response.headers.get("Total-Records")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError as e:
        raise UnparseableResponseError(response.status, value, e) from e


def _page_data(response: HttpResponse) -> list[Any]:
    if isinstance(response.json, Mapping):
        return list(response.json.get("data") or [])
    return []
