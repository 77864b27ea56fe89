"""Unit tests for list queries and the pagination walker."""

from __future__ import annotations

import math

import httpx
import pytest

from kinto_client.core.exceptions import (
    InvalidSinceError,
    PaginationExhaustedError,
    UnparseableResponseError,
)
from kinto_client.core.pagination import build_list_query, qsify

RECORDS_URL = "http://kinto.test/v1/buckets/blog/collections/articles/records"


def paged_handler(pages: list[list[dict]], calls: list[httpx.Request] | None = None):
    """Serve ``pages`` in order, each linking to the next with Next-Page."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        index = int(request.url.params.get("_page", 0))
        headers = {"ETag": f'"{100 + index}"', "Total-Records": str(sum(map(len, pages)))}
        if index + 1 < len(pages):
            headers["Next-Page"] = f"{RECORDS_URL}?_page={index + 1}"
        return httpx.Response(200, json={"data": pages[index]}, headers=headers)

    return handler


THREE_PAGES = [[{"id": "a"}], [{"id": "b"}], [{"id": "c"}]]


class TestQuery:
    def test_qsify(self) -> None:
        assert qsify({"a": 1, "b": None, "c": ["x", "y"], "d": True}) == "a=1&c=x%2Cy&d=true"

    def test_qsify_escapes(self) -> None:
        assert qsify({"title": "a b&c"}) == "title=a%20b%26c"

    def test_default_sort(self) -> None:
        assert build_list_query() == "_sort=-last_modified"

    def test_all_params(self) -> None:
        query = build_list_query(
            sort="title",
            filters={"has_tags": True},
            limit=10,
            since="123",
            fields=["id", "title"],
        )
        assert query == "has_tags=true&_sort=title&_limit=10&_since=123&_fields=id%2Ctitle"

    @pytest.mark.parametrize("since", [42, 1.5, ["1"]])
    def test_invalid_since(self, since) -> None:
        with pytest.raises(InvalidSinceError, match="should be ETag value"):
            build_list_query(since=since)


class TestPaginatedList:
    async def test_invalid_since_makes_no_request(self, make_client) -> None:
        calls: list[httpx.Request] = []
        client = make_client(paged_handler(THREE_PAGES, calls))
        with pytest.raises(InvalidSinceError):
            await client.list_records("articles", bucket="blog", since=42)
        assert calls == []

    async def test_single_page_by_default(self, make_client) -> None:
        calls: list[httpx.Request] = []
        client = make_client(paged_handler(THREE_PAGES, calls))
        page = await client.list_records("articles", bucket="blog")
        assert page.data == [{"id": "a"}]
        assert page.has_next_page
        assert page.last_modified == "100"
        assert page.total_records == 3
        assert len(calls) == 1
        assert calls[0].url.params["_sort"] == "-last_modified"

    async def test_next_fetches_one_page(self, make_client) -> None:
        client = make_client(paged_handler(THREE_PAGES))
        first = await client.list_records("articles", bucket="blog")
        second = await first.next()
        assert second.data == [{"id": "b"}]
        third = await second.next()
        assert third.data == [{"id": "c"}]
        assert not third.has_next_page
        with pytest.raises(PaginationExhaustedError):
            await third.next()

    async def test_all_pages(self, make_client) -> None:
        calls: list[httpx.Request] = []
        client = make_client(paged_handler(THREE_PAGES, calls))
        page = await client.list_records("articles", bucket="blog", pages=math.inf)
        assert page.data == [{"id": "a"}, {"id": "b"}, {"id": "c"}]
        assert page.next_page is None
        assert page.last_modified == "102"
        assert len(calls) == 3
        with pytest.raises(PaginationExhaustedError, match="Pagination exhausted."):
            await page.next()

    async def test_page_budget(self, make_client) -> None:
        calls: list[httpx.Request] = []
        client = make_client(paged_handler(THREE_PAGES, calls))
        page = await client.list_records("articles", bucket="blog", pages=2)
        assert page.data == [{"id": "a"}, {"id": "b"}]
        assert page.has_next_page
        assert len(calls) == 2

        more = await page.next()
        assert more.data == [{"id": "a"}, {"id": "b"}, {"id": "c"}]
        assert page._paginator.pages_consumed == 3

    async def test_empty_list(self, make_client) -> None:
        client = make_client(lambda request: httpx.Response(200, json={"data": []}))
        page = await client.list_records("articles", pages=math.inf)
        assert page.data == []
        assert page.last_modified is None
        assert page.total_records is None
        assert not page.has_next_page

    async def test_client_headers_sent_on_every_page(self, make_client) -> None:
        calls: list[httpx.Request] = []
        client = make_client(paged_handler(THREE_PAGES, calls), headers={"Authorization": "t"})
        await client.list_records("articles", bucket="blog", pages=math.inf)
        assert [call.headers["Authorization"] for call in calls] == ["t", "t", "t"]

    async def test_list_buckets_and_collections(self, make_client) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"data": []})

        client = make_client(handler, bucket="blog")
        await client.list_buckets()
        await client.list_collections()
        await client.list_collections("other", limit=5)
        assert [call.url.path for call in calls] == [
            "/v1/buckets",
            "/v1/buckets/blog/collections",
            "/v1/buckets/other/collections",
        ]
        assert calls[2].url.params["_limit"] == "5"

    async def test_malformed_total_records(self, make_client) -> None:
        client = make_client(
            lambda request: httpx.Response(
                200, json={"data": []}, headers={"Total-Records": "many"}
            )
        )
        with pytest.raises(UnparseableResponseError) as exc_info:
            await client.list_records("articles")
        assert exc_info.value.status == 200
        assert exc_info.value.body == "many"
        assert isinstance(exc_info.value.__cause__, ValueError)
