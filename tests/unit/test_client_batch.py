"""Unit tests for KintoClient.batch chunking, ordering and aggregation."""

from __future__ import annotations

import json

import httpx
import pytest

from kinto_client.core.exceptions import BatchStateError, NestedBatchError, ServerResponseError
from kinto_client.result import AggregateResult, SubResponse


class BatchServer:
    """MockTransport handler answering the hello document and /batch posts."""

    def __init__(self, max_requests: int | None = None, statuses: dict[str, int] | None = None):
        self.max_requests = max_requests
        self.statuses = statuses or {}
        self.hello_calls = 0
        self.batch_bodies: list[dict] = []
        self.batch_headers: list[httpx.Headers] = []
        self.fail_chunk: int | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/":
            self.hello_calls += 1
            settings = {}
            if self.max_requests is not None:
                settings["batch_max_requests"] = self.max_requests
            return httpx.Response(200, json={"settings": settings})

        assert request.url.path == "/v1/batch"
        assert request.method == "POST"
        body = json.loads(request.content)
        self.batch_bodies.append(body)
        self.batch_headers.append(request.headers)
        if self.fail_chunk is not None and len(self.batch_bodies) - 1 == self.fail_chunk:
            return httpx.Response(500, json={"errno": 999, "error": "Server Error"})

        responses = []
        for sub in body["requests"]:
            status = self.statuses.get(sub["path"], 200)
            sub_body = sub.get("body", {}).get("data") if sub.get("body") else None
            responses.append(
                {"status": status, "path": sub["path"], "body": {"data": sub_body}, "headers": {}}
            )
        return httpx.Response(200, json={"responses": responses})


def _records(count: int):
    def describe(batch) -> None:
        for index in range(count):
            batch.create_record({"id": f"r{index}"})

    return describe


class TestBatchDispatch:
    async def test_empty_batch_sends_nothing(self, make_client) -> None:
        server = BatchServer()
        client = make_client(server)
        responses = await client.batch(lambda batch: None)
        assert responses == []
        assert server.hello_calls == 0
        assert server.batch_bodies == []

    async def test_single_chunk_without_limit(self, make_client) -> None:
        server = BatchServer()
        client = make_client(server)
        responses = await client.batch(_records(5), bucket="blog", collection="articles")
        assert len(server.batch_bodies) == 1
        assert len(responses) == 5
        assert all(isinstance(response, SubResponse) for response in responses)

    @pytest.mark.parametrize(
        ("count", "limit", "chunks"),
        [(4, 3, 2), (3, 3, 1), (4, 4, 1), (5, 4, 2), (10, 3, 4)],
    )
    async def test_chunk_count(self, make_client, count: int, limit: int, chunks: int) -> None:
        server = BatchServer(max_requests=limit)
        client = make_client(server)
        responses = await client.batch(_records(count), collection="articles")
        assert len(server.batch_bodies) == chunks
        assert all(len(body["requests"]) <= limit for body in server.batch_bodies)
        assert len(responses) == count

    async def test_submission_order_preserved(self, make_client) -> None:
        server = BatchServer(max_requests=2)
        client = make_client(server)
        responses = await client.batch(_records(7), collection="articles")
        assert [response.body["data"]["id"] for response in responses] == [
            f"r{index}" for index in range(7)
        ]
        sent = [sub["path"] for body in server.batch_bodies for sub in body["requests"]]
        assert sent == [f"/buckets/default/collections/articles/records/r{i}" for i in range(7)]

    async def test_settings_fetched_once(self, make_client) -> None:
        server = BatchServer(max_requests=2)
        client = make_client(server)
        await client.batch(_records(3), collection="articles")
        await client.batch(_records(3), collection="articles")
        assert server.hello_calls == 1

    async def test_composite_body_shape(self, make_client) -> None:
        server = BatchServer()
        client = make_client(server, headers={"Authorization": "Bearer t"})
        await client.batch(
            lambda batch: batch.delete_record("r1", last_modified=3),
            bucket="blog",
            collection="articles",
            safe=True,
            headers={"X-Trace": "1"},
        )
        body = server.batch_bodies[0]
        assert body["defaults"] == {"headers": {"Authorization": "Bearer t", "X-Trace": "1"}}
        assert body["requests"] == [
            {
                "method": "DELETE",
                "path": "/buckets/blog/collections/articles/records/r1",
                "headers": {"Authorization": "Bearer t", "X-Trace": "1", "If-Match": '"3"'},
            }
        ]
        assert server.batch_headers[0]["Authorization"] == "Bearer t"

    async def test_chunk_failure_propagates(self, make_client) -> None:
        server = BatchServer(max_requests=2)
        server.fail_chunk = 1
        client = make_client(server)
        with pytest.raises(ServerResponseError) as exc_info:
            await client.batch(_records(6), collection="articles")
        assert exc_info.value.status == 500

    async def test_describe_error_propagates_without_sending(self, make_client) -> None:
        server = BatchServer()
        client = make_client(server)

        def describe(batch) -> None:
            batch.create_record({"id": "a"}, collection="articles")
            raise RuntimeError("abort")

        with pytest.raises(RuntimeError, match="abort"):
            await client.batch(describe)
        assert server.batch_bodies == []

    async def test_nested_batch(self, make_client) -> None:
        server = BatchServer()
        client = make_client(server)

        with pytest.raises(NestedBatchError):
            await client.batch(lambda batch: batch.batch(lambda inner: None))
        assert server.batch_bodies == []

    async def test_context_rejects_late_appends(self, make_client) -> None:
        server = BatchServer()
        client = make_client(server)
        captured = []
        await client.batch(captured.append)
        with pytest.raises(BatchStateError, match="state 'sent'"):
            captured[0].create_bucket("late")


class TestBatchAggregate:
    async def test_aggregate(self, make_client) -> None:
        server = BatchServer(
            max_requests=2,
            statuses={
                "/buckets/default/collections/articles/records/r1": 404,
                "/buckets/default/collections/articles/records/r2": 412,
                "/buckets/default/collections/articles/records/r3": 403,
            },
        )
        client = make_client(server)
        result = await client.batch(_records(5), collection="articles", aggregate=True)
        assert isinstance(result, AggregateResult)
        assert result.published == [{"data": {"id": "r0"}}, {"data": {"id": "r4"}}]
        assert result.skipped == [{"data": {"id": "r1"}}]
        assert len(result.conflicts) == 1
        assert result.conflicts[0].local == {"data": {"id": "r2"}}
        assert result.conflicts[0].remote is None
        assert [error.path for error in result.errors] == [
            "/buckets/default/collections/articles/records/r3"
        ]
