"""High level client.

The KintoClient resolves request options, executes descriptors through the
HTTP transport, runs batches and walks paginated lists.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any

import httpx

from kinto_client.core import endpoints
from kinto_client.core.batch import Batch, gather_in_order, partition
from kinto_client.core.config import ClientConfig, RequestOptions
from kinto_client.core.enums import HttpMethod, PermissionOperation
from kinto_client.core.exceptions import CapabilityError
from kinto_client.core.http import HTTP, HttpResponse
from kinto_client.core.observers import BaseObserver, TransportObserver
from kinto_client.core.pagination import PageResult, Paginator, build_list_query, total_records
from kinto_client.core.requests import (
    RequestDescriptor,
    add_attachment_request,
    require_id,
    unquote_etag,
)
from kinto_client.core.resources import RequestFactory, Resource
from kinto_client.result.aggregate import aggregate as aggregate_responses
from kinto_client.result.types import AggregateResult, SubResponse

logger = logging.getLogger(__name__)


class _BackoffTracker(BaseObserver):
    """Remembers the last advertised backoff window."""

    def __init__(self) -> None:
        self.release_at = 0.0

    def on_backoff(self, release_at: float) -> None:
        self.release_at = release_at


class KintoClient:
    """Asynchronous client for the storage server.

    Args:
        config: ClientConfig instance.
        observers: Receivers for server advisories (backoff, deprecation,
            retry-after), scoped to this client.
        transport: Optional httpx transport, e.g. ``httpx.MockTransport``.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        observers: Iterable[TransportObserver] = (),
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._options = config.defaults()
        self._server_info: dict[str, Any] | None = None
        self._backoff = _BackoffTracker()
        self.http = HTTP(
            timeout=config.timeout,
            observers=[self._backoff, *observers],
            transport=transport,
        )

    @classmethod
    def from_url(
        cls,
        remote: str,
        *,
        observers: Iterable[TransportObserver] = (),
        transport: httpx.AsyncBaseTransport | None = None,
        **options: Any,
    ) -> KintoClient:
        """Create a KintoClient from a remote URL and ClientConfig options.

        Args:
            remote: Server root URL including the version, e.g. ``http://host/v1``.
            **options: Remaining ClientConfig fields.

        Returns:
            KintoClient instance
        """
        config = ClientConfig(remote=remote, **options)
        return cls(config, observers=observers, transport=transport)

    async def __aenter__(self) -> KintoClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self.http.close()

    @property
    def remote(self) -> str:
        return self.config.remote

    @property
    def version(self) -> str:
        return self.config.version

    @property
    def backoff(self) -> float:
        """Seconds left in the current backoff window, 0 when none is ongoing."""
        remaining = self._backoff.release_at - time.time()
        return remaining if self._backoff.release_at and remaining > 0 else 0.0

    @property
    def options(self) -> RequestOptions:
        return self._options

    def set_headers(self, headers: Mapping[str, str]) -> None:
        """Merge ``headers`` into the client headers sent with every request."""
        self._options = self._options.merge(headers=dict(headers))
        self._server_info = None

    def requests(self, **overrides: Any) -> RequestFactory:
        """Request factory bound to the client options and ``overrides``."""
        return RequestFactory(self._options.merge(**overrides))

    # --- Execution ---

    async def execute(
        self,
        request: RequestDescriptor,
        *,
        retry: int | None = None,
        raw: bool = False,
    ) -> Any:
        """Send one descriptor.

        Returns the decoded JSON body, or the full HttpResponse when ``raw``.
        """
        response = await self.http.request(
            self.remote + request.path,
            method=request.method,
            headers=request.headers,
            body=request.body,
            retry=self._options.retry if retry is None else retry,
        )
        return response if raw else response.json

    async def batch(
        self,
        describe: Callable[[Batch], Any],
        *,
        safe: bool | None = None,
        retry: int | None = None,
        bucket: str | None = None,
        collection: str | None = None,
        headers: Mapping[str, str] | None = None,
        aggregate: bool = False,
    ) -> list[SubResponse] | AggregateResult:
        """Send the operations described by ``describe`` as batch requests.

        ``describe`` is called synchronously with a Batch; the operations it
        records are sent once it returns, chunked according to the server's
        ``batch_max_requests`` setting.

        Returns:
            The sub-responses in submission order, or an AggregateResult
            when ``aggregate`` is set.
        """
        options = self._options.merge(
            safe=safe,
            retry=retry,
            bucket=bucket,
            collection=collection,
            headers=headers,
            aggregate=aggregate,
        )
        buffer = RequestFactory(options).batch(describe)
        responses = await self._batch_requests(buffer, options)
        if options.aggregate:
            return aggregate_responses(responses, buffer)
        return responses

    async def _batch_requests(
        self,
        requests: list[RequestDescriptor],
        options: RequestOptions,
    ) -> list[SubResponse]:
        if not requests:
            return []
        settings = await self.fetch_server_settings(retry=options.retry)
        chunks = partition(requests, settings.get("batch_max_requests"))
        logger.debug("Sending %d batch requests in %d chunk(s)", len(requests), len(chunks))
        results = await gather_in_order(self._send_chunk(chunk, options) for chunk in chunks)
        return [response for chunk_responses in results for response in chunk_responses]

    async def _send_chunk(
        self,
        chunk: list[RequestDescriptor],
        options: RequestOptions,
    ) -> list[SubResponse]:
        body = {
            "defaults": {"headers": options.headers},
            "requests": [request.to_dict() for request in chunk],
        }
        payload = await self.execute(
            RequestDescriptor(
                method=HttpMethod.POST,
                path=endpoints.batch(),
                headers=options.headers,
                body=body,
            ),
            retry=options.retry,
        )
        return [SubResponse.from_dict(response) for response in payload["responses"]]

    # --- Server information ---

    async def _get_hello(
        self,
        *,
        headers: Mapping[str, str] | None = None,
        retry: int | None = None,
    ) -> dict[str, Any]:
        opts = self._options.merge(headers=headers, retry=retry)
        response = await self.http.request(
            self.remote + endpoints.root(), headers=opts.headers, retry=opts.retry
        )
        return response.json or {}

    async def fetch_server_info(self, *, retry: int | None = None) -> dict[str, Any]:
        """Server hello document, fetched once per client."""
        if self._server_info is None:
            self._server_info = await self._get_hello(retry=retry)
        return self._server_info

    async def fetch_server_settings(self, *, retry: int | None = None) -> dict[str, Any]:
        info = await self.fetch_server_info(retry=retry)
        return info.get("settings") or {}

    async def fetch_server_capabilities(self, *, retry: int | None = None) -> dict[str, Any]:
        info = await self.fetch_server_info(retry=retry)
        return info.get("capabilities") or {}

    async def fetch_http_api_version(self, *, retry: int | None = None) -> str | None:
        info = await self.fetch_server_info(retry=retry)
        return info.get("http_api_version")

    async def fetch_user(
        self,
        *,
        headers: Mapping[str, str] | None = None,
        retry: int | None = None,
    ) -> dict[str, Any] | None:
        """Authenticated user as seen by the server; never cached."""
        hello = await self._get_hello(headers=headers, retry=retry)
        return hello.get("user")

    async def _require_capabilities(self, *names: str) -> None:
        capabilities = await self.fetch_server_capabilities()
        missing = [name for name in names if name not in capabilities]
        if missing:
            raise CapabilityError(missing)

    # --- Pagination ---

    async def paginated_list(
        self,
        path: str,
        *,
        sort: str = "-last_modified",
        filters: Mapping[str, Any] | None = None,
        limit: int | None = None,
        pages: int | float | None = None,
        since: str | None = None,
        fields: list[str] | None = None,
        headers: Mapping[str, str] | None = None,
        retry: int | None = None,
    ) -> PageResult:
        """Fetch one or more pages from a list endpoint.

        Args:
            pages: Number of pages to aggregate. None fetches a single page;
                ``math.inf`` follows every continuation.
            since: ETag from which to list changes.
        """
        query = build_list_query(
            sort=sort, filters=filters, limit=limit, since=since, fields=fields
        )
        opts = self._options.merge(headers=headers, retry=retry)
        paginator = Paginator(self.http, headers=opts.headers, retry=opts.retry, pages=pages)
        return await paginator.walk(f"{self.remote}{path}?{query}")

    async def _read(
        self,
        path: str,
        *,
        method: HttpMethod = HttpMethod.GET,
        headers: Mapping[str, str] | None = None,
        retry: int | None = None,
        raw: bool = False,
    ) -> Any:
        opts = self._options.merge(headers=headers)
        return await self.execute(
            RequestDescriptor(method=method, path=path, headers=opts.headers),
            retry=retry,
            raw=raw,
        )

    # --- Buckets ---

    async def list_buckets(self, **params: Any) -> PageResult:
        return await self.paginated_list(endpoints.bucket(), **params)

    async def get_bucket(
        self,
        bucket_id: str | None = None,
        *,
        headers: Mapping[str, str] | None = None,
        retry: int | None = None,
    ) -> Any:
        """Fetch a bucket, the client default one when ``bucket_id`` is None."""
        path = endpoints.bucket(bucket_id or self._options.bucket)
        return await self._read(path, headers=headers, retry=retry)

    async def create_bucket(self, bucket_id: str | None = None, **kwargs: Any) -> Any:
        retry = kwargs.pop("retry", None)
        return await self.execute(self.requests().create_bucket(bucket_id, **kwargs), retry=retry)

    async def update_bucket(self, bucket: Mapping[str, Any], **kwargs: Any) -> Any:
        retry = kwargs.pop("retry", None)
        return await self.execute(self.requests().update_bucket(bucket, **kwargs), retry=retry)

    async def delete_bucket(self, bucket: Resource, **kwargs: Any) -> Any:
        retry = kwargs.pop("retry", None)
        return await self.execute(self.requests().delete_bucket(bucket, **kwargs), retry=retry)

    async def delete_buckets(self, **kwargs: Any) -> Any:
        """Delete every bucket the current user can write to."""
        retry = kwargs.pop("retry", None)
        return await self.execute(self.requests().delete_buckets(**kwargs), retry=retry)

    async def get_bucket_permissions(
        self,
        bucket_id: str | None = None,
        *,
        headers: Mapping[str, str] | None = None,
        retry: int | None = None,
    ) -> dict[str, list[str]]:
        body = await self.get_bucket(bucket_id, headers=headers, retry=retry)
        return (body or {}).get("permissions") or {}

    async def set_bucket_permissions(
        self, permissions: Mapping[str, list[str]], **kwargs: Any
    ) -> Any:
        """Replace the bucket permissions with ``permissions``."""
        retry = kwargs.pop("retry", None)
        request = self.requests().set_bucket_permissions(permissions, **kwargs)
        return await self.execute(request, retry=retry)

    async def add_bucket_permissions(
        self, permissions: Mapping[str, list[str]], **kwargs: Any
    ) -> Any:
        retry = kwargs.pop("retry", None)
        request = self.requests().patch_bucket_permissions(
            permissions, PermissionOperation.ADD, **kwargs
        )
        return await self.execute(request, retry=retry)

    async def remove_bucket_permissions(
        self, permissions: Mapping[str, list[str]], **kwargs: Any
    ) -> Any:
        retry = kwargs.pop("retry", None)
        request = self.requests().patch_bucket_permissions(
            permissions, PermissionOperation.REMOVE, **kwargs
        )
        return await self.execute(request, retry=retry)

    # --- Groups ---

    async def list_groups(self, bucket: str | None = None, **params: Any) -> PageResult:
        return await self.paginated_list(endpoints.group(bucket or self._options.bucket), **params)

    async def get_group(
        self,
        group_id: str,
        *,
        bucket: str | None = None,
        headers: Mapping[str, str] | None = None,
        retry: int | None = None,
    ) -> Any:
        group_id = require_id(group_id, "group")
        path = endpoints.group(bucket or self._options.bucket, group_id)
        return await self._read(path, headers=headers, retry=retry)

    async def create_group(
        self, group_id: str, members: list[str] | None = None, **kwargs: Any
    ) -> Any:
        retry = kwargs.pop("retry", None)
        request = self.requests().create_group(group_id, members, **kwargs)
        return await self.execute(request, retry=retry)

    async def update_group(self, group: Mapping[str, Any], **kwargs: Any) -> Any:
        retry = kwargs.pop("retry", None)
        return await self.execute(self.requests().update_group(group, **kwargs), retry=retry)

    async def delete_group(self, group: Resource, **kwargs: Any) -> Any:
        retry = kwargs.pop("retry", None)
        return await self.execute(self.requests().delete_group(group, **kwargs), retry=retry)

    # --- Collections ---

    async def list_collections(self, bucket: str | None = None, **params: Any) -> PageResult:
        return await self.paginated_list(
            endpoints.collection(bucket or self._options.bucket), **params
        )

    async def get_collection(
        self,
        collection_id: str,
        *,
        bucket: str | None = None,
        headers: Mapping[str, str] | None = None,
        retry: int | None = None,
    ) -> Any:
        collection_id = require_id(collection_id, "collection")
        path = endpoints.collection(bucket or self._options.bucket, collection_id)
        return await self._read(path, headers=headers, retry=retry)

    async def create_collection(self, collection_id: str | None = None, **kwargs: Any) -> Any:
        retry = kwargs.pop("retry", None)
        return await self.execute(
            self.requests().create_collection(collection_id, **kwargs), retry=retry
        )

    async def update_collection(self, collection: Mapping[str, Any], **kwargs: Any) -> Any:
        retry = kwargs.pop("retry", None)
        return await self.execute(
            self.requests().update_collection(collection, **kwargs), retry=retry
        )

    async def delete_collection(self, collection: Resource, **kwargs: Any) -> Any:
        retry = kwargs.pop("retry", None)
        return await self.execute(
            self.requests().delete_collection(collection, **kwargs), retry=retry
        )

    async def get_collection_permissions(
        self,
        collection_id: str,
        *,
        bucket: str | None = None,
        headers: Mapping[str, str] | None = None,
        retry: int | None = None,
    ) -> dict[str, list[str]]:
        body = await self.get_collection(collection_id, bucket=bucket, headers=headers, retry=retry)
        return (body or {}).get("permissions") or {}

    async def set_collection_permissions(
        self, collection: Resource, permissions: Mapping[str, list[str]], **kwargs: Any
    ) -> Any:
        """Replace the permissions of ``collection`` with ``permissions``."""
        retry = kwargs.pop("retry", None)
        request = self.requests().set_collection_permissions(collection, permissions, **kwargs)
        return await self.execute(request, retry=retry)

    async def add_collection_permissions(
        self, collection: Resource, permissions: Mapping[str, list[str]], **kwargs: Any
    ) -> Any:
        retry = kwargs.pop("retry", None)
        request = self.requests().patch_collection_permissions(
            collection, permissions, PermissionOperation.ADD, **kwargs
        )
        return await self.execute(request, retry=retry)

    async def remove_collection_permissions(
        self, collection: Resource, permissions: Mapping[str, list[str]], **kwargs: Any
    ) -> Any:
        retry = kwargs.pop("retry", None)
        request = self.requests().patch_collection_permissions(
            collection, permissions, PermissionOperation.REMOVE, **kwargs
        )
        return await self.execute(request, retry=retry)

    # --- Records ---

    async def list_records(
        self,
        collection: str,
        *,
        bucket: str | None = None,
        **params: Any,
    ) -> PageResult:
        path = endpoints.record(bucket or self._options.bucket, collection)
        return await self.paginated_list(path, **params)

    async def get_record(
        self,
        record_id: str,
        collection: str,
        *,
        bucket: str | None = None,
        headers: Mapping[str, str] | None = None,
        retry: int | None = None,
    ) -> Any:
        record_id = require_id(record_id, "record")
        path = endpoints.record(bucket or self._options.bucket, collection, record_id)
        return await self._read(path, headers=headers, retry=retry)

    async def get_total_records(
        self,
        collection: str,
        *,
        bucket: str | None = None,
        headers: Mapping[str, str] | None = None,
        retry: int | None = None,
    ) -> int:
        """Number of records in a collection, read from ``Total-Records``.

        Raises:
            UnparseableResponseError: If the header is not an integer.
        """
        path = endpoints.record(bucket or self._options.bucket, collection)
        response: HttpResponse = await self._read(
            path, method=HttpMethod.HEAD, headers=headers, retry=retry, raw=True
        )
        return total_records(response) or 0

    async def get_records_timestamp(
        self,
        collection: str,
        *,
        bucket: str | None = None,
        headers: Mapping[str, str] | None = None,
        retry: int | None = None,
    ) -> str | None:
        """Current collection timestamp, unquoted; None for an empty collection."""
        path = endpoints.record(bucket or self._options.bucket, collection)
        response: HttpResponse = await self._read(
            path, method=HttpMethod.HEAD, headers=headers, retry=retry, raw=True
        )
        etag = response.headers.get("ETag")
        return unquote_etag(etag) if etag else None

    async def create_record(self, record: Mapping[str, Any], **kwargs: Any) -> Any:
        retry = kwargs.pop("retry", None)
        return await self.execute(self.requests().create_record(record, **kwargs), retry=retry)

    async def update_record(self, record: Mapping[str, Any], **kwargs: Any) -> Any:
        retry = kwargs.pop("retry", None)
        return await self.execute(self.requests().update_record(record, **kwargs), retry=retry)

    async def delete_record(self, record: Resource, **kwargs: Any) -> Any:
        retry = kwargs.pop("retry", None)
        return await self.execute(self.requests().delete_record(record, **kwargs), retry=retry)

    async def add_record_permissions(
        self, record: Resource, permissions: Mapping[str, list[str]], **kwargs: Any
    ) -> Any:
        retry = kwargs.pop("retry", None)
        request = self.requests().patch_record_permissions(
            record, permissions, PermissionOperation.ADD, **kwargs
        )
        return await self.execute(request, retry=retry)

    async def remove_record_permissions(
        self, record: Resource, permissions: Mapping[str, list[str]], **kwargs: Any
    ) -> Any:
        retry = kwargs.pop("retry", None)
        request = self.requests().patch_record_permissions(
            record, permissions, PermissionOperation.REMOVE, **kwargs
        )
        return await self.execute(request, retry=retry)

    async def add_attachment(
        self,
        data_uri: str,
        record: Mapping[str, Any],
        collection: str,
        *,
        bucket: str | None = None,
        permissions: Mapping[str, list[str]] | None = None,
        filename: str | None = None,
        safe: bool | None = None,
        last_modified: int | None = None,
        headers: Mapping[str, str] | None = None,
        retry: int | None = None,
    ) -> Any:
        """Upload a base64 data URI as the attachment of ``record``."""
        await self._require_capabilities("attachments")
        record_id = require_id(record, "record")
        opts = self._options.merge(safe=safe, headers=headers)
        request = add_attachment_request(
            endpoints.attachment(bucket or opts.bucket, collection, record_id),
            data_uri,
            record,
            permissions,
            headers=opts.headers,
            safe=opts.safe,
            last_modified=last_modified,
            filename=filename,
        )
        return await self.execute(request, retry=retry)

    async def remove_attachment(self, record: Resource, collection: str, **kwargs: Any) -> Any:
        """Delete the attachment of ``record``, keeping the record itself."""
        await self._require_capabilities("attachments")
        retry = kwargs.pop("retry", None)
        request = self.requests().delete_attachment(record, collection=collection, **kwargs)
        return await self.execute(request, retry=retry)

    # --- Permissions ---

    async def list_permissions(self, **params: Any) -> PageResult:
        """List every permission the current user holds."""
        await self._require_capabilities("permissions_endpoint")
        # Permission entries have no last_modified field to sort on.
        params.setdefault("sort", "id")
        return await self.paginated_list(endpoints.permissions(), **params)
