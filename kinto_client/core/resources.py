"""Resource-level request factory.

Maps each write operation on buckets, collections, groups and records to a
RequestDescriptor, resolving paths and options. The client executes what
the factory builds; a Batch stacks it instead.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from kinto_client.core import endpoints
from kinto_client.core.config import RequestOptions
from kinto_client.core.enums import PermissionOperation
from kinto_client.core.exceptions import MissingIdentifierError, NestedBatchError
from kinto_client.core.requests import (
    RequestDescriptor,
    create_request,
    delete_request,
    json_patch_permissions_request,
    require_id,
    to_data_body,
    update_request,
)

Resource = str | Mapping[str, Any]


def _last_modified(resource: Resource, explicit: int | None) -> int | None:
    if explicit is not None:
        return explicit
    if isinstance(resource, Mapping):
        return resource.get("last_modified")
    return None


class RequestFactory:
    """Builds descriptors for resource operations under a set of options.

    Every method accepts per-call overrides which are merged on top of
    ``options``; headers are merged by case-insensitive name, per-call headers winning.
    """

    is_batch = False

    def __init__(self, options: RequestOptions) -> None:
        self.options = options

    def _emit(self, request: RequestDescriptor) -> RequestDescriptor:
        return request

    def _resolve(self, **overrides: Any) -> RequestOptions:
        return self.options.merge(**overrides)

    def _collection(self, opts: RequestOptions) -> str:
        if not opts.collection:
            raise MissingIdentifierError("collection")
        return opts.collection

    def batch(self, describe: Callable[[Any], Any]) -> list[RequestDescriptor]:
        """Collect the operations ``describe`` performs on a batch context.

        The context shares this factory's options. Nothing is sent; the
        collected descriptors are returned in call order.

        Raises:
            NestedBatchError: If called on a batch context.
        """
        if self.is_batch:
            raise NestedBatchError()
        from kinto_client.core.batch import Batch

        buffer: list[RequestDescriptor] = []
        context = Batch(self.options, buffer)
        try:
            describe(context)
        finally:
            context.seal()
        return buffer

    # --- Buckets ---

    def create_bucket(
        self,
        bucket_id: str | None = None,
        *,
        data: Mapping[str, Any] | None = None,
        permissions: Mapping[str, list[str]] | None = None,
        safe: bool | None = None,
        last_modified: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RequestDescriptor:
        opts = self._resolve(safe=safe, last_modified=last_modified, headers=headers)
        payload = dict(data or {})
        if bucket_id:
            payload["id"] = bucket_id
        return self._emit(
            create_request(
                endpoints.bucket(payload.get("id")),
                payload,
                permissions,
                headers=opts.headers,
                safe=opts.safe,
                last_modified=opts.last_modified,
            )
        )

    def update_bucket(
        self,
        bucket: Mapping[str, Any],
        *,
        permissions: Mapping[str, list[str]] | None = None,
        safe: bool | None = None,
        patch: bool | None = None,
        last_modified: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RequestDescriptor:
        bucket_id = require_id(bucket, "bucket")
        opts = self._resolve(safe=safe, patch=patch, last_modified=last_modified, headers=headers)
        return self._emit(
            update_request(
                endpoints.bucket(bucket_id),
                to_data_body(bucket),
                permissions,
                headers=opts.headers,
                safe=opts.safe,
                patch=opts.patch,
                last_modified=opts.last_modified,
            )
        )

    def delete_bucket(
        self,
        bucket: Resource,
        *,
        safe: bool | None = None,
        last_modified: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RequestDescriptor:
        bucket_id = require_id(bucket, "bucket")
        opts = self._resolve(safe=safe, headers=headers)
        return self._emit(
            delete_request(
                endpoints.bucket(bucket_id),
                headers=opts.headers,
                safe=opts.safe,
                last_modified=_last_modified(bucket, last_modified),
            )
        )

    def delete_buckets(
        self,
        *,
        safe: bool | None = None,
        last_modified: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RequestDescriptor:
        opts = self._resolve(safe=safe, headers=headers)
        return self._emit(
            delete_request(
                endpoints.bucket(),
                headers=opts.headers,
                safe=opts.safe,
                last_modified=last_modified,
            )
        )

    def set_bucket_permissions(
        self,
        permissions: Mapping[str, list[str]],
        *,
        bucket: str | None = None,
        safe: bool | None = None,
        last_modified: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RequestDescriptor:
        """Replace every permission of the bucket, leaving its data untouched."""
        opts = self._resolve(bucket=bucket, safe=safe, last_modified=last_modified, headers=headers)
        return self._emit(
            update_request(
                endpoints.bucket(opts.bucket),
                None,
                permissions,
                headers=opts.headers,
                safe=opts.safe,
                last_modified=opts.last_modified,
            )
        )

    def patch_bucket_permissions(
        self,
        permissions: Mapping[str, list[str]],
        operation: PermissionOperation | str,
        *,
        bucket: str | None = None,
        safe: bool | None = None,
        last_modified: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RequestDescriptor:
        opts = self._resolve(bucket=bucket, safe=safe, last_modified=last_modified, headers=headers)
        return self._emit(
            json_patch_permissions_request(
                endpoints.bucket(opts.bucket),
                permissions,
                operation,
                headers=opts.headers,
                safe=opts.safe,
                last_modified=opts.last_modified,
            )
        )

    # --- Collections ---

    def create_collection(
        self,
        collection_id: str | None = None,
        *,
        bucket: str | None = None,
        data: Mapping[str, Any] | None = None,
        permissions: Mapping[str, list[str]] | None = None,
        safe: bool | None = None,
        last_modified: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RequestDescriptor:
        opts = self._resolve(
            bucket=bucket, safe=safe, last_modified=last_modified, headers=headers
        )
        payload = dict(data or {})
        if collection_id:
            payload["id"] = collection_id
        return self._emit(
            create_request(
                endpoints.collection(opts.bucket, payload.get("id")),
                payload,
                permissions,
                headers=opts.headers,
                safe=opts.safe,
                last_modified=opts.last_modified,
            )
        )

    def update_collection(
        self,
        collection: Mapping[str, Any],
        *,
        bucket: str | None = None,
        permissions: Mapping[str, list[str]] | None = None,
        safe: bool | None = None,
        patch: bool | None = None,
        last_modified: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RequestDescriptor:
        collection_id = require_id(collection, "collection")
        opts = self._resolve(
            bucket=bucket, safe=safe, patch=patch, last_modified=last_modified, headers=headers
        )
        return self._emit(
            update_request(
                endpoints.collection(opts.bucket, collection_id),
                to_data_body(collection),
                permissions,
                headers=opts.headers,
                safe=opts.safe,
                patch=opts.patch,
                last_modified=opts.last_modified,
            )
        )

    def delete_collection(
        self,
        collection: Resource,
        *,
        bucket: str | None = None,
        safe: bool | None = None,
        last_modified: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RequestDescriptor:
        collection_id = require_id(collection, "collection")
        opts = self._resolve(bucket=bucket, safe=safe, headers=headers)
        return self._emit(
            delete_request(
                endpoints.collection(opts.bucket, collection_id),
                headers=opts.headers,
                safe=opts.safe,
                last_modified=_last_modified(collection, last_modified),
            )
        )

    def set_collection_permissions(
        self,
        collection: Resource,
        permissions: Mapping[str, list[str]],
        *,
        bucket: str | None = None,
        safe: bool | None = None,
        last_modified: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RequestDescriptor:
        """Replace every permission of a collection, leaving its data untouched."""
        collection_id = require_id(collection, "collection")
        opts = self._resolve(bucket=bucket, safe=safe, headers=headers)
        return self._emit(
            update_request(
                endpoints.collection(opts.bucket, collection_id),
                None,
                permissions,
                headers=opts.headers,
                safe=opts.safe,
                last_modified=_last_modified(collection, last_modified),
            )
        )

    def patch_collection_permissions(
        self,
        collection: Resource,
        permissions: Mapping[str, list[str]],
        operation: PermissionOperation | str,
        *,
        bucket: str | None = None,
        safe: bool | None = None,
        last_modified: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RequestDescriptor:
        collection_id = require_id(collection, "collection")
        opts = self._resolve(bucket=bucket, safe=safe, headers=headers)
        return self._emit(
            json_patch_permissions_request(
                endpoints.collection(opts.bucket, collection_id),
                permissions,
                operation,
                headers=opts.headers,
                safe=opts.safe,
                last_modified=_last_modified(collection, last_modified),
            )
        )

    # --- Groups ---

    def create_group(
        self,
        group_id: str,
        members: list[str] | None = None,
        *,
        bucket: str | None = None,
        data: Mapping[str, Any] | None = None,
        permissions: Mapping[str, list[str]] | None = None,
        safe: bool | None = None,
        last_modified: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RequestDescriptor:
        group_id = require_id(group_id, "group")
        opts = self._resolve(
            bucket=bucket, safe=safe, last_modified=last_modified, headers=headers
        )
        payload = {**(data or {}), "id": group_id, "members": list(members or [])}
        return self._emit(
            create_request(
                endpoints.group(opts.bucket, group_id),
                payload,
                permissions,
                headers=opts.headers,
                safe=opts.safe,
                last_modified=opts.last_modified,
            )
        )

    def update_group(
        self,
        group: Mapping[str, Any],
        *,
        bucket: str | None = None,
        permissions: Mapping[str, list[str]] | None = None,
        safe: bool | None = None,
        patch: bool | None = None,
        last_modified: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RequestDescriptor:
        group_id = require_id(group, "group")
        opts = self._resolve(
            bucket=bucket, safe=safe, patch=patch, last_modified=last_modified, headers=headers
        )
        return self._emit(
            update_request(
                endpoints.group(opts.bucket, group_id),
                to_data_body(group),
                permissions,
                headers=opts.headers,
                safe=opts.safe,
                patch=opts.patch,
                last_modified=opts.last_modified,
            )
        )

    def delete_group(
        self,
        group: Resource,
        *,
        bucket: str | None = None,
        safe: bool | None = None,
        last_modified: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RequestDescriptor:
        group_id = require_id(group, "group")
        opts = self._resolve(bucket=bucket, safe=safe, headers=headers)
        return self._emit(
            delete_request(
                endpoints.group(opts.bucket, group_id),
                headers=opts.headers,
                safe=opts.safe,
                last_modified=_last_modified(group, last_modified),
            )
        )

    # --- Records ---

    def create_record(
        self,
        record: Mapping[str, Any],
        *,
        bucket: str | None = None,
        collection: str | None = None,
        permissions: Mapping[str, list[str]] | None = None,
        safe: bool | None = None,
        last_modified: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RequestDescriptor:
        opts = self._resolve(
            bucket=bucket,
            collection=collection,
            safe=safe,
            last_modified=last_modified,
            headers=headers,
        )
        path = endpoints.record(opts.bucket, self._collection(opts), record.get("id"))
        return self._emit(
            create_request(
                path,
                record,
                permissions,
                headers=opts.headers,
                safe=opts.safe,
                last_modified=opts.last_modified,
            )
        )

    def update_record(
        self,
        record: Mapping[str, Any],
        *,
        bucket: str | None = None,
        collection: str | None = None,
        permissions: Mapping[str, list[str]] | None = None,
        safe: bool | None = None,
        patch: bool | None = None,
        last_modified: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RequestDescriptor:
        record_id = require_id(record, "record")
        opts = self._resolve(
            bucket=bucket,
            collection=collection,
            safe=safe,
            patch=patch,
            last_modified=last_modified,
            headers=headers,
        )
        return self._emit(
            update_request(
                endpoints.record(opts.bucket, self._collection(opts), record_id),
                record,
                permissions,
                headers=opts.headers,
                safe=opts.safe,
                patch=opts.patch,
                last_modified=opts.last_modified,
            )
        )

    def delete_record(
        self,
        record: Resource,
        *,
        bucket: str | None = None,
        collection: str | None = None,
        safe: bool | None = None,
        last_modified: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RequestDescriptor:
        record_id = require_id(record, "record")
        opts = self._resolve(bucket=bucket, collection=collection, safe=safe, headers=headers)
        return self._emit(
            delete_request(
                endpoints.record(opts.bucket, self._collection(opts), record_id),
                headers=opts.headers,
                safe=opts.safe,
                last_modified=_last_modified(record, last_modified),
            )
        )

    def patch_record_permissions(
        self,
        record: Resource,
        permissions: Mapping[str, list[str]],
        operation: PermissionOperation | str,
        *,
        bucket: str | None = None,
        collection: str | None = None,
        safe: bool | None = None,
        last_modified: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RequestDescriptor:
        record_id = require_id(record, "record")
        opts = self._resolve(bucket=bucket, collection=collection, safe=safe, headers=headers)
        return self._emit(
            json_patch_permissions_request(
                endpoints.record(opts.bucket, self._collection(opts), record_id),
                permissions,
                operation,
                headers=opts.headers,
                safe=opts.safe,
                last_modified=_last_modified(record, last_modified),
            )
        )

    def delete_attachment(
        self,
        record: Resource,
        *,
        bucket: str | None = None,
        collection: str | None = None,
        safe: bool | None = None,
        last_modified: int | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> RequestDescriptor:
        record_id = require_id(record, "record")
        opts = self._resolve(bucket=bucket, collection=collection, safe=safe, headers=headers)
        return self._emit(
            delete_request(
                endpoints.attachment(opts.bucket, self._collection(opts), record_id),
                headers=opts.headers,
                safe=opts.safe,
                last_modified=_last_modified(record, last_modified),
            )
        )
