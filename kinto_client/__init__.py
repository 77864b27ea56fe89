"""kinto_client - asynchronous batching client for the Kinto storage API."""

from __future__ import annotations

from kinto_client.core.batch import Batch, partition
from kinto_client.core.client import KintoClient
from kinto_client.core.config import ClientConfig, RequestOptions
from kinto_client.core.enums import HttpMethod, PermissionOperation
from kinto_client.core.exceptions import (
    ERROR_CODES,
    AggregateLengthMismatchError,
    BatchStateError,
    CapabilityError,
    InvalidRemoteError,
    InvalidSinceError,
    KintoError,
    MissingIdentifierError,
    NestedBatchError,
    NetworkError,
    NetworkTimeoutError,
    PaginationError,
    PaginationExhaustedError,
    ServerResponseError,
    TransportError,
    UnparseableResponseError,
    ValidationError,
)
from kinto_client.core.http import HTTP, HttpResponse
from kinto_client.core.observers import BaseObserver, TransportObserver
from kinto_client.core.pagination import PageResult, Paginator
from kinto_client.core.requests import (
    Multipart,
    RequestDescriptor,
    add_attachment_request,
    create_request,
    delete_request,
    json_patch_permissions_request,
    safe_header,
    update_request,
)
from kinto_client.core.resources import RequestFactory
from kinto_client.result import AggregateResult, Conflict, FailedRequest, SubResponse, aggregate

__all__ = [
    # Client
    "KintoClient",
    "ClientConfig",
    "RequestOptions",
    # Transport
    "HTTP",
    "HttpResponse",
    "TransportObserver",
    "BaseObserver",
    # Requests
    "RequestDescriptor",
    "Multipart",
    "RequestFactory",
    "create_request",
    "update_request",
    "delete_request",
    "json_patch_permissions_request",
    "add_attachment_request",
    "safe_header",
    # Batch
    "Batch",
    "partition",
    "aggregate",
    "AggregateResult",
    "Conflict",
    "FailedRequest",
    "SubResponse",
    # Pagination
    "PageResult",
    "Paginator",
    # Enums
    "HttpMethod",
    "PermissionOperation",
    # Exceptions
    "ERROR_CODES",
    "KintoError",
    "ValidationError",
    "MissingIdentifierError",
    "InvalidSinceError",
    "AggregateLengthMismatchError",
    "InvalidRemoteError",
    "BatchStateError",
    "NestedBatchError",
    "TransportError",
    "NetworkError",
    "NetworkTimeoutError",
    "UnparseableResponseError",
    "ServerResponseError",
    "PaginationError",
    "PaginationExhaustedError",
    "CapabilityError",
]
