"""Request descriptor builders.

Pure functions turning a logical operation into a declarative
RequestDescriptor. Nothing here touches the network; descriptors are either
sent by the client or stacked into a batch.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import unquote

import httpx

from kinto_client.core.enums import HttpMethod, PermissionOperation
from kinto_client.core.exceptions import MissingIdentifierError, ValidationError

# data:[<mediatype>][;name=<filename>];base64,<payload>
_DATA_URI_PATTERN = re.compile(r"^data:(?P<meta>[^,]*?);base64,(?P<payload>.*)$", re.DOTALL)


@dataclass(frozen=True)
class RequestDescriptor:
    """One HTTP operation, described before it is sent.

    ``path`` is relative to the remote root; the origin is only prepended by
    the client at send time.
    """

    path: str
    method: HttpMethod = HttpMethod.PUT
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize as a subrequest of a composite batch body."""
        request: dict[str, Any] = {
            "method": self.method.value,
            "path": self.path,
            "headers": dict(self.headers),
        }
        if self.body is not None:
            request["body"] = self.body
        return request


@dataclass(frozen=True)
class Multipart:
    """Multipart form payload; the transport lets httpx pick the boundary."""

    fields: dict[str, str] = field(default_factory=dict)
    files: dict[str, tuple[str, bytes, str]] = field(default_factory=dict)


def quote(value: Any) -> str:
    return f'"{value}"'


def unquote_etag(value: str) -> str:
    """Strip the double quotes wrapping an ETag header value."""
    return value.replace('"', "")


def safe_header(safe: bool, last_modified: int | str | None = None) -> dict[str, str]:
    """Build the optimistic-concurrency header for a write.

    ``If-Match`` when the current version is known, ``If-None-Match: *``
    (create only if absent) otherwise.
    """
    if not safe:
        return {}
    if last_modified:
        return {"If-Match": quote(last_modified)}
    return {"If-None-Match": "*"}


def merge_headers(*layers: Mapping[str, str] | None) -> dict[str, str]:
    """Merge header mappings left to right; later layers win on collision.

    Header names compare case-insensitively; the casing of the winning layer
    is kept.
    """
    merged = httpx.Headers()
    for layer in layers:
        if layer:
            merged.update(layer)
    encoding = merged.encoding
    return {key.decode(encoding): value.decode(encoding) for key, value in merged.raw}


def _entity_body(data: Mapping[str, Any] | None, permissions: Any) -> dict[str, Any]:
    body: dict[str, Any] = {}
    if data is not None:
        body["data"] = dict(data)
    if permissions is not None:
        body["permissions"] = permissions
    return body


def require_id(
    resource: str | Mapping[str, Any] | None,
    kind: str,
    explicit_id: str | None = None,
) -> str:
    """Resolve a resource id from an explicit argument or its payload.

    Accepts either a bare id string or a mapping carrying an ``id`` key.

    Raises:
        MissingIdentifierError: If no id can be found.
    """
    if explicit_id:
        return explicit_id
    if isinstance(resource, str) and resource:
        return resource
    if isinstance(resource, Mapping) and resource.get("id"):
        return str(resource["id"])
    raise MissingIdentifierError(kind)


def to_data_body(resource: str | Mapping[str, Any]) -> dict[str, Any]:
    """Normalize an id string or an object into a data mapping."""
    if isinstance(resource, str):
        return {"id": resource}
    return dict(resource)


def create_request(
    path: str,
    data: Mapping[str, Any] | None = None,
    permissions: Any = None,
    *,
    headers: Mapping[str, str] | None = None,
    safe: bool = False,
    last_modified: int | None = None,
) -> RequestDescriptor:
    """Describe a creation; PUT when ``data`` carries an id, POST otherwise.

    A safe create is create-only (``If-None-Match: *``) unless a version is
    known, from ``last_modified`` or the payload, in which case it must match.
    """
    if last_modified is None and data:
        last_modified = data.get("last_modified")
    method = HttpMethod.PUT if data and data.get("id") else HttpMethod.POST
    return RequestDescriptor(
        method=method,
        path=path,
        headers=merge_headers(headers, safe_header(safe, last_modified)),
        body=_entity_body(data, permissions),
    )


def update_request(
    path: str,
    data: Mapping[str, Any] | None = None,
    permissions: Any = None,
    *,
    headers: Mapping[str, str] | None = None,
    safe: bool = False,
    patch: bool = False,
    last_modified: int | None = None,
) -> RequestDescriptor:
    """Describe a full replacement (PUT) or a partial update (PATCH)."""
    if last_modified is None and data:
        last_modified = data.get("last_modified")

    # Only id/last_modified: permissions-only update, leave data untouched.
    if data is not None and not set(data) - {"id", "last_modified"}:
        data = None

    return RequestDescriptor(
        method=HttpMethod.PATCH if patch else HttpMethod.PUT,
        path=path,
        headers=merge_headers(headers, safe_header(safe, last_modified)),
        body=_entity_body(data, permissions),
    )


def delete_request(
    path: str,
    *,
    headers: Mapping[str, str] | None = None,
    safe: bool = False,
    last_modified: int | None = None,
) -> RequestDescriptor:
    """Describe a deletion.

    Raises:
        ValidationError: If ``safe`` is set without a ``last_modified``.
    """
    if safe and not last_modified:
        raise ValidationError("Safe concurrency check requires a last_modified value.")
    return RequestDescriptor(
        method=HttpMethod.DELETE,
        path=path,
        headers=merge_headers(headers, safe_header(safe, last_modified)),
    )


def json_patch_permissions_request(
    path: str,
    permissions: Mapping[str, list[str]],
    operation: PermissionOperation | str,
    *,
    headers: Mapping[str, str] | None = None,
    safe: bool = False,
    last_modified: int | None = None,
) -> RequestDescriptor:
    """Describe adding or removing principals with a JSON-Patch document."""
    op = PermissionOperation(operation).value
    operations = [
        {"op": op, "path": f"/permissions/{permission}/{principal}"}
        for permission, principals in permissions.items()
        for principal in principals
    ]
    return RequestDescriptor(
        method=HttpMethod.PATCH,
        path=path,
        headers=merge_headers(
            headers,
            {"Content-Type": "application/json-patch+json"},
            safe_header(safe, last_modified),
        ),
        body=operations,
    )


def _parse_data_uri(data_uri: str) -> tuple[str, dict[str, str], bytes]:
    match = _DATA_URI_PATTERN.match(data_uri)
    if match is None:
        raise ValidationError("Invalid data URI: expected base64 'data:' URI.")
    mime_type, *raw_params = match.group("meta").split(";")
    params = {}
    for raw in raw_params:
        key, _, value = raw.partition("=")
        params[key] = unquote(value)
    try:
        content = base64.b64decode(match.group("payload"), validate=True)
    except binascii.Error as e:
        raise ValidationError(f"Invalid data URI payload: {e}") from e
    return mime_type or "application/octet-stream", params, content


def add_attachment_request(
    path: str,
    data_uri: str,
    data: Mapping[str, Any] | None = None,
    permissions: Any = None,
    *,
    headers: Mapping[str, str] | None = None,
    safe: bool = False,
    last_modified: int | None = None,
    filename: str | None = None,
) -> RequestDescriptor:
    """Describe an attachment upload from a base64 data URI."""
    if last_modified is None and data:
        last_modified = data.get("last_modified")
    mime_type, params, content = _parse_data_uri(data_uri)
    filename = filename or params.get("name") or "untitled"

    fields = {key: json.dumps(value) for key, value in _entity_body(data, permissions).items()}
    return RequestDescriptor(
        method=HttpMethod.POST,
        path=path,
        headers=merge_headers(headers, safe_header(safe, last_modified)),
        body=Multipart(fields=fields, files={"attachment": (filename, content, mime_type)}),
    )
