"""Protocol enumerations."""

from __future__ import annotations

from enum import Enum


class HttpMethod(Enum):
    """HTTP methods accepted by the server and its batch endpoint."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"


class PermissionOperation(Enum):
    """JSON-Patch operations applicable to a permissions object."""

    ADD = "add"
    REMOVE = "remove"
