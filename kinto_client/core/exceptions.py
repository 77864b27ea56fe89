"""kinto_client exception hierarchy.

All exceptions are kinto_client-specific. Raw httpx and json exceptions are
never exposed to callers; they are chained as ``__cause__``.
"""

from __future__ import annotations

from typing import Any

# Server error codes (``errno`` field of an error response body).
ERROR_CODES: dict[int, str] = {
    104: "Missing Authorization Token",
    105: "Invalid Authorization Token",
    106: "Request body was not valid JSON",
    107: "Invalid request parameter",
    108: "Missing request parameter",
    109: "Invalid posted data",
    110: "Invalid Token / id",
    111: "Missing Token / id",
    112: "Content-Length header was not provided",
    113: "Request body too large",
    114: "Resource was created, updated or deleted meanwhile",
    115: "Method not allowed on this end point (hint: server may be readonly)",
    116: "Requested version not available on this server",
    117: "Client has sent too many requests",
    121: "Resource access is forbidden for this user",
    122: "Another resource violates constraint",
    201: "Service Temporary unavailable due to high load",
    202: "Service deprecated",
    999: "Internal Server Error",
}


class KintoError(Exception):
    """Base exception for all kinto_client errors."""


# --- Validation ---


class ValidationError(KintoError):
    """Raised on malformed caller input. Never retried."""


class MissingIdentifierError(ValidationError):
    """Raised when a resource id is neither passed explicitly nor in the payload."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"A {kind} id is required.")


class InvalidSinceError(ValidationError):
    """Raised when ``since`` is not an opaque ETag string."""

    def __init__(self, since: Any) -> None:
        self.since = since
        super().__init__(f"Invalid value for since ({since!r}), should be ETag value.")


class AggregateLengthMismatchError(ValidationError):
    """Raised when batch responses and requests cannot be paired by position."""

    def __init__(self, responses: int, requests: int) -> None:
        self.responses = responses
        self.requests = requests
        super().__init__(
            f"Responses length should match requests one ({responses} != {requests})."
        )


class InvalidRemoteError(ValidationError):
    """Raised when the remote URL is missing or carries an unsupported version."""


# --- Batch ---


class BatchStateError(KintoError):
    """Raised on invalid batch state transitions."""

    def __init__(self, current_state: str, attempted_action: str) -> None:
        self.current_state = current_state
        self.attempted_action = attempted_action
        super().__init__(f"Cannot {attempted_action} batch in state '{current_state}'")


class NestedBatchError(BatchStateError):
    """Raised when ``batch()`` is invoked from inside a batch."""

    def __init__(self) -> None:
        self.current_state = "collecting"
        self.attempted_action = "nest"
        KintoError.__init__(self, "Can't use batch within a batch!")


# --- Transport ---


class TransportError(KintoError):
    """Base for errors raised while performing an HTTP round trip."""


class NetworkError(TransportError):
    """Raised when the request could not reach the server."""

    def __init__(self, url: str, detail: str) -> None:
        self.url = url
        super().__init__(f"Network error for {url}: {detail}")


class NetworkTimeoutError(NetworkError):
    """Raised when no response arrives within the configured timeout."""

    def __init__(self, url: str, headers: dict[str, str], timeout: float | None) -> None:
        self.headers = headers
        self.timeout = timeout
        super().__init__(url, f"timed out after {timeout}s")


class UnparseableResponseError(TransportError):
    """Raised when a non-empty response body is not valid JSON."""

    def __init__(self, status: int, body: str, error: Exception) -> None:
        self.status = status
        self.body = body
        self.error = error
        super().__init__(
            f"Response from server unparseable (HTTP {status or 0}; {error}): {body}"
        )


class ServerResponseError(TransportError):
    """Raised on a >=400 response from the server.

    ``data`` holds the decoded JSON body, or None when the server sent an
    empty body.
    """

    def __init__(self, status: int, reason: str, data: Any) -> None:
        self.status = status
        self.reason = reason
        self.data = data
        super().__init__(_server_message(status, reason, data))


def _server_message(status: int, reason: str, data: Any) -> str:
    body = data if isinstance(data, dict) else {}
    message = f"HTTP {status} {body.get('error') or ''}: "
    errno = body.get("errno")
    if errno in ERROR_CODES:
        errno_message = ERROR_CODES[errno]
        message += errno_message
        if body.get("message") and body["message"] != errno_message:
            message += f" ({body['message']})"
    else:
        message += reason or ""
    return message.strip()


# --- Pagination ---


class PaginationError(KintoError):
    """Base for pagination errors."""


class PaginationExhaustedError(PaginationError):
    """Raised when ``next()`` is called past the last page. Terminal."""

    def __init__(self) -> None:
        super().__init__("Pagination exhausted.")


# --- Capabilities ---


class CapabilityError(KintoError):
    """Raised when the server lacks a capability an operation needs."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"Required capabilities {missing} not present on server")
