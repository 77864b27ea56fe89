"""Batch response reduction.

Single pass over positionally-paired responses and requests.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from kinto_client.core.exceptions import AggregateLengthMismatchError
from kinto_client.core.requests import RequestDescriptor
from kinto_client.result.types import AggregateResult, Conflict, FailedRequest, SubResponse


def _as_sub_response(response: SubResponse | Mapping[str, Any]) -> SubResponse:
    if isinstance(response, SubResponse):
        return response
    return SubResponse.from_dict(response)


def _request_body(request: RequestDescriptor | Mapping[str, Any]) -> Any:
    if isinstance(request, RequestDescriptor):
        return request.body
    return request.get("body")


def _existing(body: Any) -> Any:
    """Remote version reported by a 412 body, if any."""
    if not isinstance(body, Mapping):
        return None
    details = body.get("details")
    if not isinstance(details, Mapping):
        return None
    return details.get("existing") or None


def aggregate(
    responses: Sequence[SubResponse | Mapping[str, Any]],
    requests: Sequence[RequestDescriptor | Mapping[str, Any]],
) -> AggregateResult:
    """Categorize batch responses into published, conflicts, skipped and errors.

    Response ``i`` is the answer to request ``i``; relative order is kept
    within each category.

    Raises:
        AggregateLengthMismatchError: If the sequences differ in length.
    """
    if len(responses) != len(requests):
        raise AggregateLengthMismatchError(len(responses), len(requests))

    published: list[Any] = []
    conflicts: list[Conflict] = []
    skipped: list[Any] = []
    errors: list[FailedRequest] = []

    for raw_response, request in zip(responses, requests, strict=True):
        response = _as_sub_response(raw_response)
        status = response.status
        if 200 <= status < 400:
            published.append(response.body)
        elif status == 404:
            skipped.append(response.body)
        elif status == 412:
            conflicts.append(
                Conflict(
                    type="outgoing",
                    local=_request_body(request),
                    remote=_existing(response.body),
                )
            )
        else:
            errors.append(FailedRequest(path=response.path, sent=request, error=response.body))

    return AggregateResult(
        published=published,
        conflicts=conflicts,
        skipped=skipped,
        errors=errors,
    )
