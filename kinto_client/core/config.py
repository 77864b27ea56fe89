"""Client configuration and per-call request options.

ClientConfig is a Pydantic model for type-safe client config. RequestOptions
carries the options resolved for a single call: client defaults merged with
per-call overrides.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, Field, field_validator

from kinto_client.core.exceptions import InvalidRemoteError
from kinto_client.core.requests import merge_headers

SUPPORTED_PROTOCOL_VERSION = "v1"

_VERSION_PATTERN = re.compile(r"/(v\d+)/?$")


class ClientConfig(BaseModel):
    """Configuration for a KintoClient instance."""

    remote: str
    headers: dict[str, str] = {}
    safe: bool = False
    retry: int = Field(default=0, ge=0)
    bucket: str = "default"
    timeout: float | None = None

    @field_validator("remote")
    @classmethod
    def _check_remote(cls, value: str) -> str:
        if not value:
            raise InvalidRemoteError(f"Invalid remote URL: {value!r}")
        value = value.rstrip("/")
        match = _VERSION_PATTERN.search(value)
        if match is None:
            raise InvalidRemoteError(f"The remote URL must contain the version: {value}")
        if match.group(1) != SUPPORTED_PROTOCOL_VERSION:
            raise InvalidRemoteError(f"Unsupported protocol version: {match.group(1)}")
        return value

    @property
    def version(self) -> str:
        """Protocol version extracted from the remote URL, eg. ``v1``."""
        match = _VERSION_PATTERN.search(self.remote)
        if match is None:
            raise InvalidRemoteError(f"The remote URL must contain the version: {self.remote}")
        return match.group(1)

    def defaults(self) -> RequestOptions:
        """Request options every call starts from."""
        return RequestOptions(
            headers=dict(self.headers),
            safe=self.safe,
            retry=self.retry,
            bucket=self.bucket,
        )


class RequestOptions(BaseModel):
    """Options resolved for one request.

    Headers are merged rather than overridden; every other option is replaced
    by the per-call value when one is given.
    """

    model_config = {"frozen": True}

    headers: dict[str, str] = {}
    safe: bool = False
    retry: int = Field(default=0, ge=0)
    last_modified: int | None = None
    patch: bool = False
    bucket: str = "default"
    collection: str | None = None
    aggregate: bool = False

    def merge(self, **overrides: Any) -> RequestOptions:
        """Return a copy updated with the non-None ``overrides``."""
        update = {key: value for key, value in overrides.items() if value is not None}
        if "headers" in update:
            update["headers"] = merge_headers(self.headers, update["headers"])
        return self.model_validate({**self.model_dump(), **update})
