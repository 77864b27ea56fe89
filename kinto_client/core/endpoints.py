"""Server endpoint paths.

Paths are relative to the remote root, e.g. ``/buckets/blog/collections``.
"""

from __future__ import annotations


def root() -> str:
    return "/"


def batch() -> str:
    return "/batch"


def permissions() -> str:
    return "/permissions"


def bucket(bucket: str | None = None) -> str:
    return "/buckets" + (f"/{bucket}" if bucket else "")


def group(bucket_id: str, group_id: str | None = None) -> str:
    return f"{bucket(bucket_id)}/groups" + (f"/{group_id}" if group_id else "")


def collection(bucket_id: str, collection_id: str | None = None) -> str:
    return f"{bucket(bucket_id)}/collections" + (f"/{collection_id}" if collection_id else "")


def record(bucket_id: str, collection_id: str, record_id: str | None = None) -> str:
    return f"{collection(bucket_id, collection_id)}/records" + (
        f"/{record_id}" if record_id else ""
    )


def attachment(bucket_id: str, collection_id: str, record_id: str) -> str:
    return f"{record(bucket_id, collection_id, record_id)}/attachment"
