"""
Example 01: Basic Requests

This example demonstrates single requests with KintoClient: creating a bucket,
a collection and records, reading them back and deleting them with
optimistic concurrency control.

Expects a server at $KINTO_SERVER (default: http://localhost:8888/v1).
"""

import asyncio
import os

from kinto_client import KintoClient, ServerResponseError

SERVER = os.environ.get("KINTO_SERVER", "http://localhost:8888/v1")


async def main():
    async with KintoClient.from_url(
        SERVER,
        headers={"Authorization": "Basic dXNlcjpwYXNz"},
        bucket="example-blog",
    ) as client:
        print("=== Basic Requests ===\n")

        info = await client.fetch_server_info()
        print(f"Server API version: {info.get('http_api_version')}\n")

        await client.create_bucket("example-blog")
        await client.create_collection("articles")

        # Safe create: only succeeds if the record does not exist yet
        created = await client.create_record(
            {"id": "hello", "title": "Hello world"}, collection="articles", safe=True
        )
        record = created["data"]
        print(f"Created: {record}")

        try:
            await client.create_record(
                {"id": "hello", "title": "Overwrite?"}, collection="articles", safe=True
            )
        except ServerResponseError as e:
            print(f"Second safe create rejected: {e}\n")

        # Safe update: If-Match on the version we last saw
        record["title"] = "Hello again"
        updated = await client.update_record(record, collection="articles", safe=True)
        print(f"Updated: {updated['data']}")

        total = await client.get_total_records("articles")
        print(f"Total records: {total}\n")

        await client.delete_record(updated["data"], collection="articles", safe=True)
        await client.delete_bucket("example-blog")
        print("Cleaned up.")


if __name__ == "__main__":
    asyncio.run(main())
