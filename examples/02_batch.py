"""
Example 02: Batches

This example demonstrates batching: operations described inside a batch are
stacked, split into chunks the server accepts and sent concurrently. With
aggregate=True the responses are reduced into published, conflicts, skipped
and errors.

Expects a server at $KINTO_SERVER (default: http://localhost:8888/v1).
"""

import asyncio
import os

from kinto_client import KintoClient

SERVER = os.environ.get("KINTO_SERVER", "http://localhost:8888/v1")


def describe_articles(batch):
    for index in range(30):
        batch.create_record({"id": f"article-{index}", "title": f"Article {index}"})


async def main():
    async with KintoClient.from_url(
        SERVER,
        headers={"Authorization": "Basic dXNlcjpwYXNz"},
        bucket="example-batch",
    ) as client:
        print("=== Batches ===\n")

        await client.create_bucket("example-batch")
        await client.create_collection("articles")

        settings = await client.fetch_server_settings()
        print(f"batch_max_requests: {settings.get('batch_max_requests')}\n")

        result = await client.batch(
            describe_articles, collection="articles", safe=True, aggregate=True
        )
        print(f"First run:  {len(result.published)} published, {len(result.conflicts)} conflicts")

        # Same records again: every safe create now conflicts
        result = await client.batch(
            describe_articles, collection="articles", safe=True, aggregate=True
        )
        print(f"Second run: {len(result.published)} published, {len(result.conflicts)} conflicts")
        conflict = result.conflicts[0]
        print(f"  local:  {conflict.local}")
        print(f"  remote: {conflict.remote}\n")

        # Raw sub-responses, in submission order
        responses = await client.batch(
            lambda batch: [
                batch.delete_record("article-0"),
                batch.delete_record("missing"),
            ],
            collection="articles",
        )
        for response in responses:
            print(f"{response.status} {response.path}")

        await client.delete_bucket("example-batch")


if __name__ == "__main__":
    asyncio.run(main())
