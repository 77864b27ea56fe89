"""
Example 03: Pagination

This example demonstrates listing records page by page with next(), and
fetching every page at once with pages=math.inf.

Expects a server at $KINTO_SERVER (default: http://localhost:8888/v1).
"""

import asyncio
import math
import os

from kinto_client import KintoClient, PaginationExhaustedError

SERVER = os.environ.get("KINTO_SERVER", "http://localhost:8888/v1")


async def main():
    async with KintoClient.from_url(
        SERVER,
        headers={"Authorization": "Basic dXNlcjpwYXNz"},
        bucket="example-pages",
    ) as client:
        print("=== Pagination ===\n")

        await client.create_bucket("example-pages")
        await client.create_collection("articles")
        await client.batch(
            lambda batch: [batch.create_record({"title": f"Article {i}"}) for i in range(7)],
            collection="articles",
        )

        # One page at a time
        page = await client.list_records("articles", limit=3)
        number = 1
        while True:
            print(f"Page {number}: {[record['title'] for record in page.data]}")
            try:
                page = await page.next()
            except PaginationExhaustedError:
                break
            number += 1

        # Everything at once
        everything = await client.list_records("articles", limit=3, pages=math.inf)
        print(f"\nAll pages: {len(everything.data)} records (ETag {everything.last_modified})")

        # Changes since a known ETag
        changes = await client.list_records("articles", since=everything.last_modified)
        print(f"Changes since then: {len(changes.data)}")

        await client.delete_bucket("example-pages")


if __name__ == "__main__":
    asyncio.run(main())
