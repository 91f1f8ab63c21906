#!/usr/bin/env uv run
# /// script
# requires-python = ">=3.9"
# dependencies = [
#     "swcache[sqlite]",
# ]
#
# [tool.uv.sources]
# swcache = { path = "../", editable = true }
# ///

import asyncio

import anysqlite
import httpx

import swcache


async def main() -> None:
    store = swcache.AsyncSQLiteCacheStore(connection=await anysqlite.connect(":memory:"))
    options = swcache.WorkerOptions(origin="https://www.example.com", precache_assets=["/"])

    async with swcache.AsyncServiceWorker(options, store=store) as worker:
        report = await worker.start()
        print(f"Precached: {report.cached}, skipped: {report.skipped}")

        # A new deployment bumps both generations; activation drops the old ones.
        successor = swcache.AsyncServiceWorker(options.bumped(), store=store, transport=worker.transport)
        await successor.install()
        print(f"Deleted: {await successor.activate()}")
        print(f"Generations: {await store.list_generations()}")

        response = await successor.handle_fetch(httpx.Request("GET", "https://www.example.com/"))
        assert response is not None
        print(f"{response.status_code} via {response.extensions['strategy']}")

    await store.aclose()


if __name__ == "__main__":
    asyncio.run(main())
