#!/usr/bin/env uv run
# /// script
# requires-python = ">=3.9"
# dependencies = [
#     "swcache",
# ]
#
# [tool.uv.sources]
# swcache = { path = "../", editable = true }
# ///

import asyncio

import httpx

import swcache

PAGES = {
    "/": b"<h1>Home</h1>",
    "/events.html": b"<h1>Events</h1>",
    "/styles.css?v=1a2b3c4d": b"body { margin: 0 }",
    "/images/logo.png": b"\x89PNG\r\n\x1a\n",
}
online = True


def site(request: httpx.Request) -> httpx.Response:
    if not online:
        raise httpx.ConnectError("offline", request=request)
    body = PAGES.get(request.url.raw_path.decode("ascii"))
    if body is None:
        return httpx.Response(404)
    return httpx.Response(200, content=body)


async def fetch_and_print(client: httpx.AsyncClient, url: str) -> None:
    response = await client.get(url)
    print(f"\n➡ {url}")
    print(f"📄 Status: {response.status_code}")
    print(f"🧭 Strategy: {response.extensions.get('strategy')}")
    print(f"🔄 From Cache: {response.extensions.get('from_cache')}")


async def main() -> None:
    global online
    network = httpx.MockTransport(site)
    options = swcache.WorkerOptions(
        origin="https://example.org",
        precache_name="site-v1",
        runtime_name="site-runtime-v1",
        precache_assets=["/", "/styles.css?v=1a2b3c4d", "/images/logo.png"],
    )

    async with swcache.AsyncServiceWorkerRegistration() as registration:
        await registration.register(swcache.AsyncServiceWorker(options, transport=network))

        async with swcache.AsyncServiceWorkerClient(registration=registration, transport=network) as client:
            await fetch_and_print(client, "https://example.org/events.html")

            online = False
            for url in ["/", "/events.html", "/styles.css?v=1a2b3c4d", "/images/logo.png", "/about.html"]:
                await fetch_and_print(client, "https://example.org" + url)


if __name__ == "__main__":
    asyncio.run(main())
