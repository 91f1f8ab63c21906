import anyio
import httpx
import pytest

import swcache
from swcache._utils import generate_key

PRECACHE = "site-v1"
RUNTIME = "site-runtime-v1"


def stored(url: str, content: bytes) -> swcache.StoredResponse:
    return swcache.StoredResponse(
        status_code=200, headers=[("Content-Type", "text/plain")], content=content, url=url
    )


@pytest.mark.anyio
async def test_cache_first_fetches_cold_entry_once():
    store = swcache.AsyncInMemoryCacheStore()

    async with swcache.MockAsyncTransport() as network:
        network.add_responses([httpx.Response(200, content=b"X"), httpx.ConnectError("offline")])
        async with swcache.AsyncStrategyExecutor(store, network, PRECACHE, RUNTIME) as executor:
            url = "https://example.org/images/logo.png"

            response = await executor.cache_first(httpx.Request("GET", url))
            assert response.status_code == 200
            assert response.content == b"X"
            assert not response.extensions["from_cache"]

            entry = await store.get(generate_key("GET", url), generation=RUNTIME)
            assert entry is not None
            assert entry.response.content == b"X"

            response = await executor.cache_first(httpx.Request("GET", url))
            assert response.content == b"X"
            assert response.extensions["from_cache"]
            assert response.extensions["cache_generation"] == RUNTIME
            assert len(network.requests) == 1


@pytest.mark.anyio
async def test_cache_first_without_cache_or_network():
    async with swcache.MockAsyncTransport() as network:
        network.add_responses([httpx.ConnectError("offline")])
        async with swcache.AsyncStrategyExecutor(
            swcache.AsyncInMemoryCacheStore(), network, PRECACHE, RUNTIME
        ) as executor:
            response = await executor.cache_first(httpx.Request("GET", "https://example.org/images/a.png"))
            assert response.status_code == 404
            assert response.text == "Asset not available"
            assert response.extensions["synthetic"]


@pytest.mark.anyio
async def test_cache_first_does_not_store_errors():
    store = swcache.AsyncInMemoryCacheStore()

    async with swcache.MockAsyncTransport() as network:
        network.add_responses([httpx.Response(500, content=b"boom"), httpx.Response(200, content=b"ok")])
        async with swcache.AsyncStrategyExecutor(store, network, PRECACHE, RUNTIME) as executor:
            url = "https://example.org/images/a.png"
            response = await executor.cache_first(httpx.Request("GET", url))
            assert response.status_code == 500
            assert await store.get(generate_key("GET", url)) is None

            response = await executor.cache_first(httpx.Request("GET", url))
            assert response.content == b"ok"
            assert len(network.requests) == 2


@pytest.mark.anyio
async def test_network_first_prefers_live_body():
    store = swcache.AsyncInMemoryCacheStore()
    url = "https://example.org/"
    key = generate_key("GET", url)
    await store.put(PRECACHE, key, stored(url, b"OLD"))

    async with swcache.MockAsyncTransport() as network:
        network.add_responses([httpx.Response(200, content=b"NEW")])
        async with swcache.AsyncStrategyExecutor(store, network, PRECACHE, RUNTIME) as executor:
            response = await executor.network_first(httpx.Request("GET", url))

    assert response.content == b"NEW"
    assert not response.extensions["from_cache"]
    entry = await store.get(key, generation=RUNTIME)
    assert entry is not None
    assert entry.response.content == b"NEW"


@pytest.mark.anyio
async def test_network_first_falls_back_to_cache():
    store = swcache.AsyncInMemoryCacheStore()
    url = "https://example.org/events"
    await store.put(PRECACHE, generate_key("GET", url), stored(url, b"cached"))

    async with swcache.MockAsyncTransport() as network:
        network.add_responses([httpx.ConnectTimeout("timed out")])
        async with swcache.AsyncStrategyExecutor(store, network, PRECACHE, RUNTIME) as executor:
            response = await executor.network_first(httpx.Request("GET", url))

    assert response.status_code == 200
    assert response.content == b"cached"
    assert response.extensions["from_cache"]
    assert response.extensions["cache_generation"] == PRECACHE


@pytest.mark.anyio
async def test_network_first_without_cache_or_network():
    async with swcache.MockAsyncTransport() as network:
        network.add_responses([httpx.ConnectError("offline")])
        async with swcache.AsyncStrategyExecutor(
            swcache.AsyncInMemoryCacheStore(), network, PRECACHE, RUNTIME
        ) as executor:
            response = await executor.network_first(httpx.Request("GET", "https://example.org/api/data.json"))

    assert response.status_code == 503
    assert response.text == "Resource not available"
    assert response.headers["Content-Type"].startswith("text/plain")


@pytest.mark.anyio
async def test_network_first_returns_error_responses_without_storing():
    store = swcache.AsyncInMemoryCacheStore()
    url = "https://example.org/missing"
    await store.put(PRECACHE, generate_key("GET", url), stored(url, b"cached"))

    async with swcache.MockAsyncTransport() as network:
        network.add_responses([httpx.Response(404, content=b"gone")])
        async with swcache.AsyncStrategyExecutor(store, network, PRECACHE, RUNTIME) as executor:
            response = await executor.network_first(httpx.Request("GET", url))

    assert response.status_code == 404
    assert response.content == b"gone"
    assert await store.get(generate_key("GET", url), generation=RUNTIME) is None


@pytest.mark.anyio
async def test_stale_while_revalidate_serves_cache_then_refreshes():
    store = swcache.AsyncInMemoryCacheStore()
    url = "https://example.org/styles.css?v=abc"
    key = generate_key("GET", url)
    await store.put(PRECACHE, key, stored(url, b"OLD"))

    async with swcache.MockAsyncTransport() as network:
        network.add_responses([httpx.Response(200, content=b"NEW"), httpx.Response(200, content=b"NEW")])
        async with swcache.AsyncStrategyExecutor(store, network, PRECACHE, RUNTIME) as executor:
            response = await executor.stale_while_revalidate(httpx.Request("GET", url))
            assert response.content == b"OLD"
            assert response.extensions["from_cache"]

            await executor.wait_for_background()
            assert executor.pending_refreshes == 0

            response = await executor.stale_while_revalidate(httpx.Request("GET", url))
            assert response.content == b"NEW"
            await executor.wait_for_background()

    # The refresh overwrites the entry where it was found.
    entry = await store.get(key, generation=PRECACHE)
    assert entry is not None
    assert entry.response.content == b"NEW"
    assert len(network.requests) == 2


@pytest.mark.anyio
async def test_stale_while_revalidate_does_not_wait_for_refresh():
    store = swcache.AsyncInMemoryCacheStore()
    url = "https://example.org/enhancements.js?v=1"
    await store.put(RUNTIME, generate_key("GET", url), stored(url, b"cached"))

    async with swcache.MockAsyncTransport() as network:
        network.add_hanging_response()
        async with swcache.AsyncStrategyExecutor(store, network, PRECACHE, RUNTIME) as executor:
            with anyio.fail_after(1):
                response = await executor.stale_while_revalidate(httpx.Request("GET", url))
            assert response.content == b"cached"
            assert executor.pending_refreshes == 1


@pytest.mark.anyio
async def test_stale_while_revalidate_ignores_refresh_failure():
    store = swcache.AsyncInMemoryCacheStore()
    url = "https://example.org/fonts/inter.woff2"
    key = generate_key("GET", url)
    await store.put(RUNTIME, key, stored(url, b"font"))

    async with swcache.MockAsyncTransport() as network:
        network.add_responses([httpx.ReadError("connection reset")])
        async with swcache.AsyncStrategyExecutor(store, network, PRECACHE, RUNTIME) as executor:
            response = await executor.stale_while_revalidate(httpx.Request("GET", url))
            await executor.wait_for_background()

    assert response.content == b"font"
    entry = await store.get(key, generation=RUNTIME)
    assert entry is not None
    assert entry.response.content == b"font"


@pytest.mark.anyio
async def test_stale_while_revalidate_miss():
    store = swcache.AsyncInMemoryCacheStore()
    url = "https://example.org/app.js"

    async with swcache.MockAsyncTransport() as network:
        network.add_responses([httpx.Response(200, content=b"live"), httpx.ConnectError("offline")])
        async with swcache.AsyncStrategyExecutor(store, network, PRECACHE, RUNTIME) as executor:
            response = await executor.stale_while_revalidate(httpx.Request("GET", url))
            assert response.content == b"live"
            assert not response.extensions["from_cache"]

            response = await executor.stale_while_revalidate(httpx.Request("GET", "https://example.org/other.js"))
            assert response.status_code == 404
            assert response.text == "Asset not available"

    assert await store.get(generate_key("GET", url), generation=RUNTIME) is not None


@pytest.mark.anyio
async def test_repeated_cache_hits_are_identical():
    store = swcache.AsyncInMemoryCacheStore()
    url = "https://example.org/images/photo.jpg"
    await store.put(PRECACHE, generate_key("GET", url), stored(url, b"\x89PNG\r\n"))

    async with swcache.MockAsyncTransport() as network:
        async with swcache.AsyncStrategyExecutor(store, network, PRECACHE, RUNTIME) as executor:
            first = await executor.cache_first(httpx.Request("GET", url))
            second = await executor.cache_first(httpx.Request("GET", url))

    assert first.content == second.content == b"\x89PNG\r\n"
    assert first.headers.raw == second.headers.raw
    assert first.status_code == second.status_code
    assert network.requests == []


@pytest.mark.anyio
async def test_failing_store_degrades_to_network():
    class BrokenStore(swcache.AsyncInMemoryCacheStore):
        async def get(self, key, generation=None):
            raise OSError("disk is gone")

        async def put(self, generation, key, response):
            raise OSError("disk is gone")

    async with swcache.MockAsyncTransport() as network:
        network.add_responses([httpx.Response(200, content=b"live")])
        async with swcache.AsyncStrategyExecutor(BrokenStore(), network, PRECACHE, RUNTIME) as executor:
            response = await executor.cache_first(httpx.Request("GET", "https://example.org/images/a.png"))

    assert response.status_code == 200
    assert response.content == b"live"


@pytest.mark.anyio
async def test_undecodable_body_is_treated_as_network_failure():
    store = swcache.AsyncInMemoryCacheStore()
    url = "https://example.org/events"
    await store.put(RUNTIME, generate_key("GET", url), stored(url, b"cached"))

    def corrupt() -> httpx.Response:
        return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"not gzip")

    async with swcache.MockAsyncTransport() as network:
        network.add_responses([corrupt(), corrupt(), corrupt(), corrupt()])
        async with swcache.AsyncStrategyExecutor(store, network, PRECACHE, RUNTIME) as executor:
            response = await executor.network_first(httpx.Request("GET", url))
            assert response.status_code == 200
            assert response.content == b"cached"
            assert response.extensions["from_cache"]

            response = await executor.network_first(httpx.Request("GET", "https://example.org/"))
            assert response.status_code == 503

            response = await executor.cache_first(httpx.Request("GET", "https://example.org/images/a.png"))
            assert response.status_code == 404

            response = await executor.stale_while_revalidate(httpx.Request("GET", "https://example.org/app.js"))
            assert response.status_code == 404

    assert len(network.requests) == 4


@pytest.mark.anyio
async def test_stale_while_revalidate_without_task_group_serves_cache():
    store = swcache.AsyncInMemoryCacheStore()
    url = "https://example.org/styles.css"
    await store.put(PRECACHE, generate_key("GET", url), stored(url, b"cached"))

    async with swcache.MockAsyncTransport() as network:
        executor = swcache.AsyncStrategyExecutor(store, network, PRECACHE, RUNTIME)
        response = await executor.stale_while_revalidate(httpx.Request("GET", url))

    assert response.content == b"cached"
    assert response.extensions["from_cache"]
    assert executor.pending_refreshes == 0
    assert network.requests == []
