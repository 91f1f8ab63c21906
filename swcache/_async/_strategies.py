from __future__ import annotations

import logging
import types
import typing as tp

import anyio
import anyio.abc
import httpx

from .._exceptions import PrecacheError
from .._models import AssetClass, CacheEntry, Strategy, StoredResponse
from .._utils import generate_key, normalized_url
from ._stores import AsyncBaseCacheStore

if tp.TYPE_CHECKING:  # pragma: no cover
    from typing_extensions import Self

logger = logging.getLogger("swcache.strategies")

__all__ = ("AsyncStrategyExecutor", "generate_404", "generate_503")


def _synthetic(status_code: int, text: str, request: httpx.Request, strategy: Strategy) -> httpx.Response:
    return httpx.Response(
        status_code=status_code,
        headers=[("Content-Type", "text/plain; charset=utf-8")],
        text=text,
        request=request,
        extensions={"from_cache": False, "synthetic": True, "strategy": strategy.value},
    )


def generate_404(request: httpx.Request, strategy: Strategy) -> httpx.Response:
    return _synthetic(404, "Asset not available", request, strategy)


def generate_503(request: httpx.Request, strategy: Strategy) -> httpx.Response:
    return _synthetic(503, "Resource not available", request, strategy)


class AsyncStrategyExecutor:
    """
    Resolves requests through the cache-first, network-first and
    stale-while-revalidate strategies.

    None of the strategies raise on network failure or on an undecodable
    body: they fall back to the cache or answer with a synthetic error
    response instead. Background refreshes run in a task group opened by
    ``async with``; outside of it, stale-while-revalidate still answers from
    the cache but skips the refresh.

    :param store: The store holding the cache generations
    :type store: AsyncBaseCacheStore
    :param transport: The transport used to reach the network
    :type transport: httpx.AsyncBaseTransport
    :param precache_name: Name of the current precache generation
    :type precache_name: str
    :param runtime_name: Name of the current runtime generation, where fetched responses are stored
    :type runtime_name: str
    """

    def __init__(
        self,
        store: AsyncBaseCacheStore,
        transport: httpx.AsyncBaseTransport,
        precache_name: str,
        runtime_name: str,
    ) -> None:
        self._store = store
        self._transport = transport
        self._precache_name = precache_name
        self._runtime_name = runtime_name
        self._task_group: tp.Optional[anyio.abc.TaskGroup] = None
        self._pending = 0
        self._idle: tp.Optional[anyio.Event] = None

    async def execute(self, strategy: Strategy, request: httpx.Request, asset_class: AssetClass) -> httpx.Response:
        if strategy is Strategy.CACHE_FIRST:
            response = await self.cache_first(request)
        elif strategy is Strategy.STALE_WHILE_REVALIDATE:
            response = await self.stale_while_revalidate(request)
        else:
            response = await self.network_first(request)
        response.extensions["asset_class"] = asset_class.value
        return response

    async def cache_first(self, request: httpx.Request) -> httpx.Response:
        strategy = Strategy.CACHE_FIRST
        key = generate_key(request.method, request.url)

        entry = await self._match(key)
        if entry is not None:
            logger.debug(f"Cache hit for {request.url} in {entry.generation}")
            return self._from_cache(entry, request, strategy)

        try:
            stored = await self._fetch(request)
        except httpx.RequestError as exc:
            logger.debug(f"Network failed for {request.url}: {exc!r}")
            return generate_404(request, strategy)

        if stored.ok:
            await self._put(self._runtime_name, key, stored)
        return self._from_network(stored, request, strategy)

    async def network_first(self, request: httpx.Request) -> httpx.Response:
        strategy = Strategy.NETWORK_FIRST
        key = generate_key(request.method, request.url)

        try:
            stored = await self._fetch(request)
        except httpx.RequestError as exc:
            logger.debug(f"Network failed for {request.url}, falling back to the cache: {exc!r}")
            entry = await self._match(key)
            if entry is not None:
                return self._from_cache(entry, request, strategy)
            return generate_503(request, strategy)

        if stored.ok:
            await self._put(self._runtime_name, key, stored)
        return self._from_network(stored, request, strategy)

    async def stale_while_revalidate(self, request: httpx.Request) -> httpx.Response:
        strategy = Strategy.STALE_WHILE_REVALIDATE
        key = generate_key(request.method, request.url)

        entry = await self._match(key)
        if entry is not None:
            self._schedule_refresh(request, key, entry.generation)
            return self._from_cache(entry, request, strategy)

        try:
            stored = await self._fetch(request)
        except httpx.RequestError as exc:
            logger.debug(f"Network failed for {request.url}: {exc!r}")
            return generate_404(request, strategy)

        if stored.ok:
            await self._put(self._runtime_name, key, stored)
        return self._from_network(stored, request, strategy)

    async def add(self, request: httpx.Request, generation: str) -> StoredResponse:
        """
        Fetches the request and stores the answer in the given generation.

        Unlike the strategies, this raises: ``httpx.RequestError`` when the
        network fails or the body can not be decoded, and ``PrecacheError``
        when the answer is not a 2xx.
        """

        stored = await self._fetch(request)
        if not stored.ok:
            raise PrecacheError(f"{request.url} answered with {stored.status_code}")
        await self._store.put(generation, generate_key(request.method, request.url), stored)
        return stored

    async def wait_for_background(self) -> None:
        """
        Waits until every background refresh scheduled so far has settled.
        """

        if self._idle is not None:
            await self._idle.wait()

    @property
    def pending_refreshes(self) -> int:
        return self._pending

    async def _fetch(self, request: httpx.Request) -> StoredResponse:
        response = await self._transport.handle_async_request(request)
        try:
            await response.aread()
        finally:
            await response.aclose()
        return StoredResponse.from_httpx(response, url=normalized_url(request.url))

    async def _match(self, key: str) -> tp.Optional[CacheEntry]:
        # Runtime entries come from live traffic, so they are at least as fresh as the precache.
        for generation in (self._runtime_name, self._precache_name):
            try:
                entry = await self._store.get(key, generation=generation)
            except Exception:
                logger.warning(f"Cache lookup in {generation} failed, treating it as a miss", exc_info=True)
                continue
            if entry is not None:
                return entry
        return None

    async def _put(self, generation: str, key: str, stored: StoredResponse) -> None:
        try:
            await self._store.put(generation, key, stored)
        except Exception:
            logger.warning(f"Could not store {stored.url} in {generation}", exc_info=True)

    def _schedule_refresh(self, request: httpx.Request, key: str, generation: str) -> None:
        if self._task_group is None:
            logger.debug(f"No task group to refresh {request.url} in, serving the cached copy only")
            return
        if self._pending == 0:
            self._idle = anyio.Event()
        self._pending += 1
        self._task_group.start_soon(self._refresh, request, key, generation)

    async def _refresh(self, request: httpx.Request, key: str, generation: str) -> None:
        try:
            stored = await self._fetch(request)
            if stored.ok:
                await self._put(generation, key, stored)
                logger.debug(f"Refreshed {request.url} in {generation}")
        except Exception as exc:
            logger.debug(f"Background refresh of {request.url} failed: {exc!r}")
        finally:
            self._pending -= 1
            if self._pending == 0 and self._idle is not None:
                self._idle.set()

    def _from_cache(self, entry: CacheEntry, request: httpx.Request, strategy: Strategy) -> httpx.Response:
        return entry.response.to_httpx(
            request=request,
            extensions={"from_cache": True, "cache_generation": entry.generation, "strategy": strategy.value},
        )

    def _from_network(self, stored: StoredResponse, request: httpx.Request, strategy: Strategy) -> httpx.Response:
        return stored.to_httpx(request=request, extensions={"from_cache": False, "strategy": strategy.value})

    async def __aenter__(self) -> Self:
        self._task_group = anyio.create_task_group()
        await self._task_group.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: tp.Optional[tp.Type[BaseException]] = None,
        exc_value: tp.Optional[BaseException] = None,
        traceback: tp.Optional[types.TracebackType] = None,
    ) -> None:
        assert self._task_group is not None
        # Refreshes still in flight are abandoned, like a terminated worker's.
        self._task_group.cancel_scope.cancel()
        try:
            await self._task_group.__aexit__(exc_type, exc_value, traceback)
        finally:
            self._task_group = None
            self._pending = 0
            if self._idle is not None:
                self._idle.set()
