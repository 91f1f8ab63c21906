from __future__ import annotations

import logging
import types
import typing as tp
import weakref

import anyio
import anyio.abc
import httpx

from .._exceptions import InvalidStateError
from .._models import PrecacheReport, WorkerState
from .._options import WorkerOptions
from .._router import Router
from ._stores import AsyncBaseCacheStore, AsyncInMemoryCacheStore
from ._strategies import AsyncStrategyExecutor

if tp.TYPE_CHECKING:  # pragma: no cover
    from typing_extensions import Self

logger = logging.getLogger("swcache.lifecycle")

__all__ = ("AsyncServiceWorker", "AsyncServiceWorkerRegistration")

ALLOWED_TRANSITIONS: tp.Dict[WorkerState, tp.Tuple[WorkerState, ...]] = {
    WorkerState.PARSED: (WorkerState.INSTALLING, WorkerState.REDUNDANT),
    WorkerState.INSTALLING: (WorkerState.INSTALLED, WorkerState.REDUNDANT),
    WorkerState.INSTALLED: (WorkerState.ACTIVATING, WorkerState.REDUNDANT),
    WorkerState.ACTIVATING: (WorkerState.ACTIVATED, WorkerState.REDUNDANT),
    WorkerState.ACTIVATED: (WorkerState.REDUNDANT,),
    WorkerState.REDUNDANT: (),
}


class AsyncServiceWorker:
    """
    A service worker: precaches on install, sweeps old cache generations on
    activation and, once activated, answers intercepted fetches through the
    caching strategies.

    The worker does not own the store or the network transport: the store is
    shared with the workers of earlier and later deployments, and closing
    either is left to whoever created it.

    :param options: The deployment configuration
    :type options: WorkerOptions
    :param store: Store holding the cache generations, defaults to None
    :type store: tp.Optional[AsyncBaseCacheStore], optional
    :param transport: Transport used to reach the network, defaults to None
    :type transport: tp.Optional[httpx.AsyncBaseTransport], optional
    """

    def __init__(
        self,
        options: WorkerOptions,
        store: tp.Optional[AsyncBaseCacheStore] = None,
        transport: tp.Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.options = options
        self.store = store if store is not None else AsyncInMemoryCacheStore()

        if not isinstance(self.store, AsyncBaseCacheStore):  # pragma: no cover
            raise TypeError(f"Expected subclass of `AsyncBaseCacheStore` but got `{store.__class__.__name__}`")

        self.transport = transport if transport is not None else httpx.AsyncHTTPTransport()
        self.router = Router(options)
        self._executor = AsyncStrategyExecutor(
            store=self.store,
            transport=self.transport,
            precache_name=options.precache_name,
            runtime_name=options.runtime_name,
        )
        self._state = WorkerState.PARSED
        self._terminated: tp.Optional[anyio.Event] = None
        self.skip_waiting_requested = False

    @property
    def state(self) -> WorkerState:
        return self._state

    def _transition(self, new_state: WorkerState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self._state]:
            raise InvalidStateError(f"Can not move a worker from {self._state.value} to {new_state.value}")
        logger.debug(f"Worker {self.options.precache_name}: {self._state.value} -> {new_state.value}")
        self._state = new_state

    async def install(self) -> PrecacheReport:
        """
        Opens the precache generation and populates it with the precache assets.

        Every asset is fetched independently; an asset that fails is logged
        and skipped, and never fails the installation.
        """

        self._transition(WorkerState.INSTALLING)
        report = PrecacheReport(generation=self.options.precache_name)

        try:
            await self.store.open(self.options.precache_name)
        except Exception:
            logger.warning(f"Could not open {self.options.precache_name}", exc_info=True)

        async with anyio.create_task_group() as task_group:
            for url in self.options.precache_urls():
                task_group.start_soon(self._precache_one, url, report)

        self._transition(WorkerState.INSTALLED)
        self.skip_waiting_requested = self.options.skip_waiting
        logger.info(
            f"Installed {self.options.precache_name}: "
            f"{len(report.cached)} precached, {len(report.skipped)} skipped"
        )
        return report

    async def _precache_one(self, url: str, report: PrecacheReport) -> None:
        try:
            await self._executor.add(httpx.Request("GET", url), self.options.precache_name)
        except Exception as exc:
            logger.warning(f"Precache skip: {url} ({exc!r})")
            report.skipped.append(url)
        else:
            report.cached.append(url)

    async def activate(self) -> tp.List[str]:
        """
        Deletes every cache generation other than the current precache and
        runtime generations.

        :return: Names of the deleted generations
        :rtype: tp.List[str]
        """

        self._transition(WorkerState.ACTIVATING)
        current = self.options.current_generations
        deleted: tp.List[str] = []

        try:
            names = await self.store.list_generations()
        except Exception:
            logger.warning("Could not list cache generations, skipping cleanup", exc_info=True)
            names = []

        for name in names:
            if name in current:
                continue
            try:
                if await self.store.delete_generation(name):
                    deleted.append(name)
                    logger.info(f"Deleted old cache generation {name}")
            except Exception:
                logger.warning(f"Could not delete cache generation {name}", exc_info=True)

        self._transition(WorkerState.ACTIVATED)
        logger.info(f"Activated {self.options.precache_name}")
        return deleted

    async def start(self) -> PrecacheReport:
        report = await self.install()
        await self.activate()
        return report

    def mark_redundant(self) -> None:
        if self._state is not WorkerState.REDUNDANT:
            self._transition(WorkerState.REDUNDANT)

    async def handle_fetch(self, request: httpx.Request) -> tp.Optional[httpx.Response]:
        """
        Answers an intercepted request, or returns ``None`` to decline it.

        Requests are declined while the worker is not activated, and when
        they are not same-origin ``GET`` requests.
        """

        if self._state is not WorkerState.ACTIVATED:
            return None
        if not self.router.intercepts(request):
            return None
        asset_class, strategy = self.router.route(request)
        return await self._executor.execute(strategy, request, asset_class)

    async def wait_for_background(self) -> None:
        await self._executor.wait_for_background()

    async def serve(self, *, task_status: anyio.abc.TaskStatus[None] = anyio.TASK_STATUS_IGNORED) -> None:
        """
        Keeps the worker entered until ``terminate`` is called.

        Meant to be started in a task group, so each worker's background
        refreshes can be shut down on their own.
        """

        self._terminated = anyio.Event()
        async with self:
            task_status.started()
            await self._terminated.wait()

    def terminate(self) -> None:
        if self._terminated is not None:
            self._terminated.set()

    async def __aenter__(self) -> Self:
        await self._executor.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: tp.Optional[tp.Type[BaseException]] = None,
        exc_value: tp.Optional[BaseException] = None,
        traceback: tp.Optional[types.TracebackType] = None,
    ) -> None:
        await self._executor.__aexit__(exc_type, exc_value, traceback)


class AsyncServiceWorkerRegistration:
    """
    Tracks the active and waiting workers of one origin and which clients
    each of them controls.

    A newly registered worker that asked to skip waiting (or that finds no
    active worker) is activated at once and the previous worker becomes
    redundant. Otherwise it waits until ``release_waiting`` is called, which
    stands for every page of the old worker having been closed.

    Clients are usually ``AsyncServiceWorkerTransport`` instances. A client
    is controlled by the worker that was active when it registered, or by a
    later worker that claimed it on activation.
    Clients of a replaced worker move to its successor, and the replaced
    worker is terminated, cancelling its pending background refreshes.
    """

    def __init__(self) -> None:
        self.active: tp.Optional[AsyncServiceWorker] = None
        self.waiting: tp.Optional[AsyncServiceWorker] = None
        self._controllers: weakref.WeakKeyDictionary[tp.Any, tp.Optional[AsyncServiceWorker]] = (
            weakref.WeakKeyDictionary()
        )
        self._task_group: tp.Optional[anyio.abc.TaskGroup] = None

    def add_client(self, client: tp.Any) -> None:
        self._controllers[client] = self.active

    def controller_of(self, client: tp.Any) -> tp.Optional[AsyncServiceWorker]:
        return self._controllers.get(client)

    async def register(self, worker: AsyncServiceWorker) -> PrecacheReport:
        if self._task_group is None:
            raise RuntimeError(f"`{type(self).__name__}` must be entered with `async with` before registering")

        report = await worker.install()
        if self.active is None or worker.skip_waiting_requested:
            await self._promote(worker)
        else:
            if self.waiting is not None:
                self.waiting.mark_redundant()
            self.waiting = worker
            logger.info(f"Worker {worker.options.precache_name} is waiting")
        return report

    async def release_waiting(self) -> None:
        if self.waiting is not None:
            await self._promote(self.waiting)

    async def _promote(self, worker: AsyncServiceWorker) -> None:
        assert self._task_group is not None
        if self.waiting is worker:
            self.waiting = None

        previous = self.active
        if previous is not None:
            previous.mark_redundant()
            previous.terminate()

        await self._task_group.start(worker.serve)
        await worker.activate()
        self.active = worker

        claimed = 0
        for client, controller in list(self._controllers.items()):
            if previous is not None and controller is previous:
                self._controllers[client] = worker
            elif worker.options.claim_clients:
                self._controllers[client] = worker
                claimed += 1
        if worker.options.claim_clients:
            logger.info(f"Worker {worker.options.precache_name} claimed {claimed} clients")

    async def handle_fetch(self, request: httpx.Request, client: tp.Any) -> tp.Optional[httpx.Response]:
        worker = self.controller_of(client)
        if worker is None:
            return None
        return await worker.handle_fetch(request)

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
        if self.active is not None:
            self.active.terminate()
        try:
            await self._task_group.__aexit__(exc_type, exc_value, traceback)
        finally:
            self._task_group = None
