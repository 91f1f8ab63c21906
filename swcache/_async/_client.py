import typing as tp

import httpx

from swcache._async._transport import AsyncServiceWorkerTransport
from swcache._async._worker import AsyncServiceWorkerRegistration

__all__ = ("AsyncServiceWorkerClient",)


class AsyncServiceWorkerClient(httpx.AsyncClient):
    """
    An ``httpx.AsyncClient`` acting as a page of the origin: each of its requests is offered
    to the registration's worker controlling it before reaching the network.
    """

    def __init__(
        self,
        *args: tp.Any,
        registration: AsyncServiceWorkerRegistration,
        **kwargs: tp.Any,
    ):
        self._registration = registration
        super().__init__(*args, **kwargs)

    def _init_transport(self, *args, **kwargs) -> AsyncServiceWorkerTransport:  # type: ignore
        _transport = super()._init_transport(*args, **kwargs)
        return AsyncServiceWorkerTransport(
            transport=_transport,
            registration=self._registration,
        )

    def _init_proxy_transport(self, *args, **kwargs) -> AsyncServiceWorkerTransport:  # type: ignore
        _transport = super()._init_proxy_transport(*args, **kwargs)  # pragma: no cover
        return AsyncServiceWorkerTransport(  # pragma: no cover
            transport=_transport,
            registration=self._registration,
        )
