from __future__ import annotations

import types
import typing as tp

import httpx

from ._worker import AsyncServiceWorkerRegistration

if tp.TYPE_CHECKING:  # pragma: no cover
    from typing_extensions import Self

__all__ = ("AsyncServiceWorkerTransport",)


class AsyncServiceWorkerTransport(httpx.AsyncBaseTransport):
    """
    An HTTPX Transport that behaves like a page controlled by a service worker.

    Every request is first offered to the worker controlling this transport.
    Requests it declines (cross-origin, non-GET, or no active controller) go
    to the wrapped transport untouched.

    :param transport: `Transport` used for the requests the worker declines
    :type transport: httpx.AsyncBaseTransport
    :param registration: The registration of the origin's workers
    :type registration: AsyncServiceWorkerRegistration
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport,
        registration: AsyncServiceWorkerRegistration,
    ) -> None:
        self._transport = transport
        self._registration = registration
        self._registration.add_client(self)

    @property
    def controller(self) -> tp.Any:
        return self._registration.controller_of(self)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """
        Handles HTTP requests, letting the controlling service worker answer them first.

        :param request: An HTTP request
        :type request: httpx.Request
        :return: An HTTP response
        :rtype: httpx.Response
        """

        response = await self._registration.handle_fetch(request, self)
        if response is not None:
            return response

        response = await self._transport.handle_async_request(request)
        response.extensions["from_cache"] = False
        return response

    async def aclose(self) -> None:
        await self._transport.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: tp.Optional[tp.Type[BaseException]] = None,
        exc_value: tp.Optional[BaseException] = None,
        traceback: tp.Optional[types.TracebackType] = None,
    ) -> None:
        await self.aclose()
