import typing as tp
from types import TracebackType

import anyio
import httpx

if tp.TYPE_CHECKING:  # pragma: no cover
    from typing_extensions import Self

__all__ = ("MockAsyncTransport",)

MockedAnswer = tp.Union[httpx.Response, Exception, tp.Callable[[httpx.Request], tp.Awaitable[httpx.Response]]]


class MockAsyncTransport(httpx.AsyncBaseTransport):
    """
    A scripted network.

    Answers are consumed in order. An answer can be a response, an exception
    to raise (e.g. ``httpx.ConnectError`` for an offline network) or an async
    callable receiving the request. Every request is recorded in ``requests``.
    """

    def __init__(self) -> None:
        self.mocked_responses: tp.List[MockedAnswer] = []
        self.requests: tp.List[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.mocked_responses:
            raise httpx.ConnectError("No mocked response left", request=request)
        answer = self.mocked_responses.pop(0)
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, httpx.Response):
            return answer
        return await answer(request)

    def add_responses(self, responses: tp.List[MockedAnswer]) -> None:
        self.mocked_responses.extend(responses)

    def add_hanging_response(self) -> None:
        async def hang(request: httpx.Request) -> httpx.Response:
            await anyio.sleep_forever()
            raise AssertionError("unreachable")  # pragma: no cover

        self.mocked_responses.append(hang)

    async def __aenter__(self) -> "Self":
        return self

    async def __aexit__(
        self,
        exc_type: tp.Optional[tp.Type[BaseException]] = None,
        exc_value: tp.Optional[BaseException] = None,
        traceback: tp.Optional[TracebackType] = None,
    ) -> None: ...
