from __future__ import annotations

import enum
import time
import typing as tp
from dataclasses import dataclass, field

import httpx

from swcache._utils import HEADERS_ENCODING

FRAMING_HEADERS = ("content-encoding", "content-length", "transfer-encoding")

__all__ = (
    "AssetClass",
    "Strategy",
    "WorkerState",
    "StoredResponse",
    "CacheEntry",
    "PrecacheReport",
)


class AssetClass(str, enum.Enum):
    HTML = "html"
    IMAGE = "image"
    STATIC = "static"
    OTHER = "other"


class Strategy(str, enum.Enum):
    CACHE_FIRST = "cache_first"
    NETWORK_FIRST = "network_first"
    STALE_WHILE_REVALIDATE = "stale_while_revalidate"


class WorkerState(str, enum.Enum):
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


@dataclass(frozen=True)
class StoredResponse:
    """
    A full capture of an HTTP response as it is kept in a cache generation.

    Attributes:
    ----------
    status_code : int
        The status code of the captured response.
    headers : list[tuple[str, str]]
        Raw header pairs, in their original order.
    content : bytes
        The complete response body.
    url : str
        The absolute URL the response was fetched from.
    stored_at : float
        Unix timestamp of the capture.
    """

    status_code: int
    headers: tp.List[tp.Tuple[str, str]]
    content: bytes
    url: str
    stored_at: float = field(default_factory=time.time)

    @classmethod
    def from_httpx(cls, response: httpx.Response, url: str) -> "StoredResponse":
        """
        Capture an already read ``httpx.Response``.
        """

        return cls(
            status_code=response.status_code,
            headers=[
                (key.decode(HEADERS_ENCODING), value.decode(HEADERS_ENCODING)) for key, value in response.headers.raw
            ],
            content=response.content,
            url=url,
        )

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def to_httpx(
        self, request: tp.Optional[httpx.Request] = None, extensions: tp.Optional[tp.Dict[str, tp.Any]] = None
    ) -> httpx.Response:
        # The captured body is already decoded, so its framing headers are recomputed.
        headers = [(key, value) for key, value in self.headers if key.lower() not in FRAMING_HEADERS]
        return httpx.Response(
            status_code=self.status_code,
            headers=headers,
            content=self.content,
            request=request,
            extensions=extensions or {},
        )


@dataclass(frozen=True)
class CacheEntry:
    key: str
    generation: str
    response: StoredResponse


@dataclass
class PrecacheReport:
    generation: str
    cached: tp.List[str] = field(default_factory=list)
    skipped: tp.List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.skipped
