from __future__ import annotations

import logging
import typing as tp

import httpx

from swcache._models import AssetClass, Strategy
from swcache._options import WorkerOptions
from swcache._utils import has_file_extension, is_same_origin

logger = logging.getLogger("swcache.router")

__all__ = ("Router", "classify_request")


def is_html_request(request: httpx.Request) -> bool:
    path = request.url.path
    accept = request.headers.get("Accept", "")
    return "text/html" in accept or path.endswith(".html") or path == "/" or not has_file_extension(path)


def classify_request(
    request: httpx.Request,
    image_prefixes: tp.Iterable[str] = ("/images/",),
    static_extensions: tp.Iterable[str] = (".css", ".js", ".woff", ".woff2"),
) -> AssetClass:
    """
    Derive the asset class of a request from its path and ``Accept`` header.

    The rules are checked in order: navigation/HTML first, then images, then
    stylesheets, scripts and fonts. Anything else is ``AssetClass.OTHER``.
    """

    path = request.url.path
    if is_html_request(request):
        return AssetClass.HTML
    if any(path.startswith(prefix) for prefix in image_prefixes):
        return AssetClass.IMAGE
    if path.lower().endswith(tuple(static_extensions)):
        return AssetClass.STATIC
    return AssetClass.OTHER


class Router:
    """
    Decides whether the worker answers a request and which strategy resolves it.

    :param options: The worker configuration
    :type options: WorkerOptions
    """

    def __init__(self, options: WorkerOptions) -> None:
        self._options = options

    def intercepts(self, request: httpx.Request) -> bool:
        if request.method != "GET":
            logger.debug(f"Declining {request.method} request to {request.url}")
            return False
        if not is_same_origin(request.url, self._options.origin):
            logger.debug(f"Declining cross-origin request to {request.url}")
            return False
        return True

    def classify(self, request: httpx.Request) -> AssetClass:
        return classify_request(
            request,
            image_prefixes=self._options.image_prefixes,
            static_extensions=self._options.static_extensions,
        )

    def route(self, request: httpx.Request) -> tp.Tuple[AssetClass, Strategy]:
        asset_class = self.classify(request)
        strategy = self._options.strategy_for(asset_class)
        logger.debug(f"Routing {request.url} as {asset_class.value} through {strategy.value}")
        return asset_class, strategy
