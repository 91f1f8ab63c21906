from __future__ import annotations

import re
import typing as tp
from dataclasses import dataclass, field, replace

import httpx

from swcache._exceptions import InvalidCacheName
from swcache._models import AssetClass, Strategy

__all__ = ("CacheVersion", "WorkerOptions", "DEFAULT_STRATEGIES")

CACHE_NAME_PATTERN = re.compile(r"^(?P<prefix>[A-Za-z0-9_.-]+?)-v(?P<number>\d+)$")

DEFAULT_STRATEGIES: tp.Dict[AssetClass, Strategy] = {
    AssetClass.HTML: Strategy.NETWORK_FIRST,
    AssetClass.IMAGE: Strategy.CACHE_FIRST,
    AssetClass.STATIC: Strategy.STALE_WHILE_REVALIDATE,
    AssetClass.OTHER: Strategy.NETWORK_FIRST,
}


@dataclass(frozen=True)
class CacheVersion:
    """
    A cache generation name of the form ``<prefix>-v<integer>``.

    Examples:
    --------
    >>> CacheVersion.parse("caish-runtime-v11")
    CacheVersion(prefix='caish-runtime', number=11)
    >>> CacheVersion.parse("caish-v11").bump().name
    'caish-v12'
    """

    prefix: str
    number: int

    @classmethod
    def parse(cls, name: str) -> "CacheVersion":
        match = CACHE_NAME_PATTERN.match(name)
        if match is None:
            raise InvalidCacheName(f"Cache name {name!r} does not follow the '<prefix>-v<integer>' pattern")
        return cls(prefix=match.group("prefix"), number=int(match.group("number")))

    @property
    def name(self) -> str:
        return f"{self.prefix}-v{self.number}"

    def bump(self) -> "CacheVersion":
        return replace(self, number=self.number + 1)


@dataclass
class WorkerOptions:
    """
    Configuration of a service worker deployment.

    Attributes:
    ----------
    origin : str
        The origin the worker is registered for, e.g. ``https://example.org``.
        Only requests to this origin are intercepted.

    precache_name : str
        Name of the current precache generation, populated at install time.

    runtime_name : str
        Name of the current runtime generation, populated by the strategies.
        Both names are bumped together whenever the site's assets change so
        that activation sweeps the previous generations.

    precache_assets : list[str]
        Paths (or absolute same-origin URLs) stored eagerly at install time.
        Cache-busted assets keep their query string, e.g. ``/styles.css?v=1a2b3c4d``.

    image_prefixes : tuple[str, ...]
        Path prefixes of image assets.

    static_extensions : tuple[str, ...]
        Stylesheet, script and font extensions.

    strategies : dict[AssetClass, Strategy]
        Which strategy resolves which asset class. Missing classes use
        network-first.

    skip_waiting : bool
        Replace the previously active worker right after install.

    claim_clients : bool
        Take control of already registered clients on activation, not only of
        clients registered afterwards.
    """

    origin: str
    precache_name: str = "site-v1"
    runtime_name: str = "site-runtime-v1"
    precache_assets: tp.List[str] = field(default_factory=lambda: ["/"])
    image_prefixes: tp.Tuple[str, ...] = ("/images/",)
    static_extensions: tp.Tuple[str, ...] = (".css", ".js", ".mjs", ".woff", ".woff2", ".ttf", ".otf", ".eot")
    strategies: tp.Dict[AssetClass, Strategy] = field(default_factory=lambda: dict(DEFAULT_STRATEGIES))
    skip_waiting: bool = True
    claim_clients: bool = True

    def __post_init__(self) -> None:
        url = httpx.URL(self.origin)
        if not url.is_absolute_url:
            raise ValueError(f"The worker origin must be an absolute URL, got {self.origin!r}")
        self.origin = f"{url.scheme}://{url.netloc.decode('ascii')}"
        CacheVersion.parse(self.precache_name)
        CacheVersion.parse(self.runtime_name)
        if self.precache_name == self.runtime_name:
            raise InvalidCacheName("The precache and runtime generations must have different names")

    @property
    def current_generations(self) -> tp.Tuple[str, str]:
        return self.precache_name, self.runtime_name

    def strategy_for(self, asset_class: AssetClass) -> Strategy:
        return self.strategies.get(asset_class, Strategy.NETWORK_FIRST)

    def precache_urls(self) -> tp.List[str]:
        return [str(httpx.URL(self.origin).join(asset)) for asset in self.precache_assets]

    def bumped(self, precache_assets: tp.Optional[tp.List[str]] = None) -> "WorkerOptions":
        """
        Options for the next deployment: both generation versions incremented.

        :param precache_assets: The new asset list, e.g. with refreshed content-hash tags, defaults to the current one
        :type precache_assets: tp.Optional[tp.List[str]], optional
        """

        return replace(
            self,
            precache_name=CacheVersion.parse(self.precache_name).bump().name,
            runtime_name=CacheVersion.parse(self.runtime_name).bump().name,
            precache_assets=list(precache_assets if precache_assets is not None else self.precache_assets),
            strategies=dict(self.strategies),
        )
