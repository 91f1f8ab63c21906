from __future__ import annotations

import hashlib
import posixpath
import typing as tp
from pathlib import Path

import httpx

HEADERS_ENCODING = "iso-8859-1"


def normalized_url(url: tp.Union[httpx.URL, str]) -> str:
    """
    Return the absolute URL string used as part of a request identity.

    Fragments never reach the server, so they are dropped. The query string is
    kept: content-hash tagged assets like ``/styles.css?v=abc`` are distinct
    resources.
    """

    url = httpx.URL(url) if isinstance(url, str) else url
    return str(url).split("#", 1)[0]


def generate_key(method: tp.Union[str, bytes], url: tp.Union[httpx.URL, str]) -> str:
    if isinstance(method, bytes):
        method = method.decode("ascii")
    identity = f"{method.upper()} {normalized_url(url)}"
    return hashlib.sha256(identity.encode("utf-8")).hexdigest()


def origin_of(url: tp.Union[httpx.URL, str]) -> tp.Tuple[str, str, tp.Optional[int]]:
    url = httpx.URL(url) if isinstance(url, str) else url
    port = url.port
    if port is None:
        port = {"http": 80, "https": 443}.get(url.scheme)
    return url.scheme, url.host, port


def is_same_origin(url: tp.Union[httpx.URL, str], origin: tp.Union[httpx.URL, str]) -> bool:
    return origin_of(url) == origin_of(origin)


def has_file_extension(path: str) -> bool:
    """
    Whether the last segment of a URL path carries a file extension.

    Examples:
        >>> has_file_extension("/styles.css")
        True
        >>> has_file_extension("/events")
        False
        >>> has_file_extension("/blog.d/post")
        False
    """

    _, extension = posixpath.splitext(posixpath.basename(path))
    return bool(extension)


def ensure_cache_dir(base_path: Path | None = None) -> Path:
    _base_path = base_path if base_path is not None else Path(".cache/swcache")
    _gitignore_file = _base_path / ".gitignore"

    _base_path.mkdir(parents=True, exist_ok=True)

    if not _gitignore_file.is_file():
        with open(_gitignore_file, "w", encoding="utf-8") as f:
            f.write("# Automatically created by swcache\n*")
    return _base_path
