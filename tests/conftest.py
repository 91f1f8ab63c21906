import os
import typing as tp

import httpx
import pytest

ORIGIN = "https://example.org"


class Site:
    """
    A scripted origin for ``httpx.MockTransport``.

    Paths in ``pages`` answer 200 with their body, paths in ``offline`` raise a
    connection error and everything else answers 404.
    """

    def __init__(self, pages: tp.Optional[tp.Dict[str, bytes]] = None) -> None:
        self.pages: tp.Dict[str, bytes] = dict(pages or {})
        self.offline: tp.Set[str] = set()
        self.all_offline = False
        self.requests: tp.List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        target = request.url.raw_path.decode("ascii")
        if self.all_offline or target in self.offline:
            raise httpx.ConnectError("offline", request=request)
        if target in self.pages:
            return httpx.Response(200, headers={"Content-Type": "text/plain"}, content=self.pages[target])
        return httpx.Response(404, content=b"not found")

    def hits(self, target: str) -> int:
        return sum(1 for request in self.requests if request.url.raw_path.decode("ascii") == target)


@pytest.fixture()
def site() -> Site:
    return Site()


@pytest.fixture()
def network(site: Site) -> httpx.MockTransport:
    return httpx.MockTransport(site)


@pytest.fixture()
def use_temp_dir(tmpdir):
    cur_dir = os.getcwd()
    os.chdir(tmpdir)
    yield
    os.chdir(cur_dir)
