from __future__ import annotations

import shutil
import typing as tp

import anyio
import anyio.to_thread


class AsyncBaseFileManager:
    def __init__(self, is_binary: bool) -> None:
        self.is_binary = is_binary

    async def write_to(self, path: str, data: bytes | str, is_binary: bool | None = None) -> None:
        raise NotImplementedError()

    async def read_from(self, path: str, is_binary: bool | None = None) -> bytes | str:
        raise NotImplementedError()

    async def remove_tree(self, path: str) -> None:
        raise NotImplementedError()


class AsyncFileManager(AsyncBaseFileManager):
    async def write_to(self, path: str, data: bytes | str, is_binary: bool | None = None) -> None:
        is_binary = self.is_binary if is_binary is None else is_binary
        mode = "wb" if is_binary else "wt"
        # Write next to the target and swap, so readers never see a partial entry.
        tmp_path = f"{path}.tmp"
        async with await anyio.open_file(tmp_path, mode) as f:  # type: ignore[call-overload]
            await f.write(data)
        await anyio.Path(tmp_path).replace(path)

    async def read_from(self, path: str, is_binary: bool | None = None) -> bytes | str:
        is_binary = self.is_binary if is_binary is None else is_binary
        mode = "rb" if is_binary else "rt"

        async with await anyio.open_file(path, mode) as f:  # type: ignore[call-overload]
            return tp.cast(tp.Union[bytes, str], await f.read())

    async def remove_tree(self, path: str) -> None:
        await anyio.to_thread.run_sync(shutil.rmtree, path)
