from __future__ import annotations

import logging
import time
import typing as tp
from pathlib import Path

import anyio

try:
    import anysqlite
except ImportError:  # pragma: no cover
    anysqlite = None  # type: ignore

from .._files import AsyncFileManager
from .._models import CacheEntry, StoredResponse
from .._serializers import BaseSerializer, JSONSerializer
from .._utils import ensure_cache_dir

logger = logging.getLogger("swcache.stores")

__all__ = (
    "AsyncBaseCacheStore",
    "AsyncInMemoryCacheStore",
    "AsyncFileCacheStore",
    "AsyncSQLiteCacheStore",
)

GENERATION_MARKER = ".generation"


class AsyncBaseCacheStore:
    """
    A set of named cache generations, each mapping request keys to captured responses.

    Generations are created implicitly by ``open`` or by the first ``put`` into
    them and are only ever removed as a whole.
    """

    def __init__(self, serializer: tp.Optional[BaseSerializer] = None) -> None:
        self._serializer = serializer or JSONSerializer()

    async def open(self, name: str) -> None:
        raise NotImplementedError()

    async def get(self, key: str, generation: tp.Optional[str] = None) -> tp.Optional[CacheEntry]:
        raise NotImplementedError()

    async def put(self, generation: str, key: str, response: StoredResponse) -> None:
        raise NotImplementedError()

    async def delete_generation(self, name: str) -> bool:
        raise NotImplementedError()

    async def list_generations(self) -> tp.List[str]:
        raise NotImplementedError()

    async def aclose(self) -> None:
        raise NotImplementedError()


class AsyncInMemoryCacheStore(AsyncBaseCacheStore):
    """
    A simple in-memory store.

    Entries live as long as the store object does, which makes it the natural
    choice for tests and for short-lived processes.
    """

    def __init__(self) -> None:
        super().__init__()
        # Dicts keep insertion order, which is the generations' creation order.
        self._generations: tp.Dict[str, tp.Dict[str, StoredResponse]] = {}
        self._lock = anyio.Lock()

    async def open(self, name: str) -> None:
        async with self._lock:
            self._generations.setdefault(name, {})

    async def get(self, key: str, generation: tp.Optional[str] = None) -> tp.Optional[CacheEntry]:
        async with self._lock:
            names = [generation] if generation is not None else list(self._generations)
            for name in names:
                stored = self._generations.get(name, {}).get(key)
                if stored is not None:
                    return CacheEntry(key=key, generation=name, response=stored)
        return None

    async def put(self, generation: str, key: str, response: StoredResponse) -> None:
        async with self._lock:
            self._generations.setdefault(generation, {})[key] = response

    async def delete_generation(self, name: str) -> bool:
        async with self._lock:
            return self._generations.pop(name, None) is not None

    async def list_generations(self) -> tp.List[str]:
        async with self._lock:
            return list(self._generations)

    async def aclose(self) -> None:  # pragma: no cover
        return


class AsyncFileCacheStore(AsyncBaseCacheStore):
    """
    A simple file store.

    Every generation is a directory under ``base_path`` and every entry a file
    named after its key.

    :param serializer: Serializer capable of serializing and de-serializing captured responses, defaults to None
    :type serializer: tp.Optional[BaseSerializer], optional
    :param base_path: A store base path where the generations should be saved, defaults to None
    :type base_path: tp.Optional[Path], optional
    """

    def __init__(
        self,
        serializer: tp.Optional[BaseSerializer] = None,
        base_path: tp.Optional[Path] = None,
    ) -> None:
        super().__init__(serializer)

        self._base_path = ensure_cache_dir(Path(base_path) if base_path is not None else None)
        self._file_manager = AsyncFileManager(is_binary=self._serializer.is_binary)
        self._lock = anyio.Lock()

    def _generation_path(self, name: str) -> Path:
        if not name or name in (".", "..") or "/" in name or "\\" in name:
            raise ValueError(f"{name!r} can not be used as a generation name")
        return self._base_path / name

    async def _ensure_generation(self, name: str) -> Path:
        path = self._generation_path(name)
        marker = path / GENERATION_MARKER
        if not marker.is_file():
            path.mkdir(parents=True, exist_ok=True)
            await self._file_manager.write_to(str(marker), str(time.time_ns()), is_binary=False)
        return path

    async def open(self, name: str) -> None:
        async with self._lock:
            await self._ensure_generation(name)

    async def get(self, key: str, generation: tp.Optional[str] = None) -> tp.Optional[CacheEntry]:
        """
        Retrieves a captured response by its key.

        :param key: Hashed value of concatenated HTTP method and URL
        :type key: str
        :param generation: Only look into this generation, defaults to all generations in creation order
        :type generation: tp.Optional[str], optional
        :return: The matching entry
        :rtype: tp.Optional[CacheEntry]
        """

        names = [generation] if generation is not None else await self.list_generations()
        async with self._lock:
            for name in names:
                entry_path = self._generation_path(name) / key
                if entry_path.is_file():
                    read_data = await self._file_manager.read_from(str(entry_path))
                    if len(read_data) != 0:
                        return CacheEntry(key=key, generation=name, response=self._serializer.loads(read_data))
        return None

    async def put(self, generation: str, key: str, response: StoredResponse) -> None:
        """
        Stores a captured response, replacing any previous entry for the key.

        :param generation: The generation to write into
        :type generation: str
        :param key: Hashed value of concatenated HTTP method and URL
        :type key: str
        :param response: A captured HTTP response
        :type response: StoredResponse
        """

        async with self._lock:
            path = await self._ensure_generation(generation)
            await self._file_manager.write_to(str(path / key), self._serializer.dumps(response))

    async def delete_generation(self, name: str) -> bool:
        path = self._generation_path(name)
        async with self._lock:
            if not path.is_dir():
                return False
            await self._file_manager.remove_tree(str(path))
        return True

    async def list_generations(self) -> tp.List[str]:
        async with self._lock:
            created: tp.List[tp.Tuple[int, str]] = []
            for path in self._base_path.iterdir():
                marker = path / GENERATION_MARKER
                if marker.is_file():
                    stamp = await self._file_manager.read_from(str(marker), is_binary=False)
                    created.append((int(stamp), path.name))
        return [name for _, name in sorted(created)]

    async def aclose(self) -> None:  # pragma: no cover
        return


class AsyncSQLiteCacheStore(AsyncBaseCacheStore):
    """
    A simple sqlite3 store.

    :param serializer: Serializer capable of serializing and de-serializing captured responses, defaults to None
    :type serializer: tp.Optional[BaseSerializer], optional
    :param connection: A connection for sqlite, defaults to None
    :type connection: tp.Optional[anysqlite.Connection], optional
    :param database_path: Where the database is created when no connection is given, defaults to "swcache.sqlite"
    :type database_path: tp.Union[str, Path], optional
    """

    def __init__(
        self,
        serializer: tp.Optional[BaseSerializer] = None,
        connection: tp.Optional[anysqlite.Connection] = None,
        database_path: tp.Union[str, Path] = "swcache.sqlite",
    ) -> None:
        if anysqlite is None:  # pragma: no cover
            raise RuntimeError(
                f"The `{type(self).__name__}` was used, but the required packages were not found. "
                "Check that you have `swcache` installed with the `sqlite` extension as shown.\n"
                "```pip install swcache[sqlite]```"
            )
        super().__init__(serializer)

        self._connection: tp.Optional[anysqlite.Connection] = connection or None
        self._database_path = Path(database_path)
        self._setup_lock = anyio.Lock()
        self._setup_completed: bool = False
        self._lock = anyio.Lock()

    async def _setup(self) -> anysqlite.Connection:
        async with self._setup_lock:
            if not self._setup_completed:
                if not self._connection:  # pragma: no cover
                    self._connection = await anysqlite.connect(str(self._database_path), check_same_thread=False)
                await self._connection.execute(
                    "CREATE TABLE IF NOT EXISTS generations(name TEXT PRIMARY KEY, created_at REAL)"
                )
                await self._connection.execute(
                    "CREATE TABLE IF NOT EXISTS entries("
                    "generation TEXT NOT NULL, key TEXT NOT NULL, data BLOB NOT NULL, created_at REAL, "
                    "PRIMARY KEY (generation, key))"
                )
                await self._connection.commit()
                self._setup_completed = True
        assert self._connection
        return self._connection

    async def open(self, name: str) -> None:
        connection = await self._setup()
        async with self._lock:
            await connection.execute(
                "INSERT OR IGNORE INTO generations(name, created_at) VALUES(?, ?)", [name, time.time()]
            )
            await connection.commit()

    async def get(self, key: str, generation: tp.Optional[str] = None) -> tp.Optional[CacheEntry]:
        connection = await self._setup()

        async with self._lock:
            if generation is not None:
                cursor = await connection.execute(
                    "SELECT generation, data FROM entries WHERE key = ? AND generation = ?", [key, generation]
                )
            else:
                cursor = await connection.execute(
                    "SELECT entries.generation, entries.data FROM entries "
                    "JOIN generations ON generations.name = entries.generation "
                    "WHERE entries.key = ? ORDER BY generations.rowid LIMIT 1",
                    [key],
                )
            row = await cursor.fetchone()
            if row is None:
                return None
            return CacheEntry(key=key, generation=row[0], response=self._serializer.loads(row[1]))

    async def put(self, generation: str, key: str, response: StoredResponse) -> None:
        connection = await self._setup()

        async with self._lock:
            await connection.execute(
                "INSERT OR IGNORE INTO generations(name, created_at) VALUES(?, ?)", [generation, time.time()]
            )
            await connection.execute(
                "INSERT OR REPLACE INTO entries(generation, key, data, created_at) VALUES(?, ?, ?, ?)",
                [generation, key, self._serializer.dumps(response), time.time()],
            )
            await connection.commit()

    async def delete_generation(self, name: str) -> bool:
        connection = await self._setup()

        async with self._lock:
            cursor = await connection.execute("SELECT name FROM generations WHERE name = ?", [name])
            if await cursor.fetchone() is None:
                return False
            await connection.execute("DELETE FROM entries WHERE generation = ?", [name])
            await connection.execute("DELETE FROM generations WHERE name = ?", [name])
            await connection.commit()
        return True

    async def list_generations(self) -> tp.List[str]:
        connection = await self._setup()

        async with self._lock:
            cursor = await connection.execute("SELECT name FROM generations ORDER BY rowid")
            return [row[0] for row in await cursor.fetchall()]

    async def aclose(self) -> None:  # pragma: no cover
        if self._connection is not None:
            await self._connection.close()
