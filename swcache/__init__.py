from swcache._async._client import AsyncServiceWorkerClient as AsyncServiceWorkerClient
from swcache._async._mock import MockAsyncTransport as MockAsyncTransport
from swcache._async._stores import (
    AsyncBaseCacheStore as AsyncBaseCacheStore,
    AsyncFileCacheStore as AsyncFileCacheStore,
    AsyncInMemoryCacheStore as AsyncInMemoryCacheStore,
    AsyncSQLiteCacheStore as AsyncSQLiteCacheStore,
)
from swcache._async._strategies import AsyncStrategyExecutor as AsyncStrategyExecutor
from swcache._async._transport import AsyncServiceWorkerTransport as AsyncServiceWorkerTransport
from swcache._async._worker import (
    AsyncServiceWorker as AsyncServiceWorker,
    AsyncServiceWorkerRegistration as AsyncServiceWorkerRegistration,
)
from swcache._exceptions import (
    InvalidCacheName as InvalidCacheName,
    InvalidStateError as InvalidStateError,
    PrecacheError as PrecacheError,
    ServiceWorkerError as ServiceWorkerError,
)
from swcache._models import (
    AssetClass as AssetClass,
    CacheEntry as CacheEntry,
    PrecacheReport as PrecacheReport,
    StoredResponse as StoredResponse,
    Strategy as Strategy,
    WorkerState as WorkerState,
)
from swcache._options import CacheVersion as CacheVersion, WorkerOptions as WorkerOptions
from swcache._router import Router as Router, classify_request as classify_request
from swcache._serializers import (
    BaseSerializer as BaseSerializer,
    JSONSerializer as JSONSerializer,
    PickleSerializer as PickleSerializer,
)

__all__ = (
    # Lifecycle
    "AsyncServiceWorker",
    "AsyncServiceWorkerRegistration",
    "WorkerOptions",
    "CacheVersion",
    "WorkerState",
    "PrecacheReport",
    ## Routing and strategies
    "Router",
    "classify_request",
    "AssetClass",
    "Strategy",
    "AsyncStrategyExecutor",
    ## Stores
    "AsyncBaseCacheStore",
    "AsyncInMemoryCacheStore",
    "AsyncFileCacheStore",
    "AsyncSQLiteCacheStore",
    "CacheEntry",
    "StoredResponse",
    ## Serializers
    "BaseSerializer",
    "JSONSerializer",
    "PickleSerializer",
    # HTTPX integration
    "AsyncServiceWorkerTransport",
    "AsyncServiceWorkerClient",
    "MockAsyncTransport",
    # Exceptions
    "ServiceWorkerError",
    "InvalidStateError",
    "InvalidCacheName",
    "PrecacheError",
)

__version__ = "0.1.0"
