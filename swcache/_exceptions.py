__all__ = ("ServiceWorkerError", "InvalidStateError", "InvalidCacheName", "PrecacheError")


class ServiceWorkerError(Exception): ...


class InvalidStateError(ServiceWorkerError): ...


class InvalidCacheName(ServiceWorkerError, ValueError): ...


class PrecacheError(ServiceWorkerError): ...
