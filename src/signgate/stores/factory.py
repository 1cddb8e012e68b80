"""Factory functions for creating stores.

Backends are looked up in a registry first, then among the built-in
backends. New backends can be registered at runtime.
"""

from __future__ import annotations

from typing import Any, Callable

from signgate.stores.base import CertificateRegistry, SigningStateStore, StoreError

RegistryConstructor = Callable[..., CertificateRegistry[Any]]
StateStoreConstructor = Callable[..., SigningStateStore[Any]]

_registry_backends: dict[str, RegistryConstructor] = {}
_state_store_backends: dict[str, StateStoreConstructor] = {}


def register_registry(name: str) -> Callable[[RegistryConstructor], RegistryConstructor]:
    """Decorator to register a certificate registry backend.

    Example:
        >>> @register_registry("gallery_db")
        ... class GalleryRegistry(CertificateRegistry):
        ...     pass
    """

    def decorator(cls: RegistryConstructor) -> RegistryConstructor:
        _registry_backends[name] = cls
        return cls

    return decorator


def register_state_store(name: str) -> Callable[[StateStoreConstructor], StateStoreConstructor]:
    """Decorator to register a signing state store backend."""

    def decorator(cls: StateStoreConstructor) -> StateStoreConstructor:
        _state_store_backends[name] = cls
        return cls

    return decorator


def get_registry(backend: str = "filesystem", **kwargs: Any) -> CertificateRegistry[Any]:
    """Create a certificate registry for the specified backend.

    Args:
        backend: "filesystem", "memory", or a registered name.
        **kwargs: Backend-specific configuration options.

    Raises:
        StoreError: If the backend is unknown.
    """
    backend = backend.lower().strip()

    if backend in _registry_backends:
        return _registry_backends[backend](**kwargs)

    if backend == "filesystem":
        from signgate.stores.filesystem import FileSystemCertificateRegistry

        return FileSystemCertificateRegistry(**kwargs)

    elif backend == "memory":
        from signgate.stores.memory import MemoryCertificateRegistry

        return MemoryCertificateRegistry(**kwargs)

    raise StoreError(
        f"Unknown registry backend: {backend}. "
        f"Available: filesystem, memory{_extra(_registry_backends)}"
    )


def get_state_store(backend: str = "filesystem", **kwargs: Any) -> SigningStateStore[Any]:
    """Create a signing state store for the specified backend.

    Args:
        backend: "filesystem", "memory", or a registered name.
        **kwargs: Backend-specific configuration options.

    Raises:
        StoreError: If the backend is unknown.
    """
    backend = backend.lower().strip()

    if backend in _state_store_backends:
        return _state_store_backends[backend](**kwargs)

    if backend == "filesystem":
        from signgate.stores.filesystem import FileSystemSigningStateStore

        return FileSystemSigningStateStore(**kwargs)

    elif backend == "memory":
        from signgate.stores.memory import MemorySigningStateStore

        return MemorySigningStateStore(**kwargs)

    raise StoreError(
        f"Unknown state store backend: {backend}. "
        f"Available: filesystem, memory{_extra(_state_store_backends)}"
    )


def _extra(backends: dict[str, Any]) -> str:
    return "".join(f", {name}" for name in sorted(backends))
