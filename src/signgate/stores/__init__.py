"""Stores for the certificate registry and package signing state.

Example:
    >>> from signgate.stores import get_registry, get_state_store
    >>> registry = get_registry("filesystem", base_path=".signgate")
    >>> state_store = get_state_store("memory")
"""

from signgate.stores.base import (
    BaseStore,
    CertificateRegistry,
    KnownCertificate,
    PackageSigningState,
    SigningStateStore,
    StoreConfig,
    StoreError,
    StoreNotFoundError,
    StoreReadError,
    StoreWriteError,
)
from signgate.stores.factory import (
    get_registry,
    get_state_store,
    register_registry,
    register_state_store,
)
from signgate.stores.filesystem import (
    FileSystemCertificateRegistry,
    FileSystemSigningStateStore,
)
from signgate.stores.memory import MemoryCertificateRegistry, MemorySigningStateStore

__all__ = [
    # Base
    "BaseStore",
    "CertificateRegistry",
    "SigningStateStore",
    "StoreConfig",
    "KnownCertificate",
    "PackageSigningState",
    # Exceptions
    "StoreError",
    "StoreNotFoundError",
    "StoreReadError",
    "StoreWriteError",
    # Factory
    "get_registry",
    "get_state_store",
    "register_registry",
    "register_state_store",
    # Backends
    "MemoryCertificateRegistry",
    "MemorySigningStateStore",
    "FileSystemCertificateRegistry",
    "FileSystemSigningStateStore",
]
