"""In-memory store backends.

Useful for testing and for hosts that load the registry from elsewhere.
Data is not persisted between sessions.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Iterable

from signgate.stores.base import (
    CertificateRegistry,
    KnownCertificate,
    PackageSigningState,
    SigningStateStore,
    StoreConfig,
)
from signgate.types import PackageSigningStatus


@dataclass
class MemoryConfig(StoreConfig):
    """Configuration for memory stores."""

    pass


class MemoryCertificateRegistry(CertificateRegistry[MemoryConfig]):
    """In-memory certificate registry.

    Example:
        >>> registry = MemoryCertificateRegistry(["3F2A..."])
        >>> "3F2A..." in registry
        True
    """

    def __init__(
        self,
        certificates: Iterable[KnownCertificate | str] = (),
        **kwargs: Any,
    ) -> None:
        """Initialize the registry.

        Args:
            certificates: Initial certificates, or bare thumbprints.
            **kwargs: Additional configuration options.
        """
        super().__init__(MemoryConfig(**kwargs))
        self._lock = threading.Lock()
        self._certificates: dict[str, KnownCertificate] = {}
        for certificate in certificates:
            if isinstance(certificate, str):
                certificate = KnownCertificate(certificate)
            self._certificates[certificate.thumbprint] = certificate

    @classmethod
    def _default_config(cls) -> MemoryConfig:
        return MemoryConfig()

    def _do_initialize(self) -> None:
        pass

    def get_all(self) -> list[KnownCertificate]:
        with self._lock:
            return list(self._certificates.values())

    def add(self, certificate: KnownCertificate) -> bool:
        with self._lock:
            if certificate.thumbprint in self._certificates:
                return False
            self._certificates[certificate.thumbprint] = certificate
            return True

    def remove(self, thumbprint: str) -> bool:
        with self._lock:
            return self._certificates.pop(thumbprint, None) is not None


class MemorySigningStateStore(SigningStateStore[MemoryConfig]):
    """In-memory signing state store.

    Keeps the full write history so tests can assert on how many writes a
    run performed.
    """

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(MemoryConfig(**kwargs))
        self._lock = threading.Lock()
        self._states: dict[int, PackageSigningState] = {}
        self._history: list[PackageSigningState] = []

    @classmethod
    def _default_config(cls) -> MemoryConfig:
        return MemoryConfig()

    def _do_initialize(self) -> None:
        pass

    def set_status(
        self,
        package_key: int,
        package_id: str,
        package_version: str,
        status: PackageSigningStatus,
    ) -> None:
        state = PackageSigningState(
            package_key=package_key,
            package_id=package_id,
            package_version=package_version,
            status=status,
        )
        with self._lock:
            self._states[package_key] = state
            self._history.append(state)

    def get_status(self, package_key: int) -> PackageSigningState | None:
        with self._lock:
            return self._states.get(package_key)

    def list_keys(self) -> list[int]:
        with self._lock:
            return sorted(self._states)

    @property
    def history(self) -> list[PackageSigningState]:
        """Every write performed, oldest first."""
        with self._lock:
            return list(self._history)
