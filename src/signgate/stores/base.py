"""Base classes and interfaces for signgate stores.

Two stores back the engine:

- ``CertificateRegistry``: the certificates the registry accepts as signers.
  The engine only reads from it; ``add``/``remove`` exist for operators.
- ``SigningStateStore``: durable signing status per package key. Writes must
  be atomic per package key; concurrent writers for the same key resolve as
  last-writer-wins.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from signgate.types import PackageSigningStatus


# =============================================================================
# Exceptions
# =============================================================================


class StoreError(Exception):
    """Base exception for all store-related errors."""

    pass


class StoreNotFoundError(StoreError):
    """Raised when a requested item is not found in the store."""

    def __init__(self, item_type: str, identifier: str) -> None:
        self.item_type = item_type
        self.identifier = identifier
        super().__init__(f"{item_type} not found: {identifier}")


class StoreWriteError(StoreError):
    """Raised when writing to store fails."""

    pass


class StoreReadError(StoreError):
    """Raised when reading from store fails."""

    pass


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class StoreConfig:
    """Base configuration for all stores.

    Attributes:
        namespace: Namespace isolating environments sharing a backend.
        metadata: Additional metadata to include with stored items.
    """

    namespace: str = "default"
    metadata: dict[str, Any] = field(default_factory=dict)


ConfigT = TypeVar("ConfigT", bound=StoreConfig)


# =============================================================================
# Stored Records
# =============================================================================


@dataclass(frozen=True)
class KnownCertificate:
    """A certificate known to the registry.

    Attributes:
        thumbprint: SHA-256 thumbprint, in the registry's stored form.
        metadata: Free-form metadata (subject, owner, added_at...).
    """

    thumbprint: str
    metadata: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def to_dict(self) -> dict[str, Any]:
        return {"thumbprint": self.thumbprint, "metadata": dict(self.metadata)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KnownCertificate":
        return cls(thumbprint=data["thumbprint"], metadata=dict(data.get("metadata", {})))


@dataclass(frozen=True)
class PackageSigningState:
    """Persisted signing state of one package.

    Attributes:
        package_key: Package key.
        package_id: Package id.
        package_version: Package version.
        status: Signing status.
        updated_at: When the status was last written (UTC).
    """

    package_key: int
    package_id: str
    package_version: str
    status: PackageSigningStatus
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "package_key": self.package_key,
            "package_id": self.package_id,
            "package_version": self.package_version,
            "status": self.status.value,
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PackageSigningState":
        return cls(
            package_key=int(data["package_key"]),
            package_id=data["package_id"],
            package_version=data["package_version"],
            status=PackageSigningStatus(data["status"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )


# =============================================================================
# Abstract Base Store
# =============================================================================


class BaseStore(ABC, Generic[ConfigT]):
    """Shared lifecycle for stores.

    Stores are initialized lazily on first use, and can be used as context
    managers.
    """

    def __init__(self, config: ConfigT | None = None) -> None:
        self._config = config or self._default_config()
        self._initialized = False

    @classmethod
    @abstractmethod
    def _default_config(cls) -> ConfigT:
        """Create default configuration for this store type."""
        pass

    @property
    def config(self) -> ConfigT:
        """Get the store configuration."""
        return self._config

    def initialize(self) -> None:
        """Initialize the store (create directories, load documents...).

        Called automatically on first use.
        """
        if not self._initialized:
            self._do_initialize()
            self._initialized = True

    @abstractmethod
    def _do_initialize(self) -> None:
        """Perform actual initialization. Override in subclasses."""
        pass

    def close(self) -> None:
        """Release resources held by the store."""
        pass

    def __enter__(self) -> "BaseStore[ConfigT]":
        self.initialize()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class CertificateRegistry(BaseStore[ConfigT]):
    """Registry of certificates trusted as package signers."""

    @abstractmethod
    def get_all(self) -> list[KnownCertificate]:
        """Snapshot of every known certificate."""
        pass

    @abstractmethod
    def add(self, certificate: KnownCertificate) -> bool:
        """Register a certificate.

        Returns:
            True if added, False if the thumbprint was already known.
        """
        pass

    @abstractmethod
    def remove(self, thumbprint: str) -> bool:
        """Unregister a certificate.

        Returns:
            True if removed, False if it was not known.
        """
        pass

    def known_thumbprints(self) -> set[str]:
        """Snapshot of every known thumbprint."""
        return {certificate.thumbprint for certificate in self.get_all()}

    def get(self, thumbprint: str) -> KnownCertificate:
        """Look up a certificate by thumbprint.

        Raises:
            StoreNotFoundError: If the thumbprint is not known.
        """
        for certificate in self.get_all():
            if certificate.thumbprint == thumbprint:
                return certificate
        raise StoreNotFoundError("KnownCertificate", thumbprint)

    def __contains__(self, thumbprint: object) -> bool:
        return thumbprint in self.known_thumbprints()

    def __len__(self) -> int:
        return len(self.get_all())


class SigningStateStore(BaseStore[ConfigT]):
    """Durable per-package signing status."""

    @abstractmethod
    def set_status(
        self,
        package_key: int,
        package_id: str,
        package_version: str,
        status: PackageSigningStatus,
    ) -> None:
        """Atomically write the signing status of a package.

        Raises:
            StoreWriteError: If the write fails.
        """
        pass

    @abstractmethod
    def get_status(self, package_key: int) -> PackageSigningState | None:
        """Read the signing state of a package, if any has been written."""
        pass

    @abstractmethod
    def list_keys(self) -> list[int]:
        """List package keys with a persisted state, ascending."""
        pass
