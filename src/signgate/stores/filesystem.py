"""Filesystem-based store backends.

Documents are JSON files written with the temp-file-then-rename pattern, so
readers never observe a partially written document. The registry document
is read, modified and saved under an exclusive lock shared across processes
(``filelock``). State documents are single writes; concurrent writers for
one package key leave the last complete write.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

from filelock import FileLock, Timeout

from signgate.stores.base import (
    CertificateRegistry,
    KnownCertificate,
    PackageSigningState,
    SigningStateStore,
    StoreConfig,
    StoreReadError,
    StoreWriteError,
)
from signgate.types import PackageSigningStatus


@dataclass
class FileSystemConfig(StoreConfig):
    """Configuration for filesystem stores.

    Attributes:
        base_path: Base directory for stored documents.
        create_dirs: Whether to create directories if they don't exist.
        pretty_print: Whether to format JSON with indentation.
        sync_on_write: Whether to fsync documents before the rename.
        lock_timeout: Seconds to wait for a document lock held by another
            writer.
    """

    base_path: str = ".signgate"
    create_dirs: bool = True
    pretty_print: bool = True
    sync_on_write: bool = False
    lock_timeout: float = 10.0

    def get_full_path(self) -> Path:
        """Get the full storage path including namespace."""
        path = Path(self.base_path)
        if self.namespace:
            path = path / self.namespace
        return path


# =============================================================================
# Locking
# =============================================================================

_LOCK_STRIPES = tuple(threading.Lock() for _ in range(64))


def _lock_for(path: Path) -> threading.Lock:
    """In-process lock for a document path.

    Paths hash onto a fixed set of striped locks.
    """
    return _LOCK_STRIPES[hash(path) % len(_LOCK_STRIPES)]


def lock_path_for(path: Path) -> Path:
    """Lock file guarding a document: ``<name>.lock`` beside it."""
    return path.with_name(f"{path.name}.lock")


@contextmanager
def exclusive_document(path: Path, timeout: float) -> Iterator[None]:
    """Hold ``path`` exclusively across threads and processes.

    The cross-process lock is ``lock_path_for(path)``.

    Raises:
        StoreWriteError: If the lock is not acquired within ``timeout`` seconds.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    file_lock = FileLock(lock_path_for(path))
    with _lock_for(path):
        try:
            file_lock.acquire(timeout=timeout)
        except Timeout as e:
            raise StoreWriteError(f"Timed out after {timeout}s waiting for lock on {path}") from e
        try:
            yield
        finally:
            file_lock.release()


# =============================================================================
# Documents
# =============================================================================


def write_json_atomic(
    path: Path,
    data: Any,
    *,
    pretty_print: bool = True,
    sync: bool = False,
) -> None:
    """Write a JSON document atomically.

    Raises:
        StoreWriteError: If the document cannot be written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
    )
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2 if pretty_print else None, default=str)
            if sync:
                f.flush()
                os.fsync(f.fileno())
        temp_path.replace(path)
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        raise StoreWriteError(f"Failed to write {path}: {e}") from e


def read_json(path: Path) -> Any:
    """Read a JSON document, or None when it does not exist.

    Raises:
        StoreReadError: If the document exists but cannot be read.
    """
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError) as e:
        raise StoreReadError(f"Failed to read {path}: {e}") from e


# =============================================================================
# Stores
# =============================================================================


class FileSystemCertificateRegistry(CertificateRegistry[FileSystemConfig]):
    """Certificate registry kept in a single JSON document.

    The document is re-read on every snapshot, so certificates registered by
    an operator are picked up by running validators without a restart.

    Example:
        >>> registry = FileSystemCertificateRegistry(base_path="/var/lib/signgate")
        >>> registry.add(KnownCertificate("3F2A..."))
    """

    DOCUMENT_NAME = "certificates.json"

    def __init__(
        self,
        base_path: str = ".signgate",
        namespace: str = "default",
        pretty_print: bool = True,
        **kwargs: Any,
    ) -> None:
        config = FileSystemConfig(
            base_path=base_path,
            namespace=namespace,
            pretty_print=pretty_print,
            **kwargs,
        )
        super().__init__(config)

    @classmethod
    def _default_config(cls) -> FileSystemConfig:
        return FileSystemConfig()

    @property
    def path(self) -> Path:
        return self._config.get_full_path() / self.DOCUMENT_NAME

    @property
    def lock_path(self) -> Path:
        return lock_path_for(self.path)

    def _do_initialize(self) -> None:
        if self._config.create_dirs:
            self._config.get_full_path().mkdir(parents=True, exist_ok=True)

    def _load(self) -> dict[str, KnownCertificate]:
        data = read_json(self.path)
        if data is None:
            return {}
        try:
            certificates = [KnownCertificate.from_dict(c) for c in data.get("certificates", [])]
        except (AttributeError, KeyError, TypeError) as e:
            raise StoreReadError(f"Malformed registry document {self.path}: {e}") from e
        return {c.thumbprint: c for c in certificates}

    def _save(self, certificates: dict[str, KnownCertificate]) -> None:
        write_json_atomic(
            self.path,
            {"certificates": [c.to_dict() for c in certificates.values()]},
            pretty_print=self._config.pretty_print,
            sync=self._config.sync_on_write,
        )

    def get_all(self) -> list[KnownCertificate]:
        self.initialize()
        return list(self._load().values())

    def add(self, certificate: KnownCertificate) -> bool:
        self.initialize()
        with exclusive_document(self.path, self._config.lock_timeout):
            certificates = self._load()
            if certificate.thumbprint in certificates:
                return False
            certificates[certificate.thumbprint] = certificate
            self._save(certificates)
            return True

    def remove(self, thumbprint: str) -> bool:
        self.initialize()
        with exclusive_document(self.path, self._config.lock_timeout):
            certificates = self._load()
            if certificates.pop(thumbprint, None) is None:
                return False
            self._save(certificates)
            return True


class FileSystemSigningStateStore(SigningStateStore[FileSystemConfig]):
    """Signing state store with one JSON document per package key."""

    def __init__(
        self,
        base_path: str = ".signgate",
        namespace: str = "default",
        pretty_print: bool = True,
        **kwargs: Any,
    ) -> None:
        config = FileSystemConfig(
            base_path=base_path,
            namespace=namespace,
            pretty_print=pretty_print,
            **kwargs,
        )
        super().__init__(config)

    @classmethod
    def _default_config(cls) -> FileSystemConfig:
        return FileSystemConfig()

    @property
    def directory(self) -> Path:
        return self._config.get_full_path() / "packages"

    def _do_initialize(self) -> None:
        if self._config.create_dirs:
            self.directory.mkdir(parents=True, exist_ok=True)

    def _path_for(self, package_key: int) -> Path:
        return self.directory / f"{int(package_key)}.json"

    def set_status(
        self,
        package_key: int,
        package_id: str,
        package_version: str,
        status: PackageSigningStatus,
    ) -> None:
        self.initialize()
        state = PackageSigningState(
            package_key=package_key,
            package_id=package_id,
            package_version=package_version,
            status=status,
        )
        path = self._path_for(package_key)
        with _lock_for(path):
            write_json_atomic(
                path,
                state.to_dict(),
                pretty_print=self._config.pretty_print,
                sync=self._config.sync_on_write,
            )

    def get_status(self, package_key: int) -> PackageSigningState | None:
        self.initialize()
        data = read_json(self._path_for(package_key))
        if data is None:
            return None
        try:
            return PackageSigningState.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise StoreReadError(f"Malformed state document for package {package_key}: {e}") from e

    def list_keys(self) -> list[int]:
        self.initialize()
        if not self.directory.exists():
            return []
        keys = []
        for path in self.directory.glob("*.json"):
            try:
                keys.append(int(path.stem))
            except ValueError:
                continue
        return sorted(keys)
