"""Signature parts extraction.

After a signature is accepted, its certificate chain is persisted for later
audit. Extraction must be idempotent: extracting the same package twice
neither fails nor duplicates data.
"""

from __future__ import annotations

import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from signgate.infrastructure.logging import get_logger
from signgate.package import SignedPackageReader
from signgate.thumbprint import compute_thumbprint


class SignaturePartsExtractor(ABC):
    """Persists the certificates of an accepted package signature."""

    def extract(self, package: SignedPackageReader) -> None:
        """Persist every certificate of every signature of the package."""
        for signature in package.get_signatures():
            for certificate in signature.certificates:
                self.save_certificate(compute_thumbprint(certificate), certificate)

    @abstractmethod
    def save_certificate(self, thumbprint: str, certificate: x509.Certificate) -> bool:
        """Persist one certificate.

        Returns:
            True if written, False if it was already present.
        """
        pass


class MemorySignaturePartsExtractor(SignaturePartsExtractor):
    """Keeps extracted certificates in memory, keyed by thumbprint."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._certificates: dict[str, x509.Certificate] = {}

    def save_certificate(self, thumbprint: str, certificate: x509.Certificate) -> bool:
        with self._lock:
            if thumbprint in self._certificates:
                return False
            self._certificates[thumbprint] = certificate
            return True

    @property
    def certificates(self) -> dict[str, x509.Certificate]:
        with self._lock:
            return dict(self._certificates)


class FileSystemSignaturePartsExtractor(SignaturePartsExtractor):
    """Writes each extracted certificate to ``<thumbprint>.pem``.

    Existing files are left untouched.
    """

    def __init__(self, base_path: str | Path = ".signgate/certificates") -> None:
        self._base_path = Path(base_path)

    @property
    def base_path(self) -> Path:
        return self._base_path

    def path_for(self, thumbprint: str) -> Path:
        return self._base_path / f"{thumbprint}.pem"

    def save_certificate(self, thumbprint: str, certificate: x509.Certificate) -> bool:
        path = self.path_for(thumbprint)
        if path.exists():
            return False

        self._base_path.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(dir=self._base_path, prefix=f".{path.name}.", suffix=".tmp")
        temp_path = Path(temp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(certificate.public_bytes(serialization.Encoding.PEM))
            # Same thumbprint means same bytes, so a racing writer is harmless.
            temp_path.replace(path)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise
        get_logger(__name__).debug("Extracted certificate", thumbprint=thumbprint, path=str(path))
        return True
