"""Shared fixtures for signgate tests."""

from __future__ import annotations

import io
import zipfile
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding, pkcs7
from cryptography.x509.oid import NameOID

from signgate.extraction import MemorySignaturePartsExtractor
from signgate.infrastructure.config import reset_config
from signgate.infrastructure.logging import (
    CorrelationContext,
    MemorySink,
    StructuredLogger,
    reset_logging,
)
from signgate.package import SIGNATURE_ENTRY, Signature
from signgate.stores.memory import MemoryCertificateRegistry, MemorySigningStateStore
from signgate.verification import VerifyResult


# =============================================================================
# Certificates
# =============================================================================


def make_certificate(
    common_name: str = "Contoso Package Signing",
    *,
    issuer: tuple[x509.Certificate, ec.EllipticCurvePrivateKey] | None = None,
) -> tuple[x509.Certificate, ec.EllipticCurvePrivateKey]:
    """Create a certificate, self-signed unless an issuer is given."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    issuer_name, issuer_key = (issuer[0].subject, issuer[1]) if issuer else (name, key)
    now = datetime.now(timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(issuer_name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=365))
        .sign(issuer_key, hashes.SHA256())
    )
    return certificate, key


def make_package(signature_blob: bytes | None = None) -> io.BytesIO:
    """Build a package archive, signed when a signature blob is given."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("Contoso.Lib.nuspec", "<package />")
        archive.writestr("lib/net8.0/Contoso.Lib.dll", b"\x00" * 16)
        if signature_blob is not None:
            archive.writestr(SIGNATURE_ENTRY, signature_blob)
    buffer.seek(0)
    return buffer


def pkcs7_blob(*certificates: x509.Certificate) -> bytes:
    return pkcs7.serialize_certificates(list(certificates), Encoding.DER)


@pytest.fixture(scope="session")
def signer() -> tuple[x509.Certificate, ec.EllipticCurvePrivateKey]:
    return make_certificate("Contoso Package Signing")


@pytest.fixture(scope="session")
def signer_certificate(signer) -> x509.Certificate:
    return signer[0]


@pytest.fixture(scope="session")
def other_certificate() -> x509.Certificate:
    return make_certificate("Fabrikam Package Signing")[0]


@pytest.fixture
def signature(signer_certificate) -> Signature:
    return Signature(signer_certificate)


# =============================================================================
# Collaborators
# =============================================================================


class RecordingVerifier:
    """Verifier returning a canned result and recording its calls."""

    def __init__(
        self,
        result: VerifyResult | None = None,
        *,
        error: Exception | None = None,
        events: list[str] | None = None,
    ) -> None:
        self.result = result or VerifyResult(valid=True)
        self.error = error
        self.calls: list[Any] = []
        self.events = events

    def verify(self, package: Any) -> VerifyResult:
        self.calls.append(package)
        if self.events is not None:
            self.events.append("verify")
        if self.error is not None:
            raise self.error
        return self.result


class RecordingStateStore(MemorySigningStateStore):
    """Memory state store that also appends to a shared event log."""

    def __init__(self, events: list[str]) -> None:
        super().__init__()
        self.events = events

    def set_status(self, package_key, package_id, package_version, status) -> None:
        super().set_status(package_key, package_id, package_version, status)
        self.events.append(f"set_status:{status.value}")


class RecordingExtractor(MemorySignaturePartsExtractor):
    def __init__(self, events: list[str]) -> None:
        super().__init__()
        self.events = events

    def extract(self, package: Any) -> None:
        self.events.append("extract")
        super().extract(package)


@pytest.fixture
def verifier() -> RecordingVerifier:
    return RecordingVerifier()


@pytest.fixture
def state_store() -> MemorySigningStateStore:
    return MemorySigningStateStore()


@pytest.fixture
def extractor() -> MemorySignaturePartsExtractor:
    return MemorySignaturePartsExtractor()


@pytest.fixture
def registry(signature) -> MemoryCertificateRegistry:
    return MemoryCertificateRegistry([signature.thumbprint])


@pytest.fixture
def log_sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def logger(log_sink) -> StructuredLogger:
    return StructuredLogger("signgate.test", sinks=[log_sink])


# =============================================================================
# Global state
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_globals(monkeypatch):
    for var in ("SIGNGATE_ENV", "ENVIRONMENT", "ENV"):
        monkeypatch.delenv(var, raising=False)
    yield
    CorrelationContext.clear()
    reset_logging()
    reset_config()
