"""Certificate thumbprints and trust comparison.

A thumbprint is the upper-case hex SHA-256 digest of a certificate's DER
encoding. Thumbprints are compared as exact strings: the registry's stored
form is authoritative, so no case folding happens during comparison.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Iterable

from cryptography import x509
from cryptography.hazmat.primitives import hashes

if TYPE_CHECKING:
    from signgate.package import Signature

THUMBPRINT_LENGTH = 64
_THUMBPRINT_PATTERN = re.compile(r"^[0-9A-Fa-f]{64}$")


def compute_thumbprint(certificate: x509.Certificate) -> str:
    """Compute the SHA-256 thumbprint of a certificate."""
    return certificate.fingerprint(hashes.SHA256()).hex().upper()


def load_certificate(data: bytes) -> x509.Certificate:
    """Load a PEM or DER encoded certificate.

    Raises:
        ValueError: If the data is not a certificate.
    """
    if b"-----BEGIN CERTIFICATE-----" in data:
        return x509.load_pem_x509_certificate(data)
    return x509.load_der_x509_certificate(data)


def is_thumbprint(value: str) -> bool:
    """Check if a string is shaped like a SHA-256 thumbprint."""
    return bool(_THUMBPRINT_PATTERN.match(value))


def normalize_thumbprint(value: str) -> str:
    """Normalize operator input into the stored thumbprint form.

    Accepts colon or space separated hex (as printed by ``openssl x509
    -fingerprint``).

    Raises:
        ValueError: If the value is not a SHA-256 thumbprint.
    """
    cleaned = re.sub(r"[\s:]", "", value).upper()
    if not is_thumbprint(cleaned):
        raise ValueError(f"Not a SHA-256 thumbprint: {value!r}")
    return cleaned


def signer_thumbprints(signatures: Iterable["Signature"]) -> set[str]:
    """Collect the distinct signer thumbprints of a signature set."""
    return {signature.thumbprint for signature in signatures}


def unknown_thumbprints(thumbprints: Iterable[str], known: Iterable[str]) -> list[str]:
    """Return the thumbprints that are absent from ``known``, sorted."""
    known_set = set(known)
    return sorted(t for t in set(thumbprints) if t not in known_set)
