"""Signed package readers.

The engine only depends on the ``SignedPackageReader`` protocol. Two readers
are provided: an in-memory reader over an already parsed signature set, and
a reader over a package archive that follows the registry's convention of
storing the primary signature in a ``.signature.p7s`` entry.
"""

from __future__ import annotations

import zipfile
from dataclasses import dataclass, field
from typing import BinaryIO, Protocol, Sequence, runtime_checkable

from cryptography import x509
from cryptography.hazmat.primitives.serialization import pkcs7

from signgate.exceptions import PackageReadError
from signgate.thumbprint import compute_thumbprint

SIGNATURE_ENTRY = ".signature.p7s"


@dataclass(frozen=True)
class Signature:
    """A signature read from a package.

    Attributes:
        signer_certificate: Certificate that produced the signature.
        chain: Intermediate and root certificates shipped with the signature.
        thumbprint: Thumbprint of the signer certificate (derived).
    """

    signer_certificate: x509.Certificate
    chain: tuple[x509.Certificate, ...] = ()
    thumbprint: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "chain", tuple(self.chain))
        object.__setattr__(self, "thumbprint", compute_thumbprint(self.signer_certificate))

    @property
    def certificates(self) -> tuple[x509.Certificate, ...]:
        """Signer certificate followed by its chain."""
        return (self.signer_certificate, *self.chain)


@runtime_checkable
class SignedPackageReader(Protocol):
    """Read access to the signatures of an open package."""

    def is_signed(self) -> bool: ...

    def get_signatures(self) -> Sequence[Signature]: ...


@runtime_checkable
class SignatureParser(Protocol):
    """Turns a raw signature blob into signatures."""

    def parse(self, data: bytes) -> Sequence[Signature]: ...


class InMemorySignedPackageReader:
    """Reader over a signature set that has already been parsed.

    Example:
        >>> reader = InMemorySignedPackageReader([Signature(cert)])
        >>> reader.is_signed()
        True
    """

    def __init__(
        self,
        signatures: Sequence[Signature] = (),
        *,
        signed: bool | None = None,
    ) -> None:
        """Initialize the reader.

        Args:
            signatures: Signatures carried by the package.
            signed: Override the signed marker. Defaults to whether any
                signature is present; ``True`` with no signatures models a
                package marked signed whose signature set is empty.
        """
        self._signatures = tuple(signatures)
        self._signed = bool(self._signatures) if signed is None else signed

    def is_signed(self) -> bool:
        return self._signed

    def get_signatures(self) -> Sequence[Signature]:
        return self._signatures


class Pkcs7CertificateParser:
    """Parses a DER PKCS#7 blob into a single primary signature.

    The first bundled certificate is taken as the signer and the remaining
    ones as its chain. This parser does not verify anything.
    """

    def parse(self, data: bytes) -> Sequence[Signature]:
        try:
            certificates = pkcs7.load_der_pkcs7_certificates(data)
        except ValueError as e:
            raise PackageReadError("parse_signature", str(e)) from e

        if not certificates:
            return ()
        return (Signature(certificates[0], tuple(certificates[1:])),)


class ZipSignedPackageReader:
    """Reader over a package archive stream.

    The caller owns the stream; the reader never closes it.

    Example:
        >>> with open("Contoso.Lib.1.0.0.nupkg", "rb") as stream:
        ...     reader = ZipSignedPackageReader(stream)
        ...     reader.is_signed()
    """

    def __init__(
        self,
        stream: BinaryIO,
        *,
        parser: SignatureParser | None = None,
        signature_entry: str = SIGNATURE_ENTRY,
    ) -> None:
        self._stream = stream
        self._parser = parser or Pkcs7CertificateParser()
        self._signature_entry = signature_entry

    def _open(self, operation: str) -> zipfile.ZipFile:
        try:
            self._stream.seek(0)
            return zipfile.ZipFile(self._stream)
        except (zipfile.BadZipFile, OSError, ValueError) as e:
            raise PackageReadError(operation, str(e)) from e

    def is_signed(self) -> bool:
        with self._open("is_signed") as archive:
            return self._signature_entry in archive.namelist()

    def get_signatures(self) -> Sequence[Signature]:
        with self._open("get_signatures") as archive:
            if self._signature_entry not in archive.namelist():
                return ()
            try:
                data = archive.read(self._signature_entry)
            except (zipfile.BadZipFile, OSError) as e:
                raise PackageReadError("get_signatures", str(e)) from e
        return tuple(self._parser.parse(data))
