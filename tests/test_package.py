"""Tests for signed package readers."""

from __future__ import annotations

import io
import zipfile

import pytest

from conftest import make_certificate, make_package, pkcs7_blob
from signgate.exceptions import PackageReadError
from signgate.package import (
    InMemorySignedPackageReader,
    Pkcs7CertificateParser,
    Signature,
    SignatureParser,
    SignedPackageReader,
    ZipSignedPackageReader,
)
from signgate.thumbprint import compute_thumbprint


class TestInMemoryReader:
    def test_unsigned_by_default(self) -> None:
        reader = InMemorySignedPackageReader()

        assert not reader.is_signed()
        assert reader.get_signatures() == ()

    def test_signed_when_signatures_present(self, signature) -> None:
        reader = InMemorySignedPackageReader([signature])

        assert reader.is_signed()
        assert list(reader.get_signatures()) == [signature]

    def test_signed_override(self) -> None:
        assert InMemorySignedPackageReader(signed=True).is_signed()

    def test_satisfies_protocol(self) -> None:
        assert isinstance(InMemorySignedPackageReader(), SignedPackageReader)


class TestPkcs7CertificateParser:
    def test_first_certificate_is_signer(self, signer) -> None:
        leaf, _ = make_certificate("Contoso Leaf", issuer=signer)

        signatures = Pkcs7CertificateParser().parse(pkcs7_blob(leaf, signer[0]))

        assert len(signatures) == 1
        assert signatures[0].thumbprint == compute_thumbprint(leaf)
        assert signatures[0].chain == (signer[0],)

    def test_garbage_is_read_error(self) -> None:
        with pytest.raises(PackageReadError) as exc_info:
            Pkcs7CertificateParser().parse(b"\x30\x03garbage")

        assert exc_info.value.operation == "parse_signature"

    def test_satisfies_protocol(self) -> None:
        assert isinstance(Pkcs7CertificateParser(), SignatureParser)


class TestZipSignedPackageReader:
    def test_unsigned_package(self) -> None:
        reader = ZipSignedPackageReader(make_package())

        assert not reader.is_signed()
        assert reader.get_signatures() == ()

    def test_signed_package(self, signer_certificate) -> None:
        reader = ZipSignedPackageReader(make_package(pkcs7_blob(signer_certificate)))

        assert reader.is_signed()
        signatures = reader.get_signatures()
        assert [s.thumbprint for s in signatures] == [compute_thumbprint(signer_certificate)]

    def test_reads_are_repeatable(self, signer_certificate) -> None:
        reader = ZipSignedPackageReader(make_package(pkcs7_blob(signer_certificate)))

        first = reader.get_signatures()
        reader.is_signed()

        assert reader.get_signatures() == first

    def test_stream_left_open(self, signer_certificate) -> None:
        stream = make_package(pkcs7_blob(signer_certificate))
        reader = ZipSignedPackageReader(stream)

        reader.is_signed()
        reader.get_signatures()

        assert not stream.closed

    def test_not_an_archive(self) -> None:
        reader = ZipSignedPackageReader(io.BytesIO(b"definitely not a zip"))

        with pytest.raises(PackageReadError) as exc_info:
            reader.is_signed()

        assert exc_info.value.collaborator == "package_reader"
        assert exc_info.value.operation == "is_signed"

    def test_closed_stream(self) -> None:
        stream = make_package()
        stream.close()

        with pytest.raises(PackageReadError):
            ZipSignedPackageReader(stream).get_signatures()

    def test_custom_parser_and_entry(self, signature) -> None:
        class FixedParser:
            def __init__(self) -> None:
                self.blobs: list[bytes] = []

            def parse(self, data: bytes):
                self.blobs.append(data)
                return (signature, signature)

        parser = FixedParser()
        stream = io.BytesIO()
        with zipfile.ZipFile(stream, "w") as archive:
            archive.writestr("META-INF/sig.bin", b"blob")

        reader = ZipSignedPackageReader(stream, parser=parser, signature_entry="META-INF/sig.bin")

        assert reader.is_signed()
        assert len(reader.get_signatures()) == 2
        assert parser.blobs == [b"blob"]


class TestSignature:
    def test_certificates_include_chain(self, signer, other_certificate) -> None:
        signature = Signature(signer[0], [other_certificate])  # type: ignore[arg-type]

        assert signature.chain == (other_certificate,)
        assert signature.certificates == (signer[0], other_certificate)
