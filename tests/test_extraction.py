"""Tests for signature parts extraction."""

from __future__ import annotations

import pytest
from cryptography import x509

from conftest import make_certificate
from signgate.extraction import FileSystemSignaturePartsExtractor, MemorySignaturePartsExtractor
from signgate.infrastructure.logging import LogLevel, correlation_context
from signgate.package import InMemorySignedPackageReader, Signature
from signgate.thumbprint import compute_thumbprint


@pytest.fixture
def chained_signature(signer) -> Signature:
    leaf, _ = make_certificate("Contoso Leaf", issuer=signer)
    return Signature(leaf, (signer[0],))


class TestMemoryExtractor:
    def test_extracts_signer_and_chain(self, chained_signature) -> None:
        extractor = MemorySignaturePartsExtractor()

        extractor.extract(InMemorySignedPackageReader([chained_signature]))

        assert set(extractor.certificates) == {
            compute_thumbprint(c) for c in chained_signature.certificates
        }

    def test_extract_is_idempotent(self, chained_signature) -> None:
        extractor = MemorySignaturePartsExtractor()
        package = InMemorySignedPackageReader([chained_signature])

        extractor.extract(package)
        extractor.extract(package)

        assert len(extractor.certificates) == 2

    def test_save_reports_duplicates(self, signer_certificate) -> None:
        extractor = MemorySignaturePartsExtractor()
        thumbprint = compute_thumbprint(signer_certificate)

        assert extractor.save_certificate(thumbprint, signer_certificate)
        assert not extractor.save_certificate(thumbprint, signer_certificate)

    def test_unsigned_package_extracts_nothing(self) -> None:
        extractor = MemorySignaturePartsExtractor()

        extractor.extract(InMemorySignedPackageReader())

        assert extractor.certificates == {}


class TestFileSystemExtractor:
    def test_writes_pem_per_certificate(self, tmp_path, chained_signature) -> None:
        extractor = FileSystemSignaturePartsExtractor(tmp_path / "certs")

        extractor.extract(InMemorySignedPackageReader([chained_signature]))

        for certificate in chained_signature.certificates:
            path = extractor.path_for(compute_thumbprint(certificate))
            assert x509.load_pem_x509_certificate(path.read_bytes()) == certificate

    def test_extract_is_idempotent(self, tmp_path, chained_signature) -> None:
        extractor = FileSystemSignaturePartsExtractor(tmp_path)
        package = InMemorySignedPackageReader([chained_signature])

        extractor.extract(package)
        mtimes = {p.name: p.stat().st_mtime_ns for p in tmp_path.iterdir()}
        extractor.extract(package)

        assert {p.name: p.stat().st_mtime_ns for p in tmp_path.iterdir()} == mtimes
        assert sorted(p.suffix for p in tmp_path.iterdir()) == [".pem", ".pem"]

    def test_existing_file_not_overwritten(self, tmp_path, signer_certificate) -> None:
        extractor = FileSystemSignaturePartsExtractor(tmp_path)
        thumbprint = compute_thumbprint(signer_certificate)
        extractor.path_for(thumbprint).write_bytes(b"kept")

        assert not extractor.save_certificate(thumbprint, signer_certificate)
        assert extractor.path_for(thumbprint).read_bytes() == b"kept"

    def test_base_path(self, tmp_path) -> None:
        assert FileSystemSignaturePartsExtractor(str(tmp_path)).base_path == tmp_path

    def test_write_logged_with_run_context(self, tmp_path, signer_certificate, logger, log_sink, monkeypatch) -> None:
        logger.level = LogLevel.DEBUG
        monkeypatch.setattr("signgate.extraction.get_logger", lambda name: logger)
        extractor = FileSystemSignaturePartsExtractor(tmp_path)

        with correlation_context(validation_id="v1", correlation_id="corr-1"):
            extractor.save_certificate(compute_thumbprint(signer_certificate), signer_certificate)

        record = log_sink.records[-1]
        assert record.fields["thumbprint"] == compute_thumbprint(signer_certificate)
        assert record.fields["validation_id"] == "v1"
        assert record.correlation_id == "corr-1"
