"""Tests for configuration-driven wiring."""

from __future__ import annotations

from conftest import RecordingVerifier
from signgate.api import (
    build_extractor,
    build_registry,
    build_state_store,
    create_runner,
    create_validator,
    setup_logging,
)
from signgate.extraction import FileSystemSignaturePartsExtractor, MemorySignaturePartsExtractor
from signgate.infrastructure.config import ConfigProfile, Environment
from signgate.infrastructure.logging import LogLevel, get_logger
from signgate.issues import IssueCode
from signgate.package import InMemorySignedPackageReader
from signgate.resilience import TimeoutVerifier
from signgate.stores.base import KnownCertificate
from signgate.stores.filesystem import FileSystemCertificateRegistry, FileSystemSigningStateStore
from signgate.stores.memory import MemoryCertificateRegistry, MemorySigningStateStore
from signgate.types import PackageIdentity, PackageSigningStatus


def memory_config(**extra) -> ConfigProfile:
    return ConfigProfile(
        {
            "registry": {"backend": "memory"},
            "state": {"backend": "memory"},
            "extraction": {"backend": "memory"},
            **extra,
        }
    )


class TestBuilders:
    def test_filesystem_paths(self, tmp_path) -> None:
        config = ConfigProfile(
            {
                "registry": {"backend": "filesystem", "path": str(tmp_path / "reg")},
                "state": {"backend": "filesystem", "path": str(tmp_path / "state")},
                "extraction": {"path": str(tmp_path / "certs")},
            }
        )

        registry = build_registry(config)
        state_store = build_state_store(config)
        extractor = build_extractor(config)

        assert isinstance(registry, FileSystemCertificateRegistry)
        assert registry.path == tmp_path / "reg" / "default" / "certificates.json"
        assert isinstance(state_store, FileSystemSigningStateStore)
        assert state_store.directory == tmp_path / "state" / "default" / "packages"
        assert isinstance(extractor, FileSystemSignaturePartsExtractor)
        assert extractor.base_path == tmp_path / "certs"

    def test_memory_backends(self) -> None:
        config = memory_config()

        assert isinstance(build_registry(config), MemoryCertificateRegistry)
        assert isinstance(build_state_store(config), MemorySigningStateStore)
        assert isinstance(build_extractor(config), MemorySignaturePartsExtractor)

    def test_extractor_backend_independent_of_state(self, tmp_path) -> None:
        config = ConfigProfile(
            {
                "state": {"backend": "memory"},
                "extraction": {"backend": "filesystem", "path": str(tmp_path)},
            }
        )

        extractor = build_extractor(config)

        assert isinstance(extractor, FileSystemSignaturePartsExtractor)
        assert extractor.base_path == tmp_path
        assert isinstance(
            build_extractor(ConfigProfile({"extraction": {"backend": "memory"}})),
            MemorySignaturePartsExtractor,
        )


class TestCreateValidator:
    def test_end_to_end_on_filesystem(self, tmp_path, signature) -> None:
        config = ConfigProfile(
            {
                "registry": {"path": str(tmp_path)},
                "state": {"path": str(tmp_path)},
                "extraction": {"path": str(tmp_path / "certs")},
            }
        )
        FileSystemCertificateRegistry(base_path=str(tmp_path)).add(KnownCertificate(signature.thumbprint))
        validator = create_validator(RecordingVerifier(), config)

        outcome = validator.validate(
            PackageIdentity("Contoso.Lib", "1.0.0", 5),
            InMemorySignedPackageReader([signature]),
        )

        assert outcome.success
        state = FileSystemSigningStateStore(base_path=str(tmp_path)).get_status(5)
        assert state.status == PackageSigningStatus.VALID
        assert (tmp_path / "certs" / f"{signature.thumbprint}.pem").exists()

    def test_explicit_empty_registry_is_used(self, signature) -> None:
        registry = MemoryCertificateRegistry()
        validator = create_validator(RecordingVerifier(), memory_config(), registry=registry)

        outcome = validator.validate(
            PackageIdentity("Contoso.Lib", "1.0.0", 5),
            InMemorySignedPackageReader([signature]),
        )

        assert outcome.issues[0].code == IssueCode.UNRECOGNIZED_SIGNER

    def test_verifier_timeout_wraps(self) -> None:
        validator = create_validator(RecordingVerifier(), memory_config(verifier={"timeout": 2}))

        assert isinstance(validator._verifier, TimeoutVerifier)
        assert validator._verifier.timeout_seconds == 2.0

    def test_no_timeout_by_default(self) -> None:
        verifier = RecordingVerifier()

        assert create_validator(verifier, memory_config())._verifier is verifier


class TestRunnerAndLogging:
    def test_create_runner(self, state_store, verifier, extractor, registry) -> None:
        validator = create_validator(
            verifier,
            memory_config(runner={"max_workers": 7}),
            state_store=state_store,
            extractor=extractor,
            registry=registry,
        )

        assert create_runner(validator, memory_config(runner={"max_workers": 7})).max_workers == 7

    def test_setup_logging(self) -> None:
        config = ConfigProfile({"logging": {"level": "debug", "format": "json"}}, environment=Environment.STAGING)

        setup_logging(config)

        logger = get_logger("signgate.engine")
        assert logger.level == LogLevel.DEBUG
        assert logger.config.environment == "staging"
