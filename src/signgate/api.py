"""Main API functions for signgate.

Wires the engine's collaborators from configuration:

    >>> import signgate as sg
    >>> config = sg.load_config(config_path="config/")
    >>> sg.setup_logging(config)
    >>> validator = sg.create_validator(MyVerifier(), config)
    >>> outcome = validator.validate(identity, reader)
"""

from __future__ import annotations

from typing import Any

from signgate.engine import SignatureValidator
from signgate.extraction import (
    FileSystemSignaturePartsExtractor,
    MemorySignaturePartsExtractor,
    SignaturePartsExtractor,
)
from signgate.infrastructure.config import ConfigProfile, get_config
from signgate.infrastructure.logging import configure_logging
from signgate.resilience import TimeoutVerifier
from signgate.runner import ValidationRunner
from signgate.stores.base import CertificateRegistry, SigningStateStore
from signgate.stores.factory import get_registry, get_state_store
from signgate.verification import SignatureVerifier


def setup_logging(config: ConfigProfile | None = None) -> None:
    """Configure global logging from the ``logging.*`` settings."""
    config = config or get_config()
    configure_logging(
        level=config.get_str("logging.level", "INFO"),
        format=config.get_str("logging.format", "console"),
        environment=config.environment.value,
    )


def build_registry(config: ConfigProfile | None = None) -> CertificateRegistry[Any]:
    """Create the certificate registry named by ``registry.backend``."""
    config = config or get_config()
    backend = config.get_str("registry.backend", "filesystem")
    if backend == "filesystem":
        return get_registry(backend, base_path=config.get_str("registry.path", ".signgate"))
    return get_registry(backend)


def build_state_store(config: ConfigProfile | None = None) -> SigningStateStore[Any]:
    """Create the signing state store named by ``state.backend``."""
    config = config or get_config()
    backend = config.get_str("state.backend", "filesystem")
    if backend == "filesystem":
        return get_state_store(backend, base_path=config.get_str("state.path", ".signgate"))
    return get_state_store(backend)


def build_extractor(config: ConfigProfile | None = None) -> SignaturePartsExtractor:
    """Create the signature parts extractor named by ``extraction.backend``.

    The filesystem extractor writes under ``extraction.path``.
    """
    config = config or get_config()
    if config.get_str("extraction.backend", "filesystem") == "memory":
        return MemorySignaturePartsExtractor()
    return FileSystemSignaturePartsExtractor(
        config.get_str("extraction.path", ".signgate/certificates")
    )


def create_validator(
    verifier: SignatureVerifier,
    config: ConfigProfile | None = None,
    *,
    registry: CertificateRegistry[Any] | None = None,
    state_store: SigningStateStore[Any] | None = None,
    extractor: SignaturePartsExtractor | None = None,
) -> SignatureValidator:
    """Create a validator from configuration.

    Explicit collaborators take precedence over configured ones. The
    verifier is bounded by ``verifier.timeout`` when it is set.

    Args:
        verifier: Cryptographic verifier.
        config: Configuration profile (defaults to the global one).
        registry: Certificate registry override.
        state_store: State store override.
        extractor: Extractor override.
    """
    config = config or get_config()

    timeout = config.get_float("verifier.timeout")
    if timeout:
        verifier = TimeoutVerifier(verifier, timeout)

    return SignatureValidator(
        state_store=state_store if state_store is not None else build_state_store(config),
        verifier=verifier,
        extractor=extractor if extractor is not None else build_extractor(config),
        registry=registry if registry is not None else build_registry(config),
    )


def create_runner(
    validator: SignatureValidator,
    config: ConfigProfile | None = None,
) -> ValidationRunner:
    """Create a batch runner sized by ``runner.max_workers``."""
    config = config or get_config()
    return ValidationRunner(validator, max_workers=config.get_int("runner.max_workers", 4))
