"""Signature trust-decision engine.

Decides whether the signature of an uploaded package is acceptable and
persists the package signing status. Each call runs to a terminal outcome:

    is_signed? --no--> persist UNSIGNED, SUCCEEDED
        |
       yes
        v
    exactly one signature? --no--> persist INVALID, FAILED (no issues)
        |
       yes
        v
    signer thumbprint known? --no--> persist INVALID, FAILED (UNRECOGNIZED_SIGNER)
        |
       yes
        v
    verifier valid? --no--> persist INVALID, FAILED (one issue per verifier error)
        |
       yes
        v
    extract parts, persist VALID, SUCCEEDED

Checks stop at the first failure, so an unknown signer is never passed to
the verifier. Policy rejections are returned, never raised. Collaborator
failures abort the run with an ``InfrastructureError`` and nothing is
persisted for the rejection they might otherwise have looked like.
"""

from __future__ import annotations

from typing import Any, Callable, Sequence, TypeVar
from uuid import uuid4

from signgate.exceptions import CollaboratorError, InfrastructureError, PackageReadError
from signgate.extraction import SignaturePartsExtractor
from signgate.infrastructure.logging import StructuredLogger, correlation_context, get_logger
from signgate.issues import ValidationIssue, translate_verifier_issues, unrecognized_signer
from signgate.outcome import ValidationOutcome
from signgate.package import Signature, SignedPackageReader
from signgate.stores.base import CertificateRegistry, SigningStateStore
from signgate.thumbprint import signer_thumbprints, unknown_thumbprints
from signgate.types import PackageIdentity, PackageSigningStatus
from signgate.verification import SignatureVerifier, VerifyResult

R = TypeVar("R")


class SignatureValidator:
    """Validates package signatures against the certificate registry.

    The validator holds no per-run state and no locks; one instance can
    serve many threads at once.

    Example:
        >>> validator = SignatureValidator(
        ...     state_store=MemorySigningStateStore(),
        ...     verifier=my_verifier,
        ...     extractor=MemorySignaturePartsExtractor(),
        ...     registry=MemoryCertificateRegistry([thumbprint]),
        ... )
        >>> outcome = validator.validate(PackageIdentity("Contoso.Lib", "1.0.0", 42), reader)
        >>> outcome.state
        <ValidationState.SUCCEEDED: 'succeeded'>
    """

    def __init__(
        self,
        *,
        state_store: SigningStateStore[Any],
        verifier: SignatureVerifier,
        extractor: SignaturePartsExtractor,
        registry: CertificateRegistry[Any],
        logger: StructuredLogger | None = None,
    ) -> None:
        self._state_store = state_store
        self._verifier = verifier
        self._extractor = extractor
        self._registry = registry
        self._logger = logger or get_logger(__name__)

    def validate(
        self,
        identity: PackageIdentity,
        package: SignedPackageReader,
        *,
        validation_id: str | None = None,
    ) -> ValidationOutcome:
        """Validate the signature of a package and persist its signing status.

        Args:
            identity: Package being validated.
            package: Reader over the open package; the caller owns its stream.
            validation_id: Id of the surrounding validation, generated if absent.

        Returns:
            A terminal outcome. The signing status is durable before this
            returns.

        Raises:
            InfrastructureError: If a collaborator failed; nothing about the
                package's signature was decided.
        """
        validation_id = validation_id or str(uuid4())

        with correlation_context(
            validation_id=validation_id,
            package_id=identity.id,
            package_version=identity.version,
        ):
            try:
                if not self._read("is_signed", package.is_signed):
                    return self._handle_unsigned(identity)
                return self._handle_signed(identity, package)
            except InfrastructureError as e:
                self._logger.exception(
                    "Validation aborted by an infrastructure failure",
                    exc=e,
                    package_key=identity.key,
                )
                raise

    # -------------------------------------------------------------------------
    # Decision
    # -------------------------------------------------------------------------

    def _handle_unsigned(self, identity: PackageIdentity) -> ValidationOutcome:
        self._logger.info("Package is unsigned, no additional validations necessary")
        return self._accept(identity, PackageSigningStatus.UNSIGNED)

    def _handle_signed(
        self,
        identity: PackageIdentity,
        package: SignedPackageReader,
    ) -> ValidationOutcome:
        signatures: Sequence[Signature] = self._read("get_signatures", package.get_signatures)

        # Packages must carry exactly one signature.
        if len(signatures) != 1:
            self._logger.info(
                "Signed package is blocked since it does not have exactly one signature",
                signature_count=len(signatures),
            )
            return self._reject(identity)

        # Every signer must be a registered certificate.
        package_thumbprints = signer_thumbprints(signatures)
        known = self._call("registry", "known_thumbprints", self._registry.known_thumbprints)
        unknown = unknown_thumbprints(package_thumbprints, known)
        if unknown:
            self._logger.info(
                "Signed package is blocked since it has unknown certificate thumbprints",
                unknown_thumbprints=unknown,
            )
            return self._reject(identity, [unrecognized_signer()])

        result: VerifyResult = self._call("verifier", "verify", self._verifier.verify, package)
        errors = result.error_issues()
        warnings = [w.format() for w in result.warning_issues()]
        if not result.valid:
            self._logger.info(
                "Signed package is blocked due to verify failures",
                errors=[e.format() for e in errors],
                warnings=warnings,
            )
            return self._reject(identity, translate_verifier_issues(errors))

        if warnings:
            self._logger.warning("Signed package verified with warnings", warnings=warnings)
        self._logger.info(
            "Signed package is valid",
            package_thumbprints=sorted(package_thumbprints),
        )

        self._call("extractor", "extract", self._extractor.extract, package)
        return self._accept(identity, PackageSigningStatus.VALID)

    # -------------------------------------------------------------------------
    # Terminal transitions
    # -------------------------------------------------------------------------

    def _reject(
        self,
        identity: PackageIdentity,
        issues: Sequence[ValidationIssue] = (),
    ) -> ValidationOutcome:
        self._persist(identity, PackageSigningStatus.INVALID)
        return ValidationOutcome.failed(issues)

    def _accept(
        self,
        identity: PackageIdentity,
        status: PackageSigningStatus,
    ) -> ValidationOutcome:
        self._persist(identity, status)
        return ValidationOutcome.succeeded()

    def _persist(self, identity: PackageIdentity, status: PackageSigningStatus) -> None:
        self._call(
            "state_store",
            "set_status",
            self._state_store.set_status,
            identity.key,
            identity.id,
            identity.version,
            status,
        )
        self._logger.debug("Persisted package signing status", status=status.value)

    # -------------------------------------------------------------------------
    # Collaborator calls
    # -------------------------------------------------------------------------

    def _read(self, operation: str, func: Callable[[], R]) -> R:
        try:
            return func()
        except InfrastructureError:
            raise
        except Exception as e:
            raise PackageReadError(operation, str(e)) from e

    def _call(self, collaborator: str, operation: str, func: Callable[..., R], *args: Any) -> R:
        try:
            return func(*args)
        except InfrastructureError:
            raise
        except Exception as e:
            raise CollaboratorError(collaborator, operation, str(e)) from e
