"""signgate - Package signature trust decisions for a software registry."""

from signgate.api import (
    build_extractor,
    build_registry,
    build_state_store,
    create_runner,
    create_validator,
    setup_logging,
)
from signgate.engine import SignatureValidator
from signgate.exceptions import (
    CollaboratorError,
    CollaboratorTimeoutError,
    InfrastructureError,
    OutcomeInvariantError,
    PackageReadError,
    SignGateError,
)
from signgate.extraction import (
    FileSystemSignaturePartsExtractor,
    MemorySignaturePartsExtractor,
    SignaturePartsExtractor,
)
from signgate.infrastructure.config import get_config, load_config
from signgate.issues import IssueCode, ValidationIssue
from signgate.outcome import ValidationOutcome
from signgate.package import (
    InMemorySignedPackageReader,
    Signature,
    SignedPackageReader,
    ZipSignedPackageReader,
)
from signgate.resilience import TimeoutVerifier
from signgate.runner import BatchSummary, RunReport, ValidationRequest, ValidationRunner
from signgate.thumbprint import compute_thumbprint
from signgate.types import PackageIdentity, PackageSigningStatus, ValidationState
from signgate.verification import (
    IssueLevel,
    SignatureVerificationResult,
    SignatureVerifier,
    VerifierIssue,
    VerifyResult,
)

# Version: single source of truth from pyproject.toml
try:
    from importlib.metadata import version, PackageNotFoundError

    __version__ = version("signgate")
except PackageNotFoundError:
    # Package not installed (development mode)
    __version__ = "0.0.0.dev"

__all__ = [
    # Engine
    "SignatureValidator",
    "ValidationOutcome",
    "ValidationIssue",
    "IssueCode",
    "PackageIdentity",
    "PackageSigningStatus",
    "ValidationState",
    # Collaborators
    "Signature",
    "SignedPackageReader",
    "InMemorySignedPackageReader",
    "ZipSignedPackageReader",
    "SignatureVerifier",
    "VerifyResult",
    "SignatureVerificationResult",
    "VerifierIssue",
    "IssueLevel",
    "SignaturePartsExtractor",
    "MemorySignaturePartsExtractor",
    "FileSystemSignaturePartsExtractor",
    "TimeoutVerifier",
    "compute_thumbprint",
    # Batch runs
    "ValidationRunner",
    "ValidationRequest",
    "RunReport",
    "BatchSummary",
    # Wiring
    "create_validator",
    "create_runner",
    "build_registry",
    "build_state_store",
    "build_extractor",
    "setup_logging",
    "load_config",
    "get_config",
    # Errors
    "SignGateError",
    "InfrastructureError",
    "CollaboratorError",
    "CollaboratorTimeoutError",
    "PackageReadError",
    "OutcomeInvariantError",
]
