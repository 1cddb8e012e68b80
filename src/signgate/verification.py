"""Verifier-facing types.

The cryptographic verification itself (chain building, PKCS#7 checks) is
performed by an external library. These types describe what the engine
expects back from it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from signgate.package import SignedPackageReader


class IssueLevel(str, Enum):
    """Level of a verifier-reported issue."""

    ERROR = "error"
    WARNING = "warning"
    INFORMATION = "information"


@dataclass(frozen=True)
class VerifierIssue:
    """Issue record in the verifier's own catalogue.

    Attributes:
        code: Verifier-specific code (e.g. ``NU3008``).
        message: Verifier message.
        level: Severity as reported by the verifier.
    """

    code: str
    message: str
    level: IssueLevel = IssueLevel.ERROR

    def format(self) -> str:
        return f"{self.code}: {self.message}"


@dataclass(frozen=True)
class SignatureVerificationResult:
    """Verification result for one signature."""

    issues: tuple[VerifierIssue, ...] = ()
    trusted: bool = True

    def error_issues(self) -> list[VerifierIssue]:
        return [i for i in self.issues if i.level == IssueLevel.ERROR]

    def warning_issues(self) -> list[VerifierIssue]:
        return [i for i in self.issues if i.level == IssueLevel.WARNING]


@dataclass(frozen=True)
class VerifyResult:
    """Overall verification result for a package.

    Attributes:
        valid: Whether the package signature verified.
        results: Per-signature results in signature order.
    """

    valid: bool
    results: tuple[SignatureVerificationResult, ...] = field(default_factory=tuple)

    def error_issues(self) -> list[VerifierIssue]:
        """All error records, in signature order."""
        return [issue for result in self.results for issue in result.error_issues()]

    def warning_issues(self) -> list[VerifierIssue]:
        """All warning records, in signature order."""
        return [issue for result in self.results for issue in result.warning_issues()]

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [i.format() for i in self.error_issues()],
            "warnings": [i.format() for i in self.warning_issues()],
        }


@runtime_checkable
class SignatureVerifier(Protocol):
    """Performs cryptographic verification of a signed package."""

    def verify(self, package: "SignedPackageReader") -> VerifyResult: ...
