"""Validation issues attached to failed outcomes.

The engine's issue vocabulary is kept separate from the verifier's issue
catalogue: verifier records are relayed through ``translate_verifier_issue``
so that consumers only ever see ``ValidationIssue`` values.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable

if TYPE_CHECKING:
    from signgate.verification import VerifierIssue


class IssueCode(str, Enum):
    """Stable codes for validation issues."""

    UNKNOWN = "unknown"
    UNRECOGNIZED_SIGNER = "unrecognized_signer"
    CLIENT_SIGNING_VERIFICATION_FAILURE = "client_signing_verification_failure"

    def __str__(self) -> str:
        return self.value


UNRECOGNIZED_SIGNER_MESSAGE = "The package is signed by an unrecognized certificate."


@dataclass(frozen=True)
class ValidationIssue:
    """A single reportable problem found while validating a package.

    Attributes:
        code: Engine issue code.
        message: Human-readable description.
        client_code: Verifier's own code, for relayed verifier issues.
    """

    code: IssueCode
    message: str = ""
    client_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.client_code is not None:
            data["client_code"] = self.client_code
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ValidationIssue":
        """Create from dictionary.

        Unknown codes are read as ``IssueCode.UNKNOWN`` so that issues
        written by newer versions can still be loaded.
        """
        try:
            code = IssueCode(data.get("code", IssueCode.UNKNOWN.value))
        except ValueError:
            code = IssueCode.UNKNOWN
        return cls(
            code=code,
            message=data.get("message", ""),
            client_code=data.get("client_code"),
        )

    def __str__(self) -> str:
        if self.client_code:
            return f"{self.client_code}: {self.message}"
        return f"{self.code.value}: {self.message}"


def unrecognized_signer() -> ValidationIssue:
    """Issue reported when a signer certificate is not in the registry."""
    return ValidationIssue(
        code=IssueCode.UNRECOGNIZED_SIGNER,
        message=UNRECOGNIZED_SIGNER_MESSAGE,
    )


def translate_verifier_issue(record: "VerifierIssue") -> ValidationIssue:
    """Relay a verifier error record as a validation issue.

    The verifier's code and message are carried through unchanged.
    """
    return ValidationIssue(
        code=IssueCode.CLIENT_SIGNING_VERIFICATION_FAILURE,
        message=record.message,
        client_code=str(record.code),
    )


def translate_verifier_issues(records: Iterable["VerifierIssue"]) -> tuple[ValidationIssue, ...]:
    """Translate verifier records in order, one issue per record."""
    return tuple(translate_verifier_issue(r) for r in records)
