"""Type definitions for signgate."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ValidationState(str, Enum):
    """State of a validation in the outer ingestion workflow.

    Only ``FAILED`` and ``SUCCEEDED`` are terminal. The signature engine always
    runs to a terminal state; the other members belong to the workflow's
    vocabulary.
    """

    NOT_STARTED = "not_started"
    INCOMPLETE = "incomplete"
    FAILED = "failed"
    SUCCEEDED = "succeeded"

    @property
    def is_terminal(self) -> bool:
        """Check if no further processing follows this state."""
        return self in (ValidationState.FAILED, ValidationState.SUCCEEDED)

    def __str__(self) -> str:
        return self.value


class PackageSigningStatus(str, Enum):
    """Persisted signing status of a package."""

    UNSIGNED = "unsigned"
    VALID = "valid"
    INVALID = "invalid"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class PackageIdentity:
    """Identity of the package being validated.

    Attributes:
        id: Package id as registered in the gallery.
        version: Normalized package version.
        key: Opaque integer key of the package row.
    """

    id: str
    version: str
    key: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"id": self.id, "version": self.version, "key": self.key}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PackageIdentity":
        """Create from dictionary."""
        return cls(id=data["id"], version=data["version"], key=int(data["key"]))

    def __str__(self) -> str:
        return f"{self.id} {self.version}"
