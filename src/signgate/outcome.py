"""Outcome of a single signature validation run."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterable

from signgate.exceptions import OutcomeInvariantError
from signgate.issues import ValidationIssue
from signgate.types import ValidationState


@dataclass(frozen=True)
class ValidationOutcome:
    """Terminal result handed back to the workflow.

    Issues may only be attached to terminal states. Constructing an outcome
    that breaks this raises ``OutcomeInvariantError``; the issue list is
    never truncated to make it fit.

    Attributes:
        state: Validation state reached by the run.
        issues: Ordered issues explaining a failure.
    """

    state: ValidationState
    issues: tuple[ValidationIssue, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.issues is None:
            raise TypeError("issues must be a sequence, not None")
        if not isinstance(self.issues, tuple):
            object.__setattr__(self, "issues", tuple(self.issues))
        if self.issues and not self.state.is_terminal:
            raise OutcomeInvariantError(self.state, len(self.issues))

    @classmethod
    def succeeded(cls) -> "ValidationOutcome":
        """Outcome of an accepted package."""
        return cls(ValidationState.SUCCEEDED)

    @classmethod
    def failed(cls, issues: Iterable[ValidationIssue] = ()) -> "ValidationOutcome":
        """Outcome of a rejected package."""
        return cls(ValidationState.FAILED, tuple(issues))

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def success(self) -> bool:
        """Check if the package was accepted."""
        return self.state == ValidationState.SUCCEEDED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "state": self.state.value,
            "issues": [issue.to_dict() for issue in self.issues],
        }

    def to_json(self, indent: int | None = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ValidationOutcome":
        """Create from dictionary.

        Raises:
            OutcomeInvariantError: If the stored data breaks the
                terminal/issues invariant.
        """
        return cls(
            state=ValidationState(data["state"]),
            issues=tuple(ValidationIssue.from_dict(i) for i in data.get("issues", [])),
        )
