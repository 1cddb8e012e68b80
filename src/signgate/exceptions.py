"""Exception hierarchy for signgate.

Policy rejections are never raised; they are returned as ``FAILED``
outcomes. Everything in this module signals that a run could not reach a
decision and must be retried (or investigated) by the caller.
"""

from __future__ import annotations

from typing import Any


class SignGateError(Exception):
    """Base exception for all signgate errors."""

    pass


class InfrastructureError(SignGateError):
    """A validation run was aborted before reaching a decision."""

    pass


class CollaboratorError(InfrastructureError):
    """Raised when a collaborator (registry, verifier, store...) fails.

    Attributes:
        collaborator: Name of the failing collaborator.
        operation: Operation that was being performed.
    """

    def __init__(self, collaborator: str, operation: str, message: str = "") -> None:
        self.collaborator = collaborator
        self.operation = operation
        text = f"{collaborator}.{operation} failed"
        if message:
            text = f"{text}: {message}"
        super().__init__(text)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for reporting."""
        return {
            "type": type(self).__name__,
            "collaborator": self.collaborator,
            "operation": self.operation,
            "message": str(self),
            "cause": repr(self.__cause__) if self.__cause__ else None,
        }


class PackageReadError(CollaboratorError):
    """Raised when the package stream cannot be read at all."""

    def __init__(self, operation: str, message: str = "") -> None:
        super().__init__("package_reader", operation, message)


class CollaboratorTimeoutError(CollaboratorError):
    """Raised when a collaborator call exceeds its time budget."""

    def __init__(self, collaborator: str, operation: str, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            collaborator,
            operation,
            f"timed out after {timeout_seconds}s",
        )


class OutcomeInvariantError(InfrastructureError, ValueError):
    """Raised when an outcome carries issues for a non-terminal state."""

    def __init__(self, state: Any, issue_count: int) -> None:
        self.state = state
        self.issue_count = issue_count
        super().__init__(
            f"Issues are only allowed for terminal states "
            f"(got {issue_count} issue(s) for state '{state}')"
        )
