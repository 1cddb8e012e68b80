"""Concurrent validation of many packages.

The validator is stateless, so a single instance is shared by every worker.
Each request is an independent run: an infrastructure failure in one run is
reported for that request and does not affect the others. The runner never
retries; a retry must re-read the package from scratch, which only the
caller can do.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Iterable
from uuid import uuid4

from signgate.engine import SignatureValidator
from signgate.exceptions import InfrastructureError
from signgate.outcome import ValidationOutcome
from signgate.package import SignedPackageReader
from signgate.types import PackageIdentity


@dataclass(frozen=True)
class ValidationRequest:
    """One package to validate.

    Attributes:
        identity: Package identity.
        package: Reader over the open package.
        validation_id: Id of the surrounding validation.
    """

    identity: PackageIdentity
    package: SignedPackageReader
    validation_id: str = field(default_factory=lambda: str(uuid4()))


@dataclass(frozen=True)
class RunReport:
    """Result of one run in a batch.

    Exactly one of ``outcome`` and ``error`` is set.
    """

    request: ValidationRequest
    outcome: ValidationOutcome | None = None
    error: InfrastructureError | None = None
    duration_ms: float = 0.0

    @property
    def completed(self) -> bool:
        """Check if the run reached a terminal outcome."""
        return self.outcome is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "validation_id": self.request.validation_id,
            "package": self.request.identity.to_dict(),
            "outcome": self.outcome.to_dict() if self.outcome else None,
            "error": str(self.error) if self.error else None,
            "duration_ms": self.duration_ms,
        }


@dataclass
class BatchSummary:
    """Counts over a batch of run reports."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    errored: int = 0

    @classmethod
    def from_reports(cls, reports: Iterable[RunReport]) -> "BatchSummary":
        summary = cls()
        for report in reports:
            summary.total += 1
            if report.outcome is None:
                summary.errored += 1
            elif report.outcome.success:
                summary.succeeded += 1
            else:
                summary.failed += 1
        return summary

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "errored": self.errored,
        }


class ValidationRunner:
    """Validates batches of packages on a thread pool.

    Example:
        >>> runner = ValidationRunner(validator, max_workers=8)
        >>> reports = runner.run(requests)
        >>> BatchSummary.from_reports(reports).errored
        0
    """

    def __init__(self, validator: SignatureValidator, *, max_workers: int = 4) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self._validator = validator
        self._max_workers = max_workers

    @property
    def max_workers(self) -> int:
        return self._max_workers

    def run_one(self, request: ValidationRequest) -> RunReport:
        """Validate a single request, capturing infrastructure failures."""
        start = time.perf_counter()
        try:
            outcome = self._validator.validate(
                request.identity,
                request.package,
                validation_id=request.validation_id,
            )
        except InfrastructureError as e:
            return RunReport(
                request=request,
                error=e,
                duration_ms=(time.perf_counter() - start) * 1000,
            )
        return RunReport(
            request=request,
            outcome=outcome,
            duration_ms=(time.perf_counter() - start) * 1000,
        )

    def run(self, requests: Iterable[ValidationRequest]) -> list[RunReport]:
        """Validate every request concurrently.

        Returns:
            One report per request, in input order.
        """
        requests = list(requests)
        if not requests:
            return []

        workers = min(self._max_workers, len(requests))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="signgate-run") as executor:
            return list(executor.map(self.run_one, requests))
