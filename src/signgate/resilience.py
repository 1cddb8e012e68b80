"""Time bounds for collaborator calls.

The engine has no cancellation of its own. Hosts that need one wrap a
collaborator so that a slow call surfaces as ``CollaboratorTimeoutError``,
an infrastructure failure for that run.

Each call runs on its own daemon thread, started before the clock, so a
budget covers only the call itself and a hung call never delays calls made
by other runs. A timed-out call cannot be interrupted; its thread keeps
running until the underlying call returns, and its result is discarded.
"""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar

from signgate.exceptions import CollaboratorTimeoutError
from signgate.infrastructure.logging import get_logger
from signgate.verification import SignatureVerifier, VerifyResult

if TYPE_CHECKING:
    from signgate.package import SignedPackageReader

R = TypeVar("R")


class _PendingCall(Generic[R]):
    """One call running on a dedicated thread."""

    def __init__(self, func: Callable[..., R], args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        self._func = func
        self._args = args
        self._kwargs = kwargs
        self._started = threading.Event()
        self._done = threading.Event()
        self._result: R | None = None
        self._error: BaseException | None = None

    def _run(self) -> None:
        self._started.set()
        try:
            self._result = self._func(*self._args, **self._kwargs)
        except BaseException as e:
            self._error = e
        finally:
            self._done.set()

    def start(self, name: str) -> None:
        threading.Thread(target=self._run, name=name, daemon=True).start()
        self._started.wait()

    def wait(self, timeout: float) -> bool:
        return self._done.wait(timeout)

    def result(self) -> R:
        if self._error is not None:
            raise self._error
        return self._result  # type: ignore[return-value]


class CallTimeout:
    """Runs each call on its own thread and waits at most ``timeout_seconds``.

    Example:
        >>> bounded = CallTimeout("registry", 5.0)
        >>> thumbprints = bounded.call("known_thumbprints", registry.known_thumbprints)
    """

    def __init__(self, collaborator: str, timeout_seconds: float) -> None:
        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {timeout_seconds}")
        self._collaborator = collaborator
        self._timeout = timeout_seconds
        self._abandoned = 0
        self._lock = threading.Lock()

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    @property
    def abandoned(self) -> int:
        """Number of calls given up on so far."""
        with self._lock:
            return self._abandoned

    def call(self, operation: str, func: Callable[..., R], *args: Any, **kwargs: Any) -> R:
        """Call ``func`` and wait for its result.

        Exceptions raised by ``func`` propagate unchanged.

        Raises:
            CollaboratorTimeoutError: If the call does not finish in time.
        """
        pending: _PendingCall[R] = _PendingCall(func, args, kwargs)
        pending.start(f"timeout-{self._collaborator}-{operation}")
        started = time.monotonic()

        if not pending.wait(self._timeout):
            with self._lock:
                self._abandoned += 1
            get_logger(__name__).warning(
                "Collaborator call did not finish in time",
                collaborator=self._collaborator,
                operation=operation,
                timeout_seconds=self._timeout,
                elapsed_seconds=round(time.monotonic() - started, 3),
            )
            raise CollaboratorTimeoutError(self._collaborator, operation, self._timeout)
        return pending.result()


class TimeoutVerifier:
    """Verifier wrapper bounding each ``verify`` call.

    Example:
        >>> verifier = TimeoutVerifier(ClientVerifier(), timeout_seconds=30)
        >>> validator = SignatureValidator(verifier=verifier, ...)
    """

    def __init__(self, verifier: SignatureVerifier, timeout_seconds: float) -> None:
        self._verifier = verifier
        self._timeout = CallTimeout("verifier", timeout_seconds)

    @property
    def timeout_seconds(self) -> float:
        return self._timeout.timeout_seconds

    @property
    def abandoned(self) -> int:
        return self._timeout.abandoned

    def verify(self, package: "SignedPackageReader") -> VerifyResult:
        return self._timeout.call("verify", self._verifier.verify, package)
