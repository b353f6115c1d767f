"""Error taxonomy for the build pipeline.

Every failure the pipeline knows how to reason about is a
``PipelineError`` tagged with an ``ErrorKind``.  The set of kinds is
closed: handlers dispatch on ``error.kind`` and must cover all four
members rather than relying on subclass checks.

Kinds
-----
BUILD_STEP
    A build phase (bundling, analysis, the external toolchain) failed.
CONFIGURATION
    Invalid or missing configuration, detected before any build starts.
NETWORK
    A transient remote-call failure.
FILE_SYSTEM
    A read/write/delete failure; carries the path and attempted operation.

Errors are built through the factory functions (``build_step_error``,
``configuration_error``, ``network_error``, ``file_system_error``) so
that each kind gets its default severity and recovery hint.
"""
from __future__ import annotations

import asyncio
import dataclasses
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NoReturn


class ErrorKind(Enum):
    """Discriminant of the ``PipelineError`` tagged union."""

    BUILD_STEP = "build_step"
    CONFIGURATION = "configuration"
    NETWORK = "network"
    FILE_SYSTEM = "file_system"

    @property
    def label(self) -> str:
        """Return the canonical error-type name, e.g. ``"BuildStepError"``."""
        return _KIND_LABELS[self]


_KIND_LABELS: dict[ErrorKind, str] = {
    ErrorKind.BUILD_STEP: "BuildStepError",
    ErrorKind.CONFIGURATION: "ConfigurationError",
    ErrorKind.NETWORK: "NetworkError",
    ErrorKind.FILE_SYSTEM: "FileSystemError",
}


class ErrorSeverity(Enum):
    """Ordinal severity of a pipeline error."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Return the ordinal rank (``LOW`` is 0, ``CRITICAL`` is 3)."""
        return _SEVERITY_RANKS[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, ErrorSeverity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, ErrorSeverity):
            return NotImplemented
        return self.rank <= other.rank


_SEVERITY_RANKS: dict[ErrorSeverity, int] = {
    ErrorSeverity.LOW: 0,
    ErrorSeverity.MEDIUM: 1,
    ErrorSeverity.HIGH: 2,
    ErrorSeverity.CRITICAL: 3,
}


class FileOperation(Enum):
    """File-system operation that was being attempted when an error occurred."""

    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    MKDIR = "mkdir"
    ACCESS = "access"


# Operations whose failures are usually transient (locks, races on
# directory creation) and therefore worth repeating.
RECOVERABLE_FILE_OPERATIONS: frozenset[FileOperation] = frozenset(
    {FileOperation.MKDIR, FileOperation.WRITE, FileOperation.ACCESS}
)


@dataclass(frozen=True)
class ErrorContext:
    """Where and when an error happened.

    Parameters
    ----------
    operation:
        Name of the pipeline operation, e.g. ``"bundle_build"``.
    platform:
        Target platform of the build, if any.
    environment:
        Target environment of the build, if any.
    build_id:
        Identifier of the pipeline run, if any.
    timestamp:
        Epoch seconds at which the context was captured.
    """

    operation: str
    platform: str | None = None
    environment: str | None = None
    build_id: str | None = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "platform": self.platform,
            "environment": self.environment,
            "build_id": self.build_id,
            "timestamp": self.timestamp,
        }


@dataclass(eq=False)
class PipelineError(Exception):
    """A classified pipeline failure.

    Instances are never mutated once raised; use :meth:`with_attempts`
    to obtain an annotated copy.

    Parameters
    ----------
    kind:
        The variant of the tagged union.
    message:
        Human-readable description of the failure.
    severity:
        How serious the failure is; drives retry and recovery policy.
    context:
        Operation, platform and timing information.
    recovery_hint:
        Optional suggestion shown to the user.
    step_name:
        ``BUILD_STEP`` only: the failing phase.
    path:
        ``FILE_SYSTEM`` only: the path being operated on.
    operation:
        ``FILE_SYSTEM`` only: the attempted operation.
    corrupted:
        ``FILE_SYSTEM`` only: the failure indicates corrupted data.
    url:
        ``NETWORK`` only: the remote endpoint.
    status_code:
        ``NETWORK`` only: the response status, if one was received.
    attempts:
        How many times the failing operation was run.
    """

    kind: ErrorKind
    message: str
    severity: ErrorSeverity
    context: ErrorContext
    recovery_hint: str | None = None
    step_name: str | None = None
    path: str | None = None
    operation: FileOperation | None = None
    corrupted: bool = False
    url: str | None = None
    status_code: int | None = None
    attempts: int = 1

    def __post_init__(self) -> None:
        # dataclass __init__ bypasses Exception.__init__
        self.args = (self.message,)

    def __str__(self) -> str:
        parts = [f"{self.kind.label}: {self.message}"]
        if self.context.platform:
            location = self.context.platform
            if self.context.environment:
                location = f"{location}/{self.context.environment}"
            parts.append(f"[{location}]")
        if self.attempts > 1:
            parts.append(f"(after {self.attempts} attempts)")
        return " ".join(parts)

    @property
    def is_critical(self) -> bool:
        """Return True if this error must abort the run."""
        return self.severity is ErrorSeverity.CRITICAL

    def with_attempts(self, attempts: int) -> "PipelineError":
        """Return a copy of this error annotated with *attempts*."""
        return dataclasses.replace(self, attempts=attempts)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable representation."""
        data: dict[str, Any] = {
            "type": self.kind.label,
            "kind": self.kind.value,
            "message": self.message,
            "severity": self.severity.value,
            "context": self.context.to_dict(),
            "recovery_hint": self.recovery_hint,
            "attempts": self.attempts,
        }
        if self.kind is ErrorKind.BUILD_STEP:
            data["step_name"] = self.step_name
        elif self.kind is ErrorKind.FILE_SYSTEM:
            data["path"] = self.path
            data["operation"] = self.operation.value if self.operation else None
            data["corrupted"] = self.corrupted
        elif self.kind is ErrorKind.NETWORK:
            data["url"] = self.url
            data["status_code"] = self.status_code
        return data


class BuildCancelledError(Exception):
    """Raised when cooperative cancellation is observed at a suspension point."""

    def __init__(self, where: str = "pipeline") -> None:
        self.where = where
        super().__init__(f"cancelled before {where}")


class TemplateSecurityError(ValueError):
    """Raised when a CI template would contain a forbidden term."""

    def __init__(self, term: str, provider: str) -> None:
        self.term = term
        self.provider = provider
        super().__init__(
            f"Refusing to emit {provider} configuration: it contains the "
            f"forbidden term {term!r} outside a declared placeholder."
        )


# ---------------------------------------------------------------------------
# Variant constructors
# ---------------------------------------------------------------------------


def _context(context: ErrorContext | None, operation: str) -> ErrorContext:
    return context if context is not None else ErrorContext(operation=operation)


def build_step_error(
    message: str,
    step_name: str,
    *,
    severity: ErrorSeverity = ErrorSeverity.HIGH,
    context: ErrorContext | None = None,
    recovery_hint: str | None = None,
) -> PipelineError:
    """Create a ``BuildStepError`` for a failed build phase."""
    return PipelineError(
        kind=ErrorKind.BUILD_STEP,
        message=message,
        severity=severity,
        context=_context(context, step_name),
        recovery_hint=recovery_hint
        or "Check the step logs and verify required dependencies are installed",
        step_name=step_name,
    )


def configuration_error(
    message: str,
    *,
    severity: ErrorSeverity = ErrorSeverity.HIGH,
    context: ErrorContext | None = None,
    recovery_hint: str | None = None,
) -> PipelineError:
    """Create a ``ConfigurationError`` for invalid or missing configuration."""
    return PipelineError(
        kind=ErrorKind.CONFIGURATION,
        message=message,
        severity=severity,
        context=_context(context, "configuration"),
        recovery_hint=recovery_hint
        or "Validate the required configuration properties",
    )


def network_error(
    message: str,
    *,
    url: str | None = None,
    status_code: int | None = None,
    severity: ErrorSeverity = ErrorSeverity.MEDIUM,
    context: ErrorContext | None = None,
    recovery_hint: str | None = None,
) -> PipelineError:
    """Create a ``NetworkError`` for a failed remote call."""
    return PipelineError(
        kind=ErrorKind.NETWORK,
        message=message,
        severity=severity,
        context=_context(context, "network"),
        recovery_hint=recovery_hint or "Check network connectivity and try again",
        url=url,
        status_code=status_code,
    )


def file_system_error(
    message: str,
    path: str,
    operation: FileOperation,
    *,
    corrupted: bool = False,
    severity: ErrorSeverity = ErrorSeverity.MEDIUM,
    context: ErrorContext | None = None,
    recovery_hint: str | None = None,
) -> PipelineError:
    """Create a ``FileSystemError`` for a failed file operation."""
    return PipelineError(
        kind=ErrorKind.FILE_SYSTEM,
        message=message,
        severity=severity,
        context=_context(context, f"fs_{operation.value}"),
        recovery_hint=recovery_hint
        or "Verify permissions and available disk space",
        path=path,
        operation=operation,
        corrupted=corrupted,
    )


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def _unreachable(kind: NoReturn) -> NoReturn:
    raise AssertionError(f"Unhandled error kind: {kind!r}")


def is_retryable(error: PipelineError) -> bool:
    """Return True if repeating the failed operation may succeed.

    Critical errors are never retryable.  Configuration errors are fatal.
    File-system errors are retried only for recoverable operations that
    do not indicate corruption.
    """
    if error.is_critical:
        return False
    kind = error.kind
    if kind is ErrorKind.CONFIGURATION:
        return False
    if kind is ErrorKind.BUILD_STEP or kind is ErrorKind.NETWORK:
        return True
    if kind is ErrorKind.FILE_SYSTEM:
        return (
            error.operation in RECOVERABLE_FILE_OPERATIONS and not error.corrupted
        )
    _unreachable(kind)


def from_exception(
    exc: BaseException, context: ErrorContext | None = None
) -> PipelineError:
    """Normalise an arbitrary exception into a ``PipelineError``.

    ``PipelineError`` instances are returned unchanged.
    """
    if isinstance(exc, PipelineError):
        return exc
    ctx = _context(context, "unknown")
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return build_step_error(
            f"{ctx.operation} timed out",
            ctx.operation,
            severity=ErrorSeverity.MEDIUM,
            context=ctx,
            recovery_hint="Increase the build timeout or optimise slow steps",
        )
    if isinstance(exc, ConnectionError):
        return network_error(str(exc) or type(exc).__name__, context=ctx)
    if isinstance(exc, OSError):
        return file_system_error(
            exc.strerror or str(exc) or type(exc).__name__,
            str(exc.filename) if exc.filename is not None else "",
            FileOperation.ACCESS,
            context=ctx,
        )
    return build_step_error(
        str(exc) or type(exc).__name__,
        ctx.operation,
        severity=ErrorSeverity.MEDIUM,
        context=ctx,
    )
