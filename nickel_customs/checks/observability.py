"""Structured lifecycle events for check runs.

Events are emitted as ``[event.type] key=value`` lines through femtologging
so log aggregators can parse them: INFO for normal progress, WARNING for
reporting trouble, ERROR for aborted runs.
"""

from __future__ import annotations

import enum
import typing as typ

from nickel_customs.events.errors import MalformedEventError
from nickel_customs.github.errors import (
    GitHubAPIError,
    GitHubConfigError,
    GitHubResponseShapeError,
)
from nickel_customs.logging import (
    get_logger,
    log_debug,
    log_error,
    log_info,
    log_warning,
)
from nickel_customs.oracle.errors import OracleError

from .errors import InternalInvariantViolation

if typ.TYPE_CHECKING:
    from nickel_customs.oracle.models import ValidationOutcome

    from .models import CheckRun

logger = get_logger(__name__)


class CheckEventType(enum.StrEnum):
    """Structured log event types for check runs."""

    RUN_STARTED = "checks.run.started"
    RUN_COALESCED = "checks.run.coalesced"
    PACKAGE_RESOLVED = "checks.package.resolved"
    RUN_COMPLETED = "checks.run.completed"
    RUN_ABORTED = "checks.run.aborted"
    REPORT_FAILED = "checks.report.failed"


class ErrorCategory(enum.StrEnum):
    """Categories for routing failures to the right operator."""

    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"
    SCHEMA_DRIFT = "schema_drift"
    CONFIGURATION = "configuration"
    BAD_INPUT = "bad_input"
    ORACLE = "oracle"
    INVARIANT = "invariant"
    UNKNOWN = "unknown"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (GitHubResponseShapeError, ErrorCategory.SCHEMA_DRIFT),
    (GitHubConfigError, ErrorCategory.CONFIGURATION),
    (MalformedEventError, ErrorCategory.BAD_INPUT),
    (OracleError, ErrorCategory.ORACLE),
    (InternalInvariantViolation, ErrorCategory.INVARIANT),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorise ``exc`` for alerting.

    Report failures wrap the GitHub error that caused them, so the cause is
    inspected when the exception itself is not recognised.
    """
    if isinstance(exc, GitHubAPIError):
        if exc.is_transient:
            return ErrorCategory.TRANSIENT
        return ErrorCategory.CLIENT_ERROR
    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category
    if exc.__cause__ is not None:
        return categorize_error(exc.__cause__)
    return ErrorCategory.UNKNOWN


def _outcome_kind(outcome: ValidationOutcome) -> str:
    return type(outcome).__name__.lower()


class CheckEventLogger:
    """Emit structured check-run events."""

    def log_run_started(self, run: CheckRun, delivery_id: str) -> None:
        """Log a new run for a key."""
        log_info(
            logger,
            "[%s] key=%s run=%d delivery_id=%s packages=%d",
            CheckEventType.RUN_STARTED,
            run.key,
            run.sequence,
            delivery_id,
            len(run.packages),
        )

    def log_run_coalesced(
        self, run: CheckRun, delivery_id: str, scheduled: int
    ) -> None:
        """Log an event merged into a run already in progress."""
        log_info(
            logger,
            "[%s] key=%s run=%d delivery_id=%s validations_added=%d packages=%d",
            CheckEventType.RUN_COALESCED,
            run.key,
            run.sequence,
            delivery_id,
            scheduled,
            len(run.packages),
        )

    def log_package_resolved(
        self, run: CheckRun, root: str, outcome: ValidationOutcome
    ) -> None:
        """Log one package outcome."""
        log_debug(
            logger,
            "[%s] key=%s run=%d package=%s outcome=%s pending=%d",
            CheckEventType.PACKAGE_RESOLVED,
            run.key,
            run.sequence,
            root or ".",
            _outcome_kind(outcome),
            len(run.pending_roots),
        )

    def log_run_completed(self, run: CheckRun) -> None:
        """Log a run reaching its conclusion."""
        duration = (
            (run.completed_at - run.created_at).total_seconds()
            if run.completed_at is not None
            else 0.0
        )
        log_info(
            logger,
            "[%s] key=%s run=%d conclusion=%s packages=%d duration_seconds=%.3f",
            CheckEventType.RUN_COMPLETED,
            run.key,
            run.sequence,
            run.conclusion,
            len(run.packages),
            duration,
        )

    def log_run_aborted(self, run: CheckRun, error: BaseException) -> None:
        """Log a run terminated by an internal error, with traceback."""
        log_error(
            logger,
            "[%s] key=%s run=%d error_type=%s error_category=%s "
            "pending=%s error_message=%s",
            CheckEventType.RUN_ABORTED,
            run.key,
            run.sequence,
            type(error).__name__,
            categorize_error(error),
            ",".join(sorted(run.pending_roots)) or "-",
            str(error),
            exc_info=error,
        )

    def log_report_failed(
        self, run: CheckRun, phase: str, error: BaseException
    ) -> None:
        """Log a report that could not be delivered to GitHub."""
        log_warning(
            logger,
            "[%s] key=%s run=%d phase=%s external_id=%s error_type=%s "
            "error_category=%s error_message=%s",
            CheckEventType.REPORT_FAILED,
            run.key,
            run.sequence,
            phase,
            run.external_id,
            type(error).__name__,
            categorize_error(error),
            str(error),
        )
