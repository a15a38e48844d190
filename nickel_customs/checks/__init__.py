"""Check-run orchestration: state machine, registry and lifecycle logging."""

from __future__ import annotations

from .errors import InternalInvariantViolation
from .models import CheckRun, Conclusion, RunKey, RunStatus, derive_conclusion
from .observability import (
    CheckEventLogger,
    CheckEventType,
    ErrorCategory,
    categorize_error,
)
from .orchestrator import CheckOrchestrator
from .registry import RunRegistry

__all__ = [
    "CheckEventLogger",
    "CheckEventType",
    "CheckOrchestrator",
    "CheckRun",
    "Conclusion",
    "ErrorCategory",
    "InternalInvariantViolation",
    "RunKey",
    "RunRegistry",
    "RunStatus",
    "categorize_error",
    "derive_conclusion",
]
