"""Errors specific to the reporting module."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from nickel_customs.checks.models import RunKey


class ReportError(Exception):
    """Raised when publishing a check run failed after every retry.

    The underlying GitHub error is chained as ``__cause__``.

    Parameters
    ----------
    phase
        ``"create"`` or ``"complete"``.
    key
        The run whose report failed.
    attempts
        How many calls were made before giving up.

    """

    def __init__(self, phase: str, key: RunKey, attempts: int) -> None:
        """Initialize with the failing phase, run key and attempt count."""
        self.phase = phase
        self.key = key
        self.attempts = attempts
        super().__init__(
            f"Reporting {phase} for {key} failed after {attempts} attempt(s)"
        )

    @classmethod
    def gave_up(cls, phase: str, key: RunKey, attempts: int) -> ReportError:
        """Return an error for a call that was exhausted or permanently rejected."""
        return cls(phase, key, attempts)
