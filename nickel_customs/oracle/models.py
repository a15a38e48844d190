"""Outcome types produced by validating a single package."""

from __future__ import annotations

import dataclasses
import enum
import typing as typ


class Severity(enum.StrEnum):
    """Diagnostic severities, named after GitHub annotation levels."""

    ERROR = "failure"
    WARNING = "warning"
    NOTICE = "notice"


_SEVERITY_RANK: dict[Severity, int] = {
    Severity.ERROR: 0,
    Severity.WARNING: 1,
    Severity.NOTICE: 2,
}


@dataclasses.dataclass(frozen=True, slots=True)
class Diagnostic:
    """One finding reported by the oracle."""

    path: str
    line: int
    message: str
    severity: Severity = Severity.ERROR

    def sort_key(self) -> tuple[str, int, int, str]:
        """Return the key that orders diagnostics within a package."""
        return (self.path, self.line, _SEVERITY_RANK[self.severity], self.message)


@dataclasses.dataclass(frozen=True, slots=True)
class Passed:
    """The package is sane."""

    package_root: str

    @property
    def is_good(self) -> bool:
        """Return True: a passing package never fails a run."""
        return True

    @property
    def diagnostics(self) -> tuple[Diagnostic, ...]:
        """Return the (empty) diagnostics of a pass."""
        return ()


@dataclasses.dataclass(frozen=True, slots=True)
class Failed:
    """The oracle ran and found problems."""

    package_root: str
    diagnostics: tuple[Diagnostic, ...]

    @property
    def is_good(self) -> bool:
        """Return False: failures fail the run."""
        return False


@dataclasses.dataclass(frozen=True, slots=True)
class Errored:
    """The oracle could not run for this package."""

    package_root: str
    reason: str

    @property
    def is_good(self) -> bool:
        """Return False: errors fail the run."""
        return False

    @property
    def diagnostics(self) -> tuple[Diagnostic, ...]:
        """Return the (empty) diagnostics of an error."""
        return ()


type ValidationOutcome = Passed | Failed | Errored

TIMEOUT_REASON: typ.Final = "timeout"


def merge_outcomes(
    first: ValidationOutcome, second: ValidationOutcome
) -> ValidationOutcome:
    """Combine two outcomes for the same package into the worse one.

    An error outranks a failure, which outranks a pass. Two failures keep
    the union of their diagnostics; two errors keep both reasons.
    """
    match first, second:
        case Errored(), Errored():
            if first.reason == second.reason:
                return first
            reason = f"{first.reason}; {second.reason}"
            return Errored(package_root=first.package_root, reason=reason)
        case Errored(), _:
            return first
        case _, Errored():
            return second
        case Failed(), Failed():
            merged = sorted(
                set(first.diagnostics) | set(second.diagnostics),
                key=Diagnostic.sort_key,
            )
            return Failed(package_root=first.package_root, diagnostics=tuple(merged))
        case Failed(), _:
            return first
        case _:
            return second
