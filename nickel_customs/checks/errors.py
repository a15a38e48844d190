"""Errors raised by the check orchestrator."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from .models import RunKey, RunStatus


class InternalInvariantViolation(RuntimeError):  # noqa: N818
    """Raised when orchestration state contradicts itself.

    A violation aborts the offending run only; it is always logged with the
    run key and never swallowed.

    Attributes
    ----------
    key
        The run key whose state was inconsistent, when known.

    """

    def __init__(self, message: str, *, key: RunKey | None = None) -> None:
        """Initialise with a description and the affected run key."""
        self.key = key
        prefix = f"[{key}] " if key is not None else ""
        super().__init__(f"{prefix}{message}")

    @classmethod
    def two_owners(cls, key: RunKey) -> InternalInvariantViolation:
        """Return an error for a second active run on the same key."""
        return cls("a second run was opened while one is still active", key=key)

    @classmethod
    def bad_transition(
        cls, key: RunKey, current: RunStatus, target: RunStatus
    ) -> InternalInvariantViolation:
        """Return an error for an illegal status transition."""
        return cls(f"illegal transition {current} -> {target}", key=key)

    @classmethod
    def unknown_package(cls, key: RunKey, root: str) -> InternalInvariantViolation:
        """Return an error for an outcome of a package outside the run."""
        msg = f"outcome for package {root!r} which is not part of the run"
        return cls(msg, key=key)

    @classmethod
    def duplicate_outcome(cls, key: RunKey, root: str) -> InternalInvariantViolation:
        """Return an error for a second outcome of the same package."""
        return cls(f"package {root!r} already has an outcome", key=key)

    @classmethod
    def not_in_progress(
        cls, key: RunKey, status: RunStatus
    ) -> InternalInvariantViolation:
        """Return an error for mutating a run that is not in progress."""
        return cls(f"run is {status}, expected in_progress", key=key)
