"""CheckReporter protocol for publishing check runs."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from nickel_customs.checks.models import CheckRun


@typ.runtime_checkable
class CheckReporter(typ.Protocol):
    """Publish the lifecycle of a check run to the code host.

    The orchestrator awaits ``create`` before ``complete`` for every run, so
    implementations may rely on that order. Both methods raise
    ``ReportError`` once their retry policy is exhausted.
    """

    async def create(self, run: CheckRun) -> None:
        """Make the run visible as in progress."""
        ...

    async def complete(self, run: CheckRun) -> None:
        """Publish the conclusion and diagnostics of a completed run."""
        ...
