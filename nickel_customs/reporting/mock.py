"""In-memory reporter for tests and dry runs."""

from __future__ import annotations

import asyncio
import dataclasses
import typing as typ

from .errors import ReportError

if typ.TYPE_CHECKING:
    from nickel_customs.checks.models import CheckRun, Conclusion, RunKey, RunStatus


@dataclasses.dataclass(frozen=True, slots=True)
class ReportCall:
    """Snapshot of a run as the reporter saw it."""

    phase: str
    key: RunKey
    sequence: int
    status: RunStatus
    conclusion: Conclusion | None
    package_roots: tuple[str, ...]


class RecordingReporter:
    """Record every create and complete call instead of calling GitHub.

    ``fail_create`` and ``fail_complete`` make the matching phase raise
    ``ReportError`` after recording, to exercise the orchestrator's handling
    of reporting failures. ``delay_s`` slows every call down.
    """

    def __init__(
        self,
        *,
        fail_create: bool = False,
        fail_complete: bool = False,
        delay_s: float = 0.0,
    ) -> None:
        """Create an empty recorder."""
        self.calls: list[ReportCall] = []
        self.fail_create = fail_create
        self.fail_complete = fail_complete
        self._delay_s = delay_s
        self._next_id = 1

    def _record(self, phase: str, run: CheckRun) -> None:
        self.calls.append(
            ReportCall(
                phase=phase,
                key=run.key,
                sequence=run.sequence,
                status=run.status,
                conclusion=run.conclusion,
                package_roots=tuple(sorted(run.packages)),
            )
        )

    def calls_for(self, key: RunKey, phase: str | None = None) -> list[ReportCall]:
        """Return the recorded calls for ``key``, optionally of one phase."""
        return [
            call
            for call in self.calls
            if call.key == key and (phase is None or call.phase == phase)
        ]

    async def create(self, run: CheckRun) -> None:
        """Record the create call and assign an id."""
        if self._delay_s:
            await asyncio.sleep(self._delay_s)
        self._record("create", run)
        if self.fail_create:
            raise ReportError.gave_up("create", run.key, 1)
        run.external_id = self._next_id
        self._next_id += 1

    async def complete(self, run: CheckRun) -> None:
        """Record the complete call."""
        if self._delay_s:
            await asyncio.sleep(self._delay_s)
        self._record("complete", run)
        if self.fail_complete:
            raise ReportError.gave_up("complete", run.key, 1)
