"""Injectable store of check runs with one lock per run key.

The registry is the only shared mutable state of the orchestrator. Every read
or write for a key happens while holding ``registry.lock(key)``; different
keys never contend. Completed runs are kept for ``retention`` so late
duplicates can be recognised, then purged. Runs in progress are never purged.
"""

from __future__ import annotations

import asyncio
import collections
import datetime as dt
import typing as typ

from nickel_customs.common.time import utcnow

from .errors import InternalInvariantViolation

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .models import CheckRun, RunKey


class RunRegistry:
    """Map ``RunKey`` to its current run and recently completed runs.

    Parameters
    ----------
    retention
        How long a completed run is retained after completion.
    clock
        Source of the current time, used for purging.

    """

    def __init__(
        self,
        *,
        retention: dt.timedelta = dt.timedelta(hours=1),
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Create an empty registry."""
        self._retention = retention
        self._clock = clock
        self._current: dict[RunKey, CheckRun] = {}
        self._history: collections.defaultdict[RunKey, list[CheckRun]] = (
            collections.defaultdict(list)
        )
        self._locks: dict[RunKey, asyncio.Lock] = {}

    def __len__(self) -> int:
        """Return the number of keys with a current run."""
        return len(self._current)

    def __contains__(self, key: object) -> bool:
        """Return whether ``key`` has a current run."""
        return key in self._current

    def now(self) -> dt.datetime:
        """Return the current time according to the registry clock."""
        return self._clock()

    def lock(self, key: RunKey) -> asyncio.Lock:
        """Return the lock serialising access to ``key``."""
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def get(self, key: RunKey) -> CheckRun | None:
        """Return the most recent run for ``key``, completed or not."""
        return self._current.get(key)

    def active(self, key: RunKey) -> CheckRun | None:
        """Return the run for ``key`` if it has not completed yet."""
        run = self._current.get(key)
        if run is None or run.is_completed:
            return None
        return run

    def history(self, key: RunKey) -> tuple[CheckRun, ...]:
        """Return retained completed runs for ``key``, oldest first."""
        runs = list(self._history.get(key, ()))
        current = self._current.get(key)
        if current is not None and current.is_completed:
            runs.append(current)
        return tuple(runs)

    def open(self, run: CheckRun) -> None:
        """Make ``run`` the current run of its key.

        A completed predecessor moves to history; it is never reopened.

        Raises
        ------
        InternalInvariantViolation
            If the key already has an active run.

        """
        previous = self._current.get(run.key)
        if previous is not None:
            if not previous.is_completed:
                raise InternalInvariantViolation.two_owners(run.key)
            self._history[run.key].append(previous)
        self._current[run.key] = run

    def _expired(self, run: CheckRun, now: dt.datetime) -> bool:
        return (
            run.is_completed
            and run.completed_at is not None
            and run.completed_at + self._retention <= now
        )

    def purge(self, *, now: dt.datetime | None = None) -> int:
        """Drop completed runs older than the retention window.

        Returns
        -------
        int
            Number of runs removed.

        """
        moment = now or self._clock()
        removed = 0
        for key in list(self._history):
            kept = [run for run in self._history[key] if not self._expired(run, moment)]
            removed += len(self._history[key]) - len(kept)
            if kept:
                self._history[key] = kept
            else:
                del self._history[key]
        for key, run in list(self._current.items()):
            if self._expired(run, moment):
                del self._current[key]
                removed += 1
        for key in list(self._locks):
            if (
                key not in self._current
                and key not in self._history
                and not self._locks[key].locked()
            ):
                del self._locks[key]
        return removed
