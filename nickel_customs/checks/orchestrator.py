"""The check orchestrator: one run per commit, however many events arrive.

``CheckOrchestrator.submit`` is called once per accepted event with the
packages discovery found for it. For each ``RunKey`` the orchestrator keeps
at most one active run:

- the first event opens a run, moves it to ``in_progress`` and schedules a
  validation task per package plus one reporting task;
- events for a key whose run is still in progress are coalesced: new
  packages join the pending work, and files an event adds to a package
  already in the run are validated in a supplementary task whose outcome is
  merged with the first; no second run is opened;
- the run completes when every package has an outcome; an empty package set
  completes at once with ``success``;
- an event for a key whose run already completed opens a fresh run.

Reporting happens in a single task per run which awaits the create call
before the completing update, so GitHub always sees them in that order.
Reporting failures are logged and never change run state.
"""

from __future__ import annotations

import asyncio
import typing as typ

from nickel_customs.logging import get_logger, log_exception
from nickel_customs.oracle.models import Errored
from nickel_customs.reporting.errors import ReportError

from .errors import InternalInvariantViolation
from .models import CheckRun, RunKey
from .observability import CheckEventLogger
from .registry import RunRegistry

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from nickel_customs.events.models import Event
    from nickel_customs.oracle.models import ValidationOutcome
    from nickel_customs.oracle.protocol import ValidationOracle
    from nickel_customs.packages.models import Package
    from nickel_customs.reporting.protocol import CheckReporter

    type CompletionListener = cabc.Callable[[CheckRun], None]

logger = get_logger(__name__)


class CheckOrchestrator:
    """Own check runs from first event to final report.

    Parameters
    ----------
    oracle
        Validates packages; expected to be a ``BoundedOracle`` so it never
        raises or hangs.
    reporter
        Publishes runs to GitHub.
    registry
        Run store; a private one is created when omitted.
    event_logger
        Structured lifecycle logger.

    """

    def __init__(
        self,
        *,
        oracle: ValidationOracle,
        reporter: CheckReporter,
        registry: RunRegistry | None = None,
        event_logger: CheckEventLogger | None = None,
    ) -> None:
        """Wire the orchestrator to its collaborators."""
        self._oracle = oracle
        self._reporter = reporter
        self._registry = registry if registry is not None else RunRegistry()
        self._events = event_logger or CheckEventLogger()
        self._tasks: set[asyncio.Task[None]] = set()
        self._listeners: list[CompletionListener] = []

    @property
    def registry(self) -> RunRegistry:
        """Return the run registry."""
        return self._registry

    def add_completion_listener(self, listener: CompletionListener) -> None:
        """Call ``listener`` with every run as it completes."""
        self._listeners.append(listener)

    async def submit(
        self, event: Event, packages: cabc.Iterable[Package]
    ) -> CheckRun:
        """Open or grow the run for ``event``'s commit.

        Returns
        -------
        CheckRun
            The run the event now belongs to.

        """
        key = RunKey(event.repository, event.head_sha)
        self._registry.purge()
        async with self._registry.lock(key):
            run = self._registry.active(key)
            if run is not None:
                work = run.add_packages(packages)
                run.delivery_ids.append(event.delivery_id)
                self._events.log_run_coalesced(run, event.delivery_id, len(work))
                self._schedule_validations(run, work)
                return run

            run = CheckRun(
                key=key,
                delivery_ids=[event.delivery_id],
                created_at=self._registry.now(),
            )
            self._registry.open(run)
            run.start(now=self._registry.now())
            work = run.add_packages(packages)
            self._events.log_run_started(run, event.delivery_id)
            self._spawn(self._report(run), name=f"report:{key}")
            self._schedule_validations(run, work)
            if run.is_resolved:
                self._complete(run)
            return run

    async def wait(self, key: RunKey) -> CheckRun | None:
        """Wait for the current run of ``key`` to complete and return it."""
        run = self._registry.get(key)
        if run is None:
            return None
        await run.completion.wait()
        return run

    async def drain(self) -> None:
        """Wait until every scheduled validation and report has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(
        self, coro: cabc.Coroutine[typ.Any, typ.Any, None], *, name: str
    ) -> None:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            log_exception(logger, f"Task {task.get_name()} failed: {error}", error)

    def _schedule_validations(self, run: CheckRun, packages: list[Package]) -> None:
        for package in packages:
            self._spawn(
                self._validate(run, package),
                name=f"validate:{run.key}:{package.label}",
            )

    async def _validate(self, run: CheckRun, package: Package) -> None:
        outcome: ValidationOutcome
        try:
            outcome = await self._oracle.validate(package)
        except Exception as exc:  # noqa: BLE001 - isolate package failures
            reason = str(exc) or type(exc).__name__
            outcome = Errored(package_root=package.root, reason=reason)

        async with self._registry.lock(run.key):
            if run.abort_reason is not None:
                return
            try:
                run.record(package.root, outcome)
                self._events.log_package_resolved(run, package.root, outcome)
                if run.is_resolved:
                    self._complete(run)
            except InternalInvariantViolation as exc:
                self._abort(run, exc)

    def _complete(self, run: CheckRun) -> None:
        run.complete(now=self._registry.now())
        self._events.log_run_completed(run)
        self._notify(run)

    def _abort(self, run: CheckRun, error: InternalInvariantViolation) -> None:
        run.abort(str(error), now=self._registry.now())
        self._events.log_run_aborted(run, error)
        self._notify(run)

    def _notify(self, run: CheckRun) -> None:
        for listener in self._listeners:
            listener(run)

    async def _report(self, run: CheckRun) -> None:
        try:
            await self._reporter.create(run)
        except ReportError as exc:
            self._events.log_report_failed(run, "create", exc)

        await run.completion.wait()

        try:
            await self._reporter.complete(run)
        except ReportError as exc:
            self._events.log_report_failed(run, "complete", exc)
