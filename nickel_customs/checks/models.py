"""Check run state and the rules for deriving its conclusion.

A ``CheckRun`` moves ``queued -> in_progress -> completed`` and never back.
Its methods enforce that order and raise ``InternalInvariantViolation`` on
any attempt to break it; callers own the locking (see ``RunRegistry``).
"""

from __future__ import annotations

import asyncio
import dataclasses
import datetime as dt
import enum
import itertools
import typing as typ

from nickel_customs.common.time import utcnow
from nickel_customs.oracle.models import merge_outcomes

from .errors import InternalInvariantViolation

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from nickel_customs.oracle.models import ValidationOutcome
    from nickel_customs.packages.models import Package


class RunStatus(enum.StrEnum):
    """Lifecycle states of a check run, named as GitHub names them."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Conclusion(enum.StrEnum):
    """Final verdicts of a completed check run."""

    SUCCESS = "success"
    FAILURE = "failure"
    NEUTRAL = "neutral"


@dataclasses.dataclass(frozen=True, slots=True, order=True)
class RunKey:
    """Identity of a check run: one per repository and head commit."""

    repository: str
    head_sha: str

    def __str__(self) -> str:
        """Return ``owner/name@sha``."""
        return f"{self.repository}@{self.head_sha}"


def derive_conclusion(outcomes: cabc.Iterable[ValidationOutcome]) -> Conclusion:
    """Return ``failure`` if any outcome failed or errored, else ``success``.

    An empty collection is vacuously sane.
    """
    if all(outcome.is_good for outcome in outcomes):
        return Conclusion.SUCCESS
    return Conclusion.FAILURE


_RUN_SEQUENCE = itertools.count(1)


@dataclasses.dataclass(slots=True, eq=False)
class CheckRun:
    """Aggregate validation state for one ``RunKey``.

    Attributes
    ----------
    key
        Repository and head commit the run reports on.
    sequence
        Process-unique number distinguishing successive runs of one key.
    status
        Current lifecycle state.
    conclusion
        Verdict, set once the run completes.
    packages
        Packages to validate, keyed by root; grows when events coalesce.
    outcomes
        Outcomes received so far, keyed by package root; a package validated
        more than once holds the merge of its outcomes.
    in_flight
        Number of validations still running, keyed by package root.
    external_id
        GitHub check run id, set once the reporter has created it.
    delivery_ids
        Deliveries that fed this run, in arrival order.
    abort_reason
        Why the run was aborted, when it was.

    """

    key: RunKey
    sequence: int = dataclasses.field(default_factory=lambda: next(_RUN_SEQUENCE))
    status: RunStatus = RunStatus.QUEUED
    conclusion: Conclusion | None = None
    packages: dict[str, Package] = dataclasses.field(default_factory=dict)
    outcomes: dict[str, ValidationOutcome] = dataclasses.field(default_factory=dict)
    in_flight: dict[str, int] = dataclasses.field(default_factory=dict)
    external_id: int | None = None
    delivery_ids: list[str] = dataclasses.field(default_factory=list)
    abort_reason: str | None = None
    created_at: dt.datetime = dataclasses.field(default_factory=utcnow)
    started_at: dt.datetime | None = None
    completed_at: dt.datetime | None = None
    completion: asyncio.Event = dataclasses.field(
        default_factory=asyncio.Event, repr=False
    )

    @property
    def is_completed(self) -> bool:
        """Return whether the run reached its terminal state."""
        return self.status is RunStatus.COMPLETED

    @property
    def is_resolved(self) -> bool:
        """Return whether every package in the run has an outcome."""
        return not self.pending_roots

    @property
    def pending_roots(self) -> frozenset[str]:
        """Return roots of packages still awaiting an outcome."""
        return frozenset(
            root
            for root in self.packages
            if root not in self.outcomes or self.in_flight.get(root, 0) > 0
        )

    def _require_in_progress(self) -> None:
        if self.status is not RunStatus.IN_PROGRESS:
            raise InternalInvariantViolation.not_in_progress(self.key, self.status)

    def start(self, *, now: dt.datetime | None = None) -> None:
        """Move from ``queued`` to ``in_progress``."""
        if self.status is not RunStatus.QUEUED:
            raise InternalInvariantViolation.bad_transition(
                self.key, self.status, RunStatus.IN_PROGRESS
            )
        self.status = RunStatus.IN_PROGRESS
        self.started_at = now or utcnow()

    def add_packages(self, packages: cabc.Iterable[Package]) -> list[Package]:
        """Union ``packages`` into the run and return the work to validate.

        A new root is returned whole. For a root already in the run only the
        files it did not yet cover are returned, as a package restricted to
        those files, and the stored package grows to include them. A
        submitter the run has not seen for the root is validated the same
        way. A root with nothing new yields no work.
        """
        self._require_in_progress()
        work: list[Package] = []
        for package in sorted(packages, key=lambda p: p.root):
            known = self.packages.get(package.root)
            if known is None:
                self.packages[package.root] = package
                work.append(package)
            else:
                extra = package.files - known.files
                new_submitter = package.submitter not in ("", known.submitter)
                if not extra and not new_submitter:
                    continue
                submitter = package.submitter or known.submitter
                self.packages[package.root] = dataclasses.replace(
                    known, files=known.files | extra, submitter=submitter
                )
                work.append(
                    dataclasses.replace(
                        known, files=frozenset(extra), submitter=package.submitter
                    )
                )
            self.in_flight[package.root] = self.in_flight.get(package.root, 0) + 1
        return work

    def record(self, root: str, outcome: ValidationOutcome) -> None:
        """Store the outcome of one validation of the package at ``root``.

        When the package was validated more than once the stored outcome is
        the worse of them, with diagnostics merged.
        """
        self._require_in_progress()
        if root not in self.packages or outcome.package_root != root:
            raise InternalInvariantViolation.unknown_package(self.key, root)
        remaining = self.in_flight.get(root, 0)
        if remaining <= 0:
            raise InternalInvariantViolation.duplicate_outcome(self.key, root)
        self.in_flight[root] = remaining - 1
        previous = self.outcomes.get(root)
        self.outcomes[root] = (
            outcome if previous is None else merge_outcomes(previous, outcome)
        )

    def complete(self, *, now: dt.datetime | None = None) -> Conclusion:
        """Finish a resolved run and derive its conclusion."""
        if self.status is not RunStatus.IN_PROGRESS:
            raise InternalInvariantViolation.bad_transition(
                self.key, self.status, RunStatus.COMPLETED
            )
        if not self.is_resolved:
            msg = f"cannot complete with pending packages {sorted(self.pending_roots)}"
            raise InternalInvariantViolation(msg, key=self.key)
        self.conclusion = derive_conclusion(self.outcomes.values())
        self._finish(now)
        return self.conclusion

    def abort(self, reason: str, *, now: dt.datetime | None = None) -> None:
        """Terminate the run without a verdict on its packages."""
        if self.is_completed:
            return
        self.abort_reason = reason
        self.conclusion = Conclusion.NEUTRAL
        self._finish(now)

    def _finish(self, now: dt.datetime | None) -> None:
        self.status = RunStatus.COMPLETED
        self.completed_at = now or utcnow()
        self.completion.set()

    def ordered_outcomes(self) -> list[ValidationOutcome]:
        """Return outcomes sorted by package root."""
        return [self.outcomes[root] for root in sorted(self.outcomes)]
