"""Normalise GitHub webhook deliveries into ``Event`` records.

Intake is a pure boundary: it validates and decodes a delivery, remembers
which delivery ids were fully processed, and never talks to GitHub. Pull
request and re-run events leave ``changed_paths`` empty; the service fills
them in from the GitHub API before discovery.
"""

from __future__ import annotations

import collections
import typing as typ

import msgspec

from nickel_customs.common.time import ensure_utc, utcnow

from .errors import (
    DuplicateDeliveryError,
    MalformedEventError,
    UnsupportedEventError,
)
from .models import (
    CheckRunPayload,
    CheckSuitePayload,
    Event,
    EventKind,
    PullRequestPayload,
    PushPayload,
    RawDelivery,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

_NULL_SHA = "0" * 40
_PULL_REQUEST_ACTIONS = frozenset({"opened", "synchronize", "reopened"})
_RERUN_ACTIONS = frozenset({"rerequested"})


class DeliveryLedger:
    """Bounded memory of delivery ids that were fully processed.

    The oldest ids are forgotten first once ``capacity`` is exceeded.
    """

    def __init__(self, capacity: int = 4096) -> None:
        """Create an empty ledger holding at most ``capacity`` ids."""
        if capacity < 1:
            msg = f"capacity must be positive, got {capacity}"
            raise ValueError(msg)
        self._capacity = capacity
        self._seen: collections.OrderedDict[str, None] = collections.OrderedDict()

    def __contains__(self, delivery_id: object) -> bool:
        """Return whether ``delivery_id`` was recorded and not yet forgotten."""
        return delivery_id in self._seen

    def __len__(self) -> int:
        """Return the number of remembered ids."""
        return len(self._seen)

    def record(self, delivery_id: str) -> None:
        """Remember ``delivery_id`` as processed."""
        self._seen[delivery_id] = None
        self._seen.move_to_end(delivery_id)
        while len(self._seen) > self._capacity:
            self._seen.popitem(last=False)


def _require(value: str, field: str) -> str:
    text = value.strip()
    if not text:
        raise MalformedEventError.missing(field)
    return text


def _require_repository(value: str) -> str:
    slug = _require(value, "repository.full_name")
    owner, _, name = slug.partition("/")
    if not owner or not name or "/" in name:
        raise MalformedEventError.bad_repository(slug)
    return slug


def _normalise_sha(value: str | None) -> str:
    text = (value or "").strip()
    return "" if text == _NULL_SHA else text


def _decode[T](body: bytes, payload_type: type[T]) -> T:
    try:
        return msgspec.json.decode(body, type=payload_type)
    except msgspec.DecodeError as exc:
        raise MalformedEventError.undecodable(str(exc)) from exc


def _dedupe(paths: cabc.Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(path for path in paths if path))


def _is_manifest(path: str, manifest_name: str) -> bool:
    return path == manifest_name or path.endswith(f"/{manifest_name}")


class EventIntake:
    """Turn raw deliveries into immutable events.

    Parameters
    ----------
    ledger
        Record of processed delivery ids; a fresh bounded ledger is created
        when omitted.
    manifest_name
        File name marking a package root, used to drop deleted manifests
        from push change sets.
    clock
        Source of ``received_at`` timestamps.

    """

    def __init__(
        self,
        *,
        ledger: DeliveryLedger | None = None,
        manifest_name: str = "Nickel-pkg.ncl",
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Configure intake."""
        self._ledger = ledger if ledger is not None else DeliveryLedger()
        self._manifest_name = manifest_name
        self._clock = clock

    @property
    def ledger(self) -> DeliveryLedger:
        """Return the processed-delivery ledger."""
        return self._ledger

    def _received_at(self) -> dt.datetime:
        return ensure_utc(self._clock(), field="received_at")

    def mark_processed(self, delivery_id: str) -> None:
        """Record that the run fed by ``delivery_id`` has completed."""
        self._ledger.record(delivery_id)

    def accept(self, raw: RawDelivery) -> Event:
        """Validate ``raw`` and return the event it describes.

        Raises
        ------
        MalformedEventError
            If required fields are missing, empty or undecodable.
        DuplicateDeliveryError
            If the delivery id has already been fully processed.
        UnsupportedEventError
            If the event name or action does not trigger a check.

        """
        delivery_id = _require(raw.delivery_id, "delivery_id")
        if delivery_id in self._ledger:
            raise DuplicateDeliveryError(delivery_id)

        match raw.event:
            case "push":
                return self._from_push(raw.body, delivery_id)
            case "pull_request":
                return self._from_pull_request(raw.body, delivery_id)
            case "check_suite":
                return self._from_check_suite(raw.body, delivery_id)
            case "check_run":
                return self._from_check_run(raw.body, delivery_id)
            case "":
                raise MalformedEventError.missing("event")
            case other:
                raise UnsupportedEventError(other)

    def _from_push(self, body: bytes, delivery_id: str) -> Event:
        payload = _decode(body, PushPayload)
        repository = _require_repository(payload.repository.full_name)
        head_sha = _normalise_sha(payload.after)
        if payload.deleted or (payload.after.strip() and not head_sha):
            raise MalformedEventError.branch_deleted()
        head_sha = _require(head_sha, "after")

        changed: list[str] = []
        for commit in payload.commits:
            changed.extend(commit.added)
            changed.extend(commit.modified)
            changed.extend(
                path
                for path in commit.removed
                if not _is_manifest(path, self._manifest_name)
            )
        return Event(
            repository=repository,
            head_sha=head_sha,
            base_sha=_normalise_sha(payload.before),
            changed_paths=_dedupe(changed),
            delivery_id=delivery_id,
            received_at=self._received_at(),
            kind=EventKind.PUSH,
        )

    def _from_pull_request(self, body: bytes, delivery_id: str) -> Event:
        payload = _decode(body, PullRequestPayload)
        if payload.action not in _PULL_REQUEST_ACTIONS:
            raise UnsupportedEventError("pull_request", payload.action)
        pull = payload.pull_request
        if pull.number < 1:
            raise MalformedEventError.missing("pull_request.number")
        return Event(
            repository=_require_repository(payload.repository.full_name),
            head_sha=_require(pull.head.sha, "pull_request.head.sha"),
            base_sha=_require(pull.base.sha, "pull_request.base.sha"),
            changed_paths=(),
            delivery_id=delivery_id,
            received_at=self._received_at(),
            kind=EventKind.PULL_REQUEST,
            pull_number=pull.number,
            sender=payload.sender.login.strip(),
        )

    def _rerequest(
        self,
        *,
        repository: str,
        head_sha: str,
        base_sha: str | None,
        delivery_id: str,
        field: str,
    ) -> Event:
        return Event(
            repository=_require_repository(repository),
            head_sha=_require(head_sha, field),
            base_sha=_normalise_sha(base_sha),
            changed_paths=(),
            delivery_id=delivery_id,
            received_at=self._received_at(),
            kind=EventKind.REREQUEST,
        )

    def _from_check_suite(self, body: bytes, delivery_id: str) -> Event:
        payload = _decode(body, CheckSuitePayload)
        if payload.action not in _RERUN_ACTIONS:
            raise UnsupportedEventError("check_suite", payload.action)
        return self._rerequest(
            repository=payload.repository.full_name,
            head_sha=payload.check_suite.head_sha,
            base_sha=payload.check_suite.before,
            delivery_id=delivery_id,
            field="check_suite.head_sha",
        )

    def _from_check_run(self, body: bytes, delivery_id: str) -> Event:
        payload = _decode(body, CheckRunPayload)
        if payload.action not in _RERUN_ACTIONS:
            raise UnsupportedEventError("check_run", payload.action)
        return self._rerequest(
            repository=payload.repository.full_name,
            head_sha=payload.check_run.head_sha,
            base_sha=payload.check_run.check_suite.before,
            delivery_id=delivery_id,
            field="check_run.head_sha",
        )
