"""Event records and the webhook payload shapes they are decoded from."""

from __future__ import annotations

import dataclasses
import datetime as dt
import enum
import typing as typ

import msgspec

if typ.TYPE_CHECKING:
    import collections.abc as cabc


class EventKind(enum.StrEnum):
    """What kind of repository activity triggered an event."""

    PUSH = "push"
    PULL_REQUEST = "pull_request"
    REREQUEST = "rerequest"


@dataclasses.dataclass(frozen=True, slots=True)
class Event:
    """One accepted trigger for validating a commit.

    Attributes
    ----------
    repository
        Repository slug in ``owner/name`` form.
    head_sha
        Commit whose packages are validated and reported on.
    base_sha
        Commit the change set is computed against; empty for new branches.
    changed_paths
        Changed file paths in first-seen order, without duplicates.
    delivery_id
        GitHub delivery identifier used for transport-level deduplication.
    received_at
        When the delivery reached the service.
    kind
        Activity that produced the delivery.
    known_manifests
        Package manifest paths present in the tree at ``head_sha``.
    pull_number
        Pull request number for pull request events.
    sender
        Login of the user who opened or updated the pull request; empty for
        other events.

    """

    repository: str
    head_sha: str
    base_sha: str
    changed_paths: tuple[str, ...]
    delivery_id: str
    received_at: dt.datetime
    kind: EventKind = EventKind.PUSH
    known_manifests: frozenset[str] = frozenset()
    pull_number: int | None = None
    sender: str = ""

    @property
    def owner(self) -> str:
        """Return the repository owner."""
        return self.repository.partition("/")[0]

    @property
    def name(self) -> str:
        """Return the repository name."""
        return self.repository.partition("/")[2]

    def with_manifests(self, manifests: cabc.Iterable[str]) -> Event:
        """Return a copy carrying the manifest paths of the head tree."""
        return dataclasses.replace(self, known_manifests=frozenset(manifests))

    def with_changes(self, changed_paths: cabc.Iterable[str]) -> Event:
        """Return a copy carrying change paths resolved from the GitHub API."""
        return dataclasses.replace(self, changed_paths=tuple(changed_paths))


class RawDelivery(msgspec.Struct, kw_only=True, frozen=True):
    """A webhook delivery exactly as received over the relay.

    Attributes
    ----------
    event
        Value of the ``X-GitHub-Event`` header.
    delivery_id
        Value of the ``X-GitHub-Delivery`` header.
    body
        Raw JSON request body.

    """

    event: str
    delivery_id: str
    body: bytes


class RepositoryPayload(msgspec.Struct, kw_only=True):
    """The ``repository`` object shared by every webhook payload."""

    full_name: str = ""


class CommitPayload(msgspec.Struct, kw_only=True):
    """A commit entry of a ``push`` payload."""

    added: list[str] = msgspec.field(default_factory=list)
    modified: list[str] = msgspec.field(default_factory=list)
    removed: list[str] = msgspec.field(default_factory=list)


class PushPayload(msgspec.Struct, kw_only=True):
    """Fields of a ``push`` payload used by intake."""

    repository: RepositoryPayload = msgspec.field(default_factory=RepositoryPayload)
    before: str = ""
    after: str = ""
    deleted: bool = False
    commits: list[CommitPayload] = msgspec.field(default_factory=list)


class SenderPayload(msgspec.Struct, kw_only=True):
    """The ``sender`` object: the account that triggered the delivery."""

    login: str = ""


class RefPayload(msgspec.Struct, kw_only=True):
    """A ``head`` or ``base`` reference of a pull request."""

    sha: str = ""


class PullRequestBody(msgspec.Struct, kw_only=True):
    """The ``pull_request`` object of a pull request payload."""

    number: int = 0
    head: RefPayload = msgspec.field(default_factory=RefPayload)
    base: RefPayload = msgspec.field(default_factory=RefPayload)


class PullRequestPayload(msgspec.Struct, kw_only=True):
    """Fields of a ``pull_request`` payload used by intake."""

    action: str = ""
    repository: RepositoryPayload = msgspec.field(default_factory=RepositoryPayload)
    pull_request: PullRequestBody = msgspec.field(default_factory=PullRequestBody)
    sender: SenderPayload = msgspec.field(default_factory=SenderPayload)


class CheckSuiteBody(msgspec.Struct, kw_only=True):
    """The suite object of ``check_suite`` payloads."""

    head_sha: str = ""
    before: str | None = None


class CheckSuitePayload(msgspec.Struct, kw_only=True):
    """Fields of a ``check_suite`` payload used by intake."""

    action: str = ""
    repository: RepositoryPayload = msgspec.field(default_factory=RepositoryPayload)
    check_suite: CheckSuiteBody = msgspec.field(default_factory=CheckSuiteBody)


class CheckRunBody(msgspec.Struct, kw_only=True):
    """The run object of ``check_run`` payloads."""

    head_sha: str = ""
    check_suite: CheckSuiteBody = msgspec.field(default_factory=CheckSuiteBody)


class CheckRunPayload(msgspec.Struct, kw_only=True):
    """Fields of a ``check_run`` payload used by intake."""

    action: str = ""
    repository: RepositoryPayload = msgspec.field(default_factory=RepositoryPayload)
    check_run: CheckRunBody = msgspec.field(default_factory=CheckRunBody)
