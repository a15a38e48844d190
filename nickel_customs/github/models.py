"""Typed shapes of the GitHub REST payloads this bot sends and receives."""

from __future__ import annotations

import typing as typ

import msgspec


class CheckRunAnnotation(msgspec.Struct, kw_only=True, frozen=True):
    """One annotation attached to a check run's output."""

    path: str
    start_line: int
    end_line: int
    annotation_level: typ.Literal["notice", "warning", "failure"]
    message: str
    title: str | None = None


class CheckRunOutput(msgspec.Struct, kw_only=True, omit_defaults=True):
    """The ``output`` object of a check run."""

    title: str
    summary: str
    text: str | None = None
    annotations: list[CheckRunAnnotation] = msgspec.field(default_factory=list)


class CheckRunRequest(msgspec.Struct, kw_only=True, omit_defaults=True):
    """Body of check run create and update requests.

    ``name`` and ``head_sha`` are only sent on creation.
    """

    name: str | None = None
    head_sha: str | None = None
    status: typ.Literal["queued", "in_progress", "completed"] | None = None
    conclusion: str | None = None
    external_id: str | None = None
    started_at: str | None = None
    completed_at: str | None = None
    output: CheckRunOutput | None = None


class CheckRunResponse(msgspec.Struct, kw_only=True):
    """Fields of a check run response used by the bot."""

    id: int
    status: str = ""


class ChangedFile(msgspec.Struct, kw_only=True, frozen=True):
    """A file entry from the pull request files or compare APIs."""

    filename: str
    status: str = "modified"
    previous_filename: str | None = None

    @property
    def removed(self) -> bool:
        """Return whether the change deletes the file."""
        return self.status == "removed"


class CompareResponse(msgspec.Struct, kw_only=True):
    """Fields of a compare response used by the bot."""

    files: list[ChangedFile] = msgspec.field(default_factory=list)


class TreeEntry(msgspec.Struct, kw_only=True):
    """One entry of a Git tree listing."""

    path: str
    type: str


class TreeResponse(msgspec.Struct, kw_only=True):
    """A recursive Git tree listing."""

    tree: list[TreeEntry] = msgspec.field(default_factory=list)
    truncated: bool = False
