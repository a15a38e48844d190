"""Package records derived from an event's change set."""

from __future__ import annotations

import dataclasses


@dataclasses.dataclass(frozen=True, slots=True)
class Package:
    """A Nickel package touched by a commit.

    Attributes
    ----------
    repository
        Repository slug in ``owner/name`` form.
    revision
        Commit at which the package is validated.
    root
        Package directory relative to the repository root; ``""`` for a
        package at the root itself.
    manifest_path
        Path of the package manifest relative to the repository root.
    files
        Changed paths that belong to the package.
    submitter
        Login of the pull request author proposing the change; empty when
        the triggering event names none.

    """

    repository: str
    revision: str
    root: str
    manifest_path: str
    files: frozenset[str] = frozenset()
    submitter: str = ""

    @property
    def label(self) -> str:
        """Return a display name for reports and logs."""
        return self.root or "."

    def nickel_sources(self) -> tuple[str, ...]:
        """Return the changed ``.ncl`` files other than the manifest, sorted."""
        return tuple(
            sorted(
                path
                for path in self.files
                if path.endswith(".ncl") and path != self.manifest_path
            )
        )
