"""In-memory stand-in for the GitHub tree and change-set lookups."""

from __future__ import annotations

import dataclasses

from nickel_customs.github.models import ChangedFile


@dataclasses.dataclass(slots=True)
class FakeChangeSource:
    """Answer ``ChangeSource`` calls from canned data and record them.

    Attributes
    ----------
    tree
        Blob paths returned for every tree listing.
    pull_files
        Files returned for pull request file listings.
    compare_files
        Files returned for compare calls.
    error
        Raised from every call when set.

    """

    tree: list[str] = dataclasses.field(default_factory=list)
    pull_files: list[ChangedFile] = dataclasses.field(default_factory=list)
    compare_files: list[ChangedFile] = dataclasses.field(default_factory=list)
    error: Exception | None = None
    calls: list[tuple[str, ...]] = dataclasses.field(default_factory=list)

    def _check(self) -> None:
        if self.error is not None:
            raise self.error

    async def list_tree_paths(self, repository: str, sha: str) -> list[str]:
        """Return the canned tree."""
        self.calls.append(("tree", repository, sha))
        self._check()
        return list(self.tree)

    async def list_pull_request_files(
        self, repository: str, pull_number: int
    ) -> list[ChangedFile]:
        """Return the canned pull request files."""
        self.calls.append(("pulls", repository, str(pull_number)))
        self._check()
        return list(self.pull_files)

    async def compare(
        self, repository: str, base: str, head: str
    ) -> list[ChangedFile]:
        """Return the canned compare files."""
        self.calls.append(("compare", repository, base, head))
        self._check()
        return list(self.compare_files)
