"""Map changed paths onto the Nickel packages that own them.

A package is rooted at a directory holding a manifest. Ownership is decided
purely from path prefixes: each changed path belongs to its nearest ancestor
directory that is known to hold a manifest, either because the head tree
lists one there or because the manifest itself is part of the change.
"""

from __future__ import annotations

import collections
import typing as typ
from pathlib import PurePosixPath

from .models import Package

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from nickel_customs.events.models import Event


def normalise_path(path: str) -> str:
    """Return ``path`` as a clean repository-relative POSIX path."""
    text = path.strip().replace("\\", "/").lstrip("/")
    normalised = PurePosixPath(text).as_posix()
    return "" if normalised == "." else normalised


def _parent(path: str) -> str:
    parent = PurePosixPath(path).parent.as_posix()
    return "" if parent == "." else parent


def _ancestors(path: str) -> cabc.Iterator[str]:
    """Yield the directories above ``path``, nearest first, ending at root."""
    for parent in PurePosixPath(path).parents:
        text = parent.as_posix()
        yield "" if text == "." else text


def _join(root: str, name: str) -> str:
    return f"{root}/{name}" if root else name


class PackageDiscovery:
    """Decide which packages an event touches."""

    def __init__(self, manifest_name: str = "Nickel-pkg.ncl") -> None:
        """Use ``manifest_name`` as the package root marker."""
        self._manifest_name = manifest_name

    @property
    def manifest_name(self) -> str:
        """Return the package root marker."""
        return self._manifest_name

    def is_manifest(self, path: str) -> bool:
        """Return whether ``path`` names a package manifest."""
        return PurePosixPath(path).name == self._manifest_name

    def _package_roots(self, event: Event, changed: list[str]) -> frozenset[str]:
        manifests = {normalise_path(path) for path in event.known_manifests}
        manifests.update(path for path in changed if self.is_manifest(path))
        return frozenset(
            _parent(path) for path in manifests if self.is_manifest(path)
        )

    def discover(self, event: Event) -> frozenset[Package]:
        """Return the packages owning ``event.changed_paths``.

        Paths with no manifest above them are ignored. A changed manifest
        always yields its package. The result depends only on the event, not
        on filesystem state or iteration order.
        """
        changed = [
            path for path in map(normalise_path, event.changed_paths) if path
        ]
        roots = self._package_roots(event, changed)
        grouped: dict[str, set[str]] = collections.defaultdict(set)
        for path in changed:
            owner = next((d for d in _ancestors(path) if d in roots), None)
            if owner is not None:
                grouped[owner].add(path)

        return frozenset(
            Package(
                repository=event.repository,
                revision=event.head_sha,
                root=root,
                manifest_path=_join(root, self._manifest_name),
                files=frozenset(files),
                submitter=event.sender,
            )
            for root, files in grouped.items()
        )


def sorted_packages(packages: cabc.Iterable[Package]) -> list[Package]:
    """Return ``packages`` ordered by root path."""
    return sorted(packages, key=lambda package: package.root)
