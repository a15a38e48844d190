"""Unit tests for the publisher permission gate."""

from __future__ import annotations

import dataclasses
import typing as typ

import pytest

from nickel_customs.github import GitHubAPIError
from nickel_customs.oracle import Diagnostic, Failed, Passed, PublisherGate
from nickel_customs.oracle.mock import Script, ScriptedOracle
from tests.helpers.builders import make_package

if typ.TYPE_CHECKING:
    from nickel_customs.packages import Package


class FakeDirectory:
    """Collaborator lookup answering from a fixed set of logins."""

    def __init__(
        self, collaborators: set[str], error: GitHubAPIError | None = None
    ) -> None:
        self.collaborators = collaborators
        self.error = error
        self.queries: list[tuple[str, str]] = []

    async def is_collaborator(self, repository: str, login: str) -> bool:
        self.queries.append((repository, login))
        if self.error is not None:
            raise self.error
        return login in self.collaborators


def _submitted(login: str) -> Package:
    return dataclasses.replace(make_package("pkgA"), submitter=login)


class TestPublisherGate:
    """Only owners and collaborators may publish."""

    @pytest.mark.asyncio
    async def test_packages_without_submitter_skip_the_lookup(self) -> None:
        """Pushes carry no author and are not gated."""
        directory = FakeDirectory(set())
        gate = PublisherGate(ScriptedOracle(), directory)
        assert await gate.validate(make_package("pkgA")) == Passed("pkgA")
        assert directory.queries == []

    @pytest.mark.asyncio
    async def test_repository_owner_is_allowed(self) -> None:
        """The owner may publish without a collaborator lookup."""
        directory = FakeDirectory(set())
        gate = PublisherGate(ScriptedOracle(), directory)
        assert await gate.validate(_submitted("Octo")) == Passed("pkgA")
        assert directory.queries == []

    @pytest.mark.asyncio
    async def test_collaborator_is_allowed(self) -> None:
        """Collaborators on the repository may publish."""
        directory = FakeDirectory({"alice"})
        gate = PublisherGate(ScriptedOracle(), directory)
        assert await gate.validate(_submitted("alice")) == Passed("pkgA")
        assert directory.queries == [("octo/reef", "alice")]

    @pytest.mark.asyncio
    async def test_stranger_fails_on_the_manifest(self) -> None:
        """Anyone else fails with a diagnostic naming them."""
        gate = PublisherGate(ScriptedOracle(), FakeDirectory({"alice"}))
        outcome = await gate.validate(_submitted("mallory"))
        assert isinstance(outcome, Failed)
        (diagnostic,) = outcome.diagnostics
        assert diagnostic.path == "pkgA/Nickel-pkg.ncl"
        assert diagnostic.message.startswith("@mallory is not allowed to publish")

    @pytest.mark.asyncio
    async def test_stranger_still_sees_nickel_diagnostics(self) -> None:
        """Package problems are reported alongside the permission failure."""
        broken = Failed(
            package_root="pkgA",
            diagnostics=(Diagnostic(path="pkgA/main.ncl", line=2, message="bad"),),
        )
        oracle = ScriptedOracle({"pkgA": Script(outcome=broken)})
        gate = PublisherGate(oracle, FakeDirectory(set()))
        outcome = await gate.validate(_submitted("mallory"))
        assert isinstance(outcome, Failed)
        assert [d.path for d in outcome.diagnostics] == [
            "pkgA/Nickel-pkg.ncl",
            "pkgA/main.ncl",
        ]

    @pytest.mark.asyncio
    async def test_lookup_failure_propagates(self) -> None:
        """GitHub errors surface to the bounding oracle as exceptions."""
        directory = FakeDirectory(set(), error=GitHubAPIError.http_error(500))
        gate = PublisherGate(ScriptedOracle(), directory)
        with pytest.raises(GitHubAPIError):
            await gate.validate(_submitted("alice"))
