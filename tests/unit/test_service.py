"""Unit tests for the delivery handling service."""

from __future__ import annotations

import asyncio

import pytest

from nickel_customs.checks import Conclusion, RunKey, RunStatus
from nickel_customs.config import CustomsConfig
from nickel_customs.events import (
    DuplicateDeliveryError,
    MalformedEventError,
    RawDelivery,
    UnsupportedEventError,
)
from nickel_customs.github import (
    ChangedFile,
    GitHubAPIError,
    GitHubChecksClient,
    GitHubChecksConfig,
)
from nickel_customs.oracle.mock import Script, ScriptedOracle
from nickel_customs.reporting import RecordingReporter
from nickel_customs.service import CheckService, build_check_service
from tests.helpers.builders import (
    BASE_SHA,
    HEAD_SHA,
    REPOSITORY,
    check_run_body,
    check_suite_body,
    pull_request_body,
    push_delivery,
)
from tests.helpers.fake_github import FakeChangeSource

_KEY = RunKey(REPOSITORY, HEAD_SHA)


async def _finish(service: CheckService) -> None:
    await asyncio.wait_for(service.orchestrator.drain(), timeout=2.0)


class TestPushDeliveries:
    """Push events carry their own change set."""

    @pytest.mark.asyncio
    async def test_changed_manifest_yields_its_package(
        self,
        check_service: CheckService,
        change_source: FakeChangeSource,
        recording_reporter: RecordingReporter,
    ) -> None:
        """pkgA's manifest changed and passes: the run succeeds with one outcome."""
        change_source.tree = ["pkgA/Nickel-pkg.ncl", "pkgA/main.ncl"]
        run = await check_service.handle(
            push_delivery(modified=["pkgA/Nickel-pkg.ncl"])
        )
        await _finish(check_service)

        assert run.key == _KEY
        assert run.status is RunStatus.COMPLETED
        assert run.conclusion is Conclusion.SUCCESS
        assert list(run.outcomes) == ["pkgA"]
        assert change_source.calls == [("tree", REPOSITORY, HEAD_SHA)]
        assert [call.phase for call in recording_reporter.calls] == [
            "create",
            "complete",
        ]

    @pytest.mark.asyncio
    async def test_tree_manifests_claim_unmarked_changes(
        self,
        check_service: CheckService,
        change_source: FakeChangeSource,
        scripted_oracle: ScriptedOracle,
    ) -> None:
        """A source change is attributed to the manifest found in the tree."""
        change_source.tree = ["pkgB/Nickel-pkg.ncl", "pkgB/file.ncl", "README.md"]
        await check_service.handle(
            push_delivery(modified=["pkgB/file.ncl", "README.md"])
        )
        await _finish(check_service)

        assert scripted_oracle.validated_roots == ["pkgB"]
        assert scripted_oracle.calls[0].files == frozenset({"pkgB/file.ncl"})

    @pytest.mark.asyncio
    async def test_no_packages_is_vacuously_successful(
        self, check_service: CheckService
    ) -> None:
        """Changes outside every package complete at once with success."""
        run = await check_service.handle(push_delivery(modified=["docs/index.md"]))
        assert run.status is RunStatus.COMPLETED
        assert run.conclusion is Conclusion.SUCCESS
        assert run.outcomes == {}
        await _finish(check_service)


class TestDeliveryIdempotency:
    """Redelivered webhooks."""

    @pytest.mark.asyncio
    async def test_redelivery_after_completion_is_a_duplicate(
        self, check_service: CheckService
    ) -> None:
        """Once its run completed a delivery id is rejected."""
        await check_service.handle(push_delivery(delivery_id="d-1"))
        await _finish(check_service)
        with pytest.raises(DuplicateDeliveryError):
            await check_service.handle(push_delivery(delivery_id="d-1"))

    @pytest.mark.asyncio
    async def test_redelivery_while_in_flight_coalesces(
        self,
        check_service: CheckService,
        change_source: FakeChangeSource,
        scripted_oracle: ScriptedOracle,
    ) -> None:
        """A redelivery of an in-flight event joins the active run."""
        scripted_oracle.set("pkgA", Script(delay_s=0.05))
        change_source.tree = ["pkgA/Nickel-pkg.ncl"]
        delivery = push_delivery(delivery_id="d-1", modified=["pkgA/x.ncl"])
        first = await check_service.handle(delivery)
        second = await check_service.handle(delivery)
        await _finish(check_service)

        assert second is first
        assert scripted_oracle.validated_roots == ["pkgA"]

    @pytest.mark.asyncio
    async def test_two_events_for_one_commit_share_a_run(
        self,
        check_service: CheckService,
        change_source: FakeChangeSource,
        scripted_oracle: ScriptedOracle,
        recording_reporter: RecordingReporter,
    ) -> None:
        """pkgC and pkgD arrive in separate deliveries; one run holds both."""
        scripted_oracle.set("pkgC", Script(delay_s=0.05))
        change_source.tree = ["pkgC/Nickel-pkg.ncl", "pkgD/Nickel-pkg.ncl"]
        first = await check_service.handle(
            push_delivery(delivery_id="d-1", modified=["pkgC/x"])
        )
        await asyncio.sleep(0.01)
        second = await check_service.handle(
            push_delivery(delivery_id="d-2", modified=["pkgD/y"])
        )
        await _finish(check_service)

        assert second is first
        assert sorted(first.outcomes) == ["pkgC", "pkgD"]
        assert len(recording_reporter.calls_for(_KEY, "create")) == 1


class TestResolvedChangeSets:
    """Events whose change set comes from the GitHub API."""

    @pytest.mark.asyncio
    async def test_pull_request_files_are_fetched(
        self,
        check_service: CheckService,
        change_source: FakeChangeSource,
        scripted_oracle: ScriptedOracle,
    ) -> None:
        """Pull request files drive discovery; removed manifests are dropped."""
        change_source.tree = ["pkgA/Nickel-pkg.ncl"]
        change_source.pull_files = [
            ChangedFile(filename="pkgA/lib.ncl"),
            ChangedFile(filename="gone/Nickel-pkg.ncl", status="removed"),
        ]
        raw = RawDelivery(
            event="pull_request",
            delivery_id="pr-1",
            body=pull_request_body(number=12),
        )
        await check_service.handle(raw)
        await _finish(check_service)

        assert ("pulls", REPOSITORY, "12") in change_source.calls
        assert scripted_oracle.validated_roots == ["pkgA"]

    @pytest.mark.asyncio
    async def test_rerequested_suite_uses_compare(
        self,
        check_service: CheckService,
        change_source: FakeChangeSource,
        scripted_oracle: ScriptedOracle,
    ) -> None:
        """A re-run compares the suite's base with its head."""
        change_source.tree = ["pkgA/Nickel-pkg.ncl", "pkgB/Nickel-pkg.ncl"]
        change_source.compare_files = [
            ChangedFile(
                filename="pkgB/new.ncl",
                status="renamed",
                previous_filename="pkgA/old.ncl",
            )
        ]
        raw = RawDelivery(
            event="check_suite", delivery_id="cs-1", body=check_suite_body()
        )
        await check_service.handle(raw)
        await _finish(check_service)

        assert ("compare", REPOSITORY, BASE_SHA, HEAD_SHA) in change_source.calls
        assert sorted(scripted_oracle.validated_roots) == ["pkgA", "pkgB"]

    @pytest.mark.asyncio
    async def test_rerequest_without_base_checks_every_package(
        self,
        check_service: CheckService,
        change_source: FakeChangeSource,
        scripted_oracle: ScriptedOracle,
    ) -> None:
        """With nothing to compare against, every package in the tree is checked."""
        change_source.tree = ["a/Nickel-pkg.ncl", "b/c/Nickel-pkg.ncl", "x.md"]
        raw = RawDelivery(
            event="check_suite",
            delivery_id="cs-2",
            body=check_suite_body(before=None),
        )
        await check_service.handle(raw)
        await _finish(check_service)

        assert sorted(scripted_oracle.validated_roots) == ["a", "b/c"]
        assert not any(call[0] == "compare" for call in change_source.calls)

    @pytest.mark.asyncio
    async def test_rerequested_check_run_is_accepted(
        self, check_service: CheckService
    ) -> None:
        """``check_run.rerequested`` is handled like a suite re-run."""
        raw = RawDelivery(
            event="check_run", delivery_id="cr-1", body=check_run_body()
        )
        run = await check_service.handle(raw)
        await _finish(check_service)
        assert run.key == _KEY

    @pytest.mark.asyncio
    async def test_github_failure_propagates_without_a_run(
        self,
        check_service: CheckService,
        change_source: FakeChangeSource,
    ) -> None:
        """If the tree cannot be listed no run is opened."""
        change_source.error = GitHubAPIError.http_error(502)
        with pytest.raises(GitHubAPIError):
            await check_service.handle(push_delivery(modified=["pkgA/x.ncl"]))
        assert _KEY not in check_service.orchestrator.registry


class TestRejectedDeliveries:
    """Deliveries that never reach the orchestrator."""

    @pytest.mark.asyncio
    async def test_malformed_delivery(
        self, check_service: CheckService, change_source: FakeChangeSource
    ) -> None:
        """A push without a head commit is malformed and has no side effects."""
        raw = RawDelivery(event="push", delivery_id="d-1", body=b'{"after": ""}')
        with pytest.raises(MalformedEventError):
            await check_service.handle(raw)
        assert change_source.calls == []
        assert len(check_service.orchestrator.registry) == 0

    @pytest.mark.asyncio
    async def test_unsupported_event(self, check_service: CheckService) -> None:
        """Events the bot does not act on are reported as unsupported."""
        raw = RawDelivery(event="issues", delivery_id="d-1", body=b"{}")
        with pytest.raises(UnsupportedEventError):
            await check_service.handle(raw)


@pytest.mark.asyncio
async def test_build_check_service_wires_the_github_client() -> None:
    """The factory builds a working service around an injected oracle."""
    client = GitHubChecksClient(GitHubChecksConfig(token="t0ken"))
    try:
        service = build_check_service(
            CustomsConfig(retention_s=30.0), client, oracle=ScriptedOracle()
        )
        assert isinstance(service, CheckService)
        assert len(service.orchestrator.registry) == 0
    finally:
        await client.aclose()
