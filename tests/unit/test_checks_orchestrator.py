"""Unit tests for the check orchestrator."""

from __future__ import annotations

import asyncio

import pytest

from nickel_customs.checks import (
    CheckEventType,
    CheckOrchestrator,
    Conclusion,
    RunKey,
    RunStatus,
)
from nickel_customs.oracle import TIMEOUT_REASON, Diagnostic, Errored, Failed, Passed
from nickel_customs.oracle.mock import Script, ScriptedOracle
from nickel_customs.reporting import RecordingReporter
from tests.helpers.builders import HEAD_SHA, REPOSITORY, make_event, make_package
from tests.helpers.femtologging_capture import capture_femto_logs

_KEY = RunKey(REPOSITORY, HEAD_SHA)


async def _settle(orchestrator: CheckOrchestrator) -> None:
    await asyncio.wait_for(orchestrator.drain(), timeout=2.0)


class TestSingleEvent:
    """Runs fed by one event."""

    @pytest.mark.asyncio
    async def test_empty_package_set_succeeds_immediately(
        self,
        orchestrator: CheckOrchestrator,
        recording_reporter: RecordingReporter,
    ) -> None:
        """An event touching no package completes at once with success."""
        run = await orchestrator.submit(make_event(), [])
        assert run.status is RunStatus.COMPLETED
        assert run.conclusion is Conclusion.SUCCESS
        await _settle(orchestrator)
        assert [call.phase for call in recording_reporter.calls] == [
            "create",
            "complete",
        ]

    @pytest.mark.asyncio
    async def test_pass_and_timeout_fail_the_run(
        self,
        orchestrator: CheckOrchestrator,
        scripted_oracle: ScriptedOracle,
        recording_reporter: RecordingReporter,
    ) -> None:
        """pkgA passes, pkgB hangs past the bound: the run fails."""
        scripted_oracle.set("pkgB", Script(delay_s=5.0))
        await orchestrator.submit(
            make_event(), [make_package("pkgA"), make_package("pkgB")]
        )
        run = await asyncio.wait_for(orchestrator.wait(_KEY), timeout=2.0)
        assert run is not None
        assert run.conclusion is Conclusion.FAILURE
        assert run.outcomes == {
            "pkgA": Passed(package_root="pkgA"),
            "pkgB": Errored(package_root="pkgB", reason=TIMEOUT_REASON),
        }
        await _settle(orchestrator)
        complete = recording_reporter.calls_for(_KEY, "complete")
        assert len(complete) == 1
        assert complete[0].conclusion is Conclusion.FAILURE

    @pytest.mark.asyncio
    async def test_oracle_exception_does_not_affect_siblings(
        self,
        orchestrator: CheckOrchestrator,
        scripted_oracle: ScriptedOracle,
    ) -> None:
        """An oracle crash is an error for its package only."""
        scripted_oracle.set("pkgA", Script(error=RuntimeError("crashed")))
        await orchestrator.submit(
            make_event(), [make_package("pkgA"), make_package("pkgB")]
        )
        run = await asyncio.wait_for(orchestrator.wait(_KEY), timeout=2.0)
        assert run is not None
        assert run.outcomes["pkgA"] == Errored(package_root="pkgA", reason="crashed")
        assert run.outcomes["pkgB"] == Passed(package_root="pkgB")

    @pytest.mark.asyncio
    async def test_conclusion_only_once_every_package_resolved(
        self,
        orchestrator: CheckOrchestrator,
        scripted_oracle: ScriptedOracle,
    ) -> None:
        """The run stays in progress while any package is pending."""
        scripted_oracle.set("slow", Script(delay_s=0.1))
        run = await orchestrator.submit(
            make_event(), [make_package("fast"), make_package("slow")]
        )
        await asyncio.sleep(0.02)
        assert run.status is RunStatus.IN_PROGRESS
        assert run.conclusion is None
        assert run.pending_roots == {"slow"}
        await asyncio.wait_for(run.completion.wait(), timeout=2.0)
        assert run.conclusion is Conclusion.SUCCESS
        assert run.pending_roots == frozenset()


class TestCoalescing:
    """Several events for one commit."""

    @pytest.mark.asyncio
    async def test_second_event_joins_the_active_run(
        self,
        orchestrator: CheckOrchestrator,
        scripted_oracle: ScriptedOracle,
        recording_reporter: RecordingReporter,
    ) -> None:
        """pkgC is in flight when pkgD arrives: one run, one create call."""
        scripted_oracle.set("pkgC", Script(delay_s=0.1))
        first = await orchestrator.submit(
            make_event(delivery_id="d-1"), [make_package("pkgC")]
        )
        second = await orchestrator.submit(
            make_event(delivery_id="d-2"), [make_package("pkgD")]
        )
        assert second is first
        await asyncio.wait_for(first.completion.wait(), timeout=2.0)
        await _settle(orchestrator)

        assert sorted(first.outcomes) == ["pkgC", "pkgD"]
        assert first.delivery_ids == ["d-1", "d-2"]
        assert first.conclusion is Conclusion.SUCCESS
        assert len(recording_reporter.calls_for(_KEY, "create")) == 1
        assert len(recording_reporter.calls_for(_KEY, "complete")) == 1
        assert recording_reporter.calls_for(_KEY, "complete")[0].package_roots == (
            "pkgC",
            "pkgD",
        )

    @pytest.mark.asyncio
    async def test_redelivered_files_are_not_validated_twice(
        self,
        orchestrator: CheckOrchestrator,
        scripted_oracle: ScriptedOracle,
    ) -> None:
        """An event covering only files already in the run adds no work."""
        scripted_oracle.set("pkgC", Script(delay_s=0.05))
        package = make_package("pkgC", "pkgC/a.ncl")
        await orchestrator.submit(make_event(delivery_id="d-1"), [package])
        await orchestrator.submit(make_event(delivery_id="d-2"), [package])
        await _settle(orchestrator)
        assert scripted_oracle.validated_roots == ["pkgC"]

    @pytest.mark.asyncio
    async def test_new_files_of_a_known_package_are_validated(
        self,
        orchestrator: CheckOrchestrator,
        scripted_oracle: ScriptedOracle,
    ) -> None:
        """Files a later event adds to a package in flight reach the oracle."""
        scripted_oracle.set("pkgC", Script(delay_s=0.05))
        run = await orchestrator.submit(
            make_event(delivery_id="d-1"), [make_package("pkgC", "pkgC/a.ncl")]
        )
        await orchestrator.submit(
            make_event(delivery_id="d-2"), [make_package("pkgC", "pkgC/b.ncl")]
        )
        await asyncio.wait_for(run.completion.wait(), timeout=2.0)
        await _settle(orchestrator)

        assert [call.files for call in scripted_oracle.calls] == [
            frozenset({"pkgC/a.ncl"}),
            frozenset({"pkgC/b.ncl"}),
        ]
        assert run.packages["pkgC"].files == {"pkgC/a.ncl", "pkgC/b.ncl"}
        assert run.conclusion is Conclusion.SUCCESS

    @pytest.mark.asyncio
    async def test_supplementary_failure_fails_the_package(
        self,
        orchestrator: CheckOrchestrator,
        scripted_oracle: ScriptedOracle,
    ) -> None:
        """The package waits for both validations and keeps the worse one."""
        scripted_oracle.set("pkgC", Script(delay_s=0.05))
        run = await orchestrator.submit(
            make_event(delivery_id="d-1"), [make_package("pkgC", "pkgC/a.ncl")]
        )
        while not scripted_oracle.calls:
            await asyncio.sleep(0)
        broken = Failed(
            package_root="pkgC",
            diagnostics=(Diagnostic(path="pkgC/b.ncl", line=3, message="bad"),),
        )
        scripted_oracle.set("pkgC", Script(outcome=broken))
        await orchestrator.submit(
            make_event(delivery_id="d-2"), [make_package("pkgC", "pkgC/b.ncl")]
        )
        await asyncio.wait_for(run.completion.wait(), timeout=2.0)
        await _settle(orchestrator)

        assert run.outcomes["pkgC"] == broken
        assert run.conclusion is Conclusion.FAILURE

    @pytest.mark.asyncio
    async def test_coalescing_is_logged(
        self,
        orchestrator: CheckOrchestrator,
        scripted_oracle: ScriptedOracle,
    ) -> None:
        """Coalesced events emit a structured event line."""
        scripted_oracle.set("pkgC", Script(delay_s=0.05))
        with capture_femto_logs("nickel_customs.checks.observability") as capture:
            await orchestrator.submit(
                make_event(delivery_id="d-1"), [make_package("pkgC")]
            )
            await orchestrator.submit(
                make_event(delivery_id="d-2"), [make_package("pkgD")]
            )
            record = capture.wait_for_event(CheckEventType.RUN_COALESCED)
            await _settle(orchestrator)
        assert "delivery_id=d-2" in record.message
        assert "validations_added=1" in record.message


class TestLateEvents:
    """Events for commits whose run already completed."""

    @pytest.mark.asyncio
    async def test_late_event_opens_a_new_run(
        self,
        orchestrator: CheckOrchestrator,
        recording_reporter: RecordingReporter,
    ) -> None:
        """A completed run is never reopened; the old one stays in history."""
        first = await orchestrator.submit(make_event(delivery_id="d-1"), [])
        await _settle(orchestrator)
        second = await orchestrator.submit(
            make_event(delivery_id="d-2"), [make_package("pkgA")]
        )
        await asyncio.wait_for(second.completion.wait(), timeout=2.0)
        await _settle(orchestrator)

        assert second is not first
        assert first.packages == {}
        assert orchestrator.registry.history(_KEY) == (first, second)
        assert len(recording_reporter.calls_for(_KEY, "create")) == 2

    @pytest.mark.asyncio
    async def test_different_commits_run_independently(
        self,
        orchestrator: CheckOrchestrator,
        scripted_oracle: ScriptedOracle,
    ) -> None:
        """Runs for different head commits do not share state."""
        scripted_oracle.set("pkgA", Script(delay_s=5.0))
        slow = await orchestrator.submit(make_event(), [make_package("pkgA")])
        fast = await orchestrator.submit(
            make_event(head_sha="c" * 40),
            [make_package("pkgB", revision="c" * 40)],
        )
        await asyncio.wait_for(fast.completion.wait(), timeout=2.0)
        assert fast.conclusion is Conclusion.SUCCESS
        assert fast.key != slow.key
        await _settle(orchestrator)


class TestFailureIsolation:
    """Reporting failures and invariant violations."""

    @pytest.mark.asyncio
    async def test_create_failure_does_not_change_run_state(
        self, scripted_oracle: ScriptedOracle
    ) -> None:
        """A failed create is logged; the run still completes and reports."""
        reporter = RecordingReporter(fail_create=True)
        orchestrator = CheckOrchestrator(oracle=scripted_oracle, reporter=reporter)
        with capture_femto_logs("nickel_customs.checks.observability") as capture:
            run = await orchestrator.submit(make_event(), [make_package("pkgA")])
            await _settle(orchestrator)
            record = capture.wait_for_event(CheckEventType.REPORT_FAILED)
        assert run.conclusion is Conclusion.SUCCESS
        assert [call.phase for call in reporter.calls] == ["create", "complete"]
        assert "phase=create" in record.message

    @pytest.mark.asyncio
    async def test_create_always_precedes_complete(
        self, scripted_oracle: ScriptedOracle
    ) -> None:
        """Even when validation outruns a slow create, create is sent first."""
        reporter = RecordingReporter(delay_s=0.05)
        orchestrator = CheckOrchestrator(oracle=scripted_oracle, reporter=reporter)
        await orchestrator.submit(make_event(), [])
        await _settle(orchestrator)
        assert [call.phase for call in reporter.calls] == ["create", "complete"]

    @pytest.mark.asyncio
    async def test_invariant_violation_aborts_only_that_run(
        self,
        orchestrator: CheckOrchestrator,
        scripted_oracle: ScriptedOracle,
        recording_reporter: RecordingReporter,
    ) -> None:
        """An outcome for the wrong package aborts its run as neutral."""
        scripted_oracle.set("pkgA", Script(outcome=Passed(package_root="elsewhere")))
        with capture_femto_logs("nickel_customs.checks.observability") as capture:
            broken = await orchestrator.submit(make_event(), [make_package("pkgA")])
            healthy = await orchestrator.submit(
                make_event(head_sha="d" * 40),
                [make_package("pkgB", revision="d" * 40)],
            )
            await _settle(orchestrator)
            record = capture.wait_for_event(CheckEventType.RUN_ABORTED)

        assert broken.conclusion is Conclusion.NEUTRAL
        assert broken.abort_reason is not None
        assert healthy.conclusion is Conclusion.SUCCESS
        assert "error_category=invariant" in record.message
        completes = recording_reporter.calls_for(_KEY, "complete")
        assert [call.conclusion for call in completes] == [Conclusion.NEUTRAL]

    @pytest.mark.asyncio
    async def test_completion_listeners_see_every_run(
        self, orchestrator: CheckOrchestrator
    ) -> None:
        """Listeners are told about completed runs exactly once."""
        seen: list[tuple[str, ...]] = []
        orchestrator.add_completion_listener(
            lambda run: seen.append(tuple(run.delivery_ids))
        )
        await orchestrator.submit(make_event(delivery_id="d-1"), [])
        await orchestrator.submit(
            make_event(delivery_id="d-2", head_sha="e" * 40), []
        )
        await _settle(orchestrator)
        assert seen == [("d-1",), ("d-2",)]


@pytest.mark.asyncio
async def test_wait_for_unknown_key_returns_none(
    orchestrator: CheckOrchestrator,
) -> None:
    """Waiting on a key with no run returns immediately."""
    assert await orchestrator.wait(RunKey(REPOSITORY, "f" * 40)) is None
