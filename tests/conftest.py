"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import datetime as dt

import pytest

from nickel_customs.checks import CheckOrchestrator, RunRegistry
from nickel_customs.events import EventIntake
from nickel_customs.oracle import BoundedOracle
from nickel_customs.oracle.mock import ScriptedOracle
from nickel_customs.packages import PackageDiscovery
from nickel_customs.reporting import RecordingReporter
from nickel_customs.service import CheckService, CheckServiceDependencies
from tests.helpers.builders import RECEIVED_AT
from tests.helpers.fake_github import FakeChangeSource


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, now: dt.datetime = RECEIVED_AT) -> None:
        """Start the clock at ``now``."""
        self.now = now

    def __call__(self) -> dt.datetime:
        """Return the current fake time."""
        return self.now

    def advance(self, **delta: float) -> None:
        """Move the clock forward by a ``timedelta`` built from ``delta``."""
        self.now += dt.timedelta(**delta)


@pytest.fixture
def clock() -> FakeClock:
    """Provide a controllable clock."""
    return FakeClock()


@pytest.fixture
def scripted_oracle() -> ScriptedOracle:
    """Provide an oracle that passes every package unless scripted."""
    return ScriptedOracle()


@pytest.fixture
def recording_reporter() -> RecordingReporter:
    """Provide a reporter that records calls instead of calling GitHub."""
    return RecordingReporter()


@pytest.fixture
def registry(clock: FakeClock) -> RunRegistry:
    """Provide a registry retaining completed runs for an hour."""
    return RunRegistry(retention=dt.timedelta(hours=1), clock=clock)


@pytest.fixture
def orchestrator(
    scripted_oracle: ScriptedOracle,
    recording_reporter: RecordingReporter,
    registry: RunRegistry,
) -> CheckOrchestrator:
    """Provide an orchestrator with a short oracle timeout."""
    return CheckOrchestrator(
        oracle=BoundedOracle(scripted_oracle, timeout_s=0.2),
        reporter=recording_reporter,
        registry=registry,
    )


@pytest.fixture
def change_source() -> FakeChangeSource:
    """Provide canned GitHub tree and change-set lookups."""
    return FakeChangeSource()


@pytest.fixture
def check_service(
    orchestrator: CheckOrchestrator, change_source: FakeChangeSource
) -> CheckService:
    """Provide a check service backed by fakes for GitHub and the oracle."""
    return CheckService(
        CheckServiceDependencies(
            intake=EventIntake(clock=lambda: RECEIVED_AT),
            discovery=PackageDiscovery(),
            orchestrator=orchestrator,
            changes=change_source,
        )
    )
