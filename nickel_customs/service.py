"""Wire intake, discovery and orchestration into one delivery handler.

``CheckService.handle`` is what the webhook resource calls for every delivery:

1. intake validates the delivery and builds an ``Event``;
2. the manifests present at the head commit are listed from the Git tree;
3. pull request and re-run events get their changed paths from GitHub;
4. discovery maps the changes to packages;
5. the orchestrator opens or grows the run for the commit.

Delivery ids are marked processed once the run they fed completes, so a
redelivery of an in-flight event coalesces instead of being rejected.
"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import typing as typ

from nickel_customs.checks import CheckEventLogger, CheckOrchestrator, RunRegistry
from nickel_customs.events import DeliveryLedger, EventIntake, EventKind
from nickel_customs.logging import get_logger, log_info
from nickel_customs.oracle import (
    BoundedOracle,
    GitCheckout,
    NickelOracle,
    PublisherGate,
)
from nickel_customs.packages import PackageDiscovery
from nickel_customs.reporting import GitHubCheckReporter, RetryPolicy

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from nickel_customs.checks import CheckRun
    from nickel_customs.config import CustomsConfig
    from nickel_customs.events import Event, RawDelivery
    from nickel_customs.github import ChangedFile, ChangeSource, GitHubChecksClient
    from nickel_customs.oracle import ValidationOracle

__all__ = ["CheckService", "CheckServiceDependencies", "build_check_service"]

logger = get_logger(__name__)


@dc.dataclass(frozen=True, slots=True)
class CheckServiceDependencies:
    """Collaborators of ``CheckService``.

    Attributes
    ----------
    intake
        Validates deliveries and remembers processed ids.
    discovery
        Maps changed paths to packages.
    orchestrator
        Owns check runs.
    changes
        Git tree and change-set lookups; when ``None`` events are used as
        delivered, with no known manifests beyond the changed ones.

    """

    intake: EventIntake
    discovery: PackageDiscovery
    orchestrator: CheckOrchestrator
    changes: ChangeSource | None = None


def _changed_paths(
    files: cabc.Iterable[ChangedFile], discovery: PackageDiscovery
) -> tuple[str, ...]:
    """Flatten GitHub file entries into changed paths, dropping removed manifests."""
    paths: list[str] = []
    for entry in files:
        if not (entry.removed and discovery.is_manifest(entry.filename)):
            paths.append(entry.filename)
        previous = entry.previous_filename
        if previous and not discovery.is_manifest(previous):
            paths.append(previous)
    return tuple(dict.fromkeys(paths))


class CheckService:
    """Handle webhook deliveries end to end."""

    def __init__(self, dependencies: CheckServiceDependencies) -> None:
        """Configure the service and subscribe to run completion."""
        self._intake = dependencies.intake
        self._discovery = dependencies.discovery
        self._orchestrator = dependencies.orchestrator
        self._changes = dependencies.changes
        self._orchestrator.add_completion_listener(self._run_completed)

    @property
    def orchestrator(self) -> CheckOrchestrator:
        """Return the orchestrator runs are submitted to."""
        return self._orchestrator

    async def handle(self, raw: RawDelivery) -> CheckRun:
        """Turn ``raw`` into packages and submit them for its commit.

        Returns
        -------
        CheckRun
            The run the delivery joined or opened.

        Raises
        ------
        MalformedEventError
            If the delivery is not a usable event.
        DuplicateDeliveryError
            If the delivery was already fully processed.
        UnsupportedEventError
            If the event does not trigger a check.
        GitHubAPIError
            If the tree or change set could not be fetched.

        """
        event = self._intake.accept(raw)
        event = await self._resolve(event)
        packages = self._discovery.discover(event)
        log_info(
            logger,
            "Delivery %s (%s) for %s@%s touches %d package(s)",
            event.delivery_id,
            event.kind,
            event.repository,
            event.head_sha,
            len(packages),
        )
        return await self._orchestrator.submit(event, packages)

    async def _resolve(self, event: Event) -> Event:
        if self._changes is None:
            return event
        tree = await self._changes.list_tree_paths(event.repository, event.head_sha)
        event = event.with_manifests(
            path for path in tree if self._discovery.is_manifest(path)
        )

        match event.kind:
            case EventKind.PULL_REQUEST if event.pull_number is not None:
                files = await self._changes.list_pull_request_files(
                    event.repository, event.pull_number
                )
                return event.with_changes(_changed_paths(files, self._discovery))
            case EventKind.REREQUEST if event.base_sha:
                files = await self._changes.compare(
                    event.repository, event.base_sha, event.head_sha
                )
                return event.with_changes(_changed_paths(files, self._discovery))
            case EventKind.REREQUEST:
                return event.with_changes(sorted(event.known_manifests))
            case _:
                return event

    def _run_completed(self, run: CheckRun) -> None:
        for delivery_id in run.delivery_ids:
            self._intake.mark_processed(delivery_id)


def build_check_service(
    config: CustomsConfig,
    client: GitHubChecksClient,
    *,
    oracle: ValidationOracle | None = None,
) -> CheckService:
    """Assemble a ``CheckService`` talking to GitHub through ``client``.

    Parameters
    ----------
    config
        Service configuration.
    client
        GitHub client used for reporting and change lookups.
    oracle
        Oracle to bound with the configured timeout; a ``NickelOracle`` when
        omitted. It is wrapped in a ``PublisherGate`` when publisher checks
        are enabled.

    """
    inner = oracle or NickelOracle(
        GitCheckout(git_bin=config.git_bin), nickel_bin=config.nickel_bin
    )
    if config.check_publishers:
        inner = PublisherGate(inner, client)
    reporter = GitHubCheckReporter(
        client,
        check_name=config.check_name,
        retry=RetryPolicy(
            max_attempts=config.report_max_attempts,
            backoff_s=config.report_backoff_s,
            backoff_max_s=config.report_backoff_max_s,
        ),
    )
    orchestrator = CheckOrchestrator(
        oracle=BoundedOracle(inner, timeout_s=config.oracle_timeout_s),
        reporter=reporter,
        registry=RunRegistry(retention=dt.timedelta(seconds=config.retention_s)),
        event_logger=CheckEventLogger(),
    )
    dependencies = CheckServiceDependencies(
        intake=EventIntake(
            ledger=DeliveryLedger(config.delivery_ledger_size),
            manifest_name=config.manifest_name,
        ),
        discovery=PackageDiscovery(config.manifest_name),
        orchestrator=orchestrator,
        changes=client,
    )
    return CheckService(dependencies)
