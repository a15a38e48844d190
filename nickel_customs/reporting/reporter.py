"""Publish check runs to GitHub with bounded retries.

``GitHubCheckReporter.create`` makes a run visible as ``in_progress`` and
remembers the GitHub id on the run. ``complete`` patches that check run with
the conclusion, summary and first batch of annotations, then sends the
remaining batches as follow-up updates. When creation never succeeded,
``complete`` creates the check run directly in its completed state.

Transient GitHub failures are retried with exponential backoff. Any other
GitHub error, an unexpected response body, or running out of attempts raises
``ReportError``.
"""

from __future__ import annotations

import asyncio
import dataclasses
import typing as typ

from nickel_customs.checks.models import RunStatus
from nickel_customs.github.errors import (
    GitHubAPIError,
    GitHubConfigError,
    GitHubResponseShapeError,
)
from nickel_customs.github.models import CheckRunRequest
from nickel_customs.logging import get_logger, log_debug, log_warning

from .errors import ReportError
from .markdown import batched, build_annotations, render_output

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from nickel_customs.checks.models import CheckRun
    from nickel_customs.github.client import ChecksAPI

    type Sleep = cabc.Callable[[float], cabc.Awaitable[None]]

logger = get_logger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Exponential backoff settings for GitHub calls.

    Attributes
    ----------
    max_attempts
        Total calls made before giving up, including the first.
    backoff_s
        Delay before the second attempt; doubled for each further attempt.
    backoff_max_s
        Upper bound on any single delay, including ``Retry-After`` hints.

    """

    max_attempts: int = 5
    backoff_s: float = 1.0
    backoff_max_s: float = 30.0

    def __post_init__(self) -> None:
        """Reject policies that would never call or never wait sensibly."""
        if self.max_attempts < 1:
            msg = f"max_attempts must be at least 1, got {self.max_attempts}"
            raise ValueError(msg)
        if self.backoff_s < 0 or self.backoff_max_s < 0:
            msg = "backoff delays must not be negative"
            raise ValueError(msg)

    def delay(self, attempt: int, retry_after: float | None = None) -> float:
        """Return the wait after failed attempt number ``attempt`` (1-based)."""
        if retry_after is not None:
            return min(retry_after, self.backoff_max_s)
        return min(self.backoff_s * 2 ** (attempt - 1), self.backoff_max_s)


def _timestamp(value: dt.datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


class GitHubCheckReporter:
    """Report check runs through the GitHub Checks API.

    Parameters
    ----------
    api
        Client implementing check run create and update.
    check_name
        Name shown for the check on commits and pull requests.
    retry
        Backoff policy for transient failures.
    sleep
        Coroutine used to wait between attempts; tests inject a fake.

    """

    def __init__(
        self,
        api: ChecksAPI,
        *,
        check_name: str = "nickel-customs",
        retry: RetryPolicy | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        """Configure the reporter."""
        self._api = api
        self._check_name = check_name
        self._retry = retry or RetryPolicy()
        self._sleep = sleep or asyncio.sleep

    async def _call[T](
        self,
        phase: str,
        run: CheckRun,
        operation: cabc.Callable[[], cabc.Awaitable[T]],
    ) -> T:
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except (GitHubResponseShapeError, GitHubConfigError) as exc:
                raise ReportError.gave_up(phase, run.key, attempt) from exc
            except GitHubAPIError as exc:
                if not exc.is_transient or attempt >= self._retry.max_attempts:
                    raise ReportError.gave_up(phase, run.key, attempt) from exc
                delay = self._retry.delay(attempt, exc.retry_after)
                log_warning(
                    logger,
                    "GitHub %s for %s failed (attempt %d/%d), retrying in %.1fs: %s",
                    phase,
                    run.key,
                    attempt,
                    self._retry.max_attempts,
                    delay,
                    exc,
                )
                await self._sleep(delay)

    def _create_request(self, run: CheckRun) -> CheckRunRequest:
        return CheckRunRequest(
            name=self._check_name,
            head_sha=run.key.head_sha,
            status=RunStatus.IN_PROGRESS.value,
            external_id=str(run.key),
            started_at=_timestamp(run.started_at),
            output=render_output(run),
        )

    async def create(self, run: CheckRun) -> None:
        """Create the GitHub check run for ``run`` as ``in_progress``.

        Raises
        ------
        ReportError
            When GitHub rejected the call or retries ran out.

        """
        request = self._create_request(run)
        check_run_id = await self._call(
            "create",
            run,
            lambda: self._api.create_check_run(run.key.repository, request),
        )
        run.external_id = check_run_id
        log_debug(logger, "Created check run %d for %s", check_run_id, run.key)

    async def complete(self, run: CheckRun) -> None:
        """Publish the conclusion, summary and annotations of ``run``.

        Raises
        ------
        ReportError
            When GitHub rejected a call or retries ran out.

        """
        batches = batched(build_annotations(run))
        repository = run.key.repository
        first = CheckRunRequest(
            status=RunStatus.COMPLETED.value,
            conclusion=str(run.conclusion) if run.conclusion else None,
            completed_at=_timestamp(run.completed_at),
            output=render_output(run, batches[0]),
        )

        if run.external_id is None:
            created = CheckRunRequest(
                name=self._check_name,
                head_sha=run.key.head_sha,
                external_id=str(run.key),
                started_at=_timestamp(run.started_at),
                status=first.status,
                conclusion=first.conclusion,
                completed_at=first.completed_at,
                output=first.output,
            )
            run.external_id = await self._call(
                "complete",
                run,
                lambda: self._api.create_check_run(repository, created),
            )
        else:
            check_run_id = run.external_id
            await self._call(
                "complete",
                run,
                lambda: self._api.update_check_run(repository, check_run_id, first),
            )

        check_run_id = run.external_id
        for batch in batches[1:]:
            follow_up = CheckRunRequest(output=render_output(run, batch))
            await self._call(
                "complete",
                run,
                lambda request=follow_up: self._api.update_check_run(
                    repository, check_run_id, request
                ),
            )
        log_debug(
            logger,
            "Completed check run %d for %s: conclusion=%s annotation_batches=%d",
            check_run_id,
            run.key,
            run.conclusion,
            len(batches),
        )
