"""Fetch a single commit of a GitHub repository into a scratch directory."""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import functools
import tempfile
import typing as typ
from pathlib import Path

from .errors import OracleError

if typ.TYPE_CHECKING:
    import collections.abc as cabc


@dataclasses.dataclass(frozen=True, slots=True)
class ProcessResult:
    """Exit status and decoded output of a finished subprocess."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        """Return whether the process exited successfully."""
        return self.returncode == 0


async def run_process(*argv: str, cwd: Path | None = None) -> ProcessResult:
    """Run ``argv`` to completion and capture its output.

    The child is killed if the awaiting task is cancelled, so timeouts
    applied by callers never leave stray processes behind.

    Raises
    ------
    OracleError
        If the executable does not exist.

    """
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise OracleError.missing_executable(argv[0]) from exc

    try:
        stdout, stderr = await process.communicate()
    except asyncio.CancelledError:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()
        raise

    return ProcessResult(
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


class GitCheckout:
    """Materialise ``repository@revision`` with a shallow ``git fetch``.

    Only the requested commit is fetched, mirroring how the Nickel package
    manager retrieves Git dependencies.
    """

    def __init__(
        self,
        *,
        git_bin: str = "git",
        base_url: str = "https://github.com",
    ) -> None:
        """Configure the ``git`` executable and the host to fetch from."""
        self._git_bin = git_bin
        self._base_url = base_url.rstrip("/")

    def remote_url(self, repository: str) -> str:
        """Return the clone URL for ``repository``."""
        return f"{self._base_url}/{repository}.git"

    async def _git(self, *args: str, cwd: Path, repository: str, revision: str) -> None:
        result = await run_process(self._git_bin, *args, cwd=cwd)
        if not result.ok:
            raise OracleError.fetch_failed(repository, revision, result.stderr.strip())

    @contextlib.asynccontextmanager
    async def checkout(
        self, repository: str, revision: str
    ) -> cabc.AsyncIterator[Path]:
        """Yield a directory holding ``repository`` at ``revision``.

        The directory is removed when the context exits.
        """
        with tempfile.TemporaryDirectory(prefix="nickel-customs-") as scratch:
            workdir = Path(scratch)
            git = functools.partial(
                self._git, cwd=workdir, repository=repository, revision=revision
            )
            await git("init", "--quiet")
            remote = self.remote_url(repository)
            await git("fetch", "--quiet", "--depth", "1", remote, revision)
            await git("checkout", "--quiet", "FETCH_HEAD")
            yield workdir
