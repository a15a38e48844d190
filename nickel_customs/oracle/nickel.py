"""Validate packages with the Nickel command-line tool.

For each package the oracle fetches the commit under test, typechecks the
manifest and every changed ``.ncl`` source, then evaluates the manifest's
``version`` field and checks it is a semantic version. Path dependencies
listed in the manifest must point at a directory holding a manifest of its
own inside the repository. Nickel's text error reports are parsed into
diagnostics.
"""

from __future__ import annotations

import re
import typing as typ
from pathlib import Path

import msgspec

from .checkout import GitCheckout, ProcessResult, run_process
from .errors import OracleError
from .models import Diagnostic, Failed, Passed, Severity

if typ.TYPE_CHECKING:
    from nickel_customs.packages.models import Package

    from .models import ValidationOutcome

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")
_HEADER = re.compile(
    r"^(?P<level>error|warning|note|help)(?:\[[^\]]*\])?:\s*(?P<message>.*)$"
)
_LOCATION = re.compile(r"┌─\s*(?P<path>.+?):(?P<line>\d+):(?P<column>\d+)\s*$")
_SEMVER = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)

DEPENDENCY_QUERY: typ.Final = ".nickel-customs-dependencies.ncl"
_DEPENDENCY_PROGRAM = """\
let manifest = import %s in
std.record.get_or "dependencies" {} manifest
|> std.record.map
  (fun _name dependency =>
    dependency
    |> match {
      'Path path => { kind = "path", path = path },
      _ => { kind = "other", path = "" },
    }
  )
"""


class DependencySpec(msgspec.Struct, kw_only=True, frozen=True):
    """How a manifest dependency is sourced, as reported by the query."""

    kind: str
    path: str = ""


_LEVELS: dict[str, Severity] = {
    "error": Severity.ERROR,
    "warning": Severity.WARNING,
    "note": Severity.NOTICE,
    "help": Severity.NOTICE,
}


def _relative_path(reported: str, workdir: Path | None, fallback: str) -> str:
    """Map a path printed by Nickel back to a repository-relative path."""
    candidate = Path(reported)
    if workdir is not None and candidate.is_absolute():
        try:
            return candidate.relative_to(workdir).as_posix()
        except ValueError:
            return fallback
    if candidate.is_absolute() or reported.startswith("<"):
        return fallback
    return candidate.as_posix()


def parse_report(
    output: str,
    *,
    default_path: str,
    workdir: Path | None = None,
) -> list[Diagnostic]:
    """Parse Nickel's text diagnostics.

    Each ``error:``/``warning:`` header starts a diagnostic; the first
    ``┌─ path:line:col`` marker after it locates the diagnostic. Headers with
    no location are attributed to ``default_path`` line 1. Output that
    contains no header at all but is non-empty becomes a single error, so a
    failing command is never reported as clean.
    """
    diagnostics: list[Diagnostic] = []
    pending: tuple[Severity, str] | None = None

    def flush(path: str, line: int) -> None:
        nonlocal pending
        if pending is not None:
            severity, message = pending
            diagnostics.append(
                Diagnostic(path=path, line=line, message=message, severity=severity)
            )
            pending = None

    for raw_line in output.splitlines():
        text = _ANSI_ESCAPE.sub("", raw_line).rstrip()
        header = _HEADER.match(text)
        if header is not None:
            flush(default_path, 1)
            pending = (_LEVELS[header["level"]], header["message"].strip())
            continue
        location = _LOCATION.search(text)
        if location is not None and pending is not None:
            flush(
                _relative_path(location["path"], workdir, default_path),
                int(location["line"]),
            )
    flush(default_path, 1)

    stripped = _ANSI_ESCAPE.sub("", output).strip()
    if not diagnostics and stripped:
        diagnostics.append(
            Diagnostic(path=default_path, line=1, message=stripped.splitlines()[0])
        )
    return diagnostics


def _failure_diagnostics(
    result: ProcessResult, command: str, path: str, workdir: Path
) -> list[Diagnostic]:
    diagnostics = parse_report(result.stderr, default_path=path, workdir=workdir)
    if diagnostics:
        return diagnostics
    message = f"nickel {command} exited with status {result.returncode}"
    return [Diagnostic(path=path, line=1, message=message)]


def _resolves(target: Path, workdir: Path, manifest_name: str) -> bool:
    """Return whether ``target`` is a package directory inside ``workdir``."""
    resolved = target.resolve()
    if not resolved.is_relative_to(workdir.resolve()):
        return False
    return (resolved / manifest_name).is_file()


def is_semver(version: str) -> bool:
    """Return whether ``version`` is a valid semantic version string."""
    return _SEMVER.match(version) is not None


class NickelOracle:
    """Run ``nickel`` against a fresh checkout of each package.

    Parameters
    ----------
    checkout
        Provider of repository checkouts.
    nickel_bin
        Path or name of the ``nickel`` executable.

    """

    def __init__(
        self,
        checkout: GitCheckout | None = None,
        *,
        nickel_bin: str = "nickel",
    ) -> None:
        """Configure the checkout provider and the Nickel executable."""
        self._checkout = checkout or GitCheckout()
        self._nickel_bin = nickel_bin

    async def _nickel(self, *args: str, cwd: Path) -> ProcessResult:
        return await run_process(self._nickel_bin, *args, cwd=cwd)

    async def validate(self, package: Package) -> ValidationOutcome:
        """Fetch ``package`` and run the Nickel checks against it.

        Raises
        ------
        OracleError
            If the repository cannot be fetched, the manifest is missing or
            ``nickel`` is not installed.

        """
        async with self._checkout.checkout(
            package.repository, package.revision
        ) as workdir:
            if not (workdir / package.manifest_path).is_file():
                raise OracleError.missing_manifest(package.manifest_path)

            diagnostics: list[Diagnostic] = []
            manifest_diagnostics = await self._typecheck(
                package.manifest_path, workdir
            )
            diagnostics.extend(manifest_diagnostics)
            if not manifest_diagnostics:
                diagnostics.extend(await self._check_version(package, workdir))
                diagnostics.extend(await self._check_dependencies(package, workdir))
            for source in package.nickel_sources():
                if (workdir / source).is_file():
                    diagnostics.extend(await self._typecheck(source, workdir))

        if diagnostics:
            ordered = tuple(sorted(diagnostics, key=Diagnostic.sort_key))
            return Failed(package_root=package.root, diagnostics=ordered)
        return Passed(package_root=package.root)

    async def _typecheck(self, path: str, workdir: Path) -> list[Diagnostic]:
        result = await self._nickel("typecheck", path, cwd=workdir)
        if result.ok:
            return []
        return _failure_diagnostics(result, "typecheck", path, workdir)

    async def _check_version(
        self, package: Package, workdir: Path
    ) -> list[Diagnostic]:
        result = await self._nickel(
            "export",
            "--format",
            "json",
            "--field",
            "version",
            package.manifest_path,
            cwd=workdir,
        )
        if not result.ok:
            return _failure_diagnostics(
                result, "export", package.manifest_path, workdir
            )
        try:
            version = msgspec.json.decode(result.stdout.encode("utf-8"), type=str)
        except msgspec.DecodeError:
            version = result.stdout.strip()
        if is_semver(version):
            return []
        return [
            Diagnostic(
                path=package.manifest_path,
                line=1,
                message=f"package version {version!r} is not a semantic version",
            )
        ]

    async def _check_dependencies(
        self, package: Package, workdir: Path
    ) -> list[Diagnostic]:
        query = workdir / DEPENDENCY_QUERY
        manifest_literal = msgspec.json.encode(package.manifest_path).decode("utf-8")
        query.write_text(_DEPENDENCY_PROGRAM % manifest_literal, encoding="utf-8")
        try:
            result = await self._nickel(
                "export", "--format", "json", DEPENDENCY_QUERY, cwd=workdir
            )
        finally:
            query.unlink(missing_ok=True)
        if not result.ok:
            return _failure_diagnostics(
                result, "export", package.manifest_path, workdir
            )
        try:
            dependencies = msgspec.json.decode(
                result.stdout.encode("utf-8"), type=dict[str, DependencySpec]
            )
        except msgspec.DecodeError:
            message = "dependencies could not be read from the manifest"
            return [Diagnostic(path=package.manifest_path, line=1, message=message)]

        manifest_name = Path(package.manifest_path).name
        package_dir = workdir / package.root
        return [
            Diagnostic(
                path=package.manifest_path,
                line=1,
                message=(
                    f"dependency {name!r} at {dependency.path!r} has no "
                    f"{manifest_name} inside the repository"
                ),
            )
            for name, dependency in sorted(dependencies.items())
            if dependency.kind == "path"
            and not _resolves(package_dir / dependency.path, workdir, manifest_name)
        ]
