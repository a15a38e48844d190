"""Scripted oracle for tests and local dry runs.

``ScriptedOracle`` answers from a table keyed by package root so the
orchestrator can be exercised without ``git`` or ``nickel``. Entries may be an
outcome, an exception to raise, or a delay to apply before answering.

Examples
--------
>>> from nickel_customs.oracle.mock import ScriptedOracle, Script
>>> oracle = ScriptedOracle({"pkgB": Script(delay_s=10.0)})

"""

from __future__ import annotations

import asyncio
import dataclasses
import typing as typ

from .models import Passed

if typ.TYPE_CHECKING:
    from nickel_customs.packages.models import Package

    from .models import ValidationOutcome


@dataclasses.dataclass(frozen=True, slots=True)
class Script:
    """How the scripted oracle answers for one package root.

    Attributes
    ----------
    outcome
        Outcome to return; ``Passed`` for the package when ``None``.
    error
        Exception raised instead of returning an outcome.
    delay_s
        Seconds to sleep before answering.

    """

    outcome: ValidationOutcome | None = None
    error: Exception | None = None
    delay_s: float = 0.0


class ScriptedOracle:
    """Answer validations from a script, recording every call."""

    def __init__(self, script: dict[str, Script] | None = None) -> None:
        """Create the oracle; unscripted packages pass immediately."""
        self._script = dict(script or {})
        self.calls: list[Package] = []

    def set(self, root: str, script: Script) -> None:
        """Replace the script for ``root``."""
        self._script[root] = script

    @property
    def validated_roots(self) -> list[str]:
        """Return the package roots validated so far, in call order."""
        return [package.root for package in self.calls]

    async def validate(self, package: Package) -> ValidationOutcome:
        """Answer according to the script for ``package.root``."""
        self.calls.append(package)
        script = self._script.get(package.root, Script())
        if script.delay_s:
            await asyncio.sleep(script.delay_s)
        if script.error is not None:
            raise script.error
        if script.outcome is not None:
            return script.outcome
        return Passed(package_root=package.root)
