"""The interface every validation oracle implements."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from nickel_customs.packages.models import Package

    from .models import ValidationOutcome


@typ.runtime_checkable
class ValidationOracle(typ.Protocol):
    """Validate one package and describe the result.

    Implementations may raise; ``BoundedOracle`` turns exceptions and
    timeouts into ``Errored`` outcomes so callers never see them.
    """

    async def validate(self, package: Package) -> ValidationOutcome:
        """Return the outcome of validating ``package``."""
        ...
