"""Isolate callers from slow or failing oracles.

``BoundedOracle`` is the single place where oracle execution time is bounded.
Whatever the wrapped oracle does (raise, hang, crash its subprocess), the
caller receives a ``ValidationOutcome`` within ``timeout_s`` seconds.
"""

from __future__ import annotations

import asyncio
import typing as typ

from nickel_customs.logging import get_logger, log_exception, log_warning

from .models import TIMEOUT_REASON, Errored

if typ.TYPE_CHECKING:
    from nickel_customs.packages.models import Package

    from .models import ValidationOutcome
    from .protocol import ValidationOracle

logger = get_logger(__name__)


class BoundedOracle:
    """Wrap an oracle with a timeout and exception isolation.

    Parameters
    ----------
    oracle
        The oracle doing the real work.
    timeout_s
        Upper bound on a single ``validate`` call.

    """

    def __init__(self, oracle: ValidationOracle, *, timeout_s: float) -> None:
        """Wrap ``oracle``, bounding each call to ``timeout_s`` seconds."""
        if timeout_s <= 0:
            msg = f"timeout_s must be positive, got {timeout_s}"
            raise ValueError(msg)
        self._oracle = oracle
        self._timeout_s = timeout_s

    @property
    def timeout_s(self) -> float:
        """Return the per-package time bound."""
        return self._timeout_s

    async def validate(self, package: Package) -> ValidationOutcome:
        """Validate ``package``, converting timeouts and errors into outcomes."""
        try:
            async with asyncio.timeout(self._timeout_s):
                return await self._oracle.validate(package)
        except TimeoutError:
            log_warning(
                logger,
                "Oracle timed out after %.1fs for %s@%s package=%s",
                self._timeout_s,
                package.repository,
                package.revision,
                package.label,
            )
            return Errored(package_root=package.root, reason=TIMEOUT_REASON)
        except Exception as exc:  # noqa: BLE001 - isolate package failures
            log_exception(
                logger,
                f"Oracle failed for {package.repository}@{package.revision} "
                f"package={package.label}: {exc}",
                exc,
            )
            return Errored(
                package_root=package.root,
                reason=str(exc) or type(exc).__name__,
            )
