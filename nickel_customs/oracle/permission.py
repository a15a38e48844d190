"""Decide whether a pull request author may publish a package.

Packages proposed through a pull request carry the author's login as their
``submitter``. The author may publish when they are the repository owner or
a collaborator on the repository; anyone else gets a failing diagnostic on
the package manifest. The Nickel checks still run either way, so the author
sees every problem in one report.
"""

from __future__ import annotations

import typing as typ

from nickel_customs.logging import get_logger, log_info

from .models import Diagnostic, Failed, merge_outcomes

if typ.TYPE_CHECKING:
    from nickel_customs.github.client import PublisherDirectory
    from nickel_customs.packages.models import Package

    from .models import ValidationOutcome
    from .protocol import ValidationOracle

logger = get_logger(__name__)


class PublisherGate:
    """Wrap an oracle with a check on who proposed the package.

    Parameters
    ----------
    oracle
        Oracle running the package checks proper.
    directory
        Source of repository collaborator information.

    """

    def __init__(self, oracle: ValidationOracle, directory: PublisherDirectory) -> None:
        """Wrap ``oracle`` and consult ``directory`` for submitters."""
        self._oracle = oracle
        self._directory = directory

    async def is_allowed(self, package: Package) -> bool:
        """Return whether ``package.submitter`` may publish ``package``.

        Raises
        ------
        GitHubAPIError
            If GitHub could not answer the collaborator query.

        """
        owner = package.repository.partition("/")[0]
        if package.submitter.casefold() == owner.casefold():
            return True
        return await self._directory.is_collaborator(
            package.repository, package.submitter
        )

    async def validate(self, package: Package) -> ValidationOutcome:
        """Validate ``package`` and fail it when its submitter is not allowed."""
        outcome = await self._oracle.validate(package)
        if not package.submitter or await self.is_allowed(package):
            return outcome

        log_info(
            logger,
            "Submitter %s may not publish %s from %s",
            package.submitter,
            package.label,
            package.repository,
        )
        message = (
            f"@{package.submitter} is not allowed to publish packages from "
            f"{package.repository}: only its owner and collaborators are"
        )
        denied = Failed(
            package_root=package.root,
            diagnostics=(
                Diagnostic(path=package.manifest_path, line=1, message=message),
            ),
        )
        return merge_outcomes(denied, outcome)
