"""Runtime configuration for the check service.

``CustomsConfig`` gathers the knobs shared by the oracle, the orchestrator and
the reporter. Values come from ``NICKEL_CUSTOMS_*`` environment variables.

Usage
-----
Create a configuration with defaults:

>>> config = CustomsConfig()
>>> config.oracle_timeout_s
300.0

Or load from the environment:

>>> import os
>>> os.environ["NICKEL_CUSTOMS_ORACLE_TIMEOUT_S"] = "60"
>>> CustomsConfig.from_env().oracle_timeout_s
60.0

"""

from __future__ import annotations

import dataclasses as dc
import os

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


class CustomsConfigError(ValueError):
    """Raised when an environment variable holds an unusable value."""

    @classmethod
    def not_a_number(cls, env_var: str, raw: str) -> CustomsConfigError:
        """Return an error for values that do not parse as numbers."""
        return cls(f"{env_var} must be a number, got: {raw!r}")

    @classmethod
    def not_a_flag(cls, env_var: str, raw: str) -> CustomsConfigError:
        """Return an error for values that are not recognisable booleans."""
        return cls(f"{env_var} must be true or false, got: {raw!r}")

    @classmethod
    def not_positive(cls, env_var: str, value: float) -> CustomsConfigError:
        """Return an error for zero or negative values."""
        return cls(f"{env_var} must be positive, got: {value}")


@dc.dataclass(frozen=True, slots=True)
class CustomsConfig:
    """Configuration for validation, orchestration and reporting.

    Attributes
    ----------
    check_name
        Name of the GitHub check run created for every commit.
    manifest_name
        File name marking the root of a Nickel package.
    nickel_bin
        Path or name of the ``nickel`` executable.
    git_bin
        Path or name of the ``git`` executable used to fetch packages.
    oracle_timeout_s
        Upper bound on validating a single package, fetch included.
    report_max_attempts
        Attempts per GitHub call before a report is given up.
    report_backoff_s
        Delay before the first retry; doubled on each further retry.
    report_backoff_max_s
        Ceiling applied to the retry delay.
    retention_s
        How long completed runs stay in the registry.
    delivery_ledger_size
        Number of processed delivery ids remembered by intake.
    check_publishers
        Whether pull request authors must own or collaborate on the
        repository to publish its packages.

    """

    check_name: str = "nickel-customs"
    manifest_name: str = "Nickel-pkg.ncl"
    nickel_bin: str = "nickel"
    git_bin: str = "git"
    oracle_timeout_s: float = 300.0
    report_max_attempts: int = 5
    report_backoff_s: float = 1.0
    report_backoff_max_s: float = 30.0
    retention_s: float = 3600.0
    delivery_ledger_size: int = 4096
    check_publishers: bool = True

    @staticmethod
    def _positive_float(env_var: str, default: float) -> float:
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = float(raw)
        except ValueError as exc:
            raise CustomsConfigError.not_a_number(env_var, raw) from exc
        if value <= 0:
            raise CustomsConfigError.not_positive(env_var, value)
        return value

    @staticmethod
    def _positive_int(env_var: str, default: int) -> int:
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            raise CustomsConfigError.not_a_number(env_var, raw) from exc
        if value < 1:
            raise CustomsConfigError.not_positive(env_var, value)
        return value

    @staticmethod
    def _flag(env_var: str, *, default: bool) -> bool:
        raw = os.environ.get(env_var, "").strip().lower()
        if not raw:
            return default
        if raw in _TRUE_VALUES:
            return True
        if raw in _FALSE_VALUES:
            return False
        raise CustomsConfigError.not_a_flag(env_var, raw)

    @staticmethod
    def _text(env_var: str, default: str) -> str:
        raw = os.environ.get(env_var, "").strip()
        return raw or default

    @classmethod
    def from_env(cls) -> CustomsConfig:
        """Create configuration from ``NICKEL_CUSTOMS_*`` variables.

        Reads ``CHECK_NAME``, ``MANIFEST_NAME``, ``NICKEL_BIN``, ``GIT_BIN``,
        ``ORACLE_TIMEOUT_S``, ``REPORT_MAX_ATTEMPTS``, ``REPORT_BACKOFF_S``,
        ``REPORT_BACKOFF_MAX_S``, ``RETENTION_S``, ``DELIVERY_LEDGER_SIZE`` and
        ``CHECK_PUBLISHERS``, each prefixed with ``NICKEL_CUSTOMS_``.
        Unset or blank variables keep their defaults.

        Raises
        ------
        CustomsConfigError
            If a numeric variable is not a positive number, or a flag is
            neither true nor false.

        """
        defaults = cls()
        return cls(
            check_name=cls._text("NICKEL_CUSTOMS_CHECK_NAME", defaults.check_name),
            manifest_name=cls._text(
                "NICKEL_CUSTOMS_MANIFEST_NAME", defaults.manifest_name
            ),
            nickel_bin=cls._text("NICKEL_CUSTOMS_NICKEL_BIN", defaults.nickel_bin),
            git_bin=cls._text("NICKEL_CUSTOMS_GIT_BIN", defaults.git_bin),
            oracle_timeout_s=cls._positive_float(
                "NICKEL_CUSTOMS_ORACLE_TIMEOUT_S", defaults.oracle_timeout_s
            ),
            report_max_attempts=cls._positive_int(
                "NICKEL_CUSTOMS_REPORT_MAX_ATTEMPTS", defaults.report_max_attempts
            ),
            report_backoff_s=cls._positive_float(
                "NICKEL_CUSTOMS_REPORT_BACKOFF_S", defaults.report_backoff_s
            ),
            report_backoff_max_s=cls._positive_float(
                "NICKEL_CUSTOMS_REPORT_BACKOFF_MAX_S", defaults.report_backoff_max_s
            ),
            retention_s=cls._positive_float(
                "NICKEL_CUSTOMS_RETENTION_S", defaults.retention_s
            ),
            delivery_ledger_size=cls._positive_int(
                "NICKEL_CUSTOMS_DELIVERY_LEDGER_SIZE", defaults.delivery_ledger_size
            ),
            check_publishers=cls._flag(
                "NICKEL_CUSTOMS_CHECK_PUBLISHERS", default=defaults.check_publishers
            ),
        )
