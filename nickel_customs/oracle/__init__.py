"""Validation oracles for Nickel packages."""

from __future__ import annotations

from .adapter import BoundedOracle
from .checkout import GitCheckout
from .errors import OracleError
from .models import (
    TIMEOUT_REASON,
    Diagnostic,
    Errored,
    Failed,
    Passed,
    Severity,
    ValidationOutcome,
    merge_outcomes,
)
from .nickel import NickelOracle
from .permission import PublisherGate
from .protocol import ValidationOracle

__all__ = [
    "TIMEOUT_REASON",
    "BoundedOracle",
    "Diagnostic",
    "Errored",
    "Failed",
    "GitCheckout",
    "NickelOracle",
    "OracleError",
    "Passed",
    "PublisherGate",
    "Severity",
    "ValidationOracle",
    "ValidationOutcome",
    "merge_outcomes",
]
