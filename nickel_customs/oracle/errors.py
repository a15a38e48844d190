"""Errors raised by validation oracles."""

from __future__ import annotations


class OracleError(RuntimeError):
    """Raised when a package could not be validated at all."""

    @classmethod
    def fetch_failed(cls, repository: str, revision: str, detail: str) -> OracleError:
        """Return an error for a failed repository fetch."""
        return cls(f"failed to fetch {repository}@{revision}: {detail}")

    @classmethod
    def missing_executable(cls, name: str) -> OracleError:
        """Return an error when a required executable is not installed."""
        return cls(f"executable not found: {name}")

    @classmethod
    def missing_manifest(cls, manifest_path: str) -> OracleError:
        """Return an error when the manifest is absent from the checkout."""
        return cls(f"manifest not found in checkout: {manifest_path}")
