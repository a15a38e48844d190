"""nickel-customs runtime entrypoint.

This module provides the ASGI application factory served by Granian. It
delegates to :func:`nickel_customs.api.app.create_app` for application
construction while keeping the ``nickel_customs.runtime:create_app``
entrypoint stable.

When ``NICKEL_CUSTOMS_GITHUB_TOKEN`` is set, the runtime builds the full
check service so the app receives webhooks. Otherwise it starts in
health-only mode.

Configuration is driven by environment variables:

- ``NICKEL_CUSTOMS_HOST``: Bind address (default ``127.0.0.1``; the relay
  runs on the same host)
- ``NICKEL_CUSTOMS_PORT``: Listen port (default ``8080``)
- ``NICKEL_CUSTOMS_LOG_LEVEL``: Log level (default ``INFO``)
- ``NICKEL_CUSTOMS_GITHUB_TOKEN``: Token for the GitHub API (optional;
  enables the webhook endpoint when set)
- ``NICKEL_CUSTOMS_WEBHOOK_SECRET``: Secret for signature checks (optional)

plus the ``CustomsConfig`` and ``GitHubChecksConfig`` variables.

Run the service directly with ``python -m nickel_customs.runtime``.
"""

from __future__ import annotations

import os
import typing as typ

from nickel_customs.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["create_app", "main"]

logger = get_logger(__name__)

# TCP port number range limits
_MIN_PORT = 1
_MAX_PORT = 65535


def _parse_port(port_str: str) -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If port_str is not a valid integer in range 1-65535.

    """
    try:
        port = int(port_str)
        if not (_MIN_PORT <= port <= _MAX_PORT):
            msg = f"port {port} outside valid range {_MIN_PORT}-{_MAX_PORT}"
            raise ValueError(msg)  # noqa: TRY301 - unify conversion and range errors
    except ValueError as exc:
        log_error(
            logger,
            "Invalid NICKEL_CUSTOMS_PORT value: %r (must be %d-%d): %s",
            port_str,
            _MIN_PORT,
            _MAX_PORT,
            exc,
        )
        raise SystemExit(1) from exc
    return port


def create_app() -> falcon.asgi.App:
    """Create the Falcon ASGI application from the environment.

    Returns
    -------
    falcon.asgi.App
        The webhook receiver when a GitHub token is configured, otherwise a
        health-only app.

    """
    from nickel_customs.api.app import AppDependencies
    from nickel_customs.api.app import create_app as _create_api_app

    if not os.environ.get("NICKEL_CUSTOMS_GITHUB_TOKEN", "").strip():
        log_warning(
            logger,
            "NICKEL_CUSTOMS_GITHUB_TOKEN is not set; serving health endpoints only",
        )
        return _create_api_app()

    from nickel_customs.config import CustomsConfig
    from nickel_customs.github import GitHubChecksClient, GitHubChecksConfig
    from nickel_customs.service import build_check_service

    config = CustomsConfig.from_env()
    client = GitHubChecksClient(GitHubChecksConfig.from_env())
    service = build_check_service(config, client)
    secret = os.environ.get("NICKEL_CUSTOMS_WEBHOOK_SECRET", "").strip() or None
    if secret is None:
        log_warning(
            logger,
            "NICKEL_CUSTOMS_WEBHOOK_SECRET is not set; signatures are not checked",
        )
    return _create_api_app(AppDependencies(service=service, webhook_secret=secret))


def main() -> None:
    """Start the nickel-customs server using Granian.

    Reads ``NICKEL_CUSTOMS_HOST``, ``NICKEL_CUSTOMS_PORT`` and
    ``NICKEL_CUSTOMS_LOG_LEVEL`` from the environment and starts the ASGI
    server.
    """
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("NICKEL_CUSTOMS_HOST", "127.0.0.1")
    port = _parse_port(os.environ.get("NICKEL_CUSTOMS_PORT", "8080"))
    log_level_str = os.environ.get("NICKEL_CUSTOMS_LOG_LEVEL", "INFO")

    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid NICKEL_CUSTOMS_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    log_info(
        logger,
        "Starting nickel-customs on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    server = Granian(
        "nickel_customs.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
