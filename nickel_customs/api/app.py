"""Application factory for the nickel-customs Falcon ASGI application.

Usage
-----
Create a health-only app (no check service)::

    app = create_app()

Create the full app receiving webhooks::

    from nickel_customs.api.app import AppDependencies, create_app

    app = create_app(AppDependencies(service=service, webhook_secret=secret))

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from nickel_customs.api.errors import (
    InvalidSignatureError,
    handle_github_unavailable,
    handle_invalid_signature,
    handle_malformed_event,
)
from nickel_customs.api.health.resources import HealthResource, ReadyResource
from nickel_customs.events.errors import MalformedEventError
from nickel_customs.github.errors import GitHubAPIError

if typ.TYPE_CHECKING:
    from nickel_customs.service import CheckService

__all__ = ["WEBHOOK_ROUTE", "AppDependencies", "create_app"]

WEBHOOK_ROUTE = "/webhooks/github"


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    Attributes
    ----------
    service
        Check service handling webhook deliveries. Without it only health
        endpoints are registered.
    webhook_secret
        Secret used to verify ``X-Hub-Signature-256``; ``None`` disables
        verification.

    """

    service: CheckService | None = None
    webhook_secret: str | None = None


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Parameters
    ----------
    dependencies
        Optional application dependencies. When ``None`` or without a
        service, only ``/health`` and ``/ready`` are available.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    deps = dependencies or AppDependencies()
    app = falcon.asgi.App()

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(deps.service))

    if deps.service is not None:
        from nickel_customs.api.webhooks.resources import WebhookResource

        app.add_route(
            WEBHOOK_ROUTE,
            WebhookResource(deps.service, secret=deps.webhook_secret),
        )

    app.add_error_handler(InvalidSignatureError, handle_invalid_signature)
    app.add_error_handler(MalformedEventError, handle_malformed_event)
    app.add_error_handler(GitHubAPIError, handle_github_unavailable)

    return app
