"""Health check resources for liveness and readiness checks.

``/health`` only says the process is alive. ``/ready`` additionally says
whether a check service is wired in, so a relay is only pointed at an
instance that can act on deliveries.

Usage
-----
Register health endpoints on the Falcon app::

    from nickel_customs.api.health.resources import HealthResource, ReadyResource

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(service))

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from nickel_customs.service import CheckService

__all__ = ["HealthResource", "ReadyResource"]


class HealthResource:
    """Liveness resource returning ``{"status": "ok"}``."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health requests."""
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness resource.

    Responds with HTTP 200 and the number of tracked runs when a check
    service is configured, and HTTP 503 otherwise.

    """

    def __init__(self, service: CheckService | None = None) -> None:
        """Check ``service``; ``None`` means the app cannot handle webhooks."""
        self._service = service

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready requests.

        Parameters
        ----------
        _req
            Falcon request (unused).
        resp
            Falcon response populated with readiness status.

        """
        if self._service is None:
            resp.media = {"status": "unavailable"}
            resp.status = HTTPStatus.SERVICE_UNAVAILABLE
            return
        resp.media = {
            "status": "ready",
            "runs": len(self._service.orchestrator.registry),
        }
        resp.status = HTTPStatus.OK
