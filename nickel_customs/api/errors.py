"""Domain exceptions and Falcon error handlers for the API layer.

Register the handlers on the Falcon app::

    app.add_error_handler(InvalidSignatureError, handle_invalid_signature)
    app.add_error_handler(MalformedEventError, handle_malformed_event)
    app.add_error_handler(GitHubAPIError, handle_github_unavailable)

"""

from __future__ import annotations

import typing as typ

import falcon

from nickel_customs.logging import get_logger, log_warning

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from nickel_customs.events.errors import MalformedEventError
    from nickel_customs.github.errors import GitHubAPIError

__all__ = [
    "InvalidSignatureError",
    "handle_github_unavailable",
    "handle_invalid_signature",
    "handle_malformed_event",
]

logger = get_logger(__name__)


class InvalidSignatureError(Exception):
    """Raised when a delivery's ``X-Hub-Signature-256`` does not verify."""

    @classmethod
    def missing(cls) -> InvalidSignatureError:
        """Return an error for deliveries without a signature header."""
        return cls("X-Hub-Signature-256 header is required")

    @classmethod
    def mismatch(cls) -> InvalidSignatureError:
        """Return an error for signatures that do not match the body."""
        return cls("X-Hub-Signature-256 does not match the payload")


async def handle_invalid_signature(
    req: Request,
    resp: Response,
    ex: InvalidSignatureError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``InvalidSignatureError`` to an HTTP 401 JSON response."""
    log_warning(
        logger,
        "Rejected delivery %s: %s",
        req.get_header("X-GitHub-Delivery", default="-"),
        ex,
    )
    resp.status = falcon.HTTP_401
    resp.media = {"title": "Invalid signature", "description": str(ex)}


async def handle_malformed_event(
    req: Request,
    resp: Response,
    ex: MalformedEventError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``MalformedEventError`` to an HTTP 400 JSON response.

    Parameters
    ----------
    req
        Falcon request, used for the delivery id in the log line.
    resp
        Falcon response whose status and media are set.
    ex
        The intake error with its reason and optional field.
    _params
        URI template parameters (unused).

    """
    log_warning(
        logger,
        "Malformed delivery %s: %s",
        req.get_header("X-GitHub-Delivery", default="-"),
        ex,
    )
    resp.status = falcon.HTTP_400
    media: dict[str, str] = {
        "title": "Malformed event",
        "description": ex.reason,
    }
    if ex.field is not None:
        media["field"] = ex.field
    resp.media = media


async def handle_github_unavailable(
    _req: Request,
    resp: Response,
    ex: GitHubAPIError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``GitHubAPIError`` raised while resolving changes to HTTP 502.

    GitHub redelivers failed webhooks, so the delivery is retried later.
    """
    resp.status = falcon.HTTP_502
    resp.media = {"title": "GitHub unavailable", "description": str(ex)}
