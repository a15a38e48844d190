"""GitHub webhook resource.

``POST /webhooks/github`` verifies the delivery signature when a secret is
configured, hands the delivery to the check service and answers:

- 202 with the run key when the delivery opened or joined a run;
- 200 ``{"status": "duplicate"}`` for an already processed delivery id;
- 200 ``{"status": "ignored"}`` for events that do not trigger a check;
- 400 for malformed deliveries and 401 for bad signatures (see
  ``nickel_customs.api.errors``).

"""

from __future__ import annotations

import hashlib
import hmac
import typing as typ
from http import HTTPStatus

from nickel_customs.api.errors import InvalidSignatureError
from nickel_customs.events.errors import DuplicateDeliveryError, UnsupportedEventError
from nickel_customs.events.models import RawDelivery
from nickel_customs.logging import get_logger, log_debug, log_info

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from nickel_customs.service import CheckService

__all__ = ["WebhookResource", "signature_for", "verify_signature"]

logger = get_logger(__name__)

_SIGNATURE_PREFIX = "sha256="


def signature_for(secret: str, body: bytes) -> str:
    """Return the ``X-Hub-Signature-256`` value GitHub sends for ``body``."""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"{_SIGNATURE_PREFIX}{digest}"


def verify_signature(secret: str, body: bytes, header: str | None) -> None:
    """Raise ``InvalidSignatureError`` unless ``header`` signs ``body``."""
    if not header:
        raise InvalidSignatureError.missing()
    if not hmac.compare_digest(signature_for(secret, body), header.strip()):
        raise InvalidSignatureError.mismatch()


class WebhookResource:
    """Receive GitHub webhook deliveries.

    Parameters
    ----------
    service
        Handles accepted deliveries.
    secret
        Webhook secret; signatures are not checked when ``None``.

    """

    def __init__(self, service: CheckService, *, secret: str | None = None) -> None:
        """Configure the resource."""
        self._service = service
        self._secret = secret

    async def on_post(self, req: Request, resp: Response) -> None:
        """Handle POST /webhooks/github."""
        body = await req.stream.read()
        if self._secret is not None:
            verify_signature(
                self._secret, body, req.get_header("X-Hub-Signature-256")
            )

        raw = RawDelivery(
            event=req.get_header("X-GitHub-Event", default="") or "",
            delivery_id=req.get_header("X-GitHub-Delivery", default="") or "",
            body=body,
        )
        try:
            run = await self._service.handle(raw)
        except DuplicateDeliveryError as exc:
            log_debug(logger, "Duplicate delivery %s", exc.delivery_id)
            resp.media = {"status": "duplicate", "delivery_id": exc.delivery_id}
            resp.status = HTTPStatus.OK
            return
        except UnsupportedEventError as exc:
            log_debug(logger, "Ignored delivery %s: %s", raw.delivery_id, exc)
            resp.media = {"status": "ignored", "event": raw.event}
            resp.status = HTTPStatus.OK
            return

        log_info(
            logger,
            "Accepted delivery %s into run %d for %s",
            raw.delivery_id,
            run.sequence,
            run.key,
        )
        resp.media = {
            "status": "accepted",
            "run": str(run.key),
            "run_sequence": run.sequence,
            "run_status": str(run.status),
        }
        resp.status = HTTPStatus.ACCEPTED
