"""Webhook intake: raw deliveries in, immutable events out."""

from __future__ import annotations

from .errors import (
    DuplicateDeliveryError,
    EventIntakeError,
    MalformedEventError,
    UnsupportedEventError,
)
from .intake import DeliveryLedger, EventIntake
from .models import Event, EventKind, RawDelivery

__all__ = [
    "DeliveryLedger",
    "DuplicateDeliveryError",
    "Event",
    "EventIntake",
    "EventIntakeError",
    "EventKind",
    "MalformedEventError",
    "RawDelivery",
    "UnsupportedEventError",
]
