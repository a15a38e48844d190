"""Errors raised while turning webhook deliveries into events."""

from __future__ import annotations


class EventIntakeError(Exception):
    """Base class for intake rejections."""


class MalformedEventError(EventIntakeError):
    """Raised when a delivery lacks the fields needed to build an event."""

    def __init__(self, reason: str, *, field: str | None = None) -> None:
        """Initialise with a reason and the offending field, when known."""
        self.reason = reason
        self.field = field
        message = f"{field}: {reason}" if field is not None else reason
        super().__init__(message)

    @classmethod
    def missing(cls, field: str) -> MalformedEventError:
        """Return an error for an absent or empty required field."""
        return cls("required field is missing or empty", field=field)

    @classmethod
    def bad_repository(cls, value: str) -> MalformedEventError:
        """Return an error for a repository name not in ``owner/name`` form."""
        return cls(f"expected owner/name, got {value!r}", field="repository.full_name")

    @classmethod
    def undecodable(cls, detail: str) -> MalformedEventError:
        """Return an error for payloads that are not valid JSON objects."""
        return cls(f"payload could not be decoded: {detail}")

    @classmethod
    def branch_deleted(cls) -> MalformedEventError:
        """Return an error for pushes that delete a ref."""
        return cls("push deletes the ref; there is no head commit to check")


class DuplicateDeliveryError(EventIntakeError):
    """Raised when a delivery id has already been fully processed."""

    def __init__(self, delivery_id: str) -> None:
        """Record the duplicate delivery id."""
        self.delivery_id = delivery_id
        super().__init__(f"delivery {delivery_id} was already processed")


class UnsupportedEventError(EventIntakeError):
    """Raised for event names or actions the bot does not act on."""

    def __init__(self, event: str, action: str | None = None) -> None:
        """Record the ignored event name and action."""
        self.event = event
        self.action = action
        label = f"{event}.{action}" if action else event
        super().__init__(f"event {label} does not trigger a check")
