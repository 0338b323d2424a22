"""Error taxonomy for inventory messaging."""

from __future__ import annotations

from typing import Optional


class MessagingError(Exception):
    """Base class for all inventory messaging failures."""


class ConfigurationError(MessagingError, ValueError):
    """Broker topology or connection settings are missing or inconsistent."""


class ValidationError(MessagingError):
    """An envelope does not carry non-empty string ``item_id`` and ``text`` fields."""


class BrokerConnectionError(MessagingError, ConnectionError):
    """A session with the broker could not be established or was lost."""


class PublishError(MessagingError):
    """The broker rejected or failed a publish attempt."""

    def __init__(self, message: str, *, message_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.message_id = message_id


class DeliveryReturnedError(PublishError):
    """The broker accepted a message but returned it as undeliverable."""


class SubscriptionError(MessagingError):
    """A broker-level fault occurred on a consumer channel."""


class InvalidContentError(MessagingError):
    """Received bytes could not be decoded into an envelope shape."""


class ShutdownError(MessagingError):
    """Closing the broker session failed."""


class DeliveryAlreadyResolvedError(MessagingError):
    """A delivery was resolved more than once."""
