"""
Exception taxonomy for the message broker.

Every error a single request can run into derives from BrokerError, so the
dispatcher can report it and move on to the next datagram. None of these ever
stops the broker process.
"""


class BrokerError(Exception):
    """Base class for all per-request broker errors."""


class MalformedRequest(BrokerError):
    """Raised when a request has an unknown method token or broken framing."""


class InvalidTopic(BrokerError):
    """
    Raised when a topic is empty, too long, contains the delimiter, or contains
    the wildcard character where it is not allowed.
    """


class InvalidMessage(BrokerError):
    """Raised when a published message contains the delimiter character."""


class RegistryFull(BrokerError):
    """Raised when no free topic slot is left for a new topic."""


class SubscribersFull(BrokerError):
    """Raised when a topic has no free subscriber slot left."""


class TransportSendFailure(BrokerError):
    """Raised when forwarding a message to one subscriber fails."""
