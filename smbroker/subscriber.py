"""
Subscriber endpoint data structures for the message broker.

Defines the Endpoint dataclass, the transport address (host + port) that
identifies one subscriber, and the EMPTY_ENDPOINT sentinel used to mark free
subscriber slots in the topic registry. Also defines the ADDRESS type alias
used wherever a raw socket address tuple is passed around.
"""

from dataclasses import dataclass
from typing import Any
from typing import Tuple

ADDRESS = Tuple[str, int]
"""A raw socket address as handed out by the socket and asyncio APIs."""


@dataclass(frozen=True)
class Endpoint(object):
    """A subscriber address. Two endpoints are equal iff host and port match."""

    host: str
    """The host identifier, normally a dotted IPv4 address."""

    port: int
    """The UDP port the subscriber receives forwarded messages on."""

    @classmethod
    def from_address(cls, address: Any) -> "Endpoint":
        """
        Build an endpoint from a socket address.

        IPv6 addresses carry flow info and scope id after the port, only the
        first two fields are kept.
        """
        return cls(host=str(address[0]), port=int(address[1]))

    def as_address(self) -> ADDRESS:
        return self.host, self.port

    @property
    def is_empty(self) -> bool:
        return self == EMPTY_ENDPOINT

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


EMPTY_ENDPOINT = Endpoint(host="", port=0)
"""Sentinel stored in a subscriber slot that holds no endpoint."""
