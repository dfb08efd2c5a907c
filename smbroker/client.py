"""
Client side of the broker protocol.

BrokerClient wraps one UDP socket. Subscribe and unsubscribe requests act on
the address of the socket they are sent from, so a subscriber must keep using
the same client for its whole lifetime.

    with BrokerClient(resolve("broker.local")) as client:
        client.publish("weather", "72F")
"""

import contextlib
import logging
import socket
import time
from typing import Callable
from typing import Iterator
from typing import Optional

from smbroker import constants
from smbroker import protocol
from smbroker.subscriber import Endpoint


logger = logging.getLogger(__name__)


class ClientError(Exception):
    """Raised when the broker cannot be resolved or a datagram cannot be sent."""


def resolve(host: str, port: int = constants.DEFAULT_PORT) -> Endpoint:
    """
    Resolve a broker host name or IPv4 address.

    Raises:
        ClientError: If the host cannot be resolved.
    """
    try:
        address = socket.gethostbyname(host)
    except (socket.gaierror, UnicodeError) as e:
        raise ClientError(f"Could not resolve broker address {host}: {e}") from e

    return Endpoint(host=address, port=port)


class BrokerClient(object):
    """A UDP socket talking to one broker."""

    def __init__(
        self,
        broker: Endpoint,
        sock: Optional[socket.socket] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Args:
            broker (Endpoint): The broker address.
            sock (Optional[socket.socket]): Socket to use. A new IPv4 datagram
                socket is created if omitted.
            timeout (Optional[float]): Receive timeout in seconds, None blocks.
        """
        self.broker = broker
        self.sock = sock or socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.settimeout(timeout)

    def __enter__(self) -> "BrokerClient":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def close(self) -> None:
        self.sock.close()

    def _send(self, payload: bytes) -> None:
        try:
            nbytes = self.sock.sendto(payload, self.broker.as_address())
        except OSError as e:
            raise ClientError(f"Failed to send request to {self.broker}: {e}") from e

        if nbytes != len(payload):
            raise ClientError(
                f"Sent {nbytes} of {len(payload)} bytes to {self.broker}"
            )

    # -----Requests------------------------------------------------------------

    def publish(self, topic: str, message: str) -> None:
        """
        Publish a message once.

        Raises:
            InvalidTopic: If the topic is empty, too long, or contains the
                delimiter or wildcard character.
            InvalidMessage: If the message contains the delimiter character.
            ClientError: If the request cannot be sent.
        """
        payload = protocol.encode_publish(topic, message)
        logger.debug(f"Publishing message: {payload!r}")
        self._send(payload)

    def subscribe(self, topic: str) -> None:
        """
        Raises:
            InvalidTopic: If the topic cannot be subscribed to.
            ClientError: If the request cannot be sent.
        """
        payload = protocol.encode_subscribe(topic)
        logger.debug(f"Subscribing to topic: {payload!r}")
        self._send(payload)

    def unsubscribe(self, topic: str) -> None:
        payload = protocol.encode_unsubscribe(topic)
        logger.debug(f"Unsubscribing from topic: {payload!r}")
        self._send(payload)

    # -----Receiving-----------------------------------------------------------

    def receive(self) -> str:
        """
        Wait for one forwarded message body.

        Raises:
            ClientError: If receiving fails or times out.
        """
        try:
            data, _ = self.sock.recvfrom(constants.MAX_DATAGRAM_SIZE)
        except OSError as e:
            raise ClientError(f"Failed to receive message: {e}") from e

        return data.decode(constants.ENCODING, errors="replace")

    def messages(self) -> Iterator[str]:
        """Yield forwarded message bodies until receiving fails."""
        while True:
            yield self.receive()


@contextlib.contextmanager
def subscription(client: BrokerClient, topic: str) -> Iterator[BrokerClient]:
    """
    Subscribe for the duration of a with block.

    The unsubscribe request is sent however the block is left, including
    KeyboardInterrupt and SystemExit. A failing unsubscribe is logged, not
    raised, so it never hides the reason the block was left.
    """
    client.subscribe(topic)
    try:
        yield client
    finally:
        try:
            client.unsubscribe(topic)
        except ClientError as e:
            logger.warning(f"Could not unsubscribe from topic {topic}: {e}")


def publish_periodically(
    client: BrokerClient,
    topic: str,
    interval: float = constants.DEFAULT_PUBLISH_INTERVAL,
    count: Optional[int] = None,
    clock: Callable[[], float] = time.time,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """
    Publish the current Unix timestamp to a topic every interval seconds.

    Args:
        client (BrokerClient): Client to publish with.
        topic (str): Topic to publish to.
        interval (float): Delay between two publishes, in seconds.
        count (Optional[int]): Stop after this many publishes. None runs until
            interrupted.
        clock (Callable[[], float]): Source of the published timestamp.
        sleep (Callable[[float], None]): Used to wait between publishes.
    Returns:
        int: The number of messages published.
    """
    published = 0
    while count is None or published < count:
        if published:
            sleep(interval)
        client.publish(topic, str(int(clock())))
        published += 1

    return published
