"""
UDP front end of the broker.

BrokerProtocol feeds every datagram it receives to a Dispatcher and forwards
published messages through the same datagram transport. asyncio runs each
datagram_received() call to completion before the next one, so requests are
served strictly one at a time.
"""

import asyncio
import logging
from typing import Any
from typing import Optional

from smbroker import handlers
from smbroker.config import BrokerConfig
from smbroker.dispatcher import Dispatcher
from smbroker.registry import TopicRegistry
from smbroker.subscriber import Endpoint


logger = logging.getLogger(__name__)


class BrokerProtocol(asyncio.DatagramProtocol):
    """Datagram protocol serving broker requests."""

    def __init__(
        self,
        registry: TopicRegistry,
        event_sink: Optional[handlers.EVENT_SINK] = None,
        send_failure_handler: Optional[handlers.SEND_FAILURE_HANDLER] = None,
    ) -> None:
        self.transport: Optional[asyncio.DatagramTransport] = None
        self._sending = False
        self._send_error: Optional[Exception] = None
        self.dispatcher = Dispatcher(
            registry=registry,
            send=self._send,
            event_sink=event_sink,
            send_failure_handler=send_failure_handler,
        )

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]
        logger.info(f"Broker listening on {transport.get_extra_info('sockname')}")

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if exc is not None:
            logger.error(f"Broker transport closed: {exc}")
        self.transport = None

    def datagram_received(self, data: bytes, addr: Any) -> None:
        sender = Endpoint.from_address(addr)
        try:
            self.dispatcher.handle(data, sender)
        except Exception:
            # The broker never exits because of a single request.
            logger.exception(f"Unexpected error while handling request from {sender}")

    def error_received(self, exc: Exception) -> None:
        if self._sending:
            self._send_error = exc
            return

        # Usually an ICMP port unreachable from a subscriber that went away.
        logger.warning(f"Transport error: {exc.__class__.__name__}: {exc}")

    def _send(self, payload: bytes, endpoint: Endpoint) -> bool:
        """
        Raises:
            OSError: If the operating system refused the datagram. The
                transport hands such errors to error_received() from within
                sendto() instead of raising them.
        """
        if self.transport is None:
            return False

        self._sending = True
        self._send_error = None
        try:
            self.transport.sendto(payload, endpoint.as_address())
        finally:
            self._sending = False

        error, self._send_error = self._send_error, None
        if isinstance(error, OSError):
            raise error
        if error is not None:
            raise OSError(f"{error.__class__.__name__}: {error}") from error

        return True


async def start(
    config: BrokerConfig,
    registry: Optional[TopicRegistry] = None,
    event_sink: Optional[handlers.EVENT_SINK] = None,
) -> tuple[asyncio.DatagramTransport, BrokerProtocol]:
    """
    Bind the broker's datagram endpoint.

    Args:
        config (BrokerConfig): Bind address, port and registry capacities.
        registry (Optional[TopicRegistry]): Registry to serve. A new one sized
            from config is created if omitted.
        event_sink (Optional[EVENT_SINK]): Passed on to the dispatcher.
    Returns:
        tuple[DatagramTransport, BrokerProtocol]: The bound transport and protocol.
    Raises:
        OSError: If the address cannot be bound.
    """
    if registry is None:
        registry = TopicRegistry(
            topic_slots=config.topic_slots,
            subscriber_slots=config.subscriber_slots,
        )

    loop = asyncio.get_running_loop()
    transport, protocol = await loop.create_datagram_endpoint(
        lambda: BrokerProtocol(registry, event_sink=event_sink),
        local_addr=(config.host, config.port),
    )
    return transport, protocol


async def serve(config: BrokerConfig) -> None:
    """Run the broker until the task is cancelled."""
    transport, _ = await start(config)
    try:
        await asyncio.Event().wait()
    finally:
        transport.close()


def run(config: BrokerConfig) -> None:
    """Blocking entry point. Returns on KeyboardInterrupt."""
    try:
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        logger.info("Broker stopped")
