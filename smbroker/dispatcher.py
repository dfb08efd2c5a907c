"""
# Request Dispatcher

Turns raw request datagrams into topic registry operations and forwards
published messages to the matching subscriber endpoints.

Each request is handled to completion on its own:

    received -> parsed -> validated -> executed -> forwarded (0..n times)

No state survives a request other than the registry the dispatcher was given.
Every BrokerError is reported and swallowed by handle(), so bad input never
stops the broker.
"""

import logging
import threading
from dataclasses import dataclass
from dataclasses import field
from typing import Callable
from typing import Optional
from typing import Union

from smbroker import constants
from smbroker import errors
from smbroker import handlers
from smbroker import protocol
from smbroker.registry import Outcome
from smbroker.registry import TopicRegistry
from smbroker.subscriber import Endpoint


logger = logging.getLogger(__name__)


TRANSPORT_SEND = Callable[[bytes, Endpoint], Optional[bool]]
"""
Sends one datagram to an endpoint.
A send fails by raising OSError or by returning False. Any other return value,
None included, counts as sent.
"""


@dataclass
class DispatchResult(object):
    """What happened to a single request."""

    method: Optional[str] = None
    """The request method, None if the request could not be parsed."""

    topic: Optional[str] = None

    outcome: Optional[Outcome] = None
    """Acknowledgment of subscribe and unsubscribe requests."""

    forwarded: list[Endpoint] = field(default_factory=list)
    """Endpoints a published message was sent to, once per delivery."""

    failed: list[Endpoint] = field(default_factory=list)
    """Endpoints a published message could not be sent to."""

    error: Optional[errors.BrokerError] = None
    """The error the request was rejected with, if any."""

    @property
    def ok(self) -> bool:
        return self.error is None


class Dispatcher(object):
    """
    Executes broker requests against a topic registry.

    Use handle() for raw datagrams; it never raises BrokerError.
    Use publish(), subscribe() and unsubscribe() to drive the registry
    directly; these raise BrokerError on invalid input or exhausted capacity.

    All requests are serialized with one lock over the whole registry, so a
    dispatcher may be shared between threads.
    """

    def __init__(
        self,
        registry: TopicRegistry,
        send: TRANSPORT_SEND,
        event_sink: Optional[handlers.EVENT_SINK] = None,
        send_failure_handler: Optional[handlers.SEND_FAILURE_HANDLER] = None,
    ) -> None:
        """
        Args:
            registry (TopicRegistry): The registry to serve. Owned by the caller.
            send (TRANSPORT_SEND): Transport call used to forward messages.
            event_sink (Optional[EVENT_SINK]): Receives one line per broker
                event. Defaults to handlers.log_event.
            send_failure_handler (Optional[SEND_FAILURE_HANDLER]): Called for
                every forward that fails. Defaults to handlers.log_send_failure.
        """
        self.registry = registry
        self._send = send
        self._lock = threading.RLock()

        self._event_sink: handlers.EVENT_SINK = handlers.log_event
        self._send_failure_handler: handlers.SEND_FAILURE_HANDLER = (
            handlers.log_send_failure
        )
        self.set_event_sink(event_sink)
        self.set_send_failure_handler(send_failure_handler)

    def set_event_sink(self, sink: Optional[handlers.EVENT_SINK]) -> None:
        """
        Set the sink receiving broker event lines.
        Pass None to restore the default (handlers.log_event).
        """
        self._event_sink = sink if sink is not None else handlers.log_event

    def set_send_failure_handler(
        self, handler: Optional[handlers.SEND_FAILURE_HANDLER]
    ) -> None:
        """
        Set the handler called when forwarding to a subscriber fails.
        Forwarding continues with the next subscriber whatever the handler does.
        Pass None to restore the default (handlers.log_send_failure).
        """
        self._send_failure_handler = (
            handler if handler is not None else handlers.log_send_failure
        )

    def _report(self, event: str) -> None:
        self._event_sink(event)

    # -----Request Handling----------------------------------------------------

    def handle(self, data: Union[bytes, str], sender: Endpoint) -> DispatchResult:
        """
        Parse, validate and execute one raw request.

        Args:
            data (Union[bytes, str]): The datagram payload.
            sender (Endpoint): Where the datagram came from. Subscribe and
                unsubscribe requests act on this endpoint.
        Returns:
            DispatchResult: The result. Rejected requests carry the error.
        """
        if isinstance(data, bytes):
            text = data.decode(constants.ENCODING, errors="replace")
        else:
            text = data

        with self._lock:
            self._report(f"Received request from {sender}: {text}")

            try:
                request = protocol.parse_request(data)
                logger.debug(f"Dispatching {request.method} on topic {request.topic}")

                if request.method == constants.METHOD_PUBLISH:
                    return self.publish(request.topic, request.message or "")
                elif request.method == constants.METHOD_SUBSCRIBE:
                    return self.subscribe(request.topic, sender)
                else:
                    return self.unsubscribe(request.topic, sender)

            except errors.BrokerError as e:
                self._report(
                    f"Rejected request from {sender}: {e.__class__.__name__}: {e}"
                )
                return DispatchResult(error=e)

    def publish(self, topic: str, message: str) -> DispatchResult:
        """
        Forward a message to every wildcard subscriber and to every subscriber
        of the topic.

        An endpoint subscribed to both the wildcard and the topic receives the
        message twice. A topic nobody subscribed to is not an error, the message
        simply reaches the wildcard subscribers only.

        Raises:
            InvalidTopic: If the topic cannot be published to.
            InvalidMessage: If the message contains the delimiter character.
        """
        protocol.validate_topic(topic, constants.METHOD_PUBLISH)
        protocol.validate_message(message)

        with self._lock:
            result = DispatchResult(method=constants.METHOD_PUBLISH, topic=topic)
            payload = message.encode(constants.ENCODING)

            targets = self.registry.wildcard.live_subscribers()

            entry = self.registry.find(topic)
            if entry is None:
                self._report(
                    f"Topic {topic} has no subscribers, message will be discarded"
                )
            else:
                targets.extend(entry.live_subscribers())

            for endpoint in targets:
                try:
                    self._send_one(payload, endpoint)
                except errors.TransportSendFailure as e:
                    result.failed.append(endpoint)
                    self._report(f"Failed to forward message on {topic} to {endpoint}")
                    self._notify_send_failure(endpoint, payload, e)
                    continue

                result.forwarded.append(endpoint)
                self._report(f"Forwarded message on {topic} to {endpoint}")

            return result

    def _notify_send_failure(
        self, endpoint: Endpoint, payload: bytes, exception: Exception
    ) -> None:
        try:
            self._send_failure_handler(endpoint, payload, exception)
        except Exception:
            logger.exception(f"Send failure handler raised for subscriber {endpoint}")

    def _send_one(self, payload: bytes, endpoint: Endpoint) -> None:
        """
        Raises:
            TransportSendFailure: If the transport raised OSError or returned
                False.
        """
        try:
            sent = self._send(payload, endpoint)
        except OSError as e:
            raise errors.TransportSendFailure(
                f"Failed to send to {endpoint}: {e}"
            ) from e

        if sent is False:
            raise errors.TransportSendFailure(f"Transport refused datagram to {endpoint}")

    def subscribe(self, topic: str, endpoint: Endpoint) -> DispatchResult:
        """
        Register an endpoint for a topic, claiming a registry slot for new
        topics.

        Returns:
            DispatchResult: With outcome SUBSCRIBED or ALREADY_SUBSCRIBED.
        Raises:
            InvalidTopic: If the topic cannot be subscribed to.
            RegistryFull: If the topic is new and no topic slot is free.
            SubscribersFull: If the topic has no free subscriber slot.
            MalformedRequest: If the endpoint is the empty address.
        """
        protocol.validate_topic(topic, constants.METHOD_SUBSCRIBE)
        if endpoint.is_empty:
            raise errors.MalformedRequest("Request has no sender address to subscribe")

        with self._lock:
            entry = self.registry.find_or_insert(topic)
            try:
                outcome = self.registry.add_subscriber(entry, endpoint)
            except errors.SubscribersFull:
                # Only releases a slot claimed by this very call.
                self.registry.evict_if_empty(entry)
                raise

            if outcome is Outcome.ALREADY_SUBSCRIBED:
                self._report(f"Subscriber {endpoint} is already subscribed to topic {topic}")
            else:
                self._report(f"Subscriber {endpoint} registered for topic {topic}")

            return DispatchResult(
                method=constants.METHOD_SUBSCRIBE, topic=topic, outcome=outcome
            )

    def unsubscribe(self, topic: str, endpoint: Endpoint) -> DispatchResult:
        """
        Remove an endpoint from a topic, releasing the topic's slot once its
        last subscriber is gone.

        Returns:
            DispatchResult: With outcome UNSUBSCRIBED or NOT_SUBSCRIBED.
        Raises:
            InvalidTopic: If the topic cannot be unsubscribed from.
        """
        protocol.validate_topic(topic, constants.METHOD_UNSUBSCRIBE)

        with self._lock:
            result = DispatchResult(method=constants.METHOD_UNSUBSCRIBE, topic=topic)

            entry = self.registry.find(topic)
            if entry is None:
                result.outcome = Outcome.NOT_SUBSCRIBED
                self._report(f"Subscriber {endpoint} is not subscribed to topic {topic}")
                return result

            result.outcome = self.registry.remove_subscriber(entry, endpoint)
            if result.outcome is Outcome.NOT_SUBSCRIBED:
                self._report(f"Subscriber {endpoint} is not subscribed to topic {topic}")
                return result

            self._report(f"Subscriber {endpoint} unsubscribed from topic {topic}")
            if entry.is_free:
                self._report(f"Topic {topic} has no subscribers left and was released")

            return result
