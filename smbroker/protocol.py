"""
Request records exchanged between clients and the broker.

A request is one text record per datagram:

    PUB!<topic>!<message>
    SUB!<topic>
    UNSUB!<topic>

Parsing and validation live here so the broker and the client programs reject
exactly the same topics and messages.
"""

from dataclasses import dataclass
from typing import Optional
from typing import Union

from smbroker import constants
from smbroker import errors


@dataclass(frozen=True)
class Request(object):
    """A parsed and validated request record."""

    method: str
    """One of constants.METHODS."""

    topic: str

    message: Optional[str] = None
    """The message body. Only set for publish requests."""

    def encode(self) -> bytes:
        if self.method == constants.METHOD_PUBLISH:
            return encode_publish(self.topic, self.message or "")
        return _encode(self.method, self.topic)


# -----Validation--------------------------------------------------------------


def validate_topic(topic: str, method: str) -> None:
    """
    Check that a topic is acceptable for a method.

    Args:
        topic (str): The topic to check.
        method (str): The request method the topic is used with.
    Raises:
        InvalidTopic: If the topic is empty, longer than MAX_TOPIC_LENGTH bytes,
            contains the delimiter, or contains the wildcard character where
            the method does not allow it. Publishers may never use the wildcard,
            subscribers only as the entire topic.
    """
    if not topic:
        raise errors.InvalidTopic("Topic must not be empty")

    if len(topic.encode(constants.ENCODING)) > constants.MAX_TOPIC_LENGTH:
        raise errors.InvalidTopic(
            f"Topic '{topic}' is longer than {constants.MAX_TOPIC_LENGTH} bytes"
        )

    if constants.DELIMITER in topic:
        raise errors.InvalidTopic(
            f"Topic is not allowed to contain message delimiter character "
            f"{constants.DELIMITER}"
        )

    if constants.WILDCARD not in topic:
        return

    if method == constants.METHOD_PUBLISH:
        raise errors.InvalidTopic(
            f"Topic is not allowed to contain wildcard character {constants.WILDCARD}"
        )

    if topic != constants.WILDCARD:
        raise errors.InvalidTopic(
            f"Wildcard character {constants.WILDCARD} is only allowed as the "
            f"entire topic, got '{topic}'"
        )


def validate_message(message: str) -> None:
    """
    Raises:
        InvalidMessage: If the message contains the delimiter character.
    """
    if constants.DELIMITER in message:
        raise errors.InvalidMessage(
            f"Message is not allowed to contain message delimiter character "
            f"{constants.DELIMITER}"
        )


# -----Parsing-----------------------------------------------------------------


def parse_request(data: Union[bytes, str]) -> Request:
    """
    Parse and validate one request record.

    Args:
        data (Union[bytes, str]): The raw datagram payload.
    Returns:
        Request: The validated request.
    Raises:
        MalformedRequest: If the payload is not valid text, the method token is
            unknown, or a publish record has no message field.
        InvalidTopic: If the topic fails validate_topic().
        InvalidMessage: If the message fails validate_message().
    """
    if isinstance(data, bytes):
        try:
            text = data.decode(constants.ENCODING)
        except UnicodeDecodeError as e:
            raise errors.MalformedRequest(f"Request is not valid text: {e}") from e
    else:
        text = data

    method, delimiter, fields = text.partition(constants.DELIMITER)
    if not delimiter or method not in constants.METHODS:
        raise errors.MalformedRequest("Message contains invalid method")

    if method != constants.METHOD_PUBLISH:
        validate_topic(fields, method)
        return Request(method=method, topic=fields)

    topic, delimiter, message = fields.partition(constants.DELIMITER)
    if not delimiter:
        raise errors.MalformedRequest("Publish request has no message field")

    validate_topic(topic, method)
    validate_message(message)
    return Request(method=method, topic=topic, message=message)


# -----Encoding----------------------------------------------------------------


def _encode(*fields: str) -> bytes:
    return constants.DELIMITER.join(fields).encode(constants.ENCODING)


def encode_publish(topic: str, message: str) -> bytes:
    """
    Build a validated publish record.

    Raises:
        InvalidTopic: If the topic cannot be published to.
        InvalidMessage: If the message contains the delimiter character.
    """
    validate_topic(topic, constants.METHOD_PUBLISH)
    validate_message(message)
    return _encode(constants.METHOD_PUBLISH, topic, message)


def encode_subscribe(topic: str) -> bytes:
    validate_topic(topic, constants.METHOD_SUBSCRIBE)
    return _encode(constants.METHOD_SUBSCRIBE, topic)


def encode_unsubscribe(topic: str) -> bytes:
    validate_topic(topic, constants.METHOD_UNSUBSCRIBE)
    return _encode(constants.METHOD_UNSUBSCRIBE, topic)
