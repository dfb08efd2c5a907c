"""
Wire protocol constants shared by the broker and its clients.

These are fixed by the protocol rather than by deployment, so they live here
instead of in the environment-driven config module.
"""

DELIMITER = "!"
"""Separates the method token, topic and message of a request record."""

WILDCARD = "#"
"""
The wildcard topic sentinel. Subscribers of this topic receive every published
message regardless of its topic.
"""

TOPIC_LENGTH = 20
"""Topic storage size, including the terminator byte of the wire format."""

MAX_TOPIC_LENGTH = TOPIC_LENGTH - 1
"""Longest accepted topic, in UTF-8 encoded bytes."""

BUFFER_SIZE = 512
"""Receive buffer size. One byte is reserved so 511 content bytes remain."""

MAX_DATAGRAM_SIZE = BUFFER_SIZE - 1

ENCODING = "utf-8"

# -----Methods-----------------------------------------------------------------
METHOD_PUBLISH = "PUB"
METHOD_SUBSCRIBE = "SUB"
METHOD_UNSUBSCRIBE = "UNSUB"

METHODS = (METHOD_PUBLISH, METHOD_SUBSCRIBE, METHOD_UNSUBSCRIBE)

# -----Defaults----------------------------------------------------------------
DEFAULT_PORT = 8080
DEFAULT_TOPIC_SLOTS = 10
DEFAULT_SUBSCRIBER_SLOTS = 10
DEFAULT_PUBLISH_INTERVAL = 5.0

WILDCARD_SLOT = 0
"""Registry slot permanently reserved for the wildcard topic."""
