"""
Topic registry data structures for the message broker.

The registry is a fixed number of TopicEntry slots. Each slot maps one topic
name to a fixed number of subscriber slots. Free topic slots carry the empty
name and free subscriber slots carry EMPTY_ENDPOINT, so claiming and releasing
a slot is a plain overwrite.

Slot 0 is claimed by the wildcard topic when the registry is created and is
never released, even when nobody is subscribed to it.

A topic exists in the registry while it has at least one subscriber.
"""

import enum
import json
import logging
import os
from dataclasses import dataclass
from dataclasses import field
from typing import Optional
from typing import Union

from smbroker import constants
from smbroker import errors
from smbroker.subscriber import EMPTY_ENDPOINT
from smbroker.subscriber import Endpoint


logger = logging.getLogger(__name__)

EMPTY_TOPIC = ""
"""Name carried by a topic slot that is not in use."""


class Outcome(enum.Enum):
    """Acknowledgments returned by subscriber management calls."""

    SUBSCRIBED = "subscribed"
    ALREADY_SUBSCRIBED = "already subscribed"
    UNSUBSCRIBED = "unsubscribed"
    NOT_SUBSCRIBED = "not subscribed"


@dataclass
class TopicEntry(object):
    """One topic slot of the registry."""

    name: str
    """The topic name, or EMPTY_TOPIC while the slot is free."""

    subscribers: list[Endpoint] = field(default_factory=list)
    """
    Fixed-length list of subscriber slots. Free slots hold EMPTY_ENDPOINT.
    The order of occupied slots carries no meaning.
    """

    @property
    def is_free(self) -> bool:
        return self.name == EMPTY_TOPIC

    @property
    def has_subscribers(self) -> bool:
        return any(not sub.is_empty for sub in self.subscribers)

    def live_subscribers(self) -> list[Endpoint]:
        """Get the endpoints in occupied subscriber slots."""
        return [sub for sub in self.subscribers if not sub.is_empty]


class TopicRegistry(object):
    """
    Fixed-capacity table mapping topic names to subscriber endpoints.

    All lookups are linear scans over the slots. Capacities are small, and a
    scan keeps slot reuse easy to follow.

    The registry has no locking of its own. Whoever shares one registry between
    concurrent requests must serialize every call, see Dispatcher.
    """

    def __init__(
        self,
        topic_slots: int = constants.DEFAULT_TOPIC_SLOTS,
        subscriber_slots: int = constants.DEFAULT_SUBSCRIBER_SLOTS,
    ) -> None:
        """
        Args:
            topic_slots (int): Number of topic slots, the wildcard slot included.
            subscriber_slots (int): Number of subscriber slots per topic.
        Raises:
            ValueError: If either capacity is smaller than 1.
        """
        if topic_slots < 1:
            raise ValueError(f"topic_slots must be at least 1, got {topic_slots}")
        if subscriber_slots < 1:
            raise ValueError(
                f"subscriber_slots must be at least 1, got {subscriber_slots}"
            )

        self.topic_slots = topic_slots
        self.subscriber_slots = subscriber_slots
        self._slots: list[TopicEntry] = []
        self.clear()

    def clear(self) -> None:
        """Reset every slot to its startup state, keeping only the wildcard topic."""
        self._slots = [
            TopicEntry(
                name=EMPTY_TOPIC,
                subscribers=[EMPTY_ENDPOINT] * self.subscriber_slots,
            )
            for _ in range(self.topic_slots)
        ]
        self._slots[constants.WILDCARD_SLOT].name = constants.WILDCARD

    @property
    def wildcard(self) -> TopicEntry:
        """The permanently reserved wildcard topic entry."""
        return self._slots[constants.WILDCARD_SLOT]

    def is_wildcard(self, entry: TopicEntry) -> bool:
        return entry is self._slots[constants.WILDCARD_SLOT]

    # -----Slot Management-----------------------------------------------------

    def find(self, topic: str) -> Optional[TopicEntry]:
        """
        Look up the entry holding a topic.

        Args:
            topic (str): The topic name.
        Returns:
            Optional[TopicEntry]: The entry, or None if no slot holds the topic.
        """
        # The empty name marks free slots, it is never a topic.
        if topic == EMPTY_TOPIC:
            return None

        for entry in self._slots:
            if entry.name == topic:
                return entry

        return None

    def find_or_insert(self, topic: str) -> TopicEntry:
        """
        Look up the entry holding a topic, claiming the first free slot for it
        if the topic is not yet registered.

        Args:
            topic (str): The topic name.
        Returns:
            TopicEntry: The existing or newly claimed entry.
        Raises:
            InvalidTopic: If the topic is the empty name.
            RegistryFull: If the topic is new and no slot is free. The registry
                is left unchanged.
        """
        if topic == EMPTY_TOPIC:
            raise errors.InvalidTopic("Topic must not be empty")

        entry = self.find(topic)
        if entry is not None:
            return entry

        for entry in self._slots:
            if entry.is_free:
                entry.name = topic
                logger.debug(f"Topic '{topic}' claimed a registry slot")
                return entry

        raise errors.RegistryFull(f"No more free slots to register new topic {topic}")

    def add_subscriber(self, entry: TopicEntry, endpoint: Endpoint) -> Outcome:
        """
        Store an endpoint in a free subscriber slot of an entry.

        Args:
            entry (TopicEntry): The topic entry to subscribe to.
            endpoint (Endpoint): The subscribing endpoint.
        Returns:
            Outcome: SUBSCRIBED, or ALREADY_SUBSCRIBED if the endpoint was
                already present, in which case nothing changes.
        Raises:
            ValueError: If the endpoint is the empty sentinel.
            SubscribersFull: If every subscriber slot is taken.
        """
        if endpoint.is_empty:
            raise ValueError("The empty endpoint cannot subscribe")

        if endpoint in entry.subscribers:
            return Outcome.ALREADY_SUBSCRIBED

        for index, sub in enumerate(entry.subscribers):
            if sub.is_empty:
                entry.subscribers[index] = endpoint
                return Outcome.SUBSCRIBED

        raise errors.SubscribersFull(
            f"No more free slots to register subscriber for topic {entry.name}"
        )

    def remove_subscriber(self, entry: TopicEntry, endpoint: Endpoint) -> Outcome:
        """
        Clear the subscriber slot holding an endpoint, then release the topic
        slot if that was the last subscriber.

        Args:
            entry (TopicEntry): The topic entry to unsubscribe from.
            endpoint (Endpoint): The unsubscribing endpoint.
        Returns:
            Outcome: UNSUBSCRIBED, or NOT_SUBSCRIBED if the endpoint was not
                present, in which case nothing changes.
        """
        if endpoint.is_empty:
            return Outcome.NOT_SUBSCRIBED

        for index, sub in enumerate(entry.subscribers):
            if sub == endpoint:
                entry.subscribers[index] = EMPTY_ENDPOINT
                self.evict_if_empty(entry)
                return Outcome.UNSUBSCRIBED

        return Outcome.NOT_SUBSCRIBED

    def evict_if_empty(self, entry: TopicEntry) -> bool:
        """
        Release a topic slot that has no subscribers left.
        The wildcard entry is never released.

        Returns:
            bool: True if the slot was released.
        """
        if self.is_wildcard(entry) or entry.is_free or entry.has_subscribers:
            return False

        logger.debug(f"Topic '{entry.name}' has no subscribers left, slot released")
        entry.name = EMPTY_TOPIC
        return True

    # -----Introspection API---------------------------------------------------

    def get_topics(self) -> list[str]:
        """Get all registered topics, the wildcard topic included."""
        return sorted(entry.name for entry in self._slots if not entry.is_free)

    def topic_exists(self, topic: str) -> bool:
        return self.find(topic) is not None

    def free_topic_slots(self) -> int:
        return sum(1 for entry in self._slots if entry.is_free)

    def get_subscriber_count(self, topic: str) -> int:
        """
        Get the number of subscribers of a topic.

        Args:
            topic (str): Topic to count subscribers for.
        Returns:
            int: Number of occupied subscriber slots, 0 for unknown topics.
        """
        entry = self.find(topic)
        if entry is None:
            return 0
        return len(entry.live_subscribers())

    def get_subscribers(self, topic: str) -> list[Endpoint]:
        """Get all subscriber endpoints of a topic."""
        entry = self.find(topic)
        if entry is None:
            return []
        return entry.live_subscribers()

    def is_subscribed(self, endpoint: Endpoint, topic: str) -> bool:
        """
        Check if an endpoint is subscribed to a topic.

        Args:
            endpoint (Endpoint): The endpoint to check.
            topic (str): The topic to check.
        Returns:
            bool: True if the endpoint is subscribed to the topic.
        """
        return endpoint in self.get_subscribers(topic)

    def get_subscriptions(self, endpoint: Endpoint) -> list[str]:
        """
        Get all topics an endpoint is subscribed to.

        Example:
            >>> registry = TopicRegistry()
            >>> e = Endpoint("10.0.0.2", 5000)
            >>> registry.add_subscriber(registry.find_or_insert("rain"), e)
            <Outcome.SUBSCRIBED: 'subscribed'>
            >>> registry.add_subscriber(registry.wildcard, e)
            <Outcome.SUBSCRIBED: 'subscribed'>
            >>> registry.get_subscriptions(e)
            ['#', 'rain']
        """
        return sorted(
            entry.name
            for entry in self._slots
            if not entry.is_free and endpoint in entry.live_subscribers()
        )

    def get_topic_info(self, topic: str) -> Optional[dict[str, object]]:
        """
        Get detailed information about a topic.

        Returns:
            Optional[dict[str, object]]: Dictionary with topic details, or None
                if the topic doesn't exist.
        Example:
            {
                'topic': 'weather',
                'slot': 3,
                'is_wildcard': False,
                'subscriber_count': 2,
                'free_subscriber_slots': 8,
                'subscribers': ['10.0.0.2:5000', '10.0.0.3:5000'],
            }
        """
        entry = self.find(topic)
        if entry is None:
            return None

        live = entry.live_subscribers()
        return {
            "topic": entry.name,
            "slot": self._slots.index(entry),
            "is_wildcard": self.is_wildcard(entry),
            "subscriber_count": len(live),
            "free_subscriber_slots": self.subscriber_slots - len(live),
            "subscribers": sorted(str(sub) for sub in live),
        }

    def get_statistics(self) -> dict[str, object]:
        """
        Get overall registry statistics.

        Example:
            {
                "topic_slots": 10,
                "subscriber_slots": 10,
                "total_topics": 3,
                "free_topic_slots": 7,
                "total_subscriptions": 5,
                "distinct_subscribers": 4,
                "wildcard_subscribers": 1,
                "average_subscribers_per_topic": 1.66,
            }
        """
        in_use = [entry for entry in self._slots if not entry.is_free]
        total_subscriptions = sum(len(entry.live_subscribers()) for entry in in_use)
        distinct = {sub for entry in in_use for sub in entry.live_subscribers()}
        topic_count = len(in_use)

        return {
            "topic_slots": self.topic_slots,
            "subscriber_slots": self.subscriber_slots,
            "total_topics": topic_count,
            "free_topic_slots": self.topic_slots - topic_count,
            "total_subscriptions": total_subscriptions,
            "distinct_subscribers": len(distinct),
            "wildcard_subscribers": len(self.wildcard.live_subscribers()),
            "average_subscribers_per_topic": (
                total_subscriptions / topic_count if topic_count > 0 else 0
            ),
        }

    def to_dict(self) -> dict[str, list[str]]:
        """Convert the registry contents to a dictionary of topic -> endpoints."""
        data = {}
        for topic in self.get_topics():
            data[topic] = sorted(str(sub) for sub in self.get_subscribers(topic))

        return data

    def to_string(self) -> str:
        """Returns a string representation of the registry."""
        return json.dumps(self.to_dict(), indent=4)

    def export(self, filepath: Union[str, os.PathLike]) -> None:
        """Export registry contents to filepath."""
        with open(filepath, "w") as outfile:
            json.dump(self.to_dict(), outfile, indent=4)
