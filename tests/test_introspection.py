"""
Unit tests for the registry inspection API.

Tests verify that introspection methods provide accurate information about
topics, subscribers, and registry state, and that the registry can be exported
as JSON.
"""

import json
from pathlib import Path

from smbroker.registry import TopicRegistry
from smbroker.subscriber import Endpoint


E1 = Endpoint("10.0.0.1", 5000)
E2 = Endpoint("10.0.0.2", 5000)


def _populated_registry() -> TopicRegistry:
    registry = TopicRegistry(topic_slots=5, subscriber_slots=3)
    registry.add_subscriber(registry.find_or_insert("weather"), E1)
    registry.add_subscriber(registry.find_or_insert("weather"), E2)
    registry.add_subscriber(registry.find_or_insert("traffic"), E1)
    registry.add_subscriber(registry.wildcard, E2)
    return registry


def test_get_topics() -> None:
    """Test getting all registered topics in sorted order."""
    registry = _populated_registry()

    assert registry.get_topics() == ["#", "traffic", "weather"]


def test_topic_exists() -> None:
    """Test checking if a topic exists."""
    registry = _populated_registry()

    assert registry.topic_exists("weather") is True
    assert registry.topic_exists("#") is True
    assert registry.topic_exists("nonexistent") is False


def test_get_subscriber_count() -> None:
    """Test counting subscribers for a topic."""
    registry = _populated_registry()

    assert registry.get_subscriber_count("weather") == 2
    assert registry.get_subscriber_count("traffic") == 1
    assert registry.get_subscriber_count("nonexistent") == 0


def test_is_subscribed() -> None:
    """Test checking if an endpoint is subscribed to a topic."""
    registry = _populated_registry()

    assert registry.is_subscribed(E1, "traffic") is True
    assert registry.is_subscribed(E2, "traffic") is False
    assert registry.is_subscribed(E1, "nonexistent") is False


def test_get_subscriptions() -> None:
    """Test getting all topics an endpoint is subscribed to."""
    registry = _populated_registry()

    assert registry.get_subscriptions(E1) == ["traffic", "weather"]
    assert registry.get_subscriptions(E2) == ["#", "weather"]
    assert registry.get_subscriptions(Endpoint("10.0.0.3", 5000)) == []


def test_get_topic_info() -> None:
    """Test getting detailed information about a topic."""
    registry = _populated_registry()

    info = registry.get_topic_info("weather")

    assert info is not None
    assert info["topic"] == "weather"
    assert info["is_wildcard"] is False
    assert info["subscriber_count"] == 2
    assert info["free_subscriber_slots"] == 1
    assert info["subscribers"] == ["10.0.0.1:5000", "10.0.0.2:5000"]

    wildcard_info = registry.get_topic_info("#")
    assert wildcard_info is not None
    assert wildcard_info["slot"] == 0
    assert wildcard_info["is_wildcard"] is True

    assert registry.get_topic_info("nonexistent") is None


def test_get_statistics() -> None:
    """Test getting overall registry statistics."""
    registry = _populated_registry()

    stats = registry.get_statistics()

    assert stats["topic_slots"] == 5
    assert stats["subscriber_slots"] == 3
    assert stats["total_topics"] == 3
    assert stats["free_topic_slots"] == 2
    assert stats["total_subscriptions"] == 4
    assert stats["distinct_subscribers"] == 2
    assert stats["wildcard_subscribers"] == 1


def test_statistics_of_empty_registry() -> None:
    """Test statistics of a registry holding only the idle wildcard topic."""
    stats = TopicRegistry().get_statistics()

    assert stats["total_topics"] == 1
    assert stats["total_subscriptions"] == 0
    assert stats["average_subscribers_per_topic"] == 0


def test_to_dict_and_to_string() -> None:
    """Test the dictionary and JSON representations."""
    registry = _populated_registry()

    data = registry.to_dict()

    assert data == {
        "#": ["10.0.0.2:5000"],
        "traffic": ["10.0.0.1:5000"],
        "weather": ["10.0.0.1:5000", "10.0.0.2:5000"],
    }
    assert json.loads(registry.to_string()) == data


def test_export_creates_valid_json_file(tmp_path: Path) -> None:
    """Test that export writes the registry contents as JSON."""
    registry = _populated_registry()

    output_file = tmp_path / "registry_export.json"
    registry.export(output_file)

    assert output_file.exists()
    with open(output_file) as f:
        assert json.load(f) == registry.to_dict()


def test_export_with_string_path(tmp_path: Path) -> None:
    """Test that export accepts a plain string path."""
    registry = _populated_registry()

    string_file = str(tmp_path / "string_export.json")
    registry.export(string_file)

    assert Path(string_file).exists()
