"""
Unit tests for environment driven broker configuration.
"""

import pytest

from smbroker import constants
from smbroker.config import BrokerConfig
from smbroker.config import getenv_int
from smbroker.config import getenv_str


def test_defaults_without_environment() -> None:
    """Test that an empty environment yields the documented defaults."""
    config = BrokerConfig.from_env({})

    assert config.host == "0.0.0.0"
    assert config.port == constants.DEFAULT_PORT
    assert config.topic_slots == constants.DEFAULT_TOPIC_SLOTS
    assert config.subscriber_slots == constants.DEFAULT_SUBSCRIBER_SLOTS
    assert config.log_level == "INFO"
    assert config.log_file is None


def test_values_from_environment() -> None:
    """Test that every SMB_* variable is picked up."""
    config = BrokerConfig.from_env(
        {
            "SMB_BIND_HOST": "127.0.0.1",
            "SMB_PORT": "9000",
            "SMB_TOPIC_SLOTS": "32",
            "SMB_SUBSCRIBER_SLOTS": "4",
            "SMB_LOG_LEVEL": "debug",
            "SMB_LOG_FILE": "/tmp/smb.log",
        }
    )

    assert config == BrokerConfig(
        host="127.0.0.1",
        port=9000,
        topic_slots=32,
        subscriber_slots=4,
        log_level="DEBUG",
        log_file="/tmp/smb.log",
    )


def test_invalid_integer_falls_back_to_default() -> None:
    """Test that a non-numeric value is ignored rather than fatal."""
    assert getenv_int("SMB_PORT", 8080, {"SMB_PORT": "eighty"}) == 8080
    assert getenv_int("SMB_PORT", 8080, {}) == 8080
    assert getenv_str("SMB_BIND_HOST", "0.0.0.0", {}) == "0.0.0.0"


def test_reads_process_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that os.environ is used when no mapping is given."""
    monkeypatch.setenv("SMB_PORT", "9100")

    assert BrokerConfig.from_env().port == 9100


def test_override_skips_none() -> None:
    """Test that unset command-line options keep the configured values."""
    config = BrokerConfig(port=9000)

    overridden = config.override(port=None, host="127.0.0.1")

    assert overridden.port == 9000
    assert overridden.host == "127.0.0.1"
