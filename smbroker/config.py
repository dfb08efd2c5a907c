"""
Broker configuration read from the environment.

    SMB_BIND_HOST=127.0.0.1 SMB_PORT=9000 smb-broker

Command-line flags take precedence over the environment, see smbroker.cli.
"""

import os
from dataclasses import dataclass
from dataclasses import replace
from typing import Any
from typing import Mapping
from typing import Optional

from smbroker import constants


def getenv_str(name: str, default: str, environ: Optional[Mapping[str, str]] = None) -> str:
    environ = os.environ if environ is None else environ
    return environ.get(name, default)


def getenv_int(name: str, default: int, environ: Optional[Mapping[str, str]] = None) -> int:
    environ = os.environ if environ is None else environ
    try:
        return int(environ.get(name, str(default)))
    except ValueError:
        return default


@dataclass(frozen=True)
class BrokerConfig(object):
    """Settings of one broker process."""

    host: str = "0.0.0.0"
    """Address the broker binds to."""

    port: int = constants.DEFAULT_PORT
    """UDP port the broker listens on. Clients default to the same port."""

    topic_slots: int = constants.DEFAULT_TOPIC_SLOTS
    """Number of topic slots, the wildcard slot included."""

    subscriber_slots: int = constants.DEFAULT_SUBSCRIBER_SLOTS
    """Number of subscriber slots per topic."""

    log_level: str = "INFO"

    log_file: Optional[str] = None
    """Optional file receiving the log in addition to stderr."""

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BrokerConfig":
        """Build a config from SMB_* environment variables, using defaults for the rest."""
        return cls(
            host=getenv_str("SMB_BIND_HOST", cls.host, environ),
            port=getenv_int("SMB_PORT", cls.port, environ),
            topic_slots=getenv_int("SMB_TOPIC_SLOTS", cls.topic_slots, environ),
            subscriber_slots=getenv_int(
                "SMB_SUBSCRIBER_SLOTS", cls.subscriber_slots, environ
            ),
            log_level=getenv_str("SMB_LOG_LEVEL", cls.log_level, environ).upper(),
            log_file=getenv_str("SMB_LOG_FILE", "", environ) or None,
        )

    def override(self, **changes: Any) -> "BrokerConfig":
        """Return a copy with every change that is not None applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
