"""
Reporting utilities for the message broker.

Provides the handler functions and type definitions the dispatcher uses to
report what happens while it serves requests. Event sinks receive a
human-readable line for every step of a request (received, rejected,
subscribed, forwarded, ...). Send failure handlers receive each forward that
could not be delivered.

Built-in handlers cover common patterns: logging (log_event,
log_send_failure), silently continuing (silent_event, silent_send_failure), and
collecting for batch processing or tests (collect_event, collect_send_failure).

Forwarding never stops on a failed send, so send failure handlers return
nothing.
"""

import logging
import sys
from typing import Callable

from smbroker.subscriber import Endpoint


logger = logging.getLogger(__name__)


EVENT_SINK = Callable[[str], None]
"""
Signature for event sinks.

Event sinks receive one human-readable line per broker event. They must not
depend on the format of the line.
"""

SEND_FAILURE_HANDLER = Callable[[Endpoint, bytes, Exception], None]
"""
Signature for send failure handlers.

Send failure handlers receive the endpoint a forward was addressed to, the
payload and the exception describing the failure.
"""


# -----Event Sinks-------------------------------------------------------------


def log_event(event: str) -> None:
    """Write broker events to the module logger."""
    logger.info(event)


def silent_event(_: str) -> None:
    """Silently drop all events."""


events_caught = []


def collect_event(event: str) -> None:
    """
    Collect events for later inspection.
    This appends events to smbroker.handlers.events_caught which is a list.
    """
    events_caught.append(event)


# -----Send Failure Handlers---------------------------------------------------


def log_send_failure(endpoint: Endpoint, payload: bytes, exception: Exception) -> None:
    """Log the failed forward and let the dispatcher continue."""
    logger.warning(
        f"Failed to forward message:\n"
        f"  Subscriber: {endpoint}\n"
        f"  Size:       {len(payload)} bytes\n"
        f"  Exception:  {exception.__class__.__name__}: {exception}"
    )


def silent_send_failure(_: Endpoint, __: bytes, ___: Exception) -> None:
    """Silently ignore all send failures."""


send_failures_caught = []


def collect_send_failure(
    endpoint: Endpoint, payload: bytes, exception: Exception
) -> None:
    """
    Collect send failures for batch processing.
    This appends failures to smbroker.handlers.send_failures_caught which is a
    list.
    Either manage the list manually or use this function as an example to
    create a more robust failure collector.
    """
    send_failures_caught.append(
        {
            "endpoint": str(endpoint),
            "payload": payload,
            "exception": f"{exception.__class__.__name__}: {exception}",
            "exc_info": sys.exc_info(),
        }
    )
