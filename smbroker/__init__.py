"""
# Simple Message Broker

A minimal publish/subscribe broker reachable over UDP.

Publishers send `PUB!<topic>!<message>` records, subscribers register with
`SUB!<topic>` and leave with `UNSUB!<topic>`. The broker forwards each
published message body, without persistence, to every subscriber of its topic
and to every subscriber of the wildcard topic `#`.

The topic registry is an ordinary object owned by whoever runs the broker and
handed to the dispatcher, there is no module level subscriber table.
"""

from smbroker import constants
from smbroker import errors
from smbroker import handlers
from smbroker.client import BrokerClient
from smbroker.client import ClientError
from smbroker.client import resolve
from smbroker.client import subscription
from smbroker.config import BrokerConfig
from smbroker.dispatcher import DispatchResult
from smbroker.dispatcher import Dispatcher
from smbroker.errors import BrokerError
from smbroker.errors import InvalidMessage
from smbroker.errors import InvalidTopic
from smbroker.errors import MalformedRequest
from smbroker.errors import RegistryFull
from smbroker.errors import SubscribersFull
from smbroker.errors import TransportSendFailure
from smbroker.registry import Outcome
from smbroker.registry import TopicEntry
from smbroker.registry import TopicRegistry
from smbroker.subscriber import EMPTY_ENDPOINT
from smbroker.subscriber import Endpoint


version_major = 1
version_minor = 0
version_patch = 0
__version__ = f"{version_major}.{version_minor}.{version_patch}"
