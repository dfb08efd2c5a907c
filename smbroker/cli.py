"""
Console entry points for the broker and its clients.

    smb-broker [--host HOST] [--port PORT]
    smb-publish BROKER TOPIC MESSAGE
    smb-publish-periodic BROKER TOPIC [--interval SECONDS]
    smb-subscribe BROKER TOPIC

Every program exits with 0 on success and 1 on a wrong call pattern, an
invalid topic or message, an unresolvable broker, or a transport error.
"""

import argparse
import logging
import signal
import sys
from typing import Any
from typing import NoReturn
from typing import Optional
from typing import Sequence

from smbroker import constants
from smbroker import errors
from smbroker import server
from smbroker.client import BrokerClient
from smbroker.client import ClientError
from smbroker.client import publish_periodically
from smbroker.client import resolve
from smbroker.client import subscription
from smbroker.config import BrokerConfig


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser reporting a wrong call pattern with exit status 1."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(EXIT_FAILURE, f"Invalid call pattern. {self.prog}: error: {message}\n")


def configure_logging(config: BrokerConfig) -> None:
    """Send log records to stderr, and to config.log_file when set."""
    log_handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.log_file:
        log_handlers.append(logging.FileHandler(config.log_file))

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format=LOG_FORMAT,
        handlers=log_handlers,
        force=True,
    )


def _fail(prog: str, error: Exception) -> int:
    print(f"{prog}: {error}", file=sys.stderr)
    return EXIT_FAILURE


def _client_parser(prog: str, description: str, config: BrokerConfig) -> _ArgumentParser:
    parser = _ArgumentParser(prog=prog, description=description)
    parser.add_argument("broker", help="host name or IP address of the broker")
    parser.add_argument("topic")
    parser.add_argument(
        "--port",
        type=int,
        default=config.port,
        help=f"broker port (default: {config.port}, env SMB_PORT)",
    )
    return parser


# -----Broker------------------------------------------------------------------


def broker_main(argv: Optional[Sequence[str]] = None) -> int:
    env_config = BrokerConfig.from_env()

    parser = _ArgumentParser(
        prog="smb-broker",
        description="Forward published messages to the subscribers of their topic.",
    )
    parser.add_argument("--host", help=f"bind address (default: {env_config.host})")
    parser.add_argument("--port", type=int, help=f"port (default: {env_config.port})")
    parser.add_argument("--topic-slots", type=int)
    parser.add_argument("--subscriber-slots", type=int)
    parser.add_argument("--log-level")
    parser.add_argument("--log-file")
    args = parser.parse_args(argv)

    config = env_config.override(
        host=args.host,
        port=args.port,
        topic_slots=args.topic_slots,
        subscriber_slots=args.subscriber_slots,
        log_level=args.log_level.upper() if args.log_level else None,
        log_file=args.log_file,
    )
    configure_logging(config)

    try:
        server.run(config)
    except (OSError, ValueError) as e:
        logger.error(f"Broker could not start on {config.host}:{config.port}: {e}")
        return EXIT_FAILURE

    return EXIT_OK


# -----Publishers--------------------------------------------------------------


def publish_main(argv: Optional[Sequence[str]] = None) -> int:
    config = BrokerConfig.from_env()
    parser = _client_parser("smb-publish", "Publish one message to a topic.", config)
    parser.add_argument("message")
    args = parser.parse_args(argv)
    configure_logging(config)

    try:
        with BrokerClient(resolve(args.broker, args.port)) as client:
            client.publish(args.topic, args.message)
    except (errors.BrokerError, ClientError) as e:
        return _fail(parser.prog, e)

    return EXIT_OK


def publish_periodic_main(argv: Optional[Sequence[str]] = None) -> int:
    config = BrokerConfig.from_env()
    parser = _client_parser(
        "smb-publish-periodic",
        "Publish the current Unix timestamp to a topic at a fixed interval.",
        config,
    )
    parser.add_argument(
        "--interval", type=float, default=constants.DEFAULT_PUBLISH_INTERVAL
    )
    parser.add_argument(
        "--count", type=int, default=None, help="stop after this many messages"
    )
    args = parser.parse_args(argv)
    configure_logging(config)

    try:
        with BrokerClient(resolve(args.broker, args.port)) as client:
            publish_periodically(client, args.topic, args.interval, args.count)
    except (errors.BrokerError, ClientError) as e:
        return _fail(parser.prog, e)
    except KeyboardInterrupt:
        pass

    return EXIT_OK


# -----Subscriber--------------------------------------------------------------


def _exit_on_signal(signum: int, _: Any) -> NoReturn:
    logger.debug(f"Received signal {signum}, shutting down")
    raise SystemExit(EXIT_OK)


def subscribe_main(argv: Optional[Sequence[str]] = None) -> int:
    config = BrokerConfig.from_env()
    parser = _client_parser(
        "smb-subscribe", "Subscribe to a topic and print every message.", config
    )
    args = parser.parse_args(argv)
    configure_logging(config)

    previous = signal.signal(signal.SIGTERM, _exit_on_signal)
    try:
        with BrokerClient(resolve(args.broker, args.port)) as client:
            with subscription(client, args.topic):
                for message in client.messages():
                    print(message, flush=True)
    except (errors.BrokerError, ClientError) as e:
        return _fail(parser.prog, e)
    except KeyboardInterrupt:
        pass
    finally:
        signal.signal(signal.SIGTERM, previous)

    return EXIT_OK
