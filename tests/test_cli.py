"""
Tests for the console entry points and their exit codes.
"""

import signal
import socket
from typing import Iterator

import pytest

from smbroker import cli
from smbroker import server
from smbroker.client import BrokerClient
from smbroker.config import BrokerConfig


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the entry points from replacing pytest's log handlers."""
    monkeypatch.setattr(cli, "configure_logging", lambda config: None)


@pytest.fixture
def fake_broker() -> Iterator[socket.socket]:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(2)
    yield sock
    sock.close()


def _port_of(sock: socket.socket) -> str:
    return str(sock.getsockname()[1])


@pytest.mark.parametrize(
    "main, argv",
    [
        (cli.publish_main, ["localhost", "weather"]),
        (cli.publish_main, ["localhost", "weather", "72F", "extra"]),
        (cli.publish_periodic_main, ["localhost"]),
        (cli.subscribe_main, []),
        (cli.subscribe_main, ["localhost", "weather", "extra"]),
    ],
)
def test_wrong_argument_count_exits_1(main, argv: list[str]) -> None:
    """Test that a wrong call pattern exits with status 1."""
    with pytest.raises(SystemExit) as exc_info:
        main(argv)

    assert exc_info.value.code == cli.EXIT_FAILURE


def test_publish(fake_broker: socket.socket) -> None:
    """Test that smb-publish sends one record and exits with 0."""
    status = cli.publish_main(
        ["127.0.0.1", "weather", "72F", "--port", _port_of(fake_broker)]
    )

    assert status == cli.EXIT_OK
    assert fake_broker.recvfrom(512)[0] == b"PUB!weather!72F"


@pytest.mark.parametrize(
    "topic, message",
    [("#", "72F"), ("wea#ther", "72F"), ("wea!ther", "72F"), ("weather", "7!2F")],
)
def test_publish_invalid_content_exits_1(
    topic: str, message: str, capsys: pytest.CaptureFixture
) -> None:
    """Test that invalid topics and messages exit with 1 and a diagnostic."""
    status = cli.publish_main(["127.0.0.1", topic, message])

    assert status == cli.EXIT_FAILURE
    assert "smb-publish:" in capsys.readouterr().err


def test_publish_unresolvable_broker_exits_1(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that an unresolvable broker exits with 1."""

    def fail(host: str) -> str:
        raise socket.gaierror(-2, "Name or service not known")

    monkeypatch.setattr(socket, "gethostbyname", fail)

    assert cli.publish_main(["broker.invalid", "weather", "72F"]) == cli.EXIT_FAILURE


def test_publish_periodic(fake_broker: socket.socket) -> None:
    """Test that smb-publish-periodic publishes timestamps."""
    status = cli.publish_periodic_main(
        [
            "127.0.0.1",
            "clock",
            "--port",
            _port_of(fake_broker),
            "--interval",
            "0",
            "--count",
            "2",
        ]
    )

    assert status == cli.EXIT_OK
    for _ in range(2):
        data = fake_broker.recvfrom(512)[0]
        assert data.startswith(b"PUB!clock!")
        assert data.split(b"!")[2].isdigit()


def test_publish_periodic_rejects_wildcard() -> None:
    """Test that the periodic publisher refuses wildcard topics."""
    assert cli.publish_periodic_main(["127.0.0.1", "#", "--count", "1"]) == 1


def test_subscribe_prints_and_unsubscribes(
    fake_broker: socket.socket,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture,
) -> None:
    """Test that smb-subscribe prints bodies and sends UNSUB when interrupted."""

    def messages(self: BrokerClient) -> Iterator[str]:
        yield "72F"
        yield "73F"
        raise KeyboardInterrupt

    monkeypatch.setattr(BrokerClient, "messages", messages)
    previous = signal.getsignal(signal.SIGTERM)

    status = cli.subscribe_main(["127.0.0.1", "weather", "--port", _port_of(fake_broker)])

    assert status == cli.EXIT_OK
    assert capsys.readouterr().out == "72F\n73F\n"
    assert fake_broker.recvfrom(512)[0] == b"SUB!weather"
    assert fake_broker.recvfrom(512)[0] == b"UNSUB!weather"
    assert signal.getsignal(signal.SIGTERM) is previous


def test_subscribe_unsubscribes_on_sigterm(
    fake_broker: socket.socket, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test that the SIGTERM handler leads to an UNSUB before exiting."""

    def messages(self: BrokerClient) -> Iterator[str]:
        handler = signal.getsignal(signal.SIGTERM)
        handler(signal.SIGTERM, None)
        yield "unreachable"

    monkeypatch.setattr(BrokerClient, "messages", messages)

    with pytest.raises(SystemExit) as exc_info:
        cli.subscribe_main(["127.0.0.1", "weather", "--port", _port_of(fake_broker)])

    assert exc_info.value.code == cli.EXIT_OK
    assert fake_broker.recvfrom(512)[0] == b"SUB!weather"
    assert fake_broker.recvfrom(512)[0] == b"UNSUB!weather"


def test_subscribe_invalid_topic_exits_1() -> None:
    """Test that subscribers may only use the wildcard as the entire topic."""
    assert cli.subscribe_main(["127.0.0.1", "wea#ther"]) == cli.EXIT_FAILURE


def test_broker_main_applies_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that flags override the environment before the broker runs."""
    monkeypatch.setenv("SMB_PORT", "9000")
    monkeypatch.setenv("SMB_TOPIC_SLOTS", "4")
    seen: list[BrokerConfig] = []
    monkeypatch.setattr(server, "run", seen.append)

    status = cli.broker_main(["--host", "127.0.0.1", "--subscriber-slots", "2"])

    assert status == cli.EXIT_OK
    assert seen == [
        BrokerConfig(host="127.0.0.1", port=9000, topic_slots=4, subscriber_slots=2)
    ]


def test_broker_main_bind_failure_exits_1(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that failing to bind the port is fatal with status 1."""

    def fail(config: BrokerConfig) -> None:
        raise OSError(98, "Address already in use")

    monkeypatch.setattr(server, "run", fail)

    assert cli.broker_main(["--port", "8080"]) == cli.EXIT_FAILURE
