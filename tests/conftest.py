"""
Shared fixtures for tunnel tests.

The engine is exercised against a local echo server. SSH sessions are
replaced by FakeSSHConnection, which opens plain TCP connections where
asyncssh would open direct-tcpip channels.
"""

import asyncio
import socket
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional, Tuple

import asyncssh
import pytest
from asyncssh.constants import OPEN_CONNECT_FAILED
from loguru import logger

from tunnel_forward.infrastructure.tunnels.ssh.tunnel import SSHTunnel

LOOPBACK = "127.0.0.1"


def unused_port() -> int:
    """Ask the OS for a currently free TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((LOOPBACK, 0))
        return sock.getsockname()[1]


class EchoServer:
    """TCP server echoing everything back until the client half-closes."""

    def __init__(self, close_immediately: bytes = b"") -> None:
        self.host = LOOPBACK
        self.port = 0
        self.connections = 0
        self.received: List[bytes] = []
        self._close_immediately = close_immediately
        self._server: Optional[asyncio.AbstractServer] = None

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle, self.host, 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        if self._server is not None:
            self._server.close()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.connections += 1
        if self._close_immediately:
            writer.write(self._close_immediately)
            await writer.drain()
            writer.close()
            return

        chunks = bytearray()
        try:
            while True:
                data = await reader.read(65536)
                if not data:
                    break
                chunks.extend(data)
                writer.write(data)
                await writer.drain()
        except ConnectionError:
            pass
        finally:
            self.received.append(bytes(chunks))
            writer.close()


class _BrokenReader:
    """Reader whose first read fails like a reset connection."""

    async def read(self, n: int = -1) -> bytes:
        raise ConnectionResetError("Connection reset by peer")


class FakeSSHConnection:
    """Stand-in for asyncssh.SSHClientConnection."""

    def __init__(self, kwargs: Dict[str, Any], fail_dial: bool = False, broken_reads: bool = False):
        self.kwargs = kwargs
        self.fail_dial = fail_dial
        self.broken_reads = broken_reads
        self.dials: List[Tuple[str, int]] = []
        self.channels: List[asyncio.StreamWriter] = []
        self.close_calls = 0
        self._closed = False

    async def open_connection(self, host: str, port: int) -> Tuple[Any, asyncio.StreamWriter]:
        if self.fail_dial:
            raise asyncssh.ChannelOpenError(OPEN_CONNECT_FAILED, "Connection refused")
        self.dials.append((host, port))
        reader, writer = await asyncio.open_connection(LOOPBACK, port)
        self.channels.append(writer)
        if self.broken_reads:
            return _BrokenReader(), writer
        return reader, writer

    def close(self) -> None:
        self.close_calls += 1
        self._closed = True
        for channel in self.channels:
            channel.close()

    def is_closed(self) -> bool:
        return self._closed


class FakeConnector:
    """Replacement for asyncssh.connect recording every session it opens."""

    def __init__(self) -> None:
        self.connections: List[FakeSSHConnection] = []
        self.fail_connect: Optional[BaseException] = None
        self.fail_dial = False
        self.broken_reads = False
        self.handshake_delay = 0.0

    async def __call__(self, **kwargs: Any) -> FakeSSHConnection:
        if self.handshake_delay:
            await asyncio.sleep(self.handshake_delay)
        if self.fail_connect is not None:
            raise self.fail_connect
        conn = FakeSSHConnection(kwargs, self.fail_dial, self.broken_reads)
        self.connections.append(conn)
        return conn


@pytest.fixture
def fake_ssh(monkeypatch: pytest.MonkeyPatch) -> FakeConnector:
    """Route asyncssh.connect to a FakeConnector."""
    connector = FakeConnector()
    monkeypatch.setattr(asyncssh, "connect", connector)
    return connector


@pytest.fixture
async def echo_server() -> AsyncGenerator[EchoServer, None]:
    server = EchoServer()
    await server.start()
    yield server
    await server.stop()


@pytest.fixture
async def closing_server() -> AsyncGenerator[EchoServer, None]:
    """Server that sends a greeting and closes first."""
    server = EchoServer(close_immediately=b"bye")
    await server.start()
    yield server
    await server.stop()


@pytest.fixture
def log_records() -> Any:
    """Capture loguru records emitted during the test."""
    records: List[Dict[str, Any]] = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)


def make_tunnel(server: EchoServer, **overrides: Any) -> SSHTunnel:
    kwargs: Dict[str, Any] = dict(
        name="SSH",
        server_host="ssh.example.test",
        server_port=22,
        remote_host=server.host,
        remote_port=server.port,
        username="tester",
        password="secret",
        listen_host=LOOPBACK,
        local_port=unused_port(),
    )
    kwargs.update(overrides)
    return SSHTunnel(**kwargs)


async def start_tunnel(tunnel: SSHTunnel) -> bool:
    ready: "asyncio.Future[bool]" = asyncio.get_running_loop().create_future()
    asyncio.create_task(tunnel.start(ready))
    return await asyncio.wait_for(ready, timeout=5)


@pytest.fixture
async def tunnel(echo_server: EchoServer, fake_ssh: FakeConnector) -> AsyncGenerator[SSHTunnel, None]:
    """A started tunnel forwarding to the echo server."""
    instance = make_tunnel(echo_server)
    assert await start_tunnel(instance)
    yield instance
    instance.stop()
    await asyncio.wait_for(instance.wait_stopped(), timeout=5)


async def round_trip(port: int, payload: bytes, timeout: float = 10.0) -> bytes:
    """Send ``payload`` through the tunnel, half-close and read until EOF."""
    reader, writer = await asyncio.open_connection(LOOPBACK, port)

    async def send() -> None:
        writer.write(payload)
        await writer.drain()
        writer.write_eof()

    try:
        received, _ = await asyncio.wait_for(asyncio.gather(reader.read(), send()), timeout)
    finally:
        writer.close()
    return received


def error_messages(records: List[Dict[str, Any]]) -> List[str]:
    return [r["message"] for r in records if r["level"].name == "ERROR"]


async def eventually(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    """Poll ``predicate`` until it holds or fail after ``timeout`` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)
