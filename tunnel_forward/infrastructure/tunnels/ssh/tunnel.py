"""
SSH tunnel implementation.

The SSH tunnel listens on a random local port. Every accepted connection
gets its own forwarding pipeline: an SSH session to the intermediary, a
direct-tcpip channel from there to the final destination, and two copy
tasks moving bytes in each direction. All connections are tracked so that
``stop()`` can release them in one pass.
"""

import asyncio
import random
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import asyncssh
from loguru import logger

from ....core.domain.config import TunnelConfig
from ....core.domain.endpoints import PROTOCOL_SEPARATOR, split_addr_and_port
from ....core.exceptions import ConfigurationError
from ....core.interfaces.tunnel import ITunnel, TunnelState
from .config import SSHChannelOptions

PROTOCOL_NAME = "SSH"
DEFAULT_SSH_PORT = 22

LOCAL_LISTEN_HOST = "127.0.0.1"
MIN_LOCAL_PORT = 50000
MAX_LOCAL_PORT = 65000

COPY_CHUNK_SIZE = 32 * 1024

# Failures that abort a single forwarding pipeline
PIPELINE_ERRORS = (OSError, asyncssh.Error, asyncio.TimeoutError)


def get_random_listening_port() -> int:
    """Pick a local port in [MIN_LOCAL_PORT, MAX_LOCAL_PORT)."""
    return random.randrange(MIN_LOCAL_PORT, MAX_LOCAL_PORT)


def get_relative_remote_addr(ssh_server_addr: str, remote_addr: str) -> str:
    """The destination is dialed as localhost when it lives on the SSH server itself."""
    if ssh_server_addr == remote_addr:
        return "localhost"
    return remote_addr


def get_ssh_server_addr_and_port(config: TunnelConfig) -> Tuple[str, int]:
    """
    Resolve the SSH server address from the tunnel endpoint.

    A bare port number means the SSH server runs on the destination host.
    Otherwise the endpoint is ``[ssh://]host[:port]`` with port 22 by default.
    """
    endpoint = config.tunnel_endpoint.strip()
    if endpoint.isdigit():
        port = int(endpoint)
        if not (1 <= port <= 65535):
            raise ConfigurationError(f"port must be between 1 and 65535, got {port}")
        return config.remote_addr, port

    _, separator, rest = endpoint.partition(PROTOCOL_SEPARATOR)
    if separator:
        endpoint = rest
    return split_addr_and_port(endpoint, PROTOCOL_NAME.lower(), default_port=DEFAULT_SSH_PORT)


class _TrackedResources:
    """Connections opened by a tunnel. Only drained by shutdown."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._local_conns: List[asyncio.StreamWriter] = []
        self._ssh_conns: List[asyncssh.SSHClientConnection] = []
        self._remote_conns: List[asyncssh.SSHWriter] = []

    def add_local(self, conn: asyncio.StreamWriter) -> None:
        with self._lock:
            self._local_conns.append(conn)

    def add_ssh(self, conn: asyncssh.SSHClientConnection) -> None:
        with self._lock:
            self._ssh_conns.append(conn)

    def add_remote(self, conn: asyncssh.SSHWriter) -> None:
        with self._lock:
            self._remote_conns.append(conn)

    def snapshot(self) -> Tuple[List[Any], List[Any], List[Any]]:
        with self._lock:
            return list(self._local_conns), list(self._ssh_conns), list(self._remote_conns)

    def counts(self) -> Dict[str, int]:
        local_conns, ssh_conns, remote_conns = self.snapshot()
        return {
            'local_connections': len(local_conns),
            'ssh_sessions': len(ssh_conns),
            'remote_connections': len(remote_conns),
            'open_local_connections': sum(1 for c in local_conns if not c.is_closing()),
            'open_ssh_sessions': sum(1 for c in ssh_conns if not c.is_closed()),
            'open_remote_connections': sum(1 for c in remote_conns if not c.is_closing()),
        }


@dataclass
class _Pipeline:
    """The connection triple owned by one forwarding pipeline."""
    local_conn: asyncio.StreamWriter
    ssh_conn: Optional[asyncssh.SSHClientConnection] = None
    remote_conn: Optional[asyncssh.SSHWriter] = None
    torn_down: bool = False

    def close(self) -> None:
        self.torn_down = True
        self.local_conn.close()
        if self.remote_conn is not None:
            self.remote_conn.close()
        if self.ssh_conn is not None:
            self.ssh_conn.close()


def _notify(ready: Optional["asyncio.Future[bool]"], value: bool) -> None:
    if ready is not None and not ready.done():
        ready.set_result(value)


class SSHTunnel(ITunnel):
    """
    Tunnel forwarding local TCP connections through SSH.

    ``start`` must run as its own task; it returns once the listener has been
    closed by ``stop`` or binding failed. ``stop`` is synchronous and must be
    called from the event loop thread.
    """

    def __init__(
        self,
        name: str,
        server_host: str,
        server_port: int,
        remote_host: str,
        remote_port: int,
        username: str,
        password: str,
        tunneled_protocol: str = "http",
        options: Optional[SSHChannelOptions] = None,
        listen_host: str = LOCAL_LISTEN_HOST,
        local_port: Optional[int] = None,
        chunk_size: int = COPY_CHUNK_SIZE
    ):
        """
        Initialize SSH tunnel.

        Args:
            name: Tunnel name, the tunnel protocol by default
            server_host: SSH server host
            server_port: SSH server port
            remote_host: Final destination host, as seen from the SSH server
            remote_port: Final destination port
            username: SSH username
            password: SSH password
            tunneled_protocol: Carried protocol, used for endpoint URIs only
            options: SSH channel options
            listen_host: Local listen host
            local_port: Local listen port, random in [50000, 65000) if omitted
            chunk_size: Copy buffer size in bytes

        Raises:
            ConfigurationError: If ``local_port`` is outside 1..65535
        """
        if local_port is not None and not (1 <= local_port <= 65535):
            raise ConfigurationError(
                f"local port must be between 1 and 65535, got {local_port}")

        self._name = name
        self._username = username
        self._password = password
        self._tunneled_protocol = tunneled_protocol
        self._options = options or SSHChannelOptions()
        self._listen_host = listen_host
        self._local_port = local_port if local_port is not None else get_random_listening_port()
        self._server_host = server_host
        self._server_port = server_port
        self._remote_host = remote_host
        self._remote_port = remote_port
        self._chunk_size = chunk_size

        self._resources = _TrackedResources()
        self._shutdown_requested = threading.Event()
        self._closed = threading.Event()
        self._stop_lock = threading.Lock()
        self._server: Optional[asyncio.AbstractServer] = None
        self._serve_task: Optional["asyncio.Task[Any]"] = None
        self._listening = False

    @property
    def local_port(self) -> int:
        return self._local_port

    @property
    def local_address(self) -> str:
        return f"{self._listen_host}:{self._local_port}"

    @property
    def server_address(self) -> str:
        return f"{self._server_host}:{self._server_port}"

    @property
    def remote_address(self) -> str:
        return f"{self._remote_host}:{self._remote_port}"

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown_requested.is_set()

    @property
    def is_closed(self) -> bool:
        return self._closed.is_set()

    @property
    def state(self) -> TunnelState:
        if self._shutdown_requested.is_set():
            return TunnelState.STOPPED if self._closed.is_set() else TunnelState.STOPPING
        return TunnelState.LISTENING if self._listening else TunnelState.CONSTRUCTED

    def get_name(self) -> str:
        return self._name

    def get_local_endpoint(self) -> str:
        return f"{self._tunneled_protocol}://{self.local_address}"

    def get_remote_endpoint(self) -> str:
        return f"{self._tunneled_protocol}://{self.remote_address}"

    async def start(self, ready: Optional["asyncio.Future[bool]"] = None) -> None:
        """Bind the local listener, then serve until stopped."""
        if self._serve_task is not None:
            logger.warning(f"Tunnel {self._name} already started")
            _notify(ready, False)
            return
        self._serve_task = asyncio.current_task()

        logger.info(f"Starting local tunnel endpoint at {self.local_address}")
        logger.info(f"Setting server tunnel endpoint at {self.server_address}")
        logger.info(f"Setting remote endpoint at {self.remote_address}")

        if self._shutdown_requested.is_set():
            _notify(ready, False)
            return

        try:
            server = await asyncio.start_server(
                self._handle_local_connection, self._listen_host, self._local_port
            )
        except OSError as e:
            logger.error(f"[!] Error setting SSH tunnel listener: {e}")
            _notify(ready, False)
            return

        if self._shutdown_requested.is_set():
            server.close()
            await server.wait_closed()
            _notify(ready, False)
            return

        self._server = server
        self._listening = True
        _notify(ready, True)
        logger.info("[*] Listening on local tunnel endpoint")

        try:
            await server.wait_closed()
        finally:
            self._listening = False
            server.close()
        logger.info(f"Local tunnel endpoint {self.local_address} closed")

    async def wait_stopped(self) -> None:
        """Wait for the ``start`` task to return."""
        task = self._serve_task
        if task is None or task is asyncio.current_task():
            return
        await asyncio.wait({task})

    def stop(self) -> None:
        """Close the listener and every tracked connection."""
        with self._stop_lock:
            already_requested = self._shutdown_requested.is_set()
            self._shutdown_requested.set()

        if already_requested:
            self._closed.set()
            return

        logger.info("Closing connections established by tunnel")
        if self._server is not None:
            self._server.close()

        local_conns, ssh_conns, remote_conns = self._resources.snapshot()
        for conn in local_conns:
            conn.close()
        for conn in ssh_conns:
            conn.close()
        for conn in remote_conns:
            conn.close()

        self._closed.set()

    async def check_health(self) -> Dict[str, Any]:
        state = self.state
        return {
            'healthy': state == TunnelState.LISTENING,
            'status': state.value,
            'details': {
                'name': self._name,
                'local_endpoint': self.get_local_endpoint(),
                'server_endpoint': self.server_address,
                'remote_endpoint': self.get_remote_endpoint(),
                'shutdown_requested': self.shutdown_requested,
                'closed': self.is_closed,
                **self._resources.counts(),
            }
        }

    async def _handle_local_connection(
        self,
        local_reader: asyncio.StreamReader,
        local_writer: asyncio.StreamWriter
    ) -> None:
        logger.info("[*] Accepted connection on local SSH tunnel endpoint")
        self._resources.add_local(local_writer)
        if self._shutdown_requested.is_set():
            local_writer.close()
            return
        await self._forward_connection(local_reader, local_writer)

    async def _forward_connection(
        self,
        local_reader: asyncio.StreamReader,
        local_writer: asyncio.StreamWriter
    ) -> None:
        """Run one forwarding pipeline. Its connections are closed on every exit path."""
        pipeline = _Pipeline(local_writer)
        try:
            logger.info("[*] Forwarding connection to server")
            try:
                ssh_conn = await self._connect_to_server()
            except PIPELINE_ERRORS as e:
                logger.error(f"[!] Error connecting to server SSH endpoint: {e}")
                return

            pipeline.ssh_conn = ssh_conn
            self._resources.add_ssh(ssh_conn)
            if self._shutdown_requested.is_set():
                return

            logger.info("[*] Connecting to final endpoint through SSH tunnel")
            try:
                remote_reader, remote_writer = await ssh_conn.open_connection(
                    self._remote_host, self._remote_port
                )
            except PIPELINE_ERRORS as e:
                logger.error(f"[!] Error connecting to remote endpoint: {e}")
                return

            pipeline.remote_conn = remote_writer
            self._resources.add_remote(remote_writer)
            if self._shutdown_requested.is_set():
                return

            logger.info("[*] Opened remote connection through tunnel, start forward traffic")
            await asyncio.gather(
                self._copy(pipeline, local_reader, remote_writer),
                self._copy(pipeline, remote_reader, local_writer, close_on_eof=True),
            )
        finally:
            pipeline.close()

    async def _copy(
        self,
        pipeline: _Pipeline,
        reader: Any,
        writer: Any,
        close_on_eof: bool = False
    ) -> None:
        """
        Copy ``reader`` into ``writer`` until EOF.

        At EOF the whole pipeline is closed when ``close_on_eof`` is set,
        otherwise only ``writer`` is half-closed.
        """
        try:
            while True:
                data = await reader.read(self._chunk_size)
                if not data:
                    break
                writer.write(data)
                await writer.drain()

            if close_on_eof:
                pipeline.close()
            elif not pipeline.torn_down and writer.can_write_eof():
                writer.write_eof()
        except PIPELINE_ERRORS as e:
            if self._shutdown_requested.is_set() or pipeline.torn_down:
                logger.debug(f"Forwarding ended by tunnel shutdown: {e}")
            else:
                logger.error(f"[!] I/O copy error when forwarding through tunnel: {e}")
            pipeline.close()
            self._closed.set()

    async def _connect_to_server(self) -> asyncssh.SSHClientConnection:
        kwargs = self._options.to_asyncssh_kwargs(
            self._server_host, self._server_port, self._username, self._password
        )
        return await asyncssh.connect(**kwargs)


def ssh_tunnel_factory(config: TunnelConfig) -> SSHTunnel:
    """
    Build an SSH tunnel from a tunnel configuration.

    Raises:
        ConfigurationError: If the tunnel endpoint or options are invalid
    """
    server_host, server_port = get_ssh_server_addr_and_port(config)
    return SSHTunnel(
        name=config.protocol,
        server_host=server_host,
        server_port=server_port,
        remote_host=get_relative_remote_addr(server_host, config.remote_addr),
        remote_port=config.remote_port,
        username=config.username,
        password=config.password,
        tunneled_protocol=config.tunneled_protocol,
        options=SSHChannelOptions.from_mapping(config.options),
    )
