"""
Tests for the fast-start helper.
"""

import asyncio
import socket

import pytest

from conftest import LOOPBACK, EchoServer, FakeConnector, round_trip, unused_port
from tunnel_forward.application.fast_start import fast_start_tunnel
from tunnel_forward.application.registry import TunnelFactoryRegistry
from tunnel_forward.core.domain.config import TunnelConfig, build_tunnel_config
from tunnel_forward.core.exceptions import (
    ConfigurationError, TunnelStartError, UnsupportedProtocolError
)
from tunnel_forward.core.interfaces.tunnel import TunnelState
from tunnel_forward.infrastructure.tunnels.ssh import SSHTunnel
from tunnel_forward.infrastructure.tunnels.ssh.tunnel import get_ssh_server_addr_and_port


def _registry_with_port(local_port: int) -> TunnelFactoryRegistry:
    """Registry whose SSH factory binds a known local port."""

    def factory(config: TunnelConfig) -> SSHTunnel:
        host, port = get_ssh_server_addr_and_port(config)
        return SSHTunnel(config.protocol, host, port, config.remote_addr, config.remote_port,
                         config.username, config.password, config.tunneled_protocol,
                         local_port=local_port)

    registry = TunnelFactoryRegistry()
    registry.register("SSH", factory)
    return registry


class TestFastStartTunnel:
    """Test fast_start_tunnel."""

    async def test_start(self, echo_server: EchoServer, fake_ssh: FakeConnector) -> None:
        """Test a tunnel is returned listening and forwarding."""
        port = unused_port()
        config = build_tunnel_config("SSH", "gw", f"{echo_server.host}:{echo_server.port}",
                                     "user", "pw")

        tunnel = await fast_start_tunnel(config, _registry_with_port(port))
        try:
            assert tunnel.state == TunnelState.LISTENING
            assert tunnel.get_local_endpoint() == f"http://127.0.0.1:{port}"
            assert await round_trip(port, b"ping") == b"ping"
        finally:
            tunnel.stop()
            await asyncio.wait_for(tunnel.wait_stopped(), timeout=5)

    async def test_unsupported_protocol(self) -> None:
        """Test an unknown protocol fails before anything is bound."""
        config = build_tunnel_config("VPN", "gw", "db:80", "user", "pw")

        with pytest.raises(UnsupportedProtocolError):
            await fast_start_tunnel(config, TunnelFactoryRegistry())

    async def test_factory_rejects_config(self) -> None:
        """Test configuration errors from the factory propagate."""
        config = build_tunnel_config("SSH", "gw:notaport", "db:80", "user", "pw")

        with pytest.raises(ConfigurationError):
            await fast_start_tunnel(config, _registry_with_port(unused_port()))

    async def test_bind_failure(self, fake_ssh: FakeConnector) -> None:
        """Test a failed bind raises TunnelStartError."""
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind((LOOPBACK, 0))
        blocker.listen()
        try:
            port = blocker.getsockname()[1]
            config = build_tunnel_config("SSH", "gw", "db:80", "user", "pw")

            with pytest.raises(TunnelStartError, match=f"127.0.0.1:{port}"):
                await fast_start_tunnel(config, _registry_with_port(port))
        finally:
            blocker.close()

    async def test_invalid_local_port(self) -> None:
        """Test an out-of-range local port fails construction instead of hanging."""
        config = build_tunnel_config("SSH", "gw", "db:80", "user", "pw")

        with pytest.raises(ConfigurationError, match="local port"):
            await asyncio.wait_for(
                fast_start_tunnel(config, _registry_with_port(70000)), timeout=5)

    async def test_start_raises_before_ready(self) -> None:
        """Test a start task failing without reporting readiness raises TunnelStartError."""

        class _BrokenTunnel(SSHTunnel):
            async def start(self, ready=None) -> None:
                raise OverflowError("bind(): port must be 0-65535.")

        registry = TunnelFactoryRegistry()
        registry.register("SSH", lambda config: _BrokenTunnel(
            "SSH", "gw", 22, "db", 80, "user", "pw", local_port=unused_port()))
        config = build_tunnel_config("SSH", "gw", "db:80", "user", "pw")

        with pytest.raises(TunnelStartError, match="OverflowError") as exc_info:
            await asyncio.wait_for(fast_start_tunnel(config, registry), timeout=5)
        assert isinstance(exc_info.value.__cause__, OverflowError)
