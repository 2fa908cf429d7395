"""
Tunnel configuration value.

A TunnelConfig describes one tunnel: which tunnel protocol to use, where the
intermediary lives, how to authenticate, and the final destination reached
through it. It is built once and never mutated.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from ..exceptions import ConfigurationError
from .endpoints import DEFAULT_PROTOCOL, split_addr_and_port, split_tunneled_protocol


@dataclass(frozen=True)
class TunnelConfig:
    """Immutable tunnel configuration."""
    protocol: str                     # tunnel protocol, e.g. "SSH"
    tunnel_endpoint: str              # intermediary host[:port]
    username: str
    password: str = field(repr=False)
    remote_addr: str = ""             # final destination host
    remote_port: int = 0              # final destination port
    tunneled_protocol: str = DEFAULT_PROTOCOL
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate and freeze the configuration."""
        if not self.protocol:
            raise ConfigurationError("tunnel protocol is required")
        if not self.remote_addr:
            raise ConfigurationError("remote address is required")
        if not (1 <= self.remote_port <= 65535):
            raise ConfigurationError(
                f"remote port must be between 1 and 65535, got {self.remote_port}")
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))


def build_tunnel_config(
    protocol: str,
    tunnel_endpoint: str,
    dest_endpoint: str,
    username: str,
    password: str,
    options: Optional[Mapping[str, Any]] = None
) -> TunnelConfig:
    """
    Build a TunnelConfig from a destination endpoint string.

    Args:
        protocol: Tunnel protocol name
        tunnel_endpoint: Intermediary endpoint, ``host[:port]`` or a bare port
        dest_endpoint: Final destination, ``[carried://]host[:port]``
        username: Tunnel username
        password: Tunnel password
        options: Protocol specific options

    Returns:
        The tunnel configuration

    Raises:
        ConfigurationError: If the destination cannot be parsed
    """
    tunneled_protocol, remote_endpoint = split_tunneled_protocol(dest_endpoint)
    remote_addr, remote_port = split_addr_and_port(remote_endpoint, tunneled_protocol)
    return TunnelConfig(
        protocol=protocol,
        tunnel_endpoint=tunnel_endpoint,
        username=username,
        password=password,
        remote_addr=remote_addr,
        remote_port=remote_port,
        tunneled_protocol=tunneled_protocol,
        options=options or {},
    )
