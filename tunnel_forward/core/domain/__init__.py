"""
Domain values: endpoints and tunnel configuration.
"""

from .config import TunnelConfig, build_tunnel_config
from .endpoints import (
    DEFAULT_PROTOCOL_PORTS, Endpoint, parse_endpoint,
    split_addr_and_port, split_tunneled_protocol
)

__all__ = [
    "TunnelConfig",
    "build_tunnel_config",
    "DEFAULT_PROTOCOL_PORTS",
    "Endpoint",
    "parse_endpoint",
    "split_addr_and_port",
    "split_tunneled_protocol",
]
