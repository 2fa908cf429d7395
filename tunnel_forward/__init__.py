"""
Tunnel Forward - forward local TCP connections through an authenticated intermediary.

A tunnel listens on a local port and carries every accepted connection
through a secure channel (SSH) to a final destination host and port.
"""

__version__ = "0.1.0"

# Public API exports
from .application.fast_start import fast_start_tunnel
from .application.registry import TunnelFactoryRegistry, get_default_registry
from .core.domain.config import TunnelConfig, build_tunnel_config
from .core.domain.endpoints import Endpoint, parse_endpoint
from .core.exceptions import (
    ConfigurationError, ErrorCode, RegistrationError, TunnelError,
    TunnelStartError, UnsupportedProtocolError
)
from .core.interfaces.tunnel import ITunnel, TunnelState

__all__ = [
    "fast_start_tunnel",
    "TunnelFactoryRegistry",
    "get_default_registry",
    "TunnelConfig",
    "build_tunnel_config",
    "Endpoint",
    "parse_endpoint",
    "ConfigurationError",
    "ErrorCode",
    "RegistrationError",
    "TunnelError",
    "TunnelStartError",
    "UnsupportedProtocolError",
    "ITunnel",
    "TunnelState",
]
