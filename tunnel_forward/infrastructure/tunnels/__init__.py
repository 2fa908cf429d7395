"""
Tunnel protocol implementations.
"""

from typing import TYPE_CHECKING

from .ssh import PROTOCOL_NAME as SSH_PROTOCOL_NAME, ssh_tunnel_factory

if TYPE_CHECKING:
    from ...application.registry import TunnelFactoryRegistry


def register_builtin_tunnels(registry: "TunnelFactoryRegistry") -> None:
    """Register every tunnel protocol shipped with the package."""
    registry.register(SSH_PROTOCOL_NAME, ssh_tunnel_factory)


__all__ = [
    "register_builtin_tunnels",
]
