"""
Application layer: factory registry and tunnel start-up helpers.
"""

from .fast_start import fast_start_tunnel
from .registry import TunnelFactory, TunnelFactoryRegistry, get_default_registry

__all__ = [
    "fast_start_tunnel",
    "TunnelFactory",
    "TunnelFactoryRegistry",
    "get_default_registry",
]
