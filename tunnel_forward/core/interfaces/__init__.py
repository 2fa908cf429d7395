"""
Core interfaces defining the contracts for tunnel implementations.
"""

from .lifecycle import IHealthCheckable
from .tunnel import ITunnel, TunnelState

__all__ = [
    "IHealthCheckable",
    "ITunnel",
    "TunnelState",
]
