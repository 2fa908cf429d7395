"""
SSH tunnel: forwards local TCP connections through an SSH server.
"""

from .config import SSHChannelOptions
from .tunnel import (
    DEFAULT_SSH_PORT, MAX_LOCAL_PORT, MIN_LOCAL_PORT, PROTOCOL_NAME,
    SSHTunnel, ssh_tunnel_factory
)

__all__ = [
    "SSHChannelOptions",
    "SSHTunnel",
    "ssh_tunnel_factory",
    "DEFAULT_SSH_PORT",
    "MAX_LOCAL_PORT",
    "MIN_LOCAL_PORT",
    "PROTOCOL_NAME",
]
