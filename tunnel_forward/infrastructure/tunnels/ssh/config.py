"""
SSH channel options for the SSH tunnel.

This module turns tunnel credentials and protocol specific options into
asyncssh connection keyword arguments.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, List, Mapping, Optional

from ....core.exceptions import ConfigurationError


@dataclass
class SSHChannelOptions:
    """Options applied to every SSH session opened by a tunnel."""

    # Connection settings
    connect_timeout: Optional[float] = None
    login_timeout: Optional[float] = None
    keepalive_interval: Optional[float] = None
    client_version: str = "Tunnel_Forward_1.0"

    # Host key checking is disabled unless a known hosts file is given
    known_hosts_file: Optional[str] = None

    # Optional public key authentication in addition to the password
    key_file: Optional[str] = None
    key_passphrase: Optional[str] = None

    def __post_init__(self) -> None:
        """Post-initialization validation."""
        for name in ("connect_timeout", "login_timeout", "keepalive_interval"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}")

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "SSHChannelOptions":
        """Build options from a TunnelConfig options mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in options.items() if key in known})

    def to_asyncssh_kwargs(
        self,
        host: str,
        port: int,
        username: str,
        password: Optional[str]
    ) -> Dict[str, Any]:
        """Convert to asyncssh connection kwargs."""
        kwargs: Dict[str, Any] = {
            'host': host,
            'port': port,
            'username': username,
            'client_version': self.client_version,
            'known_hosts': self.known_hosts_file,
            'agent_path': None,
        }

        if password:
            kwargs['password'] = password

        client_keys: Optional[List[str]] = [self.key_file] if self.key_file else None
        kwargs['client_keys'] = client_keys
        if self.key_passphrase:
            kwargs['passphrase'] = self.key_passphrase

        if self.connect_timeout is not None:
            kwargs['connect_timeout'] = self.connect_timeout
        if self.login_timeout is not None:
            kwargs['login_timeout'] = self.login_timeout
        if self.keepalive_interval is not None:
            kwargs['keepalive_interval'] = self.keepalive_interval

        return kwargs
