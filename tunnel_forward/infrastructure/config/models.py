"""
Configuration models and data structures.

This module defines the application configuration used by the command line
front end: which tunnel to open, SSH session options and logging settings.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

from ...core.domain.config import TunnelConfig, build_tunnel_config
from ...core.exceptions import ConfigurationError

VALID_LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    log_directory: str = "logs"
    max_file_size: str = "10 MB"
    backup_count: int = 5
    console_enabled: bool = True
    file_enabled: bool = False


@dataclass
class SSHOptionsConfig:
    """SSH session options applied to every tunnel connection."""
    connect_timeout: Optional[float] = 30.0
    login_timeout: Optional[float] = 30.0
    keepalive_interval: Optional[float] = None
    known_hosts_file: Optional[str] = None
    key_file: Optional[str] = None
    key_passphrase: Optional[str] = None

    def to_options(self) -> Dict[str, Any]:
        """Options mapping for TunnelConfig, without unset values."""
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass
class TunnelSettings:
    """Tunnel to open."""
    protocol: str = "SSH"
    endpoint: str = ""              # intermediary host[:port]
    destination: str = ""           # [carried://]host[:port]
    username: str = ""
    password: str = field(default="", repr=False)


@dataclass
class ApplicationConfig:
    """Main application configuration."""

    name: str = "Tunnel Forward"
    version: str = "0.1.0"
    debug: bool = False

    tunnel: TunnelSettings = field(default_factory=TunnelSettings)
    ssh: SSHOptionsConfig = field(default_factory=SSHOptionsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    config_file_path: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self._validate_logging()
        self._validate_timeouts()

    def _validate_logging(self) -> None:
        """Validate logging settings."""
        if self.logging.level.upper() not in VALID_LOG_LEVELS:
            raise ConfigurationError(
                f"Invalid log level {self.logging.level}, expected one of {', '.join(VALID_LOG_LEVELS)}")
        if self.logging.backup_count < 0:
            raise ConfigurationError(
                f"Log backup count must not be negative, got {self.logging.backup_count}")

    def _validate_timeouts(self) -> None:
        """Validate timeout values."""
        timeouts = [
            ("SSH connect timeout", self.ssh.connect_timeout),
            ("SSH login timeout", self.ssh.login_timeout),
            ("SSH keepalive interval", self.ssh.keepalive_interval),
        ]

        for name, timeout in timeouts:
            if timeout is not None and timeout <= 0:
                raise ConfigurationError(f"{name} must be positive, got {timeout}")

    def to_tunnel_config(self) -> TunnelConfig:
        """
        Build the TunnelConfig described by this configuration.

        Raises:
            ConfigurationError: If the tunnel section is incomplete or invalid
        """
        if not self.tunnel.endpoint:
            raise ConfigurationError("tunnel endpoint is required")
        if not self.tunnel.destination:
            raise ConfigurationError("tunnel destination is required")

        return build_tunnel_config(
            protocol=self.tunnel.protocol,
            tunnel_endpoint=self.tunnel.endpoint,
            dest_endpoint=self.tunnel.destination,
            username=self.tunnel.username,
            password=self.tunnel.password,
            options=self.ssh.to_options(),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ApplicationConfig':
        """Create configuration from dictionary."""
        try:
            tunnel_settings = TunnelSettings(**(data.get('tunnel') or {}))
            ssh_config = SSHOptionsConfig(**(data.get('ssh') or {}))
            logging_config = LoggingConfig(**(data.get('logging') or {}))
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration section: {e}") from e

        return cls(
            name=data.get('name', 'Tunnel Forward'),
            version=data.get('version', '0.1.0'),
            debug=data.get('debug', False),
            tunnel=tunnel_settings,
            ssh=ssh_config,
            logging=logging_config,
            config_file_path=data.get('config_file_path'),
        )
