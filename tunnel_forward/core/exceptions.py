"""
Exception hierarchy for the tunnel forwarder.

Only construction-time and bind-time failures surface to callers as
exceptions; failures inside a single forwarding pipeline are logged by the
engine and never raised.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCode(Enum):
    """Error codes carried by every TunnelError."""
    UNKNOWN_ERROR = 10000
    CONFIG_ERROR = 10001
    UNSUPPORTED_PROTOCOL = 10002
    REGISTRATION_ERROR = 10003
    START_ERROR = 10004


class TunnelError(Exception):
    """Base error for the tunnel forwarder."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Any] = None
    ):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)


class ConfigurationError(TunnelError, ValueError):
    """Invalid endpoint string or tunnel configuration."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(ErrorCode.CONFIG_ERROR, message, details)


class UnsupportedProtocolError(TunnelError):
    """No tunnel factory is registered for the requested protocol."""

    def __init__(self, protocol: str, details: Any = None):
        self.protocol = protocol
        super().__init__(
            ErrorCode.UNSUPPORTED_PROTOCOL,
            f"not supported tunnel protocol: {protocol}",
            details
        )


class RegistrationError(TunnelError):
    """A tunnel factory could not be registered."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(ErrorCode.REGISTRATION_ERROR, message, details)


class TunnelStartError(TunnelError):
    """The tunnel failed to bind its local listener."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(ErrorCode.START_ERROR, message, details)
