"""
Configuration infrastructure.

This module provides configuration loading, validation and saving for the
command line front end.
"""

from .loader import ConfigLoader
from .models import ApplicationConfig, LoggingConfig, SSHOptionsConfig, TunnelSettings

__all__ = [
    "ConfigLoader",
    "ApplicationConfig",
    "LoggingConfig",
    "SSHOptionsConfig",
    "TunnelSettings",
]
