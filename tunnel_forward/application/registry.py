"""
Tunnel factory registry.

Maps a tunnel protocol name to the factory that turns a TunnelConfig into a
runnable tunnel. Each tunnel implementation registers itself once at process
start; afterwards the registry is effectively read-only.
"""

import threading
from typing import Callable, Dict, FrozenSet, Optional

from loguru import logger

from ..core.domain.config import TunnelConfig
from ..core.exceptions import RegistrationError, UnsupportedProtocolError
from ..core.interfaces.tunnel import ITunnel

TunnelFactory = Callable[[TunnelConfig], ITunnel]


class TunnelFactoryRegistry:
    """
    Registry of tunnel factories keyed by protocol name.

    Protocol names are case-insensitive. Registration is guarded by a lock so
    that late registrations from plugins cannot race with lookups.
    """

    def __init__(self) -> None:
        self._factories: Dict[str, TunnelFactory] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _normalize(protocol: str) -> str:
        return protocol.strip().upper()

    def register(self, protocol: str, factory: TunnelFactory, replace: bool = False) -> None:
        """
        Register a tunnel factory.

        Args:
            protocol: Tunnel protocol name
            factory: Callable building a tunnel from a TunnelConfig
            replace: Allow overriding an existing registration

        Raises:
            RegistrationError: If the name is empty or already registered
        """
        name = self._normalize(protocol)
        if not name:
            raise RegistrationError("tunnel protocol name must not be empty")
        if not callable(factory):
            raise RegistrationError(f"factory for {name} is not callable")

        with self._lock:
            if name in self._factories and not replace:
                raise RegistrationError(f"tunnel protocol already registered: {name}")
            self._factories[name] = factory

        logger.debug(f"Registered tunnel factory: {name}")

    def lookup(self, protocol: str) -> TunnelFactory:
        """
        Look up the factory for a protocol.

        Raises:
            UnsupportedProtocolError: If nothing is registered under the name
        """
        with self._lock:
            factory = self._factories.get(self._normalize(protocol))
        if factory is None:
            raise UnsupportedProtocolError(protocol)
        return factory

    def list_registered_protocols(self) -> FrozenSet[str]:
        """Get the names of all registered protocols."""
        with self._lock:
            return frozenset(self._factories)

    def __contains__(self, protocol: object) -> bool:
        if not isinstance(protocol, str):
            return False
        with self._lock:
            return self._normalize(protocol) in self._factories


_default_registry: Optional[TunnelFactoryRegistry] = None
_default_registry_lock = threading.Lock()


def get_default_registry() -> TunnelFactoryRegistry:
    """
    Get the process-wide registry, populated with the built-in tunnels.

    The registry is created on first use and reused afterwards.
    """
    global _default_registry
    with _default_registry_lock:
        if _default_registry is None:
            from ..infrastructure.tunnels import register_builtin_tunnels

            registry = TunnelFactoryRegistry()
            register_builtin_tunnels(registry)
            _default_registry = registry
        return _default_registry
