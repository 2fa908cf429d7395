"""
Tunnel capability contract.

Every tunnel protocol implementation (SSH today) satisfies ITunnel so that
callers can start, stop and address a tunnel without knowing how the
secure channel is built.
"""

import asyncio
from abc import abstractmethod
from enum import Enum
from typing import Optional

from .lifecycle import IHealthCheckable


class TunnelState(Enum):
    """Lifecycle states of a tunnel."""
    CONSTRUCTED = "constructed"
    LISTENING = "listening"
    STOPPING = "stopping"
    STOPPED = "stopped"


class ITunnel(IHealthCheckable):
    """Interface for a running tunnel instance."""

    @abstractmethod
    def get_name(self) -> str:
        """Get the tunnel protocol name."""
        pass

    @abstractmethod
    async def start(self, ready: Optional["asyncio.Future[bool]"] = None) -> None:
        """
        Bind the local listener and serve until stopped.

        Must be scheduled as its own task. ``True`` is delivered on ``ready``
        once the listener is bound, ``False`` if binding failed; exactly one
        value is ever delivered.

        Args:
            ready: Future resolved with the bind outcome
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Close the listener and every tracked connection. Idempotent."""
        pass

    @abstractmethod
    async def wait_stopped(self) -> None:
        """Wait until the ``start`` task has returned."""
        pass

    @abstractmethod
    def get_local_endpoint(self) -> str:
        """Get the local endpoint URI, ``carried://host:port``."""
        pass

    @abstractmethod
    def get_remote_endpoint(self) -> str:
        """Get the final destination URI, ``carried://host:port``."""
        pass

    @property
    @abstractmethod
    def state(self) -> TunnelState:
        """Get the current lifecycle state."""
        pass
