"""
Lifecycle interfaces shared by long-running components.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict


class IHealthCheckable(ABC):
    """A component that can report whether it is serving."""

    @abstractmethod
    async def check_health(self) -> Dict[str, Any]:
        """
        Report the component's health.

        Returns:
            ``{'healthy': bool, 'status': str, 'details': dict}``
        """
        pass
