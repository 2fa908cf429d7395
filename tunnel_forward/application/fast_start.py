"""
Fast-start helper.

Looks up the tunnel factory, builds the tunnel, schedules ``start`` and
waits until the local listener is ready.
"""

import asyncio
from typing import Optional

from loguru import logger

from ..core.domain.config import TunnelConfig
from ..core.exceptions import TunnelStartError
from ..core.interfaces.tunnel import ITunnel
from .registry import TunnelFactoryRegistry, get_default_registry


async def fast_start_tunnel(
    config: TunnelConfig,
    registry: Optional[TunnelFactoryRegistry] = None
) -> ITunnel:
    """
    Start a tunnel and wait for its listener.

    The caller owns the returned tunnel and must ``stop()`` it to release
    its connections.

    Args:
        config: Tunnel configuration
        registry: Factory registry, the process-wide one by default

    Returns:
        The running tunnel

    Raises:
        UnsupportedProtocolError: If no factory handles ``config.protocol``
        ConfigurationError: If the factory rejects the configuration
        TunnelStartError: If the local listener could not be bound or the
            start task failed before reporting
    """
    registry = registry or get_default_registry()
    factory = registry.lookup(config.protocol)

    tunnel = factory(config)

    ready: "asyncio.Future[bool]" = asyncio.get_running_loop().create_future()
    start_task = asyncio.create_task(tunnel.start(ready))

    await asyncio.wait({ready, start_task}, return_when=asyncio.FIRST_COMPLETED)
    if not ready.done():
        # start returned or raised without reporting the bind outcome
        error = start_task.exception()
        raise TunnelStartError(
            f"failed to start {tunnel.get_name()} tunnel at "
            f"{tunnel.get_local_endpoint()}: {error!r}"
        ) from error

    if not ready.result():
        await start_task
        raise TunnelStartError(
            f"failed to start {tunnel.get_name()} tunnel at {tunnel.get_local_endpoint()}"
        )

    logger.info(f"Tunnel {tunnel.get_name()} ready: "
                f"{tunnel.get_local_endpoint()} -> {tunnel.get_remote_endpoint()}")
    return tunnel
