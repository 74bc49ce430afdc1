"""
Heartbeat monitor: periodic liveness probing and eviction of dead connections.
"""

import asyncio
import contextlib
from typing import Optional

from api.shared.errors import TransportError
from api.shared.logger import get_logger

from .manager import Connection, ConnectionRegistry

logger = get_logger(__name__)


class HeartbeatMonitor:
    """
    Probes every connection on a fixed period and evicts silent ones.

    A connection is evicted when its transport is no longer open, or when no
    liveness signal arrived within ``timeout`` seconds; in the latter case
    the transport is terminated first. Probes do not wait for the reply: the
    reply reaches the registry through ``touch``.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        interval: float = 15.0,
        timeout: float = 30.0,
    ):
        self._registry = registry
        self.interval = interval
        self.timeout = timeout
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the periodic task on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel the periodic task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Heartbeat sweep failed")

    async def sweep(self) -> int:
        """
        Run one heartbeat tick over every registered connection.

        Returns:
            Number of connections removed during this tick
        """
        now = self._registry.clock()
        removed = 0
        pending = []

        for connection in self._registry.connections():
            if not connection.transport.is_open:
                self._registry.unregister(connection.id)
                removed += 1
            elif now - connection.last_seen > self.timeout:
                logger.info("Client %s failed heartbeat check, disconnecting", connection.id)
                self._registry.unregister(connection.id)
                pending.append(self._terminate(connection))
                removed += 1
            else:
                pending.append(self._probe(connection))

        await asyncio.gather(*pending)
        return removed

    async def _probe(self, connection: Connection) -> None:
        # A send stuck longer than one period is abandoned; the silence
        # timeout evicts the connection on a later tick.
        try:
            await asyncio.wait_for(connection.transport.ping(), self.interval)
        except asyncio.TimeoutError:
            logger.warning("Heartbeat probe timed out for client %s", connection.id)
        except TransportError as e:
            logger.warning("Heartbeat probe failed for client %s: %s", connection.id, e)

    async def _terminate(self, connection: Connection) -> None:
        try:
            await asyncio.wait_for(connection.transport.terminate(), self.interval)
        except asyncio.TimeoutError:
            logger.warning("Timed out terminating client %s", connection.id)
        except TransportError as e:
            logger.warning("Error terminating client %s: %s", connection.id, e)
