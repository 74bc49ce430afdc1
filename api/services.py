"""
Service container shared by the HTTP routes and the WebSocket endpoint.

One Services instance is built per application at startup and stored on
``app.state.services``; nothing here is a module-level singleton.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
from starlette.requests import HTTPConnection

from websocket import BroadcastHub, ConnectionRegistry, HeartbeatMonitor, MessageDispatcher

from .app_config import AppSettings
from .jobs import JobController
from .shared.logger import get_logger
from .store import InMemoryModelStore, ModelStore

logger = get_logger(__name__)


@dataclass
class Services:
    """Everything the real-time layer and the training jobs need."""

    settings: AppSettings
    registry: ConnectionRegistry
    hub: BroadcastHub
    heartbeat: HeartbeatMonitor
    dispatcher: MessageDispatcher
    store: ModelStore
    jobs: JobController

    async def start(self) -> None:
        self.heartbeat.start()
        logger.info(
            "Real-time services started (heartbeat every %ss, timeout %ss)",
            self.settings.heartbeat_interval,
            self.settings.heartbeat_timeout,
        )

    async def stop(self) -> None:
        await self.jobs.shutdown()
        await self.heartbeat.stop()
        await self.registry.close_all()
        logger.info("Real-time services shut down")


def build_services(settings: AppSettings, store: Optional[ModelStore] = None) -> Services:
    """Wire up the services for one application instance."""
    rng = np.random.default_rng(settings.random_seed)
    store = store if store is not None else InMemoryModelStore()
    registry = ConnectionRegistry()
    hub = BroadcastHub(registry)
    return Services(
        settings=settings,
        registry=registry,
        hub=hub,
        heartbeat=HeartbeatMonitor(
            registry,
            interval=settings.heartbeat_interval,
            timeout=settings.heartbeat_timeout,
        ),
        dispatcher=MessageDispatcher(registry, hub, rng=rng),
        store=store,
        jobs=JobController(
            hub,
            store,
            rng=rng,
            epoch_duration=settings.epoch_duration,
            validation_delay=settings.validation_delay,
        ),
    )


def get_services(connection: HTTPConnection) -> Services:
    """FastAPI dependency returning the app's Services (HTTP and WebSocket)."""
    return connection.app.state.services
