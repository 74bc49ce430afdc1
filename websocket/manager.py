"""
Connection registry for the ocean platform real-time channel.

Tracks every live connection together with its topic subscriptions and the
time it last showed a sign of life. Each entry exclusively owns its
transport; the broadcast hub and the heartbeat monitor reach transports only
through the registry.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

import orjson

from api.shared.errors import TransportError
from api.shared.logger import get_logger

from .transport import Transport

logger = get_logger(__name__)

# Subscribing to this topic receives every topic-scoped broadcast.
WILDCARD_TOPIC = "all"


class MessageType(str, Enum):
    """Types of outbound real-time events."""

    # Connection lifecycle
    CONNECTION = "connection"
    SUBSCRIPTION_CONFIRMED = "subscription_confirmed"
    PING = "ping"
    PONG = "pong"

    # Data feeds
    ENVIRONMENTAL_DATA = "environmental_data"
    VESSEL_UPDATE = "vessel_update"
    SPECIES_IDENTIFICATION = "species_identification"
    PREDICTION = "prediction"
    ALERT = "alert"
    SYSTEM_STATUS = "system_status"

    # Training simulation
    TRAINING_UPDATE = "training_update"
    TRAINING_COMPLETE = "training_complete"
    TRAINING_STOPPED = "training_stopped"

    UNKNOWN = "unknown"


def utc_timestamp() -> str:
    """Current time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Event:
    """An outbound notification.

    The timestamp is assigned when the event object is built, which the hub
    does at emission time.
    """

    type: str
    data: Any = field(default_factory=dict)
    topic: Optional[str] = None
    timestamp: str = field(default_factory=utc_timestamp)

    def __post_init__(self):
        if isinstance(self.type, MessageType):
            self.type = self.type.value

    def to_json(self) -> str:
        """Serialize to the wire envelope (the topic is not part of it)."""
        return orjson.dumps({
            "type": self.type,
            "data": self.data,
            "timestamp": self.timestamp,
        }, option=orjson.OPT_SERIALIZE_NUMPY).decode()


@dataclass
class Connection:
    """One live real-time session."""

    id: str
    transport: Transport
    subscriptions: Set[str] = field(default_factory=set)
    last_seen: float = 0.0
    connected_at: str = field(default_factory=utc_timestamp)

    def wants(self, topic: Optional[str]) -> bool:
        """Whether a broadcast on ``topic`` should reach this connection."""
        if topic is None:
            return True
        return topic in self.subscriptions or WILDCARD_TOPIC in self.subscriptions

    async def send(self, event: Event) -> bool:
        """Deliver an event on this connection.

        Returns:
            True if sent, False if the transport is closed or the send failed
        """
        if not self.transport.is_open:
            return False
        try:
            await self.transport.send_text(event.to_json())
            return True
        except TransportError as e:
            logger.warning("Error sending %s to client %s: %s", event.type, self.id, e)
            return False


class ConnectionRegistry:
    """
    Registry of live connections keyed by connection id.

    All mutation happens on the event loop thread, so no locking is needed.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """Initialize the registry.

        Args:
            clock: Monotonic time source used for liveness timestamps
        """
        self._connections: Dict[str, Connection] = {}
        self.clock = clock

    def _generate_id(self) -> str:
        while True:
            candidate = f"client_{int(time.time() * 1000)}_{uuid.uuid4().hex[:7]}"
            if candidate not in self._connections:
                return candidate

    async def register(self, transport: Transport) -> str:
        """
        Register a newly accepted transport and greet it.

        Args:
            transport: The connection's transport, owned by the registry from now on

        Returns:
            The new connection id
        """
        connection_id = self._generate_id()
        connection = Connection(
            id=connection_id,
            transport=transport,
            last_seen=self.clock(),
        )
        self._connections[connection_id] = connection
        logger.info(
            "WebSocket client connected: %s (%d total clients)",
            connection_id,
            len(self._connections),
        )

        await connection.send(Event(
            type=MessageType.CONNECTION,
            data={
                "clientId": connection_id,
                "message": "Connected to CMLRE Ocean Platform",
                "timestamp": utc_timestamp(),
            },
        ))
        return connection_id

    def unregister(self, connection_id: str) -> Optional[Connection]:
        """Remove a connection. Removing an unknown id is a no-op."""
        connection = self._connections.pop(connection_id, None)
        if connection is not None:
            logger.info(
                "WebSocket client disconnected: %s (%d total clients)",
                connection_id,
                len(self._connections),
            )
        return connection

    async def subscribe(self, connection_id: str, topics: Iterable[str]) -> Set[str]:
        """
        Add topics to a connection and confirm the full subscription set.

        Args:
            connection_id: Target connection
            topics: Topics to add

        Returns:
            The connection's subscriptions after the change (empty if absent)
        """
        connection = self._connections.get(connection_id)
        if connection is None:
            return set()

        connection.subscriptions.update(topics)
        await connection.send(Event(
            type=MessageType.SUBSCRIPTION_CONFIRMED,
            data={"channels": sorted(connection.subscriptions)},
        ))
        return set(connection.subscriptions)

    def unsubscribe(self, connection_id: str, topics: Iterable[str]) -> Set[str]:
        """Remove topics from a connection; unknown ids and topics are ignored."""
        connection = self._connections.get(connection_id)
        if connection is None:
            return set()
        connection.subscriptions.difference_update(topics)
        return set(connection.subscriptions)

    def touch(self, connection_id: str) -> None:
        """Record a liveness signal from the connection."""
        connection = self._connections.get(connection_id)
        if connection is not None:
            connection.last_seen = self.clock()

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def connections(self) -> List[Connection]:
        """Snapshot of the registered connections, safe to iterate while mutating."""
        return list(self._connections.values())

    def count(self) -> int:
        """Get the number of registered connections."""
        return len(self._connections)

    def subscriptions_of(self, connection_id: str) -> Set[str]:
        connection = self._connections.get(connection_id)
        return set(connection.subscriptions) if connection else set()

    async def close_all(self, code: int = 1000, reason: str = "Server shutting down") -> None:
        """Close every open transport and clear the registry."""
        connections = self.connections()
        self._connections.clear()

        async def _close(connection: Connection) -> None:
            if not connection.transport.is_open:
                return
            try:
                await connection.transport.close(code=code, reason=reason)
            except TransportError as e:
                logger.warning("Error closing client %s: %s", connection.id, e)

        await asyncio.gather(*(_close(c) for c in connections))
        logger.info("Closed %d WebSocket connections", len(connections))
