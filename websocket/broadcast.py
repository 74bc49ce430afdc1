"""
Broadcast hub: topic-filtered fan-out and direct delivery.

Topic filtering is a set-membership test per connection per send rather than
a topic index. Connection counts are dashboard-sized, so a linear scan is
enough.
"""

import asyncio
from typing import Any, Dict, Optional

from api.shared.logger import get_logger

from .manager import ConnectionRegistry, Event, MessageType

logger = get_logger(__name__)


# Topic each data feed is published on
FEED_TOPICS: Dict[MessageType, str] = {
    MessageType.ENVIRONMENTAL_DATA: "environmental",
    MessageType.SPECIES_IDENTIFICATION: "species",
    MessageType.PREDICTION: "predictions",
    MessageType.VESSEL_UPDATE: "vessels",
    MessageType.ALERT: "alerts",
    MessageType.SYSTEM_STATUS: "system",
}

TRAINING_TOPIC = "training"


class BroadcastHub:
    """Delivers events to the connections held by a ConnectionRegistry."""

    def __init__(self, registry: ConnectionRegistry):
        self._registry = registry

    async def broadcast(
        self,
        type: str,
        payload: Any,
        topic: Optional[str] = None,
    ) -> int:
        """
        Broadcast an event to every connection interested in ``topic``.

        A connection receives the event when no topic is given, when it is
        subscribed to the topic, or when it is subscribed to ``all``. A failed
        send on one connection does not stop delivery to the others, and the
        failing connection is left for the close handler or the heartbeat.

        Args:
            type: Event type tag
            payload: Event data
            topic: Optional topic to filter on

        Returns:
            Number of connections the event was delivered to
        """
        event = Event(type=type, data=payload, topic=topic)
        targets = [c for c in self._registry.connections() if c.wants(topic)]
        results = await asyncio.gather(*(c.send(event) for c in targets))

        sent_count = sum(1 for ok in results if ok)
        logger.debug(
            "Broadcasted %s message to %d clients%s",
            event.type,
            sent_count,
            f" on channel {topic}" if topic else "",
        )
        return sent_count

    async def send_to(self, connection_id: str, message: Dict[str, Any]) -> bool:
        """
        Send a single event to one connection.

        Missing fields are filled in: type ``unknown``, empty data, and the
        current time.

        Args:
            connection_id: Target connection
            message: Partial event with optional ``type``, ``data`` and ``timestamp``

        Returns:
            True if delivered, False if the connection is absent, closed or failed
        """
        connection = self._registry.get(connection_id)
        if connection is None or not connection.transport.is_open:
            return False

        event = Event(
            type=message.get("type", MessageType.UNKNOWN),
            data=message.get("data", {}),
        )
        if "timestamp" in message:
            event.timestamp = message["timestamp"]
        return await connection.send(event)

    async def publish(self, kind: MessageType, payload: Any) -> int:
        """Broadcast a data-feed event on the topic registered for its kind."""
        topic = FEED_TOPICS.get(kind)
        if topic is None:
            raise ValueError(f"No feed topic for message type '{kind.value}'")
        return await self.broadcast(kind.value, payload, topic)
