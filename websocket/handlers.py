"""
Dispatch of client-to-server control messages.

Supported frames:
    {"type": "subscribe", "channels": ["alerts", ...]}
    {"type": "unsubscribe", "channels": ["alerts", ...]}
    {"type": "ping"}
    {"type": "pong"}
    {"type": "request_data", "data": {"type": "environmental_latest" | "vessel_position"}}

Malformed frames are logged and dropped; the sender gets no error back.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional

import numpy as np
import orjson

from api.shared.errors import MalformedMessage
from api.shared.logger import get_logger

from .broadcast import BroadcastHub
from .feeds import environmental_reading, vessel_position
from .manager import ConnectionRegistry, MessageType, utc_timestamp

logger = get_logger(__name__)

Handler = Callable[[str, Dict[str, Any]], Awaitable[None]]


def parse_message(text: str) -> Dict[str, Any]:
    """Parse a raw client frame.

    Raises:
        MalformedMessage: If the frame is not a JSON object with a string type
    """
    try:
        message = orjson.loads(text)
    except orjson.JSONDecodeError as e:
        raise MalformedMessage(f"Invalid JSON: {e}") from e

    if not isinstance(message, dict):
        raise MalformedMessage("Message must be a JSON object")
    if not isinstance(message.get("type"), str):
        raise MalformedMessage("Message is missing a string 'type' field")
    return message


def _channels(message: Dict[str, Any]) -> Optional[List[str]]:
    channels = message.get("channels")
    if not isinstance(channels, list):
        return None
    return [c for c in channels if isinstance(c, str)]


class MessageDispatcher:
    """Routes parsed client messages to handlers keyed by message type."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        hub: BroadcastHub,
        rng: Optional[np.random.Generator] = None,
    ):
        self._registry = registry
        self._hub = hub
        self._rng = rng if rng is not None else np.random.default_rng()
        self._handlers: Dict[str, Handler] = {
            "subscribe": self._handle_subscribe,
            "unsubscribe": self._handle_unsubscribe,
            "ping": self._handle_ping,
            "pong": self._handle_pong,
            "request_data": self._handle_data_request,
        }

    async def handle(self, connection_id: str, text: str) -> None:
        """Handle one raw frame received from a connection."""
        try:
            message = parse_message(text)
        except MalformedMessage as e:
            logger.warning("Error parsing message from client %s: %s", connection_id, e)
            return

        if self._registry.get(connection_id) is None:
            return

        handler = self._handlers.get(message["type"])
        if handler is None:
            logger.debug("Unknown message type from client %s: %s", connection_id, message["type"])
            return
        await handler(connection_id, message)

    async def _handle_subscribe(self, connection_id: str, message: Dict[str, Any]) -> None:
        channels = _channels(message)
        if channels is not None:
            await self._registry.subscribe(connection_id, channels)

    async def _handle_unsubscribe(self, connection_id: str, message: Dict[str, Any]) -> None:
        channels = _channels(message)
        if channels is not None:
            self._registry.unsubscribe(connection_id, channels)

    async def _handle_ping(self, connection_id: str, message: Dict[str, Any]) -> None:
        self._registry.touch(connection_id)
        await self._hub.send_to(connection_id, {
            "type": MessageType.PONG.value,
            "data": {"timestamp": utc_timestamp()},
        })

    async def _handle_pong(self, connection_id: str, message: Dict[str, Any]) -> None:
        self._registry.touch(connection_id)

    async def _handle_data_request(self, connection_id: str, message: Dict[str, Any]) -> None:
        request = message.get("data")
        kind = request.get("type") if isinstance(request, dict) else None

        if kind == "environmental_latest":
            await self._hub.send_to(connection_id, {
                "type": MessageType.ENVIRONMENTAL_DATA.value,
                "data": environmental_reading(self._rng),
            })
        elif kind == "vessel_position":
            await self._hub.send_to(connection_id, {
                "type": MessageType.VESSEL_UPDATE.value,
                "data": vessel_position(),
            })
        else:
            logger.debug("Ignoring data request %r from client %s", kind, connection_id)
