"""
Real-time module for the ocean platform.

Provides the connection registry, topic-filtered broadcasting, heartbeat
monitoring and client message dispatch behind the /ws endpoint.
"""

from .broadcast import FEED_TOPICS, TRAINING_TOPIC, BroadcastHub
from .handlers import MessageDispatcher, parse_message
from .heartbeat import HeartbeatMonitor
from .manager import (
    WILDCARD_TOPIC,
    Connection,
    ConnectionRegistry,
    Event,
    MessageType,
)
from .transport import StarletteTransport, Transport

__all__ = [
    "BroadcastHub",
    "Connection",
    "ConnectionRegistry",
    "Event",
    "FEED_TOPICS",
    "HeartbeatMonitor",
    "MessageDispatcher",
    "MessageType",
    "StarletteTransport",
    "TRAINING_TOPIC",
    "Transport",
    "WILDCARD_TOPIC",
    "parse_message",
]
