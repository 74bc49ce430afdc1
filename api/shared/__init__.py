"""Shared helpers for the ocean platform backend."""

from .errors import MalformedMessage, NotFound, SimulationCancelled, TransportError
from .logger import get_logger, setup_logging

__all__ = [
    "get_logger",
    "setup_logging",
    "MalformedMessage",
    "NotFound",
    "SimulationCancelled",
    "TransportError",
]
