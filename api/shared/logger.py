"""
Centralized logging for the ocean platform backend.

Usage:
    from api.shared.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Client %s connected (%d total)", client_id, count)
    logger.warning("Malformed frame from %s: %s", client_id, err)
"""

import logging
import sys

_configured = False


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for the backend.

    Call once at startup (main.py). Subsequent calls are no-ops.
    """
    global _configured
    if _configured:
        return

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the given module name (typically ``__name__``)."""
    return logging.getLogger(name)
