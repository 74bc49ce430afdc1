"""
Synthetic sensor and vessel readings served on request over the real-time channel.
"""

from typing import Any, Dict

import numpy as np

from .manager import utc_timestamp

# Research station off the Mangalore coast
STATION_LOCATION = {"lat": 12.9716, "lng": 74.7965}
VESSEL_NAME = "FORV Sagar Sampada"


def _jitter(rng: np.random.Generator, center: float, spread: float) -> float:
    """Uniform value in [center - spread/2, center + spread/2)."""
    return float(center + (rng.random() - 0.5) * spread)


def environmental_reading(rng: np.random.Generator) -> Dict[str, Any]:
    """Latest water-quality reading at the station."""
    return {
        "temperature": _jitter(rng, 23.4, 0.5),
        "salinity": _jitter(rng, 35.2, 0.2),
        "ph": _jitter(rng, 8.1, 0.1),
        "dissolvedOxygen": _jitter(rng, 6.5, 0.5),
        "chlorophyllA": _jitter(rng, 0.89, 0.1),
        "timestamp": utc_timestamp(),
        "location": dict(STATION_LOCATION),
    }


def vessel_position() -> Dict[str, Any]:
    """Current position and activity of the research vessel."""
    return {
        "vessel": VESSEL_NAME,
        "position": dict(STATION_LOCATION),
        "depth": 2847,
        "status": "sampling",
        "timestamp": utc_timestamp(),
    }
