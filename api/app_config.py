"""
Application settings for the ocean platform backend.

Settings are resolved in this order (later wins):
1. Built-in defaults (see AppSettings)
2. settings.json inside the app config folder
3. OCEAN_* environment variables

The app config folder location is:
1. OCEAN_CONFIG environment variable, if set
2. The platform-specific user config directory (via platformdirs)
"""

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import platformdirs

from .shared.logger import get_logger

logger = get_logger(__name__)

APP_NAME = "ocean-platform"
APP_AUTHOR = "cmlre"
_SETTINGS_FILE_NAME = "settings.json"
_ENV_PREFIX = "OCEAN_"


@dataclass
class AppSettings:
    """Runtime settings for the real-time layer and the training simulator."""

    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"

    # Heartbeat: probe period and the silence window after which a
    # connection is evicted.
    heartbeat_interval: float = 15.0
    heartbeat_timeout: float = 30.0

    # Simulated training timing
    epoch_duration: float = 120.0
    validation_delay: float = 5.0

    # Seed for the shared random generator; None draws fresh entropy.
    random_seed: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppSettings":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning("Ignoring unknown settings keys: %s", ", ".join(sorted(unknown)))
        return cls(**{k: v for k, v in data.items() if k in known})


def get_config_dir() -> Path:
    """Get the app config folder following priority order."""
    env_config = os.environ.get("OCEAN_CONFIG")
    if env_config:
        return Path(env_config)
    return Path(platformdirs.user_config_dir(APP_NAME, APP_AUTHOR))


def _coerce(name: str, raw: str, template: Any) -> Any:
    """Convert an environment string to the type of the default value."""
    if template is None:
        # Only random_seed defaults to None
        if raw.strip().lower() in ("", "none"):
            return None
        template = 0
    try:
        if isinstance(template, bool):
            return raw.strip().lower() in ("1", "true", "yes", "on")
        if isinstance(template, int):
            return int(raw)
        if isinstance(template, float):
            return float(raw)
    except ValueError:
        raise ValueError(f"Invalid value for {_ENV_PREFIX}{name.upper()}: {raw!r}")
    return raw


def _read_settings_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Failed to read settings file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.error("Settings file %s must contain a JSON object", path)
        return {}
    return data


def load_settings(config_dir: Optional[Path] = None) -> AppSettings:
    """Load settings from defaults, the settings file and the environment.

    Args:
        config_dir: Override for the app config folder

    Returns:
        The resolved AppSettings

    Raises:
        ValueError: If an OCEAN_* variable cannot be converted
    """
    config_dir = config_dir or get_config_dir()
    values = AppSettings().to_dict()
    values.update(_read_settings_file(config_dir / _SETTINGS_FILE_NAME))

    defaults = AppSettings()
    for f in fields(AppSettings):
        raw = os.environ.get(f"{_ENV_PREFIX}{f.name.upper()}")
        if raw is not None:
            values[f.name] = _coerce(f.name, raw, getattr(defaults, f.name))

    return AppSettings.from_dict(values)
