"""JSON config file loading utilities."""

import json
import logging
from pathlib import Path
from typing import Any

from avatarpose.constants import CONFIG_DIR, RIG_MAP_CONFIG_DIR

logger = logging.getLogger(__name__)


def load_json(path: Path) -> Any:
    """Load and return parsed JSON from a file."""
    with open(path) as f:
        return json.load(f)


def load_config(name: str) -> Any:
    """Load a config file from the packaged config/ directory."""
    return load_json(CONFIG_DIR / name)


def load_config_section(name: str, section: str) -> dict:
    """Load one top-level section of a config file.

    A missing file or section yields an empty dict so callers fall back to
    their built-in defaults.
    """
    try:
        cfg = load_config(name)
    except FileNotFoundError:
        logger.warning("Config %s not found, using defaults", name)
        return {}
    value = cfg.get(section, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section {name}:{section} must be an object")
    return value


def load_rig_map_config(name: str) -> dict[str, str]:
    """Load a rig map (source bone name → target bone name) from config/rig_maps/."""
    return load_json(RIG_MAP_CONFIG_DIR / name)


def save_json(path: Path, data: Any) -> Path:
    """Write ``data`` as indented JSON, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    return path
