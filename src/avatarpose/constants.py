"""Shared constants and paths for avatarpose."""

import math
from pathlib import Path

# Package paths
PACKAGE_ROOT = Path(__file__).parent
CONFIG_DIR = PACKAGE_ROOT / "config"
RIG_MAP_CONFIG_DIR = CONFIG_DIR / "rig_maps"

# Coordinate convention: Y-up, +Z = character forward.
UP_AXIS = 1
FORWARD = (0.0, 0.0, 1.0)

# Default rig naming
SOURCE_HIPS_BONE = "mixamorigHips"
TARGET_HIPS_BONE = "hips"
DEFAULT_SOURCE_CLIP = "mixamo.com"
DEFAULT_RIG_MAP = "mixamo_vrm.json"

# Target skeleton format generations. "0" is the legacy convention that is
# mirrored along X and Z relative to the current one.
LEGACY_FORMAT_VERSION = "0"
CURRENT_FORMAT_VERSION = "1"

# Animation defaults
TARGET_FPS = 60
MAX_DELTA_TIME = 0.1  # Clamp dt to avoid large jumps

# Playback defaults
DEFAULT_FADE_DURATION = 0.5
IDLE_DWELL_MIN = 5.0
IDLE_DWELL_MAX = 30.0
TIME_SCALE_MAX = 2.0

# Gaze limits (radians)
GAZE_YAW_MAX = math.pi * 0.5    # 90 degrees
GAZE_PITCH_MAX = math.pi * 0.4  # 72 degrees
