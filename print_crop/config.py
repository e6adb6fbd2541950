"""
Application constants and configuration.

DEFAULT_FORMATS provides the built-in print catalog. A user catalog may be
loaded from formats.json via the formats module. All other constants bound
the view state, size the compositing steps, and tune the batch exporter.

The ``config_dir()`` helper returns the platform-appropriate config
directory and is shared by all persistence modules (formats, view store).
"""

import os
import sys
from pathlib import Path

# =============================================================================
# APP IDENTITY & CONFIG DIRECTORY
# =============================================================================
APP_NAME = "print-crop"


def config_dir() -> Path:
    """Return the platform-appropriate config directory, creating it if needed."""
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    directory = base / APP_NAME
    directory.mkdir(parents=True, exist_ok=True)
    return directory

# =============================================================================
# DEFAULT FORMATS — Built-in catalog when formats.json is missing or corrupt
# =============================================================================
# Aspect is stored as an integer pair (width:height of the physical print);
# output is the portrait raster size, re-oriented per photo at export time.
DEFAULT_FORMATS = [
    {"name": "10x15", "aliases": ["4x6"], "aspect_w": 10, "aspect_h": 15, "output_w": 1000, "output_h": 1500},
    {"name": "13x18", "aliases": ["5x7"], "aspect_w": 13, "aspect_h": 18, "output_w": 1300, "output_h": 1800},
    {"name": "15x20", "aliases": ["6x8"], "aspect_w": 15, "aspect_h": 20, "output_w": 1500, "output_h": 2000},
    {"name": "letter", "aliases": ["carta"], "aspect_w": 85, "aspect_h": 110, "output_w": 1275, "output_h": 1650},
    {"name": "A4", "aliases": [], "aspect_w": 210, "aspect_h": 297, "output_w": 1240, "output_h": 1754},
]

DEFAULT_FORMAT_NAME = "10x15"

# ---------------------------------------------------------------------------
# View-state bounds
# ---------------------------------------------------------------------------
PAN_MIN = -1.0
PAN_MAX = 1.0
ZOOM_MIN = 1.0
ZOOM_MAX = 4.0

# Quarter turns only
ROTATION_STEP = 90

# ---------------------------------------------------------------------------
# Compositing
# ---------------------------------------------------------------------------
# Border stroke as a fraction of the shorter output side
BORDER_RATIO = 0.025
BORDER_COLOR = (255, 255, 255)

# Sepia tone matrix (RGB -> RGB, 12-tuple for Image.convert)
SEPIA_MATRIX = (
    0.393, 0.769, 0.189, 0,
    0.349, 0.686, 0.168, 0,
    0.272, 0.534, 0.131, 0,
)

# JPEG export defaults
JPEG_QUALITY_DEFAULT = 95
JPEG_SUBSAMPLING_DEFAULT = 0  # 4:4:4

# ---------------------------------------------------------------------------
# Batch export
# ---------------------------------------------------------------------------
# Small fixed pool: every in-flight image holds a full-resolution buffer
EXPORT_WORKERS = 3

# Extra attempts for transient fetch/upload failures
EXPORT_RETRIES = 2
RETRY_BACKOFF_SECONDS = 0.5

# HTTP source fetch timeout (seconds)
FETCH_TIMEOUT = 30

# ---------------------------------------------------------------------------
# Interactive preview
# ---------------------------------------------------------------------------
PREVIEW_MAX_SIDE = 800

# Pan nudge per arrow key (normalized units)
NUDGE_SMALL = 0.02
NUDGE_LARGE = 0.1

# Zoom multiplier per wheel notch
ZOOM_WHEEL_STEP = 1.1

# Debounce before a settled view change is saved (milliseconds)
SAVE_DEBOUNCE_MS = 500
