"""
Persistent view-state records: one framing choice per image.

Only the view-state numbers are persisted, never preview pixels.  Each
record also carries the image's natural dimensions, validated on lookup to
guard against a replaced source.  Saving is always an explicit call; the
interactive surface debounces it.

The on-disk format uses a versioned envelope::

    {
        "version": 1,
        "images": {
            "<image id>": {
                "natural_w": 4000,
                "natural_h": 3000,
                "last_used": "2026-02-10T14:30:00+00:00",
                "view": {"pan": {"x": 0.0, "y": 0.0}, "zoom": 1.0, ...}
            }
        }
    }
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from print_crop.config import config_dir
from print_crop.models import SourceImage, ViewState

logger = logging.getLogger(__name__)

_STORE_FILENAME = "view_states.json"
_STORE_VERSION = 1


def _store_path() -> Path:
    return config_dir() / _STORE_FILENAME


# =============================================================================
# Load / Save
# =============================================================================
def load_view_states(path: Path | None = None) -> dict:
    """
    Load the view-state records from disk.

    Returns the ``images`` dict from the versioned envelope, or an empty
    dict if the file is missing, corrupt, or has an unexpected version.
    """
    path = path or _store_path()

    if not path.exists():
        logger.debug("No view-state store found at %s — starting fresh", path)
        return {}

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read view-state store (%s) — starting fresh", exc)
        return {}

    if not isinstance(raw, dict) or raw.get("version") != _STORE_VERSION:
        logger.warning("View-state store version mismatch or invalid format — starting fresh")
        return {}

    images = raw.get("images")
    if not isinstance(images, dict):
        logger.warning("View-state store missing 'images' dict — starting fresh")
        return {}

    logger.info("Loaded %d view state(s) from %s", len(images), path)
    return images


def save_view_states(records: dict, path: Path | None = None) -> None:
    """Write the records (as returned by ``load_view_states``) to disk."""
    envelope = {"version": _STORE_VERSION, "images": records}
    path = path or _store_path()
    try:
        path.write_text(json.dumps(envelope, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug("Saved view-state store (%d entries) to %s", len(records), path)
    except OSError as exc:
        logger.error("Could not write view-state store to %s: %s", path, exc)


# =============================================================================
# Lookup / Store
# =============================================================================
def lookup_view(records: dict, image_id: str, source: SourceImage) -> ViewState | None:
    """
    Return the stored ViewState for *image_id*.

    Returns ``None`` on miss, on a natural-dimension mismatch, or if the
    record is malformed.
    """
    entry = records.get(image_id)
    if not isinstance(entry, dict):
        return None

    if entry.get("natural_w") != source.natural_width or entry.get("natural_h") != source.natural_height:
        logger.debug(
            "View-state dimension mismatch for %s: stored %sx%s, actual %sx%s — ignoring",
            image_id, entry.get("natural_w"), entry.get("natural_h"),
            source.natural_width, source.natural_height,
        )
        return None

    view = entry.get("view")
    if not isinstance(view, dict):
        return None
    try:
        return ViewState.from_dict(view)
    except (TypeError, ValueError, AttributeError) as exc:
        logger.warning("Malformed view state for %s (%s) — ignoring", image_id, exc)
        return None


def store_view(records: dict, image_id: str, source: SourceImage, view: ViewState) -> None:
    """Upsert one image's record into the in-memory store."""
    records[image_id] = {
        "natural_w": source.natural_width,
        "natural_h": source.natural_height,
        "last_used": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "view": view.to_dict(),
    }


def natural_size(records: dict, image_id: str) -> tuple[int, int] | None:
    """Recorded natural dimensions for *image_id*, if known."""
    entry = records.get(image_id)
    if not isinstance(entry, dict):
        return None
    w, h = entry.get("natural_w"), entry.get("natural_h")
    if isinstance(w, int) and isinstance(h, int):
        return w, h
    return None
