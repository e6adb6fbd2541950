"""
Data models shared by the preview surface and the batch exporter.

SourceImage, PrintFormat and ViewState are the three inputs of the crop
computation; CropRect is its output and is never stored on its own.
ViewState is immutable and normalizes itself on construction, so every
instance holds values inside the declared bounds.  Only the view-state
numbers are ever persisted (see ``view_store``), never preview pixels.
"""

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum

from print_crop.config import (
    PAN_MIN, PAN_MAX, ZOOM_MIN, ZOOM_MAX, ROTATION_STEP,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Errors
# =============================================================================
class InvalidImageDimensions(ValueError):
    """Source image is missing a positive natural width or height."""

    def __init__(self, width, height):
        super().__init__(f"invalid image dimensions: {width!r}x{height!r}")
        self.width = width
        self.height = height


# =============================================================================
# Data classes
# =============================================================================
@dataclass(frozen=True)
class SourceImage:
    """Natural pixel dimensions of an original asset."""
    natural_width: int
    natural_height: int

    def validate(self) -> "SourceImage":
        """Raise InvalidImageDimensions unless both dimensions are positive."""
        w, h = self.natural_width, self.natural_height
        if not w or not h or w <= 0 or h <= 0:
            raise InvalidImageDimensions(w, h)
        return self

    @property
    def aspect(self) -> float:
        return self.natural_width / self.natural_height

    def oriented(self, rotation: int) -> "SourceImage":
        """Dimensions after a clockwise quarter-turn rotation."""
        if rotation % 180 == 90:
            return SourceImage(self.natural_height, self.natural_width)
        return self


@dataclass(frozen=True)
class PrintFormat:
    """One catalog entry: physical aspect and deliverable raster size."""
    name: str
    aspect_w: int
    aspect_h: int
    output_w: int
    output_h: int
    aliases: tuple = ()

    @property
    def nominal_aspect(self) -> float:
        """Width/height of the physical print as catalogued."""
        return self.aspect_w / self.aspect_h

    def output_size(self, effective_aspect: float) -> tuple[int, int]:
        """Output raster size oriented to match *effective_aspect*."""
        long_side = max(self.output_w, self.output_h)
        short_side = min(self.output_w, self.output_h)
        if effective_aspect > 1:
            return long_side, short_side
        if effective_aspect < 1:
            return short_side, long_side
        return self.output_w, self.output_h


@dataclass(frozen=True)
class CropRect:
    """Crop rectangle in (oriented) source-image pixel coordinates."""
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0

    def as_box(self) -> tuple[int, int, int, int]:
        """Pillow-style (left, upper, right, lower) box."""
        return self.x, self.y, self.x + self.width, self.y + self.height

    def scaled(self, sx: float, sy: float) -> "CropRect":
        """The same region in a resampled copy of the source (e.g. a preview proxy)."""
        return CropRect(
            int(math.floor(self.x * sx + 0.5)),
            int(math.floor(self.y * sy + 0.5)),
            max(1, int(math.floor(self.width * sx + 0.5))),
            max(1, int(math.floor(self.height * sy + 0.5))),
        )

    def clamped(self, img_w: int, img_h: int) -> "CropRect":
        """Clamp to image bounds."""
        w = max(1, min(self.width, img_w))
        h = max(1, min(self.height, img_h))
        x = max(0, min(self.x, img_w - w))
        y = max(0, min(self.y, img_h - h))
        return CropRect(x, y, w, h)

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


# =============================================================================
# View state
# =============================================================================
class ColorFilter(str, Enum):
    NONE = "none"
    GRAYSCALE = "grayscale"
    SEPIA = "sepia"

    @classmethod
    def parse(cls, value) -> "ColorFilter":
        """Parse a filter name, accepting the storefront's legacy names."""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.NONE
        key = str(value).strip().lower()
        key = _LEGACY_FILTER_NAMES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            logger.warning("Unknown color filter %r — using none", value)
            return cls.NONE


_LEGACY_FILTER_NAMES = {"ninguno": "none", "bn": "grayscale", "": "none"}


def _clamp(value: float, low: float, high: float, fallback: float) -> float:
    value = float(value)
    if math.isnan(value):
        return fallback
    return max(low, min(value, high))


def normalize_rotation(rotation) -> int:
    """Snap to the nearest clockwise quarter turn in [0, 360)."""
    quarter = int(math.floor(float(rotation) / ROTATION_STEP + 0.5))
    return (quarter % 4) * ROTATION_STEP


@dataclass(frozen=True)
class ViewState:
    """A user's framing choice for one image.

    ``pan_x``/``pan_y`` are normalized to [-1, 1] with 0 centered, ``zoom`` is
    in [1, 4] where 1 fully covers the target aspect.  Out-of-range values
    are clamped silently; NaN pan falls back to 0 and NaN zoom to 1.
    """
    pan_x: float = 0.0
    pan_y: float = 0.0
    zoom: float = 1.0
    rotation: int = 0
    flip: bool = False
    filter: ColorFilter = ColorFilter.NONE
    has_border: bool = False

    def __post_init__(self):
        object.__setattr__(self, "pan_x", _clamp(self.pan_x, PAN_MIN, PAN_MAX, 0.0))
        object.__setattr__(self, "pan_y", _clamp(self.pan_y, PAN_MIN, PAN_MAX, 0.0))
        object.__setattr__(self, "zoom", _clamp(self.zoom, ZOOM_MIN, ZOOM_MAX, ZOOM_MIN))
        object.__setattr__(self, "rotation", normalize_rotation(self.rotation))
        object.__setattr__(self, "flip", bool(self.flip))
        object.__setattr__(self, "filter", ColorFilter.parse(self.filter))
        object.__setattr__(self, "has_border", bool(self.has_border))

    def with_pan(self, pan_x: float, pan_y: float) -> "ViewState":
        return replace(self, pan_x=pan_x, pan_y=pan_y)

    def with_zoom(self, zoom: float) -> "ViewState":
        return replace(self, zoom=zoom)

    def rotated(self, quarter_turns: int = 1) -> "ViewState":
        """Rotate clockwise; pan is reset since the axes swap."""
        return replace(self, rotation=self.rotation + quarter_turns * ROTATION_STEP, pan_x=0.0, pan_y=0.0)

    # --- Serialization ---

    def to_dict(self) -> dict:
        """Plain structured data for the record store."""
        return {
            "pan": {"x": self.pan_x, "y": self.pan_y},
            "zoom": self.zoom,
            "rotation": self.rotation,
            "flip": self.flip,
            "filter": self.filter.value,
            "hasBorder": self.has_border,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "ViewState":
        """Build a ViewState from stored data; missing keys take defaults.

        Accepts the storefront's legacy keys (``imagePosition``,
        ``isFlipped``) alongside the current ones.
        """
        if not data:
            return cls()
        pan = data.get("pan") or data.get("imagePosition") or {}
        flip = data.get("flip", data.get("isFlipped", False))
        return cls(
            pan_x=pan.get("x", 0.0) or 0.0,
            pan_y=pan.get("y", 0.0) or 0.0,
            zoom=data.get("zoom", 1.0) or 1.0,
            rotation=data.get("rotation", 0) or 0,
            flip=flip,
            filter=data.get("filter"),
            has_border=data.get("hasBorder", False),
        )


# =============================================================================
# Package assignment
# =============================================================================
@dataclass(frozen=True)
class Assignment:
    """Link from one image to one package slot; selects the print format."""
    slot_id: str
    format_name: str
