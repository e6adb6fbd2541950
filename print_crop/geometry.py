"""
Print-crop geometry: view state -> crop rectangle in source pixels.

This is the only place crop math lives.  The interactive preview and the
batch exporter both call ``compute_crop``; nothing else may re-derive the
pan/zoom mapping.  Every function here is pure (no I/O, no hidden state).

Pipeline::

    resolve_aspect   nominal format aspect -> effective aspect (orientation follows the photo)
    fit_viewport     largest centered window of that aspect inside the source (zoom = 1)
    map_pan_zoom     shrink the window by zoom, shift it by the normalized pan

Rounding is round-half-up throughout so results match the interactive
surface regardless of Python's banker's rounding.
"""

import math
from dataclasses import dataclass

from print_crop.config import PAN_MIN, PAN_MAX, ZOOM_MIN, ZOOM_MAX
from print_crop.models import CropRect, InvalidImageDimensions, PrintFormat, SourceImage, ViewState


@dataclass(frozen=True)
class Viewport:
    """Cover-fit window at zoom = 1, centered in the source."""
    width: int
    height: int


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


# =============================================================================
# AspectResolver
# =============================================================================
def resolve_aspect(natural_w: int, natural_h: int, nominal_aspect: float) -> float:
    """Return the effective target aspect for a source of the given size.

    The nominal aspect is inverted when the photo and the format disagree on
    orientation, so a portrait format never forces a portrait window onto a
    landscape photo.  Square photos and square formats keep the nominal value.
    """
    if not natural_w or not natural_h or natural_w <= 0 or natural_h <= 0:
        raise InvalidImageDimensions(natural_w, natural_h)
    image_aspect = natural_w / natural_h
    if (image_aspect > 1 and nominal_aspect < 1) or (image_aspect < 1 and nominal_aspect > 1):
        return 1 / nominal_aspect
    return nominal_aspect


# =============================================================================
# ViewportFitter
# =============================================================================
def fit_viewport(natural_w: int, natural_h: int, effective_aspect: float) -> Viewport:
    """Largest rectangle of *effective_aspect* that fits inside the source."""
    # Try full width
    width = natural_w
    height = round_half_up(width / effective_aspect)
    if height > natural_h:
        # Full height
        height = natural_h
        width = round_half_up(height * effective_aspect)
    return Viewport(max(1, min(width, natural_w)), max(1, min(height, natural_h)))


# =============================================================================
# PanZoomMapper
# =============================================================================
def map_pan_zoom(
    viewport: Viewport,
    natural_w: int,
    natural_h: int,
    pan_x: float,
    pan_y: float,
    zoom: float,
) -> CropRect:
    """Translate normalized pan and zoom into a crop rectangle.

    Zoom shrinks the crop window (``viewport / zoom``).  Pan moves the shrunk
    window inside the viewport: ``+1`` is flush with the viewport's left/top
    edge and ``-1`` with its right/bottom edge.  The final clamp only absorbs
    rounding overshoot; pan and zoom are expected to be in bounds already.
    """
    zoom = _clamp(zoom, ZOOM_MIN, ZOOM_MAX)
    pan_x = _clamp(pan_x, PAN_MIN, PAN_MAX)
    pan_y = _clamp(pan_y, PAN_MIN, PAN_MAX)

    crop_w = viewport.width / zoom
    crop_h = viewport.height / zoom

    max_pan_x = (viewport.width - crop_w) / 2
    max_pan_y = (viewport.height - crop_h) / 2

    offset_x = pan_x * max_pan_x
    offset_y = pan_y * max_pan_y

    viewport_x = (natural_w - viewport.width) / 2
    viewport_y = (natural_h - viewport.height) / 2

    width = min(max(1, round_half_up(crop_w)), natural_w)
    height = min(max(1, round_half_up(crop_h)), natural_h)

    x = round_half_up(viewport_x + max_pan_x - offset_x)
    y = round_half_up(viewport_y + max_pan_y - offset_y)

    x = max(0, min(x, natural_w - width))
    y = max(0, min(y, natural_h - height))
    return CropRect(x, y, width, height)


# =============================================================================
# CropRectCalculator
# =============================================================================
def effective_aspect(source: SourceImage, print_format: PrintFormat, view: ViewState) -> float:
    """Effective aspect for *source* as seen after the view's rotation."""
    oriented = source.validate().oriented(view.rotation)
    return resolve_aspect(oriented.natural_width, oriented.natural_height, print_format.nominal_aspect)


def compute_crop(source: SourceImage, print_format: PrintFormat, view: ViewState) -> CropRect:
    """Crop rectangle for one image, in the rotated source's pixel space.

    Raises InvalidImageDimensions if the source lacks positive dimensions;
    otherwise always returns a rectangle inside the source bounds.
    """
    oriented = source.validate().oriented(view.rotation)
    w, h = oriented.natural_width, oriented.natural_height
    aspect = resolve_aspect(w, h, print_format.nominal_aspect)
    viewport = fit_viewport(w, h, aspect)
    return map_pan_zoom(viewport, w, h, view.pan_x, view.pan_y, view.zoom)


def pan_bounds(source: SourceImage, print_format: PrintFormat, view: ViewState) -> tuple[float, float]:
    """Source-pixel travel of the crop window for a pan of 1 on each axis.

    Used by the interactive surface to turn pixel drags into normalized pan.
    Zero on an axis means pan has no effect there (e.g. zoom = 1).
    """
    oriented = source.validate().oriented(view.rotation)
    w, h = oriented.natural_width, oriented.natural_height
    viewport = fit_viewport(w, h, resolve_aspect(w, h, print_format.nominal_aspect))
    zoom = _clamp(view.zoom, ZOOM_MIN, ZOOM_MAX)
    return (
        (viewport.width - viewport.width / zoom) / 2,
        (viewport.height - viewport.height / zoom) / 2,
    )
