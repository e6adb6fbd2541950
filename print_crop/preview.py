"""
Interactive preview helpers (Qt-free).

The preview renders through exactly the same ``compositing.render`` as the
exporter, only at a smaller output size, so both agree on the framing.
Pointer and keyboard input is turned into new ViewState values here; pan
is bounded to [-1, 1] at this boundary, before any crop is computed.
"""

from PIL import Image

from print_crop.compositing import render
from print_crop.config import PREVIEW_MAX_SIDE
from print_crop.geometry import effective_aspect, pan_bounds, round_half_up
from print_crop.models import PrintFormat, SourceImage, ViewState


def preview_size(output_size: tuple[int, int], max_side: int) -> tuple[int, int]:
    """Scale *output_size* down (never up) so its longer side fits *max_side*."""
    w, h = output_size
    scale = min(1.0, max_side / max(w, h))
    return max(1, round_half_up(w * scale)), max(1, round_half_up(h * scale))


def render_preview(
    image: Image.Image,
    print_format: PrintFormat,
    view: ViewState,
    max_side: int = PREVIEW_MAX_SIDE,
    natural_size: tuple[int, int] | None = None,
) -> Image.Image:
    """Render the framed print at preview resolution.

    *image* may be a downscaled proxy of the original; pass the original's
    *natural_size* so the crop is computed exactly as the exporter will.
    """
    source = SourceImage(*(natural_size or image.size))
    full_size = print_format.output_size(effective_aspect(source, print_format, view))
    return render(
        image, print_format, view,
        output_size=preview_size(full_size, max_side),
        natural_size=natural_size,
    )


def apply_drag(
    view: ViewState,
    source: SourceImage,
    print_format: PrintFormat,
    dx: float,
    dy: float,
) -> ViewState:
    """Move the photo by (*dx*, *dy*) source pixels under the crop window.

    Dragging the photo right exposes its left side, which is a positive pan.
    Axes without travel (e.g. at zoom 1) keep their pan unchanged.
    """
    max_x, max_y = pan_bounds(source, print_format, view)
    pan_x = view.pan_x + dx / max_x if max_x > 0 else view.pan_x
    pan_y = view.pan_y + dy / max_y if max_y > 0 else view.pan_y
    return view.with_pan(pan_x, pan_y)


def apply_zoom(view: ViewState, factor: float) -> ViewState:
    """Multiply zoom by *factor*; the result is clamped to [1, 4]."""
    return view.with_zoom(view.zoom * factor)


def nudge(view: ViewState, step_x: float, step_y: float) -> ViewState:
    """Shift pan by normalized steps (keyboard arrows)."""
    return view.with_pan(view.pan_x + step_x, view.pan_y + step_y)
