"""
Post-crop compositing (Qt-free).

Turns a decoded source plus a view state into the finished print raster.
The steps run in a fixed order: orient, extract the crop, resize to the
output size, mirror, color filter, border.  The border is drawn last so the
filter never tints it.  The source image is never modified.

Safe to import in worker threads.
"""

from PIL import Image, ImageDraw, ImageOps

from print_crop.config import BORDER_RATIO, BORDER_COLOR, SEPIA_MATRIX
from print_crop.geometry import compute_crop, effective_aspect, round_half_up
from print_crop.models import ColorFilter, CropRect, PrintFormat, SourceImage, ViewState

# Clockwise quarter turns -> Pillow transpose (Pillow rotates counter-clockwise)
_ROTATIONS = {
    90: Image.Transpose.ROTATE_270,
    180: Image.Transpose.ROTATE_180,
    270: Image.Transpose.ROTATE_90,
}


def orient_source(image: Image.Image, rotation: int) -> Image.Image:
    """Rotate the source clockwise by a quarter-turn multiple."""
    method = _ROTATIONS.get(rotation % 360)
    return image.transpose(method) if method is not None else image


def border_width(size: tuple[int, int]) -> int:
    """Border stroke in pixels for an output raster of *size*."""
    return max(1, round_half_up(min(size) * BORDER_RATIO))


def apply_filter(image: Image.Image, color_filter: ColorFilter) -> Image.Image:
    if color_filter is ColorFilter.GRAYSCALE:
        return ImageOps.grayscale(image).convert("RGB")
    if color_filter is ColorFilter.SEPIA:
        return image.convert("RGB", SEPIA_MATRIX)
    return image


def draw_border(image: Image.Image) -> Image.Image:
    """Draw the inset white border in place and return the image."""
    w, h = image.size
    draw = ImageDraw.Draw(image)
    draw.rectangle((0, 0, w - 1, h - 1), outline=BORDER_COLOR, width=border_width(image.size))
    return image


def composite(
    oriented: Image.Image,
    crop: CropRect,
    output_size: tuple[int, int],
    view: ViewState,
) -> Image.Image:
    """Run the compositing steps on an already-oriented source."""
    # Extract first so only the crop is converted; the source stays untouched
    result = oriented.crop(crop.as_box())
    if result.mode != "RGB":
        result = result.convert("RGB")

    # Non-uniform resize absorbs sub-pixel aspect drift; never pad
    if result.size != tuple(output_size):
        result = result.resize(tuple(output_size), Image.Resampling.LANCZOS)

    if view.flip:
        result = ImageOps.mirror(result)

    result = apply_filter(result, view.filter)

    if view.has_border:
        result = draw_border(result)

    return result


def render(
    image: Image.Image,
    print_format: PrintFormat,
    view: ViewState,
    output_size: tuple[int, int] | None = None,
    natural_size: tuple[int, int] | None = None,
) -> Image.Image:
    """Crop and composite *image* for *print_format* under *view*.

    *natural_size* is the original asset's size when *image* is a resampled
    proxy of it; the crop is always computed on the natural size so the
    framing does not depend on the proxy's resolution.  *output_size*
    defaults to the format's raster size oriented to the effective aspect.
    """
    source = SourceImage(*(natural_size or image.size))
    crop = compute_crop(source, print_format, view)
    if output_size is None:
        output_size = print_format.output_size(effective_aspect(source, print_format, view))

    oriented = orient_source(image, view.rotation)
    natural = source.oriented(view.rotation)
    if oriented.size != (natural.natural_width, natural.natural_height):
        crop = crop.scaled(
            oriented.width / natural.natural_width,
            oriented.height / natural.natural_height,
        ).clamped(oriented.width, oriented.height)
    return composite(oriented, crop, output_size, view)
