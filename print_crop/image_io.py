"""
Qt-free image I/O utilities.

Fetches source bytes (local file or http(s) URL), decodes them (including
PSD), reads dimensions without full loading, computes content fingerprints
for local files, and encodes finished composites as JPEG.  Safe to import in
worker threads.

Decoded images are EXIF-transposed so the exporter sees the same pixel grid
(and the same natural dimensions) as the interactive surface.
"""

import hashlib
import io
from pathlib import Path

import requests
from PIL import Image, ImageOps
from psd_tools import PSDImage

from print_crop.config import FETCH_TIMEOUT, JPEG_QUALITY_DEFAULT, JPEG_SUBSAMPLING_DEFAULT

# Allow very large images (Pillow's default limit is ~178MP)
Image.MAX_IMAGE_PIXELS = None

# Number of bytes read for fingerprinting (64 KB)
_FINGERPRINT_READ_SIZE = 65_536

_EXIF_ORIENTATION_TAG = 0x0112
# Orientations that transpose width and height
_SWAPPING_ORIENTATIONS = {5, 6, 7, 8}

_PSD_SIGNATURE = b"8BPS"


def compute_fingerprint(path: Path) -> str:
    """
    Compute a fast content fingerprint for an image file.

    Reads the first 64 KB of the file and combines it with the file size
    to produce a truncated SHA-256 hex string.  Format: ``"{size_hex}_{hash16}"``.
    Renamed or moved files keep their fingerprint.
    """
    size = path.stat().st_size
    sha = hashlib.sha256()
    with open(path, "rb") as f:
        sha.update(f.read(_FINGERPRINT_READ_SIZE))
    return f"{size:x}_{sha.hexdigest()[:16]}"


def is_url(location: str) -> bool:
    return str(location).lower().startswith(("http://", "https://"))


def fetch_source(location: str | Path, timeout: float = FETCH_TIMEOUT) -> bytes:
    """Return the full-resolution source bytes from a URL or a local path.

    Network errors propagate as ``requests.RequestException`` so the caller
    can decide whether to retry.
    """
    if is_url(str(location)):
        response = requests.get(str(location), timeout=timeout)
        response.raise_for_status()
        return response.content
    return Path(location).read_bytes()


def decode_image(data: bytes, name: str = "") -> Image.Image:
    """Decode source bytes into a loaded, upright PIL image."""
    if name.lower().endswith(".psd") or data[:4] == _PSD_SIGNATURE:
        psd = PSDImage.open(io.BytesIO(data))
        return psd.composite()
    img = Image.open(io.BytesIO(data))
    img.load()
    return ImageOps.exif_transpose(img)


def open_image(path: Path) -> Image.Image:
    """Open an image file, using psd-tools for PSD and Pillow for the rest."""
    return decode_image(Path(path).read_bytes(), name=str(path))


def get_image_size(path: Path) -> tuple[int, int]:
    """Get upright image dimensions without fully loading/compositing."""
    path = Path(path)
    if path.suffix.lower() == ".psd":
        psd = PSDImage.open(str(path))
        return psd.width, psd.height
    with Image.open(path) as img:
        w, h = img.size
        if img.getexif().get(_EXIF_ORIENTATION_TAG) in _SWAPPING_ORIENTATIONS:
            return h, w
        return w, h


def encode_jpeg(
    image: Image.Image,
    quality: int = JPEG_QUALITY_DEFAULT,
    subsampling: int = JPEG_SUBSAMPLING_DEFAULT,
) -> bytes:
    """Encode a composite as JPEG bytes for the media store."""
    buffer = io.BytesIO()
    image.convert("RGB").save(buffer, "JPEG", quality=quality, optimize=True, subsampling=subsampling)
    return buffer.getvalue()
