import io
import sys
from pathlib import Path

import pytest
from PIL import Image

# Add the repository root to sys.path so we can import print_crop
ROOT_PATH = Path(__file__).resolve().parent.parent
if ROOT_PATH.as_posix() not in sys.path:
    sys.path.insert(0, ROOT_PATH.as_posix())

from print_crop.formats import FormatCatalog  # noqa: E402


RED = (255, 0, 0)
BLUE = (0, 0, 255)
GREEN = (0, 255, 0)
WHITE = (255, 255, 255)
BLACK = (0, 0, 0)


def split_image(size, left=RED, right=BLUE) -> Image.Image:
    """Image whose left half is *left* and right half is *right*."""
    w, h = size
    img = Image.new("RGB", size, right)
    img.paste(left, (0, 0, w // 2, h))
    return img


def png_bytes(img: Image.Image) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, "PNG")
    return buffer.getvalue()


# Common test fixtures
@pytest.fixture
def catalog():
    """The built-in print catalog."""
    return FormatCatalog.builtin()


@pytest.fixture
def fmt_10x15(catalog):
    return catalog.get("10x15")


@pytest.fixture(autouse=True)
def isolated_config_dir(tmp_path, monkeypatch):
    """Keep config_dir() out of the real home directory."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.setenv("APPDATA", str(tmp_path / "appdata"))
    return tmp_path
