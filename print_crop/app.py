"""
Desktop framing tool and dark-theme stylesheet.

Opens one photo, frames it for a print format in the interactive preview,
and persists the settled view state (debounced) to the view-state store,
keyed by the photo's content fingerprint.

Usage:
    python -m print_crop.app PHOTO [FORMAT]
    print-crop PHOTO [FORMAT]          (after pip install)

Keys: drag / arrows pan, wheel / +/- zoom, R rotate, F flip, G filter, B border.
"""

import logging
import sys
from pathlib import Path

from PyQt6.QtWidgets import QApplication, QMainWindow, QStatusBar, QMessageBox
from PyQt6.QtCore import QTimer

from print_crop.config import DEFAULT_FORMAT_NAME, SAVE_DEBOUNCE_MS
from print_crop.formats import load_catalog
from print_crop.geometry import compute_crop
from print_crop.image_io import compute_fingerprint
from print_crop.models import SourceImage, ViewState
from print_crop.preview_widget import PrintPreviewWidget, ImageLoaderThread
from print_crop.view_store import load_view_states, save_view_states, lookup_view, store_view

logger = logging.getLogger(__name__)

DARK_STYLESHEET = """
    QMainWindow { background: #2b2b2b; }
    QWidget { background: #2b2b2b; color: #ddd; font-size: 10pt; }
    QStatusBar { background: #333; border-top: 1px solid #444; }
"""


class FramingWindow(QMainWindow):
    def __init__(self, path: Path, format_name: str):
        super().__init__()
        self.setWindowTitle(f"Print framing — {path.name}")
        self.resize(1000, 800)

        self._path = path
        self._image_id = compute_fingerprint(path)
        self._source: SourceImage | None = None
        self._records = load_view_states()
        self._format = load_catalog().get(format_name)

        self._preview = PrintPreviewWidget(self)
        self._preview.set_format(self._format)
        self._preview.view_changed.connect(self._on_view_changed)
        self.setCentralWidget(self._preview)

        self._status = QStatusBar(self)
        self.setStatusBar(self._status)

        # Persist only once the user stops adjusting
        self._save_timer = QTimer(self)
        self._save_timer.setSingleShot(True)
        self._save_timer.setInterval(SAVE_DEBOUNCE_MS)
        self._save_timer.timeout.connect(self._save_view)

        self._preview.set_loading(True)
        self._loader = ImageLoaderThread(path, self)
        self._loader.finished.connect(self._on_image_loaded)
        self._loader.error.connect(self._on_image_load_error)
        self._loader.start()

    def _on_image_loaded(self, image):
        self._source = SourceImage(image.width, image.height)
        view = lookup_view(self._records, self._image_id, self._source) or ViewState()
        self._preview.set_image(image)
        self._preview.set_view(view)
        self._update_status(view)

    def _on_image_load_error(self, error: str):
        self._preview.set_loading(False)
        QMessageBox.critical(self, "Error", f"Failed to load {self._path.name}:\n{error}")

    def _on_view_changed(self, view: ViewState):
        self._update_status(view)
        self._save_timer.start()

    def _update_status(self, view: ViewState):
        crop = compute_crop(self._source, self._format, view)
        self._status.showMessage(
            f"{self._source.natural_width}×{self._source.natural_height}  ·  "
            f"crop {crop.width}×{crop.height} at ({crop.x}, {crop.y})  ·  "
            f"pan ({view.pan_x:+.2f}, {view.pan_y:+.2f})  ·  {view.filter.value}"
        )

    def _save_view(self):
        if self._source is None:
            return
        store_view(self._records, self._image_id, self._source, self._preview.view())
        save_view_states(self._records)

    def closeEvent(self, event):
        """Flush a pending save before closing."""
        if self._save_timer.isActive():
            self._save_timer.stop()
            self._save_view()
        super().closeEvent(event)


def main(argv: list[str] | None = None):
    argv = sys.argv if argv is None else argv
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if len(argv) < 2:
        print(__doc__.strip())
        sys.exit(2)
    path = Path(argv[1])
    format_name = argv[2] if len(argv) > 2 else DEFAULT_FORMAT_NAME

    app = QApplication(argv)
    app.setStyleSheet(DARK_STYLESHEET)

    window = FramingWindow(path, format_name)
    window.show()

    try:
        sys.exit(app.exec())
    except (SystemExit, KeyboardInterrupt):
        pass


if __name__ == "__main__":
    main()
