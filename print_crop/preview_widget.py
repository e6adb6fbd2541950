"""
Interactive print-preview widget and Qt image helpers.

This module contains everything that touches both Qt **and** image display:
``pil_to_qpixmap``, the background ``ImageLoaderThread``, and the
``PrintPreviewWidget`` that shows the framed print and turns drags, wheel
notches and keys into new view states.  All framing goes through
``preview.render_preview``; the widget only asks ``compute_crop`` how many
source pixels are visible so it can scale drags.
"""

from dataclasses import replace
from pathlib import Path

from PIL import Image
from PyQt6.QtWidgets import QWidget, QSizePolicy
from PyQt6.QtCore import Qt, QRectF, QPointF, pyqtSignal, QThread
from PyQt6.QtGui import (
    QPainter, QPixmap, QColor, QPen, QImage,
    QKeyEvent, QMouseEvent, QPaintEvent, QResizeEvent, QWheelEvent,
)

from print_crop.config import NUDGE_SMALL, NUDGE_LARGE, ZOOM_WHEEL_STEP, PREVIEW_MAX_SIDE
from print_crop.geometry import compute_crop
from print_crop.image_io import open_image
from print_crop.models import ColorFilter, PrintFormat, SourceImage, ViewState
from print_crop.preview import apply_drag, apply_zoom, nudge, render_preview

# Longest side of the in-memory proxy the preview renders from
_PROXY_MAX_SIDE = 2048

_FILTER_CYCLE = [ColorFilter.NONE, ColorFilter.GRAYSCALE, ColorFilter.SEPIA]


# =============================================================================
# Qt ↔ PIL helpers
# =============================================================================

def pil_to_qpixmap(pil_img: Image.Image) -> QPixmap:
    """Convert a PIL Image to QPixmap."""
    img_rgb = pil_img.convert("RGBA")
    data = img_rgb.tobytes("raw", "RGBA")
    qimg = QImage(data, img_rgb.width, img_rgb.height, QImage.Format.Format_RGBA8888)
    return QPixmap.fromImage(qimg.copy())


def make_proxy(image: Image.Image, max_side: int = _PROXY_MAX_SIDE) -> Image.Image:
    """Downscaled RGB copy for fast redraws; the original is left alone."""
    proxy = image.convert("RGB")
    proxy.thumbnail((max_side, max_side), Image.Resampling.LANCZOS)
    return proxy


# =============================================================================
# Background image loader
# =============================================================================

class ImageLoaderThread(QThread):
    """Background thread for decoding sources (especially large PSDs)."""
    finished = pyqtSignal(object)  # PIL.Image.Image
    error = pyqtSignal(str)

    def __init__(self, path: Path, parent=None):
        super().__init__(parent)
        self._path = path

    def run(self):
        try:
            self.finished.emit(open_image(self._path))
        except Exception as e:
            self.error.emit(str(e))


# =============================================================================
# Print Preview Widget — framed print with pan/zoom interaction
# =============================================================================

class PrintPreviewWidget(QWidget):
    """Shows the print as it will be exported and edits its ViewState."""

    view_changed = pyqtSignal(object)  # ViewState

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setMinimumSize(400, 300)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)

        self._proxy: Image.Image | None = None
        self._source: SourceImage | None = None
        self._format: PrintFormat | None = None
        self._view = ViewState()
        self._pixmap: QPixmap | None = None
        self._dest = QRectF()
        self._loading = False

        # Drag state
        self._dragging = False
        self._drag_start = QPointF()
        self._view_start = ViewState()

    def set_loading(self, loading: bool):
        """Show/hide loading indicator."""
        self._loading = loading
        self.update()

    def set_image(self, image: Image.Image):
        """Set the decoded source; a proxy is kept for redraws."""
        self._loading = False
        self._source = SourceImage(image.width, image.height)
        self._proxy = make_proxy(image)
        self._rerender()

    def set_format(self, print_format: PrintFormat):
        self._format = print_format
        self._rerender()

    def set_view(self, view: ViewState):
        self._view = view
        self._rerender()

    def view(self) -> ViewState:
        return self._view

    def has_image(self) -> bool:
        return self._proxy is not None

    def clear(self):
        self._proxy = None
        self._source = None
        self._pixmap = None
        self.update()

    # --- Rendering ---

    def _rerender(self):
        if self._proxy is None or self._format is None:
            self.update()
            return
        max_side = min(PREVIEW_MAX_SIDE, max(self.width(), self.height()))
        rendered = render_preview(
            self._proxy, self._format, self._view,
            max_side=max(1, max_side),
            natural_size=(self._source.natural_width, self._source.natural_height),
        )
        self._pixmap = pil_to_qpixmap(rendered)
        self._update_display_mapping()
        self.update()

    def _update_display_mapping(self):
        """Fit the rendered print into the widget, centered."""
        if not self._pixmap:
            return
        pw, ph = self._pixmap.width(), self._pixmap.height()
        scale = min(self.width() / pw, self.height() / ph)
        disp_w, disp_h = pw * scale, ph * scale
        self._dest = QRectF((self.width() - disp_w) / 2, (self.height() - disp_h) / 2, disp_w, disp_h)

    def _change_view(self, view: ViewState):
        if view == self._view:
            return
        self._view = view
        self._rerender()
        self.view_changed.emit(view)

    def paintEvent(self, event: QPaintEvent):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
        painter.fillRect(self.rect(), QColor(30, 30, 30))

        if not self._pixmap:
            painter.setPen(QColor(128, 128, 128))
            msg = "Loading image…" if self._loading else "No image loaded"
            painter.drawText(self.rect(), Qt.AlignmentFlag.AlignCenter, msg)
            painter.end()
            return

        painter.drawPixmap(self._dest.toRect(), self._pixmap)

        # Print edge
        painter.setPen(QPen(QColor(90, 90, 90), 1))
        painter.drawRect(self._dest)

        # Zoom label
        painter.setPen(QColor(255, 255, 255))
        painter.drawText(
            self._dest.adjusted(0, -20, 0, 0).toRect(),
            Qt.AlignmentFlag.AlignHCenter | Qt.AlignmentFlag.AlignTop,
            f"{self._format.name}  ·  zoom ×{self._view.zoom:.2f}",
        )
        painter.end()

    def resizeEvent(self, event: QResizeEvent):
        self._rerender()
        super().resizeEvent(event)

    # --- Mouse interaction ---

    def mousePressEvent(self, event: QMouseEvent):
        if event.button() != Qt.MouseButton.LeftButton or not self._pixmap:
            return
        self._dragging = True
        self._drag_start = event.position()
        self._view_start = self._view
        self.setCursor(Qt.CursorShape.ClosedHandCursor)

    def mouseMoveEvent(self, event: QMouseEvent):
        if not self._dragging or not self._pixmap or self._dest.width() == 0:
            return
        delta = event.position() - self._drag_start

        # Display pixels -> source pixels of the visible crop
        crop = compute_crop(self._source, self._format, self._view_start)
        per_px = crop.width / self._dest.width()
        dx = delta.x() * per_px
        dy = delta.y() * per_px
        if self._view_start.flip:
            dx = -dx

        self._change_view(apply_drag(self._view_start, self._source, self._format, dx, dy))

    def mouseReleaseEvent(self, event: QMouseEvent):
        if event.button() == Qt.MouseButton.LeftButton:
            self._dragging = False
            self.setCursor(Qt.CursorShape.ArrowCursor)

    def wheelEvent(self, event: QWheelEvent):
        if not self._pixmap:
            return
        notches = event.angleDelta().y() / 120
        if notches:
            self._change_view(apply_zoom(self._view, ZOOM_WHEEL_STEP ** notches))

    # --- Keyboard ---

    def keyPressEvent(self, event: QKeyEvent):
        if not self._pixmap:
            return
        step = NUDGE_LARGE if event.modifiers() & Qt.KeyboardModifier.ShiftModifier else NUDGE_SMALL
        key = event.key()
        view = self._view
        if key == Qt.Key.Key_Left:
            view = nudge(view, step, 0)
        elif key == Qt.Key.Key_Right:
            view = nudge(view, -step, 0)
        elif key == Qt.Key.Key_Up:
            view = nudge(view, 0, step)
        elif key == Qt.Key.Key_Down:
            view = nudge(view, 0, -step)
        elif key in (Qt.Key.Key_Plus, Qt.Key.Key_Equal):
            view = apply_zoom(view, ZOOM_WHEEL_STEP)
        elif key == Qt.Key.Key_Minus:
            view = apply_zoom(view, 1 / ZOOM_WHEEL_STEP)
        elif key == Qt.Key.Key_R:
            view = view.rotated()
        elif key == Qt.Key.Key_F:
            view = replace(view, flip=not view.flip)
        elif key == Qt.Key.Key_B:
            view = replace(view, has_border=not view.has_border)
        elif key == Qt.Key.Key_G:
            idx = _FILTER_CYCLE.index(view.filter)
            view = replace(view, filter=_FILTER_CYCLE[(idx + 1) % len(_FILTER_CYCLE)])
        else:
            super().keyPressEvent(event)
            return
        self._change_view(view)
