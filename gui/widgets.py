import html

from PyQt6.QtWidgets import QLabel, QTextBrowser
from PyQt6.QtGui import QPainter, QColor, QPen
from PyQt6.QtCore import Qt, pyqtSignal, QRectF, QTimer

from overlay_logic import RectUnit, ViewportRect

DEFAULT_HIGHLIGHT_COLOR = "#FFFF00"


def overlay_fill(color: QColor) -> QColor:
    """Translucent fill derived from the overlay border colour."""
    fill = QColor(color)
    fill.setAlphaF(0.1)
    return fill


def _paint_overlay(painter: QPainter, rect: QRectF, color: QColor) -> None:
    pen = QPen(QColor(color))
    pen.setWidth(2)
    painter.setPen(pen)
    painter.setBrush(overlay_fill(color))
    painter.drawRect(rect)


class PDFPageLabel(QLabel):
    """One rendered PDF page with the overlay rectangle drawn on top."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.original_pixmap = None
        self.overlay = None
        self.color = QColor(DEFAULT_HIGHLIGHT_COLOR)
        self.setAlignment(Qt.AlignmentFlag.AlignCenter)

    def set_page(self, pixmap, overlay: ViewportRect = None, color: QColor = None):
        self.original_pixmap = pixmap
        self.overlay = overlay
        if color is not None:
            self.color = QColor(color)
        self.draw_overlay()

    def set_overlay(self, overlay: ViewportRect, color: QColor = None):
        self.overlay = overlay
        if color is not None:
            self.color = QColor(color)
        self.draw_overlay()

    def clear_page(self):
        self.original_pixmap = None
        self.overlay = None
        self.clear()

    def draw_overlay(self):
        if self.original_pixmap is None:
            return
        if self.overlay is None or self.overlay.is_empty:
            self.setPixmap(self.original_pixmap)
            return

        px = self.overlay.to_pixels(
            self.original_pixmap.width(), self.original_pixmap.height()
        )
        canvas = self.original_pixmap.copy()
        painter = QPainter(canvas)
        _paint_overlay(painter, QRectF(px.left, px.top, px.width, px.height), self.color)
        painter.end()
        self.setPixmap(canvas)


class MarkupView(QTextBrowser):
    """
    Markup document shown as one continuously scrolling surface.

    Reports its layout through ``measured`` (token, content height, viewport
    width, viewport height) after content, scale or size changes, and paints
    the overlay rectangle in surface pixels.
    """

    measured = pyqtSignal(int, float, float, float)

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setOpenLinks(False)
        self.overlay = None
        self.color = QColor(DEFAULT_HIGHLIGHT_COLOR)
        self.token = 0
        self._base_point_size = self.font().pointSizeF()
        self._measure_timer = QTimer(self)
        self._measure_timer.setSingleShot(True)
        self._measure_timer.setInterval(0)
        self._measure_timer.timeout.connect(self._measure)

    def set_content(self, markup: str, scale: float, token: int):
        self.token = token
        self.setHtml(markup or "")
        self.apply_scale(scale, token)

    def apply_scale(self, scale: float, token: int):
        self.token = token
        font = self.document().defaultFont()
        font.setPointSizeF(max(1.0, self._base_point_size * scale))
        self.document().setDefaultFont(font)
        self._measure_timer.start()

    def set_overlay(self, overlay: ViewportRect, color: QColor = None):
        self.overlay = overlay
        if color is not None:
            self.color = QColor(color)
        self.viewport().update()

    def scroll_to(self, offset: float):
        self.verticalScrollBar().setValue(int(offset))

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self._measure_timer.start()

    def _measure(self):
        vp = self.viewport()
        self.measured.emit(
            self.token,
            float(self.document().size().height()),
            float(vp.width()),
            float(vp.height()),
        )

    def paintEvent(self, event):
        super().paintEvent(event)
        if self.overlay is None or self.overlay.is_empty:
            return
        if self.overlay.unit is not RectUnit.PIXELS:
            return
        dx = self.horizontalScrollBar().value()
        dy = self.verticalScrollBar().value()
        painter = QPainter(self.viewport())
        _paint_overlay(
            painter,
            QRectF(
                self.overlay.left - dx,
                self.overlay.top - dy,
                self.overlay.width,
                self.overlay.height,
            ),
            self.color,
        )
        painter.end()


class SegmentTextView(QTextBrowser):
    """Read-only text with highlighted segments."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setOpenLinks(False)

    @staticmethod
    def _segments_html(segments, color: QColor) -> str:
        parts = []
        for seg in segments:
            text = html.escape(seg.text)
            if seg.highlighted:
                parts.append(
                    f'<span style="background-color: {color.name()}; color: #000;">'
                    f"{text}</span>"
                )
            else:
                parts.append(text)
        return "".join(parts)

    def set_segments(self, segments, color: QColor):
        body = self._segments_html(segments, color)
        self.setHtml(f'<pre style="white-space: pre-wrap;">{body}</pre>')

    def set_line_results(self, line_results, color: QColor):
        """Show scored line matches, one row per accepted line."""
        if not line_results:
            self.setHtml("<i>No matching lines.</i>")
            return
        rows = []
        for lm, segments in line_results:
            rows.append(
                f'<span style="color: #888;">{lm.line_number:>5} '
                f"({lm.score:.2f})</span>  {self._segments_html(segments, color)}"
            )
        self.setHtml(
            '<pre style="white-space: pre-wrap;">' + "\n".join(rows) + "</pre>"
        )
