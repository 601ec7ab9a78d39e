"""
PDF Page Rendering with LRU Caching.

Renders single pages of the loaded PDF for the discrete page view. Pixmaps
are cached per (upload token, page, zoom) so page flips and zoom steps back
to a previous level stay cheap.
"""

import fitz
from collections import OrderedDict
from typing import Optional
from PyQt6.QtGui import QImage, QPixmap


class PixmapCache:
    """LRU pixmap cache bounded by an estimated byte budget (4 bytes/pixel)."""

    DEFAULT_MAX_BYTES: int = 128 * 1024 * 1024  # 128 MB

    def __init__(self, max_bytes: int = DEFAULT_MAX_BYTES):
        self.max_bytes = max_bytes
        self._cache: OrderedDict[tuple, QPixmap] = OrderedDict()
        self.used_bytes = 0

    def get(self, key: tuple) -> Optional[QPixmap]:
        pixmap = self._cache.get(key)
        if pixmap is not None:
            self._cache.move_to_end(key)
        return pixmap

    def put(self, key: tuple, pixmap: QPixmap) -> None:
        size = pixmap.width() * pixmap.height() * 4
        # The newest page is kept even when it alone exceeds the budget.
        while self._cache and self.used_bytes + size > self.max_bytes:
            _, evicted = self._cache.popitem(last=False)
            self.used_bytes -= evicted.width() * evicted.height() * 4
        self._cache[key] = pixmap
        self.used_bytes += size

    def clear(self) -> None:
        self._cache.clear()
        self.used_bytes = 0

    def __len__(self) -> int:
        return len(self._cache)


class PDFRenderer:
    """Keeps the current PDF open and renders its pages at a zoom level."""

    def __init__(self, max_bytes: int = PixmapCache.DEFAULT_MAX_BYTES):
        self.pixmap_cache = PixmapCache(max_bytes=max_bytes)
        self._doc = None
        self._token = None

    def set_document(self, file_path: str, token: int) -> None:
        """Switch to the PDF of upload ``token``; a new token drops old pages."""
        if token == self._token and self._doc is not None:
            return
        self.cleanup()
        self._doc = fitz.open(file_path)
        self._token = token

    def get_page_pixmap(self, page_idx: int, zoom: float) -> Optional[QPixmap]:
        """Pixmap of a zero-indexed page at ``zoom`` (1.0 = 100%), or None."""
        if self._doc is None or not 0 <= page_idx < len(self._doc):
            return None
        zoom = round(zoom, 2)
        key = (self._token, page_idx, zoom)
        pixmap = self.pixmap_cache.get(key)
        if pixmap is None:
            pixmap = self._render_pixmap(page_idx, zoom)
            self.pixmap_cache.put(key, pixmap)
        return pixmap

    def _render_pixmap(self, page_idx: int, zoom: float) -> QPixmap:
        pix = self._doc[page_idx].get_pixmap(matrix=fitz.Matrix(zoom, zoom))
        qimg = QImage(
            pix.samples,
            pix.width,
            pix.height,
            pix.stride,
            QImage.Format.Format_RGB888,
        ).copy()  # Copy to own the data
        return QPixmap.fromImage(qimg)

    def cleanup(self) -> None:
        self.pixmap_cache.clear()
        if self._doc is not None:
            self._doc.close()
        self._doc = None
        self._token = None

    def get_cache_stats(self) -> dict:
        return {
            "cached_pages": len(self.pixmap_cache),
            "used_bytes": self.pixmap_cache.used_bytes,
        }
