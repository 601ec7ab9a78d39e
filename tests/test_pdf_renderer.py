import unittest
import fitz
import os
import shutil
import sys
import tempfile

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PyQt6.QtGui import QGuiApplication

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
from gui.pdf_renderer import PDFRenderer


class TestPDFRenderer(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = QGuiApplication.instance() or QGuiApplication([])
        cls.tmp_dir = tempfile.mkdtemp()
        cls.pdf_path = os.path.join(cls.tmp_dir, "pages.pdf")

        # Two A4 pages
        doc = fitz.open()
        for text in ("first page", "second page"):
            page = doc.new_page()
            page.insert_text((50, 50), text)
        doc.save(cls.pdf_path)
        doc.close()

    @classmethod
    def tearDownClass(cls):
        shutil.rmtree(cls.tmp_dir, ignore_errors=True)

    def setUp(self):
        self.renderer = PDFRenderer()

    def tearDown(self):
        self.renderer.cleanup()

    def test_renders_at_zoom(self):
        self.renderer.set_document(self.pdf_path, 1)
        pixmap = self.renderer.get_page_pixmap(0, 2.0)
        self.assertEqual((pixmap.width(), pixmap.height()), (1190, 1684))

    def test_cache_hit(self):
        self.renderer.set_document(self.pdf_path, 1)
        first = self.renderer.get_page_pixmap(1, 1.0)
        self.assertIs(self.renderer.get_page_pixmap(1, 1.0), first)
        self.assertEqual(self.renderer.get_cache_stats()["cached_pages"], 1)

    def test_new_upload_drops_cached_pages(self):
        self.renderer.set_document(self.pdf_path, 1)
        self.renderer.get_page_pixmap(0, 1.0)
        self.renderer.set_document(self.pdf_path, 1)
        self.assertEqual(self.renderer.get_cache_stats()["cached_pages"], 1)

        self.renderer.set_document(self.pdf_path, 2)
        self.assertEqual(self.renderer.get_cache_stats()["cached_pages"], 0)

    def test_out_of_range_page(self):
        self.assertIsNone(self.renderer.get_page_pixmap(0, 1.0))
        self.renderer.set_document(self.pdf_path, 1)
        self.assertIsNone(self.renderer.get_page_pixmap(2, 1.0))
        self.assertIsNone(self.renderer.get_page_pixmap(-1, 1.0))

    def test_byte_budget_evicts_oldest(self):
        page_bytes = 595 * 842 * 4
        renderer = PDFRenderer(max_bytes=page_bytes + page_bytes // 2)
        renderer.set_document(self.pdf_path, 1)
        renderer.get_page_pixmap(0, 1.0)
        renderer.get_page_pixmap(1, 1.0)
        stats = renderer.get_cache_stats()
        self.assertEqual(stats["cached_pages"], 1)
        self.assertEqual(stats["used_bytes"], page_bytes)
        renderer.cleanup()


if __name__ == "__main__":
    unittest.main()
