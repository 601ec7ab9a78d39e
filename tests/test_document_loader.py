import unittest
import fitz
import os
import shutil
import sys
import tempfile

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
from document_loader import UnsupportedDocumentError, detect_kind, load_document
from document_registry import DocumentKind, DocumentRegistry
from highlight_logic import ExactMatch, highlight


class TestDocumentLoader(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.tmp_dir = tempfile.mkdtemp()
        cls.pdf_path = os.path.join(cls.tmp_dir, "sample.pdf")
        cls.html_path = os.path.join(cls.tmp_dir, "sample.html")
        cls.text_path = os.path.join(cls.tmp_dir, "sample.txt")
        cls.other_path = os.path.join(cls.tmp_dir, "sample.xyz")

        # Two A4 pages
        doc = fitz.open()
        page = doc.new_page()
        page.insert_text((50, 50), "The quick brown fox jumps over the lazy dog.")
        page = doc.new_page()
        page.insert_text((50, 50), "Artificial intelligence is transforming the world.")
        doc.save(cls.pdf_path)
        doc.close()

        with open(cls.html_path, "w", encoding="utf-8") as f:
            f.write("<html><body><p>Hello markup</p></body></html>")
        with open(cls.text_path, "w", encoding="utf-8") as f:
            f.write("first line\nsecond line\n")
        with open(cls.other_path, "w", encoding="utf-8") as f:
            f.write("?")

    @classmethod
    def tearDownClass(cls):
        shutil.rmtree(cls.tmp_dir, ignore_errors=True)

    def test_detect_kind(self):
        self.assertEqual(detect_kind("a.PDF"), DocumentKind.PAGINATED)
        self.assertEqual(detect_kind("b.htm"), DocumentKind.MARKUP)
        self.assertEqual(detect_kind("c.txt"), DocumentKind.PLAIN_TEXT)
        self.assertIsNone(detect_kind("d.xyz"))
        self.assertEqual(detect_kind("upload", mime="application/pdf"), DocumentKind.PAGINATED)

    def test_load_pdf(self):
        loaded = load_document(self.pdf_path)
        self.assertEqual(loaded.kind, DocumentKind.PAGINATED)
        self.assertEqual(loaded.page_count, 2)
        self.assertEqual(len(loaded.page_sizes), 2)
        width, height = loaded.natural_page_size
        self.assertAlmostEqual(width, 595, delta=1)
        self.assertAlmostEqual(height, 842, delta=1)
        self.assertIn("quick brown fox", loaded.text)
        self.assertIn("Artificial intelligence", loaded.text)
        self.assertIsNone(loaded.page_size(3))

    def test_load_markup_and_text(self):
        markup = load_document(self.html_path)
        self.assertEqual(markup.kind, DocumentKind.MARKUP)
        self.assertIn("<p>Hello markup</p>", markup.text)
        self.assertIsNone(markup.page_count)

        text = load_document(self.text_path)
        self.assertEqual(text.kind, DocumentKind.PLAIN_TEXT)
        self.assertEqual(text.text, "first line\nsecond line\n")

    def test_unsupported(self):
        with self.assertRaises(UnsupportedDocumentError):
            load_document(self.other_path)

    def test_pdf_through_registry_and_search(self):
        """A decoded PDF lands in the registry and its text is searchable."""
        loaded = load_document(self.pdf_path)
        registry = DocumentRegistry()
        registry.select_kind(DocumentKind.PAGINATED)
        registry.upload(DocumentKind.PAGINATED, loaded.path, loaded.text)
        registry.report_page_count(DocumentKind.PAGINATED, loaded.page_count)
        registry.on_natural_page_size_known(*loaded.natural_page_size)

        view = registry.active_view
        self.assertEqual(view.page_count, 2)
        segments = highlight(view.text_content, "FOX", ExactMatch())
        self.assertEqual([s.text for s in segments if s.highlighted], ["fox"])
        self.assertEqual("".join(s.text for s in segments), view.text_content)


if __name__ == "__main__":
    unittest.main()
