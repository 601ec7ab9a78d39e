"""
Main Application Window for the document highlighter.

This module provides the UI controller that wires the core together:
- Document kind selection and uploads through the DocumentRegistry
- Rectangle parameters and the overlay on the PDF and markup views
- Debounced text search rendered as highlighted segments
"""

import logging
import os

import psutil
from PyQt6.QtWidgets import (
    QMainWindow,
    QWidget,
    QVBoxLayout,
    QHBoxLayout,
    QLabel,
    QPushButton,
    QSplitter,
    QScrollArea,
    QMessageBox,
    QSpinBox,
    QDoubleSpinBox,
    QGroupBox,
    QStackedWidget,
    QCheckBox,
    QComboBox,
    QLineEdit,
    QFileDialog,
    QColorDialog,
    QFrame,
)
from PyQt6.QtGui import QColor
from PyQt6.QtCore import Qt, QThread, QTimer

from document_loader import detect_kind
from document_registry import DocumentKind, DocumentRegistry
from highlight_logic import (
    DEFAULT_SCORE_THRESHOLD,
    ScoredMatch,
    highlight,
    highlight_lines,
    make_match_mode,
)
from overlay_logic import scroll_offset_for_page, virtual_page_count
from gui.pdf_renderer import PDFRenderer
from gui.widgets import (
    DEFAULT_HIGHLIGHT_COLOR,
    MarkupView,
    PDFPageLabel,
    SegmentTextView,
)
from gui.workers import DecodeWorker

logger = logging.getLogger(__name__)

KIND_ITEMS = [
    ("PDF", DocumentKind.PAGINATED),
    ("HTML", DocumentKind.MARKUP),
    ("Text", DocumentKind.PLAIN_TEXT),
]

MODE_ITEMS = [
    ("Exact", "exact"),
    ("Fixed Distance (Levenshtein)", "distance"),
    ("Scored Fuzzy (lines)", "scored"),
]

RECT_FIELDS = [
    ("x", "X"),
    ("y", "Y"),
    ("width", "Width"),
    ("height", "Height"),
]

SEARCH_DEBOUNCE_MS = 150


class MainWindow(QMainWindow):
    """
    Main application window.

    Handles:
    - Layout and widget initialization
    - Forwarding user input and renderer measurements to the registry
    - Re-rendering overlay and search results from registry state
    """

    def __init__(self):
        super().__init__()
        self.setWindowTitle("PDF Highlight")
        self.resize(1600, 900)
        self.status_bar = self.statusBar()
        self.status_bar.showMessage("Ready. Select a file type and upload a document.")

        # Core components
        self.registry = DocumentRegistry()
        self.renderer = PDFRenderer()
        self.process = psutil.Process(os.getpid())

        # State
        self.highlight_color = QColor(DEFAULT_HIGHLIGHT_COLOR)
        self.loaded_docs = {}
        self._decode_jobs = {}

        # Debounce timer: search runs 150 ms after the last input change
        self._search_timer = QTimer()
        self._search_timer.setSingleShot(True)
        self._search_timer.setInterval(SEARCH_DEBOUNCE_MS)
        self._search_timer.timeout.connect(self._do_search)

        self.init_ui()

        self.stats_timer = QTimer()
        self.stats_timer.timeout.connect(self.update_stats)
        self.stats_timer.start(2000)

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def init_ui(self):
        splitter = QSplitter(Qt.Orientation.Horizontal)
        self.setCentralWidget(splitter)

        left_scroll = QScrollArea()
        left_scroll.setWidgetResizable(True)
        left_scroll.setFrameShape(QFrame.Shape.NoFrame)
        left_scroll.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        left_scroll.setMinimumWidth(280)

        left_panel = QWidget()
        left_layout = QVBoxLayout(left_panel)
        left_layout.setContentsMargins(12, 12, 12, 12)
        left_layout.setSpacing(8)
        left_scroll.setWidget(left_panel)

        # Document group
        gb_doc = QGroupBox("Document")
        doc_layout = QVBoxLayout()

        hbox_kind = QHBoxLayout()
        hbox_kind.addWidget(QLabel("File Type:"))
        self.combo_kind = QComboBox()
        self.combo_kind.addItems([label for label, _ in KIND_ITEMS])
        self.combo_kind.setCurrentIndex(-1)
        self.combo_kind.setPlaceholderText("Select file type")
        self.combo_kind.currentIndexChanged.connect(self.on_kind_changed)
        hbox_kind.addWidget(self.combo_kind)
        doc_layout.addLayout(hbox_kind)

        self.btn_upload = QPushButton("Upload File")
        self.btn_upload.clicked.connect(self.upload_file)
        doc_layout.addWidget(self.btn_upload)

        gb_doc.setLayout(doc_layout)
        left_layout.addWidget(gb_doc)

        # Rectangle parameters
        gb_rect = QGroupBox("Rectangle Parameters")
        rect_layout = QVBoxLayout()

        self.spin_page = QSpinBox()
        self.spin_page.setRange(1, 100000)
        self.spin_page.valueChanged.connect(
            lambda v: self.on_rect_param_changed("page_number", v)
        )
        rect_layout.addLayout(self._labeled("Page Number:", self.spin_page))

        self.spin_scale = QDoubleSpinBox()
        self.spin_scale.setRange(0.1, 5.0)
        self.spin_scale.setSingleStep(0.1)
        self.spin_scale.setValue(1.0)
        self.spin_scale.valueChanged.connect(
            lambda v: self.on_rect_param_changed("scale", v)
        )
        rect_layout.addLayout(self._labeled("Scale:", self.spin_scale))

        self.rect_spins = {}
        for key, label in RECT_FIELDS:
            spin = QDoubleSpinBox()
            spin.setRange(0.0, 100000.0)
            spin.setDecimals(1)
            spin.valueChanged.connect(
                lambda v, k=key: self.on_rect_param_changed(k, v)
            )
            self.rect_spins[key] = spin
            rect_layout.addLayout(self._labeled(f"{label}:", spin))

        self.lbl_page_info = QLabel("Pages: -")
        rect_layout.addWidget(self.lbl_page_info)

        btn_reset_rect = QPushButton("Reset Rectangle")
        btn_reset_rect.clicked.connect(self.reset_rect)
        rect_layout.addWidget(btn_reset_rect)

        gb_rect.setLayout(rect_layout)
        left_layout.addWidget(gb_rect)

        # Search parameters
        gb_search = QGroupBox("Search")
        search_layout = QVBoxLayout()

        self.edit_search = QLineEdit()
        self.edit_search.setPlaceholderText("Search text")
        self.edit_search.textChanged.connect(self.schedule_search)
        search_layout.addWidget(self.edit_search)

        self.combo_mode = QComboBox()
        self.combo_mode.addItems([label for label, _ in MODE_ITEMS])
        self.combo_mode.setToolTip(
            "Exact: every occurrence of the search text.\n"
            "Fixed Distance: windows within the Levenshtein distance threshold.\n"
            "Scored Fuzzy: lines whose fuzzy score is at or below the threshold\n"
            "(0.0 = perfect match, 1.0 = no similarity)."
        )
        self.combo_mode.currentIndexChanged.connect(self.on_mode_changed)
        search_layout.addLayout(self._labeled("Mode:", self.combo_mode))

        self.spin_threshold = QDoubleSpinBox()
        self.spin_threshold.valueChanged.connect(self.schedule_search)
        search_layout.addLayout(self._labeled("Threshold:", self.spin_threshold))

        self.chk_case = QCheckBox("Case Sensitive")
        self.chk_case.stateChanged.connect(self.schedule_search)
        search_layout.addWidget(self.chk_case)

        self.chk_whole_word = QCheckBox("Match Whole Word")
        self.chk_whole_word.setChecked(True)
        self.chk_whole_word.stateChanged.connect(self.schedule_search)
        search_layout.addWidget(self.chk_whole_word)

        self.btn_color = QPushButton("Highlight Color")
        self.btn_color.clicked.connect(self.pick_color)
        search_layout.addWidget(self.btn_color)

        btn_reset_search = QPushButton("Reset Search")
        btn_reset_search.clicked.connect(self.reset_search_parameters)
        search_layout.addWidget(btn_reset_search)

        gb_search.setLayout(search_layout)
        left_layout.addWidget(gb_search)

        btn_reset_all = QPushButton("Reset All")
        btn_reset_all.clicked.connect(self.reset_all)
        left_layout.addWidget(btn_reset_all)

        self.lbl_stats_mem = QLabel("Memory: -")
        self.lbl_stats_cache = QLabel("Cache: -")
        left_layout.addWidget(self.lbl_stats_mem)
        left_layout.addWidget(self.lbl_stats_cache)
        left_layout.addStretch()

        # Document view
        self.view_stack = QStackedWidget()
        self.page_label = PDFPageLabel()
        self.page_scroll = QScrollArea()
        self.page_scroll.setWidgetResizable(True)
        self.page_scroll.setWidget(self.page_label)
        self.view_stack.addWidget(self.page_scroll)

        self.markup_view = MarkupView()
        self.markup_view.measured.connect(self.on_markup_measured)
        self.view_stack.addWidget(self.markup_view)

        self.placeholder = QLabel("Upload a file to view it here.")
        self.placeholder.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.view_stack.addWidget(self.placeholder)
        self.view_stack.setCurrentWidget(self.placeholder)

        # Highlighted text
        self.text_view = SegmentTextView()

        splitter.addWidget(left_scroll)
        splitter.addWidget(self.view_stack)
        splitter.addWidget(self.text_view)
        splitter.setStretchFactor(0, 1)
        splitter.setStretchFactor(1, 2)
        splitter.setStretchFactor(2, 2)

        self.on_mode_changed()
        self._update_color_button()

    @staticmethod
    def _labeled(text, widget):
        hbox = QHBoxLayout()
        hbox.addWidget(QLabel(text))
        hbox.addWidget(widget)
        return hbox

    # ------------------------------------------------------------------
    # Document kind and uploads
    # ------------------------------------------------------------------

    def current_kind(self):
        idx = self.combo_kind.currentIndex()
        return KIND_ITEMS[idx][1] if idx >= 0 else None

    def on_kind_changed(self, _index=None):
        self.registry.select_kind(self.current_kind())
        self.refresh_all()

    def upload_file(self):
        path, _ = QFileDialog.getOpenFileName(
            self,
            "Upload File",
            "",
            "Documents (*.pdf *.html *.htm *.txt);;All Files (*)",
        )
        if not path:
            return

        kind = detect_kind(path)
        if kind is None:
            QMessageBox.warning(self, "Error", "Unsupported file type.")
            return

        token = self.registry.begin_upload(kind)
        thread = QThread()
        worker = DecodeWorker(kind, token, path)
        worker.moveToThread(thread)
        thread.started.connect(worker.run)
        worker.finished.connect(self.on_decode_finished)
        worker.error.connect(self.on_decode_error)
        self._decode_jobs[(kind, token)] = (thread, worker)
        thread.start()

        if self.current_kind() is None:
            self.combo_kind.setCurrentIndex(
                [k for _, k in KIND_ITEMS].index(kind)
            )
        self.status_bar.showMessage(f"Decoding {os.path.basename(path)}...")

    def _finish_job(self, kind, token):
        job = self._decode_jobs.pop((kind, token), None)
        if job:
            thread, _ = job
            thread.quit()
            thread.wait()

    def on_decode_finished(self, kind, token, loaded):
        self._finish_job(kind, token)
        if not self.registry.complete_upload(kind, token, loaded.path, loaded.text):
            return

        self.loaded_docs[kind] = loaded
        if kind is DocumentKind.PAGINATED:
            self.renderer.set_document(loaded.path, token)
            self.registry.report_page_count(kind, loaded.page_count)
            self._report_pdf_page_size()
        self.status_bar.showMessage(
            f"Loaded {os.path.basename(loaded.path)}", 5000
        )
        if kind is self.registry.active_kind:
            self.refresh_all()

    def on_decode_error(self, token, message):
        for key in [k for k in self._decode_jobs if k[1] == token]:
            self._finish_job(*key)
        QMessageBox.warning(self, "Error", f"Could not load file:\n{message}")

    def _report_pdf_page_size(self):
        loaded = self.loaded_docs.get(DocumentKind.PAGINATED)
        if loaded is None:
            return
        page = self.registry.rect_params(DocumentKind.PAGINATED).page_number
        size = loaded.page_size(page)
        if size:
            self.registry.on_natural_page_size_known(
                *size, kind=DocumentKind.PAGINATED
            )

    # ------------------------------------------------------------------
    # Rectangle parameters and overlay
    # ------------------------------------------------------------------

    def on_rect_param_changed(self, key, value):
        kind = self.registry.active_kind
        if kind is None:
            return
        old = self.registry.rect_params(kind)
        rect = self.registry.update_rect_params(kind, **{key: value})
        self._sync_rect_controls()

        if kind is DocumentKind.PAGINATED:
            if rect.page_number != old.page_number:
                self._report_pdf_page_size()
            if rect.page_number != old.page_number or rect.scale != old.scale:
                self.render_pdf_page()
                return
        elif kind is DocumentKind.MARKUP:
            if rect.scale != old.scale:
                self.markup_view.apply_scale(
                    rect.scale, self.registry.begin_measure(kind)
                )
            if rect.page_number != old.page_number:
                self._scroll_markup_to_page()
        self.refresh_overlay()

    def _sync_rect_controls(self):
        view = self.registry.active_view
        rect = view.rect
        spins = [self.spin_page, self.spin_scale, *self.rect_spins.values()]
        for spin in spins:
            spin.blockSignals(True)
        self.spin_page.setValue(rect.page_number)
        self.spin_scale.setValue(rect.scale)
        for key, spin in self.rect_spins.items():
            spin.setValue(getattr(rect, key))
        for spin in spins:
            spin.blockSignals(False)

        pages = view.page_count if view.page_count is not None else "-"
        self.lbl_page_info.setText(f"Page {rect.page_number} of {pages}")

    def reset_rect(self):
        if self.registry.active_kind is None:
            return
        self.registry.reset_rect_params()
        self.refresh_all()

    def change_zoom(self, delta):
        self.spin_scale.setValue(max(0.1, min(5.0, self.spin_scale.value() + delta)))
        self.status_bar.showMessage(f"Scale: {self.spin_scale.value():.1f}x", 2000)

    def render_pdf_page(self):
        view = self.registry.active_view
        loaded = self.loaded_docs.get(DocumentKind.PAGINATED)
        if view.raw_handle is None or loaded is None or not loaded.page_count:
            self.page_label.clear_page()
            return
        pixmap = self.renderer.get_page_pixmap(
            view.rect.page_number - 1, view.rect.scale
        )
        if pixmap is None:
            self.page_label.clear_page()
            return
        self.page_label.set_page(
            pixmap, self.registry.viewport_rect(), self.highlight_color
        )

    def on_markup_measured(self, token, content_height, width, height):
        kind = DocumentKind.MARKUP
        if not self.registry.on_viewport_measured(width, height, kind=kind, token=token):
            return
        self.registry.report_page_count(
            kind, virtual_page_count(content_height, height), token
        )
        if self.registry.active_kind is kind:
            self._sync_rect_controls()
            self._scroll_markup_to_page()
            self.refresh_overlay()

    def _scroll_markup_to_page(self):
        inst = self.registry.instance(DocumentKind.MARKUP)
        if inst.viewport_size:
            self.markup_view.scroll_to(
                scroll_offset_for_page(inst.rect.page_number, inst.viewport_size[1])
            )

    def refresh_overlay(self):
        kind = self.registry.active_kind
        overlay = self.registry.viewport_rect()
        if kind is DocumentKind.PAGINATED:
            self.page_label.set_overlay(overlay, self.highlight_color)
        elif kind is DocumentKind.MARKUP:
            self.markup_view.set_overlay(overlay, self.highlight_color)

    def refresh_all(self):
        """Rebuild every view from the active registry state."""
        view = self.registry.active_view
        self._sync_rect_controls()

        if view.kind is DocumentKind.PAGINATED and view.raw_handle is not None:
            self.view_stack.setCurrentWidget(self.page_scroll)
            self.render_pdf_page()
        elif view.kind is DocumentKind.MARKUP and view.text_content is not None:
            self.view_stack.setCurrentWidget(self.markup_view)
            self.markup_view.set_content(
                view.text_content,
                view.rect.scale,
                self.registry.begin_measure(DocumentKind.MARKUP),
            )
            self.refresh_overlay()
        else:
            self.placeholder.setText(
                "Plain text is shown in the search panel."
                if view.kind is DocumentKind.PLAIN_TEXT and not view.is_empty
                else "Upload a file to view it here."
            )
            self.view_stack.setCurrentWidget(self.placeholder)

        self._do_search()

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def schedule_search(self, *_):
        """Debounced entry point: coalesces rapid input into one search."""
        self._search_timer.start()

    def _mode_name(self):
        return MODE_ITEMS[self.combo_mode.currentIndex()][1]

    def on_mode_changed(self, _index=None):
        name = self._mode_name()
        self.spin_threshold.blockSignals(True)
        if name == "scored":
            self.spin_threshold.setDecimals(2)
            self.spin_threshold.setRange(0.0, 1.0)
            self.spin_threshold.setSingleStep(0.05)
            self.spin_threshold.setValue(DEFAULT_SCORE_THRESHOLD)
        else:
            self.spin_threshold.setDecimals(0)
            self.spin_threshold.setRange(0, 100)
            self.spin_threshold.setSingleStep(1)
            self.spin_threshold.setValue(0)
        self.spin_threshold.setEnabled(name != "exact")
        self.spin_threshold.blockSignals(False)
        self.chk_whole_word.setEnabled(name == "exact")
        self.schedule_search()

    def _do_search(self):
        text = self.registry.active_view.text_content or ""
        query = self.edit_search.text()
        mode = make_match_mode(
            self._mode_name(),
            threshold=self.spin_threshold.value(),
            case_sensitive=self.chk_case.isChecked(),
            whole_word=self.chk_whole_word.isChecked(),
        )

        if isinstance(mode, ScoredMatch) and query:
            results = highlight_lines(text, query, mode)
            self.text_view.set_line_results(results, self.highlight_color)
            self.status_bar.showMessage(f"{len(results)} matching lines", 4000)
            return

        segments = highlight(text, query, mode)
        self.text_view.set_segments(segments, self.highlight_color)
        if query:
            hits = sum(1 for s in segments if s.highlighted)
            self.status_bar.showMessage(f"{hits} highlighted ranges", 4000)

    def pick_color(self):
        color = QColorDialog.getColor(self.highlight_color, self, "Highlight Color")
        if color.isValid():
            self.highlight_color = color
            self._update_color_button()
            self.refresh_overlay()
            self._do_search()

    def _update_color_button(self):
        self.btn_color.setStyleSheet(
            f"QPushButton {{ border-left: 14px solid {self.highlight_color.name()}; }}"
        )

    # ------------------------------------------------------------------
    # Resets
    # ------------------------------------------------------------------

    def reset_search_parameters(self):
        self.edit_search.clear()
        self.combo_mode.setCurrentIndex(0)
        self.on_mode_changed()
        self.chk_case.setChecked(False)
        self.chk_whole_word.setChecked(True)
        self.highlight_color = QColor(DEFAULT_HIGHLIGHT_COLOR)
        self._update_color_button()
        self.schedule_search()

    def reset_all(self):
        self.registry.reset()
        self.loaded_docs.clear()
        self.renderer.cleanup()
        self.combo_kind.blockSignals(True)
        self.combo_kind.setCurrentIndex(-1)
        self.combo_kind.blockSignals(False)
        self.page_label.clear_page()
        self.markup_view.clear()
        self.reset_search_parameters()
        self.refresh_all()
        self.status_bar.showMessage("Reset.", 3000)

    # ------------------------------------------------------------------
    # Misc
    # ------------------------------------------------------------------

    def update_stats(self):
        self.lbl_stats_mem.setText(
            f"Memory: {self.process.memory_info().rss / 1024 / 1024:.1f} MB"
        )
        stats = self.renderer.get_cache_stats()
        self.lbl_stats_cache.setText(
            f"Cache: {stats['cached_pages']} pages / "
            f"{stats['used_bytes'] / 1024 / 1024:.0f} MB"
        )

    def keyPressEvent(self, event):
        """Global keyboard shortcuts."""
        if event.modifiers() & Qt.KeyboardModifier.ControlModifier:
            if event.key() == Qt.Key.Key_Plus or event.key() == Qt.Key.Key_Equal:
                self.change_zoom(0.1)
                event.accept()
                return
            elif event.key() == Qt.Key.Key_Minus:
                self.change_zoom(-0.1)
                event.accept()
                return
        super().keyPressEvent(event)

    def closeEvent(self, event):
        """Clean up resources on window close."""
        for key in list(self._decode_jobs):
            self._finish_job(*key)
        self.renderer.cleanup()
        super().closeEvent(event)
