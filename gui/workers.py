"""
Background Workers for the viewer.

DecodeWorker reads an uploaded file off the GUI thread. Its result carries
the upload token handed out by the registry, so a superseded upload that
finishes late is recognised and dropped by the receiver.
"""

from PyQt6.QtCore import QObject, pyqtSignal

from document_loader import load_document


class DecodeWorker(QObject):
    """Worker for decoding an uploaded document in a background thread."""

    finished = pyqtSignal(object, int, object)  # kind, token, LoadedDocument
    error = pyqtSignal(int, str)  # token, message

    def __init__(self, kind, token: int, file_path: str):
        super().__init__()
        self.kind = kind
        self.token = token
        self.file_path = file_path

    def run(self):
        try:
            loaded = load_document(self.file_path, kind=self.kind)
            self.finished.emit(self.kind, self.token, loaded)
        except Exception as e:
            self.error.emit(self.token, str(e))
