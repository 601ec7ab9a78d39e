import logging
import os
import sys

from PyQt6.QtWidgets import QApplication

from gui.main_window import MainWindow


def main():
    logging.basicConfig(
        level=os.getenv("PDFHIGHLIGHT_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    app = QApplication(sys.argv)
    window = MainWindow()
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
