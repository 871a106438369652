"""Main entry point for the PDF Markup editor."""
import logging
import os
import subprocess
import sys
from typing import List, Optional

from PySide6.QtCore import QThread, Signal
from PySide6.QtGui import QAction, QKeySequence
from PySide6.QtWidgets import QApplication, QFileDialog, QMainWindow, QMessageBox

import data_store
from export_client import ExportClient, ExportError, edited_filename
from models import Annotation
from pdf_document import DocumentLoadError, PdfDocument
from pdf_viewer import PDFViewerPanel
from settings_dialog import SettingsDialog

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class ExportThread(QThread):
    """Runs the export request off the UI thread.

    Signals:
        result_ready: the edited PDF bytes.
        error_occurred: a message describing why the export failed.
    """
    result_ready = Signal(object)
    error_occurred = Signal(str)

    def __init__(self, client: ExportClient, pdf_bytes: bytes, filename: str,
                 annotations: List[Annotation], page_count: int, parent=None):
        super().__init__(parent)
        self._client = client
        self._pdf_bytes = pdf_bytes
        self._filename = filename
        self._annotations = list(annotations)
        self._page_count = page_count

    def run(self):
        try:
            data = self._client.export(self._pdf_bytes, self._filename,
                                       self._annotations, self._page_count)
        except ExportError as exc:
            self.error_occurred.emit(str(exc))
            return
        self.result_ready.emit(data)


class MainWindow(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("PDF Markup")
        self.resize(1200, 900)

        self._settings = data_store.load_settings()
        data_store.set_debug(self._settings.debug_mode)
        self._dirty = False
        self._export_thread: Optional[ExportThread] = None

        self._setup_ui()

    def _setup_ui(self):
        file_menu = self.menuBar().addMenu("File")
        open_action = file_menu.addAction("Open PDF…")
        open_action.setShortcut(QKeySequence.StandardKey.Open)
        open_action.triggered.connect(self._open_pdf)
        self._export_action = file_menu.addAction("Export Edited PDF…")
        self._export_action.setShortcut(QKeySequence.StandardKey.Save)
        self._export_action.triggered.connect(self._export_pdf)
        file_menu.addSeparator()
        quit_action = file_menu.addAction("Quit")
        quit_action.setShortcut(QKeySequence.StandardKey.Quit)
        quit_action.triggered.connect(self.close)

        edit_menu = self.menuBar().addMenu("Edit")
        self._undo_action = edit_menu.addAction("Undo")
        self._undo_action.setShortcut(QKeySequence.StandardKey.Undo)
        self._undo_action.triggered.connect(lambda: self._pdf_viewer.undo())
        self._redo_action = edit_menu.addAction("Redo")
        self._redo_action.setShortcuts([QKeySequence.StandardKey.Redo,
                                        QKeySequence("Ctrl+Shift+Z")])
        self._redo_action.triggered.connect(lambda: self._pdf_viewer.redo())
        edit_menu.addSeparator()
        edit_menu.addAction("Clear Page").triggered.connect(self._clear_page)
        edit_menu.addAction("Clear All Annotations").triggered.connect(self._clear_all)
        edit_menu.addSeparator()
        settings_action = edit_menu.addAction("Settings…")
        settings_action.setMenuRole(QAction.MenuRole.NoRole)
        settings_action.triggered.connect(self._show_settings)

        self._pdf_viewer = PDFViewerPanel(self._settings)
        self._pdf_viewer.annotations_changed.connect(self._on_annotations_changed)
        self._pdf_viewer.status_message.connect(
            lambda msg: self.statusBar().showMessage(msg, 5000))
        self.setCentralWidget(self._pdf_viewer)
        self._pdf_viewer.controller.add_listener(self._sync_actions)
        self._sync_actions()

    def _sync_actions(self):
        ctl = self._pdf_viewer.controller
        has_doc = self._pdf_viewer.document() is not None
        self._export_action.setEnabled(has_doc)
        self._undo_action.setEnabled(has_doc and ctl.can_undo)
        self._redo_action.setEnabled(has_doc and ctl.can_redo)

    def _update_title(self):
        doc = self._pdf_viewer.document()
        if doc is None:
            self.setWindowTitle("PDF Markup")
        else:
            self.setWindowTitle(f"{'*' if self._dirty else ''}{doc.name} — PDF Markup")

    # ── Document ──────────────────────────────────────────────────────────────

    def _open_pdf(self):
        if not self._confirm_discard():
            return
        start_dir = self._settings.last_directory or os.path.expanduser("~")
        path, _ = QFileDialog.getOpenFileName(self, "Open PDF", start_dir,
                                              "PDF files (*.pdf)")
        if path:
            self.open_path(path)

    def open_path(self, path: str) -> bool:
        try:
            doc = PdfDocument.open(path)
        except DocumentLoadError as exc:
            logger.warning("Cannot open %s: %s", path, exc)
            QMessageBox.warning(self, "Open Error", f"Cannot open this PDF:\n{exc}")
            return False
        self._pdf_viewer.load_document(doc)
        self._dirty = False
        self._remember_directory(os.path.dirname(path))
        self._update_title()
        self._sync_actions()
        self.statusBar().showMessage(f"Opened {doc.name} ({doc.page_count} page(s))", 5000)
        return True

    def _remember_directory(self, directory: str):
        if directory and directory != self._settings.last_directory:
            self._settings.last_directory = directory
            self._save_settings()

    def _save_settings(self):
        try:
            data_store.save_settings(self._settings)
        except OSError as exc:
            logger.warning("Could not save settings: %s", exc)

    def _on_annotations_changed(self):
        self._dirty = True
        self._update_title()

    def _clear_page(self):
        if self._pdf_viewer.document() is None:
            return
        removed = self._pdf_viewer.clear_page()
        self.statusBar().showMessage(f"Removed {removed} annotation(s) from this page", 5000)

    def _clear_all(self):
        if self._pdf_viewer.document() is None:
            return
        reply = QMessageBox.question(
            self, "Clear All",
            "Remove every annotation from the document?\n(This can be undone.)",
        )
        if reply == QMessageBox.StandardButton.Yes:
            self._pdf_viewer.clear_all()

    def _confirm_discard(self) -> bool:
        if not self._dirty or len(self._pdf_viewer.controller.store) == 0:
            return True
        reply = QMessageBox.question(
            self, "Unsaved Annotations",
            "The current annotations have not been exported.\nDiscard them?",
        )
        return reply == QMessageBox.StandardButton.Yes

    def closeEvent(self, event):
        if self._export_thread is not None and self._export_thread.isRunning():
            QMessageBox.information(self, "Export", "An export is still running.")
            event.ignore()
            return
        if not self._confirm_discard():
            event.ignore()
            return
        super().closeEvent(event)

    # ── Settings ──────────────────────────────────────────────────────────────

    def _show_settings(self):
        dlg = SettingsDialog(self._settings, self)
        if dlg.exec():
            self._settings = dlg.get_settings()
            data_store.set_debug(self._settings.debug_mode)
            data_store.dbg("Settings updated from dialog")
            self._pdf_viewer.apply_settings(self._settings)
            self._save_settings()

    # ── Export ────────────────────────────────────────────────────────────────

    def _export_pdf(self):
        doc = self._pdf_viewer.document()
        if doc is None or doc.data is None:
            QMessageBox.warning(self, "Export", "Load a PDF first.")
            return
        if self._export_thread is not None and self._export_thread.isRunning():
            return
        # Text still in the inline editor belongs in the request
        self._pdf_viewer.flush_editor()
        client = ExportClient(self._settings.export_url, self._settings.export_timeout)
        annotations = self._pdf_viewer.controller.store.all()
        thread = ExportThread(client, doc.data, doc.name, annotations,
                              doc.page_count, self)
        thread.result_ready.connect(lambda data: self._on_export_done(doc.name, data))
        thread.error_occurred.connect(self._on_export_failed)
        thread.finished.connect(self._on_export_finished)
        self._export_thread = thread
        self._export_action.setEnabled(False)
        self.statusBar().showMessage("Uploading to export service…")
        thread.start()

    def _on_export_done(self, name: str, data: bytes):
        start_dir = self._settings.last_directory or os.path.expanduser("~")
        default = os.path.join(start_dir, edited_filename(name))
        path, _ = QFileDialog.getSaveFileName(self, "Save Edited PDF", default,
                                              "PDF files (*.pdf)")
        if not path:
            self.statusBar().showMessage("Export discarded", 5000)
            return
        try:
            with open(path, "wb") as f:
                f.write(data)
        except OSError as exc:
            QMessageBox.warning(self, "Export Error", f"Could not write {path}:\n{exc}")
            return
        self._dirty = False
        self._update_title()
        self._remember_directory(os.path.dirname(path))
        dlg = QMessageBox(QMessageBox.Icon.Information, "Export Complete",
                          f"Edited PDF saved to:\n{path}", parent=self)
        open_btn = dlg.addButton("Open File", QMessageBox.ButtonRole.ActionRole)
        dlg.addButton(QMessageBox.StandardButton.Ok)
        dlg.exec()
        if dlg.clickedButton() is open_btn:
            _open_path(path)

    def _on_export_failed(self, message: str):
        self.statusBar().clearMessage()
        QMessageBox.warning(self, "Export Error",
                            f"Save failed:\n{message}\n\nYour annotations are unchanged.")

    def _on_export_finished(self):
        self._export_thread = None
        self._sync_actions()


def _open_path(path: str) -> None:
    """Open *path* with the platform's default handler (file or directory)."""
    if not os.path.exists(path):
        return
    try:
        if sys.platform == "darwin":
            subprocess.Popen(["open", path])
        elif sys.platform == "win32":
            os.startfile(path)  # type: ignore[attr-defined]
        else:
            subprocess.Popen(["xdg-open", path])
    except OSError as exc:
        logger.warning("Could not open %s: %s", path, exc)


def main():
    logging.basicConfig(level=logging.INFO, format=_LOG_FORMAT)
    app = QApplication(sys.argv)
    app.setApplicationName("PDF Markup")
    window = MainWindow()
    window.show()
    if len(sys.argv) > 1:
        window.open_path(sys.argv[1])
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
