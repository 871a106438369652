import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import fitz
import pytest

import data_store
from models import EditorSettings, NativeTextRun
from pdf_document import PdfDocument
from tool_controller import ToolController

PAGE_W, PAGE_H = 595, 842
HELLO_ORIGIN = (72, 100)   # baseline start of "Hello World", top-down


class FakeMetrics:
    """Every glyph is half as wide as the font size."""

    def text_width(self, text, size, family="Arial"):
        return len(text) * size * 0.5


class FakeTextSource:
    """Stands in for a document: canned runs, counts extraction calls."""

    def __init__(self, runs, page_size=(612.0, 792.0)):
        self.runs = runs
        self.size = page_size
        self.calls = 0

    def text_runs(self, page):
        self.calls += 1
        return list(self.runs)

    def page_size(self, page):
        return self.size


@pytest.fixture(autouse=True)
def tmp_settings(tmp_path, monkeypatch):
    """Redirect the settings file to a temporary directory; reset debug mode."""
    path = tmp_path / "data" / "settings.json"
    monkeypatch.setattr(data_store, "SETTINGS_PATH", str(path))
    yield path
    data_store.set_debug(False)


@pytest.fixture()
def metrics():
    return FakeMetrics()


@pytest.fixture()
def controller(metrics):
    """Controller on a 3-page document at scale 1.0."""
    ctl = ToolController(metrics, settings=EditorSettings(default_scale=1.0))
    ctl.load_document(3)
    return ctl


@pytest.fixture()
def pdf_bytes():
    doc = fitz.open()
    for i in range(2):
        page = doc.new_page(width=PAGE_W, height=PAGE_H)
        page.insert_text(HELLO_ORIGIN, "Hello World" if i == 0 else "Second page",
                         fontsize=12, fontname="helv")
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture()
def pdf_doc(pdf_bytes):
    doc = PdfDocument.from_bytes(pdf_bytes, "sample.pdf")
    yield doc
    doc.close()


@pytest.fixture()
def text_source():
    return FakeTextSource([NativeTextRun("Total", (12, 0, 0, 12, 50, 692), 30.0)])


@pytest.fixture(scope="session")
def qapp():
    from PySide6.QtWidgets import QApplication
    app = QApplication.instance() or QApplication([])
    yield app
