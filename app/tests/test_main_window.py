import pytest

import main
from tool_controller import TOOL_TEXT


class _CapturingExport(main.ExportThread):
    """Records what would be sent instead of contacting the service."""

    sent = []

    def start(self):
        _CapturingExport.sent.append(list(self._annotations))


@pytest.fixture()
def window(qapp, pdf_doc, monkeypatch):
    monkeypatch.setattr(main, "ExportThread", _CapturingExport)
    _CapturingExport.sent = []
    win = main.MainWindow()
    win._pdf_viewer.load_document(pdf_doc)
    yield win
    win._pdf_viewer.clear()
    win.deleteLater()


def test_export_sends_text_still_being_typed(window):
    viewer = window._pdf_viewer
    viewer.set_active_tool(TOOL_TEXT)
    viewer.controller.pointer_down((200, 300))
    editor = viewer._editor
    assert editor is not None
    editor.setPlainText("Approved")

    window._export_pdf()

    assert len(_CapturingExport.sent) == 1
    assert [a.text for a in _CapturingExport.sent[0]] == ["Approved"]
    assert viewer._editor is None
    assert viewer.controller.editing_id is None
    assert viewer.controller.can_undo


def test_export_drops_blank_placeholder(window):
    viewer = window._pdf_viewer
    viewer.set_active_tool(TOOL_TEXT)
    viewer.controller.pointer_down((200, 300))
    assert viewer._editor is not None

    window._export_pdf()

    assert _CapturingExport.sent == [[]]
    assert not viewer.controller.can_undo
