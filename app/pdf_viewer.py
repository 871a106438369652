"""Center panel: the page view and the annotation toolbar.

The panel owns no annotation state.  Pointer events on the page are passed,
in logical pixels of the rendered page, to the :class:`ToolController`;
the :class:`RenderPipeline` answers with finished frames which are shown in
the page canvas.  The only widget-level state kept here is the floating
text editor and the pan-by-drag origin.
"""
import mimetypes
import os
from typing import Optional, Tuple

from PySide6.QtCore import QEvent, QObject, QPoint, QRect, QSize, Qt, QTimer, Signal
from PySide6.QtGui import QActionGroup, QColor, QCursor, QFont, QImage, QPainter, QPen, QPixmap
from PySide6.QtWidgets import (
    QApplication, QFileDialog, QLabel, QLineEdit, QPlainTextEdit, QScrollArea,
    QToolBar, QVBoxLayout, QWidget,
)

import annotation_overlay
import data_store
import hit_test
import viewport
from models import ANN_IMAGE, ANN_SIGNATURE, RASTER_TYPES, EditorSettings
from pdf_document import PdfDocument
from render_pipeline import RenderPipeline
from signature_composer import SignatureDialog
from text_index import TextExtractionIndex
from text_metrics import FontMetrics
from tool_controller import (
    TOOL_CIRCLE, TOOL_DRAW, TOOL_ERASER, TOOL_HIGHLIGHT, TOOL_IMAGE,
    TOOL_RECTANGLE, TOOL_SELECT, TOOL_SIGNATURE, TOOL_TEXT, ToolController,
)

# (tool, toolbar label, tooltip, shortcut key)
_TOOL_ENTRIES = [
    (TOOL_SELECT,    "↖", "Select, move or replace text (V)", Qt.Key.Key_V),
    (TOOL_TEXT,      "T", "Add text (T)",                     Qt.Key.Key_T),
    (TOOL_DRAW,      "✎", "Freehand (D)",                     Qt.Key.Key_D),
    (TOOL_RECTANGLE, "▭", "Rectangle (R)",                    Qt.Key.Key_R),
    (TOOL_CIRCLE,    "○", "Circle (O)",                       Qt.Key.Key_O),
    (TOOL_HIGHLIGHT, "▤", "Highlight (H)",                    Qt.Key.Key_H),
    (TOOL_IMAGE,     "🖼", "Insert image (I)",                 Qt.Key.Key_I),
    (TOOL_SIGNATURE, "✍", "Add signature (S)",                Qt.Key.Key_S),
    (TOOL_ERASER,    "⌫", "Eraser (E)",                       Qt.Key.Key_E),
]
_TOOL_KEYS = {key: tool for tool, _label, _tip, key in _TOOL_ENTRIES}

# Left/Right page through the document; the value names the panel method
_NAV_KEYS = {Qt.Key.Key_Left: "prev_page", Qt.Key.Key_Right: "next_page"}

_MODIFIER_MASK = (Qt.KeyboardModifier.ShiftModifier
                  | Qt.KeyboardModifier.ControlModifier
                  | Qt.KeyboardModifier.AltModifier
                  | Qt.KeyboardModifier.MetaModifier)

# Cmd on macOS (reported as Meta), Ctrl elsewhere
_PAN_MOD = Qt.KeyboardModifier.MetaModifier | Qt.KeyboardModifier.ControlModifier

_WHEEL_ZOOM_DIVISOR = 800.0  # angle-delta units per 1× zoom change
_INLINE_EDITOR_MIN_W = 120

_IMAGE_FILTER = "Images (*.png *.jpg *.jpeg *.gif *.bmp *.webp)"
_PLACEHOLDER = "No PDF loaded.\nUse File → Open PDF… to start editing."

_HANDLE_CURSORS = {
    "nw": Qt.CursorShape.SizeFDiagCursor,
    "se": Qt.CursorShape.SizeFDiagCursor,
    "ne": Qt.CursorShape.SizeBDiagCursor,
    "sw": Qt.CursorShape.SizeBDiagCursor,
}


def _eraser_cursor() -> QCursor:
    """Red ring with a cross, hot spot in the centre."""
    size, inset = 24, 6
    pm = QPixmap(size, size)
    pm.fill(Qt.GlobalColor.transparent)
    p = QPainter(pm)
    p.setRenderHint(QPainter.RenderHint.Antialiasing)
    p.setPen(QPen(QColor(200, 40, 40), 2))
    p.drawEllipse(QRect(2, 2, size - 4, size - 4))
    p.drawLine(inset, inset, size - inset, size - inset)
    p.drawLine(inset, size - inset, size - inset, inset)
    p.end()
    return QCursor(pm, size // 2, size // 2)


def _zoom_factor(event) -> Optional[float]:
    """Zoom multiplier carried by Ctrl+wheel or a pinch gesture, else None."""
    kind = event.type()
    if kind == QEvent.Type.Wheel and event.modifiers() & Qt.KeyboardModifier.ControlModifier:
        return 1.0 + event.angleDelta().y() / _WHEEL_ZOOM_DIVISOR
    if (kind == QEvent.Type.NativeGesture
            and event.gestureType() == Qt.NativeGestureType.ZoomNativeGesture):
        return 1.0 + event.value()
    return None


class InlineTextEdit(QPlainTextEdit):
    """Floating editor placed over a text annotation.

    Enter starts a new line, Ctrl+Enter commits, Escape cancels.  Losing
    focus commits, unless the text is blank, which cancels.
    """

    committed = Signal(str)
    cancelled = Signal()

    def __init__(self, font: QFont, color: str = "#000000", parent=None):
        super().__init__(parent)
        self._closed = False
        self.setLineWrapMode(QPlainTextEdit.LineWrapMode.NoWrap)
        self.setVerticalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        # The document font drives fontMetrics(); a stylesheet font would not
        self.setFont(font)
        self.document().setDefaultFont(font)
        self.setStyleSheet(
            "QPlainTextEdit { background-color: #ffff99; border: 1px solid #888;"
            f" padding: 1px; color: {color}; }}"
        )
        self.document().contentsChanged.connect(self.fit_to_text)

    @property
    def done(self) -> bool:
        return self._closed

    def finish(self) -> str:
        """Close silently and hand back the current text."""
        self._closed = True
        return self.toPlainText()

    def chrome(self) -> int:
        """Pixels between the widget edge and the first glyph."""
        return self.frameWidth() + int(self.document().documentMargin())

    def fit_to_text(self):
        fm = self.fontMetrics()
        lines = self.toPlainText().split("\n")
        m = self.contentsMargins()
        border = 2 * self.chrome()
        text_w = max(fm.horizontalAdvance(line) for line in lines) + fm.averageCharWidth()
        size = QSize(
            max(_INLINE_EDITOR_MIN_W, text_w + border + m.left() + m.right()),
            fm.lineSpacing() * len(lines) + border + m.top() + m.bottom(),
        )
        if size != self.size():
            self.resize(size)
            self.ensureCursorVisible()

    def _close(self, commit: bool):
        if self._closed:
            return
        self._closed = True
        if commit:
            self.committed.emit(self.toPlainText())
        else:
            self.cancelled.emit()

    def keyPressEvent(self, event):
        key = event.key()
        if key == Qt.Key.Key_Escape:
            self._close(commit=False)
        elif (key in (Qt.Key.Key_Return, Qt.Key.Key_Enter)
              and event.modifiers() & Qt.KeyboardModifier.ControlModifier):
            self._close(commit=True)
        else:
            super().keyPressEvent(event)

    def focusOutEvent(self, event):
        self._close(commit=bool(self.toPlainText().strip()))
        super().focusOutEvent(event)


class _KeyRouter(QObject):
    """Application-wide shortcuts for the page view.

    Keys are left alone while a text field has focus or a dialog is open.
    """

    def __init__(self, viewer: "PDFViewerPanel", parent=None):
        super().__init__(parent)
        self._viewer = viewer

    def _active(self) -> bool:
        if self._viewer.document() is None:
            return False
        if isinstance(QApplication.focusWidget(), (QLineEdit, QPlainTextEdit)):
            return False
        return QApplication.activeModalWidget() is None

    def eventFilter(self, obj, event):
        if event.type() != QEvent.Type.KeyPress or not self._active():
            return False
        viewer = self._viewer
        key = event.key()
        mods = event.modifiers() & _MODIFIER_MASK

        if mods == Qt.KeyboardModifier.AltModifier and key in _NAV_KEYS:
            getattr(viewer, _NAV_KEYS[key])()
            return True
        if mods:
            return False

        if key in _TOOL_KEYS:
            tool = _TOOL_KEYS[key]
            # Pressing the active tool's key drops back to select
            viewer.set_active_tool(TOOL_SELECT if viewer.controller.tool == tool else tool)
            return True
        if key == Qt.Key.Key_Escape:
            viewer.escape()
            return True
        if key in (Qt.Key.Key_Delete, Qt.Key.Key_Backspace):
            return viewer.delete_selected()
        # Plain arrows page only when they have nothing to scroll
        if key in _NAV_KEYS and viewer.pointer_over_view() and viewer.page_fits_view():
            getattr(viewer, _NAV_KEYS[key])()
            return True
        return False


class PageCanvas(QLabel):
    """Shows the current frame and reports pointer activity in page pixels."""

    pointer_pressed  = Signal(float, float)
    pointer_moved    = Signal(float, float)
    pointer_released = Signal(float, float)
    pointer_left     = Signal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setMouseTracking(True)
        self.setAlignment(Qt.AlignmentFlag.AlignCenter)

    def mousePressEvent(self, event):
        if event.button() == Qt.MouseButton.LeftButton:
            pos = event.position()
            self.pointer_pressed.emit(pos.x(), pos.y())
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event):
        pos = event.position()
        self.pointer_moved.emit(pos.x(), pos.y())
        event.accept()

    def mouseReleaseEvent(self, event):
        if event.button() == Qt.MouseButton.LeftButton:
            pos = event.position()
            self.pointer_released.emit(pos.x(), pos.y())
        super().mouseReleaseEvent(event)

    def leaveEvent(self, event):
        self.pointer_left.emit()
        super().leaveEvent(event)


class PDFViewerPanel(QWidget):
    annotations_changed = Signal()
    status_message      = Signal(str)

    def __init__(self, settings: Optional[EditorSettings] = None, parent=None):
        super().__init__(parent)
        self._settings = settings or EditorSettings()
        self._doc: Optional[PdfDocument] = None
        self._metrics = FontMetrics()
        self._text_index = TextExtractionIndex(self._metrics)

        self.controller = ToolController(self._metrics, self._text_index, self._settings)
        # Dialogs open after the press that triggered them has been delivered
        self.controller.on_request_image = lambda: QTimer.singleShot(0, self._insert_image)
        self.controller.on_request_signature = (
            lambda: QTimer.singleShot(0, self._insert_signature))
        self.controller.add_listener(self._on_state_changed)
        self._seen_version = self.controller.store.version

        self._pipeline = RenderPipeline(self.controller, self._metrics, self)
        self._pipeline.frame_ready.connect(self._show_frame)
        self._pipeline.render_failed.connect(
            lambda msg: self.status_message.emit(f"Cannot render page: {msg}"))

        self._editor: Optional[InlineTextEdit] = None
        self._editor_ann_id: Optional[str] = None
        # (viewport position, h scroll, v scroll) at the start of a pan
        self._pan: Optional[Tuple[QPoint, int, int]] = None
        self._eraser = _eraser_cursor()

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)
        layout.addWidget(self._build_toolbar())

        self._scroll = QScrollArea()
        self._scroll.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._scroll.setWidgetResizable(False)
        self._canvas = PageCanvas()
        self._canvas.pointer_pressed.connect(self._on_pressed)
        self._canvas.pointer_moved.connect(self._on_moved)
        self._canvas.pointer_released.connect(self._on_released)
        self._canvas.pointer_left.connect(self._on_left)
        self._scroll.setWidget(self._canvas)
        layout.addWidget(self._scroll, stretch=1)
        # Ctrl+wheel and pinch zoom instead of scrolling
        self._scroll.viewport().installEventFilter(self)

        self._show_placeholder()

        self._key_router = _KeyRouter(self)
        QApplication.instance().installEventFilter(self._key_router)

    def _build_toolbar(self) -> QToolBar:
        bar = QToolBar()
        bar.setMovable(False)

        self._tool_group = QActionGroup(self)
        self._tool_group.setExclusive(True)
        self._tool_actions = {}
        for tool, label, tip, _key in _TOOL_ENTRIES:
            act = bar.addAction(label)
            act.setToolTip(tip)
            act.setCheckable(True)
            act.setData(tool)
            self._tool_group.addAction(act)
            self._tool_actions[tool] = act
        self._tool_group.triggered.connect(lambda act: self.set_active_tool(act.data()))

        bar.addSeparator()
        self._undo_act = bar.addAction("↶")
        self._undo_act.setToolTip("Undo (Ctrl+Z)")
        self._undo_act.triggered.connect(self.undo)
        self._redo_act = bar.addAction("↷")
        self._redo_act.setToolTip("Redo (Ctrl+Shift+Z)")
        self._redo_act.triggered.connect(self.redo)

        bar.addSeparator()
        self._prev_act = bar.addAction("◀")
        self._prev_act.setToolTip("Previous page (Alt+Left)")
        self._prev_act.triggered.connect(self.prev_page)
        self._page_counter = QLabel()
        self._page_counter.setMinimumWidth(90)
        self._page_counter.setAlignment(Qt.AlignmentFlag.AlignCenter)
        bar.addWidget(self._page_counter)
        self._next_act = bar.addAction("▶")
        self._next_act.setToolTip("Next page (Alt+Right)")
        self._next_act.triggered.connect(self.next_page)

        bar.addSeparator()
        bar.addAction("−").triggered.connect(self.zoom_out)
        self._zoom_label = QLabel()
        self._zoom_label.setMinimumWidth(50)
        self._zoom_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        bar.addWidget(self._zoom_label)
        bar.addAction("+").triggered.connect(self.zoom_in)
        return bar

    # ── Public API ────────────────────────────────────────────────────────────

    def document(self) -> Optional[PdfDocument]:
        return self._doc

    def load_document(self, doc: PdfDocument):
        """Show *doc* and start a fresh annotation session on it."""
        self._discard_editor()
        if self._doc is not None and self._doc is not doc:
            self._doc.close()
        self._doc = doc
        self._text_index.set_source(f"{doc.name}:{id(doc)}", doc)
        self._pipeline.set_document(doc)
        self._pipeline.set_dpr(self._current_dpr())
        self.controller.set_scale(viewport.clamp_scale(self._settings.default_scale))
        self.controller.load_document(doc.page_count)
        self._pipeline.request(force=True)

    def clear(self):
        self._discard_editor()
        if self._doc is not None:
            self._doc.close()
        self._doc = None
        self._text_index.set_source(None, None)
        self._pipeline.set_document(None)
        self.controller.load_document(0)
        self._show_placeholder()

    def apply_settings(self, settings: EditorSettings):
        dpr_changed = settings.hi_dpr != self._settings.hi_dpr
        self._settings = settings
        self.controller.apply_settings(settings)
        if dpr_changed:
            self._pipeline.set_dpr(self._current_dpr())
            self._pipeline.request(force=True)

    def set_active_tool(self, tool: str):
        self.flush_editor()
        self.controller.set_tool(tool)
        self._apply_tool_cursor()

    def undo(self):
        self.flush_editor()
        self.controller.undo()

    def redo(self):
        self.flush_editor()
        self.controller.redo()

    def delete_selected(self) -> bool:
        if self._editor is not None:
            return False
        return self.controller.delete_selected()

    def clear_page(self) -> int:
        self.flush_editor()
        return self.controller.clear_page()

    def clear_all(self) -> int:
        self.flush_editor()
        return self.controller.clear_all()

    def escape(self):
        """Abandon the gesture in progress; without one, go back to select."""
        if self.controller.gesture_active:
            self.controller.cancel_gesture()
        else:
            self.set_active_tool(TOOL_SELECT)

    def prev_page(self):
        self.flush_editor()
        self.controller.prev_page()

    def next_page(self):
        self.flush_editor()
        self.controller.next_page()

    def zoom_in(self):
        self.flush_editor()
        self.controller.zoom_in()

    def zoom_out(self):
        self.flush_editor()
        self.controller.zoom_out()

    def pointer_over_view(self) -> bool:
        area = self._scroll
        return QRect(area.mapToGlobal(QPoint(0, 0)), area.size()).contains(QCursor.pos())

    def page_fits_view(self) -> bool:
        return (self._scroll.horizontalScrollBar().maximum() == 0
                and self._scroll.verticalScrollBar().maximum() == 0)

    # ── Controller → widgets ──────────────────────────────────────────────────

    def _on_state_changed(self):
        self._sync_toolbar()
        self._sync_editor()
        self._pipeline.request()
        if self.controller.store.version != self._seen_version:
            self._seen_version = self.controller.store.version
            self.annotations_changed.emit()

    def _sync_toolbar(self):
        ctl = self.controller
        has_doc = self._doc is not None
        self._tool_actions[ctl.tool].setChecked(True)
        self._undo_act.setEnabled(has_doc and ctl.can_undo)
        self._redo_act.setEnabled(has_doc and ctl.can_redo)
        self._prev_act.setEnabled(has_doc and ctl.page > 0)
        self._next_act.setEnabled(has_doc and ctl.page < ctl.page_count - 1)
        self._page_counter.setText(
            f"Page {ctl.page + 1} / {ctl.page_count}" if has_doc else "Page – / –")
        self._zoom_label.setText(f"{round(ctl.scale * 100)}%")

    def _current_dpr(self) -> float:
        return self.devicePixelRatio() if self._settings.hi_dpr else 1.0

    def _show_placeholder(self):
        self._canvas.setPixmap(QPixmap())
        self._canvas.setText(_PLACEHOLDER)
        self._canvas.resize(400, 300)
        self._sync_toolbar()

    def _show_frame(self, frame: QPixmap):
        dpr = frame.devicePixelRatio()
        self._canvas.setPixmap(frame)
        self._canvas.resize(int(frame.width() / dpr), int(frame.height() / dpr))
        self._place_editor()

    # ── Cursors ───────────────────────────────────────────────────────────────

    def _apply_tool_cursor(self):
        tool = self.controller.tool
        if tool == TOOL_ERASER:
            self._canvas.setCursor(self._eraser)
        elif tool == TOOL_TEXT:
            self._canvas.setCursor(Qt.CursorShape.IBeamCursor)
        elif tool == TOOL_SELECT:
            self._canvas.setCursor(Qt.CursorShape.ArrowCursor)
        else:
            self._canvas.setCursor(Qt.CursorShape.CrossCursor)

    def _apply_hover_cursor(self, point: Tuple[float, float]):
        """In select mode, show what a press at *point* would grab."""
        ctl = self.controller
        if ctl.tool != TOOL_SELECT or self._doc is None:
            return
        sel = ctl.selected()
        if sel is not None and sel.type in RASTER_TYPES and sel.page == ctl.page:
            handle = hit_test.resize_handle_at(sel, point, ctl.scale)
            if handle:
                self._canvas.setCursor(_HANDLE_CURSORS[handle])
                return
        over_raster = hit_test.pick(ctl.store.all(), point, ctl.page, ctl.scale,
                                    self._metrics, kinds=(ANN_IMAGE, ANN_SIGNATURE))
        self._canvas.setCursor(Qt.CursorShape.OpenHandCursor if over_raster
                               else Qt.CursorShape.ArrowCursor)

    # ── Pointer handling ──────────────────────────────────────────────────────

    def _viewport_pos(self) -> QPoint:
        return self._scroll.viewport().mapFromGlobal(QCursor.pos())

    def _on_pressed(self, x: float, y: float):
        if self._doc is None:
            return
        if QApplication.queryKeyboardModifiers() & _PAN_MOD:
            self._pan = (self._viewport_pos(),
                         self._scroll.horizontalScrollBar().value(),
                         self._scroll.verticalScrollBar().value())
            return
        self.flush_editor()
        self.controller.pointer_down((x, y))
        if self.controller.gesture_active and self.controller.tool == TOOL_SELECT:
            self._canvas.setCursor(Qt.CursorShape.ClosedHandCursor)

    def _on_moved(self, x: float, y: float):
        if self._pan is not None:
            # Viewport coordinates stay put while the canvas scrolls underneath
            origin, h, v = self._pan
            delta = self._viewport_pos() - origin
            self._scroll.horizontalScrollBar().setValue(h - delta.x())
            self._scroll.verticalScrollBar().setValue(v - delta.y())
        elif self.controller.gesture_active:
            self.controller.pointer_move((x, y))
        else:
            self._apply_hover_cursor((x, y))

    def _on_released(self, x: float, y: float):
        if self._pan is not None:
            self._pan = None
        elif self.controller.gesture_active:
            self.controller.pointer_up((x, y))
            self._apply_tool_cursor()
            self._apply_hover_cursor((x, y))

    def _on_left(self):
        if self._pan is None and self.controller.gesture_active:
            self.controller.cancel_gesture()
            self._apply_tool_cursor()

    # ── Image / signature insertion ───────────────────────────────────────────

    def _insert_image(self):
        start_dir = self._settings.last_directory or os.path.expanduser("~")
        path, _ = QFileDialog.getOpenFileName(self, "Insert Image", start_dir, _IMAGE_FILTER)
        if not path:
            self.set_active_tool(TOOL_SELECT)
            return
        name = os.path.basename(path)
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as exc:
            self.status_message.emit(f"Cannot read {name}: {exc}")
            return
        img = QImage.fromData(data)
        if img.isNull():
            self.status_message.emit(f"{name} is not a supported image.")
            return
        mime = mimetypes.guess_type(path)[0] or "image/png"
        self.controller.insert_raster(ANN_IMAGE, data, mime, img.width(), img.height())
        self._apply_tool_cursor()
        self.status_message.emit(f"Added {name}")

    def _insert_signature(self):
        dlg = SignatureDialog(self)
        result = dlg.signature() if dlg.exec() else None
        if result is None:
            self.set_active_tool(TOOL_SELECT)
            return
        png, w, h = result
        self.controller.insert_raster(ANN_SIGNATURE, png, "image/png", w, h)
        self._apply_tool_cursor()
        self.status_message.emit("Signature added")

    # ── Inline text editor ────────────────────────────────────────────────────

    def _sync_editor(self):
        """Open, keep or close the floating editor to match the controller."""
        editing = self.controller.editing_annotation()
        if editing is not None and editing.id == self._editor_ann_id:
            return
        self._discard_editor()
        if editing is not None:
            self._open_editor(editing)

    def _open_editor(self, ann):
        editor = InlineTextEdit(annotation_overlay.text_font(ann, self.controller.scale),
                                ann.color or "#000000", self._scroll.viewport())
        editor.setPlainText(ann.text or "")
        editor.selectAll()
        self._editor = editor
        self._editor_ann_id = ann.id
        self._place_editor()
        editor.show()
        editor.setFocus()
        # Geometry is only final once the widget has been shown
        QTimer.singleShot(0, editor.fit_to_text)
        editor.committed.connect(lambda text: self._editor_closed(editor, text))
        editor.cancelled.connect(lambda: self._editor_closed(editor, None))

    def _editor_closed(self, editor: InlineTextEdit, text: Optional[str]):
        self._release_editor(editor)
        if text is None:
            self.controller.cancel_text_edit()
        else:
            self.controller.finish_text_edit(text)

    def _place_editor(self):
        """Line the editor's first glyph up with the annotation's baseline box."""
        editor = self._editor
        ann = self.controller.editing_annotation()
        if editor is None or ann is None:
            return
        x, top, _w, _h = hit_test.text_rect_px(ann, self.controller.scale, self._metrics)
        inset = editor.chrome()
        editor.move(self._canvas.mapTo(self._scroll.viewport(),
                                       QPoint(int(x) - inset, int(top) - inset)))

    def flush_editor(self):
        """Hand the open editor's text to the controller before another action."""
        editor = self._editor
        if editor is None or editor.done:
            return
        text = editor.finish()
        self._release_editor(editor)
        if text.strip():
            self.controller.finish_text_edit(text)
        else:
            self.controller.cancel_text_edit()

    def _discard_editor(self):
        if self._editor is not None:
            self._editor.finish()
            self._release_editor(self._editor)

    def _release_editor(self, editor: InlineTextEdit):
        if self._editor is editor:
            self._editor = None
            self._editor_ann_id = None
        editor.deleteLater()

    # ── Zoom gestures ─────────────────────────────────────────────────────────

    def eventFilter(self, obj, event):
        if obj is self._scroll.viewport():
            factor = _zoom_factor(event)
            if factor is not None:
                self._apply_zoom_factor(factor)
                return True
        return super().eventFilter(obj, event)

    def _apply_zoom_factor(self, factor: float):
        if self._doc is None:
            return
        new_scale = viewport.clamp_scale(self.controller.scale * factor)
        if abs(new_scale - self.controller.scale) > 0.005:
            self.flush_editor()
            self.controller.set_scale(new_scale)
            data_store.dbg(f"Zoom set to {new_scale:.2f}")
