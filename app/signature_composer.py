"""Signature composer: turn a typed name or a hand-drawn path into a PNG."""
from typing import List, Optional, Sequence, Tuple

from PySide6.QtCore import QBuffer, QByteArray, QIODevice, QPointF, Qt
from PySide6.QtGui import QColor, QFont, QFontMetricsF, QImage, QPainter, QPen
from PySide6.QtWidgets import (
    QComboBox, QDialog, QDialogButtonBox, QFormLayout, QHBoxLayout, QLineEdit,
    QMessageBox, QPushButton, QTabWidget, QVBoxLayout, QWidget,
)

import data_store

TYPED_FONT_PX = 48
TYPED_HEIGHT = 80
TYPED_MIN_W = 200
TYPED_MAX_W = 800
TYPED_MARGIN = 10
PAD_WIDTH = 800
PAD_HEIGHT = 200
PAD_PEN_WIDTH = 2

# (label, font stack) pairs offered for typed signatures
SIGNATURE_FONTS = [
    ("Pacifico / Script", ["Pacifico", "Georgia", "Times New Roman", "serif"]),
    ("Brush Script",      ["Brush Script MT", "Georgia", "serif"]),
    ("Segoe Script",      ["Segoe Script", "Georgia", "serif"]),
    ("Serif",             ["Georgia", "Times New Roman", "serif"]),
    ("Sans",              ["Arial", "Helvetica", "sans-serif"]),
]

Stroke = Sequence[Tuple[float, float]]


def _png_bytes(img: QImage) -> bytes:
    buf = QByteArray()
    dev = QBuffer(buf)
    dev.open(QIODevice.OpenModeFlag.WriteOnly)
    img.save(dev, "PNG")
    dev.close()
    return bytes(buf.data())


def _signature_font(families: Sequence[str]) -> QFont:
    font = QFont()
    font.setFamilies(list(families))
    font.setPixelSize(TYPED_FONT_PX)
    return font


def render_typed_signature(text: str, families: Sequence[str]) -> Tuple[bytes, int, int]:
    """Render *text* in a 48 px script font; return *(png, width, height)*.

    The image is 80 px high and as wide as the text plus a margin, kept
    between 200 and 800 px.
    """
    if not text.strip():
        raise ValueError("signature text is empty")
    font = _signature_font(families)
    advance = QFontMetricsF(font).horizontalAdvance(text)
    w = int(min(max(TYPED_MIN_W, advance + 2 * TYPED_MARGIN), TYPED_MAX_W))
    h = TYPED_HEIGHT
    img = QImage(w, h, QImage.Format.Format_ARGB32)
    img.fill(Qt.GlobalColor.transparent)
    p = QPainter(img)
    p.setRenderHint(QPainter.RenderHint.Antialiasing)
    p.setRenderHint(QPainter.RenderHint.TextAntialiasing)
    p.setFont(font)
    p.setPen(QColor("#000000"))
    fm = QFontMetricsF(font)
    # Vertically centre the glyph box, like a "middle" text baseline
    baseline = h / 2 + (fm.ascent() - fm.descent()) / 2
    p.drawText(QPointF(TYPED_MARGIN, baseline), text)
    p.end()
    data_store.dbg(f"Typed signature rendered at {w}×{h} px")
    return _png_bytes(img), w, h


def render_drawn_signature(strokes: Sequence[Stroke]) -> Tuple[bytes, int, int]:
    """Replay pad *strokes* onto an 800×200 transparent image."""
    if not any(len(s) > 1 for s in strokes):
        raise ValueError("signature pad is empty")
    img = QImage(PAD_WIDTH, PAD_HEIGHT, QImage.Format.Format_ARGB32)
    img.fill(Qt.GlobalColor.transparent)
    p = QPainter(img)
    p.setRenderHint(QPainter.RenderHint.Antialiasing)
    _paint_strokes(p, strokes)
    p.end()
    return _png_bytes(img), PAD_WIDTH, PAD_HEIGHT


def _paint_strokes(p: QPainter, strokes: Sequence[Stroke]) -> None:
    p.setPen(QPen(QColor("#000000"), PAD_PEN_WIDTH, Qt.PenStyle.SolidLine,
                  Qt.PenCapStyle.RoundCap, Qt.PenJoinStyle.RoundJoin))
    for stroke in strokes:
        for (x1, y1), (x2, y2) in zip(stroke, stroke[1:]):
            p.drawLine(QPointF(x1, y1), QPointF(x2, y2))


class SignaturePad(QWidget):
    """Fixed-size drawing surface that records strokes in pad pixels."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setFixedSize(PAD_WIDTH, PAD_HEIGHT)
        self.setAttribute(Qt.WidgetAttribute.WA_StyledBackground, True)
        self.setStyleSheet("background: #ffffff; border: 1px solid #888;")
        self.setCursor(Qt.CursorShape.CrossCursor)
        self._strokes: List[List[Tuple[float, float]]] = []
        self._drawing = False

    def strokes(self) -> List[List[Tuple[float, float]]]:
        return [list(s) for s in self._strokes]

    def is_empty(self) -> bool:
        return not any(len(s) > 1 for s in self._strokes)

    def clear(self):
        self._strokes = []
        self.update()

    def mousePressEvent(self, event):
        if event.button() == Qt.MouseButton.LeftButton:
            pos = event.position()
            self._strokes.append([(pos.x(), pos.y())])
            self._drawing = True
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event):
        if self._drawing:
            pos = event.position()
            self._strokes[-1].append((pos.x(), pos.y()))
            self.update()
        event.accept()

    def mouseReleaseEvent(self, event):
        self._drawing = False
        super().mouseReleaseEvent(event)

    def paintEvent(self, event):
        super().paintEvent(event)
        p = QPainter(self)
        p.setRenderHint(QPainter.RenderHint.Antialiasing)
        _paint_strokes(p, self._strokes)
        p.end()


class SignatureDialog(QDialog):
    """Create a signature by typing a name or drawing it on a pad."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Add Signature")
        self._result: Optional[Tuple[bytes, int, int]] = None

        layout = QVBoxLayout(self)
        self._tabs = QTabWidget()
        self._tabs.addTab(self._build_type_tab(), "Type")
        self._tabs.addTab(self._build_draw_tab(), "Draw")
        layout.addWidget(self._tabs)

        btns = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Ok | QDialogButtonBox.StandardButton.Cancel
        )
        btns.accepted.connect(self._on_accept)
        btns.rejected.connect(self.reject)
        layout.addWidget(btns)

    # ── Tab builders ──────────────────────────────────────────────────────────

    def _build_type_tab(self) -> QWidget:
        w = QWidget()
        form = QFormLayout(w)
        self._name_edit = QLineEdit()
        self._name_edit.setPlaceholderText("Type your name")
        form.addRow("Name:", self._name_edit)
        self._font_combo = QComboBox()
        for label, families in SIGNATURE_FONTS:
            self._font_combo.addItem(label, families)
        form.addRow("Font:", self._font_combo)
        return w

    def _build_draw_tab(self) -> QWidget:
        w = QWidget()
        v = QVBoxLayout(w)
        self._pad = SignaturePad()
        v.addWidget(self._pad)
        row = QHBoxLayout()
        clear_btn = QPushButton("Clear")
        clear_btn.clicked.connect(self._pad.clear)
        row.addWidget(clear_btn)
        row.addStretch()
        v.addLayout(row)
        return w

    # ── Result ────────────────────────────────────────────────────────────────

    def _on_accept(self):
        if self._tabs.currentIndex() == 0:
            text = self._name_edit.text()
            if not text.strip():
                QMessageBox.warning(self, "Signature", "Type a name first.")
                return
            self._result = render_typed_signature(text, self._font_combo.currentData())
        else:
            if self._pad.is_empty():
                QMessageBox.warning(self, "Signature", "Draw a signature first.")
                return
            self._result = render_drawn_signature(self._pad.strokes())
        self.accept()

    def signature(self) -> Optional[Tuple[bytes, int, int]]:
        """Return *(png_bytes, width, height)* after the dialog was accepted."""
        return self._result
