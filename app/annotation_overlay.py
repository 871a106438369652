"""Annotation overlay: paint annotations on top of a rendered page.

Annotation geometry is in page-space; every helper takes the current *scale*
and multiplies on the way in.  Painting happens in logical pixels, so a
high-DPI page pixmap (``devicePixelRatio() > 1``) needs no special handling.
"""
import math
from typing import Dict, Iterable, Optional

from PySide6.QtCore import QPointF, QRectF, Qt
from PySide6.QtGui import QColor, QFont, QImage, QPainter, QPainterPath, QPen, QPixmap

import hit_test
import viewport
from models import (
    ANN_CIRCLE, ANN_DRAW, ANN_HIGHLIGHT, ANN_RECTANGLE, ANN_TEXT, RASTER_TYPES,
    Annotation,
)
from text_metrics import base14_name
from tool_controller import TOOL_CIRCLE, TOOL_DRAW, TOOL_HIGHLIGHT, Preview

STROKE_WIDTH = 2
HIGHLIGHT_ALPHA = 0x40
_HANDLE_PX = 6                 # side of the painted resize-handle squares

_SELECTION = QColor("#3b82f6")
_HIGHLIGHT_DEFAULT = "#FFFF00"

# Qt faces for the Base-14 fonts the metrics engine measures with
_BASE14_FACES = {
    "helv": ("Helvetica", QFont.StyleHint.Helvetica),
    "tiro": ("Times", QFont.StyleHint.Times),
    "cour": ("Courier", QFont.StyleHint.Courier),
}

_PLACEHOLDER_FILL = QColor(0, 0, 0, 20)


# ── Public drawing helpers ────────────────────────────────────────────────────

def draw_annotations(
    pixmap: QPixmap,
    annotations: Iterable[Annotation],
    page: int,
    scale: float,
    metrics,
    images: Optional[Dict[str, QImage]] = None,
    skip_id: Optional[str] = None,
) -> QPixmap:
    """Return a *copy* of *pixmap* with all annotations for *page* drawn on it.

    *images* maps annotation ids to decoded rasters; image annotations whose
    payload is not decoded yet are drawn as a grey placeholder box.
    *skip_id* is left out (the annotation under the inline editor).
    """
    result = pixmap.copy()
    painter = QPainter(result)
    painter.setRenderHint(QPainter.RenderHint.Antialiasing)
    painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
    for ann in annotations:
        if ann.page != page or ann.id == skip_id:
            continue
        painter.save()
        _draw_one(painter, ann, scale, images or {})
        painter.restore()
    painter.end()
    return result


def draw_preview(pixmap: QPixmap, preview: Preview) -> None:
    """Draw the in-progress gesture on *pixmap* **in place**."""
    if len(preview.points) < 2 and preview.tool != TOOL_DRAW:
        return
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.RenderHint.Antialiasing)
    color = QColor(preview.color or "#000000")
    if preview.tool == TOOL_DRAW:
        painter.setPen(_stroke_pen(color))
        painter.drawPath(_polyline(preview.points))
    else:
        (sx, sy), (ex, ey) = preview.points[0], preview.points[-1]
        w, h = ex - sx, ey - sy
        if preview.tool == TOOL_HIGHLIGHT:
            fill = QColor(color)
            fill.setAlpha(HIGHLIGHT_ALPHA)
            painter.fillRect(QRectF(sx, sy, w, h).normalized(), fill)
        elif preview.tool == TOOL_CIRCLE:
            painter.setPen(QPen(color, STROKE_WIDTH, Qt.PenStyle.DashLine))
            r = math.hypot(w, h) / 2
            painter.drawEllipse(QPointF(sx + w / 2, sy + h / 2), r, r)
        else:
            painter.setPen(QPen(color, STROKE_WIDTH, Qt.PenStyle.DashLine))
            painter.drawRect(QRectF(sx, sy, w, h).normalized())
    painter.end()


def draw_selection(pixmap: QPixmap, ann: Annotation, scale: float, metrics) -> None:
    """Outline *ann* with the dashed selection frame, **in place**."""
    rect = selection_rect(ann, scale, metrics)
    if rect is None:
        return
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.RenderHint.Antialiasing)
    pen = QPen(_SELECTION, STROKE_WIDTH, Qt.PenStyle.CustomDashLine)
    pen.setDashPattern([2.5, 2.5])   # 5 px dashes at a 2 px pen
    painter.setPen(pen)
    painter.drawRect(rect)
    if ann.type in RASTER_TYPES:
        # Corner handles for resizing
        hs = _HANDLE_PX
        sx, sy, sw, sh = viewport.rect_to_pixels(ann.x, ann.y, ann.width, ann.height, scale)
        for hx, hy in ((sx, sy), (sx + sw, sy), (sx, sy + sh), (sx + sw, sy + sh)):
            painter.fillRect(QRectF(hx - hs / 2, hy - hs / 2, hs, hs), _SELECTION)
    painter.end()


def selection_rect(ann: Annotation, scale: float, metrics) -> Optional[QRectF]:
    """Return the pixel rectangle the selection frame is drawn around."""
    if ann.type == ANN_TEXT:
        x, top, w, h = hit_test.text_rect_px(ann, scale, metrics)
        return QRectF(x - 2, top, w + 4, h + 4)
    rect = hit_test.annotation_rect_px(ann, scale, metrics)
    if rect is None:
        return None
    x, y, w, h = rect
    return QRectF(x - 2, y - 2, w + 4, h + 4)


def text_font(ann: Annotation, scale: float) -> QFont:
    """Qt font for *ann* at the displayed pixel size.

    The face is the Base-14 font that text boxes are measured with.
    """
    family, hint = _BASE14_FACES[base14_name(ann.effective_font_family())]
    font = QFont(family)
    font.setStyleHint(hint)
    font.setPixelSize(max(1, round(viewport.to_pixels(ann.effective_font_size(), scale))))
    return font


# ── Internal helpers ──────────────────────────────────────────────────────────

def _stroke_pen(color: QColor) -> QPen:
    return QPen(color, STROKE_WIDTH, Qt.PenStyle.SolidLine,
                Qt.PenCapStyle.RoundCap, Qt.PenJoinStyle.RoundJoin)


def _polyline(points) -> QPainterPath:
    path = QPainterPath()
    if not points:
        return path
    path.moveTo(points[0][0], points[0][1])
    for x, y in points[1:]:
        path.lineTo(x, y)
    return path


def _draw_one(painter: QPainter, ann: Annotation, scale: float,
              images: Dict[str, QImage]):
    color = QColor(ann.color or "#000000")

    if ann.type == ANN_TEXT:
        if ann.is_replacement and ann.original_width and ann.original_height:
            # Hide the page's own glyphs under the replacement
            painter.fillRect(QRectF(*viewport.rect_to_pixels(
                ann.x - 1, ann.y - ann.original_height - 2,
                ann.original_width + 4, ann.original_height + 6, scale,
            )), QColor("#ffffff"))
        font_px = viewport.to_pixels(ann.effective_font_size(), scale)
        x, y = viewport.point_to_pixels((ann.x, ann.y), scale)
        painter.setFont(text_font(ann, scale))
        painter.setPen(color)
        for i, line in enumerate((ann.text or "").split("\n")):
            painter.drawText(QPointF(x, y + i * font_px * hit_test.LINE_SPACING), line)

    elif ann.type == ANN_RECTANGLE:
        painter.setPen(QPen(color, STROKE_WIDTH))
        painter.drawRect(_box(ann, scale))

    elif ann.type == ANN_CIRCLE:
        painter.setPen(QPen(color, STROKE_WIDTH))
        box = _box(ann, scale)
        r = math.hypot(box.width(), box.height()) / 2
        painter.drawEllipse(box.center(), r, r)

    elif ann.type == ANN_HIGHLIGHT:
        fill = QColor(ann.color or _HIGHLIGHT_DEFAULT)
        fill.setAlpha(HIGHLIGHT_ALPHA)
        painter.fillRect(_box(ann, scale), fill)

    elif ann.type == ANN_DRAW and ann.points and len(ann.points) > 1:
        painter.setPen(_stroke_pen(color))
        painter.drawPath(_polyline([viewport.point_to_pixels(p, scale) for p in ann.points]))

    elif ann.type in RASTER_TYPES and ann.width and ann.height:
        box = _box(ann, scale)
        img = images.get(ann.id)
        if img is not None and not img.isNull():
            painter.drawImage(box, img)
        else:
            painter.fillRect(box, _PLACEHOLDER_FILL)
            painter.setPen(QPen(QColor(150, 150, 150), 1, Qt.PenStyle.DashLine))
            painter.drawRect(box)


def _box(ann: Annotation, scale: float) -> QRectF:
    return QRectF(*viewport.rect_to_pixels(ann.x, ann.y, ann.width or 0,
                                           ann.height or 0, scale))
