"""Resolve which annotation (or native text run) sits under a pointer position.

All tests run in render-surface pixels: stored page-space geometry is scaled
by the current zoom first, so the pixel tolerances below feel the same at
every zoom level.
"""
import math
from typing import Collection, Iterable, Optional, Sequence, Tuple

import viewport
from models import (
    ANN_DRAW, ANN_TEXT, RASTER_TYPES, SIZED_TYPES, Annotation, ExtractedTextItem,
)

TEXT_HIT_PAD = 4          # px added around a text box on every side
TEXT_DESCENT = 2          # px below the baseline that still belongs to the glyphs
STROKE_HIT_RADIUS = 10    # px around each freehand vertex
HANDLE_SIZE = 8           # px half-width of a corner resize zone
EXTRACTED_TEXT_TOL = 0.5  # page-space units around a native text run
LINE_SPACING = 1.2        # baseline-to-baseline distance, in font sizes

Rect = Tuple[float, float, float, float]   # x, y, w, h


def text_rect_px(ann: Annotation, scale: float, metrics) -> Rect:
    """Unpadded pixel box of a text annotation, re-measured at *scale*.

    The anchor is the first line's baseline; further lines follow
    *LINE_SPACING* font sizes apart.
    """
    font_px = viewport.to_pixels(ann.effective_font_size(), scale)
    family = ann.effective_font_family()
    lines = (ann.text or "").split("\n")
    width = max(metrics.text_width(line, font_px, family) for line in lines)
    height = font_px + (len(lines) - 1) * font_px * LINE_SPACING + TEXT_DESCENT
    x, y = viewport.point_to_pixels((ann.x, ann.y), scale)
    return x, y - font_px, width, height


def annotation_rect_px(ann: Annotation, scale: float, metrics) -> Optional[Rect]:
    """Pixel bounding box of *ann*, or *None* when it has no extent."""
    if ann.type == ANN_TEXT:
        return text_rect_px(ann, scale, metrics)
    if ann.type in SIZED_TYPES and ann.width and ann.height:
        return viewport.rect_to_pixels(ann.x, ann.y, ann.width, ann.height, scale)
    if ann.type == ANN_DRAW and ann.points:
        pts = [viewport.point_to_pixels(p, scale) for p in ann.points]
        xs = [x for x, _ in pts]
        ys = [y for _, y in pts]
        return min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys)
    return None


def _in_rect(px: float, py: float, rect: Rect, pad: float = 0.0) -> bool:
    x, y, w, h = rect
    return x - pad <= px <= x + w + pad and y - pad <= py <= y + h + pad


def hits(ann: Annotation, point: Tuple[float, float], scale: float, metrics) -> bool:
    """Return True when pixel *point* lands on *ann*."""
    px, py = point
    if ann.type == ANN_TEXT:
        return _in_rect(px, py, text_rect_px(ann, scale, metrics), TEXT_HIT_PAD)
    if ann.type in SIZED_TYPES:
        if not ann.width or not ann.height:
            return False
        return _in_rect(px, py, viewport.rect_to_pixels(ann.x, ann.y, ann.width,
                                                        ann.height, scale))
    if ann.type == ANN_DRAW and ann.points:
        # Vertex proximity only; segments between vertices do not count.
        return any(
            math.hypot(px - vx, py - vy) <= STROKE_HIT_RADIUS
            for vx, vy in (viewport.point_to_pixels(p, scale) for p in ann.points)
        )
    return False


def pick(
    annotations: Sequence[Annotation],
    point: Tuple[float, float],
    page: int,
    scale: float,
    metrics,
    kinds: Optional[Collection[str]] = None,
) -> Optional[Annotation]:
    """Return the topmost annotation on *page* under pixel *point*, or *None*.

    *kinds* restricts the search to those annotation types; annotations of
    other types are skipped as if they were not there.
    """
    for ann in reversed(annotations):
        if ann.page != page:
            continue
        if kinds is not None and ann.type not in kinds:
            continue
        if hits(ann, point, scale, metrics):
            return ann
    return None


def resize_handle_at(ann: Annotation, point: Tuple[float, float],
                     scale: float) -> Optional[str]:
    """Return ``"nw"``, ``"ne"``, ``"sw"`` or ``"se"`` when *point* is on a corner
    handle of an image/signature annotation."""
    if ann.type not in RASTER_TYPES or not ann.width or not ann.height:
        return None
    sx, sy, sw, sh = viewport.rect_to_pixels(ann.x, ann.y, ann.width, ann.height, scale)
    px, py = point
    for name, (hx, hy) in (
        ("nw", (sx, sy)),
        ("ne", (sx + sw, sy)),
        ("sw", (sx, sy + sh)),
        ("se", (sx + sw, sy + sh)),
    ):
        if abs(px - hx) <= HANDLE_SIZE and abs(py - hy) <= HANDLE_SIZE:
            return name
    return None


def find_extracted_text_at(
    items: Iterable[ExtractedTextItem],
    point: Tuple[float, float],
    scale: float,
) -> Optional[ExtractedTextItem]:
    """Return the topmost native text run under pixel *point*, or *None*."""
    ux, uy = viewport.point_to_page(point, scale)
    tol = EXTRACTED_TEXT_TOL
    for it in reversed(list(items)):
        if (it.x - tol <= ux <= it.x + it.width + tol
                and it.y - it.height - tol <= uy <= it.y + tol):
            return it
    return None
