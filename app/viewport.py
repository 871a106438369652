"""Conversions between page-space units and render-surface pixels.

Annotation geometry is always stored in page-space.  Pixel values are derived
by multiplying with the current scale, and pointer positions are turned back
into page-space by dividing, so re-rendering at another zoom level lands on
the same physical spot.
"""
from typing import Tuple

MIN_SCALE = 0.5
MAX_SCALE = 3.0
ZOOM_STEP = 0.25
DEFAULT_SCALE = 1.5


def to_pixels(value: float, scale: float) -> float:
    return value * scale


def to_page(value: float, scale: float) -> float:
    return value / scale


def point_to_pixels(point: Tuple[float, float], scale: float) -> Tuple[float, float]:
    return point[0] * scale, point[1] * scale


def point_to_page(point: Tuple[float, float], scale: float) -> Tuple[float, float]:
    return point[0] / scale, point[1] / scale


def rect_to_pixels(x: float, y: float, w: float, h: float,
                   scale: float) -> Tuple[float, float, float, float]:
    return x * scale, y * scale, w * scale, h * scale


def rect_to_page(x: float, y: float, w: float, h: float,
                 scale: float) -> Tuple[float, float, float, float]:
    return x / scale, y / scale, w / scale, h / scale


def clamp_scale(scale: float) -> float:
    """Clamp *scale* to the range the viewer allows."""
    return max(MIN_SCALE, min(MAX_SCALE, scale))


def zoom_in(scale: float) -> float:
    return clamp_scale(scale + ZOOM_STEP)


def zoom_out(scale: float) -> float:
    return clamp_scale(scale - ZOOM_STEP)


def normalized_rect(x1: float, y1: float, x2: float,
                    y2: float) -> Tuple[float, float, float, float]:
    """Return *(x, y, w, h)* of the box spanned by two corners in any order."""
    return min(x1, x2), min(y1, y2), abs(x2 - x1), abs(y2 - y1)
