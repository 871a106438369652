"""Font metrics engine shared by hit-testing, text extraction and painting.

Widths come from PyMuPDF's built-in Base-14 fonts, the same metrics the
export side uses for ``insert_textbox``, so a box measured here matches what
ends up in the PDF.  CSS-style family names are mapped onto the closest
Base-14 face.
"""
from typing import Dict

import fitz  # pymupdf

_FAMILY_MAP = {
    "arial": "helv",
    "helvetica": "helv",
    "sans-serif": "helv",
    "times": "tiro",
    "times new roman": "tiro",
    "georgia": "tiro",
    "serif": "tiro",
    "courier": "cour",
    "courier new": "cour",
    "monospace": "cour",
}


def base14_name(family: str) -> str:
    """Map a font family (possibly a CSS font stack) to a Base-14 font name."""
    for part in (family or "").split(","):
        key = part.strip().strip("\"'").lower()
        if key in _FAMILY_MAP:
            return _FAMILY_MAP[key]
    return "helv"


class FontMetrics:
    """Measure strings with cached :class:`fitz.Font` objects."""

    def __init__(self):
        self._fonts: Dict[str, fitz.Font] = {}

    def _font(self, family: str) -> fitz.Font:
        name = base14_name(family)
        font = self._fonts.get(name)
        if font is None:
            font = fitz.Font(name)
            self._fonts[name] = font
        return font

    def text_width(self, text: str, size: float, family: str = "Arial") -> float:
        """Advance width of *text* at *size* (same unit as *size*)."""
        if not text:
            return 0.0
        return self._font(family).text_length(text, fontsize=size)
