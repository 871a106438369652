"""Source document adapter: page rasterization and native text via PyMuPDF.

This is the only module that opens PDFs.  It answers three questions for the
rest of the editor: how big is a page (page-space units, rotation-aware), what
does it look like at a given scale, and which text runs does it contain.
"""
import os
from dataclasses import dataclass
from typing import List, Optional, Tuple

import fitz  # pymupdf

from models import NativeTextRun

import data_store


class DocumentLoadError(Exception):
    """The file is not a readable PDF, or it has no pages."""


class RasterizationError(Exception):
    """A page could not be rendered."""


@dataclass(frozen=True)
class PageRaster:
    """RGB samples of one rendered page (no alpha channel)."""
    page: int
    scale: float
    width: int
    height: int
    stride: int
    samples: bytes


class PdfDocument:
    def __init__(self, doc: "fitz.Document", name: str, data: Optional[bytes] = None):
        self._doc = doc
        self.name = name
        self._data = data

    # ── Construction ──────────────────────────────────────────────────────────

    @classmethod
    def open(cls, path: str) -> "PdfDocument":
        if not os.path.isfile(path):
            raise DocumentLoadError(f"File not found: {path}")
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as exc:
            raise DocumentLoadError(f"Cannot read {path}: {exc}") from exc
        return cls.from_bytes(data, os.path.basename(path))

    @classmethod
    def from_bytes(cls, data: bytes, name: str = "document.pdf") -> "PdfDocument":
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise DocumentLoadError(f"{name} is not a valid PDF: {exc}") from exc
        if doc.page_count == 0:
            doc.close()
            raise DocumentLoadError(f"{name} has no pages")
        data_store.dbg(f"PDF loaded: {name} ({doc.page_count} page(s))")
        return cls(doc, name, data)

    def close(self) -> None:
        if self._doc is not None:
            self._doc.close()
            self._doc = None

    # ── Queries ───────────────────────────────────────────────────────────────

    @property
    def data(self) -> Optional[bytes]:
        """The original file bytes, as sent to the export service."""
        return self._data

    @property
    def page_count(self) -> int:
        return self._doc.page_count if self._doc is not None else 0

    def _page(self, page: int) -> "fitz.Page":
        if self._doc is None:
            raise ValueError("document is closed")
        if not 0 <= page < self._doc.page_count:
            raise IndexError(f"page {page} out of range")
        return self._doc[page]

    def page_size(self, page: int) -> Tuple[float, float]:
        """Return *(width, height)* of *page* in page-space units.

        ``page.rect`` is already rotation-aware, so a landscape page reports
        its displayed width and height.
        """
        rect = self._page(page).rect
        return rect.width, rect.height

    def rasterize(self, page: int, scale: float) -> PageRaster:
        """Render *page* at *scale* pixels per page-space unit."""
        try:
            p = self._page(page)
            pix = p.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
        except Exception as exc:
            raise RasterizationError(f"Cannot render page {page + 1}: {exc}") from exc
        data_store.dbg(f"Rendered page {page + 1}/{self.page_count} at scale "
                       f"{scale:.2f} ({pix.width}×{pix.height} px)")
        return PageRaster(page, scale, pix.width, pix.height, pix.stride,
                          bytes(pix.samples))

    def text_runs(self, page: int) -> List[NativeTextRun]:
        """Return the page's text spans as native runs.

        MuPDF reports span origins in unrotated top-down coordinates; they are
        mapped to the displayed page and re-expressed as a bottom-up text matrix.
        """
        p = self._page(page)
        page_h = p.rect.height
        rot = p.rotation_matrix
        runs: List[NativeTextRun] = []
        for block in p.get_text("dict").get("blocks", []):
            if block.get("type") != 0:   # image block
                continue
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    text = span.get("text", "")
                    if not text.strip():
                        continue
                    size = float(span.get("size", 0.0))
                    origin = fitz.Point(span["origin"]) * rot
                    x0, _y0, x1, _y1 = span.get("bbox", (0, 0, 0, 0))
                    runs.append(NativeTextRun(
                        text=text,
                        transform=(size, 0.0, 0.0, size, origin.x, page_h - origin.y),
                        width=abs(x1 - x0),
                    ))
        return runs
