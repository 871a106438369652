"""Per-page index of the source document's native text runs, in page-space.

The index is read-only: it is built from the document, cached per
(document, page, scale) and thrown away when a new document is loaded.  It is
only used to find "click to replace" targets.
"""
import logging
import math
from typing import Dict, Iterable, List, Optional, Tuple

from models import DEFAULT_FONT_FAMILY, ExtractedTextItem, NativeTextRun

import data_store
import viewport

logger = logging.getLogger(__name__)

MIN_DISPLAY_FONT_PX = 8.0


def extract_items(
    runs: Iterable[NativeTextRun],
    page_height: float,
    scale: float,
    metrics,
) -> List[ExtractedTextItem]:
    """Convert native runs to page-space items.

    Each run's text matrix is mapped to viewport pixels (flipping the y axis,
    since native coordinates grow upwards), measured with *metrics* at the
    displayed font size, and divided by *scale* again.
    """
    items: List[ExtractedTextItem] = []
    for run in runs:
        if not run.text or not run.text.strip():
            continue
        if len(run.transform) < 6:
            continue
        _a, _b, c, d, e, f = run.transform[:6]
        canvas_x, canvas_y = viewport.point_to_pixels((e, page_height - f), scale)
        font_px = max(MIN_DISPLAY_FONT_PX, viewport.to_pixels(math.hypot(c, d), scale))
        width_px = metrics.text_width(run.text, font_px, DEFAULT_FONT_FAMILY)
        if width_px <= 0:
            width_px = viewport.to_pixels(run.width, scale)
        x, y, width, height = viewport.rect_to_page(canvas_x, canvas_y, width_px,
                                                    font_px, scale)
        items.append(ExtractedTextItem(
            text=run.text, x=x, y=y, width=width, height=height, font_size=height,
        ))
    return items


class TextExtractionIndex:
    def __init__(self, metrics):
        self._metrics = metrics
        self._source = None
        self._source_key: Optional[str] = None
        self._cache: Dict[Tuple[str, int, float], List[ExtractedTextItem]] = {}

    def set_source(self, key: Optional[str], source) -> None:
        """Attach a document exposing ``text_runs(page)`` and ``page_size(page)``."""
        self._source = source
        self._source_key = key
        self.invalidate()

    def invalidate(self) -> None:
        self._cache.clear()

    def items(self, page: int, scale: float) -> List[ExtractedTextItem]:
        if self._source is None or self._source_key is None:
            return []
        key = (self._source_key, page, round(scale, 4))
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        try:
            runs = self._source.text_runs(page)
            _, page_height = self._source.page_size(page)
        except Exception as exc:
            logger.warning("Text extraction failed for page %d: %s", page + 1, exc)
            return []
        items = extract_items(runs, page_height, scale, self._metrics)
        data_store.dbg(f"Indexed {len(items)} text run(s) on page {page + 1} "
                       f"at scale {scale:.2f}")
        # Only the current view is kept; page/scale changes rebuild it.
        self._cache = {key: items}
        return items
