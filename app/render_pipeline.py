"""Render pipeline: the single writer of the overlay pixmap.

A frame is rebuilt whenever the controller's :class:`FrameKey` changes.  Page
rasterization and image decoding are deferred to the event loop with
``QTimer.singleShot(0, ...)`` and tagged with a generation number; a result
whose generation is no longer current is dropped, so the page raster under
the annotations always matches the page and scale they were drawn for.
"""
import logging
import time
from typing import Dict, Optional, Set, Tuple

from PySide6.QtCore import QObject, QTimer, Signal
from PySide6.QtGui import QImage, QPixmap

import annotation_overlay
import data_store
from models import RASTER_TYPES
from pdf_document import PdfDocument, RasterizationError

logger = logging.getLogger(__name__)

RasterKey = Tuple[int, float, float]   # page, scale, dpr


def raster_to_pixmap(raster, dpr: float) -> QPixmap:
    """Wrap RGB samples in a QPixmap carrying *dpr*."""
    img = QImage(raster.samples, raster.width, raster.height,
                 raster.stride, QImage.Format.Format_RGB888)
    pm = QPixmap.fromImage(img)
    pm.setDevicePixelRatio(dpr)
    return pm


class RenderPipeline(QObject):
    frame_ready   = Signal(QPixmap)
    render_failed = Signal(str)

    def __init__(self, controller, metrics, parent=None):
        super().__init__(parent)
        self._controller = controller
        self._metrics = metrics
        self._doc: Optional[PdfDocument] = None
        self._dpr: float = 1.0
        self._generation = 0
        self._last_key = None
        self._pending_raster: Optional[RasterKey] = None
        # Rasters for the current scale/dpr: { (page, scale, dpr): QPixmap }
        self._page_cache: Dict[RasterKey, QPixmap] = {}
        self._images: Dict[str, QImage] = {}
        self._decoding: Set[str] = set()
        self._bad_images: Set[str] = set()

    # ── Public API ────────────────────────────────────────────────────────────

    @property
    def generation(self) -> int:
        return self._generation

    def set_document(self, doc: Optional[PdfDocument]) -> None:
        self._doc = doc
        self._generation += 1
        self._last_key = None
        self._pending_raster = None
        self._page_cache.clear()
        self._images.clear()
        self._decoding.clear()
        self._bad_images.clear()

    def set_dpr(self, dpr: float) -> None:
        if dpr != self._dpr:
            self._dpr = dpr
            self._page_cache.clear()
            self._last_key = None

    def cached_raster(self, page: int, scale: float) -> Optional[QPixmap]:
        return self._page_cache.get((page, scale, self._dpr))

    def decoded_image(self, ann_id: str) -> Optional[QImage]:
        return self._images.get(ann_id)

    def request(self, force: bool = False) -> None:
        """Bring the displayed frame up to date with the controller."""
        if self._doc is None:
            return
        key = self._controller.frame_key()
        if key == self._last_key and not force:
            return
        rkey = (key.page, key.scale, self._dpr)
        self._drop_stale_scale(key.scale)
        if rkey in self._page_cache:
            self._compose()
            return
        if self._pending_raster == rkey:
            return
        self._generation += 1
        self._pending_raster = rkey
        gen = self._generation
        data_store.dbg(f"Raster request #{gen}: page {key.page + 1} scale {key.scale:.2f}")
        QTimer.singleShot(0, lambda: self._run_raster(gen, rkey))

    # ── Rasterization ─────────────────────────────────────────────────────────

    def _drop_stale_scale(self, scale: float) -> None:
        stale = [k for k in self._page_cache if k[1] != scale or k[2] != self._dpr]
        for k in stale:
            del self._page_cache[k]

    def _run_raster(self, gen: int, rkey: RasterKey) -> None:
        if gen != self._generation or self._doc is None:
            data_store.dbg(f"Dropping superseded raster request #{gen}")
            return
        self._pending_raster = None
        page, scale, dpr = rkey
        t0 = time.perf_counter()
        try:
            raster = self._doc.rasterize(page, scale * dpr)
        except RasterizationError as exc:
            # Keep whatever frame is on screen
            logger.error("%s", exc)
            self.render_failed.emit(str(exc))
            return
        self._page_cache[rkey] = raster_to_pixmap(raster, dpr)
        data_store.dbg(f"Page {page + 1} rendered in {time.perf_counter() - t0:.3f}s")
        self._compose()
        QTimer.singleShot(0, lambda: self._prerender_adjacent(gen, rkey))

    def _prerender_adjacent(self, gen: int, rkey: RasterKey) -> None:
        """Pre-render the next and previous pages into the cache."""
        if gen != self._generation or self._doc is None:
            return
        page, scale, dpr = rkey
        for idx in (page - 1, page + 1):
            key = (idx, scale, dpr)
            if not 0 <= idx < self._doc.page_count or key in self._page_cache:
                continue
            try:
                self._page_cache[key] = raster_to_pixmap(
                    self._doc.rasterize(idx, scale * dpr), dpr)
            except RasterizationError as exc:
                logger.warning("Pre-render skipped: %s", exc)

    # ── Image decoding ────────────────────────────────────────────────────────

    def _request_decode(self, ann) -> None:
        if (ann.id in self._images or ann.id in self._decoding
                or ann.id in self._bad_images or not ann.image_data):
            return
        self._decoding.add(ann.id)
        gen = self._generation
        ann_id, data = ann.id, ann.image_data
        QTimer.singleShot(0, lambda: self._decode(gen, ann_id, data))

    def _decode(self, gen: int, ann_id: str, data: bytes) -> None:
        self._decoding.discard(ann_id)
        img = QImage.fromData(data)
        if img.isNull():
            logger.warning("Could not decode image payload of %s", ann_id)
            self._bad_images.add(ann_id)
            return
        self._images[ann_id] = img
        if gen == self._generation:
            self._compose()
        else:
            data_store.dbg(f"Decoded {ann_id} for superseded frame #{gen}")

    # ── Composition ───────────────────────────────────────────────────────────

    def _compose(self) -> None:
        key = self._controller.frame_key()
        raw = self._page_cache.get((key.page, key.scale, self._dpr))
        if raw is None:
            return
        store = self._controller.store
        annotations = store.list(key.page)
        for ann in annotations:
            if ann.type in RASTER_TYPES:
                self._request_decode(ann)
        frame = annotation_overlay.draw_annotations(
            raw, annotations, key.page, key.scale, self._metrics,
            images=self._images, skip_id=key.editing_id,
        )
        if key.preview is not None:
            annotation_overlay.draw_preview(frame, key.preview)
        if key.selected_id and key.selected_id != key.editing_id:
            sel = store.get(key.selected_id)
            if sel is not None and sel.page == key.page:
                annotation_overlay.draw_selection(frame, sel, key.scale, self._metrics)
        self._last_key = key
        self.frame_ready.emit(frame)
