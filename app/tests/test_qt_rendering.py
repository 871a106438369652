import logging

import pytest
from PySide6.QtGui import QColor, QFont, QPixmap
from PySide6.QtTest import QTest

import annotation_overlay
from conftest import PAGE_H, PAGE_W, FakeMetrics
from models import Annotation
from pdf_document import RasterizationError
from render_pipeline import RenderPipeline, raster_to_pixmap
from signature_composer import (
    SIGNATURE_FONTS, render_drawn_signature, render_typed_signature,
)
from tool_controller import ToolController, TOOL_RECTANGLE


def _blank(color="#ffffff", w=100, h=100):
    pm = QPixmap(w, h)
    pm.fill(QColor(color))
    return pm


def _pixel(pm, x, y):
    return pm.toImage().pixelColor(x, y)


def _settle(ms=100):
    QTest.qWait(ms)


# ── Signatures ────────────────────────────────────────────────────────────────

def test_typed_signature_png(qapp):
    png, w, h = render_typed_signature("Jane Doe", SIGNATURE_FONTS[0][1])
    assert png.startswith(b"\x89PNG")
    assert h == 80
    assert 200 <= w <= 800


def test_drawn_signature_png(qapp):
    png, w, h = render_drawn_signature([[(10, 10), (200, 150), (400, 20)]])
    assert png.startswith(b"\x89PNG")
    assert (w, h) == (800, 200)


def test_empty_signatures_are_rejected(qapp):
    with pytest.raises(ValueError):
        render_typed_signature("   ", SIGNATURE_FONTS[0][1])
    with pytest.raises(ValueError):
        render_drawn_signature([[(5, 5)]])


# ── Overlay ───────────────────────────────────────────────────────────────────

def test_draw_annotations_paints_on_a_copy(qapp):
    base = _blank()
    hl = Annotation(id="h", page=0, type="highlight", x=10, y=10, width=20, height=20,
                    color="#FFFF00")
    result = annotation_overlay.draw_annotations(base, [hl], 0, 1.0, FakeMetrics())
    assert _pixel(base, 20, 20) == QColor("#ffffff")
    assert _pixel(result, 20, 20).blue() < 250
    assert _pixel(result, 50, 50) == QColor("#ffffff")


def test_other_pages_and_skipped_ids_are_not_drawn(qapp):
    rect = Annotation(id="r", page=0, type="highlight", x=0, y=0, width=50, height=50)
    other = Annotation(id="o", page=1, type="highlight", x=0, y=0, width=50, height=50)
    result = annotation_overlay.draw_annotations(_blank(), [rect, other], 0, 1.0,
                                                 FakeMetrics(), skip_id="r")
    assert _pixel(result, 20, 20) == QColor("#ffffff")


def test_replacement_masks_original_text(qapp):
    ann = Annotation(id="ex", page=0, type="text", x=10, y=30, text="",
                     is_replacement=True, original_width=40, original_height=10)
    result = annotation_overlay.draw_annotations(_blank("#000000"), [ann], 0, 1.0,
                                                 FakeMetrics())
    assert _pixel(result, 12, 20) == QColor("#ffffff")
    assert _pixel(result, 80, 80) == QColor("#000000")


def test_selection_rect_pads_the_box(qapp):
    ann = Annotation(id="i", page=0, type="image", x=10, y=10, width=20, height=10)
    rect = annotation_overlay.selection_rect(ann, 2.0, FakeMetrics())
    assert (rect.x(), rect.y(), rect.width(), rect.height()) == (18, 18, 44, 24)



def test_text_is_painted_with_the_measured_face(qapp):
    def font_for(family):
        ann = Annotation(id="t", page=0, type="text", x=0, y=0, text="x",
                         font_family=family, font_size=10)
        return annotation_overlay.text_font(ann, 2.0)

    assert font_for("Comic Sans MS").family() == "Helvetica"
    assert font_for("Georgia, serif").family() == "Times"
    mono = font_for("monospace")
    assert mono.family() == "Courier"
    assert mono.styleHint() == QFont.StyleHint.Courier
    assert mono.pixelSize() == 20


# ── Render pipeline ───────────────────────────────────────────────────────────

@pytest.fixture()
def pipeline(qapp, pdf_doc):
    metrics = FakeMetrics()
    ctl = ToolController(metrics)
    ctl.load_document(pdf_doc.page_count)
    ctl.set_scale(1.0)
    pipe = RenderPipeline(ctl, metrics)
    pipe.set_document(pdf_doc)
    pipe.frames = []
    pipe.frame_ready.connect(pipe.frames.append)
    pipe.controller = ctl
    return pipe


def test_raster_to_pixmap_carries_dpr(qapp, pdf_doc):
    pm = raster_to_pixmap(pdf_doc.rasterize(0, 2.0), 2.0)
    assert pm.devicePixelRatio() == 2.0
    assert (pm.width(), pm.height()) == (PAGE_W * 2, PAGE_H * 2)


def test_request_produces_a_frame(pipeline):
    pipeline.request()
    _settle()
    assert len(pipeline.frames) == 1
    assert (pipeline.frames[0].width(), pipeline.frames[0].height()) == (PAGE_W, PAGE_H)


def test_unchanged_state_does_not_repaint(pipeline):
    pipeline.request()
    _settle()
    pipeline.request()
    _settle()
    assert len(pipeline.frames) == 1
    pipeline.request(force=True)
    assert len(pipeline.frames) == 2


def test_superseded_page_request_is_dropped(pipeline):
    pipeline.request()
    pipeline.controller.set_page(1)
    pipeline.request()
    _settle()
    assert len(pipeline.frames) == 1
    assert pipeline.cached_raster(1, 1.0) is not None


def test_annotation_edit_recomposes_from_cache(pipeline):
    pipeline.request()
    _settle()
    ctl = pipeline.controller
    ctl.set_tool(TOOL_RECTANGLE)
    ctl.pointer_down((10, 10))
    ctl.pointer_move((60, 60))
    pipeline.request()
    ctl.pointer_up((60, 60))
    pipeline.request()
    assert len(pipeline.frames) == 3


def test_signature_payload_is_decoded(pipeline):
    png, w, h = render_drawn_signature([[(10, 10), (200, 150)]])
    ann = pipeline.controller.insert_raster("signature", png, "image/png", w, h)
    pipeline.request()
    _settle()
    assert pipeline.decoded_image(ann.id) is not None
    assert len(pipeline.frames) >= 2


def test_undecodable_payload_keeps_placeholder(pipeline, caplog):
    ann = pipeline.controller.insert_raster("image", b"not an image", "image/png", 50, 50)
    with caplog.at_level(logging.WARNING, logger="render_pipeline"):
        pipeline.request()
        _settle()
    assert pipeline.decoded_image(ann.id) is None
    assert "Could not decode" in caplog.text
    assert pipeline.frames


class _BrokenDoc:
    page_count = 1

    def rasterize(self, page, scale):
        raise RasterizationError("Cannot render page 1: broken")


def test_render_failure_is_reported(qapp):
    metrics = FakeMetrics()
    ctl = ToolController(metrics)
    ctl.load_document(1)
    pipe = RenderPipeline(ctl, metrics)
    pipe.set_document(_BrokenDoc())
    failures, frames = [], []
    pipe.render_failed.connect(failures.append)
    pipe.frame_ready.connect(frames.append)
    pipe.request()
    _settle()
    assert failures == ["Cannot render page 1: broken"]
    assert frames == []
