import logging

import pytest

from models import NativeTextRun
from text_index import TextExtractionIndex, extract_items
from text_metrics import FontMetrics


class _ZeroMetrics:
    def text_width(self, text, size, family="Arial"):
        return 0.0


class _BrokenSource:
    def text_runs(self, page):
        raise RuntimeError("damaged content stream")

    def page_size(self, page):
        return 612.0, 792.0


# ── extract_items ─────────────────────────────────────────────────────────────

def test_run_maps_to_top_down_page_space(metrics):
    runs = [NativeTextRun("Hello", (12, 0, 0, 12, 72, 692), 28.0)]
    [item] = extract_items(runs, 792, 1.5, metrics)
    assert item.text == "Hello"
    assert item.x == pytest.approx(72)
    assert item.y == pytest.approx(100)
    assert item.font_size == pytest.approx(12)
    assert item.height == pytest.approx(12)
    # measured at 18 px, then divided back by the scale
    assert item.width == pytest.approx(30)


def test_result_does_not_depend_on_scale(metrics):
    runs = [NativeTextRun("Hello", (12, 0, 0, 12, 72, 692), 28.0)]
    [a] = extract_items(runs, 792, 1.0, metrics)
    [b] = extract_items(runs, 792, 2.5, metrics)
    assert (a.x, a.y, a.width) == pytest.approx((b.x, b.y, b.width))


def test_tiny_fonts_are_bumped_to_minimum_display_size(metrics):
    runs = [NativeTextRun("fine print", (4, 0, 0, 4, 10, 700), 20.0)]
    [item] = extract_items(runs, 792, 1.0, metrics)
    assert item.font_size == pytest.approx(8)


def test_width_falls_back_to_reported_run_width():
    runs = [NativeTextRun("x", (10, 0, 0, 10, 0, 0), 7.5)]
    [item] = extract_items(runs, 100, 2.0, _ZeroMetrics())
    assert item.width == pytest.approx(7.5)


def test_blank_and_malformed_runs_are_skipped(metrics):
    runs = [
        NativeTextRun("   ", (12, 0, 0, 12, 0, 0)),
        NativeTextRun("", (12, 0, 0, 12, 0, 0)),
        NativeTextRun("short", (12, 0, 0)),
        NativeTextRun("ok", (12, 0, 0, 12, 5, 5)),
    ]
    assert [i.text for i in extract_items(runs, 792, 1.0, metrics)] == ["ok"]


# ── TextExtractionIndex ───────────────────────────────────────────────────────

def test_index_without_source_is_empty(metrics):
    assert TextExtractionIndex(metrics).items(0, 1.0) == []


def test_index_caches_per_page_and_scale(metrics, text_source):
    index = TextExtractionIndex(metrics)
    index.set_source("doc-1", text_source)

    first = index.items(0, 1.0)
    assert [i.text for i in first] == ["Total"]
    assert first[0].y == pytest.approx(100)
    assert index.items(0, 1.0) is first
    assert text_source.calls == 1

    index.items(0, 2.0)
    assert text_source.calls == 2
    index.items(1, 2.0)
    assert text_source.calls == 3


def test_invalidate_and_new_source_rebuild(metrics, text_source):
    index = TextExtractionIndex(metrics)
    index.set_source("doc-1", text_source)
    index.items(0, 1.0)
    index.invalidate()
    index.items(0, 1.0)
    assert text_source.calls == 2

    index.set_source(None, None)
    assert index.items(0, 1.0) == []


def test_failing_source_yields_no_items(metrics, caplog):
    index = TextExtractionIndex(metrics)
    index.set_source("broken", _BrokenSource())
    with caplog.at_level(logging.WARNING, logger="text_index"):
        assert index.items(0, 1.0) == []
    assert "Text extraction failed" in caplog.text


def test_real_document_runs_land_on_their_baseline(pdf_doc):
    index = TextExtractionIndex(FontMetrics())
    index.set_source(pdf_doc.name, pdf_doc)
    items = index.items(0, 1.5)
    hello = [i for i in items if "Hello" in i.text]
    assert hello
    assert hello[0].x == pytest.approx(72, abs=1)
    assert hello[0].y == pytest.approx(100, abs=1)
    assert hello[0].font_size == pytest.approx(12, abs=0.5)
