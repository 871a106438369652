import fitz
import pytest

from conftest import PAGE_H, PAGE_W
from pdf_document import DocumentLoadError, PdfDocument, RasterizationError


# ── Loading ───────────────────────────────────────────────────────────────────

def test_invalid_bytes_raise_load_error():
    with pytest.raises(DocumentLoadError):
        PdfDocument.from_bytes(b"definitely not a pdf", "junk.pdf")


def test_missing_file_raises_load_error(tmp_path):
    with pytest.raises(DocumentLoadError):
        PdfDocument.open(str(tmp_path / "nope.pdf"))


def test_open_from_path_keeps_name_and_bytes(tmp_path, pdf_bytes):
    path = tmp_path / "exam.pdf"
    path.write_bytes(pdf_bytes)
    doc = PdfDocument.open(str(path))
    try:
        assert doc.name == "exam.pdf"
        assert doc.data == pdf_bytes
        assert doc.page_count == 2
    finally:
        doc.close()
    assert doc.page_count == 0


# ── Queries ───────────────────────────────────────────────────────────────────

def test_page_size_in_page_units(pdf_doc):
    assert pdf_doc.page_size(0) == pytest.approx((PAGE_W, PAGE_H))


def test_rotated_page_reports_displayed_size():
    src = fitz.open()
    src.new_page(width=PAGE_W, height=PAGE_H).set_rotation(90)
    doc = PdfDocument.from_bytes(src.tobytes(), "rotated.pdf")
    src.close()
    try:
        assert doc.page_size(0) == pytest.approx((PAGE_H, PAGE_W))
    finally:
        doc.close()


def test_rasterize_scales_the_page(pdf_doc):
    raster = pdf_doc.rasterize(0, 2.0)
    assert (raster.width, raster.height) == (PAGE_W * 2, PAGE_H * 2)
    assert raster.page == 0
    assert len(raster.samples) == raster.stride * raster.height


def test_rasterize_out_of_range_page(pdf_doc):
    with pytest.raises(RasterizationError):
        pdf_doc.rasterize(5, 1.0)


def test_text_runs_use_bottom_up_matrix(pdf_doc):
    runs = pdf_doc.text_runs(0)
    hello = [r for r in runs if "Hello" in r.text]
    assert hello
    a, _b, _c, d, e, f = hello[0].transform
    assert a == pytest.approx(12, abs=0.5)
    assert d == pytest.approx(12, abs=0.5)
    assert e == pytest.approx(72, abs=1)
    assert f == pytest.approx(PAGE_H - 100, abs=1)
    assert hello[0].width > 0
    assert all("Second" not in r.text for r in runs)


def test_text_runs_of_second_page(pdf_doc):
    assert any("Second page" in r.text for r in pdf_doc.text_runs(1))
