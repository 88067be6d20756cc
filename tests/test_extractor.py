"""Baseline text extraction: latch, font style fallback, color sampling."""
from __future__ import annotations

import numpy as np
import pytest

from pdfedit_engine import actions as a
from pdfedit_engine.extractor import FontStyle, TextExtractor, resolve_font_style, sample_text_color
from pdfedit_engine.job import create_job_dirs, init_job_outputs
from pdfedit_engine.source import FitzDocumentSource, FontDescriptor
from pdfedit_engine.store import EditorStore

from conftest import FakeSource, run


# ═══════════════════════════════════════════════════════════════════════════════
# FONT STYLE RESOLUTION
# ═══════════════════════════════════════════════════════════════════════════════


class TestResolveFontStyle:
    def test_none_descriptor_is_plain(self):
        assert resolve_font_style(None) == FontStyle()

    def test_explicit_flags_win(self):
        s = resolve_font_style(FontDescriptor(bold=True, italic=True, name="Arial"))
        assert s.bold and s.italic

    @pytest.mark.parametrize(
        "name,bold,italic",
        [
            ("Helvetica-Bold", True, False),
            ("Arial-BlackItalic", True, True),
            ("Times-Oblique", False, True),
            ("Roboto-Heavy", True, False),
            ("Courier", False, False),
        ],
    )
    def test_name_heuristics(self, name, bold, italic):
        s = resolve_font_style(FontDescriptor(bold=None, italic=None, name=name))
        assert (s.bold, s.italic) == (bold, italic)


# ═══════════════════════════════════════════════════════════════════════════════
# COLOR SAMPLING
# ═══════════════════════════════════════════════════════════════════════════════


class TestSampleTextColor:
    def _page(self):
        return np.full((200, 200, 3), 255, dtype=np.uint8)

    def test_blank_band_defaults_to_black(self):
        color = sample_text_color(self._page(), x=10, y=100, font_size=12, run_width=40, scale=1.0)
        assert color == "#000000"

    def test_first_inked_pixel_wins(self):
        px = self._page()
        # Band rows are around y - 0.65 * 12 = 92.2 -> 90..94
        px[90:95, 20:30] = (0, 0, 255)
        px[90:95, 30:40] = (255, 0, 0)
        color = sample_text_color(px, x=10, y=100, font_size=12, run_width=40, scale=1.0)
        assert color == "#0000ff"

    def test_near_white_is_ignored(self):
        px = self._page()
        px[90:95, 10:50] = (250, 250, 250)
        assert sample_text_color(px, x=10, y=100, font_size=12, run_width=40, scale=1.0) == "#000000"

    def test_transparent_pixels_are_ignored(self):
        px = np.zeros((200, 200, 4), dtype=np.uint8)
        px[90:95, 10:50] = (10, 20, 30, 0)
        assert sample_text_color(px, x=10, y=100, font_size=12, run_width=40, scale=1.0) == "#000000"

    def test_band_outside_raster(self):
        assert sample_text_color(self._page(), x=500, y=500, font_size=12, run_width=40, scale=1.0) == "#000000"


# ═══════════════════════════════════════════════════════════════════════════════
# EXTRACTION WITH A FAKE SOURCE
# ═══════════════════════════════════════════════════════════════════════════════


class TestTextExtractor:
    def test_extract_runs_once_per_page(self):
        source = FakeSource(runs=[run("Hello"), run("   "), run("World", y=680)])
        store = EditorStore()
        ex = TextExtractor(source, store.dispatch, {"sample_colors": False})
        try:
            first = ex.extract(0)
            second = ex.extract(0)
        finally:
            ex.close()

        assert [t.original_str for t in first] == ["Hello", "World"]
        assert second == []
        assert source.text_content_calls == 1
        assert len(store.state.extracted_texts) == 2
        assert ex.has_run(0) and not ex.has_run(1)

    def test_records_geometry_and_family(self):
        source = FakeSource(
            runs=[run("Hello", x=72, y=700, size=12, font="F1", width=30)],
            styles={"F1": {"fontFamily": "Times, serif"}},
        )
        seen = []
        ex = TextExtractor(source, seen.append, {"sample_colors": False})
        try:
            (t,) = ex.extract(0)
        finally:
            ex.close()

        assert (t.pdf_x, t.pdf_y, t.pdf_font_size, t.pdf_width) == (72, 700, 12, 30)
        assert t.css_font_family == "Times, serif"
        assert t.edited_str is None and t.style_edits is None
        assert isinstance(seen[0], a.AppendExtractedTexts)

    def test_missing_style_defaults_to_sans(self):
        source = FakeSource(runs=[run("x")])
        ex = TextExtractor(source, lambda _: None, {"sample_colors": False})
        try:
            (t,) = ex.extract(0)
        finally:
            ex.close()
        assert t.css_font_family == "sans-serif"

    def test_empty_page_dispatches_nothing(self):
        seen = []
        ex = TextExtractor(FakeSource(runs=[]), seen.append, {"sample_colors": False})
        try:
            assert ex.extract(0) == []
        finally:
            ex.close()
        assert seen == []

    def test_font_descriptor_timeout_degrades(self, tmp_path):
        paths = create_job_dirs(tmp_path, "job")
        init_job_outputs(paths)
        source = FakeSource(
            runs=[run("Slow", font="Slow-Bold")],
            descriptors={"Slow-Bold": FontDescriptor(bold=True, italic=False, name="Slow-Bold")},
            descriptor_delay_s=0.5,
        )
        ex = TextExtractor(source, lambda _: None, {"font_timeout_s": 0.05, "sample_colors": False}, paths=paths)
        try:
            (t,) = ex.extract(0)
        finally:
            ex.close()

        assert t.is_bold is False and t.is_italic is False
        assert "font_descriptor" in paths.errors_jsonl.read_text(encoding="utf-8")

    def test_font_descriptor_error_degrades(self):
        source = FakeSource(runs=[run("x")], descriptor_error=RuntimeError("boom"))
        ex = TextExtractor(source, lambda _: None, {"sample_colors": False})
        try:
            (t,) = ex.extract(0)
        finally:
            ex.close()
        assert not t.is_bold

    def test_fonts_resolved_before_color_raster(self):
        source = FakeSource(runs=[run("a", font="F1"), run("b", font="F2"), run("c", font="F1")])
        ex = TextExtractor(source, lambda _: None)
        try:
            ex.extract(0)
        finally:
            ex.close()
        assert source.events == ["font:F1", "font:F2", "render"]

    def test_render_failure_keeps_black(self):
        source = FakeSource(runs=[run("x")], render_error=RuntimeError("no raster"))
        ex = TextExtractor(source, lambda _: None)
        try:
            (t,) = ex.extract(0)
        finally:
            ex.close()
        assert t.color == "#000000"


# ═══════════════════════════════════════════════════════════════════════════════
# EXTRACTION FROM A REAL PDF
# ═══════════════════════════════════════════════════════════════════════════════


class TestFitzExtraction:
    def test_real_document(self, text_pdf):
        source = FitzDocumentSource.from_bytes(text_pdf)
        store = EditorStore()
        ex = TextExtractor(source, store.dispatch)
        try:
            texts = ex.extract(0)
        finally:
            ex.close()
            source.close()

        by_str = {t.original_str: t for t in texts}
        assert set(by_str) == {"Hello world", "Bold Title", "RED"}

        hello = by_str["Hello world"]
        assert hello.pdf_x == pytest.approx(72, abs=0.5)
        assert hello.pdf_y == pytest.approx(700, abs=0.5)
        assert hello.pdf_font_size == pytest.approx(12, abs=0.01)
        assert "Helvetica" in hello.css_font_family
        assert hello.is_bold is False

        assert by_str["Bold Title"].is_bold is True

        red = by_str["RED"].color
        r, g = int(red[1:3], 16), int(red[3:5], 16)
        assert r >= 200 and r > g
