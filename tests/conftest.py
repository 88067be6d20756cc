from __future__ import annotations

import time
from typing import Any

import fitz  # PyMuPDF
import pytest
from PIL import Image

from pdfedit_engine.source import FontDescriptor, TextContent, TextRun, Viewport


def make_blank_pdf(pages: int = 2, width: float = 600, height: float = 800) -> bytes:
    doc = fitz.open()
    for _ in range(pages):
        doc.new_page(width=width, height=height)
    data = doc.tobytes()
    doc.close()
    return data


def make_text_pdf() -> bytes:
    """One 600x800 page with a regular, a bold and a red run."""
    doc = fitz.open()
    page = doc.new_page(width=600, height=800)
    page.insert_text(fitz.Point(72, 100), "Hello world", fontsize=12, fontname="helv")
    page.insert_text(fitz.Point(72, 200), "Bold Title", fontsize=18, fontname="hebo")
    page.insert_text(fitz.Point(72, 300), "RED", fontsize=28, fontname="hebo", color=(1, 0, 0))
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def blank_pdf() -> bytes:
    return make_blank_pdf()


@pytest.fixture
def text_pdf() -> bytes:
    return make_text_pdf()


class FakeSource:
    """In-memory stand-in for the rendering/extraction collaborator."""

    def __init__(
        self,
        runs: list[TextRun] | None = None,
        styles: dict[str, dict[str, Any]] | None = None,
        descriptors: dict[str, FontDescriptor] | None = None,
        *,
        page_size: tuple[float, float] = (600.0, 800.0),
        descriptor_delay_s: float = 0.0,
        descriptor_error: Exception | None = None,
        render_error: Exception | None = None,
        pages: int = 1,
    ):
        self.runs = runs or []
        self.styles = styles or {}
        self.descriptors = descriptors or {}
        self._page_size = page_size
        self.descriptor_delay_s = descriptor_delay_s
        self.descriptor_error = descriptor_error
        self.render_error = render_error
        self.page_count = pages
        self.text_content_calls = 0
        self.render_calls: list[tuple[int, float]] = []
        self.events: list[str] = []
        self.closed = False

    def close(self) -> None:
        self.closed = True

    def page_size(self, page_index: int) -> tuple[float, float]:
        return self._page_size

    def viewport(self, page_index: int, scale: float) -> Viewport:
        return Viewport(self._page_size[0], self._page_size[1], scale)

    def render(self, page_index: int, scale: float) -> Image.Image:
        self.render_calls.append((page_index, scale))
        self.events.append("render")
        if self.render_error is not None:
            raise self.render_error
        w, h = self._page_size
        return Image.new("RGB", (int(round(w * scale)), int(round(h * scale))), (255, 255, 255))

    def text_content(self, page_index: int) -> TextContent:
        self.text_content_calls += 1
        return TextContent(runs=list(self.runs), styles=dict(self.styles))

    def font_descriptor(self, page_index: int, font_name: str) -> FontDescriptor | None:
        self.events.append(f"font:{font_name}")
        if self.descriptor_delay_s:
            time.sleep(self.descriptor_delay_s)
        if self.descriptor_error is not None:
            raise self.descriptor_error
        return self.descriptors.get(font_name)


def run(text: str, *, x: float = 72.0, y: float = 700.0, size: float = 12.0, font: str = "F1", width: float = 50.0) -> TextRun:
    return TextRun(text=text, transform=(size, 0.0, 0.0, size, x, y), font_name=font, width=width, height=size)
