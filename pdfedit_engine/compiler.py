from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import fitz  # PyMuPDF

from .coords import display_to_document
from .drawing import png_bytes, rasterize_drawings
from .errors import CompileError
from .overlay import effective_str, effective_style
from .store import is_text_edited
from .types import DrawingPath, ExtractedText, PageDimensions, PaginationSettings, TextBlock
from .utils import hex_to_rgb

log = logging.getLogger(__name__)

LINE_HEIGHT = 1.2
OCCLUSION_PADDING = 0.2
OCCLUSION_HEIGHT = 1.4
OCCLUSION_DROP = 0.3  # below the baseline, for descenders
FOOTER_BASELINE = 14.0
FOOTER_RIGHT_MARGIN = 24.0
FOOTER_GRAY = (0.45, 0.45, 0.45)
WHITE = (1.0, 1.0, 1.0)

# PyMuPDF Base-14 codes: regular, bold, italic, bold-italic.
_FACE_CODES: dict[str, tuple[str, str, str, str]] = {
    "sans": ("helv", "hebo", "heit", "hebi"),
    "serif": ("tiro", "tibo", "tiit", "tibi"),
    "mono": ("cour", "cobo", "coit", "cobi"),
}


@dataclass(frozen=True)
class FontFace:
    code: str
    font: fitz.Font

    def text_length(self, text: str, size: float) -> float:
        return float(self.font.text_length(text, fontsize=size))


@dataclass(frozen=True)
class FontSet:
    regular: FontFace
    bold: FontFace
    italic: FontFace
    bold_italic: FontFace


def build_font_matrix() -> dict[str, FontSet]:
    """3 families x 4 styles, resolved once per export."""
    out: dict[str, FontSet] = {}
    for family, codes in _FACE_CODES.items():
        faces = [FontFace(code=c, font=fitz.Font(c)) for c in codes]
        out[family] = FontSet(*faces)
    return out


def pick_font(font_set: FontSet, bold: bool, italic: bool) -> FontFace:
    if bold and italic:
        return font_set.bold_italic
    if bold:
        return font_set.bold
    if italic:
        return font_set.italic
    return font_set.regular


def detect_font_family(css_font_family: str) -> str:
    lower = (css_font_family or "").lower()
    if "courier" in lower or "mono" in lower or "consolas" in lower:
        return "mono"
    if "times" in lower or "georgia" in lower or ("serif" in lower and "sans" not in lower):
        return "serif"
    return "sans"


def pagination_label(pagination: PaginationSettings, page_index: int, total: int) -> str:
    # "page_x_of_y" is the only format.
    return f"Page {page_index + 1} / {total}"


class _PageCanvas:
    """Document-space (y-up) drawing on one PyMuPDF page."""

    def __init__(self, page: fitz.Page):
        self.page = page
        self.width = float(page.rect.width)
        self.height = float(page.rect.height)

    def fill_rect(self, x: float, y: float, w: float, h: float, color: tuple[float, float, float]) -> None:
        rect = fitz.Rect(x, self.height - (y + h), x + w, self.height - y)
        self.page.draw_rect(rect, color=None, fill=color, width=0, overlay=True)

    def text(self, s: str, x: float, y: float, size: float, face: FontFace, color: tuple[float, float, float]) -> None:
        self.page.insert_text(
            fitz.Point(x, self.height - y),
            s,
            fontsize=size,
            fontname=face.code,
            color=color,
            overlay=True,
        )

    def full_page_image(self, png: bytes) -> None:
        self.page.insert_image(self.page.rect, stream=png, keep_proportion=False, overlay=True)


def _redraw_extracted(
    canvas: _PageCanvas,
    texts: Iterable[ExtractedText],
    fonts: Mapping[str, FontSet],
    padding: float = OCCLUSION_PADDING,
    height: float = OCCLUSION_HEIGHT,
) -> None:
    for et in texts:
        # White only: the real page background is not inspected.
        pad = et.pdf_font_size * padding
        canvas.fill_rect(
            et.pdf_x - pad,
            et.pdf_y - et.pdf_font_size * OCCLUSION_DROP,
            et.pdf_width + pad * 2,
            et.pdf_font_size * height,
            WHITE,
        )

        s = effective_str(et)
        if not s.strip():
            continue
        style = effective_style(et)
        face = pick_font(fonts[detect_font_family(style.css_font_family)], style.is_bold, style.is_italic)
        canvas.text(s, et.pdf_x, et.pdf_y, style.font_size, face, hex_to_rgb(style.color))


def _draw_text_blocks(
    canvas: _PageCanvas,
    blocks: Iterable[TextBlock],
    dims: PageDimensions,
    fonts: Mapping[str, FontSet],
    line_height: float = LINE_HEIGHT,
) -> None:
    for block in blocks:
        if not block.text.strip():
            continue
        placed = display_to_document(block.x, block.y, block.font_size, canvas.width, canvas.height, dims)
        face = pick_font(fonts["sans"], block.bold, block.italic)
        color = hex_to_rgb(block.color)
        for line_index, line in enumerate(block.text.split("\n")):
            if not line:
                continue
            y = placed.y - line_index * placed.font_size * line_height
            canvas.text(line, placed.x, y, placed.font_size, face, color)


def _stamp_footer(
    canvas: _PageCanvas,
    pagination: PaginationSettings,
    page_index: int,
    total: int,
    fonts: Mapping[str, FontSet],
) -> None:
    label = pagination_label(pagination, page_index, total)
    face = fonts["sans"].regular
    size = float(pagination.font_size)
    tw = face.text_length(label, size)
    if pagination.position == "bottom-right":
        x = canvas.width - tw - FOOTER_RIGHT_MARGIN
    else:
        x = (canvas.width - tw) / 2.0
    canvas.text(label, x, FOOTER_BASELINE, size, face, FOOTER_GRAY)


def compile_pdf(
    original: bytes,
    text_blocks: Iterable[TextBlock],
    drawings: Iterable[DrawingPath],
    extracted_texts: Iterable[ExtractedText],
    page_dimensions: Mapping[int, PageDimensions],
    rasters: Mapping[int, bytes] | None = None,
    pagination: PaginationSettings | None = None,
    compile_cfg: Mapping[str, Any] | None = None,
) -> bytes:
    """Merge the annotation overlay onto a fresh copy of `original`.

    Per page, in order: occlude + redraw edited runs, user text blocks, the
    freehand raster, the footer. Pages with strokes but no captured raster
    get one rasterized from `drawings` at the recorded page dimensions. A
    page with no recorded dimensions is treated as rendered at scale 1.0.

    compile_cfg may override occlusion_padding_ratio, occlusion_height_ratio
    and line_height.

    Raises:
        CompileError: on any load, font, drawing, image or save failure.
    """
    cfg = compile_cfg or {}
    padding = float(cfg.get("occlusion_padding_ratio", OCCLUSION_PADDING))
    occlusion_height = float(cfg.get("occlusion_height_ratio", OCCLUSION_HEIGHT))
    line_height = float(cfg.get("line_height", LINE_HEIGHT))
    rasters = rasters or {}
    pagination = pagination or PaginationSettings()
    blocks = list(text_blocks)
    edited = [t for t in extracted_texts if is_text_edited(t)]
    paths = list(drawings)

    try:
        doc = fitz.open(stream=bytes(original), filetype="pdf")
    except Exception as e:
        raise CompileError(f"cannot open original document: {e}") from e

    try:
        try:
            fonts = build_font_matrix()
        except Exception as e:
            raise CompileError(f"font setup failed: {e}") from e

        total = doc.page_count
        for i in range(total):
            try:
                canvas = _PageCanvas(doc.load_page(i))

                _redraw_extracted(
                    canvas,
                    [t for t in edited if t.page_index == i],
                    fonts,
                    padding,
                    occlusion_height,
                )

                dims = page_dimensions.get(i)
                if dims is None:
                    # Never rendered: display space is the page itself at scale 1.0.
                    dims = PageDimensions(canvas.width, canvas.height, 1.0)
                    log.debug("page %d has no recorded dimensions; using page size at scale 1.0", i)

                page_blocks = [b for b in blocks if b.page_index == i]
                if page_blocks:
                    _draw_text_blocks(canvas, page_blocks, dims, fonts, line_height)

                png = rasters.get(i)
                if png is None and any(d.page_index == i for d in paths):
                    png = png_bytes(rasterize_drawings(paths, i, int(round(dims.width)), int(round(dims.height))))
                if png:
                    canvas.full_page_image(png)

                if pagination.enabled:
                    _stamp_footer(canvas, pagination, i, total, fonts)
            except CompileError:
                raise
            except Exception as e:
                raise CompileError(f"page {i + 1}: {e}") from e

        try:
            return doc.tobytes(garbage=3, deflate=True)
        except Exception as e:
            raise CompileError(f"serialization failed: {e}") from e
    finally:
        doc.close()


def compile_state(
    state: Any,
    rasters: Mapping[int, bytes] | None = None,
    compile_cfg: Mapping[str, Any] | None = None,
) -> bytes:
    if state.pdf_data is None:
        raise CompileError("no document loaded")
    return compile_pdf(
        state.pdf_data,
        state.text_blocks,
        state.drawings,
        state.extracted_texts,
        state.page_dimensions,
        rasters,
        state.pagination,
        compile_cfg,
    )
