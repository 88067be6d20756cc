from __future__ import annotations

from dataclasses import dataclass, field
from io import BytesIO
from typing import Any

import fitz  # PyMuPDF
from PIL import Image

from .errors import DocumentLoadError

_SPAN_ITALIC = 2
_SPAN_SERIF = 4
_SPAN_MONO = 8
_SPAN_BOLD = 16


@dataclass(frozen=True)
class TextRun:
    text: str
    transform: tuple[float, float, float, float, float, float]  # document space, y-up
    font_name: str
    width: float
    height: float


@dataclass(frozen=True)
class TextContent:
    runs: list[TextRun]
    styles: dict[str, dict[str, Any]] = field(default_factory=dict)  # font_name -> {"fontFamily": ...}


@dataclass(frozen=True)
class FontDescriptor:
    bold: bool | None
    italic: bool | None
    name: str = ""


@dataclass(frozen=True)
class Viewport:
    """Document space -> display space for one page at one scale."""

    page_width: float
    page_height: float
    scale: float

    @property
    def width(self) -> float:
        return self.page_width * self.scale

    @property
    def height(self) -> float:
        return self.page_height * self.scale

    def convert_to_viewport_point(self, x: float, y: float) -> tuple[float, float]:
        return x * self.scale, (self.page_height - y) * self.scale


def _strip_subset(name: str) -> str:
    # Subset fonts are named like ABCDEF+Helvetica.
    if len(name) > 7 and name[6] == "+" and name[:6].isupper():
        return name[7:]
    return name


def _css_family(font_name: str, flags: int) -> str:
    if flags & _SPAN_MONO:
        generic = "monospace"
    elif flags & _SPAN_SERIF:
        generic = "serif"
    else:
        generic = "sans-serif"
    base = _strip_subset(font_name).split("-")[0].split(",")[0].strip()
    return f"{base}, {generic}" if base else generic


class FitzDocumentSource:
    """Rendering/extraction collaborator backed by PyMuPDF.

    Document space is the page rect with the origin moved to the bottom-left
    and y pointing up. Page rotation is not compensated.
    """

    def __init__(self, doc: fitz.Document):
        self._doc = doc
        self._descriptors: dict[int, dict[str, FontDescriptor]] = {}

    @classmethod
    def from_bytes(cls, data: bytes) -> "FitzDocumentSource":
        if not data:
            raise DocumentLoadError("cannot open document: empty input")
        try:
            doc = fitz.open(stream=bytes(data), filetype="pdf")
        except Exception as e:
            raise DocumentLoadError(f"cannot open document: {e}") from e
        if not doc.is_pdf or doc.page_count == 0:
            doc.close()
            raise DocumentLoadError("cannot open document: not a PDF or no pages")
        return cls(doc)

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    def close(self) -> None:
        self._doc.close()

    def page_size(self, page_index: int) -> tuple[float, float]:
        rect = self._doc.load_page(page_index).rect
        return float(rect.width), float(rect.height)

    def viewport(self, page_index: int, scale: float) -> Viewport:
        w, h = self.page_size(page_index)
        return Viewport(page_width=w, page_height=h, scale=float(scale))

    def render(self, page_index: int, scale: float, *, alpha: bool = False) -> Image.Image:
        page = self._doc.load_page(page_index)
        pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=alpha)
        img = Image.open(BytesIO(pix.tobytes("png")))
        return img.convert("RGBA" if alpha else "RGB")

    def text_content(self, page_index: int) -> TextContent:
        page = self._doc.load_page(page_index)
        page_h = float(page.rect.height)
        runs: list[TextRun] = []
        styles: dict[str, dict[str, Any]] = {}
        descriptors: dict[str, FontDescriptor] = {}

        data = page.get_text("dict")
        for block in data.get("blocks", []):
            if block.get("type") != 0:
                continue
            for line in block.get("lines", []):
                cos, sin = line.get("dir", (1.0, 0.0))
                for span in line.get("spans", []):
                    font_name = str(span.get("font") or "")
                    flags = int(span.get("flags") or 0)
                    size = float(span.get("size") or 0.0)
                    ox, oy = span.get("origin", (0.0, 0.0))
                    x0, y0, x1, y1 = span.get("bbox", (0.0, 0.0, 0.0, 0.0))

                    # y-down direction vector flipped into the y-up document space.
                    transform = (size * cos, -size * sin, size * sin, size * cos, float(ox), page_h - float(oy))
                    runs.append(
                        TextRun(
                            text=str(span.get("text") or ""),
                            transform=transform,
                            font_name=font_name,
                            width=float(x1 - x0),
                            height=float(y1 - y0),
                        )
                    )
                    styles.setdefault(font_name, {"fontFamily": _css_family(font_name, flags)})
                    descriptors.setdefault(
                        font_name,
                        FontDescriptor(
                            bold=bool(flags & _SPAN_BOLD),
                            italic=bool(flags & _SPAN_ITALIC),
                            name=_strip_subset(font_name),
                        ),
                    )

        self._descriptors[page_index] = descriptors
        return TextContent(runs=runs, styles=styles)

    def font_descriptor(self, page_index: int, font_name: str) -> FontDescriptor | None:
        # Served from the cache text_content fills; the document is only read for unseen pages.
        if page_index not in self._descriptors:
            self.text_content(page_index)
        return self._descriptors.get(page_index, {}).get(font_name)
