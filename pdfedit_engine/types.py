from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

Tool = Literal["select", "text", "draw", "highlight", "eraser"]
PaginationFormat = Literal["page_x_of_y"]
PaginationPosition = Literal["bottom-center", "bottom-right"]

TOOLS: tuple[str, ...] = ("select", "text", "draw", "highlight", "eraser")
PAGINATION_POSITIONS: tuple[str, ...] = ("bottom-center", "bottom-right")

DEFAULT_TEXT_BLOCK_WIDTH = 200.0
DEFAULT_TEXT_BLOCK_FAMILY = "Helvetica, sans-serif"


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class TextBlock:
    """Free text placed by the user; geometry is in display space (top-left anchored)."""

    id: str
    page_index: int  # 0-based
    x: float
    y: float
    width: float = DEFAULT_TEXT_BLOCK_WIDTH
    text: str = ""
    font_size: float = 16.0
    font_family: str = DEFAULT_TEXT_BLOCK_FAMILY
    color: str = "#000000"
    bold: bool = False
    italic: bool = False


@dataclass(frozen=True)
class DrawingPath:
    """One committed freehand or highlight stroke in display space."""

    id: str
    page_index: int
    points: tuple[Point, ...]
    color: str
    width: float
    opacity: float = 1.0


@dataclass(frozen=True)
class StyleEdits:
    font_size: float | None = None
    is_bold: bool | None = None
    is_italic: bool | None = None
    color: str | None = None
    css_font_family: str | None = None


@dataclass(frozen=True)
class ExtractedText:
    """One run of original page text.

    pdf_* fields are document space (points, y-up) and never change after
    extraction. Only edited_str and style_edits are mutable through the store.
    """

    id: str
    page_index: int
    original_str: str
    pdf_x: float
    pdf_y: float
    pdf_font_size: float
    pdf_width: float
    pdf_height: float
    font_name: str
    css_font_family: str = "sans-serif"
    is_bold: bool = False
    is_italic: bool = False
    color: str = "#000000"
    transform: tuple[float, ...] = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)
    edited_str: str | None = None
    style_edits: StyleEdits | None = None


@dataclass(frozen=True)
class PageDimensions:
    width: float  # rendered display pixels
    height: float
    scale: float  # document units -> display pixels


@dataclass(frozen=True)
class PaginationSettings:
    enabled: bool = False
    format: PaginationFormat = "page_x_of_y"
    position: PaginationPosition = "bottom-center"
    font_size: float = 10.0


@dataclass(frozen=True)
class EditorState:
    pdf_data: bytes | None = None
    file_name: str = ""
    num_pages: int = 0
    current_tool: Tool = "select"
    color: str = "#000000"
    font_size: float = 16.0
    stroke_width: float = 3.0
    text_blocks: tuple[TextBlock, ...] = ()
    drawings: tuple[DrawingPath, ...] = ()
    extracted_texts: tuple[ExtractedText, ...] = ()
    # Copied on write, never mutated in place.
    page_dimensions: dict[int, PageDimensions] = field(default_factory=dict)
    zoom: float = 1.0
    selected_extracted_text_id: str | None = None
    pagination: PaginationSettings = field(default_factory=PaginationSettings)
