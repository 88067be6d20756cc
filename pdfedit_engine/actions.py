from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .types import DrawingPath, ExtractedText, PageDimensions, TextBlock


@dataclass(frozen=True)
class LoadDocument:
    data: bytes
    file_name: str
    num_pages: int


@dataclass(frozen=True)
class SelectTool:
    tool: str


@dataclass(frozen=True)
class SetColor:
    color: str


@dataclass(frozen=True)
class SetFontSize:
    size: float


@dataclass(frozen=True)
class SetStrokeWidth:
    width: float


@dataclass(frozen=True)
class AddTextBlock:
    block: TextBlock


@dataclass(frozen=True)
class UpdateTextBlock:
    id: str
    updates: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DeleteTextBlock:
    id: str


@dataclass(frozen=True)
class AddDrawing:
    drawing: DrawingPath


@dataclass(frozen=True)
class DeleteDrawing:
    id: str


@dataclass(frozen=True)
class ClearPageDrawings:
    page_index: int


@dataclass(frozen=True)
class SetPageDimensions:
    page_index: int
    dimensions: PageDimensions


@dataclass(frozen=True)
class AppendExtractedTexts:
    texts: tuple[ExtractedText, ...]


@dataclass(frozen=True)
class UpdateExtractedText:
    id: str
    edited_str: str


@dataclass(frozen=True)
class UpdateExtractedTextStyle:
    """Shallow patch; a key mapped to None clears that override field."""

    id: str
    edits: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ClearExtractedTextStyle:
    id: str


@dataclass(frozen=True)
class SelectExtractedText:
    id: str | None


@dataclass(frozen=True)
class SetZoom:
    zoom: float


@dataclass(frozen=True)
class SetPaginationEnabled:
    enabled: bool


@dataclass(frozen=True)
class SetPaginationFormat:
    format: str


@dataclass(frozen=True)
class SetPaginationPosition:
    position: str


@dataclass(frozen=True)
class SetPaginationFontSize:
    font_size: float


@dataclass(frozen=True)
class Reset:
    pass
