from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any

from .types import (
    DrawingPath,
    EditorState,
    ExtractedText,
    PageDimensions,
    PaginationSettings,
    Point,
    StyleEdits,
    TextBlock,
)


@dataclass
class EditsBundle:
    """Everything compile needs besides the original bytes and rasters."""

    text_blocks: list[TextBlock] = field(default_factory=list)
    drawings: list[DrawingPath] = field(default_factory=list)
    extracted_texts: list[ExtractedText] = field(default_factory=list)
    page_dimensions: dict[int, PageDimensions] = field(default_factory=dict)
    pagination: PaginationSettings = field(default_factory=PaginationSettings)


def _known(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


def text_block_from_dict(d: dict[str, Any]) -> TextBlock:
    return TextBlock(**_known(TextBlock, d))


def drawing_from_dict(d: dict[str, Any]) -> DrawingPath:
    out = _known(DrawingPath, d)
    out["points"] = tuple(
        Point(float(p["x"]), float(p["y"])) if isinstance(p, dict) else Point(float(p[0]), float(p[1]))
        for p in d.get("points", [])
    )
    return DrawingPath(**out)


def extracted_text_from_dict(d: dict[str, Any]) -> ExtractedText:
    out = _known(ExtractedText, d)
    if "transform" in out:
        out["transform"] = tuple(float(v) for v in out["transform"])
    edits = d.get("style_edits")
    out["style_edits"] = StyleEdits(**_known(StyleEdits, edits)) if isinstance(edits, dict) else None
    return ExtractedText(**out)


def edits_from_dict(data: dict[str, Any]) -> EditsBundle:
    dims = {
        int(k): PageDimensions(float(v["width"]), float(v["height"]), float(v.get("scale", 1.0)))
        for k, v in (data.get("page_dimensions") or {}).items()
    }
    pagination = PaginationSettings(**_known(PaginationSettings, data.get("pagination") or {}))
    return EditsBundle(
        text_blocks=[text_block_from_dict(b) for b in data.get("text_blocks", [])],
        drawings=[drawing_from_dict(d) for d in data.get("drawings", [])],
        extracted_texts=[extracted_text_from_dict(t) for t in data.get("extracted_texts", [])],
        page_dimensions=dims,
        pagination=pagination,
    )


def extracted_text_to_dict(t: ExtractedText) -> dict[str, Any]:
    out = asdict(t)
    out["transform"] = list(t.transform)
    return out


def edits_to_dict(state: EditorState) -> dict[str, Any]:
    return {
        "file_name": state.file_name,
        "num_pages": state.num_pages,
        "text_blocks": [asdict(b) for b in state.text_blocks],
        "drawings": [
            {**asdict(d), "points": [{"x": p.x, "y": p.y} for p in d.points]} for d in state.drawings
        ],
        "extracted_texts": [extracted_text_to_dict(t) for t in state.extracted_texts],
        "page_dimensions": {str(k): asdict(v) for k, v in sorted(state.page_dimensions.items())},
        "pagination": asdict(state.pagination),
    }
