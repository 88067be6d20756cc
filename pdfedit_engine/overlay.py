from __future__ import annotations

from dataclasses import dataclass

from .coords import document_to_display
from .store import is_text_edited
from .types import EditorState, ExtractedText

MIN_SCREEN_WIDTH = 20.0
LINE_HEIGHT = 1.2


@dataclass(frozen=True)
class EffectiveStyle:
    font_size: float
    is_bold: bool
    is_italic: bool
    color: str
    css_font_family: str


@dataclass(frozen=True)
class ScreenItem:
    text: ExtractedText
    style: EffectiveStyle
    display_str: str
    screen_x: float
    screen_y: float  # top of the box
    screen_width: float
    screen_height: float
    screen_font_size: float
    has_edits: bool


def _pick(override, baseline):
    return baseline if override is None else override


def effective_style(t: ExtractedText) -> EffectiveStyle:
    """Merge baseline with style edits field by field. Recomputed on every read."""
    e = t.style_edits
    if e is None:
        return EffectiveStyle(t.pdf_font_size, t.is_bold, t.is_italic, t.color, t.css_font_family)
    return EffectiveStyle(
        font_size=_pick(e.font_size, t.pdf_font_size),
        is_bold=_pick(e.is_bold, t.is_bold),
        is_italic=_pick(e.is_italic, t.is_italic),
        color=_pick(e.color, t.color),
        css_font_family=_pick(e.css_font_family, t.css_font_family),
    )


def effective_str(t: ExtractedText) -> str:
    return t.original_str if t.edited_str is None else t.edited_str


def is_edited(t: ExtractedText) -> bool:
    return is_text_edited(t)


def screen_item(t: ExtractedText, viewport) -> ScreenItem:
    style = effective_style(t)
    sx, sy = document_to_display(viewport, t.pdf_x, t.pdf_y)
    font_px = style.font_size * viewport.scale
    height = max(font_px * LINE_HEIGHT, t.pdf_height * viewport.scale)
    width = t.pdf_width * viewport.scale
    return ScreenItem(
        text=t,
        style=style,
        display_str=effective_str(t),
        screen_x=sx,
        # The converted point is the baseline; the box sits on top of it.
        screen_y=sy - height,
        screen_width=max(width, MIN_SCREEN_WIDTH),
        screen_height=height,
        screen_font_size=font_px,
        has_edits=t.edited_str is not None or t.style_edits is not None,
    )


def screen_items(state: EditorState, page_index: int, viewport) -> list[ScreenItem]:
    return [screen_item(t, viewport) for t in state.extracted_texts if t.page_index == page_index]
