from __future__ import annotations

from dataclasses import fields, replace
from typing import Any, Callable

from . import actions as a
from .types import EditorState, ExtractedText, StyleEdits, TextBlock

Listener = Callable[[EditorState], None]

INITIAL_STATE = EditorState()

_TEXT_BLOCK_FIELDS = {f.name for f in fields(TextBlock)} - {"id"}
_STYLE_FIELDS = {f.name for f in fields(StyleEdits)}


def _load_document(state: EditorState, action: a.LoadDocument) -> EditorState:
    # Page-scoped data goes; tool defaults and pagination survive a new file.
    return replace(
        state,
        pdf_data=action.data,
        file_name=action.file_name,
        num_pages=action.num_pages,
        text_blocks=(),
        drawings=(),
        extracted_texts=(),
        page_dimensions={},
        zoom=INITIAL_STATE.zoom,
        selected_extracted_text_id=None,
    )


def _select_tool(state: EditorState, action: a.SelectTool) -> EditorState:
    return replace(state, current_tool=action.tool, selected_extracted_text_id=None)


def _update_text_block(state: EditorState, action: a.UpdateTextBlock) -> EditorState:
    updates = {k: v for k, v in action.updates.items() if k in _TEXT_BLOCK_FIELDS}
    if not updates:
        return state
    blocks = tuple(replace(b, **updates) if b.id == action.id else b for b in state.text_blocks)
    return replace(state, text_blocks=blocks)


def _set_page_dimensions(state: EditorState, action: a.SetPageDimensions) -> EditorState:
    dims = dict(state.page_dimensions)
    dims[action.page_index] = action.dimensions
    return replace(state, page_dimensions=dims)


def _append_extracted_texts(state: EditorState, action: a.AppendExtractedTexts) -> EditorState:
    known = {t.id for t in state.extracted_texts}
    fresh = tuple(t for t in action.texts if t.id not in known)
    if not fresh:
        return state
    return replace(state, extracted_texts=state.extracted_texts + fresh)


def _map_extracted(state: EditorState, text_id: str, fn: Callable[[ExtractedText], ExtractedText]) -> EditorState:
    texts = tuple(fn(t) if t.id == text_id else t for t in state.extracted_texts)
    return replace(state, extracted_texts=texts)


def merge_style_edits(current: StyleEdits | None, patch: dict[str, Any]) -> StyleEdits:
    base = current or StyleEdits()
    return replace(base, **{k: v for k, v in patch.items() if k in _STYLE_FIELDS})


def _update_extracted_style(state: EditorState, action: a.UpdateExtractedTextStyle) -> EditorState:
    return _map_extracted(
        state,
        action.id,
        lambda t: replace(t, style_edits=merge_style_edits(t.style_edits, action.edits)),
    )


def _pagination(state: EditorState, **changes: Any) -> EditorState:
    return replace(state, pagination=replace(state.pagination, **changes))


_HANDLERS: dict[type, Callable[[EditorState, Any], EditorState]] = {
    a.LoadDocument: _load_document,
    a.SelectTool: _select_tool,
    a.SetColor: lambda s, act: replace(s, color=act.color),
    a.SetFontSize: lambda s, act: replace(s, font_size=act.size),
    a.SetStrokeWidth: lambda s, act: replace(s, stroke_width=act.width),
    a.AddTextBlock: lambda s, act: replace(s, text_blocks=s.text_blocks + (act.block,)),
    a.UpdateTextBlock: _update_text_block,
    a.DeleteTextBlock: lambda s, act: replace(
        s, text_blocks=tuple(b for b in s.text_blocks if b.id != act.id)
    ),
    a.AddDrawing: lambda s, act: replace(s, drawings=s.drawings + (act.drawing,)),
    a.DeleteDrawing: lambda s, act: replace(
        s, drawings=tuple(d for d in s.drawings if d.id != act.id)
    ),
    a.ClearPageDrawings: lambda s, act: replace(
        s, drawings=tuple(d for d in s.drawings if d.page_index != act.page_index)
    ),
    a.SetPageDimensions: _set_page_dimensions,
    a.AppendExtractedTexts: _append_extracted_texts,
    a.UpdateExtractedText: lambda s, act: _map_extracted(
        s, act.id, lambda t: replace(t, edited_str=act.edited_str)
    ),
    a.UpdateExtractedTextStyle: _update_extracted_style,
    a.ClearExtractedTextStyle: lambda s, act: _map_extracted(
        s, act.id, lambda t: replace(t, style_edits=None)
    ),
    a.SelectExtractedText: lambda s, act: replace(s, selected_extracted_text_id=act.id),
    a.SetZoom: lambda s, act: replace(s, zoom=act.zoom),
    a.SetPaginationEnabled: lambda s, act: _pagination(s, enabled=bool(act.enabled)),
    a.SetPaginationFormat: lambda s, act: _pagination(s, format=act.format),
    a.SetPaginationPosition: lambda s, act: _pagination(s, position=act.position),
    a.SetPaginationFontSize: lambda s, act: _pagination(s, font_size=act.font_size),
    a.Reset: lambda s, act: INITIAL_STATE,
}


def reduce(state: EditorState, action: Any) -> EditorState:
    """Pure transition function. Unknown actions return the same state object."""
    handler = _HANDLERS.get(type(action))
    if handler is None:
        return state
    return handler(state, action)


def is_text_edited(t: ExtractedText) -> bool:
    return (t.edited_str is not None and t.edited_str != t.original_str) or t.style_edits is not None


def edit_count(state: EditorState) -> int:
    edited = sum(1 for t in state.extracted_texts if is_text_edited(t))
    return edited + len(state.text_blocks) + len(state.drawings)


class EditorStore:
    """Single owner of EditorState; all mutation goes through dispatch()."""

    def __init__(self, state: EditorState | None = None):
        self._state = state if state is not None else INITIAL_STATE
        self._listeners: list[Listener] = []

    @property
    def state(self) -> EditorState:
        return self._state

    def dispatch(self, action: Any) -> EditorState:
        prev = self._state
        self._state = reduce(prev, action)
        if self._state is not prev:
            for listener in list(self._listeners):
                listener(self._state)
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
