from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Iterable

from PIL import Image

from . import actions as a
from .compiler import compile_state
from .config import EngineConfig, default_config
from .drawing import SurfaceRegistry, commit_stroke, erase_hits
from .errors import CompileError
from .exporter import save_pdf
from .serialize import edits_to_dict
from .extractor import TextExtractor
from .job import JobPaths
from .overlay import EffectiveStyle, ScreenItem, effective_style, screen_items
from .render import PageRenderer, Ticket, TicketBook
from .source import FitzDocumentSource
from .store import EditorStore, edit_count
from .types import TOOLS, DrawingPath, EditorState, ExtractedText, Point, TextBlock
from .utils import clamp, new_id, write_json

log = logging.getLogger(__name__)

MIN_ZOOM = 0.5
MAX_ZOOM = 3.0
MIN_STYLE_FONT_SIZE = 4.0
MAX_STYLE_FONT_SIZE = 200.0


class EditorSession:
    """Wires the store to the rendering, extraction and export collaborators.

    This is the layer a UI talks to: it validates input (zoom range, tool
    names), turns gestures into actions, and owns per-document helpers.
    """

    def __init__(
        self,
        cfg: EngineConfig | None = None,
        *,
        paths: JobPaths | None = None,
        source_factory: Callable[[bytes], Any] = FitzDocumentSource.from_bytes,
    ):
        self.cfg = cfg or default_config()
        self.paths = paths
        self.source_factory = source_factory
        self.store = EditorStore()
        self.loads = TicketBook()
        self.registry = SurfaceRegistry()
        self.source: Any | None = None
        self.renderer: PageRenderer | None = None
        self.extractor: TextExtractor | None = None
        self._drawings_seen = self.store.state.drawings
        self.store.subscribe(self._on_state)

    @property
    def state(self) -> EditorState:
        return self.store.state

    def dispatch(self, action: Any) -> EditorState:
        return self.store.dispatch(action)

    # --- document lifecycle -------------------------------------------------

    def begin_load(self) -> Ticket:
        return self.loads.issue("document")

    def finish_load(self, ticket: Ticket, data: bytes, file_name: str) -> bool:
        """Apply a load unless a newer one started meanwhile.

        Raises DocumentLoadError for unreadable bytes; the store is untouched.
        """
        if not self.loads.is_current(ticket):
            log.debug("discarding superseded load of %s", file_name)
            return False
        source = self.source_factory(data)
        if not self.loads.is_current(ticket):
            source.close()
            return False

        self._teardown()
        self.source = source
        self.registry = SurfaceRegistry()
        self.renderer = PageRenderer(source, self.dispatch, self.registry, self.cfg.render)
        self.extractor = TextExtractor(source, self.dispatch, self.cfg.extract, paths=self.paths)
        self.dispatch(a.LoadDocument(data=bytes(data), file_name=file_name, num_pages=source.page_count))
        return True

    def open_document(self, data: bytes, file_name: str) -> bool:
        return self.finish_load(self.begin_load(), data, file_name)

    def reset(self) -> None:
        self.loads.cancel_all()
        self._teardown()
        self.dispatch(a.Reset())

    def close(self) -> None:
        self._teardown()

    def _teardown(self) -> None:
        if self.renderer is not None:
            self.renderer.cancel_all()
        if self.extractor is not None:
            self.extractor.close()
        if self.source is not None:
            self.source.close()
        self.source = None
        self.renderer = None
        self.extractor = None

    def _require_source(self) -> Any:
        if self.source is None or self.renderer is None or self.extractor is None:
            raise RuntimeError("no document loaded")
        return self.source

    # --- rendering ----------------------------------------------------------

    def render_page(self, page_index: int) -> Image.Image | None:
        """Render at the current zoom, then extract the page's text once."""
        self._require_source()
        image = self.renderer.request(page_index, self.state.zoom)
        if image is None:
            return None
        surface = self.renderer.surfaces.get(page_index)
        if surface is not None:
            surface.redraw(self.state.drawings)
        self.extractor.extract(page_index)
        return image

    def viewport(self, page_index: int):
        source = self._require_source()
        return source.viewport(page_index, self.renderer.scale_for(self.state.zoom))

    def screen_items(self, page_index: int) -> list[ScreenItem]:
        return screen_items(self.state, page_index, self.viewport(page_index))

    # --- global settings ----------------------------------------------------

    def select_tool(self, tool: str) -> None:
        if tool not in TOOLS:
            raise ValueError(f"unknown tool: {tool}")
        self.dispatch(a.SelectTool(tool=tool))

    def set_zoom(self, zoom: float) -> None:
        if not (MIN_ZOOM <= zoom <= MAX_ZOOM):
            raise ValueError(f"zoom must be within [{MIN_ZOOM}, {MAX_ZOOM}]: {zoom}")
        self.dispatch(a.SetZoom(zoom=zoom))

    def zoom_by(self, delta: float) -> bool:
        nxt = round((self.state.zoom + delta) * 100) / 100
        if MIN_ZOOM <= nxt <= MAX_ZOOM:
            self.dispatch(a.SetZoom(zoom=nxt))
            return True
        return False

    # --- text blocks --------------------------------------------------------

    def click_page(self, page_index: int, x: float, y: float) -> TextBlock | None:
        self.dispatch(a.SelectExtractedText(id=None))
        if self.state.current_tool != "text":
            return None
        block = TextBlock(
            id=new_id(),
            page_index=page_index,
            x=x,
            y=y,
            font_size=self.state.font_size,
            color=self.state.color,
        )
        self.dispatch(a.AddTextBlock(block=block))
        return block

    def update_text_block(self, block_id: str, **updates: Any) -> None:
        self.dispatch(a.UpdateTextBlock(id=block_id, updates=updates))

    def move_text_block(self, block_id: str, x: float, y: float) -> None:
        self.update_text_block(block_id, x=max(0.0, x), y=max(0.0, y))

    def backspace_text_block(self, block_id: str) -> bool:
        """Backspace in an empty block deletes it."""
        block = next((b for b in self.state.text_blocks if b.id == block_id), None)
        if block is None or block.text:
            return False
        self.dispatch(a.DeleteTextBlock(id=block_id))
        return True

    # --- ink ----------------------------------------------------------------

    def draw_stroke(self, page_index: int, points: Iterable[Point | tuple[float, float]]) -> DrawingPath | None:
        tool = self.state.current_tool
        if tool not in ("draw", "highlight"):
            return None
        path = commit_stroke(
            page_index,
            points,
            tool=tool,
            color=self.state.color,
            stroke_width=self.state.stroke_width,
        )
        if path is not None:
            self.dispatch(a.AddDrawing(drawing=path))
        return path

    def erase_at(self, page_index: int, x: float, y: float) -> list[str]:
        hits = erase_hits(self.state.drawings, page_index, Point(x, y))
        for drawing_id in hits:
            self.dispatch(a.DeleteDrawing(id=drawing_id))
        return hits

    def _on_state(self, state: EditorState) -> None:
        if state.drawings is self._drawings_seen:
            return
        self._drawings_seen = state.drawings
        if self.renderer is None:
            return
        for surface in self.renderer.surfaces.values():
            surface.redraw(state.drawings)

    # --- extracted text -----------------------------------------------------

    def select_extracted_text(self, text_id: str | None) -> None:
        self.dispatch(a.SelectExtractedText(id=text_id))

    def edit_extracted_text(self, text_id: str, edited_str: str) -> None:
        self.dispatch(a.UpdateExtractedText(id=text_id, edited_str=edited_str))

    def selected_text(self) -> ExtractedText | None:
        sel = self.state.selected_extracted_text_id
        if sel is None:
            return None
        return next((t for t in self.state.extracted_texts if t.id == sel), None)

    def selected_style(self) -> EffectiveStyle | None:
        t = self.selected_text()
        return effective_style(t) if t is not None else None

    def update_selected_style(self, **edits: Any) -> None:
        sel = self.state.selected_extracted_text_id
        if sel is None:
            return
        if edits.get("font_size") is not None:
            edits["font_size"] = clamp(float(edits["font_size"]), MIN_STYLE_FONT_SIZE, MAX_STYLE_FONT_SIZE)
        self.dispatch(a.UpdateExtractedTextStyle(id=sel, edits=edits))

    # --- export -------------------------------------------------------------

    @property
    def edit_count(self) -> int:
        return edit_count(self.state)

    def capture_rasters(self) -> dict[int, bytes]:
        inked = {d.page_index for d in self.state.drawings}
        return {i: png for i, png in self.registry.capture().items() if i in inked}

    def export(self) -> bytes:
        state = self.state
        if state.pdf_data is None:
            raise CompileError("no document loaded")
        return compile_state(state, self.capture_rasters(), self.cfg.compile)

    def export_to(self, out_dir: str | Path) -> Path:
        data = self.export()
        return save_pdf(data, out_dir, self.state.file_name)

    def save_edits(self, path: str | Path) -> Path:
        """Write the edits JSON that `pdfedit_engine compile --edits` reads."""
        if self.state.pdf_data is None:
            raise RuntimeError("no document loaded")
        out = Path(path)
        write_json(out, edits_to_dict(self.state))
        return out
