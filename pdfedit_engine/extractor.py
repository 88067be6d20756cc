from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Any, Callable

import numpy as np

from .actions import AppendExtractedTexts
from .job import JobPaths, page_id_for, record_error
from .source import FontDescriptor, TextRun
from .types import ExtractedText
from .utils import new_id, rgb_to_hex

log = logging.getLogger(__name__)

DEFAULT_COLOR = "#000000"
DEFAULT_FAMILY = "sans-serif"

_BOLD_TOKENS = ("bold", "black", "heavy")
_ITALIC_TOKENS = ("italic", "oblique")


@dataclass(frozen=True)
class FontStyle:
    bold: bool = False
    italic: bool = False
    name: str = ""


def resolve_font_style(descriptor: FontDescriptor | None) -> FontStyle:
    """Explicit descriptor flags win; otherwise guess from the font's internal name."""
    if descriptor is None:
        return FontStyle()
    bold = descriptor.bold is True
    italic = descriptor.italic is True
    name = descriptor.name or ""
    if name:
        n = name.lower()
        if not bold and any(tok in n for tok in _BOLD_TOKENS):
            bold = True
        if not italic and any(tok in n for tok in _ITALIC_TOKENS):
            italic = True
    return FontStyle(bold=bold, italic=italic, name=name)


def sample_text_color(
    pixels: np.ndarray,
    *,
    x: float,
    y: float,
    font_size: float,
    run_width: float,
    scale: float,
    baseline_offset_ratio: float = 0.65,
    near_white: int = 245,
) -> str:
    """Pick the first inked pixel in a small band above the run's baseline.

    pixels is an HxWx3 (or x4) uint8 array of the page rendered at `scale`;
    x, y are the display-space baseline anchor at that same scale.
    """
    h, w = pixels.shape[:2]
    cy = int(round(y - font_size * baseline_offset_ratio * scale))
    span = max(2, int(round(min(run_width, font_size * 3.0) * scale)))
    x0 = int(math.floor(x))
    y0, y1 = max(0, cy - 2), min(h, cy + 3)
    x0, x1 = max(0, x0), min(w, x0 + span)
    if y0 >= y1 or x0 >= x1:
        return DEFAULT_COLOR

    patch = pixels[y0:y1, x0:x1]
    rgb = patch[..., :3]
    inked = ~np.all(rgb >= near_white, axis=-1)
    if patch.shape[-1] == 4:
        inked &= patch[..., 3] > 0
    hits = np.argwhere(inked)
    if hits.size == 0:
        return DEFAULT_COLOR
    r, g, b = rgb[hits[0][0], hits[0][1]]
    return rgb_to_hex(r, g, b)


class TextExtractor:
    """Builds baseline ExtractedText records for a page, at most once per page."""

    def __init__(
        self,
        source: Any,
        dispatch: Callable[[Any], Any],
        extract_cfg: dict[str, Any] | None = None,
        *,
        paths: JobPaths | None = None,
    ):
        cfg = extract_cfg or {}
        self.source = source
        self.dispatch = dispatch
        self.paths = paths
        self.font_timeout_s = float(cfg.get("font_timeout_s", 3.0))
        self.sample_colors = bool(cfg.get("sample_colors", True))
        self.color_sample_scale = float(cfg.get("color_sample_scale", 2.0))
        self.baseline_offset_ratio = float(cfg.get("baseline_offset_ratio", 0.65))
        self.near_white = int(cfg.get("near_white_threshold", 245))
        self._latched: set[int] = set()
        self._pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="font-lookup")

    def has_run(self, page_index: int) -> bool:
        return page_index in self._latched

    def close(self) -> None:
        self._pool.shutdown(wait=False)

    def extract(self, page_index: int) -> list[ExtractedText]:
        if page_index in self._latched:
            return []
        # Latch before any work so a re-entrant call during extraction is a no-op.
        self._latched.add(page_index)

        page_id = page_id_for(page_index)
        content = self.source.text_content(page_index)
        runs = [r for r in content.runs if r.text.strip()]
        if not runs:
            return []

        # Descriptor lookups run on the worker thread; finish them before rendering.
        font_cache: dict[str, FontStyle] = {}
        for r in runs:
            if r.font_name not in font_cache:
                font_cache[r.font_name] = self._font_style(page_index, r.font_name)

        pixels = self._page_pixels(page_index) if self.sample_colors else None
        page_height = self.source.page_size(page_index)[1] if pixels is not None else 0.0

        texts: list[ExtractedText] = []
        for run in runs:
            t = run.transform
            font_size = math.hypot(t[0], t[1])
            style_info = content.styles.get(run.font_name) or {}
            css_family = style_info.get("fontFamily") or DEFAULT_FAMILY

            font = font_cache[run.font_name]

            color = DEFAULT_COLOR
            if pixels is not None:
                color = self._run_color(pixels, run, font_size, page_height, page_id)

            texts.append(
                ExtractedText(
                    id=new_id(),
                    page_index=page_index,
                    original_str=run.text,
                    pdf_x=float(t[4]),
                    pdf_y=float(t[5]),
                    pdf_font_size=font_size,
                    pdf_width=float(run.width),
                    pdf_height=float(run.height),
                    font_name=run.font_name,
                    css_font_family=css_family,
                    is_bold=font.bold,
                    is_italic=font.italic,
                    color=color,
                    transform=tuple(float(v) for v in t),
                )
            )

        if texts:
            self.dispatch(AppendExtractedTexts(texts=tuple(texts)))
        log.debug("extracted %d runs from %s", len(texts), page_id)
        return texts

    def _font_style(self, page_index: int, font_name: str) -> FontStyle:
        future = self._pool.submit(self.source.font_descriptor, page_index, font_name)
        try:
            descriptor = future.result(timeout=self.font_timeout_s)
        except FutureTimeout:
            future.cancel()
            self._degrade(page_index, "font_descriptor", f"timeout: {font_name}")
            return FontStyle()
        except Exception as e:
            self._degrade(page_index, "font_descriptor", f"{font_name}: {e}")
            return FontStyle()
        return resolve_font_style(descriptor)

    def _page_pixels(self, page_index: int) -> np.ndarray | None:
        try:
            img = self.source.render(page_index, self.color_sample_scale)
            return np.asarray(img.convert("RGBA"))
        except Exception as e:
            self._degrade(page_index, "color_raster", str(e))
            return None

    def _run_color(self, pixels: np.ndarray, run: TextRun, font_size: float, page_height: float, page_id: str) -> str:
        s = self.color_sample_scale
        try:
            return sample_text_color(
                pixels,
                x=run.transform[4] * s,
                y=(page_height - run.transform[5]) * s,
                font_size=font_size,
                run_width=run.width,
                scale=s,
                baseline_offset_ratio=self.baseline_offset_ratio,
                near_white=self.near_white,
            )
        except Exception as e:
            record_error(self.paths, page_id=page_id, stage="color_sample", message=str(e))
            return DEFAULT_COLOR

    def _degrade(self, page_index: int, stage: str, message: str) -> None:
        log.warning("extraction degraded on page %d (%s): %s", page_index, stage, message)
        record_error(self.paths, page_id=page_id_for(page_index), stage=stage, message=message)
