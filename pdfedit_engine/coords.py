"""Display space (pixels, y-down) <-> document space (points, y-up).

Display -> document uses the PageDimensions recorded when the page was
rendered. Nothing checks that the recorded scale still matches the geometry
being converted; a stale scale silently misplaces output.
"""
from __future__ import annotations

from dataclasses import dataclass

from .types import PageDimensions


@dataclass(frozen=True)
class DocumentPlacement:
    x: float
    y: float  # baseline of the first line
    font_size: float
    scale_x: float
    scale_y: float


def display_scale(page_width: float, page_height: float, dims: PageDimensions) -> tuple[float, float]:
    return page_width / dims.width, page_height / dims.height


def display_to_document(
    x: float,
    y: float,
    font_size: float,
    page_width: float,
    page_height: float,
    dims: PageDimensions,
) -> DocumentPlacement:
    """Map a top-left anchored display box to a document-space baseline one line below its top."""
    scale_x, scale_y = display_scale(page_width, page_height, dims)
    doc_font_size = font_size * scale_x
    return DocumentPlacement(
        x=x * scale_x,
        y=page_height - y * scale_y - doc_font_size,
        font_size=doc_font_size,
        scale_x=scale_x,
        scale_y=scale_y,
    )


def document_to_display(viewport, x: float, y: float) -> tuple[float, float]:
    # The viewport belongs to the rendering collaborator.
    return viewport.convert_to_viewport_point(x, y)
