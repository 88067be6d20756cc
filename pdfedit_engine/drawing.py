from __future__ import annotations

import weakref
from io import BytesIO
from typing import Iterable

from PIL import Image, ImageDraw

from .types import DrawingPath, Point
from .utils import hex_to_rgb255, new_id

HIGHLIGHT_COLOR = "#FFEB3B"
HIGHLIGHT_WIDTH_FACTOR = 3.0
HIGHLIGHT_OPACITY = 0.35
ERASE_THRESHOLD = 12.0


def commit_stroke(
    page_index: int,
    points: Iterable[Point | tuple[float, float]],
    *,
    tool: str,
    color: str,
    stroke_width: float,
) -> DrawingPath | None:
    """Turn the points accumulated during a drag into a DrawingPath.

    Highlight styling is fixed here, at commit time. Returns None for fewer
    than two points.
    """
    pts = tuple(p if isinstance(p, Point) else Point(float(p[0]), float(p[1])) for p in points)
    if len(pts) < 2:
        return None
    if tool == "highlight":
        return DrawingPath(
            id=new_id(),
            page_index=page_index,
            points=pts,
            color=HIGHLIGHT_COLOR,
            width=stroke_width * HIGHLIGHT_WIDTH_FACTOR,
            opacity=HIGHLIGHT_OPACITY,
        )
    return DrawingPath(id=new_id(), page_index=page_index, points=pts, color=color, width=stroke_width, opacity=1.0)


def erase_hits(
    drawings: Iterable[DrawingPath],
    page_index: int,
    point: Point,
    threshold: float = ERASE_THRESHOLD,
) -> list[str]:
    hits: list[str] = []
    for d in drawings:
        if d.page_index != page_index:
            continue
        limit = (threshold + d.width / 2.0) ** 2
        for p in d.points:
            dx = p.x - point.x
            dy = p.y - point.y
            if dx * dx + dy * dy < limit:
                hits.append(d.id)
                break
    return hits


def _stroke_layer(path: DrawingPath, size: tuple[int, int]) -> Image.Image:
    layer = Image.new("RGBA", size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)
    fill = hex_to_rgb255(path.color) + (255,)
    width = max(1, int(round(path.width)))
    xy = [(p.x, p.y) for p in path.points]
    draw.line(xy, fill=fill, width=width, joint="curve")
    # Round caps.
    r = width / 2.0
    for x, y in (xy[0], xy[-1]):
        draw.ellipse((x - r, y - r, x + r, y + r), fill=fill)
    if path.opacity < 1.0:
        a = max(0.0, float(path.opacity))
        layer.putalpha(layer.getchannel("A").point(lambda v: int(v * a)))
    return layer


def rasterize_drawings(
    drawings: Iterable[DrawingPath],
    page_index: int,
    width: int,
    height: int,
) -> Image.Image:
    """Transparent page-sized RGBA raster of every stroke on the page."""
    size = (max(1, int(round(width))), max(1, int(round(height))))
    canvas = Image.new("RGBA", size, (0, 0, 0, 0))
    for d in drawings:
        if d.page_index != page_index or len(d.points) < 2:
            continue
        canvas.alpha_composite(_stroke_layer(d, size))
    return canvas


def png_bytes(img: Image.Image) -> bytes:
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


class DrawingSurface:
    """Live ink raster for one page, owned by the rendering layer."""

    def __init__(self, page_index: int, width: int, height: int):
        self.page_index = page_index
        self.image = Image.new("RGBA", (max(1, int(width)), max(1, int(height))), (0, 0, 0, 0))

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size

    def resize(self, width: int, height: int) -> None:
        self.image = Image.new("RGBA", (max(1, int(width)), max(1, int(height))), (0, 0, 0, 0))

    def redraw(self, drawings: Iterable[DrawingPath]) -> None:
        w, h = self.image.size
        self.image = rasterize_drawings(drawings, self.page_index, w, h)

    def to_png(self) -> bytes:
        return png_bytes(self.image)


class SurfaceRegistry:
    """page index -> surface, holding only weak references."""

    def __init__(self) -> None:
        self._surfaces: weakref.WeakValueDictionary[int, DrawingSurface] = weakref.WeakValueDictionary()

    def register(self, surface: DrawingSurface) -> None:
        self._surfaces[surface.page_index] = surface

    def get(self, page_index: int) -> DrawingSurface | None:
        return self._surfaces.get(page_index)

    def pages(self) -> list[int]:
        return sorted(self._surfaces.keys())

    def capture(self) -> dict[int, bytes]:
        """Encode each surface's current pixels; nothing is cached between calls."""
        out: dict[int, bytes] = {}
        for page_index in self.pages():
            surface = self._surfaces.get(page_index)
            if surface is not None:
                out[page_index] = surface.to_png()
        return out
