from __future__ import annotations

import gc
from io import BytesIO

from PIL import Image

from pdfedit_engine import actions as a
from pdfedit_engine.drawing import (
    HIGHLIGHT_COLOR,
    DrawingSurface,
    SurfaceRegistry,
    commit_stroke,
    erase_hits,
    rasterize_drawings,
)
from pdfedit_engine.render import PageRenderer, TicketBook
from pdfedit_engine.types import DrawingPath, Point

from conftest import FakeSource


def _square(path_id: str = "sq", page: int = 0, width: float = 3.0) -> DrawingPath:
    pts = (Point(0, 0), Point(40, 0), Point(40, 40), Point(0, 40))
    return DrawingPath(id=path_id, page_index=page, points=pts, color="#ff0000", width=width)


# ═══════════════════════════════════════════════════════════════════════════════
# STROKES
# ═══════════════════════════════════════════════════════════════════════════════


class TestStrokes:
    def test_draw_stroke_keeps_user_style(self):
        p = commit_stroke(0, [(1, 2), (3, 4)], tool="draw", color="#123456", stroke_width=5)
        assert p.color == "#123456"
        assert p.width == 5
        assert p.opacity == 1.0
        assert p.points == (Point(1, 2), Point(3, 4))

    def test_highlight_is_fixed_at_commit(self):
        p = commit_stroke(0, [(1, 2), (3, 4)], tool="highlight", color="#123456", stroke_width=4)
        assert p.color == HIGHLIGHT_COLOR
        assert p.width == 12
        assert p.opacity == 0.35

    def test_single_point_is_dropped(self):
        assert commit_stroke(0, [(1, 2)], tool="draw", color="#000000", stroke_width=3) is None


class TestErase:
    def test_hit_on_vertex(self):
        assert erase_hits([_square()], 0, Point(0, 0)) == ["sq"]

    def test_miss_far_away(self):
        assert erase_hits([_square()], 0, Point(100, 100)) == []

    def test_only_same_page(self):
        assert erase_hits([_square(page=1)], 0, Point(0, 0)) == []

    def test_threshold_grows_with_width(self):
        # 12 + 20 / 2 = 22 from a vertex
        assert erase_hits([_square(width=20)], 0, Point(60, 0)) == ["sq"]
        assert erase_hits([_square(width=3)], 0, Point(60, 0)) == []


# ═══════════════════════════════════════════════════════════════════════════════
# RASTERIZATION AND SURFACES
# ═══════════════════════════════════════════════════════════════════════════════


class TestRasterize:
    def test_stroke_pixels_and_transparency(self):
        img = rasterize_drawings([_square(width=6)], 0, 100, 100)
        assert img.mode == "RGBA"
        assert img.size == (100, 100)
        assert img.getpixel((20, 0))[:3] == (255, 0, 0)
        assert img.getpixel((20, 0))[3] == 255
        assert img.getpixel((80, 80))[3] == 0

    def test_highlight_is_translucent(self):
        p = commit_stroke(0, [(10, 50), (90, 50)], tool="highlight", color="#000000", stroke_width=3)
        alpha = rasterize_drawings([p], 0, 100, 100).getpixel((50, 50))[3]
        assert 0 < alpha < 255

    def test_other_pages_are_ignored(self):
        img = rasterize_drawings([_square(page=2)], 0, 100, 100)
        assert img.getbbox() is None

    def test_surface_capture_is_png(self):
        surface = DrawingSurface(0, 50, 50)
        surface.redraw([_square()])
        img = Image.open(BytesIO(surface.to_png()))
        assert img.size == (50, 50)

    def test_registry_holds_weak_refs(self):
        registry = SurfaceRegistry()
        surface = DrawingSurface(3, 10, 10)
        registry.register(surface)
        assert registry.pages() == [3]
        assert set(registry.capture()) == {3}

        del surface
        gc.collect()
        assert registry.get(3) is None
        assert registry.capture() == {}


# ═══════════════════════════════════════════════════════════════════════════════
# RENDERING
# ═══════════════════════════════════════════════════════════════════════════════


class TestRender:
    def test_ticket_book_supersedes(self):
        book = TicketBook()
        t1 = book.issue("p0")
        t2 = book.issue("p0")
        other = book.issue("p1")
        assert not book.is_current(t1)
        assert book.is_current(t2) and book.is_current(other)
        book.cancel_all()
        assert not book.is_current(t2)

    def test_request_records_dimensions(self):
        seen = []
        registry = SurfaceRegistry()
        renderer = PageRenderer(FakeSource(), seen.append, registry, {"base_scale": 1.5})
        img = renderer.request(0, 2.0)

        assert img.size == (1800, 2400)
        (action,) = seen
        assert isinstance(action, a.SetPageDimensions)
        assert (action.dimensions.width, action.dimensions.height, action.dimensions.scale) == (1800, 2400, 3.0)
        assert registry.get(0).size == (1800, 2400)

    def test_stale_render_is_discarded(self):
        seen = []
        renderer = PageRenderer(FakeSource(), seen.append, SurfaceRegistry())
        old = renderer.begin(0)
        new = renderer.begin(0)
        image = Image.new("RGB", (900, 1200))

        assert renderer.complete(old, 0, image, 1.5) is False
        assert seen == []
        assert renderer.complete(new, 0, image, 1.5) is True
        assert len(seen) == 1

    def test_rerender_resizes_surface(self):
        renderer = PageRenderer(FakeSource(), lambda _: None, SurfaceRegistry())
        renderer.request(0, 1.0)
        renderer.request(0, 2.0)
        assert renderer.surfaces[0].size == (1800, 2400)
