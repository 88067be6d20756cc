from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable

from PIL import Image

from .actions import SetPageDimensions
from .drawing import DrawingSurface, SurfaceRegistry
from .types import PageDimensions

log = logging.getLogger(__name__)

DEFAULT_BASE_SCALE = 1.5


@dataclass
class Ticket:
    slot: Hashable
    serial: int
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class TicketBook:
    """One live ticket per slot; issuing a new one cancels the previous."""

    _current: dict[Hashable, Ticket] = field(default_factory=dict)
    _counter: Any = field(default_factory=itertools.count)

    def issue(self, slot: Hashable) -> Ticket:
        prev = self._current.get(slot)
        if prev is not None:
            prev.cancel()
        ticket = Ticket(slot=slot, serial=next(self._counter))
        self._current[slot] = ticket
        return ticket

    def is_current(self, ticket: Ticket) -> bool:
        return not ticket.cancelled and self._current.get(ticket.slot) is ticket

    def cancel_all(self) -> None:
        for t in self._current.values():
            t.cancel()
        self._current.clear()


class PageRenderer:
    """Renders pages at base_scale * zoom; stale renders never commit."""

    def __init__(
        self,
        source: Any,
        dispatch: Callable[[Any], Any],
        registry: SurfaceRegistry,
        render_cfg: dict[str, Any] | None = None,
    ):
        cfg = render_cfg or {}
        self.source = source
        self.dispatch = dispatch
        self.registry = registry
        self.base_scale = float(cfg.get("base_scale", DEFAULT_BASE_SCALE))
        self.tickets = TicketBook()
        self.rasters: dict[int, Image.Image] = {}
        # Strong refs; the registry only holds weak ones.
        self.surfaces: dict[int, DrawingSurface] = {}

    def scale_for(self, zoom: float) -> float:
        return self.base_scale * zoom

    def begin(self, page_index: int) -> Ticket:
        return self.tickets.issue(("page", page_index))

    def complete(self, ticket: Ticket, page_index: int, image: Image.Image, scale: float) -> bool:
        if not self.tickets.is_current(ticket):
            log.debug("discarding stale render of page %d (ticket %d)", page_index, ticket.serial)
            return False
        w, h = image.size
        self.rasters[page_index] = image
        surface = self.surfaces.get(page_index)
        if surface is None:
            surface = DrawingSurface(page_index, w, h)
            self.surfaces[page_index] = surface
            self.registry.register(surface)
        elif surface.size != (w, h):
            surface.resize(w, h)
        self.dispatch(SetPageDimensions(page_index=page_index, dimensions=PageDimensions(w, h, scale)))
        return True

    def request(self, page_index: int, zoom: float) -> Image.Image | None:
        ticket = self.begin(page_index)
        scale = self.scale_for(zoom)
        image = self.source.render(page_index, scale)
        if not self.complete(ticket, page_index, image, scale):
            return None
        return image

    def cancel_all(self) -> None:
        self.tickets.cancel_all()
