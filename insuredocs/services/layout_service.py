"""
Layout Service – flowing page layout engine.

Tracks a vertical cursor down a fixed-size page, measures wrapped text,
and starts new pages when a block would cross the bottom margin.

Coordinates are measured from the TOP of the page, in points.  The cursor
is an immutable value: every layout call takes one and returns a new one,
so no drawing call depends on ambient document state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Callable, Literal, Optional

from reportlab.lib.pagesizes import A4

if TYPE_CHECKING:
    from insuredocs.services.render_surface import RenderSurface

logger = logging.getLogger(__name__)

Align = Literal["left", "center", "right"]


# ---------------------------------------------------------------------------
# Page geometry & cursor
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PageGeometry:
    """Page size and margins of one document."""
    width: float
    height: float
    margin_left: float
    margin_right: float
    margin_top: float
    margin_bottom: float

    def __post_init__(self):
        for name, margin, dimension in (
            ("margin_left", self.margin_left, self.width),
            ("margin_right", self.margin_right, self.width),
            ("margin_top", self.margin_top, self.height),
            ("margin_bottom", self.margin_bottom, self.height),
        ):
            if margin < 0 or margin >= dimension / 2:
                raise ValueError(
                    f"{name}={margin} must be >= 0 and < half of {dimension}"
                )

    @classmethod
    def a4(
        cls,
        left: float = 20.0,
        right: float = 20.0,
        top: float = 20.0,
        bottom: float = 40.0,
    ) -> "PageGeometry":
        width, height = A4
        return cls(width, height, left, right, top, bottom)

    @property
    def top(self) -> float:
        return self.margin_top

    @property
    def bottom(self) -> float:
        return self.height - self.margin_bottom

    @property
    def left(self) -> float:
        return self.margin_left

    @property
    def right(self) -> float:
        return self.width - self.margin_right

    @property
    def usable_width(self) -> float:
        return self.width - self.margin_left - self.margin_right

    @property
    def usable_height(self) -> float:
        return self.height - self.margin_top - self.margin_bottom


@dataclass(frozen=True)
class Cursor:
    """Current vertical drawing position."""
    y: float
    page: int = 1

    def advance(self, delta: float) -> "Cursor":
        return replace(self, y=self.y + delta)

    def peek(self) -> float:
        return self.y

    def at(self, y: float) -> "Cursor":
        return replace(self, y=y)

    def next_page(self, top: float) -> "Cursor":
        return Cursor(y=top, page=self.page + 1)


@dataclass(frozen=True)
class PageBreakEvent:
    """A transition to a new physical page."""
    from_page: int
    to_page: int
    y: float
    needed: float


# Hooks receive the cursor at the top of the new page and may return an
# advanced one (e.g. after redrawing a table header).
PageHook = Callable[[Cursor], Optional[Cursor]]


# ---------------------------------------------------------------------------
# Measurement
# ---------------------------------------------------------------------------

class TextMetrics:
    """Measures wrapped text with the surface's own wrapping routine."""

    def __init__(self, surface: "RenderSurface"):
        self._surface = surface

    def measure_height(
        self, text: str, font: str, font_size: float, max_width: float
    ) -> float:
        return self._surface.measure_text_height(text, font, font_size, max_width)

    def measure_width(self, text: str, font: str, font_size: float) -> float:
        return self._surface.measure_text_width(text, font, font_size)


# ---------------------------------------------------------------------------
# Page breaks
# ---------------------------------------------------------------------------

class PageBreaker:
    """
    Decides whether a block fits on the current page.

    A block taller than a whole page is not split or shrunk: it triggers
    one break and is then drawn over the bottom margin of the new page.
    """

    def __init__(
        self,
        surface: "RenderSurface",
        geometry: PageGeometry,
        on_page_start: list[PageHook] | None = None,
    ):
        self._surface = surface
        self._geometry = geometry
        self._on_page_start: list[PageHook] = list(on_page_start or [])
        self.events: list[PageBreakEvent] = []

    def add_page_hook(self, hook: PageHook) -> None:
        """Register a hook that runs at the top of every new page."""
        self._on_page_start.append(hook)

    def fits(self, cursor: Cursor, needed: float) -> bool:
        return cursor.y + needed <= self._geometry.bottom

    def will_break(self, cursor: Cursor, needed: float) -> bool:
        # Never break on an untouched page, even for oversize blocks
        return not self.fits(cursor, needed) and cursor.y > self._geometry.top

    def ensure_room(
        self,
        cursor: Cursor,
        needed: float,
        on_new_page: PageHook | None = None,
    ) -> Cursor:
        if not self.will_break(cursor, needed):
            return cursor
        return self.break_page(cursor, needed, on_new_page)

    def break_page(
        self,
        cursor: Cursor,
        needed: float = 0.0,
        on_new_page: PageHook | None = None,
    ) -> Cursor:
        """Unconditionally start a new page and run the page-start hooks."""
        self._surface.new_page()
        new_cursor = cursor.next_page(self._geometry.top)
        event = PageBreakEvent(
            from_page=cursor.page,
            to_page=new_cursor.page,
            y=cursor.y,
            needed=needed,
        )
        self.events.append(event)
        logger.debug(
            "Page break %d -> %d at y=%.1f (needed %.1f)",
            event.from_page, event.to_page, event.y, event.needed,
        )

        for hook in [*self._on_page_start, on_new_page]:
            if hook is None:
                continue
            advanced = hook(new_cursor)
            if advanced is not None:
                new_cursor = advanced
        return new_cursor


# ---------------------------------------------------------------------------
# Facade
# ---------------------------------------------------------------------------

@dataclass
class LayoutService:
    """
    Bundles the surface, geometry, metrics and page breaker of one document.

    Document generators chain its calls top-to-bottom, threading the
    cursor returned by each one into the next.
    """
    surface: "RenderSurface"
    metrics: TextMetrics = field(init=False)
    breaker: PageBreaker = field(init=False)

    def __post_init__(self):
        self.metrics = TextMetrics(self.surface)
        self.breaker = PageBreaker(self.surface, self.surface.geometry)

    @property
    def geometry(self) -> PageGeometry:
        return self.surface.geometry

    def start(self) -> Cursor:
        return Cursor(y=self.geometry.top, page=self.surface.page_number)

    def new_page(self, cursor: Cursor) -> Cursor:
        return self.breaker.break_page(cursor)

    # ------------------------------------------------------------------
    # Flowing blocks
    # ------------------------------------------------------------------

    def flow_text(
        self,
        cursor: Cursor,
        text: str,
        *,
        font: str,
        font_size: float,
        x: float | None = None,
        width: float | None = None,
        align: Align = "left",
        gap: float = 0.0,
        underline: bool = False,
        color: str | None = None,
    ) -> Cursor:
        """Draw a wrapped paragraph, breaking the page first if needed."""
        x = self.geometry.left if x is None else x
        width = self.geometry.right - x if width is None else width
        height = self.metrics.measure_height(text, font, font_size, width)
        cursor = self.breaker.ensure_room(cursor, height)
        self.surface.draw_text(
            text, x, cursor.y,
            font=font, font_size=font_size, width=width, align=align,
            underline=underline, color=color,
        )
        return cursor.advance(height + gap)

    def rule(
        self,
        cursor: Cursor,
        *,
        x1: float | None = None,
        x2: float | None = None,
        line_width: float | None = None,
        color: str | None = None,
    ) -> Cursor:
        """Horizontal line across the usable width at the cursor."""
        x1 = self.geometry.left if x1 is None else x1
        x2 = self.geometry.right if x2 is None else x2
        self.surface.draw_line(
            x1, cursor.y, x2, cursor.y, line_width=line_width, color=color
        )
        return cursor

    def section_title(
        self,
        cursor: Cursor,
        title: str,
        *,
        font: str,
        font_size: float = 15,
        color: str | None = None,
        keep_with: float = 0.0,
    ) -> Cursor:
        """Title followed by a full-width rule; kept with ``keep_with`` points of content."""
        title_height = self.metrics.measure_height(
            title, font, font_size, self.geometry.usable_width
        )
        cursor = self.breaker.ensure_room(cursor, title_height + 12 + keep_with)
        cursor = self.flow_text(
            cursor, title, font=font, font_size=font_size, color=color, gap=4
        )
        self.rule(cursor, line_width=1.5, color=color)
        return cursor.advance(8)
