"""
Table Service – bordered rows and paginated tables.

Three primitives built on the layout engine:

  - FixedHeightRow  one row of equal-width, vertically centred columns
  - TableFlow       header + data rows, header replayed after page breaks
  - WideLeftTable   fixed-height 75/25 label/value listing

Every primitive measures before it draws, so rules and separators always
end exactly where the measured content ends.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Sequence, Union

from insuredocs.config import TABLE_CONFIG, WIDE_LEFT_TABLE_CONFIG
from insuredocs.services.layout_service import Cursor, LayoutService, PageHook


@dataclass(frozen=True)
class Cell:
    text: str
    font: str
    font_size: float
    width: float


@dataclass(frozen=True)
class RowStyle:
    font: str
    font_size: float = 9
    min_cell_height: float = TABLE_CONFIG["min_cell_height"]
    text_padding: float = TABLE_CONFIG["text_padding"]
    cell_padding: float = TABLE_CONFIG["cell_padding"]
    row_gap: float = TABLE_CONFIG["row_gap"]
    top_padding: float = TABLE_CONFIG["top_padding"]


@dataclass(frozen=True)
class RowResult:
    cursor: Cursor      # where the next row's content starts
    row_top: float      # top of the separators
    y_after: float      # bottom rule of this row
    height: float       # shared content height


@dataclass(frozen=True)
class TableRow:
    """A data row that overrides the table's body style (e.g. a bold total)."""
    texts: Sequence[str]
    style: RowStyle | None = None


@dataclass
class TableResult:
    cursor: Cursor
    rules: list[tuple[int, float]] = field(default_factory=list)
    fragments: list[tuple[int, float, float]] = field(default_factory=list)


RowInput = Union[Sequence[str], TableRow]


# ---------------------------------------------------------------------------
# FixedHeightRow
# ---------------------------------------------------------------------------

class FixedHeightRow:
    """Renders N columns of text into one shared row height."""

    def __init__(self, layout: LayoutService):
        self._layout = layout

    def _column_width(self, columns: int) -> float:
        return self._layout.geometry.usable_width / columns

    def cells(self, texts: Sequence[str], style: RowStyle) -> list[Cell]:
        width = self._column_width(len(texts))
        return [
            Cell(text=str(t), font=style.font, font_size=style.font_size, width=width)
            for t in texts
        ]

    def cell_height(self, cell: Cell, style: RowStyle) -> float:
        return self._layout.metrics.measure_height(
            cell.text, cell.font, cell.font_size, cell.width - style.text_padding
        )

    def natural_height(self, cells: Sequence[Cell], style: RowStyle) -> float:
        tallest = max((self.cell_height(c, style) for c in cells), default=0.0)
        return max(style.min_cell_height, tallest)

    def uniform_height(self, rows: Sequence[tuple[Sequence[Cell], RowStyle]]) -> float:
        """One height shared by several rows (e.g. a label row and its value row)."""
        return max((self.natural_height(cells, style) for cells, style in rows), default=0.0)

    def render_row(
        self,
        cells: Sequence[Cell],
        cursor: Cursor,
        *,
        style: RowStyle,
        fixed_height: float | None = None,
        row_top: float | None = None,
    ) -> RowResult:
        surface = self._layout.surface
        geometry = self._layout.geometry
        height = fixed_height if fixed_height is not None else self.natural_height(cells, style)
        row_top = cursor.y if row_top is None else row_top

        x = geometry.left
        for cell in cells:
            own = self.cell_height(cell, style)
            offset = max(0.0, (height - own) / 2)
            surface.draw_text(
                cell.text,
                x + style.text_padding / 2,
                cursor.y + offset,
                font=cell.font,
                font_size=cell.font_size,
                width=cell.width - style.text_padding,
                align="center",
            )
            x += cell.width

        y_after = cursor.y + height + style.cell_padding

        # Separators only after measuring: y_after depends on the content
        x = geometry.left
        for cell in cells[:-1]:
            x += cell.width
            surface.draw_line(x, row_top, x, y_after)
        surface.draw_line(geometry.left, y_after, geometry.right, y_after)

        return RowResult(
            cursor=cursor.at(y_after + style.row_gap),
            row_top=row_top,
            y_after=y_after,
            height=height,
        )


# ---------------------------------------------------------------------------
# TableFlow
# ---------------------------------------------------------------------------

class TableFlow:
    """Header + data rows that may span pages; the header repeats on each page."""

    def __init__(self, layout: LayoutService, row: FixedHeightRow | None = None):
        self._layout = layout
        self._row = row or FixedHeightRow(layout)

    def render_table(
        self,
        header: Sequence[str],
        rows: Sequence[RowInput],
        cursor: Cursor,
        *,
        header_style: RowStyle,
        body_style: RowStyle,
        uniform_height: bool = False,
        on_new_page: PageHook | None = None,
        outer_border: bool = True,
    ) -> TableResult:
        layout = self._layout
        geometry = layout.geometry
        header_cells = self._row.cells(header, header_style)
        body = []
        for row in rows:
            if isinstance(row, TableRow):
                style = row.style or body_style
                body.append((self._row.cells(row.texts, style), style))
            else:
                body.append((self._row.cells(row, body_style), body_style))

        fixed = None
        if uniform_height:
            fixed = self._row.uniform_height([(header_cells, header_style), *body])

        def height_of(cells, style) -> float:
            return fixed if fixed is not None else self._row.natural_height(cells, style)

        header_height = height_of(header_cells, header_style)
        result = TableResult(cursor=cursor)
        fragment_top = cursor.y

        def draw_header(at: Cursor) -> RowResult:
            layout.rule(at)
            result.rules.append((at.page, at.y))
            drawn = self._row.render_row(
                header_cells,
                at.advance(header_style.top_padding),
                style=header_style,
                fixed_height=header_height,
                row_top=at.y,
            )
            result.rules.append((at.page, drawn.y_after))
            return drawn

        def close_fragment(page: int, bottom: float) -> None:
            result.fragments.append((page, fragment_top, bottom))
            if outer_border:
                layout.surface.draw_line(geometry.left, fragment_top, geometry.left, bottom)
                layout.surface.draw_line(geometry.right, fragment_top, geometry.right, bottom)

        # Keep the header on the same page as the first data row
        needed = header_style.top_padding + header_height + header_style.cell_padding
        if body:
            first_cells, first_style = body[0]
            needed += header_style.row_gap + height_of(first_cells, first_style) + first_style.cell_padding
        # A page can hold no more than its usable height
        needed = min(needed, geometry.usable_height)
        cursor = layout.breaker.ensure_room(cursor, needed, on_new_page)
        fragment_top = cursor.y

        last = draw_header(cursor)
        placed = 0  # data rows on the current fragment
        for cells, style in body:
            height = height_of(cells, style)
            # An oversize row directly under a fresh header is drawn there
            if placed and layout.breaker.will_break(last.cursor, height + style.cell_padding):
                close_fragment(last.cursor.page, last.y_after)
                replay: list[RowResult] = []

                def redraw_header(top: Cursor) -> Cursor:
                    if on_new_page is not None:
                        top = on_new_page(top) or top
                    replay.append(draw_header(top))
                    return replay[-1].cursor

                layout.breaker.ensure_room(
                    last.cursor, height + style.cell_padding, redraw_header
                )
                last = replay[-1]
                fragment_top = last.row_top
                placed = 0

            last = self._row.render_row(
                cells, last.cursor, style=style, fixed_height=height, row_top=last.y_after
            )
            placed += 1
            result.rules.append((last.cursor.page, last.y_after))

        # Closing rule of the table
        layout.rule(last.cursor.at(last.y_after))
        close_fragment(last.cursor.page, last.y_after)
        result.cursor = last.cursor
        return result


# ---------------------------------------------------------------------------
# WideLeftTable
# ---------------------------------------------------------------------------

class WideLeftTable:
    """
    Two-column label/value listing (75% / 25%) with fixed row heights.

    Each cell is individually boxed; the header row is bold and repeated
    on every page the listing reaches.
    """

    def __init__(
        self,
        layout: LayoutService,
        *,
        font: str,
        bold_font: str,
        label_ratio: float = WIDE_LEFT_TABLE_CONFIG["label_ratio"],
        header_height: float = WIDE_LEFT_TABLE_CONFIG["header_height"],
        row_height: float = WIDE_LEFT_TABLE_CONFIG["row_height"],
        border_slack: float = WIDE_LEFT_TABLE_CONFIG["border_slack"],
        text_padding: float = WIDE_LEFT_TABLE_CONFIG["text_padding"],
        font_size: float = WIDE_LEFT_TABLE_CONFIG["font_size"],
    ):
        self._layout = layout
        self.font = font
        self.bold_font = bold_font
        self.label_ratio = label_ratio
        self.header_height = header_height
        self.row_height = row_height
        self.border_slack = border_slack
        self.text_padding = text_padding
        self.font_size = font_size

    @property
    def table_x(self) -> float:
        return self._layout.geometry.left

    @property
    def table_width(self) -> float:
        return self._layout.geometry.usable_width

    @property
    def label_width(self) -> float:
        return math.floor(self.table_width * self.label_ratio)

    @property
    def value_width(self) -> float:
        return self.table_width - self.label_width

    @property
    def column_boundary(self) -> float:
        return self.table_x + self.label_width

    def _fit(self, text: str, font: str, width: float) -> str:
        """Truncate *text* with an ellipsis so it stays on one line."""
        measure = self._layout.metrics.measure_width
        if measure(text, font, self.font_size) <= width:
            return text
        while text and measure(text + "…", font, self.font_size) > width:
            text = text[:-1]
        return text + "…" if text else ""

    def _draw_row(self, label: str, value: str, y: float, height: float, font: str, text_offset: float) -> None:
        surface = self._layout.surface
        inner_left = self.label_width - 2 * self.text_padding
        inner_right = self.value_width - 2 * self.text_padding
        surface.draw_rect(self.table_x, y, self.label_width, height)
        surface.draw_rect(self.column_boundary, y, self.value_width, height)
        surface.draw_text(
            self._fit(label, font, inner_left),
            self.table_x + self.text_padding, y + text_offset,
            font=font, font_size=self.font_size, width=inner_left, align="left",
        )
        surface.draw_text(
            self._fit(value, font, inner_right),
            self.column_boundary + self.text_padding, y + text_offset,
            font=font, font_size=self.font_size, width=inner_right, align="right",
        )

    def render(
        self,
        rows: Sequence[tuple[str, object]],
        left_header: str,
        right_header: str,
        cursor: Cursor,
        *,
        on_new_page: PageHook | None = None,
    ) -> Cursor:
        breaker = self._layout.breaker

        def draw_header(at: Cursor) -> Cursor:
            self._draw_row(left_header, right_header, at.y, self.header_height, self.bold_font, 5)
            return at.advance(self.header_height)

        def redraw_header(top: Cursor) -> Cursor:
            if on_new_page is not None:
                top = on_new_page(top) or top
            return draw_header(top)

        cursor = breaker.ensure_room(
            cursor,
            self.header_height + (self.row_height if rows else 0) + self.border_slack,
            on_new_page,
        )
        cursor = draw_header(cursor)

        for label, value in rows:
            cursor = breaker.ensure_room(cursor, self.row_height + self.border_slack, redraw_header)
            self._draw_row(str(label), str(value), cursor.y, self.row_height, self.font, 4)
            cursor = cursor.advance(self.row_height)

        self._layout.rule(cursor, x1=self.table_x, x2=self.table_x + self.table_width)
        return cursor.advance(4)
