"""
PDF Service – shared chrome for generated business documents.

Opens a fresh document (geometry, ReportLab surface, fonts, layout engine)
and draws the pieces receipts and tax invoices have in common:

  - company header with logo, contact lines and the document title
  - tax registration table (labels row + values row, one shared height)
  - IMPORTANT notice block
  - closing logo in the space left under the content
  - verification QR code
  - page border and footer on every page ("Page i of N")
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Literal

from insuredocs.config import (
    CLOSING_LOGO_LIMIT,
    COMPANY_ADDRESS,
    COMPANY_BOX,
    COMPANY_EMAIL,
    COMPANY_NAME,
    COMPANY_PHONE,
    DOCUMENT_MARGINS,
    FONT_BOLD_PATH,
    FONT_REGULAR_PATH,
    FONT_SIZES,
    LOGO_LEFT_OFFSET,
    LOGO_PATH,
    LOGO_SIZE,
    LOGO_TOP_OFFSET,
    PDF_CREATOR,
    POWERED_BY,
    QR_SIZE,
    TAX_INFORMATION,
)
from insuredocs.repository.file_repository import FileRepository
from insuredocs.services.layout_service import Cursor, LayoutService, PageGeometry
from insuredocs.services.render_surface import PageDecorator, ReportLabSurface, SetupError
from insuredocs.services.table_service import FixedHeightRow, RowStyle

logger = logging.getLogger(__name__)

# Numbered notice items ("1. ... 2. ...") are laid out one per paragraph
_NUMBERED_ITEM = re.compile(r"(?=\d+\.)")


class PdfService:
    """Base class of the document generators."""

    def __init__(
        self,
        repository: FileRepository | None = None,
        *,
        logo_path: str | Path | None = LOGO_PATH,
        regular_font_path: str = FONT_REGULAR_PATH,
        bold_font_path: str = FONT_BOLD_PATH,
    ):
        self._repository = repository
        self._logo_path = Path(logo_path) if logo_path else None
        self._font_paths = (regular_font_path, bold_font_path)
        if regular_font_path or bold_font_path:
            self.regular, self.bold = "Normal", "Title"
        else:
            self.regular, self.bold = "Helvetica", "Helvetica-Bold"

    # ------------------------------------------------------------------
    # Document lifecycle
    # ------------------------------------------------------------------

    def open_document(self, geometry: PageGeometry | None = None) -> LayoutService:
        """Fresh surface + layout engine for one document."""
        geometry = geometry or PageGeometry.a4(**DOCUMENT_MARGINS)
        surface = ReportLabSurface(geometry)
        regular_path, bold_path = self._font_paths
        # A configured font that cannot be loaded is fatal
        if regular_path or bold_path:
            surface.register_font(self.regular, regular_path or bold_path)
            surface.register_font(self.bold, bold_path or regular_path)
        return LayoutService(surface)

    def set_metadata(self, layout: LayoutService, *, title: str, subject: str, keywords: str) -> None:
        layout.surface.set_metadata(
            title=title,
            author=COMPANY_NAME,
            subject=subject,
            keywords=keywords,
            creator=PDF_CREATOR,
        )

    def finish(
        self,
        layout: LayoutService,
        *,
        platform: str,
        generated_at: datetime | None = None,
    ) -> bytes:
        """Draw the page chrome on every page and return the PDF bytes."""
        decorate = self.page_chrome(layout, platform, generated_at or datetime.now())
        data = layout.surface.finalize(decorate)
        logger.info(
            "Rendered %d page(s), %d bytes", layout.surface.page_number, len(data)
        )
        return data

    def save(self, data: bytes, output_path: Path) -> Path:
        """Write rendered bytes through the repository (atomic)."""
        output_path = Path(output_path)
        repository = self._repository or FileRepository(output_path.parent)
        path = repository.save_bytes(data, output_path.parent, output_path.name)
        logger.info("PDF written to %s", path)
        return path

    # ------------------------------------------------------------------
    # Header
    # ------------------------------------------------------------------

    def draw_logo(self, layout: LayoutService, x: float, y: float) -> float:
        """Draw the company logo; a missing or unreadable file is skipped."""
        if self._logo_path is None:
            return 0.0
        if not self._logo_path.is_file():
            logger.warning("Logo not found at %s, skipping", self._logo_path)
            return 0.0
        try:
            return layout.surface.draw_image(self._logo_path, x, y, LOGO_SIZE)
        except SetupError as exc:
            logger.warning("Logo skipped: %s", exc)
            return 0.0

    def draw_header(self, layout: LayoutService, cursor: Cursor, title: str, number: str = "") -> Cursor:
        geometry = layout.geometry
        surface = layout.surface
        top = cursor.y + 5
        self.draw_logo(layout, geometry.left + LOGO_LEFT_OFFSET, top + LOGO_TOP_OFFSET)

        y = top + 10
        for line in (COMPANY_ADDRESS, COMPANY_BOX, f"{COMPANY_EMAIL} / {COMPANY_PHONE}"):
            surface.draw_text(
                line, geometry.left, y,
                font=self.regular, font_size=FONT_SIZES["small"],
                width=geometry.usable_width - 10, align="right",
            )
            y += 15

        y += 10
        layout.rule(cursor.at(y))
        cursor = layout.flow_text(
            cursor.at(y + 18),
            f"{title} {number or ''}".strip(),
            font=self.bold,
            font_size=FONT_SIZES["title"],
            align="center",
        )
        return cursor.advance(5)

    # ------------------------------------------------------------------
    # Tax registration table
    # ------------------------------------------------------------------

    def draw_tax_information(self, layout: LayoutService, cursor: Cursor) -> Cursor:
        """Six-column TIN / VRN / ... table; labels and values share one height."""
        rows = FixedHeightRow(layout)
        label_style = RowStyle(font=self.bold, font_size=FONT_SIZES["small"])
        value_style = RowStyle(font=self.regular, font_size=FONT_SIZES["small"])
        labels = rows.cells(list(TAX_INFORMATION), label_style)
        values = rows.cells(list(TAX_INFORMATION.values()), value_style)
        height = rows.uniform_height([(labels, label_style), (values, value_style)])

        needed = (
            label_style.top_padding
            + 2 * (height + label_style.cell_padding)
            + label_style.row_gap
        )
        cursor = layout.breaker.ensure_room(cursor, needed)

        layout.rule(cursor)
        first = rows.render_row(
            labels, cursor.advance(label_style.top_padding),
            style=label_style, fixed_height=height, row_top=cursor.y,
        )
        second = rows.render_row(
            values, first.cursor,
            style=value_style, fixed_height=height, row_top=first.y_after,
        )
        return second.cursor

    # ------------------------------------------------------------------
    # Notices
    # ------------------------------------------------------------------

    def draw_important_block(
        self,
        layout: LayoutService,
        cursor: Cursor,
        text: str,
        *,
        heading_size: float = FONT_SIZES["medium"],
    ) -> Cursor:
        """Underlined IMPORTANT heading, then each numbered item centred."""
        if not text or not text.strip():
            return cursor
        cursor = layout.flow_text(
            cursor.advance(5), "IMPORTANT",
            font=self.bold, font_size=heading_size,
            align="center", underline=True, gap=10,
        )
        for item in _NUMBERED_ITEM.split(text):
            item = item.strip()
            if item:
                cursor = layout.flow_text(
                    cursor, item,
                    font=self.regular, font_size=11, align="center", gap=8,
                )
        cursor = cursor.advance(10)
        layout.rule(cursor)
        return cursor.advance(20)

    def draw_closing_logo(self, layout: LayoutService, cursor: Cursor) -> None:
        """Centre the logo in the space left under the content, if any."""
        if cursor.y > CLOSING_LOGO_LIMIT:
            return
        geometry = layout.geometry
        y = cursor.y + 5
        remaining = geometry.height - 60 - y
        y += remaining / 2 - 35
        x = (geometry.width - LOGO_SIZE) / 2 + LOGO_LEFT_OFFSET
        self.draw_logo(layout, x, y + LOGO_TOP_OFFSET)

    def draw_qr(
        self,
        layout: LayoutService,
        cursor: Cursor,
        value: str,
        *,
        corner: Literal["left", "right"] = "right",
        label: str | None = None,
    ) -> Cursor:
        """
        QR code in a bottom corner of the last page.

        *cursor* is where the content above that corner ends; if it reaches
        the code (and its label) the code goes on a new page instead.
        """
        geometry = layout.geometry
        if corner == "left":
            x = geometry.left + 4
        else:
            x = geometry.right - QR_SIZE - 4
        y = geometry.bottom - QR_SIZE - 4
        top = y - 15 if label else y
        if cursor.page == layout.surface.page_number and cursor.y > top:
            cursor = layout.new_page(cursor)
        layout.surface.draw_qr(value, x, y, QR_SIZE)
        if label:
            layout.surface.draw_text(
                label, x, y - 15,
                font=self.bold, font_size=FONT_SIZES["normal"],
                width=QR_SIZE, align="center",
            )
        return cursor

    # ------------------------------------------------------------------
    # Page chrome
    # ------------------------------------------------------------------

    def page_chrome(
        self, layout: LayoutService, platform: str, generated_at: datetime
    ) -> PageDecorator:
        """Border and footer, drawn on each page once the page count is known."""
        geometry = layout.geometry
        surface = layout.surface
        stamp = f"Generated at: {generated_at.strftime('%d/%m/%Y')}, via: {platform}"
        footer_y = geometry.height - 37

        def decorate(page: int, total: int) -> None:
            surface.draw_rect(
                geometry.left, geometry.top, geometry.usable_width, geometry.usable_height
            )
            surface.draw_text(
                f"Page {page} of {total}", geometry.right - 100, footer_y,
                font=self.bold, font_size=FONT_SIZES["small"], width=100, align="right",
            )
            surface.draw_text(
                POWERED_BY, geometry.left, footer_y,
                font=self.bold, font_size=FONT_SIZES["small"],
            )
            surface.draw_text(
                stamp, geometry.left, footer_y + 13,
                font=self.regular, font_size=FONT_SIZES["small"],
            )

        return decorate


def format_amount(amount: float) -> str:
    """``1234.5`` → ``"1,234.50"``."""
    return f"{amount:,.2f}"
