"""
Tax Invoice Service – tax invoice PDF.

Layout, top to bottom: header, tax registration table, insured / policy
details in two columns, premium breakdown table with a bold total, the
amount payable sentence, bank details, IMPORTANT notice and the
"FOR TRA PURPOSES ONLY" panel.  A QR code labelled SCAN ME sits in the
bottom-left corner.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from insuredocs.config import DEFAULT_Z_NUMBER, FONT_SIZES, WEB_PLATFORM_URL
from insuredocs.models.schemas import TaxInvoiceData
from insuredocs.services.layout_service import Cursor, LayoutService
from insuredocs.services.pdf_service import PdfService, format_amount
from insuredocs.services.table_service import RowStyle, TableFlow, TableRow

logger = logging.getLogger(__name__)

# x offsets from the left margin: (label, colon, value)
_LEFT_COLUMN = (40, 110, 120)
_RIGHT_COLUMN = (290, 380, 390)
_BANK_COLUMN = (40, 140, 150)
_DETAIL_LINE_HEIGHT = 18

_TRA_PANEL_WIDTH = 200
_TRA_RULE_WIDTH = 190
_TRA_COLUMNS = (0, 75, 105)
_TRA_LINE_HEIGHT = 14


class TaxInvoiceService(PdfService):
    """Generates tax invoices."""

    def render(self, data: TaxInvoiceData, generated_at: datetime | None = None) -> bytes:
        generated_at = generated_at or datetime.now()
        layout = self.open_document()
        self.set_metadata(
            layout,
            title=f"Tax Invoice {data.invoice_number}",
            subject="Tax Invoice",
            keywords="tax invoice, insurance, premium, vat",
        )

        cursor = layout.start()
        cursor = self.draw_header(layout, cursor, "TAX INVOICE", data.invoice_number)
        cursor = self.draw_tax_information(layout, cursor.advance(5))
        cursor = self.draw_insurance_information(layout, cursor, data)
        cursor = self.draw_heading(layout, cursor.advance(10), "PREMIUM PAYMENT DETAILS", gap=10)
        cursor = self.draw_premium_breakdown(layout, cursor, data)
        cursor = self.draw_heading(layout, cursor.advance(5), "BANK DETAILS", gap=5)
        cursor = self.draw_bank_information(layout, cursor, data)
        cursor = self.draw_important_block(
            layout, cursor, data.important_note, heading_size=FONT_SIZES["heading"]
        )
        # The QR sits left of the right-aligned TRA panel
        self.draw_tra_panel(layout, cursor, data, generated_at)

        qr_value = data.qr_code_url or f"{WEB_PLATFORM_URL}/verify?invoice={data.invoice_number}"
        self.draw_qr(layout, cursor, qr_value, corner="left", label="SCAN ME")

        pdf = self.finish(layout, platform=data.platform, generated_at=generated_at)
        logger.info("Tax invoice %s rendered", data.invoice_number)
        return pdf

    def generate(self, data: TaxInvoiceData, output_path: Path) -> Path:
        return self.save(self.render(data), output_path)

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def draw_heading(self, layout: LayoutService, cursor: Cursor, text: str, *, gap: float) -> Cursor:
        return layout.flow_text(
            cursor, text, font=self.bold, font_size=FONT_SIZES["heading"],
            align="center", gap=gap,
        )

    def _key_value_line(
        self,
        layout: LayoutService,
        y: float,
        column: tuple[float, float, float],
        label: str,
        value: str,
        value_width: float,
    ) -> None:
        """Draw ``LABEL : value``; the value wraps within ``value_width``."""
        surface = layout.surface
        left = layout.geometry.left
        size = FONT_SIZES["normal"]
        label_x, colon_x, value_x = (left + offset for offset in column)
        surface.draw_text(label, label_x, y, font=self.bold, font_size=size)
        surface.draw_text(":", colon_x, y, font=self.bold, font_size=size)
        surface.draw_text(
            value or "N/A", value_x, y,
            font=self.regular, font_size=size, width=value_width,
        )

    def _key_value_height(self, layout: LayoutService, value: str, value_width: float) -> float:
        measured = layout.metrics.measure_height(
            value or "N/A", self.regular, FONT_SIZES["normal"], value_width
        )
        return max(_DETAIL_LINE_HEIGHT, measured + 4)

    def _flow_key_values(
        self,
        layout: LayoutService,
        cursor: Cursor,
        lines: list[list[tuple[tuple[float, float, float], str, str, float]]],
    ) -> Cursor:
        """
        Draw lines of ``(column, label, value, value_width)`` entries.

        Every line is measured first; the block is kept together when one
        page can hold it, otherwise it breaks between lines.
        """
        heights = [
            max(self._key_value_height(layout, value, width) for _, _, value, width in line)
            for line in lines
        ]
        cursor = layout.breaker.ensure_room(
            cursor, min(sum(heights), layout.geometry.usable_height)
        )
        for line, height in zip(lines, heights):
            cursor = layout.breaker.ensure_room(cursor, height)
            for column, label, value, width in line:
                self._key_value_line(layout, cursor.y, column, label, value, width)
            cursor = cursor.advance(height)
        return cursor

    def insurance_columns(self, data: TaxInvoiceData) -> tuple[list[tuple[str, str]], list[tuple[str, str]]]:
        left = [
            ("INSURED", data.customer_name),
            ("ADDRESS", data.customer_address),
            ("TIN NO", data.customer_tin),
            ("INTERMEDIARY", data.intermediary),
            ("CLASS", data.class_of_insurance),
        ]
        right = [
            ("POLICY NO", data.policy_number),
            ("COVER NOTE NO", data.cover_note_number),
            ("ISSUE DATE", data.issue_date),
            ("EFFECTIVE DATE", data.effective_date),
            ("EXPIRY DATE", data.expiry_date),
            ("PREMIUM (TZS)", format_amount(data.base_premium)),
        ]
        return left, right

    def draw_insurance_information(self, layout: LayoutService, cursor: Cursor, data: TaxInvoiceData) -> Cursor:
        """Two borderless key/value columns drawn side by side."""
        left_rows, right_rows = self.insurance_columns(data)
        left_width = _RIGHT_COLUMN[0] - _LEFT_COLUMN[2] - 10
        right_width = layout.geometry.usable_width - _RIGHT_COLUMN[2] - 10

        lines = []
        for index in range(max(len(left_rows), len(right_rows))):
            line = []
            if index < len(left_rows):
                line.append((_LEFT_COLUMN, *left_rows[index], left_width))
            if index < len(right_rows):
                line.append((_RIGHT_COLUMN, *right_rows[index], right_width))
            lines.append(line)
        return self._flow_key_values(layout, cursor.advance(15), lines)

    def premium_rows(self, data: TaxInvoiceData, total_style: RowStyle) -> list:
        vat_percent = round(data.vat_rate * 100)
        return [
            ["Premium for", data.class_of_insurance],
            ["Premium", f"{format_amount(data.base_premium)} TZS"],
            [f"VAT ({vat_percent}%)", f"{format_amount(data.vat_amount)} TZS"],
            TableRow(["TOTAL PREMIUM", f"{format_amount(data.total_premium)} TZS"], total_style),
        ]

    def draw_premium_breakdown(self, layout: LayoutService, cursor: Cursor, data: TaxInvoiceData) -> Cursor:
        size = 8
        bold_style = RowStyle(font=self.bold, font_size=size)
        table = TableFlow(layout).render_table(
            ["DESCRIPTION OF COVER", "PREMIUM"],
            self.premium_rows(data, bold_style),
            cursor,
            header_style=bold_style,
            body_style=RowStyle(font=self.regular, font_size=size),
        )

        words = data.amount_in_words or f"TZS {format_amount(data.total_premium)}"
        x = layout.geometry.left + 40
        return layout.flow_text(
            table.cursor,
            f"Premium amount payable is {words}.",
            font=self.bold, font_size=size,
            x=x, width=layout.geometry.usable_width - 80, gap=5,
        )

    def draw_bank_information(self, layout: LayoutService, cursor: Cursor, data: TaxInvoiceData) -> Cursor:
        bank = data.bank_information
        rows = [
            ("BANK NAME", bank.bank_name),
            ("SWIFT CODE", bank.swift_code),
            ("ACCOUNT NUMBER", bank.account_number),
        ]
        value_width = layout.geometry.usable_width - _BANK_COLUMN[2] - 10
        lines = [[(_BANK_COLUMN, label, value, value_width)] for label, value in rows]
        return self._flow_key_values(layout, cursor, lines).advance(10)

    def tra_rows(self, data: TaxInvoiceData, generated_at: datetime) -> list[tuple[str, str, str]]:
        return [
            ("Premium", "TZS", format_amount(data.base_premium)),
            ("VAT", "TZS", format_amount(data.vat_amount)),
            ("Total", "TZS", format_amount(data.total_premium)),
            ("Invoice No", ":", data.invoice_number),
            ("Z Number", ":", data.z_number or DEFAULT_Z_NUMBER),
            ("Invoice Date", ":", generated_at.strftime("%d %b %Y").upper()),
            ("Invoice Time", ":", generated_at.strftime("%H:%M:%S")),
        ]

    def draw_tra_panel(
        self,
        layout: LayoutService,
        cursor: Cursor,
        data: TaxInvoiceData,
        generated_at: datetime,
    ) -> Cursor:
        """Right-aligned TRA summary; a rule under the heading and under Total."""
        surface = layout.surface
        rows = self.tra_rows(data, generated_at)
        x = layout.geometry.right - _TRA_PANEL_WIDTH
        needed = 18 + 5 + len(rows) * _TRA_LINE_HEIGHT + 5

        cursor = layout.breaker.ensure_room(cursor, needed)
        y = cursor.y
        surface.draw_text(
            "FOR TRA PURPOSES ONLY", x, y, font=self.bold, font_size=FONT_SIZES["medium"]
        )
        y += 18
        surface.draw_line(x, y, x + _TRA_RULE_WIDTH, y)
        y += 5

        for row in rows:
            for offset, text in zip(_TRA_COLUMNS, row):
                surface.draw_text(
                    text, x + offset, y, font=self.regular, font_size=FONT_SIZES["normal"]
                )
            y += _TRA_LINE_HEIGHT
            if row[0] == "Total":
                surface.draw_line(x, y, x + _TRA_RULE_WIDTH, y)
                y += 5

        return cursor.at(y + 10)
