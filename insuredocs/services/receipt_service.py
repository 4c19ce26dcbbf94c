"""
Receipt Service – payment receipt PDF.

Layout, top to bottom: header, tax registration table, RISK NOTE / STICKER
number boxes, receipt details table, IMPORTANT notice, closing logo and a
verification QR code in the bottom-right corner.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from insuredocs.config import FONT_SIZES, STICKER_BOX_CONFIG, WEB_PLATFORM_URL
from insuredocs.models.schemas import ReceiptData
from insuredocs.services.layout_service import Cursor, LayoutService
from insuredocs.services.pdf_service import PdfService, format_amount
from insuredocs.services.table_service import RowStyle, TableFlow

logger = logging.getLogger(__name__)


class ReceiptService(PdfService):
    """Generates payment receipts."""

    def render(self, data: ReceiptData, generated_at: datetime | None = None) -> bytes:
        layout = self.open_document()
        self.set_metadata(
            layout,
            title=f"Receipt {data.receipt_number}",
            subject="Payment Receipt",
            keywords="receipt, payment, insurance",
        )

        cursor = layout.start()
        cursor = self.draw_header(layout, cursor, "RECEIPT", data.receipt_number)
        cursor = self.draw_tax_information(layout, cursor.advance(5))
        cursor = self.draw_number_boxes(layout, cursor.advance(5), data)
        cursor = self.draw_details(layout, cursor, data)
        cursor = self.draw_important_block(layout, cursor.advance(10), data.important_note)

        self.draw_closing_logo(layout, cursor)
        self.draw_qr(layout, cursor, self.verification_url(data.receipt_number), corner="right")

        pdf = self.finish(layout, platform=data.platform, generated_at=generated_at)
        logger.info("Receipt %s rendered", data.receipt_number)
        return pdf

    def generate(self, data: ReceiptData, output_path: Path) -> Path:
        return self.save(self.render(data), output_path)

    @staticmethod
    def verification_url(receipt_number: str) -> str:
        return f"{WEB_PLATFORM_URL}/verify?receipt={receipt_number}"

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def draw_number_boxes(self, layout: LayoutService, cursor: Cursor, data: ReceiptData) -> Cursor:
        """Label + bordered box for the risk note and sticker numbers, side by side."""
        cfg = STICKER_BOX_CONFIG
        surface = layout.surface
        metrics = layout.metrics
        box_w, box_h = cfg["box_width"], cfg["box_height"]
        label_size, value_size = FONT_SIZES["small"], FONT_SIZES["normal"]

        cursor = layout.breaker.ensure_room(cursor, box_h + 10)
        y = cursor.y
        x = layout.geometry.left + cfg["left_offset"]

        for label, value in (("RISK NOTE NO:", data.risk_note_number), ("STICKER NO:", data.sticker_number)):
            label_h = metrics.measure_height(label, self.bold, label_size, box_w)
            surface.draw_text(label, x, y + (box_h - label_h) / 2, font=self.bold, font_size=label_size)
            x += metrics.measure_width(label, self.bold, label_size) + cfg["label_spacing"]

            surface.draw_rect(x, y, box_w, box_h)
            value_h = metrics.measure_height(value, self.regular, value_size, box_w)
            surface.draw_text(
                value, x, y + max(0.0, (box_h - value_h) / 2),
                font=self.regular, font_size=value_size, width=box_w, align="center",
            )
            x += box_w + cfg["spacing"]

        return cursor.advance(box_h + 15)

    def detail_rows(self, data: ReceiptData) -> list[list[str]]:
        words = data.amount_in_words or f"{format_amount(data.amount)} TZS"
        return [
            ["Received From", data.customer_name],
            ["Amount (TZS)", format_amount(data.amount)],
            ["Amount in Words", words],
            ["Being Payment For", data.payment_for],
            ["Payment Method", data.payment_method],
            ["Payment Reference", data.payment_reference],
            ["Policy Number", data.policy_number],
            ["Payment Date", data.payment_date],
        ]

    def draw_details(self, layout: LayoutService, cursor: Cursor, data: ReceiptData) -> Cursor:
        table = TableFlow(layout).render_table(
            ["DESCRIPTION", "DETAILS"],
            self.detail_rows(data),
            cursor,
            header_style=RowStyle(font=self.bold, font_size=FONT_SIZES["normal"]),
            body_style=RowStyle(font=self.regular, font_size=FONT_SIZES["normal"]),
        )
        return table.cursor
