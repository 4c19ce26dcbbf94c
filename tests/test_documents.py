"""
Tests for the document generators — receipts, tax invoices and the Full
Business Report, both as real PDFs and through a recording surface.
"""

import logging
from datetime import datetime, timezone

import pytest

from insuredocs.config import DOCUMENT_MARGINS, REPORT_MARGINS
from insuredocs.models.schemas import (
    ClaimsMetrics,
    FullReport,
    InsuranceMetrics,
    QuotationMetrics,
    ReceiptData,
    TaxInvoiceData,
)
from insuredocs.services.layout_service import Cursor, PageGeometry
from insuredocs.services.pdf_service import format_amount
from insuredocs.services.receipt_service import ReceiptService
from insuredocs.services.render_surface import SetupError
from insuredocs.services.report_pdf_service import MAX_SECTION_ROWS, ReportPdfService
from insuredocs.services.tax_invoice_service import TaxInvoiceService

GENERATED_AT = datetime(2025, 2, 14, 10, 30, 5)


@pytest.fixture
def receipt():
    return ReceiptData(
        receipt_number="RCT-2025-0042",
        risk_note_number="RN-7781",
        sticker_number="ST-5521",
        customer_name="Asha Mwinyi",
        amount=118000,
        amount_in_words="One Hundred Eighteen Thousand Shillings Only",
        payment_method="M-Pesa",
        payment_reference="MP250214XYZ",
        policy_number="POL-2025-0042",
        payment_date="14/02/2025",
        important_note="1. Keep this receipt safe. 2. Sticker must be displayed on the windscreen.",
    )


@pytest.fixture
def invoice():
    return TaxInvoiceData(
        invoice_number="INV-2025-0042",
        customer_name="Asha Mwinyi",
        customer_address="Plot 12, Masaki",
        class_of_insurance="Motor Private",
        policy_number="POL-2025-0042",
        base_premium=100000,
        important_note="1. Premium is payable before cover starts.",
        qr_code_url="https://example.com/invoices/INV-2025-0042",
    )


@pytest.fixture
def report():
    return FullReport(
        start_date=datetime(2025, 1, 1, tzinfo=timezone.utc),
        end_date=datetime(2025, 1, 31, tzinfo=timezone.utc),
        insurance=InsuranceMetrics(
            total_policies=3,
            total_premium=150000.5,
            insurance_type_counts={"Motor Private": 2, "Motor Commercial": 1},
            vehicles={f"Toyota IST ({2000 + i}) [T{i:03d}ABC]": 1 for i in range(30)},
            hour_counts={"08:00": 2, "14:00": 1},
        ),
        quotation=QuotationMetrics(total_quotations=3, total_value=200000, average_value=66666.67),
        claims=ClaimsMetrics(total_claims=2, status_counts={"approved": 1, "pending": 1}),
    )


@pytest.fixture
def recording(monkeypatch, layout_factory):
    """Route a service's documents to a recording surface; returns the layouts."""
    layouts = []

    def attach(service):
        def open_document(geometry=None):
            layouts.append(layout_factory(geometry or PageGeometry.a4(**DOCUMENT_MARGINS)))
            return layouts[-1]
        monkeypatch.setattr(service, "open_document", open_document)
        return layouts

    return attach


class TestFormatAmount:
    def test_thousands_and_decimals(self):
        assert format_amount(1234.5) == "1,234.50"
        assert format_amount(118000) == "118,000.00"


class TestReceipt:
    def test_renders_pdf(self, receipt, tmp_path):
        service = ReceiptService(logo_path=tmp_path / "missing.png")
        assert service.render(receipt, GENERATED_AT).startswith(b"%PDF")

    def test_generate_writes_file(self, receipt, tmp_path):
        service = ReceiptService(logo_path=None)
        path = service.generate(receipt, tmp_path / "Receipt.pdf")
        assert path.read_bytes().startswith(b"%PDF")

    def test_content(self, receipt, recording):
        service = ReceiptService(logo_path=None)
        layouts = recording(service)
        service.render(receipt, GENERATED_AT)
        surface = layouts[0].surface
        texts = surface.texts()

        assert "RECEIPT RCT-2025-0042" in texts
        assert "TIN No" in texts and "VFD SERIAL" in texts
        assert "DESCRIPTION" in texts and "DETAILS" in texts
        assert "118,000.00" in texts
        assert "One Hundred Eighteen Thousand Shillings Only" in texts
        assert "IMPORTANT" in texts
        assert "2. Sticker must be displayed on the windscreen." in texts
        assert "Page 1 of 1" in texts
        assert "Generated at: 14/02/2025, via: Web" in texts

    def test_qr_points_at_verification_page(self, receipt, recording):
        service = ReceiptService(logo_path=None)
        layouts = recording(service)
        service.render(receipt, GENERATED_AT)
        (qr,) = layouts[0].surface.of_kind("qr")
        assert qr["value"] == ReceiptService.verification_url("RCT-2025-0042")
        assert qr["x"] > layouts[0].geometry.width / 2

    def test_qr_sits_above_bottom_margin(self, layout):
        service = ReceiptService(logo_path=None)
        service.draw_qr(layout, Cursor(y=500), "https://example.com/verify?receipt=1")
        (qr,) = layout.surface.of_kind("qr")
        assert qr["page"] == 1
        assert qr["y"] + qr["size"] + 4 == layout.geometry.bottom

    def test_qr_moves_to_new_page_when_content_reaches_it(self, layout):
        service = ReceiptService(logo_path=None)
        cursor = service.draw_qr(layout, Cursor(y=760), "https://example.com/verify?receipt=1")
        (qr,) = layout.surface.of_kind("qr")
        assert cursor.page == 2
        assert qr["page"] == 2

    def test_amount_in_words_fallback(self, receipt):
        data = receipt.model_copy(update={"amount_in_words": None})
        rows = dict(ReceiptService(logo_path=None).detail_rows(data))
        assert rows["Amount in Words"] == "118,000.00 TZS"

    def test_missing_logo_is_skipped_with_warning(self, receipt, recording, tmp_path, caplog):
        service = ReceiptService(logo_path=tmp_path / "missing.png")
        layouts = recording(service)
        with caplog.at_level(logging.WARNING):
            service.render(receipt, GENERATED_AT)
        assert layouts[0].surface.of_kind("image") == []
        assert "Logo not found" in caplog.text

    def test_logo_drawn_in_header_and_closing_space(self, receipt, recording, tmp_path):
        logo = tmp_path / "Logo.png"
        logo.write_bytes(b"not checked by the recording surface")
        service = ReceiptService(logo_path=logo)
        layouts = recording(service)
        service.render(receipt, GENERATED_AT)
        assert len(layouts[0].surface.of_kind("image")) == 2

    def test_no_important_block_without_note(self, receipt, recording):
        service = ReceiptService(logo_path=None)
        layouts = recording(service)
        service.render(receipt.model_copy(update={"important_note": ""}), GENERATED_AT)
        assert "IMPORTANT" not in layouts[0].surface.texts()

    def test_page_border(self, receipt, recording):
        service = ReceiptService(logo_path=None)
        layouts = recording(service)
        service.render(receipt, GENERATED_AT)
        surface = layouts[0].surface
        border = surface.of_kind("rect")[-1]
        geometry = layouts[0].geometry
        assert (border["x"], border["y"]) == (geometry.left, geometry.top)
        assert border["width"] == geometry.usable_width


class TestConfiguredFonts:
    def test_missing_font_is_fatal(self, receipt, tmp_path):
        service = ReceiptService(
            logo_path=None, regular_font_path=str(tmp_path / "missing.ttf")
        )
        with pytest.raises(SetupError):
            service.render(receipt, GENERATED_AT)


class TestTaxInvoice:
    def test_renders_pdf(self, invoice, tmp_path):
        service = TaxInvoiceService(logo_path=tmp_path / "missing.png")
        assert service.render(invoice, GENERATED_AT).startswith(b"%PDF")

    def test_totals(self, invoice):
        assert invoice.vat_amount == 18000
        assert invoice.total_premium == 118000

    def test_content(self, invoice, recording):
        service = TaxInvoiceService(logo_path=None)
        layouts = recording(service)
        service.render(invoice, GENERATED_AT)
        texts = layouts[0].surface.texts()

        assert "TAX INVOICE INV-2025-0042" in texts
        assert "PREMIUM PAYMENT DETAILS" in texts
        assert "VAT (18%)" in texts
        assert "118,000.00 TZS" in texts
        assert "Premium amount payable is TZS 118,000.00." in texts
        assert "BANK DETAILS" in texts
        assert "FOR TRA PURPOSES ONLY" in texts
        assert "14 FEB 2025" in texts
        assert "10:30:05" in texts
        # Empty detail values print as N/A
        assert "N/A" in texts

    def test_total_row_is_bold(self, invoice, recording):
        service = TaxInvoiceService(logo_path=None)
        layouts = recording(service)
        service.render(invoice, GENERATED_AT)
        (total,) = [op for op in layouts[0].surface.of_kind("text") if op["text"] == "TOTAL PREMIUM"]
        assert total["font"] == service.bold

    def test_long_address_stays_above_bottom_margin(self, invoice, layout):
        data = invoice.model_copy(update={"customer_address": "Plot 12 Masaki " * 30})
        TaxInvoiceService(logo_path=None).draw_insurance_information(layout, Cursor(y=650), data)
        surface = layout.surface

        assert len(surface.of_kind("new_page")) == 1
        assert "ADDRESS" in surface.texts(page=2)
        assert all(
            op["y"] + op["height"] <= layout.geometry.bottom for op in surface.of_kind("text")
        )

    def test_bank_details_kept_together(self, invoice, layout):
        service = TaxInvoiceService(logo_path=None)
        # 22pt left above the bottom margin at y=802
        cursor = service.draw_bank_information(layout, Cursor(y=780), invoice)
        surface = layout.surface

        assert len(surface.of_kind("new_page")) == 1
        assert surface.texts(page=2)[:3] == ["BANK NAME", ":", invoice.bank_information.bank_name]
        assert cursor.y == 20 + 3 * 18 + 10

    def test_scan_me_qr(self, invoice, recording):
        service = TaxInvoiceService(logo_path=None)
        layouts = recording(service)
        service.render(invoice, GENERATED_AT)
        surface = layouts[0].surface
        (qr,) = surface.of_kind("qr")
        assert qr["value"] == "https://example.com/invoices/INV-2025-0042"
        assert qr["x"] < layouts[0].geometry.width / 2
        assert "SCAN ME" in surface.texts()


class TestBusinessReport:
    def test_renders_pdf(self, report, tmp_path):
        service = ReportPdfService(logo_path=tmp_path / "missing.png")
        assert service.render(report, GENERATED_AT).startswith(b"%PDF")

    def test_sections_and_summary_page(self, report, recording):
        service = ReportPdfService(logo_path=None)
        layouts = recording(service)
        service.render(report, GENERATED_AT)
        layout = layouts[0]
        surface = layout.surface

        assert layout.geometry == PageGeometry.a4(**REPORT_MARGINS)
        texts = surface.texts()
        for title in ("Full Business Report", "Insurance Policy Metrics",
                      "Quotation Metrics", "Claims Metrics", "Summary"):
            assert title in texts
        assert "Period: 01/01/2025 - 31/01/2025" in texts

        last_page = surface.page_number
        assert "Summary" in surface.texts(page=last_page)
        assert f"Page {last_page} of {last_page}" in texts
        assert "Generated: 14/02/2025, 10:30:05" in texts

    def test_long_breakdown_truncated_in_section(self, report, recording):
        service = ReportPdfService(logo_path=None)
        layouts = recording(service)
        service.render(report, GENERATED_AT)
        texts = layouts[0].surface.texts()
        hidden = 30 - MAX_SECTION_ROWS
        assert f"...and {hidden} more" in texts
        assert sum(t.startswith("Toyota IST") for t in texts) == MAX_SECTION_ROWS

    def test_missing_figures_print_not_available(self, report, recording):
        service = ReportPdfService(logo_path=None)
        layouts = recording(service)
        service.render(report, GENERATED_AT)
        texts = layouts[0].surface.texts()
        assert "Average Time to Conversion (days): Not Available" in texts
        assert "Not Available" in texts
