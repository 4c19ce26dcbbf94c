"""
Report PDF Service – the Full Business Report.

Renders a ``FullReport`` as a paginated document: company lines, title and
period, then one section each for insurance policies, quotations and
claims (headline figures followed by one label/count listing per
breakdown), and a closing Summary page with the scalar metrics, peak
hours / days and daily / monthly trends.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Mapping, Optional, Sequence

from insuredocs.config import (
    COMPANY_ADDRESS,
    COMPANY_BOX,
    COMPANY_EMAIL,
    COMPANY_NAME,
    COMPANY_PHONE,
    REPORT_MARGINS,
    WIDE_LEFT_TABLE_CONFIG,
)
from insuredocs.models.schemas import FullReport
from insuredocs.services.layout_service import Cursor, LayoutService, PageGeometry
from insuredocs.services.pdf_service import PdfService
from insuredocs.services.render_surface import PageDecorator
from insuredocs.services.table_service import WideLeftTable

logger = logging.getLogger(__name__)

ACCENT = "#003366"
FOOTER_GREY = "#808080"

# Longest breakdown listed in a section; the Summary page lists every entry
MAX_SECTION_ROWS = 20


def _number(value: float) -> str:
    return f"{value:,.0f}" if float(value).is_integer() else f"{value:,.2f}"


def _days(value: Optional[float]) -> str:
    return "Not Available" if value is None else f"{value:.2f}"


class ReportPdfService(PdfService):
    """Generates the Full Business Report PDF."""

    def render(self, report: FullReport, generated_at: datetime | None = None) -> bytes:
        generated_at = generated_at or datetime.now()
        layout = self.open_document(PageGeometry.a4(**REPORT_MARGINS))
        self.set_metadata(
            layout,
            title="Full Business Report",
            subject="Business Report",
            keywords="report, insurance, quotations, claims",
        )

        cursor = self.draw_cover(layout, layout.start(), report)
        cursor = self.draw_insurance_section(layout, cursor, report)
        cursor = self.draw_quotation_section(layout, cursor, report)
        cursor = self.draw_claims_section(layout, cursor, report)
        self.draw_summary_page(layout, layout.new_page(cursor), report)

        decorate = self.report_footer(layout, generated_at)
        pdf = layout.surface.finalize(decorate)
        logger.info(
            "Business report rendered: %d page(s), %d bytes",
            layout.surface.page_number, len(pdf),
        )
        return pdf

    def generate(self, report: FullReport, output_path: Path) -> Path:
        return self.save(self.render(report), output_path)

    # ------------------------------------------------------------------
    # Building blocks
    # ------------------------------------------------------------------

    def _table(self, layout: LayoutService) -> WideLeftTable:
        return WideLeftTable(layout, font=self.regular, bold_font=self.bold)

    def _keep_with_table(self) -> float:
        cfg = WIDE_LEFT_TABLE_CONFIG
        return cfg["header_height"] + cfg["row_height"] + cfg["border_slack"]

    def draw_title(self, layout: LayoutService, cursor: Cursor, title: str) -> Cursor:
        return layout.section_title(
            cursor, title, font=self.bold, color=ACCENT, keep_with=self._keep_with_table()
        )

    def draw_figures(self, layout: LayoutService, cursor: Cursor, lines: Sequence[str]) -> Cursor:
        for line in lines:
            cursor = layout.flow_text(cursor, line, font=self.regular, font_size=11, gap=2)
        return cursor.advance(10)

    def draw_counts(
        self,
        layout: LayoutService,
        cursor: Cursor,
        counts: Mapping[str, int],
        label: str,
        *,
        limit: int | None = MAX_SECTION_ROWS,
    ) -> Cursor:
        """One label / Count listing; long breakdowns are cut to ``limit`` rows."""
        rows = list(counts.items())
        if limit is not None and len(rows) > limit:
            hidden = len(rows) - limit
            rows = rows[:limit] + [(f"...and {hidden} more", "")]
        cursor = self._table(layout).render(rows, label, "Count", cursor)
        return cursor.advance(12)

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def draw_cover(self, layout: LayoutService, cursor: Cursor, report: FullReport) -> Cursor:
        cursor = layout.flow_text(cursor.advance(10), COMPANY_NAME, font=self.bold, font_size=11, gap=4)
        for line in (COMPANY_ADDRESS, COMPANY_BOX, f"{COMPANY_EMAIL} | {COMPANY_PHONE}"):
            cursor = layout.flow_text(cursor, line, font=self.regular, font_size=9, gap=4)

        cursor = layout.flow_text(
            cursor.advance(24), "Full Business Report",
            font=self.bold, font_size=17, align="center", color=ACCENT, gap=6,
        )
        period = (
            f"Period: {report.start_date.strftime('%d/%m/%Y')} - "
            f"{report.end_date.strftime('%d/%m/%Y')}"
        )
        cursor = layout.flow_text(
            cursor, period, font=self.regular, font_size=10, align="center"
        )
        return cursor.advance(20)

    def draw_insurance_section(self, layout: LayoutService, cursor: Cursor, report: FullReport) -> Cursor:
        m = report.insurance
        cursor = self.draw_title(layout, cursor, "Insurance Policy Metrics")
        cursor = self.draw_figures(layout, cursor, [
            f"Total Policies Issued: {m.total_policies}",
            f"Total Premiums Collected: {_number(m.total_premium)}",
            f"Total VAT Collected: {_number(m.total_vat)}",
            f"Comprehensive / Third-Party: {m.comprehensive_count} / {m.third_party_count}",
        ])
        for counts, label in (
            (m.insurance_type_counts, "Type"),
            (m.policy_status_counts, "Status"),
            (m.platform_counts, "Platform"),
            (m.payment_method_counts, "Payment Method"),
            (m.customer_type_counts, "Customer Type"),
            (m.insurer_name_counts, "Insurer Name"),
            (m.vehicles, "Vehicle"),
        ):
            cursor = self.draw_counts(layout, cursor, counts, label)
        return cursor

    def draw_quotation_section(self, layout: LayoutService, cursor: Cursor, report: FullReport) -> Cursor:
        m = report.quotation
        cursor = self.draw_title(layout, cursor, "Quotation Metrics")
        cursor = self.draw_figures(layout, cursor, [
            f"Total Quotations Generated: {m.total_quotations}",
            f"Total Quotation Amount: {_number(m.total_value)}",
            f"Average Quotation Value: {round(m.average_value):,}",
            f"Conversion Rate: {m.conversion_rate:.2f}%",
            f"Average Time to Conversion (days): {_days(m.average_days_to_conversion)}",
        ])
        for counts, label in (
            (m.source_counts, "Source"),
            (m.platform_counts, "Platform"),
            (m.customer_type_counts, "Customer Type"),
            (m.status_counts, "Status"),
            (m.requested_vehicles, "Vehicle"),
            (m.requested_types, "Type"),
        ):
            cursor = self.draw_counts(layout, cursor, counts, label)
        return cursor

    def draw_claims_section(self, layout: LayoutService, cursor: Cursor, report: FullReport) -> Cursor:
        m = report.claims
        cursor = self.draw_title(layout, cursor, "Claims Metrics")
        cursor = self.draw_figures(layout, cursor, [
            f"Total Claims Submitted: {m.total_claims}",
            f"Average Time to Resolve (days): {_days(m.average_resolve_days)}",
            f"Claims Conversion Rate (per policy): {m.conversion_rate:.2f}%",
            f"Average Files/Documents per Claim: {m.average_files_per_claim:.2f}",
            f"Claims Missing Required Docs: {m.claims_with_missing_docs}",
        ])
        for counts, label in (
            (m.status_counts, "Status"),
            (m.insurance_type_counts, "Type"),
            (m.vehicle_counts, "Vehicle"),
            (m.insurer_name_counts, "Insurer Name"),
            (m.file_type_counts, "File Type"),
            (m.reason_counts, "Reason"),
            (m.claims_per_customer, "Customer"),
            (m.claims_per_policy, "Policy"),
            (m.accident_type_counts, "Accident Type"),
        ):
            cursor = self.draw_counts(layout, cursor, counts, label)
        return cursor

    def summary_rows(self, report: FullReport) -> list[tuple[str, list[tuple[str, str]]]]:
        ins, quo, cla = report.insurance, report.quotation, report.claims
        return [
            ("Insurance Data Summary", [
                ("Total Policies", str(ins.total_policies)),
                ("Total Premium", _number(ins.total_premium)),
                ("Total VAT", _number(ins.total_vat)),
                ("Comprehensive", str(ins.comprehensive_count)),
                ("Third-Party", str(ins.third_party_count)),
                ("Total Paid", _number(ins.total_paid)),
                ("Total Due", _number(ins.total_due)),
            ]),
            ("Quotation Data Summary", [
                ("Total Quotations", str(quo.total_quotations)),
                ("Total Value", _number(quo.total_value)),
                ("Average Value", _number(round(quo.average_value, 2))),
                ("Conversion Rate (%)", f"{quo.conversion_rate:.2f}"),
                ("Average Days to Conversion", _days(quo.average_days_to_conversion)),
            ]),
            ("Claims Data Summary", [
                ("Total Claims", str(cla.total_claims)),
                ("Total Claimed", _number(cla.total_claimed)),
                ("Total Paid", _number(cla.total_paid)),
                ("Average Files per Claim", f"{cla.average_files_per_claim:.2f}"),
                ("Average Days to Resolve", _days(cla.average_resolve_days)),
                ("Conversion Rate (%)", f"{cla.conversion_rate:.2f}"),
                ("Claims Missing Documents", str(cla.claims_with_missing_docs)),
            ]),
        ]

    def draw_summary_page(self, layout: LayoutService, cursor: Cursor, report: FullReport) -> Cursor:
        cursor = self.draw_title(layout, cursor, "Summary")
        for heading, rows in self.summary_rows(report):
            cursor = layout.flow_text(
                cursor, heading, font=self.bold, font_size=11, color=ACCENT, gap=4
            )
            cursor = self._table(layout).render(rows, "Metric", "Value", cursor).advance(12)

        for counts, label in (
            (report.insurance.hour_counts, "Peak Hour"),
            (report.insurance.day_counts, "Peak Day"),
            (report.quotation.daily, "Quotations per Day"),
            (report.quotation.monthly, "Quotations per Month"),
            (report.claims.daily_trend, "Claims per Day"),
            (report.claims.monthly_trend, "Claims per Month"),
        ):
            if counts:
                cursor = self.draw_counts(layout, cursor, counts, label, limit=None)
        return cursor

    # ------------------------------------------------------------------
    # Page chrome
    # ------------------------------------------------------------------

    def report_footer(self, layout: LayoutService, generated_at: datetime) -> PageDecorator:
        geometry = layout.geometry
        surface = layout.surface
        stamp = f"Generated: {generated_at.strftime('%d/%m/%Y, %H:%M:%S')}"
        y = geometry.height - 30

        def decorate(page: int, total: int) -> None:
            surface.draw_text(
                f"Page {page} of {total}", geometry.right - 100, y,
                font=self.regular, font_size=7, width=100, align="right", color=FOOTER_GREY,
            )
            surface.draw_text(
                stamp, geometry.left, y, font=self.regular, font_size=7, color=FOOTER_GREY,
            )

        return decorate
