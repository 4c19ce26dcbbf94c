"""
Document Controller – API route definitions.

Defines endpoints for health check, receipt and tax invoice PDFs, the
Full Business Report (PDF, JSON metrics, or a ZIP bundle with the
matching Excel export), and the monthly insurance Excel export.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import StreamingResponse

from insuredocs.models.schemas import (
    BusinessReportRequest,
    InsuranceExportRequest,
    ReceiptData,
    TaxInvoiceData,
)
from insuredocs.repository.file_repository import FileRepository
from insuredocs.services.analytics_service import AnalyticsService
from insuredocs.services.excel_service import ExcelService
from insuredocs.services.ingestion_service import IngestionService
from insuredocs.services.receipt_service import ReceiptService
from insuredocs.services.report_pdf_service import ReportPdfService
from insuredocs.services.tax_invoice_service import TaxInvoiceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["documents"])

PDF_MEDIA_TYPE = "application/pdf"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
ZIP_MEDIA_TYPE = "application/zip"


# ---------------------------------------------------------------------------
# Dependency injection helpers
# ---------------------------------------------------------------------------

def _get_file_repo() -> FileRepository:
    return FileRepository()


def _get_ingestion_service() -> IngestionService:
    return IngestionService()


def _get_analytics_service(
    ingestion: IngestionService = Depends(_get_ingestion_service),
) -> AnalyticsService:
    return AnalyticsService(ingestion=ingestion)


def _get_excel_service(
    ingestion: IngestionService = Depends(_get_ingestion_service),
    repo: FileRepository = Depends(_get_file_repo),
) -> ExcelService:
    return ExcelService(ingestion=ingestion, repository=repo)


def _get_receipt_service(repo: FileRepository = Depends(_get_file_repo)) -> ReceiptService:
    return ReceiptService(repo)


def _get_tax_invoice_service(repo: FileRepository = Depends(_get_file_repo)) -> TaxInvoiceService:
    return TaxInvoiceService(repo)


def _get_report_pdf_service(repo: FileRepository = Depends(_get_file_repo)) -> ReportPdfService:
    return ReportPdfService(repo)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _safe_name(value: str) -> str:
    """File-name-safe version of a document number."""
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", value).strip("_") or "document"


def _stream_file(
    repo: FileRepository,
    session_dir: Path,
    path: Path,
    media_type: str,
    filename: str,
) -> StreamingResponse:
    """Stream *path* back and remove the session directory afterwards."""

    def _stream():
        with open(path, "rb") as f:
            yield from iter(lambda: f.read(8192), b"")
        # Cleanup after streaming
        repo.cleanup(session_dir)

    return StreamingResponse(
        _stream(),
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


def _fail(repo: FileRepository, session_dir: Path, what: str, exc: Exception) -> HTTPException:
    repo.cleanup(session_dir)
    if isinstance(exc, ValueError):
        logger.warning("%s rejected: %s", what, exc)
        return HTTPException(status_code=400, detail=f"{what} failed: {exc}")
    logger.exception("%s failed", what)
    return HTTPException(status_code=500, detail=f"{what} failed: {str(exc)}")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/health")
async def health():
    """Health-check endpoint."""
    return {"status": "ok", "service": "InsureDocs Engine"}


@router.post("/receipts")
async def create_receipt(
    data: ReceiptData,
    repo: FileRepository = Depends(_get_file_repo),
    receipts: ReceiptService = Depends(_get_receipt_service),
):
    """Render a payment receipt PDF."""
    session_dir = repo.create_session_dir()
    filename = f"Receipt_{_safe_name(data.receipt_number)}.pdf"
    try:
        path = receipts.generate(data, session_dir / filename)
    except Exception as e:
        raise _fail(repo, session_dir, "Receipt generation", e)
    return _stream_file(repo, session_dir, path, PDF_MEDIA_TYPE, filename)


@router.post("/tax-invoices")
async def create_tax_invoice(
    data: TaxInvoiceData,
    repo: FileRepository = Depends(_get_file_repo),
    invoices: TaxInvoiceService = Depends(_get_tax_invoice_service),
):
    """Render a tax invoice PDF."""
    session_dir = repo.create_session_dir()
    filename = f"Tax_Invoice_{_safe_name(data.invoice_number)}.pdf"
    try:
        path = invoices.generate(data, session_dir / filename)
    except Exception as e:
        raise _fail(repo, session_dir, "Tax invoice generation", e)
    return _stream_file(repo, session_dir, path, PDF_MEDIA_TYPE, filename)


@router.post("/reports/business/data")
async def business_report_data(
    request: BusinessReportRequest,
    analytics: AnalyticsService = Depends(_get_analytics_service),
):
    """Aggregated report metrics as JSON, without rendering."""
    try:
        report = analytics.full_report(
            request.insurances, request.quotations, request.claims,
            request.start_date, request.end_date,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Report aggregation failed")
        raise HTTPException(status_code=500, detail=f"Report aggregation failed: {str(e)}")
    return report.model_dump(mode="json")


@router.post("/reports/business")
async def business_report(
    request: BusinessReportRequest,
    repo: FileRepository = Depends(_get_file_repo),
    analytics: AnalyticsService = Depends(_get_analytics_service),
    reports: ReportPdfService = Depends(_get_report_pdf_service),
):
    """Render the Full Business Report PDF for the requested period."""
    session_dir = repo.create_session_dir()
    try:
        report = analytics.full_report(
            request.insurances, request.quotations, request.claims,
            request.start_date, request.end_date,
        )
        path = reports.generate(report, session_dir / "Business_Report.pdf")
    except Exception as e:
        raise _fail(repo, session_dir, "Report generation", e)
    return _stream_file(repo, session_dir, path, PDF_MEDIA_TYPE, "Business_Report.pdf")


@router.post("/reports/business/bundle")
async def business_report_bundle(
    request: BusinessReportRequest,
    repo: FileRepository = Depends(_get_file_repo),
    ingestion: IngestionService = Depends(_get_ingestion_service),
    analytics: AnalyticsService = Depends(_get_analytics_service),
    excel_svc: ExcelService = Depends(_get_excel_service),
    reports: ReportPdfService = Depends(_get_report_pdf_service),
):
    """
    Report PDF + Excel export of the period's policies, as one ZIP.

    **Pipeline:**
    1. AnalyticsService   — aggregate the three record sets
    2. ReportPdfService   — render the Full Business Report
    3. ExcelService       — export the policies created in the period
    4. FileRepository     — bundle into ZIP and stream back
    """
    session_dir = repo.create_session_dir()
    try:
        report = analytics.full_report(
            request.insurances, request.quotations, request.claims,
            request.start_date, request.end_date,
        )
        pdf_path = reports.generate(report, session_dir / "Business_Report.pdf")

        policies = ingestion.filter_by_date_range(
            request.insurances, request.start_date, request.end_date
        )
        excel_path = excel_svc.export(policies, None, session_dir / "Insurance_Report.xlsx")

        zip_path = repo.create_zip(
            {
                "Business_Report.pdf": pdf_path,
                "Insurance_Report.xlsx": excel_path,
            },
            session_dir,
        )
    except Exception as e:
        raise _fail(repo, session_dir, "Report bundle", e)
    return _stream_file(repo, session_dir, zip_path, ZIP_MEDIA_TYPE, "Business_Report.zip")


@router.post("/exports/insurance")
async def export_insurance(
    request: InsuranceExportRequest,
    repo: FileRepository = Depends(_get_file_repo),
    excel_svc: ExcelService = Depends(_get_excel_service),
):
    """Excel export of the policies starting in the requested month."""
    session_dir = repo.create_session_dir()
    filename = f"Insurance_Report_{request.year}_{request.month:02d}.xlsx"
    try:
        data = excel_svc.export_month(
            request.records, request.month, request.year, request.mapping
        )
        path = repo.save_bytes(data, session_dir, filename)
    except Exception as e:
        raise _fail(repo, session_dir, "Insurance export", e)
    return _stream_file(repo, session_dir, path, XLSX_MEDIA_TYPE, filename)


@router.post("/exports/insurance/upload")
async def export_insurance_upload(
    file: UploadFile = File(...),
    month: int = Form(..., ge=1, le=12),
    year: int = Form(..., ge=1900),
    repo: FileRepository = Depends(_get_file_repo),
    ingestion: IngestionService = Depends(_get_ingestion_service),
    excel_svc: ExcelService = Depends(_get_excel_service),
):
    """Same as ``/exports/insurance`` for an uploaded JSON records file."""
    if not file.filename or not file.filename.endswith(".json"):
        raise HTTPException(status_code=400, detail="Please upload a JSON file (.json)")

    session_dir = repo.create_session_dir()
    filename = f"Insurance_Report_{year}_{month:02d}.xlsx"
    try:
        records = ingestion.parse(await repo.read_uploaded_file(file))
        data = excel_svc.export_month(records, month, year)
        path = repo.save_bytes(data, session_dir, filename)
    except Exception as e:
        raise _fail(repo, session_dir, "Insurance export", e)
    return _stream_file(repo, session_dir, path, XLSX_MEDIA_TYPE, filename)
