"""
Excel Service – monthly insurance export workbook.

Produces a single-sheet workbook ("Insurance Report"): one header row of
mapping labels, then one row per policy with each column read by dotted
path from the source record.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Any, Iterable, Sequence

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from insuredocs.models.schemas import FieldMapping
from insuredocs.repository.file_repository import FileRepository
from insuredocs.services.ingestion_service import IngestionService

logger = logging.getLogger(__name__)

SHEET_NAME = "Insurance Report"

DEFAULT_MAPPING: list[FieldMapping] = [
    FieldMapping(label=label, key=key)
    for label, key in [
        ("Policy ID", "_id.$oid"),
        ("Insured Name", "insuredName"),
        ("Address", "address"),
        ("Insurer Name", "insurerName"),
        ("Policy Start Date", "startDate.$date"),
        ("Policy End Date", "endDate.$date"),
        ("Insurance Label", "insuranceLabel"),
        ("Is Comprehensive", "isComprehensive"),
        ("Seats", "seats"),
        ("Vehicle Registration Number", "vehicleInfo.registrationNumber"),
        ("Vehicle Owner", "vehicleInfo.ownerName"),
        ("Vehicle Make", "vehicleInfo.make"),
        ("Vehicle Model", "vehicleInfo.model"),
        ("Payment Total", "total"),
        ("Payment Reference", "paymentReference"),
        ("Transaction ZNumber", "transactionData.ZNumber"),
    ]
]


class ExcelService:
    """Writes policy records to the monthly insurance workbook."""

    # Styling constants
    _HEADER_FONT = Font(bold=True, size=11, color="FFFFFF")
    _HEADER_FILL = PatternFill(start_color="2F5496", end_color="2F5496", fill_type="solid")
    _ZEBRA_FILL = PatternFill(start_color="F2F7FB", end_color="F2F7FB", fill_type="solid")
    _THIN_BORDER = Border(
        left=Side(style="thin", color="B4C6E7"),
        right=Side(style="thin", color="B4C6E7"),
        top=Side(style="thin", color="B4C6E7"),
        bottom=Side(style="thin", color="B4C6E7"),
    )
    _MAX_COLUMN_WIDTH = 50

    def __init__(
        self,
        ingestion: IngestionService | None = None,
        repository: FileRepository | None = None,
    ):
        self._ingestion = ingestion or IngestionService()
        self._repository = repository

    def build_frame(
        self,
        records: Iterable[dict[str, Any]],
        mapping: Sequence[FieldMapping] | None = None,
    ) -> pd.DataFrame:
        """One string column per mapping entry, in mapping order."""
        mapping = list(mapping or DEFAULT_MAPPING)
        rows = [
            [self._ingestion.get_value_by_path(record, m.key) for m in mapping]
            for record in records
        ]
        return pd.DataFrame(rows, columns=[m.label for m in mapping], dtype=object)

    def render(
        self,
        records: Iterable[dict[str, Any]],
        mapping: Sequence[FieldMapping] | None = None,
    ) -> bytes:
        """Workbook as ``.xlsx`` bytes."""
        df = self.build_frame(records, mapping)
        wb = Workbook()
        ws = wb.active
        ws.title = SHEET_NAME
        self._write_sheet(ws, df)

        buf = io.BytesIO()
        wb.save(buf)
        logger.info("Insurance export built: %d rows × %d columns", len(df), len(df.columns))
        return buf.getvalue()

    def export(
        self,
        records: Iterable[dict[str, Any]],
        mapping: Sequence[FieldMapping] | None,
        output_path: Path,
    ) -> Path:
        """Write the workbook through the repository (atomic) and return its path."""
        output_path = Path(output_path)
        repository = self._repository or FileRepository(output_path.parent)
        path = repository.save_bytes(
            self.render(records, mapping), output_path.parent, output_path.name
        )
        logger.info("Insurance export written to %s", path)
        return path

    def export_month(
        self,
        records: Iterable[dict[str, Any]],
        month: int,
        year: int,
        mapping: Sequence[FieldMapping] | None = None,
    ) -> bytes:
        """Workbook of the policies starting in *month*/*year*."""
        selected = self._ingestion.filter_records_by_month(records, month, year)
        logger.info("Exporting %d policies for %02d/%d", len(selected), month, year)
        return self.render(selected, mapping)

    # ------------------------------------------------------------------
    # Sheet
    # ------------------------------------------------------------------

    def _write_sheet(self, ws, df: pd.DataFrame):
        for c, label in enumerate(df.columns, start=1):
            cell = ws.cell(row=1, column=c, value=label)
            cell.font = self._HEADER_FONT
            cell.fill = self._HEADER_FILL
            cell.alignment = Alignment(horizontal="center")

        for r, row_data in enumerate(df.itertuples(index=False), start=2):
            for c, val in enumerate(row_data, start=1):
                cell = ws.cell(row=r, column=c, value=val)
                if r % 2 == 1:
                    cell.fill = self._ZEBRA_FILL

        self._apply_borders(ws, max_row=len(df) + 1, max_col=len(df.columns))
        self._fit_columns(ws, df)
        ws.freeze_panes = "A2"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fit_columns(self, ws, df: pd.DataFrame):
        for c, label in enumerate(df.columns, start=1):
            longest = max([len(str(label)), *(len(str(v)) for v in df[label])])
            ws.column_dimensions[get_column_letter(c)].width = min(
                longest + 2, self._MAX_COLUMN_WIDTH
            )

    def _apply_borders(self, ws, max_row, max_col):
        """Apply thin borders to all cells in the data range."""
        for row in ws.iter_rows(min_row=1, max_row=max_row, min_col=1, max_col=max_col):
            for cell in row:
                cell.border = self._THIN_BORDER
