"""
Ingestion Service – loads insurance, quotation and claim records.

Records arrive as MongoDB extended JSON: nested objects, ``{"$oid": ...}``
identifiers and ``{"$date": ...}`` timestamps.  This service parses the
raw payloads, reads values by dotted path, and filters records by date.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Iterable

import pandas as pd

logger = logging.getLogger(__name__)

# Wrappers MongoDB uses for ObjectIds and dates
_SPECIAL_KEYS = ("$oid", "$date")


class IngestionService:
    """Parses record payloads and extracts values from nested records."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def parse(self, file_bytes: bytes) -> list[dict[str, Any]]:
        """
        Parse a JSON document into a list of records.

        Accepts either a top-level array or an object with a ``records``
        array.  Raises ``ValueError`` for anything else.
        """
        try:
            payload = json.loads(file_bytes)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON: {exc}") from exc

        if isinstance(payload, dict) and "records" in payload:
            payload = payload["records"]
        if not isinstance(payload, list):
            raise ValueError("Expected a JSON array of records")

        records = [r for r in payload if isinstance(r, dict)]
        skipped = len(payload) - len(records)
        if skipped:
            logger.warning("Skipped %d non-object entries", skipped)
        logger.info("Parsed %d records", len(records))
        return records

    # ------------------------------------------------------------------
    # Path access
    # ------------------------------------------------------------------

    @staticmethod
    def get_path(record: Any, path: str) -> Any:
        """Raw nested value at *path*, or ``None`` when any step is missing."""
        current = record
        for part in path.split("."):
            if not isinstance(current, dict):
                return None
            current = current.get(part)
            if current is None:
                return None
        return current

    @staticmethod
    def get_value_by_path(record: Any, path: str) -> str:
        """
        Display value at *path* for exports.

        ``$oid`` / ``$date`` wrappers are only unwrapped when the path names
        them explicitly (``_id.$oid``); objects are serialised as compact
        JSON and anything missing becomes ``""``.
        """
        if not record or not path:
            return ""

        current = record
        for part in path.split("."):
            if current is None:
                return ""
            if not isinstance(current, dict):
                return ""
            special = next((k for k in _SPECIAL_KEYS if k in current), None)
            if special is not None:
                current = current[special]
                if part != special:
                    return ""
            else:
                current = current.get(part)

        if isinstance(current, (dict, list)):
            return json.dumps(current, separators=(",", ":"))
        if current is None:
            return ""
        if isinstance(current, bool):
            return "true" if current else "false"
        return str(current)

    # ------------------------------------------------------------------
    # Dates
    # ------------------------------------------------------------------

    @staticmethod
    def to_timestamp(value: Any) -> pd.Timestamp | None:
        """UTC timestamp for *value*, or ``None`` if it is not a date."""
        if value is None or value == "" or isinstance(value, (dict, list, bool)):
            return None
        ts = pd.to_datetime(value, utc=True, errors="coerce")
        return None if pd.isna(ts) else ts

    def filter_by_date_range(
        self,
        records: Iterable[dict[str, Any]],
        start: datetime | str,
        end: datetime | str,
        date_field: str = "createdAt.$date",
    ) -> list[dict[str, Any]]:
        """Records whose *date_field* falls within [start, end] inclusive."""
        start_ts = self.to_timestamp(start)
        end_ts = self.to_timestamp(end)
        if start_ts is None or end_ts is None:
            raise ValueError("start and end must be valid dates")

        kept = []
        for record in records:
            ts = self.to_timestamp(self.get_path(record, date_field))
            if ts is not None and start_ts <= ts <= end_ts:
                kept.append(record)
        return kept

    def filter_records_by_month(
        self,
        records: Iterable[dict[str, Any]],
        month: int,
        year: int,
        date_field: str = "startDate.$date",
    ) -> list[dict[str, Any]]:
        """Records whose *date_field* falls in the given calendar month (UTC)."""
        kept = []
        for record in records:
            ts = self.to_timestamp(self.get_path(record, date_field))
            if ts is not None and ts.month == month and ts.year == year:
                kept.append(record)
        return kept
