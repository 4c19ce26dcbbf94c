"""
Analytics Service – business report aggregations.

Computes the insurance policy, quotation and claims metrics shown in the
Full Business Report: counts by field, sums, conversion rates, average
durations and daily / monthly trends over a date range.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime
from typing import Any, Sequence

import pandas as pd

from insuredocs.models.schemas import (
    ClaimsMetrics,
    FullReport,
    InsuranceMetrics,
    QuotationMetrics,
)
from insuredocs.services.ingestion_service import IngestionService

logger = logging.getLogger(__name__)

# Claim attachments; each is a list of uploaded files
CLAIM_DOCUMENT_FIELDS = [
    "claimForm",
    "accidentSketch",
    "repairEstimate",
    "driversLicense",
    "registrationCard",
    "photographsDamagedVehicle",
    "vehicleInspectionReport",
    "preliminaryPoliceReport",
    "finalPoliceReport",
    "tPartyInfo",
]

Records = Sequence[dict[str, Any]]


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _truthy(value: Any) -> bool:
    if _is_missing(value):
        return False
    if isinstance(value, (list, dict)):
        return True
    return bool(value)


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and not _is_missing(value)
    )


def _key(value: Any) -> str:
    """String key for a counted value (``2.0`` counts as ``"2"``)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, dict)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _whole_days(later: pd.Timestamp, earlier: pd.Timestamp) -> int:
    """Elapsed days, truncated toward zero."""
    return math.trunc((later - earlier).total_seconds() / 86400)


class AnalyticsService:
    """Aggregates record lists into report metrics."""

    def __init__(self, ingestion: IngestionService | None = None):
        self._ingestion = ingestion or IngestionService()

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    @staticmethod
    def to_frame(records: Records) -> pd.DataFrame:
        """Flatten nested records into dotted columns (``vehicleInfo.make``)."""
        if not records:
            return pd.DataFrame()
        return pd.json_normalize(list(records))

    def count_by_field(self, records: Records, field: str) -> dict[str, int]:
        """Occurrences of each truthy value of *field*, in first-seen order."""
        df = self.to_frame(records)
        if field not in df.columns:
            return {}
        values = df[field]
        keys = values[values.map(_truthy)].map(_key)
        if keys.empty:
            return {}
        counts = keys.groupby(keys, sort=False).size()
        return {str(k): int(v) for k, v in counts.items()}

    def sum_by_field(self, records: Records, field: str) -> float:
        """Sum of numeric values of *field*; other values count as zero."""
        df = self.to_frame(records)
        if field not in df.columns:
            return 0.0
        return float(df[field].map(lambda v: v if _is_number(v) else 0).sum())

    def _timestamps(self, df: pd.DataFrame, field: str) -> pd.Series:
        if field not in df.columns:
            return pd.Series(dtype=object)
        return df[field].map(self._ingestion.to_timestamp).dropna()

    @staticmethod
    def _count_formatted(stamps: pd.Series, fmt: str) -> dict[str, int]:
        if stamps.empty:
            return {}
        keys = stamps.map(lambda ts: ts.strftime(fmt))
        counts = keys.groupby(keys, sort=False).size()
        return {str(k): int(v) for k, v in counts.items()}

    @staticmethod
    def _count_keys(keys: list[str]) -> dict[str, int]:
        if not keys:
            return {}
        series = pd.Series(keys, dtype=object)
        counts = series.groupby(series, sort=False).size()
        return {str(k): int(v) for k, v in counts.items()}

    def _vehicle_key(self, record: dict[str, Any], with_registration: bool) -> str:
        def part(path: str) -> str:
            value = self._ingestion.get_path(record, path)
            return _key(value) if _truthy(value) else "Unknown"

        key = (
            f"{part('vehicleInfo.make')} {part('vehicleInfo.model')} "
            f"({part('vehicleInfo.manufactureYear')})"
        )
        if with_registration:
            key += f" [{part('vehicleInfo.registrationNumber')}]"
        return key

    # ------------------------------------------------------------------
    # Insurance policies
    # ------------------------------------------------------------------

    def insurance_metrics(
        self, insurances: Records, start: datetime | str, end: datetime | str
    ) -> InsuranceMetrics:
        filtered = self._ingestion.filter_by_date_range(insurances, start, end)
        df = self.to_frame(filtered)
        total = len(filtered)

        comprehensive = 0
        if "isComprehensive" in df.columns:
            comprehensive = int(df["isComprehensive"].map(_truthy).sum())

        created = self._timestamps(df, "createdAt.$date")

        return InsuranceMetrics(
            total_policies=total,
            insurance_type_counts=self.count_by_field(filtered, "insuranceLabel"),
            total_premium=self.sum_by_field(filtered, "premium"),
            total_vat=self.sum_by_field(filtered, "vat"),
            policy_status_counts=self.count_by_field(filtered, "status"),
            comprehensive_count=comprehensive,
            third_party_count=total - comprehensive,
            platform_counts=self.count_by_field(filtered, "platform"),
            payment_method_counts=self.count_by_field(filtered, "paymentMethod"),
            vehicles=self._count_keys(
                [self._vehicle_key(r, with_registration=True) for r in filtered]
            ),
            customer_type_counts=self.count_by_field(filtered, "customerType"),
            insurer_name_counts=self.count_by_field(filtered, "insurerName"),
            hour_counts=self._count_formatted(created, "%H:00"),
            day_counts=self._count_formatted(created, "%A"),
            total_paid=self.sum_by_field(filtered, "total"),
            total_due=self.sum_by_field(filtered, "dueNow"),
        )

    # ------------------------------------------------------------------
    # Quotations
    # ------------------------------------------------------------------

    def quotation_metrics(
        self,
        quotations: Records,
        policies: Records,
        start: datetime | str,
        end: datetime | str,
    ) -> QuotationMetrics:
        get = self._ingestion.get_path
        filtered = self._ingestion.filter_by_date_range(quotations, start, end)
        df = self.to_frame(filtered)
        total = len(filtered)
        total_value = self.sum_by_field(filtered, "total")

        quoted = {get(q, "quotationNumber") for q in filtered} - {None, ""}
        converted = {
            get(p, "quotationNumber") for p in policies
        } & quoted
        conversion_rate = len(converted) / total * 100 if total else 0.0

        quote_dates = {}
        for q in filtered:
            number = get(q, "quotationNumber")
            created = self._ingestion.to_timestamp(get(q, "createdAt.$date"))
            if number and created is not None:
                quote_dates[number] = created

        elapsed = []
        for p in policies:
            number = get(p, "quotationNumber")
            created = self._ingestion.to_timestamp(get(p, "createdAt.$date"))
            if number in quote_dates and created is not None:
                days = _whole_days(created, quote_dates[number])
                if days >= 0:
                    elapsed.append(days)

        vehicles, types = [], []
        for q in filtered:
            for item in q.get("items") or []:
                vehicles.append(self._vehicle_key(item, with_registration=False))
                label = get(item, "insuranceLabel")
                if label:
                    types.append(str(label))

        created = self._timestamps(df, "createdAt.$date")

        return QuotationMetrics(
            total_quotations=total,
            total_value=total_value,
            average_value=total_value / total if total else 0.0,
            source_counts=self.count_by_field(filtered, "via"),
            platform_counts=self.count_by_field(filtered, "platform"),
            customer_type_counts=self.count_by_field(filtered, "customerType"),
            status_counts=self.count_by_field(filtered, "status"),
            conversion_rate=conversion_rate,
            average_days_to_conversion=sum(elapsed) / len(elapsed) if elapsed else None,
            requested_vehicles=self._count_keys(vehicles),
            requested_types=self._count_keys(types),
            daily=self._count_formatted(created, "%Y-%m-%d"),
            monthly=self._count_formatted(created, "%Y-%m"),
        )

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    def claims_metrics(
        self,
        claims: Records,
        policies: Records,
        start: datetime | str,
        end: datetime | str,
    ) -> ClaimsMetrics:
        get = self._ingestion.get_path
        to_ts = self._ingestion.to_timestamp
        filtered = self._ingestion.filter_by_date_range(claims, start, end)
        df = self.to_frame(filtered)
        total = len(filtered)

        total_files = 0
        file_types: list[str] = []
        missing_docs = 0
        for claim in filtered:
            has_gap = False
            for name in CLAIM_DOCUMENT_FIELDS:
                files = claim.get(name)
                if not isinstance(files, list) or not files:
                    has_gap = True
                    continue
                total_files += len(files)
                file_types.extend(
                    str(f["type"]) for f in files if isinstance(f, dict) and f.get("type")
                )
            missing_docs += has_gap

        resolve_days = []
        for claim in filtered:
            opened = to_ts(get(claim, "createdAt.$date"))
            closed = to_ts(get(claim, "processedAt.$date"))
            if opened is not None and closed is not None:
                days = _whole_days(closed, opened)
                if days >= 0:
                    resolve_days.append(days)

        claimed_policies = {get(c, "policyID.$oid") for c in filtered} - {None, ""}
        conversion_rate = len(claimed_policies) / len(policies) * 100 if policies else 0.0

        created = self._timestamps(df, "createdAt.$date")

        return ClaimsMetrics(
            total_claims=total,
            status_counts=self.count_by_field(filtered, "status"),
            insurance_type_counts=self.count_by_field(filtered, "insuranceLabel"),
            vehicle_counts=self._count_keys(
                [self._vehicle_key(c, with_registration=False) for c in filtered]
            ),
            insurer_name_counts=self.count_by_field(filtered, "insurerName"),
            average_files_per_claim=total_files / total if total else 0.0,
            file_type_counts=self._count_keys(file_types),
            average_resolve_days=(
                sum(resolve_days) / len(resolve_days) if resolve_days else None
            ),
            conversion_rate=conversion_rate,
            reason_counts=self.count_by_field(filtered, "claimReason"),
            claims_per_customer=self.count_by_field(filtered, "clientID.$oid"),
            claims_per_policy=self.count_by_field(filtered, "policyID.$oid"),
            accident_type_counts=self.count_by_field(filtered, "accidentType"),
            daily_trend=self._count_formatted(created, "%Y-%m-%d"),
            monthly_trend=self._count_formatted(created, "%Y-%m"),
            total_claimed=self.sum_by_field(filtered, "amountClaimed"),
            total_paid=self.sum_by_field(filtered, "amountPaid"),
            claims_with_missing_docs=missing_docs,
        )

    # ------------------------------------------------------------------
    # Full report
    # ------------------------------------------------------------------

    def full_report(
        self,
        insurances: Records,
        quotations: Records,
        claims: Records,
        start: datetime,
        end: datetime,
    ) -> FullReport:
        report = FullReport(
            start_date=start,
            end_date=end,
            insurance=self.insurance_metrics(insurances, start, end),
            quotation=self.quotation_metrics(quotations, insurances, start, end),
            claims=self.claims_metrics(claims, insurances, start, end),
        )
        logger.info(
            "Report %s → %s: %d policies, %d quotations, %d claims",
            start, end,
            report.insurance.total_policies,
            report.quotation.total_quotations,
            report.claims.total_claims,
        )
        return report
