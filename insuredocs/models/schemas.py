"""
Pydantic schemas – request payloads and computed report metrics.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from insuredocs.config import DEFAULT_BANK_INFORMATION, VAT_RATE


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

class ReceiptData(BaseModel):
    """Everything printed on a payment receipt."""
    receipt_number: str
    risk_note_number: str = ""
    sticker_number: str = ""
    customer_name: str
    amount: float = Field(ge=0)
    amount_in_words: Optional[str] = None
    payment_for: str = "Motor Insurance Premium"
    payment_method: str = ""
    payment_reference: str = ""
    policy_number: str = ""
    payment_date: str = ""
    important_note: str = ""
    platform: str = "Web"


class BankInformation(BaseModel):
    bank_name: str = DEFAULT_BANK_INFORMATION["bank_name"]
    swift_code: str = DEFAULT_BANK_INFORMATION["swift_code"]
    account_number: str = DEFAULT_BANK_INFORMATION["account_number"]


class TaxInvoiceData(BaseModel):
    """Everything printed on a tax invoice."""
    invoice_number: str
    customer_name: str = ""
    customer_address: str = ""
    customer_tin: str = ""
    intermediary: str = ""
    class_of_insurance: str = "Motor Private"
    policy_number: str = ""
    cover_note_number: str = ""
    issue_date: str = ""
    effective_date: str = ""
    expiry_date: str = ""
    base_premium: float = Field(ge=0)
    vat_rate: float = Field(default=VAT_RATE, ge=0, le=1)
    amount_in_words: Optional[str] = None
    bank_information: BankInformation = Field(default_factory=BankInformation)
    important_note: str = ""
    z_number: Optional[str] = None
    qr_code_url: Optional[str] = None
    platform: str = "Web"

    @property
    def vat_amount(self) -> int:
        return round(self.base_premium * self.vat_rate)

    @property
    def total_premium(self) -> float:
        return self.base_premium + self.vat_amount


# ---------------------------------------------------------------------------
# Reports & exports
# ---------------------------------------------------------------------------

class BusinessReportRequest(BaseModel):
    insurances: list[dict[str, Any]] = Field(default_factory=list)
    quotations: list[dict[str, Any]] = Field(default_factory=list)
    claims: list[dict[str, Any]] = Field(default_factory=list)
    start_date: datetime
    end_date: datetime

    @model_validator(mode="after")
    def _check_range(self) -> "BusinessReportRequest":
        # Naive datetimes are read as UTC
        start, end = (
            d if d.tzinfo else d.replace(tzinfo=timezone.utc)
            for d in (self.start_date, self.end_date)
        )
        if end < start:
            raise ValueError("end_date must not be before start_date")
        return self


class FieldMapping(BaseModel):
    """One exported column: its heading and the dotted path it reads."""
    label: str
    key: str


class InsuranceExportRequest(BaseModel):
    records: list[dict[str, Any]] = Field(default_factory=list)
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=1900)
    mapping: Optional[list[FieldMapping]] = None


class InsuranceMetrics(BaseModel):
    total_policies: int = 0
    insurance_type_counts: dict[str, int] = Field(default_factory=dict)
    total_premium: float = 0
    total_vat: float = 0
    policy_status_counts: dict[str, int] = Field(default_factory=dict)
    comprehensive_count: int = 0
    third_party_count: int = 0
    platform_counts: dict[str, int] = Field(default_factory=dict)
    payment_method_counts: dict[str, int] = Field(default_factory=dict)
    vehicles: dict[str, int] = Field(default_factory=dict)
    customer_type_counts: dict[str, int] = Field(default_factory=dict)
    insurer_name_counts: dict[str, int] = Field(default_factory=dict)
    hour_counts: dict[str, int] = Field(default_factory=dict)
    day_counts: dict[str, int] = Field(default_factory=dict)
    total_paid: float = 0
    total_due: float = 0


class QuotationMetrics(BaseModel):
    total_quotations: int = 0
    total_value: float = 0
    average_value: float = 0
    source_counts: dict[str, int] = Field(default_factory=dict)
    platform_counts: dict[str, int] = Field(default_factory=dict)
    customer_type_counts: dict[str, int] = Field(default_factory=dict)
    status_counts: dict[str, int] = Field(default_factory=dict)
    conversion_rate: float = 0
    average_days_to_conversion: Optional[float] = None
    requested_vehicles: dict[str, int] = Field(default_factory=dict)
    requested_types: dict[str, int] = Field(default_factory=dict)
    daily: dict[str, int] = Field(default_factory=dict)
    monthly: dict[str, int] = Field(default_factory=dict)


class ClaimsMetrics(BaseModel):
    total_claims: int = 0
    status_counts: dict[str, int] = Field(default_factory=dict)
    insurance_type_counts: dict[str, int] = Field(default_factory=dict)
    vehicle_counts: dict[str, int] = Field(default_factory=dict)
    insurer_name_counts: dict[str, int] = Field(default_factory=dict)
    average_files_per_claim: float = 0
    file_type_counts: dict[str, int] = Field(default_factory=dict)
    average_resolve_days: Optional[float] = None
    conversion_rate: float = 0
    reason_counts: dict[str, int] = Field(default_factory=dict)
    claims_per_customer: dict[str, int] = Field(default_factory=dict)
    claims_per_policy: dict[str, int] = Field(default_factory=dict)
    accident_type_counts: dict[str, int] = Field(default_factory=dict)
    daily_trend: dict[str, int] = Field(default_factory=dict)
    monthly_trend: dict[str, int] = Field(default_factory=dict)
    total_claimed: float = 0
    total_paid: float = 0
    claims_with_missing_docs: int = 0


class FullReport(BaseModel):
    start_date: datetime
    end_date: datetime
    insurance: InsuranceMetrics
    quotation: QuotationMetrics
    claims: ClaimsMetrics
