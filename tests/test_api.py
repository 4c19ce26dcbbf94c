"""
Tests for the HTTP API — document downloads, report data and exports.
"""

import io
import json
import zipfile

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook

from insuredocs.controllers.document_controller import _get_file_repo
from insuredocs.main import app
from insuredocs.repository.file_repository import FileRepository


@pytest.fixture
def client(tmp_path):
    app.dependency_overrides[_get_file_repo] = lambda: FileRepository(tmp_path)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def policies():
    return [
        {
            "_id": {"$oid": "p1"},
            "insuredName": "Asha Mwinyi",
            "createdAt": {"$date": "2025-01-06T08:15:00Z"},
            "startDate": {"$date": "2025-01-06T00:00:00Z"},
            "insuranceLabel": "Motor Private",
            "premium": 100000,
        },
        {
            "_id": {"$oid": "p2"},
            "insuredName": "Juma Bakari",
            "createdAt": {"$date": "2025-02-06T08:15:00Z"},
            "startDate": {"$date": "2025-02-06T00:00:00Z"},
            "insuranceLabel": "Motor Commercial",
            "premium": 50000,
        },
    ]


@pytest.fixture
def report_request(policies):
    return {
        "insurances": policies,
        "quotations": [],
        "claims": [],
        "start_date": "2025-01-01T00:00:00Z",
        "end_date": "2025-01-31T23:59:59Z",
    }


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestDocuments:
    def test_receipt_pdf(self, client, tmp_path):
        response = client.post("/api/v1/receipts", json={
            "receipt_number": "RCT/2025/0042",
            "customer_name": "Asha Mwinyi",
            "amount": 118000,
        })
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert "Receipt_RCT_2025_0042.pdf" in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")
        # The session directory is removed once the file has been streamed
        assert list(tmp_path.iterdir()) == []

    def test_receipt_validation(self, client):
        response = client.post("/api/v1/receipts", json={"receipt_number": "R1", "amount": -5})
        assert response.status_code == 422

    def test_tax_invoice_pdf(self, client):
        response = client.post("/api/v1/tax-invoices", json={
            "invoice_number": "INV-1",
            "customer_name": "Asha Mwinyi",
            "base_premium": 100000,
        })
        assert response.status_code == 200
        assert response.content.startswith(b"%PDF")


class TestBusinessReport:
    def test_report_data(self, client, report_request):
        response = client.post("/api/v1/reports/business/data", json=report_request)
        assert response.status_code == 200
        body = response.json()
        assert body["insurance"]["total_policies"] == 1
        assert body["insurance"]["total_premium"] == 100000
        assert body["quotation"]["total_quotations"] == 0
        assert body["claims"]["average_resolve_days"] is None

    def test_end_before_start_rejected(self, client, report_request):
        report_request["end_date"] = "2024-12-31T00:00:00Z"
        response = client.post("/api/v1/reports/business/data", json=report_request)
        assert response.status_code == 422

    def test_report_pdf(self, client, report_request):
        response = client.post("/api/v1/reports/business", json=report_request)
        assert response.status_code == 200
        assert response.content.startswith(b"%PDF")

    def test_report_bundle(self, client, report_request):
        response = client.post("/api/v1/reports/business/bundle", json=report_request)
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/zip"

        with zipfile.ZipFile(io.BytesIO(response.content)) as zf:
            assert sorted(zf.namelist()) == ["Business_Report.pdf", "Insurance_Report.xlsx"]
            ws = load_workbook(io.BytesIO(zf.read("Insurance_Report.xlsx"))).active
        # Only the policy created in January
        assert ws.max_row == 2
        assert ws.cell(row=2, column=1).value == "p1"


class TestInsuranceExport:
    def test_export_month(self, client, policies):
        response = client.post("/api/v1/exports/insurance", json={
            "records": policies, "month": 2, "year": 2025,
        })
        assert response.status_code == 200
        assert "Insurance_Report_2025_02.xlsx" in response.headers["content-disposition"]
        ws = load_workbook(io.BytesIO(response.content)).active
        assert ws.cell(row=2, column=2).value == "Juma Bakari"

    def test_invalid_month(self, client, policies):
        response = client.post("/api/v1/exports/insurance", json={
            "records": policies, "month": 13, "year": 2025,
        })
        assert response.status_code == 422

    def test_upload(self, client, policies):
        response = client.post(
            "/api/v1/exports/insurance/upload",
            files={"file": ("policies.json", json.dumps(policies).encode(), "application/json")},
            data={"month": "1", "year": "2025"},
        )
        assert response.status_code == 200
        ws = load_workbook(io.BytesIO(response.content)).active
        assert ws.cell(row=2, column=1).value == "p1"

    def test_upload_requires_json_file(self, client):
        response = client.post(
            "/api/v1/exports/insurance/upload",
            files={"file": ("policies.csv", b"a,b", "text/csv")},
            data={"month": "1", "year": "2025"},
        )
        assert response.status_code == 400

    def test_upload_with_broken_json(self, client):
        response = client.post(
            "/api/v1/exports/insurance/upload",
            files={"file": ("policies.json", b"{oops", "application/json")},
            data={"month": "1", "year": "2025"},
        )
        assert response.status_code == 400
        assert "Invalid JSON" in response.json()["detail"]
