"""
Tests for IngestionService — payload parsing, dotted-path access and
date filters over MongoDB extended JSON records.
"""

import json
from datetime import datetime, timezone

import pytest

from insuredocs.services.ingestion_service import IngestionService


@pytest.fixture
def ingestion():
    return IngestionService()


@pytest.fixture
def policy():
    return {
        "_id": {"$oid": "65a1f0c2e4b0a1b2c3d4e5f6"},
        "insuredName": "Asha Mwinyi",
        "isComprehensive": False,
        "seats": 4,
        "startDate": {"$date": "2025-02-14T00:00:00Z"},
        "vehicleInfo": {"make": "Toyota", "registrationNumber": "T123ABC"},
        "transactionData": {"ZNumber": "20250214"},
        "tags": ["motor", "private"],
    }


class TestParse:
    def test_top_level_array(self, ingestion):
        records = ingestion.parse(b'[{"a": 1}, {"a": 2}]')
        assert records == [{"a": 1}, {"a": 2}]

    def test_records_envelope(self, ingestion):
        payload = json.dumps({"records": [{"a": 1}]}).encode()
        assert ingestion.parse(payload) == [{"a": 1}]

    def test_non_objects_dropped(self, ingestion):
        assert ingestion.parse(b'[{"a": 1}, 5, "x"]') == [{"a": 1}]

    def test_invalid_json(self, ingestion):
        with pytest.raises(ValueError, match="Invalid JSON"):
            ingestion.parse(b"{not json")

    def test_object_without_records(self, ingestion):
        with pytest.raises(ValueError):
            ingestion.parse(b'{"a": 1}')


class TestGetValueByPath:
    def test_plain_and_nested_values(self, ingestion, policy):
        assert ingestion.get_value_by_path(policy, "insuredName") == "Asha Mwinyi"
        assert ingestion.get_value_by_path(policy, "vehicleInfo.make") == "Toyota"
        assert ingestion.get_value_by_path(policy, "seats") == "4"

    def test_wrappers_unwrapped_when_named(self, ingestion, policy):
        assert ingestion.get_value_by_path(policy, "_id.$oid") == "65a1f0c2e4b0a1b2c3d4e5f6"
        assert ingestion.get_value_by_path(policy, "startDate.$date") == "2025-02-14T00:00:00Z"

    def test_wrapper_with_other_key_is_empty(self, ingestion, policy):
        assert ingestion.get_value_by_path(policy, "_id.value") == ""

    def test_booleans_and_objects(self, ingestion, policy):
        assert ingestion.get_value_by_path(policy, "isComprehensive") == "false"
        assert ingestion.get_value_by_path(policy, "tags") == '["motor","private"]'
        assert ingestion.get_value_by_path(policy, "transactionData") == '{"ZNumber":"20250214"}'

    @pytest.mark.parametrize("path", ["missing", "vehicleInfo.model", "seats.count", ""])
    def test_missing_is_empty(self, ingestion, policy, path):
        assert ingestion.get_value_by_path(policy, path) == ""

    def test_get_path_returns_raw_value(self, ingestion, policy):
        assert ingestion.get_path(policy, "seats") == 4
        assert ingestion.get_path(policy, "vehicleInfo.model") is None


class TestDates:
    def test_to_timestamp(self, ingestion):
        ts = ingestion.to_timestamp("2025-02-14T10:30:00Z")
        assert (ts.year, ts.month, ts.day, ts.hour) == (2025, 2, 14, 10)
        assert str(ts.tz) == "UTC"

    @pytest.mark.parametrize("value", [None, "", "not a date", {"$date": "x"}, True])
    def test_non_dates(self, ingestion, value):
        assert ingestion.to_timestamp(value) is None

    def test_filter_by_date_range_is_inclusive(self, ingestion):
        records = [
            {"createdAt": {"$date": "2025-01-01T00:00:00Z"}},
            {"createdAt": {"$date": "2025-01-15T12:00:00Z"}},
            {"createdAt": {"$date": "2025-01-31T00:00:00Z"}},
            {"createdAt": {"$date": "2025-02-01T00:00:00Z"}},
            {"status": "no date"},
        ]
        kept = ingestion.filter_by_date_range(
            records,
            datetime(2025, 1, 1, tzinfo=timezone.utc),
            datetime(2025, 1, 31, tzinfo=timezone.utc),
        )
        assert len(kept) == 3

    def test_naive_bounds_read_as_utc(self, ingestion):
        records = [{"createdAt": {"$date": "2025-01-01T00:00:00Z"}}]
        kept = ingestion.filter_by_date_range(records, datetime(2025, 1, 1), datetime(2025, 1, 2))
        assert kept == records

    def test_invalid_bounds(self, ingestion):
        with pytest.raises(ValueError):
            ingestion.filter_by_date_range([], "soon", "later")

    def test_filter_records_by_month(self, ingestion, policy):
        other = {"startDate": {"$date": "2025-03-01T00:00:00Z"}}
        assert ingestion.filter_records_by_month([policy, other], 2, 2025) == [policy]
        assert ingestion.filter_records_by_month([policy, other], 2, 2024) == []
