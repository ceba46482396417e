"""Tests for the HTTP surface (FastAPI TestClient)."""

from __future__ import annotations

import json
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from src.config import Settings, get_settings
from src.cycle_analytics.store import CONFIG_KEY, RECORDS_KEY, TOKEN_KEY, KeyValueRecordStore
from src.dependencies import get_store
from src.main import create_app

CONFIG_BODY = {"lastPeriodDate": "2024-01-01", "averageCycleLength": 28, "averagePeriodLength": 5}


@pytest.fixture
def storage() -> dict[str, str]:
    return {}


@pytest.fixture
def client(storage: dict[str, str]) -> Iterator[TestClient]:
    app = create_app()
    store = KeyValueRecordStore(storage)
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_degraded_when_store_is_corrupted(
        self, client: TestClient, storage: dict[str, str]
    ) -> None:
        storage[RECORDS_KEY] = "42"
        assert client.get("/health").json()["status"] == "degraded"


class TestWrites:
    def test_put_cycle_config(self, client: TestClient) -> None:
        response = client.put("/api/v1/cycle-config", json=CONFIG_BODY)
        assert response.status_code == 200
        assert response.json() == {"token": 1}
        assert client.get("/api/v1/cycle-config").json() == CONFIG_BODY

    def test_cycle_config_not_set(self, client: TestClient) -> None:
        assert client.get("/api/v1/cycle-config").status_code == 404

    @pytest.mark.parametrize(
        "body",
        [
            {**CONFIG_BODY, "averageCycleLength": 50},
            {**CONFIG_BODY, "averagePeriodLength": 1},
            {"averageCycleLength": 28},
        ],
    )
    def test_invalid_cycle_config_rejected(self, client: TestClient, body: dict) -> None:
        assert client.put("/api/v1/cycle-config", json=body).status_code == 422

    def test_put_record_upserts(self, client: TestClient) -> None:
        client.put("/api/v1/records/2024-06-01", json={"symptoms": ["acne"], "flow": "light"})
        response = client.put("/api/v1/records/2024-06-01", json={"mood": "calm"})
        assert response.json() == {"token": 2}

        records = client.get("/api/v1/records").json()
        assert len(records) == 1
        assert records[0]["date"] == "2024-06-01"
        assert records[0]["mood"] == "calm"
        assert records[0]["symptoms"] == []

    def test_invalid_record_date(self, client: TestClient) -> None:
        assert client.put("/api/v1/records/not-a-date", json={}).status_code == 422

    def test_write_over_corrupted_records(self, client: TestClient, storage: dict[str, str]) -> None:
        storage[RECORDS_KEY] = json.dumps({"oops": True})
        response = client.put("/api/v1/records/2024-06-01", json={})
        assert response.status_code == 409

    def test_write_cycle_config_over_corrupted_token(
        self, client: TestClient, storage: dict[str, str]
    ) -> None:
        storage[TOKEN_KEY] = "yesterday"
        assert client.put("/api/v1/cycle-config", json=CONFIG_BODY).status_code == 409
        assert CONFIG_KEY not in storage


class TestAnalytics:
    def test_report_without_data(self, client: TestClient) -> None:
        data = client.get("/api/v1/analytics/report", params={"today": "2024-06-15"}).json()
        assert data["status"] == "no_data"
        assert data["prediction"]["next_period"] == "insufficient data"

    def test_report_from_config_only(self, client: TestClient) -> None:
        client.put("/api/v1/cycle-config", json=CONFIG_BODY)
        data = client.get(
            "/api/v1/analytics/report", params={"window": "3m", "today": "2024-06-15"}
        ).json()
        assert data["status"] == "insufficient_data"
        assert data["window"] == "3m"
        assert data["prediction"]["next_period"] == "2024-01-29"

    def test_report_after_logging(self, client: TestClient) -> None:
        client.put("/api/v1/cycle-config", json=CONFIG_BODY)
        for day in ("2024-04-01", "2024-04-29", "2024-05-27"):
            client.put(f"/api/v1/records/{day}", json={"flow": "medium"})
        for day in ("2024-05-01", "2024-05-02", "2024-05-03"):
            client.put(f"/api/v1/records/{day}", json={"symptoms": ["acne"], "mood": "happy"})

        data = client.get(
            "/api/v1/analytics/report", params={"window": "6m", "today": "2024-06-15"}
        ).json()
        assert data["status"] == "ok"
        assert data["cycles"]["count"] == 2
        assert data["cycles"]["average_length"] == 28
        assert data["prediction"]["next_period"] == "2024-06-24"
        assert data["moods"][0]["mood"] == "happy"

    def test_summary(self, client: TestClient) -> None:
        client.put("/api/v1/cycle-config", json=CONFIG_BODY)
        data = client.get("/api/v1/analytics/summary", params={"today": "2024-06-15"}).json()
        assert data["status"] == "insufficient_data"
        assert data["prediction"]["fertile_window"] == {
            "start": "2024-01-12",
            "end": "2024-01-16",
            "confidence": 70,
        }
        assert data["prediction"]["accuracy_percent"] == 65

    def test_default_window_from_settings(self, client: TestClient) -> None:
        client.app.dependency_overrides[get_settings] = lambda: Settings(default_window="3m")
        data = client.get("/api/v1/analytics/report", params={"today": "2024-06-15"}).json()
        assert data["window"] == "3m"

    def test_default_window(self, client: TestClient) -> None:
        data = client.get("/api/v1/analytics/summary", params={"today": "2024-06-15"}).json()
        assert data["window"] == "6m"

    def test_unknown_window_rejected(self, client: TestClient) -> None:
        assert client.get("/api/v1/analytics/report", params={"window": "2w"}).status_code == 422

    def test_corrupted_store(self, client: TestClient, storage: dict[str, str]) -> None:
        storage[RECORDS_KEY] = json.dumps("not a list")
        data = client.get("/api/v1/analytics/report").json()
        assert data["status"] == "corrupted"

    def test_malformed_record_is_422(self, client: TestClient, storage: dict[str, str]) -> None:
        storage[RECORDS_KEY] = json.dumps([{"date": "someday"}])
        response = client.get("/api/v1/analytics/report")
        assert response.status_code == 422
        assert response.json()["record"] == {"date": "someday"}

    def test_changes(self, client: TestClient) -> None:
        assert client.get("/api/v1/analytics/changes", params={"since": 0}).json() == {
            "token": 0,
            "changed": False,
        }
        client.put("/api/v1/records/2024-06-01", json={"flow": "light"})
        assert client.get("/api/v1/analytics/changes", params={"since": 0}).json() == {
            "token": 1,
            "changed": True,
        }

    def test_changes_with_corrupted_token(self, client: TestClient, storage: dict[str, str]) -> None:
        storage[TOKEN_KEY] = "not-a-number"
        assert client.get("/api/v1/analytics/changes", params={"since": 0}).status_code == 409
