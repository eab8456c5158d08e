"""Integration tests for the FastAPI endpoints.

Uses TestClient with an in-memory database and a fixed engine registry.
"""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from buybox.engines import LocalEngine
from buybox.errors import AnalysisError
from buybox.models import Base
from buybox.orchestrator import EngineOrchestrator
from buybox.tests.conftest import FakeEngine


@pytest.fixture()
def test_db():
    """In-memory SQLite shared across connections through StaticPool."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def orchestrator(local_result):
    engines = {
        "traditional": LocalEngine(),
        "A": FakeEngine("A", result=local_result),
        "B": FakeEngine("B", exc=AnalysisError("B", "upstream exploded")),
        "off": FakeEngine("off", result=local_result, available=False),
    }
    return EngineOrchestrator(engines, default_engine="traditional", timeout=5)


@pytest.fixture()
def client(test_db, orchestrator, monkeypatch, tmp_path):
    monkeypatch.setenv("BUYBOX_DATA_DIR", str(tmp_path))
    from buybox.app import app, db_session, get_orchestrator

    def override_db_session():
        session = test_db()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[db_session] = override_db_session
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c
    app.dependency_overrides.clear()


class TestEngineEndpoints:
    def test_list_engines(self, client):
        resp = client.get("/api/engines")
        assert resp.status_code == 200
        data = resp.json()
        assert data["default"] == "traditional"
        assert {e["engine_id"] for e in data["engines"]} == {"traditional", "A", "B", "off"}
        assert "off" not in data["available"]

    def test_health(self, client):
        resp = client.get("/api/engines/traditional/health")
        assert resp.status_code == 200
        assert resp.json() == {"engine_id": "traditional", "available": True, "healthy": True}

    def test_health_unavailable(self, client):
        assert client.get("/api/engines/off/health").json()["healthy"] is False

    def test_health_unknown(self, client):
        assert client.get("/api/engines/nope/health").status_code == 404

    def test_methodologies(self, client):
        resp = client.get("/api/methodologies")
        assert resp.status_code == 200
        keys = [m["key"] for m in resp.json()]
        assert keys == ["hedgehog_concept", "swot_analysis", "entrepreneurial_orientation",
                        "traditional_ma_analysis"]
        assert resp.json()[0]["author"] == "Jim Collins"


class TestValidateEndpoint:
    def test_valid(self, client, submission):
        resp = client.post("/api/validate", json=submission)
        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "errors": []}

    def test_invalid(self, client, submission):
        submission["time_commitment"] = 5
        body = client.post("/api/validate", json=submission).json()
        assert body["ok"] is False
        assert len(body["errors"]) == 1


class TestAnalyzeEndpoint:
    def test_analyze_and_save(self, client, submission):
        resp = client.post("/api/analyze", json={"user_data": submission})
        assert resp.status_code == 200
        data = resp.json()
        assert data["report_id"] is not None
        result = data["result"]
        assert result["engine_id"] == "traditional"
        assert result["archetype"]["key"] == "sales_marketing"
        assert result["financial_parameters"]["sde_range"].startswith("$")
        assert len(result["buybox_rows"]) == 9
        assert result["transparency"]["ranking"][0]["competency"] == "sales_marketing"

    def test_analyze_without_saving(self, client, submission):
        resp = client.post("/api/analyze", json={"user_data": submission, "engine": "A", "save": False})
        assert resp.status_code == 200
        assert resp.json()["report_id"] is None
        assert client.get("/api/reports").json() == []

    def test_invalid_submission(self, client, submission):
        del submission["risk_tolerance"]
        resp = client.post("/api/analyze", json={"user_data": submission})
        assert resp.status_code == 422
        detail = resp.json()["detail"]
        assert detail["message"] == "Invalid submission"
        assert detail["errors"]

    @pytest.mark.parametrize("value", ["nan", "Infinity", "-inf"])
    def test_non_finite_money_rejected(self, client, submission, value):
        submission["total_liquid_capital"] = value
        resp = client.post("/api/analyze", json={"user_data": submission})
        assert resp.status_code == 422
        assert resp.json()["detail"]["errors"] == ["Valid total liquid capital is required"]

    def test_unknown_methodology_rejected(self, client, submission):
        submission["analysis_methodology"] = "astrology"
        assert client.post("/api/analyze", json={"user_data": submission}).status_code == 422

    def test_unknown_engine(self, client, submission):
        resp = client.post("/api/analyze", json={"user_data": submission, "engine": "gpt-9"})
        assert resp.status_code == 400

    def test_unavailable_engine(self, client, submission):
        resp = client.post("/api/analyze", json={"user_data": submission, "engine": "off"})
        assert resp.status_code == 503

    def test_engine_failure(self, client, submission):
        resp = client.post("/api/analyze", json={"user_data": submission, "engine": "B"})
        assert resp.status_code == 502
        assert "upstream exploded" in resp.json()["detail"]


class TestCompareEndpoint:
    def test_compare_with_partial_failure(self, client, submission):
        resp = client.post("/api/analyze/compare",
                           json={"user_data": submission, "engines": ["traditional", "A", "B"]})
        assert resp.status_code == 200
        data = resp.json()
        assert set(data["results"]) == {"traditional", "A"}
        assert set(data["errors"]) == {"B"}
        comparison = data["comparison"]
        assert comparison["engine_count"] == 2
        assert comparison["archetype_agreement"] == pytest.approx(1.0)

    def test_single_success_has_no_comparison(self, client, submission):
        resp = client.post("/api/analyze/compare",
                           json={"user_data": submission, "engines": ["A", "B"]})
        assert resp.status_code == 200
        assert resp.json()["comparison"] is None

    def test_needs_two_engines(self, client, submission):
        resp = client.post("/api/analyze/compare", json={"user_data": submission, "engines": ["A"]})
        assert resp.status_code == 422

    def test_invalid_submission(self, client):
        resp = client.post("/api/analyze/compare", json={"user_data": {}, "engines": ["A", "traditional"]})
        assert resp.status_code == 422


class TestReportEndpoints:
    def test_report_lifecycle(self, client, submission):
        first = client.post("/api/analyze", json={"user_data": submission}).json()["report_id"]
        second = client.post("/api/analyze", json={"user_data": submission, "engine": "A"}).json()["report_id"]

        listed = client.get("/api/reports").json()
        assert {r["id"] for r in listed} == {first, second}
        assert listed[0]["archetype_title"] == "The Growth Catalyst"

        only_a = client.get("/api/reports", params={"engine": "A"}).json()
        assert [r["id"] for r in only_a] == [second]

        detail = client.get(f"/api/reports/{first}").json()
        assert detail["engine_id"] == "traditional"
        assert detail["user_data"]["customer_affinity"] == "b2b"
        assert detail["result"]["archetype"]["key"] == "sales_marketing"

        assert client.delete(f"/api/reports/{first}").json() == {"ok": True}
        assert client.get(f"/api/reports/{first}").status_code == 404
        assert client.delete(f"/api/reports/{first}").status_code == 404

    def test_limit(self, client, submission):
        for _ in range(3):
            client.post("/api/analyze", json={"user_data": submission, "engine": "A"})
        assert len(client.get("/api/reports", params={"limit": 2}).json()) == 2


class TestDatabaseSession:
    """Routes backed by the application's own session dependency."""

    @pytest.fixture()
    def live_client(self, orchestrator, monkeypatch, tmp_path):
        monkeypatch.setenv("BUYBOX_DATA_DIR", str(tmp_path))
        from buybox.app import app, get_orchestrator

        app.dependency_overrides[get_orchestrator] = lambda: orchestrator
        with TestClient(app) as c:
            yield c
        app.dependency_overrides.clear()

    def test_saved_report_is_committed(self, live_client, submission, tmp_path):
        report_id = live_client.post("/api/analyze", json={"user_data": submission}).json()["report_id"]
        assert (tmp_path / "buybox.db").exists()
        assert [r["id"] for r in live_client.get("/api/reports").json()] == [report_id]
        assert live_client.delete(f"/api/reports/{report_id}").json() == {"ok": True}
        assert live_client.get("/api/reports").json() == []
