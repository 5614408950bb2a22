from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

import api  # noqa: E402
import database  # noqa: E402
from database import init_database  # noqa: E402


@pytest.fixture()
def client(monkeypatch):
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_database(engine)
    monkeypatch.setattr(database, "SessionLocal", sessionmaker(bind=engine, expire_on_commit=False, future=True))
    yield TestClient(api.app)
    engine.dispose()


def _entry(payload, person_id):
    return next(item for item in payload["staff"] if item["id"] == person_id)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_roster_lists_default_people(client):
    payload = client.get("/api/v1/roster").json()
    people = payload["people"]
    assert len(people) == 25
    assert people[0]["id"] == "lead_josh_g"
    assert payload["roles"]["Field"] == ["Demo Tech", "MIT Lead", "MIT Tech"]
    assert payload["roles"]["Management"] == ["Manager"]


def test_rule_schedule_and_override_round_trip(client):
    response = client.post(
        "/api/v1/rules/tech_jesse_v",
        json={"days": [6], "status": "on", "hours": "8am-12pm", "actor": "dana"},
    )
    assert response.status_code == 200
    rule_id = response.json()["rule"]["id"]
    assert response.json()["warnings"] == []

    saturday = client.get("/api/v1/schedule/2024-03-16").json()
    entry = _entry(saturday, "tech_jesse_v")
    assert (entry["status"], entry["hours"], entry["source"]) == ("on", "8am-12pm", "Recurring Rule")
    assert _entry(saturday, "tech_gregg_v")["source"] == "Weekend Default"

    edited = client.post(
        "/api/v1/schedule/2024-03-16",
        json={"notes": "rain day", "staff": [{"id": "tech_jesse_v", "status": "sick"}]},
    ).json()
    assert edited["notes"] == "rain day"
    entry = _entry(edited, "tech_jesse_v")
    assert (entry["status"], entry["source"]) == ("sick", "Specific Override")

    rules = client.get("/api/v1/rules/tech_jesse_v").json()["rules"]
    assert [rule["id"] for rule in rules] == [rule_id]

    assert client.delete(f"/api/v1/rules/item/{rule_id}").status_code == 200
    assert client.delete(f"/api/v1/rules/item/{rule_id}").status_code == 404


def test_day_reports_route_runner_and_demo_tech_counts(client):
    monday = client.get("/api/v1/schedule/2024-03-04").json()
    assert (monday["route_runners"], monday["demo_techs"]) == (18, 1)
    sunday = client.get("/api/v1/schedule/2024-03-10").json()
    assert (sunday["route_runners"], sunday["demo_techs"]) == (0, 0)

    client.post("/api/v1/schedule/2024-03-04", json={"staff": [{"id": "tech_jesse_v", "status": "sick"}]})
    assert client.get("/api/v1/schedule/2024-03-04").json()["route_runners"] == 17


def test_overlapping_rule_returns_warning(client):
    client.post("/api/v1/rules/tech_jesse_v", json={"days": [1, 2], "status": "off"})
    response = client.post("/api/v1/rules/tech_jesse_v", json={"days": [2], "status": "on"})
    assert response.status_code == 200
    assert [warning["days"] for warning in response.json()["warnings"]] == [[2]]
    assert len(client.get("/api/v1/rules").json()["warnings"]) == 1


def test_bad_requests(client):
    assert client.get("/api/v1/schedule/2024-13-40").status_code == 400
    assert client.post("/api/v1/schedule/not-a-date", json={"staff": []}).status_code == 400
    assert client.post("/api/v1/schedule/2024-03-16", json={"staff": "nope"}).status_code == 400
    assert client.get("/api/v1/rules/nobody").status_code == 404
    assert client.post("/api/v1/rules/nobody", json={"days": [1]}).status_code == 404
    assert client.post("/api/v1/rules/tech_jesse_v", json={"days": []}).status_code == 400
    assert client.get("/api/v1/planning/2024/13").status_code == 400
    assert client.get("/api/v1/planning/0").status_code == 400
    assert client.get("/api/v1/reports/weekends", params={"today": "soon"}).status_code == 400


def test_month_schedule_covers_every_day(client):
    payload = client.get("/api/v1/schedule/month/2024/2").json()
    assert len(payload["days"]) == 29
    assert len(payload["days"][0]["staff"]) == 25


def test_planning_update_and_forecast(client):
    before = client.get("/api/v1/planning/2024/3").json()
    assert before["data"]["current_staffing_level"] == 18

    response = client.post("/api/v1/planning/2024/3", json={"inputs": {"leads_target": 2000, "days_in_month": 21}})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["leads_target"] == 2000
    assert data["projected_jobs"] > before["data"]["projected_jobs"]

    forecast = client.get("/api/v1/forecast/2024/3").json()
    assert len(forecast["daily_routes_needed"]) == 31
    assert len(forecast["actual_staffing"]) == 31
    assert forecast["day_counts"] == {"weekday": 21, "saturday": 5, "sunday": 5}


def test_weekend_report(client):
    report = client.get("/api/v1/reports/weekends", params={"today": "2024-03-13", "count": 2}).json()
    assert report["start"] == "2024-03-16"
    assert report["end"] == "2024-03-24"
    assert len(report["weekends"]) == 2


def test_annual_planning_covers_every_month(client):
    client.post("/api/v1/planning/2024/3", json={"inputs": {"leads_target": 2000}})
    payload = client.get("/api/v1/planning/2024").json()
    assert payload["year"] == 2024
    assert sorted(payload["months"], key=int) == [str(month) for month in range(1, 13)]
    assert payload["months"]["3"]["leads_target"] == 2000
    assert all(month["current_staffing_level"] == 18 for month in payload["months"].values())
    assert isinstance(payload["average_staffing_delta"], float)
