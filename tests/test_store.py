from __future__ import annotations

import dataclasses
import datetime
import json
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

import database as db  # noqa: E402
from database import (  # noqa: E402
    Document,
    RULES_COLLECTION,
    SCHEDULES_COLLECTION,
    SETTINGS_COLLECTION,
    STAFFING_DOC,
    delete_document,
    delete_rule,
    get_day_schedule,
    get_document,
    get_overrides_for_month,
    get_recurring_rules,
    get_roster,
    get_rules_for_person,
    init_database,
    list_audit_log,
    load_all_monthly_data,
    load_monthly_data,
    load_staffing_data,
    load_wage_settings,
    save_monthly_data,
    save_override,
    save_rule,
    save_staffing_data,
    save_wage_settings,
    set_document,
)
from planning import (  # noqa: E402
    forecast_for_month,
    planning_for_month,
    planning_for_year,
    resolved_day,
    save_day_edits,
    update_month_inputs,
)
from policy import SOURCE_SPECIFIC_OVERRIDE, SOURCE_WEEKDAY_DEFAULT  # noqa: E402
from records import DaySchedule, MonthlyPlanningData, OverrideEntry, RecurrenceRule, StaffingData, WageSettings  # noqa: E402
from scripts.seed_staffing import seed_all  # noqa: E402


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_database(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False, future=True)
    yield factory
    engine.dispose()


@pytest.fixture()
def session(session_factory):
    with session_factory() as session:
        yield session


def _staffing() -> StaffingData:
    return StaffingData.from_dict(
        {
            "zones": [
                {
                    "name": "Zone 1",
                    "lead": {"id": "lead1", "name": "Lena", "role": "MIT Lead"},
                    "members": [{"id": "alice", "name": "Alice", "role": "MIT Tech"}],
                }
            ]
        }
    )


def test_set_document_merges_nested_maps(session):
    set_document(session, "misc", "doc", {"a": 1, "nested": {"x": 1, "y": 2}})
    set_document(session, "misc", "doc", {"nested": {"y": 3}, "b": 2}, merge=True)
    assert get_document(session, "misc", "doc") == {"a": 1, "b": 2, "nested": {"x": 1, "y": 3}}

    set_document(session, "misc", "doc", {"only": True})
    assert get_document(session, "misc", "doc") == {"only": True}


def test_set_document_rejects_non_objects(session):
    with pytest.raises(ValueError):
        set_document(session, "misc", "doc", ["not", "a", "map"])


def test_delete_and_missing_documents(session):
    assert get_document(session, "misc", "nope") is None
    set_document(session, "misc", "gone", {"v": 1})
    assert delete_document(session, "misc", "gone") is True
    assert delete_document(session, "misc", "gone") is False


def test_malformed_payload_reads_as_empty(session):
    session.add(Document(collection=SCHEDULES_COLLECTION, doc_id="2024-03-04", payloadJSON="{broken"))
    session.commit()
    assert get_document(session, SCHEDULES_COLLECTION, "2024-03-04") == {}


def test_staffing_falls_back_to_defaults_and_persists_generated_ids(session):
    assert len(load_staffing_data(session).zones) == 6

    set_document(session, SETTINGS_COLLECTION, STAFFING_DOC, {"zones": [{"name": "Z", "members": [{"name": "New"}]}]})
    first = load_staffing_data(session).zones[0].members[0].id
    second = load_staffing_data(session).zones[0].members[0].id
    assert first and first == second


def test_rules_keep_insertion_order_and_update(session):
    save_rule(session, "r-b", RecurrenceRule.from_dict({"technician_id": "alice", "days": [1], "status": "off"}))
    save_rule(session, "r-a", RecurrenceRule.from_dict({"technician_id": "alice", "days": [2], "status": "sick"}))
    save_rule(session, "r-c", RecurrenceRule.from_dict({"technician_id": "bob", "days": [3]}))
    assert [rule.id for rule in get_recurring_rules(session)] == ["r-b", "r-a", "r-c"]
    assert [rule.id for rule in get_rules_for_person(session, "alice")] == ["r-b", "r-a"]

    updated = save_rule(session, "r-b", RecurrenceRule.from_dict({"technician_id": "alice", "days": [1, 5]}))
    assert updated.days == [1, 5]
    assert [rule.id for rule in get_recurring_rules(session)][0] == "r-b"

    assert delete_rule(session, "r-a") is True
    assert delete_rule(session, "r-a") is False
    assert [rule.id for rule in get_rules_for_person(session, "alice")] == ["r-b"]


def test_clearing_a_legacy_rule_start_date_sticks(session):
    set_document(
        session,
        RULES_COLLECTION,
        "legacy",
        {"technicianId": "alice", "days": [1], "status": "off", "startDate": "2024-06-01"},
    )
    rule = get_recurring_rules(session)[0]
    assert rule.start_date == datetime.date(2024, 6, 1)

    saved = save_rule(session, rule.id, dataclasses.replace(rule, start_date=None))
    assert saved.start_date is None
    assert get_recurring_rules(session)[0].start_date is None
    assert "startDate" not in get_document(session, RULES_COLLECTION, "legacy")


def test_save_rule_generates_id(session):
    saved = save_rule(session, None, RecurrenceRule.from_dict({"technician_id": "alice", "days": [1]}))
    assert saved.id.startswith("rule_")
    assert get_document(session, RULES_COLLECTION, saved.id)["technician_id"] == "alice"


def test_save_override_merges_staff_by_id(session):
    day = datetime.date(2024, 3, 15)
    save_override(session, day, DaySchedule(notes="first", staff=[OverrideEntry(id="alice", status="sick")]))
    save_override(
        session,
        day,
        DaySchedule(
            notes="second",
            staff=[OverrideEntry(id="bob", status="off"), OverrideEntry(id="alice", status="on", hours="9-1")],
        ),
    )
    stored = get_day_schedule(session, day)
    assert stored.notes == "second"
    assert [(entry.id, entry.status, entry.hours) for entry in stored.staff] == [
        ("alice", "on", "9-1"),
        ("bob", "off", ""),
    ]


def test_overrides_for_month_are_keyed_by_day(session):
    save_override(session, datetime.date(2024, 3, 1), DaySchedule(staff=[OverrideEntry(id="a", status="off")]))
    save_override(session, datetime.date(2024, 3, 31), DaySchedule(staff=[OverrideEntry(id="a", status="sick")]))
    save_override(session, datetime.date(2024, 4, 1), DaySchedule(staff=[OverrideEntry(id="a", status="on")]))
    overrides = get_overrides_for_month(session, 2024, 3)
    assert sorted(overrides.specific) == [1, 31]
    assert overrides.for_day(31).staff[0].status == "sick"
    assert overrides.for_day(15) is None


def test_monthly_data_round_trip_and_year_listing(session):
    save_monthly_data(session, 2024, 3, MonthlyPlanningData(leads_target=400, booking_rate=0.8))
    save_monthly_data(session, 2024, 11, MonthlyPlanningData(leads_target=300))
    save_monthly_data(session, 2025, 1, MonthlyPlanningData(leads_target=1))
    assert load_monthly_data(session, 2024, 3).leads_target == 400
    assert load_monthly_data(session, 2024, 4) is None
    assert sorted(load_all_monthly_data(session, 2024)) == [3, 11]


def test_wages_fill_missing_fields_from_defaults(session):
    assert load_wage_settings(session).foreman_wage == 59000.0
    set_document(session, SETTINGS_COLLECTION, "wage_settings", {"avgHourlyBaseWage": 22})
    wages = load_wage_settings(session)
    assert wages.avg_hourly_base_wage == 22.0
    assert wages.mit_manager_wage == 100000.0

    save_wage_settings(session, WageSettings(avg_hourly_base_wage=25))
    assert load_wage_settings(session).avg_hourly_base_wage == 25.0


def test_wage_keys_prefer_snake_case_and_skip_nulls(session):
    set_document(
        session,
        SETTINGS_COLLECTION,
        "wage_settings",
        {"avgHourlyBaseWage": 21, "avg_hourly_base_wage": 19, "avgOTWage": None},
    )
    wages = load_wage_settings(session)
    assert wages.avg_hourly_base_wage == 19.0
    assert wages.avg_ot_wage == 29.28


def test_writes_are_audited(session):
    save_staffing_data(session, _staffing(), actor="dana")
    save_rule(session, "r1", RecurrenceRule.from_dict({"technician_id": "alice", "days": [1]}), actor="dana")
    actions = [entry.action for entry in list_audit_log(session)]
    assert "SAVE_STAFFING" in actions and "SAVE_RULE" in actions
    assert all(entry.user_id == "dana" for entry in list_audit_log(session))


def test_save_day_edits_stores_only_differences(session):
    save_staffing_data(session, _staffing())
    monday = datetime.date(2024, 3, 4)
    resolved = save_day_edits(
        session,
        monday,
        [{"id": "alice", "status": "vacation"}, {"id": "lead1", "status": "on"}],
        notes="spring break",
    )
    assert resolved.entry_for("alice").source == SOURCE_SPECIFIC_OVERRIDE
    assert resolved.notes == "spring break"
    stored = json.loads(json.dumps(get_document(session, SCHEDULES_COLLECTION, "2024-03-04")))
    assert [entry["id"] for entry in stored["staff"]] == ["alice"]
    assert resolved_day(session, monday).entry_for("lead1").status == "on"


def test_reverting_an_edit_restores_the_default(session):
    save_staffing_data(session, _staffing())
    monday = datetime.date(2024, 3, 4)
    save_day_edits(session, monday, [{"id": "alice", "status": "sick"}, {"id": "lead1", "status": "off"}])
    assert resolved_day(session, monday).entry_for("alice").status == "sick"

    resolved = save_day_edits(session, monday, [{"id": "alice", "status": "on", "hours": ""}])
    alice = resolved.entry_for("alice")
    assert (alice.status, alice.source) == ("on", SOURCE_WEEKDAY_DEFAULT)
    assert resolved.entry_for("lead1").status == "off"
    assert [entry.id for entry in get_day_schedule(session, monday).staff] == ["lead1"]


def test_planning_defaults_and_updates(session):
    save_staffing_data(session, _staffing())
    today = datetime.date(2024, 1, 10)
    seeded = planning_for_month(session, 2024, 3, today=today)
    assert seeded.leads_target == 361
    assert seeded.current_staffing_level == 1
    assert seeded.total_labor_spend > 0

    updated = update_month_inputs(session, 2024, 3, {"leads_target": 1000, "bogus": 5}, today=today)
    assert updated.leads_target == 1000
    stored = get_document(session, "monthly_data", "2024-03")
    assert stored["leads_target"] == 1000
    assert stored["projected_jobs"] == updated.projected_jobs

    year = planning_for_year(session, 2024, today=today)
    assert year[3].leads_target == 1000
    assert year[4].leads_target == 391

    forecast = forecast_for_month(session, 2024, 3, today=today)
    assert len(forecast["daily_routes_needed"]) == 31
    assert len(forecast["actual_staffing"]) == 31
    assert forecast["actual_staffing"][0] == 1


def test_seed_is_idempotent(session_factory):
    first = seed_all(session_factory, year=2024, today=datetime.date(2024, 1, 10))
    assert first == {"roster": 1, "rules": 6, "months": 12, "wages": 1}
    second = seed_all(session_factory, year=2024, today=datetime.date(2024, 1, 10))
    assert second == {"roster": 0, "rules": 0, "months": 0, "wages": 0}
    with session_factory() as session:
        assert len(get_roster(session)) == 25
