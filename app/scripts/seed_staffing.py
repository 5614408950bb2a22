from __future__ import annotations

import argparse
import datetime
import sys
from pathlib import Path
from typing import Dict, List

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from database import (  # noqa: E402
    SETTINGS_COLLECTION,
    STAFFING_DOC,
    WAGES_DOC,
    SessionLocal,
    get_document,
    get_recurring_rules,
    init_database,
    load_monthly_data,
    save_monthly_data,
    save_rule,
    save_staffing_data,
    save_wage_settings,
)
from policy import default_monthly_inputs, default_wage_settings  # noqa: E402
from records import MonthlyPlanningData, RecurrenceRule, WageSettings  # noqa: E402
from roster import default_staffing_data, sanitize_staffing_data  # noqa: E402

SEED_ACTOR = "seed"

# Standing availability patterns for the default roster.
SAMPLE_RULES: List[Dict] = [
    # Second shift works Saturdays and takes Mondays off.
    {"technician_id": "lead_jordan_b", "days": [6], "status": "on", "hours": "2pm-10pm"},
    {"technician_id": "lead_jordan_b", "days": [1], "status": "off"},
    {"technician_id": "tech_tanner_g", "days": [6], "status": "on", "frequency": "every-other", "week_anchor": 1},
    {"technician_id": "tech_toby_m", "days": [6], "status": "on", "frequency": "every-other", "week_anchor": 2},
    # Demo tech is part-time midweek.
    {"technician_id": "tech_cody_dt", "days": [3], "status": "off"},
    {"technician_id": "tech_jesse_v", "days": [5], "status": "on", "hours": "7am-1pm"},
]


def seed_roster(session) -> bool:
    if get_document(session, SETTINGS_COLLECTION, STAFFING_DOC):
        print("[seed] Staffing data already present; leaving it in place.")
        return False
    save_staffing_data(session, sanitize_staffing_data(default_staffing_data()), actor=SEED_ACTOR)
    print("[seed] Stored default staffing data.")
    return True


def seed_rules(session) -> int:
    existing = {(rule.technician_id, tuple(rule.days), rule.status) for rule in get_recurring_rules(session)}
    created = 0
    for entry in SAMPLE_RULES:
        rule = RecurrenceRule.from_dict(entry)
        key = (rule.technician_id, tuple(rule.days), rule.status)
        if key in existing:
            continue
        save_rule(session, None, rule, actor=SEED_ACTOR)
        existing.add(key)
        created += 1
    return created


def seed_monthly_data(session, year: int, today: datetime.date) -> int:
    created = 0
    for month in range(1, 13):
        if load_monthly_data(session, year, month) is not None:
            continue
        data = MonthlyPlanningData.from_dict(default_monthly_inputs(month - 1, today))
        save_monthly_data(session, year, month, data, actor=SEED_ACTOR)
        created += 1
    return created


def seed_wages(session) -> bool:
    if get_document(session, SETTINGS_COLLECTION, WAGES_DOC):
        return False
    save_wage_settings(session, WageSettings.from_dict(default_wage_settings()), actor=SEED_ACTOR)
    return True


def seed_all(session_factory=None, *, year: int | None = None, today: datetime.date | None = None) -> Dict[str, int]:
    if session_factory is None:
        init_database()
    today = today or datetime.date.today()
    year = year or today.year
    factory = session_factory or SessionLocal
    with factory() as session:
        summary = {
            "roster": int(seed_roster(session)),
            "rules": seed_rules(session),
            "months": seed_monthly_data(session, year, today),
            "wages": int(seed_wages(session)),
        }
    print(
        f"[seed] Complete. Roster: {summary['roster']}, rules: {summary['rules']}, "
        f"months: {summary['months']}, wages: {summary['wages']}"
    )
    return summary


def main() -> None:
    parser = argparse.ArgumentParser(description="Load the default roster and planning inputs.")
    parser.add_argument("--year", type=int, default=None, help="Planning year to seed (defaults to this year).")
    args = parser.parse_args()
    seed_all(year=args.year)


if __name__ == "__main__":
    main()
