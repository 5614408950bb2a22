from __future__ import annotations

import datetime
import sys
from pathlib import Path

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from records import Person, StaffingData  # noqa: E402
from roles import canonical_role, role_group, role_matches  # noqa: E402
from roster import (  # noqa: E402
    default_staffing_data,
    demo_tech_count,
    flatten_roster,
    generate_person_id,
    is_active,
    is_done_training,
    is_eligible_route_runner,
    monthly_headcount,
    name_sort_key,
    route_runner_headcount,
    sanitize_staffing_data,
    total_staff,
)


def _staffing_payload():
    return {
        "zones": [
            {
                "name": "Zone 1",
                "lead": {"id": "lead1", "name": "Lead One", "role": "MIT Lead"},
                "members": [
                    {"id": "tech1", "name": "Tech One", "role": "MIT Tech"},
                    {"id": "tech2", "name": "Tech Two", "role": "mit tech", "inTraining": True},
                ],
            },
            {"name": "Zone 2", "lead": None, "members": [{"id": "tech1", "name": "Tech One", "role": "MIT Tech"}]},
        ],
        "management": [{"id": "mgr", "name": "Manny", "role": "Manager"}],
        "warehouse": [{"id": "wh", "name": "Wes", "role": "Warehouse"}],
    }


def test_flatten_orders_and_dedupes():
    roster = flatten_roster(StaffingData.from_dict(_staffing_payload()))
    assert [person.id for person in roster] == ["lead1", "tech1", "tech2", "mgr", "wh"]
    assert roster[1].zone_name == "Zone 1"


def test_flatten_handles_missing_lists():
    assert flatten_roster(StaffingData.from_dict({"zones": [{"name": "Empty"}]})) == []
    assert flatten_roster(None) == []


def test_legacy_keys_and_role_case_are_normalized():
    staffing = StaffingData.from_dict(_staffing_payload())
    trainee = staffing.zones[0].members[1]
    assert trainee.in_training is True
    assert trainee.role == "MIT Tech"


def test_activity_and_training_boundaries():
    day = datetime.date(2024, 3, 31)
    leaving = Person(id="p", name="P", end_date=day)
    assert not is_active(leaving, day)
    assert is_active(leaving, day - datetime.timedelta(days=1))

    finishing = Person(id="q", name="Q", in_training=True, training_end_date=day)
    assert is_done_training(finishing, day)
    assert not is_done_training(finishing, day - datetime.timedelta(days=1))

    forever = Person(id="r", name="R", in_training=True)
    assert not is_eligible_route_runner(forever, day)
    assert not is_eligible_route_runner(None, day)


def test_headcount_counts_techs_and_second_shift_lead():
    staffing = default_staffing_data()
    # 17 MIT Techs across the zones plus the second-shift lead.
    assert monthly_headcount(staffing, 2024, 3) == 18
    assert demo_tech_count(staffing) == 1
    assert total_staff(staffing) == 24


def test_headcount_uses_last_day_of_month():
    staffing = StaffingData.from_dict(
        {
            "zones": [
                {
                    "name": "Zone 1",
                    "members": [
                        {"id": "a", "name": "A", "role": "MIT Tech", "training_end_date": "2024-02-29", "in_training": True},
                        {"id": "b", "name": "B", "role": "MIT Tech", "end_date": "2024-02-29"},
                    ],
                }
            ]
        }
    )
    assert monthly_headcount(staffing, 2024, 2) == 1
    assert route_runner_headcount(staffing, datetime.date(2024, 2, 28)) == 1
    assert monthly_headcount(staffing, 2024, 3) == 1


def test_sanitize_assigns_missing_ids():
    staffing = StaffingData.from_dict({"zones": [{"name": "Z", "lead": {"name": "L"}, "members": [{"name": "M"}]}]})
    sanitize_staffing_data(staffing)
    ids = [person.id for person in flatten_roster(staffing)]
    assert all(person_id.startswith("person_") for person_id in ids)
    assert len(set(ids)) == 2


def test_generated_ids_are_unique():
    assert len({generate_person_id() for _ in range(50)}) == 50


def test_role_helpers():
    assert canonical_role("fleet safety") == "Fleet Safety"
    assert role_group("Demo Tech") == "Field"
    assert role_matches("mit tech", "MIT Tech")


def test_name_sort_ignores_accents_and_case():
    names = ["Zed", "Émile", "bea", "Eli"]
    assert sorted(names, key=name_sort_key) == ["bea", "Eli", "Émile", "Zed"]
