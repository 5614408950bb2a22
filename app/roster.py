from __future__ import annotations

import calendar
import datetime
import random
import string
import time
import unicodedata
from typing import Iterable, List, Optional

from policy import SECOND_SHIFT_ZONE
from records import Person, StaffingData, Zone
from roles import DEMO_TECH_ROLE, ROUTE_RUNNER_ROLE, role_matches


def flatten_roster(staffing: Optional[StaffingData]) -> List[Person]:
    """Return every person in the org tree once.

    Zone leads come before their members, zones in stored order, followed by
    management and warehouse. Empty lead slots are skipped and a person listed
    twice keeps their first position.
    """
    if staffing is None:
        return []
    people: List[Person] = []
    for zone in staffing.zones:
        if zone.lead is not None:
            people.append(zone.lead)
        people.extend(member for member in zone.members if member is not None)
    people.extend(person for person in staffing.management if person is not None)
    people.extend(person for person in staffing.warehouse if person is not None)

    seen_ids = set()
    unique: List[Person] = []
    for person in people:
        key = person.id or id(person)
        if key in seen_ids:
            continue
        seen_ids.add(key)
        unique.append(person)
    return unique


def find_person(roster: Iterable[Person], person_id: str) -> Optional[Person]:
    for person in roster:
        if person.id == person_id:
            return person
    return None


def name_sort_key(name: str):
    # accents and case are ignored for ordering; raw name breaks ties.
    name = name or ""
    decomposed = unicodedata.normalize("NFKD", name)
    folded = "".join(char for char in decomposed if not unicodedata.combining(char)).casefold()
    return (folded, name)


def last_day_of_month(year: int, month: int) -> datetime.date:
    return datetime.date(year, month, calendar.monthrange(year, month)[1])


def is_active(person: Optional[Person], reference_date: datetime.date) -> bool:
    if person is None:
        return False
    return person.end_date is None or person.end_date > reference_date


def is_done_training(person: Optional[Person], reference_date: datetime.date) -> bool:
    if person is None:
        return False
    if not person.in_training:
        return True
    return person.training_end_date is not None and person.training_end_date <= reference_date


def is_eligible_route_runner(person: Optional[Person], reference_date: datetime.date) -> bool:
    return is_active(person, reference_date) and is_done_training(person, reference_date)


def is_second_shift_lead(staffing: StaffingData, person: Person) -> bool:
    for zone in staffing.zones:
        if zone.name == SECOND_SHIFT_ZONE and zone.lead is not None and zone.lead.id == person.id:
            return True
    return False


def route_runner_headcount(staffing: Optional[StaffingData], reference_date: datetime.date) -> int:
    """Count eligible MIT Techs plus the eligible lead of the second-shift zone."""
    if staffing is None:
        return 0
    count = 0
    for zone in staffing.zones:
        for member in zone.members:
            if role_matches(member.role, ROUTE_RUNNER_ROLE) and is_eligible_route_runner(member, reference_date):
                count += 1
        if zone.name == SECOND_SHIFT_ZONE and is_eligible_route_runner(zone.lead, reference_date):
            count += 1
    return count


def monthly_headcount(staffing: Optional[StaffingData], year: int, month: int) -> int:
    return route_runner_headcount(staffing, last_day_of_month(year, month))


def total_staff(staffing: Optional[StaffingData]) -> int:
    """Zone seats: one lead slot per zone plus its members."""
    if staffing is None:
        return 0
    return sum(1 + len(zone.members) for zone in staffing.zones)


def demo_tech_count(staffing: Optional[StaffingData]) -> int:
    if staffing is None:
        return 0
    return sum(
        1 for zone in staffing.zones for member in zone.members if role_matches(member.role, DEMO_TECH_ROLE)
    )


def generate_person_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"person_{int(time.time() * 1000)}_{suffix}"


def sanitize_staffing_data(staffing: StaffingData) -> StaffingData:
    """Give every zone lead and member an id so overrides can reference them."""
    for zone in staffing.zones:
        if zone.lead is not None and not zone.lead.id:
            zone.lead.id = generate_person_id()
        for member in zone.members:
            if not member.id:
                member.id = generate_person_id()
    return staffing


def _seed_zone(name: str, lead: tuple, members: list) -> Zone:
    lead_id, lead_name = lead
    return Zone(
        name=name,
        lead=Person(id=lead_id, name=lead_name, role="MIT Lead", zone_name=name),
        members=[Person(id=pid, name=pname, role=role, zone_name=name) for pid, pname, role in members],
    )


def default_staffing_data() -> StaffingData:
    return StaffingData(
        zones=[
            _seed_zone("Zone 1", ("lead_josh_g", "Josh G"), [
                ("tech_jesse_v", "Jesse V", "MIT Tech"),
                ("tech_recardo_m", "Recardo M", "MIT Tech"),
                ("tech_cody_dt", "Cody (DT?)", "Demo Tech"),
            ]),
            _seed_zone("Zone 2", ("lead_hardie_j", "Hardie J"), [
                ("tech_jacob_b", "Jacob B", "MIT Tech"),
                ("tech_gregg_v", "Gregg V", "MIT Tech"),
                ("tech_braeden_p", "Braeden P", "MIT Tech"),
            ]),
            _seed_zone("Zone 3", ("lead_nathaniel_f", "Nathaniel F"), [
                ("tech_alex_c", "Alex C", "MIT Tech"),
                ("tech_von_n", "Von N", "MIT Tech"),
                ("tech_jose_e", "Jose E", "MIT Tech"),
            ]),
            _seed_zone("Zone 4", ("lead_jacob_c", "Jacob C"), [
                ("tech_chris_r", "Chris R", "MIT Tech"),
                ("tech_preston", "Preston", "MIT Tech"),
                ("tech_aj_garcia", "AJ Garcia", "MIT Tech"),
            ]),
            _seed_zone("Zone 5", ("lead_chandler_h", "Chandler H"), [
                ("tech_sterlin_w", "Sterlin W", "MIT Tech"),
                ("tech_justin_h", "Justin H", "MIT Tech"),
                ("tech_nate_d", "Nate D", "MIT Tech"),
            ]),
            _seed_zone(SECOND_SHIFT_ZONE, ("lead_jordan_b", "Jordan B"), [
                ("tech_tanner_g", "Tanner G", "MIT Tech"),
                ("tech_toby_m", "Toby M", "MIT Tech"),
                ("tech_dominik_d", "Dominik D", "MIT Tech"),
            ]),
        ],
        management=[Person(id="mgr_jason_brannon", name="Jason Brannon", role="Manager")],
    )
