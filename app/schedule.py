from __future__ import annotations

import calendar
import datetime
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from policy import SOURCE_SPECIFIC_OVERRIDE, STATUS_ON, weekday_index
from records import (
    DaySchedule,
    MonthOverrides,
    OverrideEntry,
    Person,
    RecurrenceRule,
    ResolvedEntry,
    ResolvedSchedule,
    StaffingData,
)
from recurrence import resolve_default_status
from roles import DEMO_TECH_ROLE, ROUTE_RUNNER_ROLE, ZONE_LEAD_ROLE, role_matches
from roster import find_person, is_eligible_route_runner, is_second_shift_lead, name_sort_key


logger = logging.getLogger(__name__)


def _group_rules(rules: Iterable[RecurrenceRule]) -> Dict[str, List[RecurrenceRule]]:
    grouped: Dict[str, List[RecurrenceRule]] = {}
    for rule in rules:
        grouped.setdefault(rule.technician_id, []).append(rule)
    return grouped


def get_resolved_schedule_for_day(
    date_: datetime.date,
    overrides: Optional[MonthOverrides],
    roster: Sequence[Person],
    rules: Iterable[RecurrenceRule] = (),
) -> ResolvedSchedule:
    """Resolve every roster person's status for one date.

    ``overrides`` is the override map for the month containing ``date_``;
    ``rules`` is the current rule snapshot for everyone.
    """
    if isinstance(date_, datetime.datetime):
        date_ = date_.date()
    day_schedule = overrides.for_day(date_.day) if overrides is not None else None
    rules_by_person = _group_rules(rules)
    resolved = ResolvedSchedule(date=date_, notes=day_schedule.notes if day_schedule else "")
    for person in roster:
        if person is None:
            continue
        default = resolve_default_status(person, date_, rules_by_person.get(person.id, []))
        entry = ResolvedEntry(person=person, status=default.status, hours=default.hours, source=default.source)
        specific = day_schedule.entry_for(person.id) if day_schedule else None
        if specific is not None:
            entry.status = specific.status
            entry.hours = specific.hours or ""
            entry.source = SOURCE_SPECIFIC_OVERRIDE
        resolved.staff.append(entry)
    resolved.staff.sort(key=lambda item: name_sort_key(item.name))
    return resolved


def month_dates(year: int, month: int) -> List[datetime.date]:
    days = calendar.monthrange(year, month)[1]
    return [datetime.date(year, month, day) for day in range(1, days + 1)]


def resolve_month(
    year: int,
    month: int,
    overrides: Optional[MonthOverrides],
    roster: Sequence[Person],
    rules: Sequence[RecurrenceRule] = (),
) -> List[ResolvedSchedule]:
    return [get_resolved_schedule_for_day(day, overrides, roster, rules) for day in month_dates(year, month)]


def actual_staffing_for_month(
    year: int,
    month: int,
    overrides: Optional[MonthOverrides],
    roster: Sequence[Person],
    rules: Sequence[RecurrenceRule] = (),
) -> List[int]:
    """Per day of the month, how many eligible MIT Techs resolve to "on"."""
    techs = [person for person in roster if role_matches(person.role, ROUTE_RUNNER_ROLE)]
    staffing: List[int] = []
    for day in month_dates(year, month):
        schedule = get_resolved_schedule_for_day(day, overrides, roster, rules)
        count = 0
        for tech in techs:
            if not is_eligible_route_runner(tech, day):
                continue
            entry = schedule.entry_for(tech.id)
            if entry is not None and entry.status == STATUS_ON:
                count += 1
        staffing.append(count)
    return staffing


def _count_on(schedule: ResolvedSchedule, people: Iterable[Person]) -> int:
    count = 0
    for person in people:
        entry = schedule.entry_for(person.id)
        if entry is not None and entry.status == STATUS_ON:
            count += 1
    return count


def route_runners_on(schedule: ResolvedSchedule, staffing: StaffingData, roster: Sequence[Person]) -> int:
    """MIT Techs out of training plus the second-shift lead who are on for the day."""
    runners = [
        person
        for person in roster
        if (role_matches(person.role, ROUTE_RUNNER_ROLE) and not person.in_training)
        or (role_matches(person.role, ZONE_LEAD_ROLE) and is_second_shift_lead(staffing, person))
    ]
    return _count_on(schedule, runners)


def demo_techs_on(schedule: ResolvedSchedule, roster: Sequence[Person]) -> int:
    return _count_on(schedule, [person for person in roster if role_matches(person.role, DEMO_TECH_ROLE)])


def build_override_entries(
    edits: Iterable[Mapping[str, Any]],
    date_: datetime.date,
    roster: Sequence[Person],
    rules: Sequence[RecurrenceRule] = (),
) -> List[OverrideEntry]:
    """Turn a day's edited statuses into override entries.

    Only edits that differ from the person's resolved default are kept, so
    saving a day never pins values the recurrence already produces.
    """
    rules_by_person = _group_rules(rules)
    entries: List[OverrideEntry] = []
    for edit in edits:
        entry = OverrideEntry.from_dict(edit)
        person = find_person(roster, entry.id)
        if person is None:
            logger.warning("Skipping schedule entry for unknown person id %s on %s", entry.id, date_)
            continue
        default = resolve_default_status(person, date_, rules_by_person.get(person.id, []))
        if entry.status != default.status or entry.hours != default.hours:
            entries.append(entry)
    return entries


def merge_override_staff(existing: Iterable[OverrideEntry], updates: Iterable[OverrideEntry]) -> List[OverrideEntry]:
    """Replace entries with a matching id in place, append the rest."""
    merged = list(existing)
    positions = {entry.id: index for index, entry in enumerate(merged)}
    for entry in updates:
        if entry.id in positions:
            merged[positions[entry.id]] = entry
            continue
        positions[entry.id] = len(merged)
        merged.append(entry)
    return merged


def merge_day_schedule(existing: Optional[DaySchedule], update: DaySchedule) -> DaySchedule:
    if existing is None:
        return DaySchedule(date=update.date, notes=update.notes, staff=list(update.staff))
    return DaySchedule(
        date=update.date or existing.date,
        notes=update.notes,
        staff=merge_override_staff(existing.staff, update.staff),
    )


def upcoming_weekends(today: datetime.date, count: int = 4) -> List[Dict[str, datetime.date]]:
    """The next ``count`` Saturday/Sunday pairs starting from ``today`` inclusive."""
    offset = (6 - weekday_index(today)) % 7
    saturday = today + datetime.timedelta(days=offset)
    weekends = []
    for _ in range(max(0, count)):
        weekends.append({"saturday": saturday, "sunday": saturday + datetime.timedelta(days=1)})
        saturday += datetime.timedelta(days=7)
    return weekends


def working_staff(schedule: ResolvedSchedule) -> List[ResolvedEntry]:
    return [entry for entry in schedule.staff if entry.status == STATUS_ON or entry.hours]


def weekend_report(
    today: datetime.date,
    overrides_for_month,
    roster: Sequence[Person],
    rules: Sequence[RecurrenceRule] = (),
    *,
    count: int = 4,
) -> Dict[str, Any]:
    """Who works the upcoming weekends.

    ``overrides_for_month`` is a callable ``(year, month) -> MonthOverrides``
    so weekends that cross into the next month read the right overrides.
    """
    cache: Dict[tuple, MonthOverrides] = {}

    def _overrides(day: datetime.date) -> MonthOverrides:
        key = (day.year, day.month)
        if key not in cache:
            cache[key] = overrides_for_month(day.year, day.month)
        return cache[key]

    weekends = []
    for pair in upcoming_weekends(today, count):
        days = []
        for label in ("saturday", "sunday"):
            day = pair[label]
            schedule = get_resolved_schedule_for_day(day, _overrides(day), roster, rules)
            days.append(
                {
                    "day": label,
                    "date": day.isoformat(),
                    "working": [{"id": e.id, "name": e.name, "hours": e.hours} for e in working_staff(schedule)],
                    "notes": schedule.notes,
                }
            )
        weekends.append(days)
    start = weekends[0][0]["date"] if weekends else None
    end = weekends[-1][-1]["date"] if weekends else None
    return {"start": start, "end": end, "weekends": weekends}
