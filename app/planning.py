"""Glue between the document store and the pure scheduling/forecast core.

Every function reads a fresh snapshot (roster, rules, overrides, planning
data) from the session and hands it to the core explicitly; nothing is
cached between calls.
"""

from __future__ import annotations

import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from calculations import average_staffing_delta, calculate_all_months, calculate_month, monthly_forecast
from database import (
    get_day_schedule,
    get_overrides_for_month,
    get_recurring_rules,
    load_all_monthly_data,
    load_monthly_data,
    load_staffing_data,
    load_wage_settings,
    save_monthly_data,
    save_override,
)
from policy import default_monthly_inputs
from records import DaySchedule, MonthlyPlanningData, OverrideEntry, ResolvedSchedule
from roster import flatten_roster, monthly_headcount
from schedule import (
    actual_staffing_for_month,
    build_override_entries,
    demo_techs_on,
    get_resolved_schedule_for_day,
    merge_override_staff,
    resolve_month,
    route_runners_on,
    weekend_report,
)


def resolved_day(session, date_: datetime.date) -> ResolvedSchedule:
    roster = flatten_roster(load_staffing_data(session))
    overrides = get_overrides_for_month(session, date_.year, date_.month)
    return get_resolved_schedule_for_day(date_, overrides, roster, get_recurring_rules(session))


def day_summary(session, date_: datetime.date) -> Dict[str, Any]:
    """The resolved day plus how many route runners and demo techs are on."""
    staffing = load_staffing_data(session)
    roster = flatten_roster(staffing)
    overrides = get_overrides_for_month(session, date_.year, date_.month)
    schedule = get_resolved_schedule_for_day(date_, overrides, roster, get_recurring_rules(session))
    return {
        **schedule.to_dict(),
        "route_runners": route_runners_on(schedule, staffing, roster),
        "demo_techs": demo_techs_on(schedule, roster),
    }


def resolved_month(session, year: int, month: int) -> List[ResolvedSchedule]:
    roster = flatten_roster(load_staffing_data(session))
    overrides = get_overrides_for_month(session, year, month)
    return resolve_month(year, month, overrides, roster, get_recurring_rules(session))


def save_day_edits(
    session,
    date_: datetime.date,
    edits: Iterable[Mapping[str, Any]],
    *,
    notes: str = "",
    actor: str = "system",
) -> ResolvedSchedule:
    """Store the edits that differ from each person's default and return the re-resolved day.

    An edit back to the default removes that person's stored override;
    overrides for people not named in ``edits`` are kept.
    """
    edits = list(edits)
    roster = flatten_roster(load_staffing_data(session))
    edited = {OverrideEntry.from_dict(edit).id for edit in edits}
    existing = get_day_schedule(session, date_)
    kept = [entry for entry in existing.staff if entry.id not in edited] if existing else []
    entries = build_override_entries(edits, date_, roster, get_recurring_rules(session))
    schedule = DaySchedule(date=date_, notes=notes, staff=merge_override_staff(kept, entries))
    save_override(session, date_, schedule, actor=actor, replace=True)
    return resolved_day(session, date_)


def planning_for_month(session, year: int, month: int, *, today: Optional[datetime.date] = None) -> MonthlyPlanningData:
    """Stored inputs (or the seed defaults) with all outputs recomputed."""
    data = load_monthly_data(session, year, month)
    if data is None:
        data = MonthlyPlanningData.from_dict(default_monthly_inputs(month - 1, today))
    staffing = load_staffing_data(session)
    return calculate_month(
        data,
        monthly_headcount(staffing, year, month),
        load_wage_settings(session),
        len(staffing.zones),
    )


def planning_for_year(session, year: int, *, today: Optional[datetime.date] = None) -> Dict[int, MonthlyPlanningData]:
    stored = load_all_monthly_data(session, year)
    monthly = {
        month: stored.get(month) or MonthlyPlanningData.from_dict(default_monthly_inputs(month - 1, today))
        for month in range(1, 13)
    }
    return calculate_all_months(year, monthly, load_staffing_data(session), load_wage_settings(session))


def annual_summary(session, year: int, *, today: Optional[datetime.date] = None) -> Dict[str, Any]:
    monthly = planning_for_year(session, year, today=today)
    return {
        "year": year,
        "months": {month: data.to_dict() for month, data in monthly.items()},
        "average_staffing_delta": average_staffing_delta(monthly),
    }


def update_month_inputs(
    session,
    year: int,
    month: int,
    changes: Mapping[str, Any],
    *,
    actor: str = "system",
    today: Optional[datetime.date] = None,
) -> MonthlyPlanningData:
    """Apply input changes, recompute, and cache the outputs on the month document."""
    current = planning_for_month(session, year, month, today=today)
    staffing = load_staffing_data(session)
    updated = calculate_month(
        current.with_inputs(**dict(changes)),
        monthly_headcount(staffing, year, month),
        load_wage_settings(session),
        len(staffing.zones),
    )
    save_monthly_data(session, year, month, updated, actor=actor)
    return updated


def forecast_for_month(session, year: int, month: int, *, today: Optional[datetime.date] = None) -> Dict[str, Any]:
    data = planning_for_month(session, year, month, today=today)
    roster = flatten_roster(load_staffing_data(session))
    actual = actual_staffing_for_month(
        year, month, get_overrides_for_month(session, year, month), roster, get_recurring_rules(session)
    )
    return monthly_forecast(year, month, data, actual)


def upcoming_weekend_report(session, today: datetime.date, *, count: int = 4) -> Dict[str, Any]:
    roster = flatten_roster(load_staffing_data(session))
    return weekend_report(
        today,
        lambda year, month: get_overrides_for_month(session, year, month),
        roster,
        get_recurring_rules(session),
        count=count,
    )
