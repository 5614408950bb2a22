"""Monthly staffing projection and labor cost.

Every function here is plain arithmetic over ``MonthlyPlanningData``. Missing
or malformed inputs count as zero and every division is guarded, so a month
with no planning data simply projects zero.
"""

from __future__ import annotations

import calendar
import datetime
import math
from dataclasses import replace
from typing import Dict, List, Mapping, Optional

from policy import (
    DAY_TYPE_WEIGHTS,
    FALLBACK_WORKING_DAYS,
    FIELD_SUPERVISOR_COUNT,
    STANDARD_SHIFT_HOURS,
    day_type,
)
from records import MonthlyPlanningData, StaffingData, WageSettings, to_number
from roster import monthly_headcount


def _round_half_up(value: float) -> int:
    # Math.round semantics: halves round towards +infinity.
    return int(math.floor(value + 0.5))


def working_days(data: MonthlyPlanningData) -> float:
    return data.days_in_month or FALLBACK_WORKING_DAYS


def hours_per_route(data: MonthlyPlanningData) -> float:
    """Productive hours one technician gives per day after driving, plus overtime."""
    drive_time = to_number(data.average_drive_time)
    return (STANDARD_SHIFT_HOURS - drive_time) + to_number(data.ot_hours_per_tech_per_day)


def calculate_month(
    data: Optional[MonthlyPlanningData],
    current_staffing_level: int = 0,
    wages: Optional[WageSettings] = None,
    zone_count: int = 0,
) -> MonthlyPlanningData:
    """Return a copy of ``data`` with every derived field recomputed."""
    data = data or MonthlyPlanningData()
    data = data.with_inputs(**data.inputs())
    actual_leads = _round_half_up(data.leads_percent_goal * data.leads_target)
    sales_ops = _round_half_up(actual_leads * data.booking_rate)
    projected_jobs = _round_half_up(
        sales_ops * data.wtr_ins_closing_rate + sales_ops * data.wtr_cash_closing_rate
    )
    active_jobs_per_day = (projected_jobs / working_days(data)) * data.avg_days_onsite
    hours_needed_per_day = active_jobs_per_day * data.hours_per_appointment

    effective_hours = hours_per_route(data)
    techs_needed = math.ceil(hours_needed_per_day / effective_hours) if effective_hours > 0 else 0
    staffing_need = techs_needed + data.team_members_off_per_day

    result = replace(
        data,
        current_staffing_level=int(current_staffing_level or 0),
        actual_leads=actual_leads,
        sales_ops=sales_ops,
        projected_jobs=projected_jobs,
        active_jobs_per_day=active_jobs_per_day,
        hours_needed_per_day=hours_needed_per_day,
        techs_needed=techs_needed,
        staffing_need=staffing_need,
        staffing_delta=int(current_staffing_level or 0) - staffing_need,
    )
    if wages is None:
        return result
    return calculate_labor_costs(result, wages, zone_count)


def fixed_monthly_salaries(wages: WageSettings, zone_count: int) -> float:
    """Prorated salaried overhead: field supervisors, one foreman per zone, and the managers."""
    supervisors = FIELD_SUPERVISOR_COUNT
    return (
        (wages.field_supervisor_wage / 12) * supervisors
        + (wages.foreman_wage / 12) * max(0, zone_count)
        + wages.assistant_mit_manager_wage / 12
        + wages.mit_manager_wage / 12
        + wages.field_supervisor_bonus * supervisors
    )


def calculate_labor_costs(data: MonthlyPlanningData, wages: WageSettings, zone_count: int = 0) -> MonthlyPlanningData:
    days = working_days(data)
    regular_hours = data.techs_needed * STANDARD_SHIFT_HOURS * days
    overtime_hours = data.techs_needed * data.ot_hours_per_tech_per_day * days
    tech_labor_cost = regular_hours * wages.avg_hourly_base_wage + overtime_hours * wages.avg_ot_wage
    fixed_labor_cost = fixed_monthly_salaries(wages, zone_count)
    total = tech_labor_cost + fixed_labor_cost
    return replace(
        data,
        tech_labor_cost=tech_labor_cost,
        fixed_labor_cost=fixed_labor_cost,
        total_labor_spend=total,
        cost_per_job=total / data.projected_jobs if data.projected_jobs > 0 else 0.0,
    )


def calculate_all_months(
    year: int,
    monthly: Mapping[int, MonthlyPlanningData],
    staffing: Optional[StaffingData],
    wages: Optional[WageSettings] = None,
) -> Dict[int, MonthlyPlanningData]:
    """Recompute each month (1-12) present in ``monthly``.

    Headcount for a month is taken as of its last calendar day.
    """
    zone_count = len(staffing.zones) if staffing is not None else 0
    results: Dict[int, MonthlyPlanningData] = {}
    for month in sorted(monthly):
        if not 1 <= month <= 12:
            continue
        headcount = monthly_headcount(staffing, year, month)
        results[month] = calculate_month(monthly[month], headcount, wages, zone_count)
    return results


def count_day_types(year: int, month: int) -> Dict[str, int]:
    counts = {"weekday": 0, "saturday": 0, "sunday": 0}
    for day in range(1, calendar.monthrange(year, month)[1] + 1):
        counts[day_type(datetime.date(year, month, day))] += 1
    return counts


def new_jobs_by_day_type(projected_jobs: float, counts: Mapping[str, int]) -> Dict[str, float]:
    weighted_days = sum(counts.get(kind, 0) * weight for kind, weight in DAY_TYPE_WEIGHTS.items())
    if projected_jobs <= 0 or weighted_days <= 0:
        weekday_jobs = 0.0
    else:
        weekday_jobs = projected_jobs / weighted_days
    return {kind: weekday_jobs * weight for kind, weight in DAY_TYPE_WEIGHTS.items()}


def daily_routes_needed(year: int, month: int, data: MonthlyPlanningData) -> List[float]:
    route_hours = hours_per_route(data)
    base_hours = data.active_jobs_per_day * data.hours_per_appointment
    routes: List[float] = []
    for day in range(1, calendar.monthrange(year, month)[1] + 1):
        hours = base_hours * DAY_TYPE_WEIGHTS[day_type(datetime.date(year, month, day))]
        routes.append(hours / route_hours if route_hours > 0 else 0.0)
    return routes


def monthly_forecast(
    year: int,
    month: int,
    data: Optional[MonthlyPlanningData],
    actual_staffing: Optional[List[int]] = None,
) -> Dict[str, object]:
    """Spread a month's projection across its calendar days.

    ``data`` should already carry computed outputs (see ``calculate_month``).
    ``actual_staffing`` is the per-day on-duty count from the schedule, if the
    caller has one.
    """
    if data is None:
        return {"daily_routes_needed": [], "actual_staffing": [], "new_jobs": {}, "day_counts": {}}
    counts = count_day_types(year, month)
    return {
        "daily_routes_needed": daily_routes_needed(year, month, data),
        "actual_staffing": list(actual_staffing or []),
        "new_jobs": new_jobs_by_day_type(to_number(data.projected_jobs), counts),
        "day_counts": counts,
    }


def average_staffing_delta(monthly: Mapping[int, MonthlyPlanningData]) -> float:
    """Average of the months with a non-zero staffing delta."""
    deltas = [data.staffing_delta for data in monthly.values() if data is not None and data.staffing_delta]
    return sum(deltas) / len(deltas) if deltas else 0.0
