from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from policy import FREQUENCY_CHOICES, FREQUENCY_EVERY_OTHER, STATUS_CHOICES, WEEKDAY_TOKENS
from records import MonthlyPlanningData, Person, RecurrenceRule
from roster import find_person

RATE_FIELDS = ("leads_percent_goal", "booking_rate", "wtr_ins_closing_rate", "wtr_cash_closing_rate")


def _windows_overlap(first: RecurrenceRule, second: RecurrenceRule) -> bool:
    if first.end_date is not None and second.start_date is not None and first.end_date < second.start_date:
        return False
    if second.end_date is not None and first.start_date is not None and second.end_date < first.start_date:
        return False
    return True


def _parities_overlap(first: RecurrenceRule, second: RecurrenceRule) -> bool:
    if first.frequency != FREQUENCY_EVERY_OTHER or second.frequency != FREQUENCY_EVERY_OTHER:
        return True
    return first.week_anchor % 2 == second.week_anchor % 2


def _day_labels(days) -> str:
    return ", ".join(WEEKDAY_TOKENS[day] for day in sorted(days))


def rule_issues(rule: RecurrenceRule, roster: Optional[Sequence[Person]] = None) -> List[Dict[str, Any]]:
    """Structural problems that make a rule useless or unreadable."""
    issues: List[Dict[str, Any]] = []
    label = rule.id or "new rule"
    if not rule.technician_id:
        issues.append({"type": "missing_technician", "severity": "error", "rule_id": rule.id,
                       "message": f"{label} is not attached to a person."})
    elif roster is not None and find_person(roster, rule.technician_id) is None:
        issues.append({"type": "unknown_technician", "severity": "error", "rule_id": rule.id,
                       "message": f"{label} belongs to unknown person {rule.technician_id}."})
    if not rule.days:
        issues.append({"type": "no_days", "severity": "error", "rule_id": rule.id,
                       "message": f"{label} has no days selected and will never apply."})
    if rule.status not in STATUS_CHOICES:
        issues.append({"type": "status", "severity": "error", "rule_id": rule.id,
                       "message": f"{label} uses unknown status '{rule.status}'."})
    if rule.frequency not in FREQUENCY_CHOICES:
        issues.append({"type": "frequency", "severity": "error", "rule_id": rule.id,
                       "message": f"{label} uses unknown frequency '{rule.frequency}'."})
    if rule.frequency == FREQUENCY_EVERY_OTHER and rule.week_anchor not in (1, 2):
        issues.append({"type": "week_anchor", "severity": "error", "rule_id": rule.id,
                       "message": f"{label} must anchor to week 1 or 2."})
    if rule.start_date and rule.end_date and rule.end_date < rule.start_date:
        issues.append({"type": "window", "severity": "error", "rule_id": rule.id,
                       "message": f"{label} ends before it starts."})
    return issues


def rule_conflict_warnings(rules: Sequence[RecurrenceRule]) -> List[Dict[str, Any]]:
    """Pairs of one person's rules that can claim the same date.

    Resolution takes the first rule in stored order, so the later rule of each
    pair is shadowed on the shared days.
    """
    warnings: List[Dict[str, Any]] = []
    for index, first in enumerate(rules):
        for second in rules[index + 1:]:
            if first.technician_id != second.technician_id:
                continue
            shared = set(first.days) & set(second.days)
            if not shared or not _windows_overlap(first, second) or not _parities_overlap(first, second):
                continue
            warnings.append(
                {
                    "type": "rule_overlap",
                    "severity": "warning",
                    "technician_id": first.technician_id,
                    "rule_ids": [first.id, second.id],
                    "days": sorted(shared),
                    "message": (
                        f"Rules {first.id or '?'} and {second.id or '?'} both cover {_day_labels(shared)}; "
                        f"the first one wins."
                    ),
                }
            )
    return warnings


def validate_rules(rules: Sequence[RecurrenceRule], roster: Optional[Sequence[Person]] = None) -> Dict[str, Any]:
    issues: List[Dict[str, Any]] = []
    for rule in rules:
        issues.extend(rule_issues(rule, roster))
    return {"issues": issues, "warnings": rule_conflict_warnings(rules)}


def validate_planning_inputs(data: MonthlyPlanningData) -> Dict[str, Any]:
    """Flag planning inputs that will silently project zero or nonsense."""
    issues: List[Dict[str, Any]] = []
    warnings: List[Dict[str, Any]] = []
    for name in RATE_FIELDS:
        value = getattr(data, name)
        if value < 0 or value > 1:
            issues.append({"type": "rate", "severity": "error", "field": name,
                           "message": f"{name} should be a fraction between 0 and 1 (got {value})."})
    for name, value in data.inputs().items():
        if value < 0 and name not in RATE_FIELDS:
            issues.append({"type": "negative", "severity": "error", "field": name,
                           "message": f"{name} cannot be negative."})
    if not data.days_in_month:
        warnings.append({"type": "days_in_month", "severity": "warning", "field": "days_in_month",
                         "message": "Working days not set; 22 days will be assumed."})
    if not data.leads_target:
        warnings.append({"type": "leads_target", "severity": "warning", "field": "leads_target",
                         "message": "No lead target; the month will project zero jobs."})
    if data.average_drive_time - data.ot_hours_per_tech_per_day >= 8:
        issues.append({"type": "route_hours", "severity": "error", "field": "average_drive_time",
                       "message": "Drive time leaves no productive hours; techs needed will be zero."})
    return {"issues": issues, "warnings": warnings}
