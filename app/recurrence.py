"""Recurring availability rules and default day resolution.

Precedence for a person on a date, lowest first: weekday/weekend default,
then the first applicable recurring rule in stored order. Specific overrides
sit on top of this and are applied by ``schedule.get_resolved_schedule_for_day``.
"""

from __future__ import annotations

import datetime
import math
from typing import Iterable, List, Optional, Sequence

from policy import (
    FREQUENCY_EVERY_OTHER,
    SOURCE_RECURRING_RULE,
    SOURCE_WEEKDAY_DEFAULT,
    SOURCE_WEEKEND_DEFAULT,
    STATUS_OFF,
    STATUS_ON,
    is_weekend,
    weekday_index,
)
from records import Person, RecurrenceRule, ResolvedStatus


def iso_week_number(date_: datetime.date) -> int:
    """ISO-8601 week number: the week belongs to the year holding its Thursday."""
    if isinstance(date_, datetime.datetime):
        date_ = date_.date()
    iso_weekday = date_.isoweekday()  # Monday=1 .. Sunday=7
    thursday = date_ + datetime.timedelta(days=4 - iso_weekday)
    year_start = datetime.date(thursday.year, 1, 1)
    return math.ceil(((thursday - year_start).days + 1) / 7)


def rule_window_contains(rule: RecurrenceRule, date_: datetime.date) -> bool:
    if rule.start_date is not None and date_ < rule.start_date:
        return False
    if rule.end_date is not None and date_ > rule.end_date:
        return False
    return True


def rule_applies_this_week(rule: RecurrenceRule, week_number: int) -> bool:
    if rule.frequency != FREQUENCY_EVERY_OTHER:
        return True
    return week_number % 2 == rule.week_anchor % 2


def rule_matches(rule: RecurrenceRule, date_: datetime.date, *, week_number: Optional[int] = None) -> bool:
    """True when ``rule`` sets the status for ``date_`` (ignoring earlier rules)."""
    if not rule_window_contains(rule, date_):
        return False
    if weekday_index(date_) not in rule.days:
        return False
    if week_number is None:
        week_number = iso_week_number(date_)
    return rule_applies_this_week(rule, week_number)


def rules_for_person(rules: Iterable[RecurrenceRule], person_id: str) -> List[RecurrenceRule]:
    """Filter a full rule snapshot to one person's rules, keeping stored order."""
    return [rule for rule in rules if rule.technician_id == person_id]


def baseline_status(date_: datetime.date) -> ResolvedStatus:
    if is_weekend(date_):
        return ResolvedStatus(status=STATUS_OFF, hours="", source=SOURCE_WEEKEND_DEFAULT)
    return ResolvedStatus(status=STATUS_ON, hours="", source=SOURCE_WEEKDAY_DEFAULT)


def resolve_default_status(
    person: Person,
    date_: datetime.date,
    rules: Sequence[RecurrenceRule] = (),
) -> ResolvedStatus:
    """Resolve ``person``'s status on ``date_`` from their recurring rules.

    ``rules`` is the person's rule list in stored order; rules owned by other
    people are ignored so a full snapshot may be passed as well. The first
    rule whose window, weekday and week parity all match wins.
    """
    if isinstance(date_, datetime.datetime):
        date_ = date_.date()
    resolved = baseline_status(date_)
    week_number = iso_week_number(date_)
    for rule in rules:
        if rule.technician_id and person.id and rule.technician_id != person.id:
            continue
        if rule_matches(rule, date_, week_number=week_number):
            return ResolvedStatus(status=rule.status, hours=rule.hours or "", source=SOURCE_RECURRING_RULE)
    return resolved

