"""Typed records for the documents the labor tool keeps in its store.

Documents arrive as loosely shaped JSON (older ones use camelCase keys and may
hold empty strings, scalars where lists are expected, or numbers as text).
Everything is normalized here so the resolver and calculator only ever see
well-formed values.
"""

from __future__ import annotations

import datetime
import math
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Dict, List, Mapping, Optional

from policy import (
    FREQUENCY_CHOICES,
    FREQUENCY_EVERY,
    SOURCE_WEEKDAY_DEFAULT,
    STATUS_OFF,
)
from roles import canonical_role


def parse_date(value: Any) -> Optional[datetime.date]:
    """Coerce a stored date value to a calendar date, or None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return datetime.date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


def format_date(value: Optional[datetime.date]) -> Optional[str]:
    return value.isoformat() if value else None


def to_number(value: Any, default: float = 0.0) -> float:
    """Return a finite float for ``value``; NaN, infinities and junk become ``default``."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def _pick(payload: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return default


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _normalize_days(value: Any) -> List[int]:
    if value is None or value == "":
        return []
    if not isinstance(value, (list, tuple, set)):
        value = [value]
    days: List[int] = []
    for item in value:
        try:
            day = int(item)
        except (TypeError, ValueError):
            continue
        if 0 <= day <= 6 and day not in days:
            days.append(day)
    return days


@dataclass
class Person:
    id: str
    name: str
    role: str = ""
    hire_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None
    in_training: bool = False
    training_end_date: Optional[datetime.date] = None
    zone_name: Optional[str] = None
    slack_id: str = ""

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], *, zone_name: Optional[str] = None) -> "Person":
        return cls(
            id=_text(payload.get("id")),
            name=_text(payload.get("name")),
            role=canonical_role(_text(payload.get("role"))) or _text(payload.get("role")),
            hire_date=parse_date(_pick(payload, "hire_date", "hireDate")),
            end_date=parse_date(_pick(payload, "end_date", "endDate")),
            in_training=bool(_pick(payload, "in_training", "inTraining", default=False)),
            training_end_date=parse_date(_pick(payload, "training_end_date", "trainingEndDate")),
            zone_name=zone_name if zone_name is not None else _pick(payload, "zone_name", "zoneName"),
            slack_id=_text(_pick(payload, "slack_id", "slackId", default="")),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"id": self.id, "name": self.name, "role": self.role}
        if self.hire_date:
            payload["hire_date"] = format_date(self.hire_date)
        if self.end_date:
            payload["end_date"] = format_date(self.end_date)
        payload["in_training"] = self.in_training
        if self.training_end_date:
            payload["training_end_date"] = format_date(self.training_end_date)
        if self.slack_id:
            payload["slack_id"] = self.slack_id
        return payload


@dataclass
class Zone:
    name: str
    lead: Optional[Person] = None
    members: List[Person] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Zone":
        name = _text(payload.get("name"))
        lead_payload = payload.get("lead")
        lead = Person.from_dict(lead_payload, zone_name=name) if isinstance(lead_payload, Mapping) else None
        members = [
            Person.from_dict(member, zone_name=name)
            for member in payload.get("members") or []
            if isinstance(member, Mapping)
        ]
        return cls(name=name, lead=lead, members=members)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "lead": self.lead.to_dict() if self.lead else None,
            "members": [member.to_dict() for member in self.members],
        }


@dataclass
class StaffingData:
    zones: List[Zone] = field(default_factory=list)
    management: List[Person] = field(default_factory=list)
    warehouse: List[Person] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Optional[Mapping[str, Any]]) -> "StaffingData":
        if not isinstance(payload, Mapping):
            return cls()
        return cls(
            zones=[Zone.from_dict(zone) for zone in payload.get("zones") or [] if isinstance(zone, Mapping)],
            management=[
                Person.from_dict(person) for person in payload.get("management") or [] if isinstance(person, Mapping)
            ],
            warehouse=[
                Person.from_dict(person) for person in payload.get("warehouse") or [] if isinstance(person, Mapping)
            ],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "zones": [zone.to_dict() for zone in self.zones],
            "management": [person.to_dict() for person in self.management],
            "warehouse": [person.to_dict() for person in self.warehouse],
        }


@dataclass
class RecurrenceRule:
    technician_id: str
    days: List[int] = field(default_factory=list)
    status: str = STATUS_OFF
    hours: str = ""
    frequency: str = FREQUENCY_EVERY
    week_anchor: int = 1
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None
    id: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], *, rule_id: Optional[str] = None) -> "RecurrenceRule":
        status = _text(payload.get("status")).lower() or STATUS_OFF
        frequency = _text(payload.get("frequency")).lower()
        if frequency not in FREQUENCY_CHOICES:
            frequency = FREQUENCY_EVERY
        try:
            anchor = int(_pick(payload, "week_anchor", "weekAnchor", default=1))
        except (TypeError, ValueError):
            anchor = 1
        return cls(
            id=rule_id if rule_id is not None else (_text(payload.get("id")) or None),
            technician_id=_text(_pick(payload, "technician_id", "technicianId", default="")),
            days=_normalize_days(payload.get("days")),
            status=status,
            hours=_text(payload.get("hours")),
            frequency=frequency,
            week_anchor=anchor,
            start_date=parse_date(_pick(payload, "start_date", "startDate")),
            end_date=parse_date(_pick(payload, "end_date", "endDate")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "technician_id": self.technician_id,
            "days": list(self.days),
            "status": self.status,
            "hours": self.hours,
            "frequency": self.frequency,
            "week_anchor": self.week_anchor,
            "start_date": format_date(self.start_date),
            "end_date": format_date(self.end_date),
        }


@dataclass
class OverrideEntry:
    id: str
    status: str
    hours: str = ""

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "OverrideEntry":
        return cls(
            id=_text(payload.get("id")),
            status=_text(payload.get("status")).lower(),
            hours=_text(payload.get("hours")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "status": self.status, "hours": self.hours}


@dataclass
class DaySchedule:
    date: Optional[datetime.date] = None
    notes: str = ""
    staff: List[OverrideEntry] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DaySchedule":
        staff: List[OverrideEntry] = []
        seen = {}
        for item in payload.get("staff") or []:
            if not isinstance(item, Mapping):
                continue
            entry = OverrideEntry.from_dict(item)
            if not entry.id:
                continue
            # Later entries for the same person replace earlier ones.
            if entry.id in seen:
                staff[seen[entry.id]] = entry
                continue
            seen[entry.id] = len(staff)
            staff.append(entry)
        return cls(date=parse_date(payload.get("date")), notes=_text(payload.get("notes")), staff=staff)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": format_date(self.date),
            "notes": self.notes,
            "staff": [entry.to_dict() for entry in self.staff],
        }

    def entry_for(self, person_id: str) -> Optional[OverrideEntry]:
        for entry in self.staff:
            if entry.id == person_id:
                return entry
        return None


@dataclass
class MonthOverrides:
    specific: Dict[int, DaySchedule] = field(default_factory=dict)

    def for_day(self, day_of_month: int) -> Optional[DaySchedule]:
        return self.specific.get(day_of_month)


@dataclass
class ResolvedStatus:
    status: str
    hours: str = ""
    source: str = SOURCE_WEEKDAY_DEFAULT

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ResolvedEntry:
    person: Person
    status: str
    hours: str
    source: str

    @property
    def id(self) -> str:
        return self.person.id

    @property
    def name(self) -> str:
        return self.person.name

    def to_dict(self) -> Dict[str, Any]:
        payload = self.person.to_dict()
        payload.update({"status": self.status, "hours": self.hours, "source": self.source})
        return payload


@dataclass
class ResolvedSchedule:
    date: datetime.date
    notes: str = ""
    staff: List[ResolvedEntry] = field(default_factory=list)

    def entry_for(self, person_id: str) -> Optional[ResolvedEntry]:
        for entry in self.staff:
            if entry.id == person_id:
                return entry
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "notes": self.notes,
            "staff": [entry.to_dict() for entry in self.staff],
        }


PLANNING_INPUTS = (
    "leads_target",
    "leads_percent_goal",
    "booking_rate",
    "wtr_ins_closing_rate",
    "wtr_cash_closing_rate",
    "days_in_month",
    "avg_days_onsite",
    "hours_per_appointment",
    "average_drive_time",
    "ot_hours_per_tech_per_day",
    "team_members_off_per_day",
)

# Keys written by the browser client before documents moved to snake_case.
_LEGACY_PLANNING_KEYS = {
    "leadsTarget": "leads_target",
    "leadsPercentGoal": "leads_percent_goal",
    "bookingRate": "booking_rate",
    "wtrInsClosingRate": "wtr_ins_closing_rate",
    "wtrCashClosingRate": "wtr_cash_closing_rate",
    "daysInMonth": "days_in_month",
    "mitAvgDaysOnsite": "avg_days_onsite",
    "hoursPerAppointment": "hours_per_appointment",
    "averageDriveTime": "average_drive_time",
    "otHoursPerTechPerDay": "ot_hours_per_tech_per_day",
    "teamMembersOffPerDay": "team_members_off_per_day",
}

_LEGACY_WAGE_KEYS = {
    "avgHourlyBaseWage": "avg_hourly_base_wage",
    "avgOTWage": "avg_ot_wage",
    "fieldSupervisorWage": "field_supervisor_wage",
    "fieldSupervisorBonus": "field_supervisor_bonus",
    "foremanWage": "foreman_wage",
    "assistantMitManagerWage": "assistant_mit_manager_wage",
    "mitManagerWage": "mit_manager_wage",
}


def canonical_values(payload: Mapping[str, Any], legacy_keys: Mapping[str, str]) -> Dict[str, Any]:
    """Map a stored payload onto snake_case keys.

    A non-null snake_case value wins over its camelCase twin; null values are
    treated as absent.
    """
    values: Dict[str, Any] = {}
    for legacy, key in legacy_keys.items():
        if payload.get(legacy) is not None:
            values[key] = payload[legacy]
    for key in legacy_keys.values():
        if payload.get(key) is not None:
            values[key] = payload[key]
    return values


@dataclass
class MonthlyPlanningData:
    leads_target: float = 0.0
    leads_percent_goal: float = 0.0
    booking_rate: float = 0.0
    wtr_ins_closing_rate: float = 0.0
    wtr_cash_closing_rate: float = 0.0
    days_in_month: float = 0.0
    avg_days_onsite: float = 0.0
    hours_per_appointment: float = 0.0
    average_drive_time: float = 0.0
    ot_hours_per_tech_per_day: float = 0.0
    team_members_off_per_day: float = 0.0
    # Cached outputs, recomputed from the inputs above.
    current_staffing_level: int = 0
    actual_leads: int = 0
    sales_ops: int = 0
    projected_jobs: int = 0
    active_jobs_per_day: float = 0.0
    hours_needed_per_day: float = 0.0
    techs_needed: int = 0
    staffing_need: float = 0.0
    staffing_delta: float = 0.0
    tech_labor_cost: float = 0.0
    fixed_labor_cost: float = 0.0
    total_labor_spend: float = 0.0
    cost_per_job: float = 0.0

    @classmethod
    def from_dict(cls, payload: Optional[Mapping[str, Any]]) -> "MonthlyPlanningData":
        if not isinstance(payload, Mapping):
            return cls()
        values = canonical_values(payload, _LEGACY_PLANNING_KEYS)
        return cls(**{key: to_number(values.get(key)) for key in PLANNING_INPUTS})

    def inputs(self) -> Dict[str, float]:
        return {key: getattr(self, key) for key in PLANNING_INPUTS}

    def with_inputs(self, **changes: Any) -> "MonthlyPlanningData":
        cleaned = {key: to_number(value) for key, value in changes.items() if key in PLANNING_INPUTS}
        return replace(self, **cleaned)

    def to_dict(self) -> Dict[str, Any]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


@dataclass
class WageSettings:
    avg_hourly_base_wage: float = 0.0
    avg_ot_wage: float = 0.0
    field_supervisor_wage: float = 0.0
    field_supervisor_bonus: float = 0.0
    foreman_wage: float = 0.0
    assistant_mit_manager_wage: float = 0.0
    mit_manager_wage: float = 0.0

    @classmethod
    def from_dict(cls, payload: Optional[Mapping[str, Any]]) -> "WageSettings":
        if not isinstance(payload, Mapping):
            return cls()
        values = cls.stored_values(payload)
        return cls(**{key: to_number(values.get(key)) for key in _LEGACY_WAGE_KEYS.values()})

    @staticmethod
    def stored_values(payload: Mapping[str, Any]) -> Dict[str, Any]:
        """Non-null wage values from a stored document, keyed by field name."""
        return canonical_values(payload, _LEGACY_WAGE_KEYS)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)
