from __future__ import annotations

import datetime
import json
from pathlib import Path
from typing import Any, Dict, List, Tuple

from database import (
    RULES_COLLECTION,
    generate_rule_id,
    get_document,
    get_recurring_rules,
    load_all_monthly_data,
    load_staffing_data,
    save_monthly_data,
    save_rule,
    save_staffing_data,
)
from records import MonthlyPlanningData, RecurrenceRule, StaffingData
from roster import flatten_roster
from wages import export_wages

EXPORT_DIR = Path(__file__).resolve().parent / "data" / "exports"


def _timestamp() -> str:
    return datetime.datetime.now().strftime("%Y%m%d_%H%M%S")


def _export_path(stem: str) -> Path:
    EXPORT_DIR.mkdir(parents=True, exist_ok=True)
    return EXPORT_DIR / f"{stem}_{_timestamp()}.json"


def _write(path: Path, key: str, payload: Any) -> Path:
    path.write_text(
        json.dumps(
            {"generated_at": datetime.datetime.now(datetime.timezone.utc).isoformat(), key: payload},
            indent=2,
        ),
        encoding="utf-8",
    )
    return path


def _read_object(file_path: Path) -> Dict[str, Any]:
    data = json.loads(file_path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{file_path.name} must contain a JSON object.")
    return data


# ---------------------------------------------------------------------------
# Staffing roster


def export_staffing(session) -> Path:
    return _write(_export_path("staffing"), "staffing", load_staffing_data(session).to_dict())


def import_staffing(session, file_path: Path, *, actor: str = "system") -> int:
    """Replace the stored org tree; returns the number of people imported."""
    data = _read_object(file_path)
    staffing = StaffingData.from_dict(data.get("staffing"))
    if not staffing.zones:
        raise ValueError("Staffing import has no zones.")
    save_staffing_data(session, staffing, actor=actor)
    return len(flatten_roster(load_staffing_data(session)))


# ---------------------------------------------------------------------------
# Recurring rules


def export_rules(session) -> Path:
    payload: List[Dict[str, Any]] = []
    for rule in get_recurring_rules(session):
        entry = rule.to_dict()
        entry["id"] = rule.id
        payload.append(entry)
    return _write(_export_path("recurring_rules"), "rules", payload)


def import_rules(session, file_path: Path, *, actor: str = "system") -> Tuple[int, int]:
    """Upsert rules by id, keeping file order for new ones. Returns (created, updated)."""
    data = _read_object(file_path)
    created = 0
    updated = 0
    for entry in data.get("rules", []):
        if not isinstance(entry, dict):
            continue
        rule = RecurrenceRule.from_dict(entry)
        if not rule.technician_id:
            continue
        rule_id = rule.id or generate_rule_id()
        if get_document(session, RULES_COLLECTION, rule_id) is None:
            created += 1
        else:
            updated += 1
        save_rule(session, rule_id, rule, actor=actor)
    return created, updated


# ---------------------------------------------------------------------------
# Monthly planning data


def export_monthly_data(session, year: int) -> Path:
    monthly = load_all_monthly_data(session, year)
    payload = {str(month): data.inputs() for month, data in sorted(monthly.items())}
    return _write(_export_path(f"monthly_data_{year}"), "months", {"year": year, "data": payload})


def import_monthly_data(session, file_path: Path, *, actor: str = "system") -> int:
    """Load planning inputs; cached outputs are recomputed on next read."""
    data = _read_object(file_path).get("months") or {}
    try:
        year = int(data.get("year"))
    except (TypeError, ValueError):
        raise ValueError("Monthly data import is missing its year.")
    count = 0
    for key, inputs in (data.get("data") or {}).items():
        try:
            month = int(key)
        except (TypeError, ValueError):
            continue
        if not 1 <= month <= 12 or not isinstance(inputs, dict):
            continue
        save_monthly_data(session, year, month, MonthlyPlanningData.from_dict(inputs), actor=actor)
        count += 1
    return count


def export_everything(session, year: int) -> Dict[str, Path]:
    return {
        "staffing": export_staffing(session),
        "rules": export_rules(session),
        "monthly": export_monthly_data(session, year),
        "wages": export_wages(session, _export_path("wages")),
    }
