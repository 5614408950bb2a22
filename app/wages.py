from __future__ import annotations

import json
from pathlib import Path
from typing import Dict

from database import load_wage_settings, save_wage_settings
from policy import default_wage_settings
from records import WageSettings, to_number


# Salaried lines may legitimately be zero when the seat is unfilled.
ALLOW_ZERO_FIELDS = {"field_supervisor_bonus", "assistant_mit_manager_wage"}


def baseline_wages() -> WageSettings:
    return WageSettings.from_dict(default_wage_settings())


def validate_wages(wages: WageSettings) -> Dict[str, str]:
    """Return dict of wage fields that need attention -> reason."""
    problems: Dict[str, str] = {}
    for name, value in wages.to_dict().items():
        if value < 0:
            problems[name] = "wage is negative"
        elif value == 0 and name not in ALLOW_ZERO_FIELDS:
            problems[name] = "wage is zero"
    if wages.avg_ot_wage and wages.avg_ot_wage < wages.avg_hourly_base_wage:
        problems["avg_ot_wage"] = "overtime wage below base wage"
    return problems


def export_wages(session, target: Path) -> Path:
    target.write_text(json.dumps(load_wage_settings(session).to_dict(), indent=2, sort_keys=True), encoding="utf-8")
    return target


def import_wages(session, source: Path, *, actor: str = "system") -> int:
    data = json.loads(source.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Wages file must be a JSON object.")
    current = load_wage_settings(session).to_dict()
    count = 0
    for name, value in data.items():
        if name not in current:
            continue
        current[name] = round(max(0.0, to_number(value, current[name])), 2)
        count += 1
    save_wage_settings(session, WageSettings.from_dict(current), actor=actor)
    return count


def reset_wages_to_defaults(session, *, actor: str = "system") -> None:
    save_wage_settings(session, baseline_wages(), actor=actor)
