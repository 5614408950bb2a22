"""FastAPI wrapper over the labor tool document store.

Endpoints read a fresh snapshot from the store per request and hand it to
the pure resolution/forecast functions.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import datetime
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

# Modules inside app/ import each other by bare name.
APP_DIR = Path(__file__).resolve().parent
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

import database  # noqa: E402
from database import (  # noqa: E402
    delete_rule,
    get_roster,
    get_recurring_rules,
    get_rules_for_person,
    init_database,
    save_rule,
)
from planning import (  # noqa: E402
    annual_summary,
    day_summary,
    forecast_for_month,
    planning_for_month,
    resolved_month,
    save_day_edits,
    update_month_inputs,
    upcoming_weekend_report,
)
from records import RecurrenceRule  # noqa: E402
from roles import grouped_roles  # noqa: E402
from roster import find_person  # noqa: E402
from validation import rule_conflict_warnings, rule_issues, validate_planning_inputs  # noqa: E402


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_database()
    yield


app = FastAPI(title="Labor Tool API", version="0.1", lifespan=lifespan)


@app.exception_handler(ValueError)
async def value_error_handler(_: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def get_db():
    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _parse_date(value: str) -> datetime.date:
    try:
        return datetime.date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="date must be YYYY-MM-DD")


def _check_month(year: int, month: int) -> None:
    if not 1 <= month <= 12 or not 1 <= year <= 9999:
        raise HTTPException(status_code=400, detail="month must be 1-12")


def _check_year(year: int) -> None:
    if not 1 <= year <= 9999:
        raise HTTPException(status_code=400, detail="year must be 1-9999")


def _actor(payload: Optional[Dict[str, Any]]) -> str:
    return str((payload or {}).get("actor") or "api").strip() or "api"


def _require_person(db, person_id: str):
    person = find_person(get_roster(db), person_id)
    if person is None:
        raise HTTPException(status_code=404, detail="Person not found")
    return person


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/api/v1/roster")
def roster(db=Depends(get_db)) -> JSONResponse:
    people = get_roster(db)
    payload = {
        "people": [person.to_dict() for person in people],
        "roles": grouped_roles(person.role for person in people),
    }
    return JSONResponse(content=jsonable_encoder(payload))


@app.get("/api/v1/rules/{person_id}")
def person_rules(person_id: str, db=Depends(get_db)) -> JSONResponse:
    _require_person(db, person_id)
    rules = [dict(rule.to_dict(), id=rule.id) for rule in get_rules_for_person(db, person_id)]
    return JSONResponse(content=jsonable_encoder({"person_id": person_id, "rules": rules}))


@app.post("/api/v1/rules/{person_id}")
def add_person_rule(person_id: str, payload: Dict[str, Any], db=Depends(get_db)) -> JSONResponse:
    roster_ = get_roster(db)
    if find_person(roster_, person_id) is None:
        raise HTTPException(status_code=404, detail="Person not found")
    rule = RecurrenceRule.from_dict(dict(payload, technician_id=person_id))
    errors = rule_issues(rule, roster_)
    if errors:
        raise HTTPException(status_code=400, detail=[issue["message"] for issue in errors])
    saved = save_rule(db, rule.id, rule, actor=_actor(payload))
    warnings = rule_conflict_warnings(get_rules_for_person(db, person_id))
    return JSONResponse(
        content=jsonable_encoder({"rule": dict(saved.to_dict(), id=saved.id), "warnings": warnings})
    )


@app.delete("/api/v1/rules/item/{rule_id}")
def remove_rule(rule_id: str, actor: str = Query("api"), db=Depends(get_db)) -> JSONResponse:
    if not delete_rule(db, rule_id, actor=actor):
        raise HTTPException(status_code=404, detail="Rule not found")
    return JSONResponse(content={"deleted": rule_id})


@app.get("/api/v1/schedule/month/{year}/{month}")
def month_schedule(year: int, month: int, db=Depends(get_db)) -> JSONResponse:
    _check_month(year, month)
    days = [schedule.to_dict() for schedule in resolved_month(db, year, month)]
    return JSONResponse(content=jsonable_encoder({"year": year, "month": month, "days": days}))


@app.get("/api/v1/schedule/{date}")
def day_schedule(date: str, db=Depends(get_db)) -> JSONResponse:
    return JSONResponse(content=jsonable_encoder(day_summary(db, _parse_date(date))))


@app.post("/api/v1/schedule/{date}")
def edit_day_schedule(date: str, payload: Dict[str, Any], db=Depends(get_db)) -> JSONResponse:
    day = _parse_date(date)
    staff = payload.get("staff") or []
    if not isinstance(staff, list):
        raise HTTPException(status_code=400, detail="staff must be a list")
    schedule = save_day_edits(db, day, staff, notes=str(payload.get("notes") or ""), actor=_actor(payload))
    return JSONResponse(content=jsonable_encoder(schedule.to_dict()))


@app.get("/api/v1/planning/{year}")
def year_planning(year: int, db=Depends(get_db)) -> JSONResponse:
    _check_year(year)
    return JSONResponse(content=jsonable_encoder(annual_summary(db, year)))


@app.get("/api/v1/planning/{year}/{month}")
def month_planning(year: int, month: int, db=Depends(get_db)) -> JSONResponse:
    _check_month(year, month)
    data = planning_for_month(db, year, month)
    return JSONResponse(
        content=jsonable_encoder({"year": year, "month": month, "data": data.to_dict(), **validate_planning_inputs(data)})
    )


@app.post("/api/v1/planning/{year}/{month}")
def update_month_planning(year: int, month: int, payload: Dict[str, Any], db=Depends(get_db)) -> JSONResponse:
    _check_month(year, month)
    changes = payload.get("inputs") or {}
    if not isinstance(changes, dict):
        raise HTTPException(status_code=400, detail="inputs must be an object")
    data = update_month_inputs(db, year, month, changes, actor=_actor(payload))
    return JSONResponse(
        content=jsonable_encoder({"year": year, "month": month, "data": data.to_dict(), **validate_planning_inputs(data)})
    )


@app.get("/api/v1/forecast/{year}/{month}")
def month_forecast(year: int, month: int, db=Depends(get_db)) -> JSONResponse:
    _check_month(year, month)
    forecast = forecast_for_month(db, year, month)
    return JSONResponse(content=jsonable_encoder({"year": year, "month": month, **forecast}))


@app.get("/api/v1/reports/weekends")
def weekends(
    today: Optional[str] = Query(None),
    count: int = Query(4, ge=1, le=12),
    db=Depends(get_db),
) -> JSONResponse:
    reference = _parse_date(today) if today else datetime.date.today()
    report = upcoming_weekend_report(db, reference, count=count)
    return JSONResponse(content=jsonable_encoder(report))


@app.get("/api/v1/rules")
def all_rules(db=Depends(get_db)) -> JSONResponse:
    rules = get_recurring_rules(db)
    return JSONResponse(
        content=jsonable_encoder(
            {
                "rules": [dict(rule.to_dict(), id=rule.id) for rule in rules],
                "warnings": rule_conflict_warnings(rules),
            }
        )
    )
