from __future__ import annotations

import copy
import datetime
import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint, create_engine, delete, select
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from policy import default_wage_settings
from records import (
    DaySchedule,
    MonthlyPlanningData,
    MonthOverrides,
    Person,
    RecurrenceRule,
    StaffingData,
    WageSettings,
    parse_date,
)
from roster import default_staffing_data, flatten_roster, sanitize_staffing_data
from schedule import merge_day_schedule


logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parent / "data"
DATABASE_URL = os.environ.get(
    "LABOR_TOOL_DATABASE_URL",
    f"sqlite:///{(DATA_DIR / 'labor_tool.db').as_posix()}",
)

SETTINGS_COLLECTION = "settings"
RULES_COLLECTION = "recurring_rules"
SCHEDULES_COLLECTION = "schedules"
MONTHLY_COLLECTION = "monthly_data"
STAFFING_DOC = "staffing_data"
WAGES_DOC = "wage_settings"


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class Base(DeclarativeBase):
    """Metadata for the document store tables."""

    pass


class Document(Base):
    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    collection: Mapped[str] = mapped_column(String(64), nullable=False)
    doc_id: Mapped[str] = mapped_column(String(120), nullable=False)
    payloadJSON: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (UniqueConstraint("collection", "doc_id", name="uq_documents_collection_doc"),)

    def payload_dict(self) -> Dict[str, Any]:
        try:
            value = json.loads(self.payloadJSON or "{}")
            if isinstance(value, dict):
                return value
        except json.JSONDecodeError:
            logger.warning("Malformed payload in %s/%s; treating as empty", self.collection, self.doc_id)
            return {}
        logger.warning("Non-object payload in %s/%s; treating as empty", self.collection, self.doc_id)
        return {}


class AuditLog(Base):
    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(60), nullable=False)
    action: Mapped[str] = mapped_column(String(60), nullable=False)
    target_type: Mapped[str] = mapped_column(String(32), nullable=False, default="Document")
    target_id: Mapped[str | None] = mapped_column(String(120), nullable=True)
    payloadJSON: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


engine = create_engine(DATABASE_URL, echo=False, future=True)
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False, future=True)


def init_database(bind=None) -> None:
    target = bind if bind is not None else engine
    if target is engine and DATABASE_URL.startswith("sqlite:///"):
        DATA_DIR.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(target)


# ---------------------------------------------------------------------------
# Document primitives


def _deep_update(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_update(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _find_document(session, collection: str, doc_id: str) -> Optional[Document]:
    stmt = select(Document).where(Document.collection == collection, Document.doc_id == doc_id)
    return session.scalars(stmt).first()


def get_document(session, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
    document = _find_document(session, collection, doc_id)
    if document is None:
        return None
    return document.payload_dict()


def set_document(
    session,
    collection: str,
    doc_id: str,
    payload: Dict[str, Any],
    *,
    merge: bool = False,
) -> Document:
    """Write a document; ``merge`` folds nested maps into the stored payload."""
    if not isinstance(payload, dict):
        raise ValueError("Document payload must be a JSON object.")
    document = _find_document(session, collection, doc_id)
    if document is None:
        document = Document(collection=collection, doc_id=doc_id, payloadJSON=json.dumps(payload))
        session.add(document)
    else:
        current = document.payload_dict() if merge else {}
        document.payloadJSON = json.dumps(_deep_update(current, payload) if merge else payload)
        document.updated_at = _utcnow()
    session.commit()
    session.refresh(document)
    return document


def delete_document(session, collection: str, doc_id: str) -> bool:
    result = session.execute(
        delete(Document).where(Document.collection == collection, Document.doc_id == doc_id)
    )
    session.commit()
    return bool(result.rowcount)


def list_documents(
    session,
    collection: str,
    *,
    start: Optional[str] = None,
    end: Optional[str] = None,
    order_by_id: bool = False,
) -> List[Tuple[str, Dict[str, Any]]]:
    """Return ``(doc_id, payload)`` pairs, optionally bounded by an inclusive doc id range."""
    stmt = select(Document).where(Document.collection == collection)
    if start is not None:
        stmt = stmt.where(Document.doc_id >= start)
    if end is not None:
        stmt = stmt.where(Document.doc_id <= end)
    stmt = stmt.order_by(Document.id.asc() if order_by_id else Document.doc_id.asc())
    return [(document.doc_id, document.payload_dict()) for document in session.scalars(stmt)]


def record_audit_log(
    session,
    user_id: str,
    action: str,
    target_type: str = "Document",
    target_id: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    log = AuditLog(
        user_id=user_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        payloadJSON=json.dumps(payload or {}, default=str),
    )
    session.add(log)
    session.commit()
    return log


def list_audit_log(session, limit: int = 100) -> List[AuditLog]:
    stmt = select(AuditLog).order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit)
    return list(session.scalars(stmt))


# ---------------------------------------------------------------------------
# Staffing / roster


def load_staffing_data(session) -> StaffingData:
    payload = get_document(session, SETTINGS_COLLECTION, STAFFING_DOC)
    if not payload or not payload.get("zones"):
        logger.warning("No valid staffing data stored; using default staffing data.")
        return sanitize_staffing_data(default_staffing_data())
    staffing = StaffingData.from_dict(payload)
    missing_ids = any(
        (zone.lead is not None and not zone.lead.id) or any(not member.id for member in zone.members)
        for zone in staffing.zones
    )
    sanitize_staffing_data(staffing)
    if missing_ids:
        # Generated ids must stay stable across reads.
        set_document(session, SETTINGS_COLLECTION, STAFFING_DOC, staffing.to_dict())
    return staffing


def save_staffing_data(session, staffing: StaffingData, *, actor: str = "system") -> None:
    set_document(session, SETTINGS_COLLECTION, STAFFING_DOC, staffing.to_dict())
    record_audit_log(session, actor, "SAVE_STAFFING", target_id=STAFFING_DOC)


def get_roster(session) -> List[Person]:
    return flatten_roster(load_staffing_data(session))


# ---------------------------------------------------------------------------
# Recurring rules


def generate_rule_id() -> str:
    return f"rule_{uuid.uuid4().hex[:16]}"


def get_recurring_rules(session) -> List[RecurrenceRule]:
    """Every stored rule, in the order they were first saved."""
    return [
        RecurrenceRule.from_dict(payload, rule_id=doc_id)
        for doc_id, payload in list_documents(session, RULES_COLLECTION, order_by_id=True)
    ]


def get_rules_for_person(session, person_id: str) -> List[RecurrenceRule]:
    return [rule for rule in get_recurring_rules(session) if rule.technician_id == person_id]


def save_rule(session, rule_id: Optional[str], rule: RecurrenceRule, *, actor: str = "system") -> RecurrenceRule:
    rule_id = rule_id or rule.id or generate_rule_id()
    set_document(session, RULES_COLLECTION, rule_id, rule.to_dict())
    record_audit_log(session, actor, "SAVE_RULE", target_type="RecurrenceRule", target_id=rule_id)
    payload = get_document(session, RULES_COLLECTION, rule_id) or {}
    return RecurrenceRule.from_dict(payload, rule_id=rule_id)


def delete_rule(session, rule_id: str, *, actor: str = "system") -> bool:
    removed = delete_document(session, RULES_COLLECTION, rule_id)
    if removed:
        record_audit_log(session, actor, "DELETE_RULE", target_type="RecurrenceRule", target_id=rule_id)
    return removed


# ---------------------------------------------------------------------------
# Day schedules (specific overrides)


def schedule_doc_id(date_: datetime.date) -> str:
    return date_.isoformat()


def get_day_schedule(session, date_: datetime.date) -> Optional[DaySchedule]:
    payload = get_document(session, SCHEDULES_COLLECTION, schedule_doc_id(date_))
    if payload is None:
        return None
    schedule = DaySchedule.from_dict(payload)
    schedule.date = schedule.date or date_
    return schedule


def get_overrides_for_month(session, year: int, month: int) -> MonthOverrides:
    overrides = MonthOverrides()
    prefix = f"{year:04d}-{month:02d}"
    for doc_id, payload in list_documents(session, SCHEDULES_COLLECTION, start=f"{prefix}-01", end=f"{prefix}-31"):
        date_ = parse_date(payload.get("date")) or parse_date(doc_id)
        if date_ is None or (date_.year, date_.month) != (year, month):
            logger.warning("Ignoring schedule document %s with unusable date", doc_id)
            continue
        schedule = DaySchedule.from_dict(payload)
        schedule.date = date_
        overrides.specific[date_.day] = schedule
    return overrides


def save_override(
    session,
    date_: datetime.date,
    schedule: DaySchedule,
    *,
    actor: str = "system",
    replace: bool = False,
) -> DaySchedule:
    """Merge ``schedule`` into the stored document for ``date_``.

    Staff entries replace the stored entry for the same person or are
    appended; notes are overwritten. With ``replace`` the stored staff list
    is dropped and ``schedule`` is written as given.
    """
    schedule.date = date_
    existing = None if replace else get_day_schedule(session, date_)
    merged = merge_day_schedule(existing, schedule)
    set_document(session, SCHEDULES_COLLECTION, schedule_doc_id(date_), merged.to_dict())
    record_audit_log(
        session,
        actor,
        "SAVE_SCHEDULE",
        target_type="DaySchedule",
        target_id=schedule_doc_id(date_),
        payload={"entries": len(schedule.staff)},
    )
    return merged


# ---------------------------------------------------------------------------
# Monthly planning data and wages


def monthly_doc_id(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def load_monthly_data(session, year: int, month: int) -> Optional[MonthlyPlanningData]:
    payload = get_document(session, MONTHLY_COLLECTION, monthly_doc_id(year, month))
    if payload is None:
        return None
    return MonthlyPlanningData.from_dict(payload)


def load_all_monthly_data(session, year: int) -> Dict[int, MonthlyPlanningData]:
    """Stored planning documents for ``year`` keyed by month number (1-12)."""
    monthly: Dict[int, MonthlyPlanningData] = {}
    for doc_id, payload in list_documents(
        session, MONTHLY_COLLECTION, start=monthly_doc_id(year, 1), end=monthly_doc_id(year, 12)
    ):
        try:
            month = int(doc_id.split("-")[1])
        except (IndexError, ValueError):
            logger.warning("Ignoring monthly document with unexpected id %s", doc_id)
            continue
        monthly[month] = MonthlyPlanningData.from_dict(payload)
    return monthly


def save_monthly_data(
    session,
    year: int,
    month: int,
    data: MonthlyPlanningData,
    *,
    actor: str = "system",
) -> None:
    doc_id = monthly_doc_id(year, month)
    set_document(session, MONTHLY_COLLECTION, doc_id, data.to_dict(), merge=True)
    record_audit_log(session, actor, "SAVE_MONTHLY_DATA", target_type="MonthlyPlanningData", target_id=doc_id)


def load_wage_settings(session) -> WageSettings:
    payload = get_document(session, SETTINGS_COLLECTION, WAGES_DOC)
    if not payload:
        return WageSettings.from_dict(default_wage_settings())
    return WageSettings.from_dict(_deep_update(default_wage_settings(), WageSettings.stored_values(payload)))


def save_wage_settings(session, wages: WageSettings, *, actor: str = "system") -> None:
    set_document(session, SETTINGS_COLLECTION, WAGES_DOC, wages.to_dict())
    record_audit_log(session, actor, "SAVE_WAGES", target_id=WAGES_DOC)
