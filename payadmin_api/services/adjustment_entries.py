from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.exc import IntegrityError

from payadmin_api.extensions import db
from payadmin_api.models.employee import Employee
from payadmin_api.models.master import Department
from payadmin_api.models.ledger import AdjustmentEntry, AdjustmentEntryLine
from payadmin_api.services.adjustment_categories import AdjustmentCategory, get_category
from payadmin_api.services.cutoff import CutoffPeriod
from payadmin_api.services.ledger_errors import (
    AlreadyPostedError,
    DuplicateEntryError,
    LockedError,
    NotFoundError,
    ValidationError,
)

log = logging.getLogger(__name__)


@dataclass
class Page:
    items: List[Any]
    page: int
    size: int
    total: int

    @property
    def pages(self) -> int:
        return (self.total + self.size - 1) // self.size if self.size else 0


# ---------- query helpers ----------

def period_filter(category: AdjustmentCategory, period: CutoffPeriod):
    return and_(
        AdjustmentEntry.category == category.name,
        AdjustmentEntry.cutoff == period.cutoff.value,
        AdjustmentEntry.period_date.between(period.start, period.end),
    )

def apply_employee_search(query, search: Optional[str]):
    """Substring match on last/first name, employee number and department name."""
    if not search:
        return query
    # % and _ in the search text are literal characters
    term = search.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    like = f"%{term}%"
    return query.filter(or_(
        Employee.last_name.ilike(like, escape="\\"),
        Employee.first_name.ilike(like, escape="\\"),
        Employee.idno.ilike(like, escape="\\"),
        Department.name.ilike(like, escape="\\"),
    ))


# ---------- reads ----------

def get_entry(entry_id) -> AdjustmentEntry:
    try:
        eid = int(entry_id)
    except (TypeError, ValueError):
        raise NotFoundError(f"adjustment entry {entry_id!r} not found")
    entry = db.session.get(AdjustmentEntry, eid)
    if entry is None:
        raise NotFoundError(f"adjustment entry {eid} not found")
    return entry

def find_or_null(employee_id: int, category, period: CutoffPeriod) -> Optional[AdjustmentEntry]:
    category = get_category(category)
    return (
        AdjustmentEntry.query
        .filter(AdjustmentEntry.employee_id == employee_id, period_filter(category, period))
        .first()
    )

def entry_values(entry_id: int) -> Dict[str, Decimal]:
    rows = (
        db.session.query(AdjustmentEntryLine.field_key, AdjustmentEntryLine.amount)
        .filter(AdjustmentEntryLine.entry_id == entry_id)
        .all()
    )
    return {k: Decimal(str(v)) for k, v in rows}

def query_population(category, period: CutoffPeriod, search: Optional[str], page: int, size: int) -> Page:
    """
    Active employees LEFT OUTER JOIN their entry for (category, period).
    Employees without an entry come back as (employee, None).
    """
    category = get_category(category)
    q = (
        db.session.query(Employee, AdjustmentEntry)
        .outerjoin(Department, Department.id == Employee.department_id)
        .outerjoin(AdjustmentEntry, and_(
            AdjustmentEntry.employee_id == Employee.id,
            period_filter(category, period),
        ))
        .filter(Employee.status == "active")
    )
    q = apply_employee_search(q, search)
    total = q.count()
    rows = (
        q.order_by(Employee.last_name.asc(), Employee.first_name.asc(), Employee.id.asc())
        .offset((page - 1) * size)
        .limit(size)
        .all()
    )
    return Page(items=[(emp, entry) for emp, entry in rows], page=page, size=size, total=total)

def count_status(category, period: CutoffPeriod, search: Optional[str] = None) -> Tuple[int, int]:
    """(entries, posted entries) for the active-employee population of the period."""
    category = get_category(category)
    posted_flag = case((AdjustmentEntry.is_posted.is_(True), 1), else_=0)
    q = (
        db.session.query(func.count(AdjustmentEntry.id), func.coalesce(func.sum(posted_flag), 0))
        .select_from(AdjustmentEntry)
        .join(Employee, Employee.id == AdjustmentEntry.employee_id)
        .outerjoin(Department, Department.id == Employee.department_id)
        .filter(period_filter(category, period), Employee.status == "active")
    )
    q = apply_employee_search(q, search)
    total, posted = q.one()
    return int(total or 0), int(posted or 0)

def active_employee_ids_without_entry(category, period: CutoffPeriod) -> Tuple[int, List[int]]:
    """(active employee count, ids of active employees with no entry for the period)."""
    category = get_category(category)
    has_entry = (
        select(AdjustmentEntry.id)
        .where(AdjustmentEntry.employee_id == Employee.id, period_filter(category, period))
        .exists()
    )
    active = db.session.query(func.count(Employee.id)).filter(Employee.status == "active").scalar() or 0
    ids = [
        r[0] for r in
        db.session.query(Employee.id)
        .filter(Employee.status == "active", ~has_entry)
        .order_by(Employee.id.asc())
        .all()
    ]
    return int(active), ids


# ---------- writes (each commits its own entry) ----------

def create_entry(employee_id: int, category, period: CutoffPeriod,
                 initial_values: Optional[dict] = None, created_by: Optional[int] = None) -> AdjustmentEntry:
    """
    Insert a new entry with one line per schema field. The unique constraint on
    (employee, category, cutoff, period_date) decides duplicates; no pre-read.
    """
    category = get_category(category)
    values = category.clean_values(initial_values)
    now = datetime.utcnow()
    entry = AdjustmentEntry(
        employee_id=employee_id,
        category=category.name,
        cutoff=period.cutoff.value,
        period_date=period.anchor_date,
        is_default=False,
        is_posted=False,
        created_by=created_by,
        created_at=now,
        updated_at=now,
    )
    entry.lines = [AdjustmentEntryLine(field_key=k, amount=v) for k, v in values.items()]
    db.session.add(entry)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        if find_or_null(employee_id, category, period) is not None:
            raise DuplicateEntryError(
                f"{category.name} entry already exists for employee {employee_id} in {period.cutoff.value} "
                f"cutoff of {period.year:04d}-{period.month:02d}",
                payload={"employee_id": employee_id},
            )
        raise
    db.session.commit()
    return entry

def _claim_unposted(entry_id: int) -> None:
    """
    Touch updated_at on the entry, only while it is unposted. The UPDATE holds
    the entry row lock until commit, so a concurrent post waits for us or wins first.
    """
    res = db.session.execute(
        update(AdjustmentEntry)
        .where(AdjustmentEntry.id == entry_id, AdjustmentEntry.is_posted.is_(False))
        .values(updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.session.rollback()
        raise LockedError("This entry has been posted and cannot be updated.", payload={"id": entry_id})

def _write_line(entry_id: int, field_key: str, amount: Decimal) -> None:
    res = db.session.execute(
        update(AdjustmentEntryLine)
        .where(AdjustmentEntryLine.entry_id == entry_id, AdjustmentEntryLine.field_key == field_key)
        .values(amount=amount)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        # line missing: entry predates a field added to the schema
        db.session.add(AdjustmentEntryLine(entry_id=entry_id, field_key=field_key, amount=amount))
        db.session.flush()

def patch_field(entry_id, field_key: str, value) -> AdjustmentEntry:
    """
    Write one field of an unposted entry. The entry row is claimed before the
    line is written, so a post that lands first turns this into LockedError.
    """
    entry = get_entry(entry_id)
    if entry.is_posted:
        raise LockedError("This entry has been posted and cannot be updated.", payload={"id": entry.id})
    category = get_category(entry.category)
    amount = category.field(field_key).parse(value)

    eid = entry.id
    _claim_unposted(eid)
    _write_line(eid, field_key, amount)
    db.session.commit()
    return get_entry(eid)

def update_fields(entry_id, values: Optional[dict]) -> AdjustmentEntry:
    """
    Write several fields of an unposted entry in one transaction. Only the
    given keys change; all of them are validated before anything is written.
    """
    entry = get_entry(entry_id)
    if entry.is_posted:
        raise LockedError("This entry has been posted and cannot be updated.", payload={"id": entry.id})
    category = get_category(entry.category)
    if not isinstance(values, dict) or not values:
        raise ValidationError("values must be a non-empty object")
    parsed = {k: category.field(k).parse(v) for k, v in values.items()}

    eid = entry.id
    _claim_unposted(eid)
    for key in category.field_keys:
        if key in parsed:
            _write_line(eid, key, parsed[key])
    db.session.commit()
    return get_entry(eid)

def post_entry(entry_id, posted_by: Optional[int] = None) -> AdjustmentEntry:
    """Compare-and-set is_posted false -> true. Exactly one concurrent caller wins."""
    entry = get_entry(entry_id)
    eid = entry.id
    now = datetime.utcnow()
    res = db.session.execute(
        update(AdjustmentEntry)
        .where(AdjustmentEntry.id == eid, AdjustmentEntry.is_posted.is_(False))
        .values(is_posted=True, posted_at=now, posted_by=posted_by, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.session.rollback()
        raise AlreadyPostedError("This entry is already posted.", payload={"id": eid})
    db.session.commit()
    return get_entry(eid)

def post_many(entry_ids: Iterable[int], posted_by: Optional[int] = None, category=None) -> int:
    """Set-based guarded post; returns how many rows went pending -> posted."""
    ids = list(entry_ids)
    if not ids:
        return 0
    conds = [AdjustmentEntry.id.in_(ids), AdjustmentEntry.is_posted.is_(False)]
    if category is not None:
        conds.append(AdjustmentEntry.category == get_category(category).name)
    now = datetime.utcnow()
    res = db.session.execute(
        update(AdjustmentEntry)
        .where(*conds)
        .values(is_posted=True, posted_at=now, posted_by=posted_by, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return int(res.rowcount or 0)

def post_period(category, period: CutoffPeriod, posted_by: Optional[int] = None) -> int:
    category = get_category(category)
    now = datetime.utcnow()
    res = db.session.execute(
        update(AdjustmentEntry)
        .where(period_filter(category, period), AdjustmentEntry.is_posted.is_(False))
        .values(is_posted=True, posted_at=now, posted_by=posted_by, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return int(res.rowcount or 0)
