from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, Optional

from sqlalchemy import and_, update
from sqlalchemy.exc import IntegrityError

from payadmin_api.extensions import db
from payadmin_api.models.employee import Employee
from payadmin_api.models.master import Department
from payadmin_api.models.ledger import AdjustmentEntry, DefaultTemplate
from payadmin_api.services.adjustment_categories import AdjustmentCategory, get_category
from payadmin_api.services.adjustment_entries import Page, apply_employee_search, entry_values
from payadmin_api.services.ledger_errors import InvalidValueError, LockedError

log = logging.getLogger(__name__)


def get_template(employee_id: int, category) -> Optional[DefaultTemplate]:
    category = get_category(category)
    return DefaultTemplate.query.filter_by(employee_id=employee_id, category=category.name).first()

def template_values(template: Optional[DefaultTemplate], category) -> Dict[str, Decimal]:
    """
    Seed values for a new entry: the template snapshot, or all zeros.
    Keys that are no longer in the schema are dropped; new schema keys start at 0.00.
    """
    category = get_category(category)
    if template is None:
        return category.zero_values()
    raw = template.values_json or {}
    out = category.zero_values()
    for f in category.fields:
        if f.key in raw:
            try:
                out[f.key] = f.parse(raw[f.key])
            except InvalidValueError:
                log.warning("template %s has bad %s=%r; seeding 0.00", template.id, f.key, raw[f.key])
    return out

def template_values_for(employee_ids: Iterable[int], category, chunk: int = 500) -> Dict[int, Dict[str, Decimal]]:
    """Batched template read for bulk seeding: {employee_id: values}; employees without a template are absent."""
    category = get_category(category)
    ids = list(employee_ids)
    out: Dict[int, Dict[str, Decimal]] = {}
    for i in range(0, len(ids), chunk):
        part = ids[i:i + chunk]
        rows = DefaultTemplate.query.filter(
            DefaultTemplate.category == category.name,
            DefaultTemplate.employee_id.in_(part),
        ).all()
        for t in rows:
            out[t.employee_id] = template_values(t, category)
    return out

def _snapshot(values: Dict[str, Decimal], category: AdjustmentCategory) -> Dict[str, str]:
    return {f.key: str(values.get(f.key, Decimal("0.00"))) for f in category.fields}

def upsert_from_entry(entry: AdjustmentEntry, actor: Optional[int] = None) -> DefaultTemplate:
    """
    Copy the entry's current values into the (employee, category) template,
    creating it on first use, and mark the entry is_default.
    Posted entries are locked: LockedError, nothing written.
    """
    category = get_category(entry.category)
    eid, emp_id = entry.id, entry.employee_id

    for attempt in (1, 2):
        res = db.session.execute(
            update(AdjustmentEntry)
            .where(AdjustmentEntry.id == eid, AdjustmentEntry.is_posted.is_(False))
            .values(is_default=True)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            db.session.rollback()
            raise LockedError("This entry has been posted and cannot be set as default.", payload={"id": eid})

        snap = _snapshot(entry_values(eid), category)
        now = datetime.utcnow()
        tpl = get_template(emp_id, category)
        if tpl is None:
            tpl = DefaultTemplate(employee_id=emp_id, category=category.name, created_at=now)
            db.session.add(tpl)
        tpl.values_json = snap
        tpl.source_entry_id = eid
        tpl.updated_by = actor
        tpl.updated_at = now
        try:
            db.session.flush()
        except IntegrityError:
            # another caller created the template between our read and insert
            db.session.rollback()
            if attempt == 2:
                raise
            log.info("template race for employee %s/%s; retrying as update", emp_id, category.name)
            continue
        db.session.commit()
        return tpl

def list_defaults(category, search: Optional[str], page: int, size: int) -> Page:
    """Active employees with their saved template (or None) for the category."""
    category = get_category(category)
    q = (
        db.session.query(Employee, DefaultTemplate)
        .outerjoin(Department, Department.id == Employee.department_id)
        .outerjoin(DefaultTemplate, and_(
            DefaultTemplate.employee_id == Employee.id,
            DefaultTemplate.category == category.name,
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
    return Page(items=[(emp, tpl) for emp, tpl in rows], page=page, size=size, total=total)
