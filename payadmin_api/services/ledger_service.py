"""
Benefit / deduction ledger workflow.

Every entry is its own unit of durability: single-entry calls commit once,
bulk calls commit per member (create, set-default) or per chunk of guarded
single-row transitions (post). A failed member never rolls back the others,
so bulk calls are safe to re-run.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from payadmin_api.extensions import db
from payadmin_api.models.employee import Employee
from payadmin_api.models.ledger import AdjustmentEntry, DefaultTemplate
from payadmin_api.services import adjustment_entries as entries
from payadmin_api.services import default_templates as templates
from payadmin_api.services.adjustment_categories import get_category
from payadmin_api.services.cutoff import CutoffPeriod
from payadmin_api.services.ledger_errors import (
    DuplicateEntryError,
    LockedError,
    NotFoundError,
    ValidationError,
)

log = logging.getLogger(__name__)


def _chunk_size() -> int:
    try:
        return max(int(current_app.config.get("LEDGER_BULK_CHUNK", 500)), 1)
    except (RuntimeError, TypeError, ValueError):
        return 500

def _chunks(seq: List[int], n: int):
    for i in range(0, len(seq), n):
        yield seq[i:i + n]

def _clean_ids(raw: Optional[Iterable]) -> List[int]:
    """ints only, de-duplicated, input order kept; junk ids are skipped like missing ones."""
    out, seen = [], set()
    for x in raw or []:
        if isinstance(x, bool):
            continue
        try:
            i = int(x)
        except (TypeError, ValueError):
            continue
        if i not in seen:
            seen.add(i)
            out.append(i)
    return out

def _member_failed(e: SQLAlchemyError) -> None:
    db.session.rollback()
    # a dropped connection means the store is gone; stop the batch
    if getattr(e, "connection_invalidated", False):
        raise e

def _employee_id(employee_id) -> int:
    if isinstance(employee_id, bool):
        raise ValidationError("employee_id must be integer")
    try:
        emp_id = int(employee_id)
    except (TypeError, ValueError):
        raise ValidationError("employee_id must be integer")
    if db.session.get(Employee, emp_id) is None:
        raise ValidationError(f"employee {emp_id} does not exist", payload={"employee_id": emp_id})
    return emp_id


# ---------- single entry ----------

def create_from_default(employee_id, category, period: CutoffPeriod, actor: Optional[int] = None) -> AdjustmentEntry:
    """
    Existing entry for (employee, category, period) is returned untouched;
    otherwise a new one is seeded from the employee's template, or zero-filled.
    """
    category = get_category(category)
    emp_id = _employee_id(employee_id)

    existing = entries.find_or_null(emp_id, category, period)
    if existing is not None:
        return existing

    seed = templates.template_values(templates.get_template(emp_id, category), category)
    try:
        return entries.create_entry(emp_id, category, period, seed, created_by=actor)
    except DuplicateEntryError:
        # a concurrent create won; its row is the answer
        return entries.find_or_null(emp_id, category, period)

def create_and_patch(employee_id, category, period: CutoffPeriod, field_key: str, value,
                     actor: Optional[int] = None) -> AdjustmentEntry:
    """First edit on an empty grid cell: make sure the entry exists, then write the cell."""
    category = get_category(category)
    category.field(field_key).parse(value)  # reject bad input before creating anything
    entry = create_from_default(employee_id, category, period, actor)
    return entries.patch_field(entry.id, field_key, value)

def create(employee_id, category, period: CutoffPeriod, values: Optional[dict] = None,
           actor: Optional[int] = None) -> AdjustmentEntry:
    """New entry with explicit values (missing keys 0.00). DuplicateEntryError if the period already has one."""
    category = get_category(category)
    if values is not None and not isinstance(values, dict):
        raise ValidationError("values must be an object")
    emp_id = _employee_id(employee_id)
    return entries.create_entry(emp_id, category, period, values, created_by=actor)

def patch_field(entry_id, field_key: str, value) -> AdjustmentEntry:
    return entries.patch_field(entry_id, field_key, value)

def update_fields(entry_id, values: Optional[dict]) -> AdjustmentEntry:
    return entries.update_fields(entry_id, values)

def post(entry_id, actor: Optional[int] = None) -> AdjustmentEntry:
    return entries.post_entry(entry_id, posted_by=actor)

def set_default(entry_id, actor: Optional[int] = None) -> DefaultTemplate:
    entry = entries.get_entry(entry_id)
    return templates.upsert_from_entry(entry, actor)


# ---------- batches ----------

def bulk_create(category, period: CutoffPeriod, actor: Optional[int] = None) -> Dict[str, int]:
    """
    Create an entry for every active employee that has none for the period.
    Employees that already have one (including ones created by a concurrent
    run) count as skipped.
    """
    category = get_category(category)
    active, missing = entries.active_employee_ids_without_entry(category, period)
    seeds = templates.template_values_for(missing, category, chunk=_chunk_size())

    created, skipped, failed = 0, active - len(missing), 0
    for emp_id in missing:
        seed = seeds.get(emp_id) or category.zero_values()
        try:
            entries.create_entry(emp_id, category, period, seed, created_by=actor)
            created += 1
        except DuplicateEntryError:
            skipped += 1
        except SQLAlchemyError as e:
            _member_failed(e)
            failed += 1
            log.exception("bulk_create %s: employee %s failed for %s", category.name, emp_id, period)

    log.info("bulk_create %s %s: created=%s skipped=%s failed=%s",
             category.name, period.as_dict(), created, skipped, failed)
    return {"created_count": created, "skipped": skipped, "failed": failed}

def bulk_post(entry_ids, actor: Optional[int] = None, category=None) -> Dict[str, int]:
    """
    Missing and already-posted ids are skipped; updated_count counts real
    pending -> posted moves. With a category, ids of the other ledger count as missing.
    """
    ids = _clean_ids(entry_ids)
    updated = 0
    for part in _chunks(ids, _chunk_size()):
        updated += entries.post_many(part, posted_by=actor, category=category)
    log.info("bulk_post: requested=%s posted=%s", len(ids), updated)
    return {"updated_count": updated}

def post_all(category, period: CutoffPeriod, actor: Optional[int] = None) -> Dict[str, int]:
    category = get_category(category)
    updated = entries.post_period(category, period, posted_by=actor)
    log.info("post_all %s %s: posted=%s", category.name, period.as_dict(), updated)
    return {"updated_count": updated}

def bulk_set_default(entry_ids, actor: Optional[int] = None, category=None) -> Dict[str, int]:
    """
    Promote each entry to its employee's template, in id order (for several
    entries of one employee the highest id ends up as the template).
    Missing and posted entries are skipped.
    """
    wanted = get_category(category).name if category is not None else None
    count = 0
    for eid in sorted(_clean_ids(entry_ids)):
        try:
            entry = entries.get_entry(eid)
            if wanted and entry.category != wanted:
                continue
            templates.upsert_from_entry(entry, actor)
            count += 1
        except (NotFoundError, LockedError):
            continue
        except SQLAlchemyError as e:
            _member_failed(e)
            log.exception("bulk_set_default: entry %s failed", eid)
    log.info("bulk_set_default: count=%s", count)
    return {"count": count}


# ---------- status / listing ----------

def status_counts(category, period: CutoffPeriod, search: Optional[str] = None) -> Dict[str, int]:
    """Employees without an entry ("No Data") are not part of any of the three counts."""
    total, posted = entries.count_status(category, period, search)
    return {"all": total, "posted": posted, "pending": total - posted}

def list_ledger(category, period: CutoffPeriod, search: Optional[str], page: int, size: int) -> Dict:
    category = get_category(category)
    return {
        "page": entries.query_population(category, period, search, page, size),
        "status": status_counts(category, period, search),
        "period": period,
        "category": category,
    }
