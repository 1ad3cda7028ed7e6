from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional

from flask import Blueprint, request

from payadmin_api.common.auth import current_actor_id, requires_perms
from payadmin_api.common.http import ok
from payadmin_api.common.paging import page_limit, text_q
from payadmin_api.models.employee import Employee
from payadmin_api.models.ledger import AdjustmentEntry, DefaultTemplate
from payadmin_api.services import adjustment_entries as entries
from payadmin_api.services import default_templates as templates
from payadmin_api.services import ledger_service as ledger
from payadmin_api.services.adjustment_categories import BENEFIT, DEDUCTION, AdjustmentCategory
from payadmin_api.services.cutoff import CutoffPeriod, from_anchor, resolve
from payadmin_api.services.ledger_errors import NotFoundError, ValidationError


# ---------- helpers ----------
def _flt(x):
    try: return float(x) if x is not None else None
    except Exception: return None

def _iso(x):
    return x.isoformat() if x else None

def _body() -> Dict[str, Any]:
    j = request.get_json(silent=True)
    if j is None:
        return {}
    if not isinstance(j, dict):
        raise ValidationError("request body must be a JSON object")
    return j

def _values_from_body(j: Dict[str, Any], category: AdjustmentCategory) -> Dict[str, Any]:
    """{"values": {...}} or the field keys at the top level of the body."""
    if "values" in j:
        vals = j.get("values")
        if not isinstance(vals, dict):
            raise ValidationError("values must be an object")
        return vals
    return {k: j[k] for k in category.field_keys if k in j}

def _period_from_args() -> CutoffPeriod:
    """GET filters; defaults to the 1st cutoff of the current month like the ledger page."""
    today = date.today()
    return resolve(
        request.args.get("year", today.year),
        request.args.get("month", today.month),
        request.args.get("cutoff", "1st"),
    )

def _period_from_body(j: Dict[str, Any]) -> CutoffPeriod:
    """
    Either {year, month, cutoff} or the older {date, cutoff} shape where the
    date is any day of the target month.
    """
    if j.get("year") is None and j.get("date"):
        try:
            d = date.fromisoformat(str(j.get("date"))[:10])
        except ValueError:
            raise ValidationError("date must be YYYY-MM-DD")
        if j.get("cutoff") is None:
            raise ValidationError("cutoff is required")
        return from_anchor(d, j.get("cutoff"))
    missing = [k for k in ("year", "month", "cutoff") if j.get(k) is None]
    if missing:
        raise ValidationError(f"{', '.join(missing)} required")
    return resolve(j.get("year"), j.get("month"), j.get("cutoff"))

def _ids_from_body(j: Dict[str, Any], category: AdjustmentCategory):
    ids = j.get("entry_ids")
    if ids is None:
        ids = j.get(f"{category.name}_ids")  # benefit_ids / deduction_ids
    if not ids or not isinstance(ids, list):
        raise ValidationError(f"No {category.plural} selected.")
    return ids

def _employee_row(x: Employee) -> Dict[str, Any]:
    return {
        "id": x.id,
        "idno": x.idno,
        "last_name": x.last_name,
        "first_name": x.first_name,
        "middle_name": x.middle_name,
        "suffix": x.suffix,
        "full_name": x.full_name,
        "department": x.department.name if x.department else None,
    }

def _entry_row(e: AdjustmentEntry, category: AdjustmentCategory) -> Dict[str, Any]:
    vals = e.values()
    period = from_anchor(e.period_date, e.cutoff)
    return {
        "id": e.id,
        "employee_id": e.employee_id,
        "category": e.category,
        "cutoff": e.cutoff,
        "date": _iso(e.period_date),
        "year": period.year,
        "month": period.month,
        "values": {f.key: _flt(vals.get(f.key, 0)) for f in category.fields},
        "is_default": bool(e.is_default),
        "is_posted": bool(e.is_posted),
        "status": "posted" if e.is_posted else "pending",
        "posted_at": _iso(e.posted_at),
        "posted_by": e.posted_by,
        "created_by": e.created_by,
        "created_at": _iso(e.created_at),
        "updated_at": _iso(e.updated_at),
    }

def _template_row(t: Optional[DefaultTemplate], category: AdjustmentCategory) -> Optional[Dict[str, Any]]:
    if t is None:
        return None
    vals = templates.template_values(t, category)
    return {
        "id": t.id,
        "employee_id": t.employee_id,
        "category": t.category,
        "values": {k: _flt(v) for k, v in vals.items()},
        "source_entry_id": t.source_entry_id,
        "updated_by": t.updated_by,
        "updated_at": _iso(t.updated_at),
    }


def make_blueprint(category: AdjustmentCategory) -> Blueprint:
    """Same routes for every ledger; only the field schema and permission segment differ."""
    bp = Blueprint(category.plural, __name__, url_prefix=f"/api/v1/{category.plural}")
    read_perm = f"payroll.{category.plural}.read"
    write_perm = f"payroll.{category.plural}.write"

    def _own(entry_id: int) -> AdjustmentEntry:
        e = entries.get_entry(entry_id)
        if e.category != category.name:
            raise NotFoundError(f"{category.name} entry {entry_id} not found")
        return e

    # ---------- reads ----------
    @bp.get("")
    @requires_perms(read_perm)
    def list_entries():
        period = _period_from_args()
        page, size = page_limit()
        out = ledger.list_ledger(category, period, text_q(), page, size)
        pg = out["page"]
        rows = [
            {
                "employee": _employee_row(emp),
                "entry": _entry_row(e, category) if e is not None else None,
                "status": ("posted" if e.is_posted else "pending") if e is not None else "no_data",
            }
            for emp, e in pg.items
        ]
        return ok(
            rows,
            page=pg.page, size=pg.size, total=pg.total, pages=pg.pages,
            counts=out["status"],
            period=period.as_dict(),
            date_range={"start": period.start.isoformat(), "end": period.end.isoformat()},
            fields=[f.as_dict() for f in category.fields],
        )

    @bp.get("/status")
    @requires_perms(read_perm)
    def status_counts():
        period = _period_from_args()
        return ok(ledger.status_counts(category, period, text_q()), period=period.as_dict())

    @bp.get("/fields")
    @requires_perms(read_perm)
    def list_fields():
        return ok([f.as_dict() for f in category.fields], category=category.name, title=category.title)

    @bp.get("/defaults")
    @requires_perms(read_perm)
    def list_defaults():
        page, size = page_limit()
        pg = templates.list_defaults(category, text_q(), page, size)
        rows = [{"employee": _employee_row(emp), "template": _template_row(t, category)} for emp, t in pg.items]
        return ok(rows, page=pg.page, size=pg.size, total=pg.total, pages=pg.pages)

    @bp.get("/<int:entry_id>")
    @requires_perms(read_perm)
    def get_entry(entry_id: int):
        return ok(_entry_row(_own(entry_id), category))

    # ---------- single entry ----------
    @bp.post("")
    @requires_perms(write_perm)
    def create_entry():
        j = _body()
        period = _period_from_body(j)
        e = ledger.create(j.get("employee_id"), category, period,
                          _values_from_body(j, category), current_actor_id())
        return ok(_entry_row(e, category), status=201)

    @bp.route("/<int:entry_id>", methods=["PUT", "PATCH"])
    @requires_perms(write_perm)
    def update_entry(entry_id: int):
        j = _body()
        _own(entry_id)
        e = ledger.update_fields(entry_id, _values_from_body(j, category))
        return ok(_entry_row(e, category))

    @bp.patch("/<int:entry_id>/field")
    @requires_perms(write_perm)
    def patch_field(entry_id: int):
        j = _body()
        if not j.get("field"):
            raise ValidationError("field is required")
        _own(entry_id)
        e = ledger.patch_field(entry_id, str(j.get("field")), j.get("value"))
        return ok(_entry_row(e, category))

    @bp.post("/create-from-default")
    @requires_perms(write_perm)
    def create_from_default():
        j = _body()
        period = _period_from_body(j)
        e = ledger.create_from_default(j.get("employee_id"), category, period, current_actor_id())
        return ok(_entry_row(e, category))

    @bp.post("/create-and-edit")
    @requires_perms(write_perm)
    def create_and_edit():
        j = _body()
        if not j.get("field"):
            raise ValidationError("field is required")
        period = _period_from_body(j)
        e = ledger.create_and_patch(j.get("employee_id"), category, period,
                                    str(j.get("field")), j.get("value"), current_actor_id())
        return ok(_entry_row(e, category))

    @bp.post("/<int:entry_id>/post")
    @requires_perms(write_perm)
    def post_entry(entry_id: int):
        _own(entry_id)
        e = ledger.post(entry_id, current_actor_id())
        return ok(_entry_row(e, category))

    @bp.post("/<int:entry_id>/set-default")
    @requires_perms(write_perm)
    def set_default(entry_id: int):
        _own(entry_id)
        t = ledger.set_default(entry_id, current_actor_id())
        return ok({"template": _template_row(t, category), "entry": _entry_row(_own(entry_id), category)})

    # ---------- batches ----------
    @bp.post("/bulk-post")
    @requires_perms(write_perm)
    def bulk_post():
        ids = _ids_from_body(_body(), category)
        res = ledger.bulk_post(ids, current_actor_id(), category=category)
        return ok(res, message=f"{res['updated_count']} {category.plural} have been successfully posted.")

    @bp.post("/bulk-set-default")
    @requires_perms(write_perm)
    def bulk_set_default():
        ids = _ids_from_body(_body(), category)
        res = ledger.bulk_set_default(ids, current_actor_id(), category=category)
        return ok(res, message=f"{res['count']} {category.plural} have been set as default.")

    @bp.post("/bulk-create")
    @requires_perms(write_perm)
    def bulk_create():
        period = _period_from_body(_body())
        res = ledger.bulk_create(category, period, current_actor_id())
        return ok(res, message=f"Created {res['created_count']} new {category.name} entries.", period=period.as_dict())

    @bp.post("/post-all")
    @requires_perms(write_perm)
    def post_all():
        period = _period_from_body(_body())
        res = ledger.post_all(category, period, current_actor_id())
        return ok(res, message=f"{res['updated_count']} {category.plural} have been successfully posted.",
                  period=period.as_dict())

    return bp


benefits_bp = make_blueprint(BENEFIT)
deductions_bp = make_blueprint(DEDUCTION)
