import pytest
from flask_jwt_extended import create_access_token

from payadmin_api import seed_rbac
from payadmin_api.extensions import db
from payadmin_api.models.ledger import AdjustmentEntry, DefaultTemplate
from payadmin_api.models.user import User


def _headers(identity="1", **claims):
    token = create_access_token(identity=identity, additional_claims=claims)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin(app):
    return _headers(roles=["admin"])


def _mk_user(email, role=None):
    u = User(email=email, full_name=email.split("@")[0], status="active")
    u.set_password("pw")
    db.session.add(u); db.session.flush()
    if role:
        seed_rbac.grant_role(u, role)
    db.session.commit()
    return u


PERIOD = {"year": 2025, "month": 6, "cutoff": "1st"}


def test_health(client):
    r = client.get("/api/v1/health")
    assert r.status_code == 200
    assert r.get_json()["data"]["status"] == "ok"


def test_requires_token(client):
    r = client.get("/api/v1/benefits")
    assert r.status_code == 401


def test_unknown_user_without_claims_is_unauthorized(client):
    r = client.get("/api/v1/benefits", headers=_headers("77"))
    assert r.status_code == 401


def test_read_only_role_cannot_write(client, make_employee):
    seed_rbac.run()
    hr = _mk_user("hr@demo.local", role="hr")
    emp = make_employee()
    h = _headers(str(hr.id))

    assert client.get("/api/v1/deductions", headers=h).status_code == 200
    r = client.post("/api/v1/deductions/create-from-default", headers=h,
                    json={"employee_id": emp.id, **PERIOD})
    assert r.status_code == 403
    assert AdjustmentEntry.query.count() == 0


def test_user_without_roles_is_forbidden(client):
    u = _mk_user("nobody@demo.local")
    r = client.get("/api/v1/benefits/fields", headers=_headers(str(u.id)))
    assert r.status_code == 403


def test_fields_schema(client, admin):
    r = client.get("/api/v1/deductions/fields", headers=admin)
    body = r.get_json()
    assert r.status_code == 200
    assert [f["key"] for f in body["data"]][:2] == ["advance", "charge_store"]
    assert body["meta"]["category"] == "deduction"


def test_grid_flow(client, admin, make_employee):
    a = make_employee(last="Alpha")
    b = make_employee(last="Bravo")

    r = client.get("/api/v1/benefits?year=2025&month=6&cutoff=1st", headers=admin)
    body = r.get_json()
    assert r.status_code == 200
    assert [row["status"] for row in body["data"]] == ["no_data", "no_data"]
    assert body["meta"]["counts"] == {"all": 0, "posted": 0, "pending": 0}
    assert body["meta"]["date_range"] == {"start": "2025-06-01", "end": "2025-06-15"}

    r = client.post("/api/v1/benefits/create-and-edit", headers=admin,
                    json={"employee_id": a.id, **PERIOD, "field": "allowances", "value": "500"})
    assert r.status_code == 200
    entry = r.get_json()["data"]
    assert entry["values"]["allowances"] == 500.0
    assert entry["status"] == "pending"
    assert entry["date"] == "2025-06-15"

    r = client.patch(f"/api/v1/benefits/{entry['id']}/field", headers=admin,
                     json={"field": "sss_loan", "value": 120.5})
    assert r.get_json()["data"]["values"]["sss_loan"] == 120.5

    r = client.post(f"/api/v1/benefits/{entry['id']}/set-default", headers=admin)
    assert r.status_code == 200
    assert r.get_json()["data"]["template"]["values"]["allowances"] == 500.0
    assert r.get_json()["data"]["entry"]["is_default"] is True

    r = client.post("/api/v1/benefits/bulk-create", headers=admin, json=PERIOD)
    assert r.get_json()["data"] == {"created_count": 1, "skipped": 1, "failed": 0}

    r = client.post(f"/api/v1/benefits/{entry['id']}/post", headers=admin)
    assert r.get_json()["data"]["status"] == "posted"

    r = client.post(f"/api/v1/benefits/{entry['id']}/post", headers=admin)
    assert r.status_code == 409
    assert r.get_json()["error"]["code"] == "ALREADY_POSTED"

    r = client.patch(f"/api/v1/benefits/{entry['id']}/field", headers=admin,
                     json={"field": "allowances", "value": 999})
    assert r.status_code == 409
    assert r.get_json()["error"]["code"] == "LOCKED"

    r = client.get("/api/v1/benefits/status?year=2025&month=6&cutoff=1st", headers=admin)
    assert r.get_json()["data"] == {"all": 2, "posted": 1, "pending": 1}

    r = client.post("/api/v1/benefits/post-all", headers=admin, json=PERIOD)
    assert r.get_json()["data"] == {"updated_count": 1}

    r = client.get("/api/v1/benefits/defaults", headers=admin)
    rows = r.get_json()["data"]
    assert [row["employee"]["id"] for row in rows] == [a.id, b.id]
    assert rows[1]["template"] is None


def test_entry_routes_are_category_scoped(client, admin, make_employee):
    emp = make_employee()
    r = client.post("/api/v1/deductions/create-from-default", headers=admin,
                    json={"employee_id": emp.id, **PERIOD})
    did = r.get_json()["data"]["id"]

    assert client.get(f"/api/v1/deductions/{did}", headers=admin).status_code == 200
    r = client.get(f"/api/v1/benefits/{did}", headers=admin)
    assert r.status_code == 404
    assert r.get_json()["error"]["code"] == "NOT_FOUND"

    r = client.post("/api/v1/benefits/bulk-post", headers=admin, json={"benefit_ids": [did]})
    assert r.get_json()["data"] == {"updated_count": 0}
    r = client.post("/api/v1/deductions/bulk-post", headers=admin, json={"deduction_ids": [did]})
    assert r.get_json()["data"] == {"updated_count": 1}


def test_create_from_default_is_idempotent(client, admin, make_employee):
    emp = make_employee()
    body = {"employee_id": emp.id, "date": "2025-06-20", "cutoff": "2nd"}
    first = client.post("/api/v1/benefits/create-from-default", headers=admin, json=body).get_json()["data"]
    again = client.post("/api/v1/benefits/create-from-default", headers=admin, json=body).get_json()["data"]
    assert first["id"] == again["id"]
    assert first["date"] == "2025-06-30"


def test_validation_errors(client, admin, make_employee):
    emp = make_employee()
    r = client.post("/api/v1/benefits/create-from-default", headers=admin,
                    json={"employee_id": emp.id, "year": 2025, "month": 13, "cutoff": "1st"})
    assert r.status_code == 422
    assert r.get_json()["error"]["code"] == "VALIDATION_ERROR"

    r = client.post("/api/v1/benefits/create-and-edit", headers=admin,
                    json={"employee_id": emp.id, **PERIOD, "field": "meals", "value": 1})
    assert r.status_code == 422
    assert r.get_json()["error"]["code"] == "UNKNOWN_FIELD"

    r = client.post("/api/v1/benefits/bulk-post", headers=admin, json={"entry_ids": []})
    assert r.status_code == 422
    assert r.get_json()["error"]["message"] == "No benefits selected."


def test_bulk_set_default_route(client, admin, make_employee):
    emp = make_employee()
    eid = client.post("/api/v1/deductions/create-and-edit", headers=admin,
                      json={"employee_id": emp.id, **PERIOD, "field": "meals", "value": 80}).get_json()["data"]["id"]
    r = client.post("/api/v1/deductions/bulk-set-default", headers=admin, json={"entry_ids": [eid, 5555]})
    assert r.get_json()["data"] == {"count": 1}
    tpl = DefaultTemplate.query.filter_by(employee_id=emp.id, category="deduction").one()
    assert tpl.values_json["meals"] == "80.00"


def test_create_and_update_with_values(client, admin, make_employee):
    emp = make_employee()
    r = client.post("/api/v1/benefits", headers=admin,
                    json={"employee_id": emp.id, **PERIOD, "values": {"allowances": 300, "sss_prem": "45.5"}})
    assert r.status_code == 201
    entry = r.get_json()["data"]
    assert entry["values"]["allowances"] == 300.0
    assert entry["values"]["sss_prem"] == 45.5
    assert entry["values"]["mf_loan"] == 0.0

    r = client.post("/api/v1/benefits", headers=admin,
                    json={"employee_id": emp.id, **PERIOD, "allowances": 1})
    assert r.status_code == 409
    assert r.get_json()["error"]["code"] == "DUPLICATE_ENTRY"

    r = client.put(f"/api/v1/benefits/{entry['id']}", headers=admin,
                   json={"mf_loan": 80, "allowances": 310})
    assert r.status_code == 200
    vals = r.get_json()["data"]["values"]
    assert (vals["mf_loan"], vals["allowances"], vals["sss_prem"]) == (80.0, 310.0, 45.5)

    client.post(f"/api/v1/benefits/{entry['id']}/post", headers=admin)
    r = client.put(f"/api/v1/benefits/{entry['id']}", headers=admin, json={"values": {"mf_loan": 1}})
    assert r.status_code == 409
    assert r.get_json()["error"]["code"] == "LOCKED"
    assert db.session.get(AdjustmentEntry, entry["id"]).values()["mf_loan"] == 80


def test_update_other_ledger_entry_is_not_found(client, admin, make_employee):
    emp = make_employee()
    r = client.post("/api/v1/deductions", headers=admin, json={"employee_id": emp.id, **PERIOD})
    did = r.get_json()["data"]["id"]
    r = client.put(f"/api/v1/benefits/{did}", headers=admin, json={"allowances": 1})
    assert r.status_code == 404


def test_non_object_body_is_rejected(client, admin):
    r = client.post("/api/v1/benefits/bulk-post", headers=admin, json=[1, 2])
    assert r.status_code == 422
    assert r.get_json()["error"]["code"] == "VALIDATION_ERROR"

    r = client.post("/api/v1/benefits/create-from-default", headers=admin, json="2025-06")
    assert r.status_code == 422
