import os

import pytest

from payadmin_api import create_app
from payadmin_api.extensions import db
from payadmin_api.models.employee import Employee
from payadmin_api.models.master import Department


def _mk_app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
    app = create_app()
    app.config["TESTING"] = True
    return app


@pytest.fixture
def app():
    app = _mk_app()
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def make_employee(app):
    dept = Department(code="OPS", name="Operations")
    db.session.add(dept); db.session.commit()
    seq = iter(range(1, 10000))

    def _make(last="Reyes", first="Ana", status="active"):
        e = Employee(idno=f"E-{next(seq):04d}", first_name=first, last_name=last,
                     department_id=dept.id, status=status)
        db.session.add(e); db.session.commit()
        return e
    return _make
