import os
from datetime import date
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token

from backoffice_api import create_app
from backoffice_api.extensions import db
from backoffice_api.models.attendance import EmployeeAttendance, Holiday
from backoffice_api.models.employee import Employee
from backoffice_api.models.master import Institution


@pytest.fixture(scope="function")
def app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    app = create_app()
    app.config["TESTING"] = True
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope="function")
def client(app):
    return app.test_client()


@pytest.fixture(scope="function")
def institution(app):
    inst = Institution(code="ESC1", name="Escola Um")
    db.session.add(inst); db.session.commit()
    return inst


@pytest.fixture(scope="function")
def other_institution(app):
    inst = Institution(code="ESC2", name="Escola Dois")
    db.session.add(inst); db.session.commit()
    return inst


@pytest.fixture(scope="function")
def make_employee(app):
    counter = {"n": 0}

    def _make(institution, base_salary="200000.00", position=None, code=None):
        counter["n"] += 1
        n = counter["n"]
        emp = Employee(
            institution_id=institution.id,
            position_id=position.id if position else None,
            code=code or f"E{n:03d}",
            email=f"emp{n}.{institution.code.lower()}@test.local",
            full_name=f"Employee {n}",
            base_salary=Decimal(base_salary) if base_salary is not None else None,
        )
        db.session.add(emp); db.session.commit()
        return emp
    return _make


@pytest.fixture(scope="function")
def add_attendance(app):
    def _add(emp, day: date, status="PRESENT", overtime_hours=None, check_in=None, check_out=None):
        row = EmployeeAttendance(
            institution_id=emp.institution_id,
            employee_id=emp.id,
            work_date=day,
            status=status,
            overtime_hours=Decimal(str(overtime_hours)) if overtime_hours is not None else None,
            check_in=check_in,
            check_out=check_out,
        )
        db.session.add(row); db.session.commit()
        return row
    return _add


@pytest.fixture(scope="function")
def add_holiday(app):
    def _add(day: date, institution=None, name="Feriado"):
        h = Holiday(institution_id=institution.id if institution else None, date=day, name=name)
        db.session.add(h); db.session.commit()
        return h
    return _add


@pytest.fixture(scope="function")
def auth(app):
    """auth(roles, institution_id, actor_id=1) -> Authorization header dict."""
    def _headers(roles, institution_id=None, actor_id=1):
        claims = {"roles": list(roles)}
        if institution_id is not None:
            claims["institution_id"] = institution_id
        token = create_access_token(identity=str(actor_id), additional_claims=claims)
        return {"Authorization": f"Bearer {token}"}
    return _headers
