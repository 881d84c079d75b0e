from datetime import date

import pytest

from backoffice_api.extensions import db
from backoffice_api.models.audit import AuditLog
from backoffice_api.models.payroll import PayrollRecord


@pytest.fixture()
def employee(institution, make_employee, add_holiday, add_attendance):
    emp = make_employee(institution, base_salary="200000.00")
    add_holiday(date(2025, 3, 10))
    add_attendance(emp, date(2025, 3, 3), "UNJUSTIFIED_ABSENCE")
    add_attendance(emp, date(2025, 3, 4), "UNJUSTIFIED_ABSENCE")
    return emp


@pytest.fixture()
def admin(auth, institution):
    return auth(["ADMIN"], institution.id, actor_id=1)


@pytest.fixture()
def hr(auth, institution):
    return auth(["HR"], institution.id, actor_id=2)


def _create(client, headers, emp, **extra):
    body = {"employee_id": emp.id, "month": 3, "year": 2025}
    body.update(extra)
    return client.post("/api/v1/payroll", json=body, headers=headers)


def test_scenario_a_create_computes_net(client, admin, employee):
    r = _create(client, admin, employee)
    assert r.status_code == 201
    data = r.get_json()["data"]
    assert data["status"] == "DRAFT"
    assert data["business_days"] == 20
    assert data["daily_rate"] == 10000.0
    assert data["absence_deduction"] == 20000.0
    assert data["inss"] == 6000.0
    assert data["net_salary"] == 174000.0
    assert data["employee"]["id"] == employee.id


def test_camel_case_input_is_accepted(client, admin, employee):
    r = client.post("/api/v1/payroll", json={
        "employeeId": employee.id, "month": 3, "year": 2025,
        "transportBenefit": 2500, "mealBenefit": "1500.00", "otherDeductions": 1000,
    }, headers=admin)
    assert r.status_code == 201
    data = r.get_json()["data"]
    assert data["transport_benefit"] == 2500.0
    assert data["meal_benefit"] == 1500.0
    assert data["net_salary"] == 177000.0


def test_scenario_b_close_update_reopen(client, admin, hr, employee):
    rec_id = _create(client, hr, employee).get_json()["data"]["id"]

    r = client.post(f"/api/v1/payroll/{rec_id}/close", headers=hr)
    assert r.status_code == 200
    assert r.get_json()["data"]["status"] == "CLOSED"

    r = client.put(f"/api/v1/payroll/{rec_id}", json={"bonus": 1000}, headers=admin)
    assert r.status_code == 403
    assert r.get_json()["error"]["code"] == "RECORD_LOCKED"

    r = client.post(f"/api/v1/payroll/{rec_id}/reopen", json={}, headers=admin)
    assert r.status_code == 400

    r = client.post(f"/api/v1/payroll/{rec_id}/reopen", json={"justification": "erro"}, headers=hr)
    assert r.status_code == 403
    assert AuditLog.query.filter_by(action="BLOCK").count() == 1

    r = client.post(f"/api/v1/payroll/{rec_id}/reopen", json={"justification": "erro"}, headers=admin)
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["status"] == "DRAFT"
    assert data["reopen_justification"] == "erro"


def test_scenario_c_pay_then_delete_rejected(client, admin, hr, employee):
    rec_id = _create(client, admin, employee).get_json()["data"]["id"]
    client.post(f"/api/v1/payroll/{rec_id}/close", headers=admin)

    r = client.post(f"/api/v1/payroll/{rec_id}/pay", json={}, headers=hr)
    assert r.status_code == 400

    r = client.post(f"/api/v1/payroll/{rec_id}/pay", json={"paymentMethod": "TRANSFER",
                                                          "paymentReference": "BAI-123"}, headers=hr)
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["status"] == "PAID"
    assert data["paid_by"] == 2
    assert data["paid_at"]
    assert data["payment_method"] == "TRANSFER"
    assert data["payment_reference"] == "BAI-123"

    r = client.delete(f"/api/v1/payroll/{rec_id}", headers=admin)
    assert r.status_code == 403


def test_reverse_payment(client, admin, hr, employee):
    rec_id = _create(client, admin, employee).get_json()["data"]["id"]
    client.post(f"/api/v1/payroll/{rec_id}/close", headers=admin)
    client.post(f"/api/v1/payroll/{rec_id}/pay", json={"payment_method": "CASH"}, headers=hr)

    r = client.post(f"/api/v1/payroll/{rec_id}/reverse-payment", json={"justification": "x"}, headers=hr)
    assert r.status_code == 403

    r = client.post(f"/api/v1/payroll/{rec_id}/reverse-payment", json={}, headers=admin)
    assert r.status_code == 400

    r = client.post(f"/api/v1/payroll/{rec_id}/reverse-payment", json={"justification": "x"}, headers=admin)
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["status"] == "CLOSED"
    assert data["payment_method"] is None


def test_delete_draft_returns_204(client, admin, employee):
    rec_id = _create(client, admin, employee).get_json()["data"]["id"]
    r = client.delete(f"/api/v1/payroll/{rec_id}", headers=admin)
    assert r.status_code == 204
    assert r.data == b""
    assert client.get(f"/api/v1/payroll/{rec_id}", headers=admin).status_code == 404


def test_duplicate_create_conflicts(client, admin, employee):
    assert _create(client, admin, employee).status_code == 201
    r = _create(client, admin, employee)
    assert r.status_code == 409
    assert r.get_json()["success"] is False


def test_missing_token_is_401(client, employee):
    assert client.get("/api/v1/payroll").status_code == 401
    assert client.post("/api/v1/payroll/1/close").status_code == 401


def test_role_without_write_access_cannot_create(client, auth, institution, employee):
    librarian = auth(["LIBRARIAN"], institution.id)
    r = _create(client, librarian, employee)
    assert r.status_code == 403
    assert r.get_json()["error"]["code"] == "ROLE_FORBIDDEN"


def test_validation_errors(client, admin, employee):
    assert _create(client, admin, employee, month=13).status_code == 400
    assert client.post("/api/v1/payroll", json={"month": 3, "year": 2025}, headers=admin).status_code == 400
    assert _create(client, admin, employee, bonus="abc").status_code == 400
    assert _create(client, admin, employee, bonus=-5).status_code == 400

    rec_id = _create(client, admin, employee).get_json()["data"]["id"]
    r = client.put(f"/api/v1/payroll/{rec_id}", json={"status": "ARCHIVED"}, headers=admin)
    assert r.status_code == 400


def test_update_status_transition_names_states(client, admin, employee):
    rec_id = _create(client, admin, employee).get_json()["data"]["id"]
    r = client.put(f"/api/v1/payroll/{rec_id}", json={"status": "PAID"}, headers=admin)
    assert r.status_code == 403
    assert "DRAFT -> PAID" in r.get_json()["error"]["message"]

    r = client.put(f"/api/v1/payroll/{rec_id}", json={"status": "CALCULATED", "bonus": 1000}, headers=admin)
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["status"] == "CALCULATED"
    assert data["net_salary"] == 175000.0


def test_tenant_isolation(client, auth, admin, other_institution, employee):
    rec_id = _create(client, admin, employee).get_json()["data"]["id"]
    other = auth(["ADMIN"], other_institution.id)

    assert client.get(f"/api/v1/payroll/{rec_id}", headers=other).status_code == 404
    assert client.post(f"/api/v1/payroll/{rec_id}/close", headers=other).status_code == 404
    r = _create(client, other, employee)
    assert r.status_code == 403
    assert r.get_json()["error"]["code"] == "TENANT_MISMATCH"
    r = client.post("/api/v1/payroll/calculate",
                    json={"employeeId": employee.id, "month": 3, "year": 2025}, headers=other)
    assert r.status_code == 403
    r = client.post("/api/v1/payroll", json={"employee_id": 999999, "month": 3, "year": 2025}, headers=other)
    assert r.status_code == 404

    r = client.get("/api/v1/payroll", headers=other)
    assert r.get_json()["data"] == []


def test_super_admin_scopes_with_query_param(client, auth, institution, other_institution, employee):
    rec_id = _create(client, auth(["ADMIN"], institution.id), employee).get_json()["data"]["id"]
    root = auth(["SUPER_ADMIN"])

    assert client.get(f"/api/v1/payroll/{rec_id}", headers=root).status_code == 200
    r = client.get(f"/api/v1/payroll/{rec_id}?institution_id={other_institution.id}", headers=root)
    assert r.status_code == 404


def test_caller_without_institution_is_forbidden(client, auth, employee):
    r = client.get("/api/v1/payroll", headers=auth(["HR"]))
    assert r.status_code == 403
    assert r.get_json()["error"]["code"] == "TENANT_REQUIRED"


def test_list_filters_and_paging(client, admin, employee):
    _create(client, admin, employee)
    _create(client, admin, employee, month=4)
    _create(client, admin, employee, month=1, year=2026)

    r = client.get("/api/v1/payroll?size=2", headers=admin)
    body = r.get_json()
    assert body["meta"] == {"page": 1, "size": 2, "total": 3}
    assert [(x["year"], x["month"]) for x in body["data"]] == [(2026, 1), (2025, 4)]

    r = client.get(f"/api/v1/payroll?employeeId={employee.id}&month=3&year=2025", headers=admin)
    assert r.get_json()["meta"]["total"] == 1

    r = client.get("/api/v1/payroll?status=draft", headers=admin)
    assert r.get_json()["meta"]["total"] == 3


def test_calculate_preview(client, admin, employee):
    r = client.post("/api/v1/payroll/calculate",
                    json={"employeeId": employee.id, "month": 3, "year": 2025}, headers=admin)
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["net_salary"] == 174000.0
    assert data["attendance"]["absences"] == 2
    assert PayrollRecord.query.count() == 0


def test_base_salary_and_absence_deduction_endpoints(client, admin, employee):
    r = client.get(f"/api/v1/payroll/base-salary/{employee.id}", headers=admin)
    assert r.status_code == 200
    assert r.get_json()["data"]["base_salary"] == 200000.0

    r = client.get(f"/api/v1/payroll/absence-deduction?employee_id={employee.id}&month=3&year=2025",
                   headers=admin)
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["unjustified_absences"] == 2
    assert data["absence_deduction"] == 20000.0

    assert client.get("/api/v1/payroll/absence-deduction?month=3", headers=admin).status_code == 400
    assert client.get("/api/v1/payroll/base-salary/999999", headers=admin).status_code == 404


def test_audit_failure_keeps_primary_operation(app, client, admin, employee):
    class Broken:
        def log(self, caller, event):
            raise RuntimeError("audit down")

    app.extensions["payroll"].audit = Broken()
    r = _create(client, admin, employee)
    assert r.status_code == 201
    rec_id = r.get_json()["data"]["id"]
    assert client.post(f"/api/v1/payroll/{rec_id}/close", headers=admin).status_code == 200
    assert AuditLog.query.count() == 0


def test_close_without_base_salary_is_rejected_and_stays_open(client, admin, employee):
    rec_id = _create(client, admin, employee).get_json()["data"]["id"]
    employee.base_salary = None
    db.session.commit()

    r = client.post(f"/api/v1/payroll/{rec_id}/close", headers=admin)
    assert r.status_code == 400
    assert r.get_json()["error"]["code"] == "MISSING_BASE_SALARY"

    data = client.get(f"/api/v1/payroll/{rec_id}", headers=admin).get_json()["data"]
    assert data["status"] == "DRAFT"
    assert data["closed_at"] is None
