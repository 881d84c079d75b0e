from __future__ import annotations
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from flask import Blueprint, current_app, request
from flask_jwt_extended import jwt_required

from backoffice_api.common.auth import ADMIN, DIRECTOR, HR, SECRETARIAT, current_caller, requires_roles
from backoffice_api.common.errors import ValidationError
from backoffice_api.common.http import created, no_content, ok
from backoffice_api.models.payroll import PayrollRecord
from backoffice_api.services.payroll_lifecycle import (
    PayrollInput,
    PayrollLifecycleManager,
    parse_status,
)

bp = Blueprint("payroll", __name__, url_prefix="/api/v1/payroll")

WRITE_ROLES = (ADMIN, DIRECTOR, SECRETARIAT, HR)
MAX_PAGE_SIZE = 100

# camelCase aliases accepted on input; output is always snake_case
ALIASES = {
    "employeeId": "employee_id",
    "overtimeHours": "overtime_hours",
    "transportBenefit": "transport_benefit",
    "mealBenefit": "meal_benefit",
    "otherBenefits": "other_benefits",
    "otherDeductions": "other_deductions",
    "paymentMethod": "payment_method",
    "paymentReference": "payment_reference",
    "paymentNote": "payment_note",
    "reopenJustification": "justification",
}

MONEY_FIELDS = (
    "overtime_hours",
    "bonus",
    "transport_benefit",
    "meal_benefit",
    "other_benefits",
    "inss",
    "irt",
    "other_deductions",
)


def _manager() -> PayrollLifecycleManager:
    return current_app.extensions["payroll"]


# ---------- parsing ----------
def _body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    out = {}
    for k, v in data.items():
        key = ALIASES.get(k, k)
        # snake_case wins when both spellings are sent
        if key in out and key != k:
            continue
        out[key] = v
    return out


def _int(v, field: str) -> Optional[int]:
    if v is None or v == "":
        return None
    if isinstance(v, bool):
        raise ValidationError(f"{field} must be integer")
    try:
        return int(v)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be integer")


def _month(v) -> Optional[int]:
    m = _int(v, "month")
    if m is not None and not 1 <= m <= 12:
        raise ValidationError("month must be between 1 and 12")
    return m


def _dec(v, field: str) -> Optional[Decimal]:
    if v is None or v == "":
        return None
    if isinstance(v, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        d = Decimal(str(v))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not d.is_finite():
        raise ValidationError(f"{field} must be a number")
    if d < 0:
        raise ValidationError(f"{field} must not be negative")
    return d


def _parse_input(data: Dict[str, Any]) -> PayrollInput:
    values: Dict[str, Any] = {}
    if "employee_id" in data:
        values["employee_id"] = _int(data["employee_id"], "employee_id")
    if "month" in data:
        values["month"] = _month(data["month"])
    if "year" in data:
        values["year"] = _int(data["year"], "year")
    for name in MONEY_FIELDS:
        if name in data:
            values[name] = _dec(data[name], name)
    if "notes" in data:
        values["notes"] = (str(data["notes"]).strip() or None) if data["notes"] is not None else None
    if "status" in data:
        values["status"] = parse_status(data["status"])

    provided = frozenset(values)
    for key in ("employee_id", "month", "year"):
        if key in provided and values[key] is None:
            raise ValidationError(f"{key} cannot be empty")
    return PayrollInput(provided=provided, **values)


def _page_size():
    try:
        page = max(int(request.args.get("page", 1)), 1)
        size = min(max(int(request.args.get("size", 20)), 1), MAX_PAGE_SIZE)
    except (TypeError, ValueError):
        page, size = 1, 20
    return page, size


def _query_period():
    employee_id = _int(request.args.get("employee_id") or request.args.get("employeeId"), "employee_id")
    month = _month(request.args.get("month"))
    year = _int(request.args.get("year"), "year")
    return employee_id, month, year


# ---------- serialization ----------
def _f(v) -> float:
    return float(v or 0)


def _iso(v) -> Optional[str]:
    return v.isoformat() if v else None


def row_record(r: PayrollRecord) -> Dict[str, Any]:
    emp = r.employee
    return {
        "id": r.id,
        "institution_id": r.institution_id,
        "employee_id": r.employee_id,
        "employee": {"id": emp.id, "code": emp.code, "full_name": emp.full_name} if emp else None,
        "month": r.month,
        "year": r.year,
        "business_days": r.business_days,
        "base_salary": _f(r.base_salary),
        "daily_rate": _f(r.daily_rate),
        "unjustified_absences": r.unjustified_absences,
        "absence_deduction": _f(r.absence_deduction),
        "hourly_rate": _f(r.hourly_rate),
        "overtime_hours": _f(r.overtime_hours),
        "overtime_pay": _f(r.overtime_pay),
        "bonus": _f(r.bonus),
        "transport_benefit": _f(r.transport_benefit),
        "meal_benefit": _f(r.meal_benefit),
        "other_benefits": _f(r.other_benefits),
        "inss": _f(r.inss),
        "inss_is_manual": bool(r.inss_is_manual),
        "irt": _f(r.irt),
        "other_deductions": _f(r.other_deductions),
        "net_salary": _f(r.net_salary),
        "notes": r.notes,
        "status": r.status.value if r.status else None,
        "closed_at": _iso(r.closed_at),
        "closed_by": r.closed_by,
        "reopened_at": _iso(r.reopened_at),
        "reopened_by": r.reopened_by,
        "reopen_justification": r.reopen_justification,
        "paid_at": _iso(r.paid_at),
        "paid_by": r.paid_by,
        "payment_method": r.payment_method.value if r.payment_method else None,
        "payment_reference": r.payment_reference,
        "payment_note": r.payment_note,
        "created_by": r.created_by,
        "created_at": _iso(r.created_at),
        "updated_at": _iso(r.updated_at),
    }


def _plain(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: (float(v) if isinstance(v, Decimal) else v) for k, v in d.items()}


# ---------- reads ----------
@bp.get("")
@jwt_required()
def list_records():
    caller = current_caller()
    employee_id, month, year = _query_period()
    status = parse_status(request.args.get("status"))
    page, size = _page_size()
    rows, total = _manager().list_records(
        caller, employee_id=employee_id, month=month, year=year, status=status, page=page, size=size,
    )
    return ok([row_record(r) for r in rows], page=page, size=size, total=total)


@bp.get("/<int:record_id>")
@jwt_required()
def get_record(record_id: int):
    return ok(row_record(_manager().get_record(current_caller(), record_id)))


@bp.post("/calculate")
@jwt_required()
def calculate():
    """Automatic calculation for one employee and month, nothing is stored."""
    caller = current_caller()
    data = _body()
    employee_id = _int(data.get("employee_id"), "employee_id")
    month = _month(data.get("month"))
    year = _int(data.get("year"), "year")
    if employee_id is None or month is None or year is None:
        raise ValidationError("employee_id, month and year are required")

    out = _manager().preview(caller, employee_id, month, year)
    return ok(_plain(out))


@bp.get("/base-salary/<int:employee_id>")
@jwt_required()
def base_salary(employee_id: int):
    out = _manager().base_salary(current_caller(), employee_id)
    return ok(_plain(out))


@bp.get("/absence-deduction")
@jwt_required()
def absence_deduction():
    caller = current_caller()
    employee_id, month, year = _query_period()
    if employee_id is None or month is None or year is None:
        raise ValidationError("employee_id, month and year are required")
    out = _manager().absence_deduction(caller, employee_id, month, year)
    return ok(_plain(out))


# ---------- writes ----------
@bp.post("")
@requires_roles(*WRITE_ROLES)
def create_record():
    caller = current_caller()
    data = _parse_input(_body())
    missing = [k for k in ("employee_id", "month", "year") if not data.has(k)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    rec = _manager().create(caller, data)
    return created(row_record(rec))


@bp.put("/<int:record_id>")
@requires_roles(*WRITE_ROLES)
def update_record(record_id: int):
    caller = current_caller()
    data = _parse_input(_body())
    rec = _manager().update(caller, record_id, data)
    return ok(row_record(rec))


@bp.delete("/<int:record_id>")
@requires_roles(*WRITE_ROLES)
def delete_record(record_id: int):
    _manager().delete(current_caller(), record_id)
    return no_content()


@bp.post("/<int:record_id>/close")
@jwt_required()
def close_record(record_id: int):
    rec = _manager().close(current_caller(), record_id)
    return ok(row_record(rec))


@bp.post("/<int:record_id>/reopen")
@jwt_required()
def reopen_record(record_id: int):
    caller = current_caller()
    data = _body()
    rec = _manager().reopen(caller, record_id, data.get("justification"))
    return ok(row_record(rec))


@bp.post("/<int:record_id>/pay")
@jwt_required()
def pay_record(record_id: int):
    caller = current_caller()
    data = _body()
    rec = _manager().pay(
        caller,
        record_id,
        data.get("payment_method"),
        reference=data.get("payment_reference"),
        note=data.get("payment_note"),
    )
    return ok(row_record(rec))


@bp.post("/<int:record_id>/reverse-payment")
@jwt_required()
def reverse_payment(record_id: int):
    caller = current_caller()
    data = _body()
    rec = _manager().reverse_payment(caller, record_id, data.get("justification"))
    return ok(row_record(rec))
