# backoffice_api/services/payroll_lifecycle.py
"""
Payroll record lifecycle.

    create            ->  DRAFT
    update            DRAFT | CALCULATED  ->  DRAFT | CALCULATED   (full recompute)
    close             DRAFT | CALCULATED  ->  CLOSED               (final recompute)
    reopen            CLOSED              ->  DRAFT                (ADMIN, DIRECTOR)
    pay               CLOSED              ->  PAID                 (ADMIN, SUPER_ADMIN, SECRETARIAT, HR)
    reverse_payment   PAID                ->  CLOSED               (ADMIN, DIRECTOR)
    delete            DRAFT               ->  removed

Every write reads, guards and writes inside one transaction with the row
locked. Derived amounts are recomputed inside that transaction, after the
lock is taken. Audit events are emitted after the commit; a failing emitter
is logged and ignored.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, FrozenSet, List, Optional, Tuple
import enum
import logging

from backoffice_api.common.auth import ADMIN, DIRECTOR, HR, SECRETARIAT, SUPER_ADMIN, CallerContext
from backoffice_api.common.errors import (
    InvalidStateError,
    NotFoundError,
    RecordLockedError,
    RoleForbiddenError,
    TenantMismatchError,
    TransitionNotAllowedError,
    ValidationError,
)
from backoffice_api.extensions import utcnow
from backoffice_api.models.employee import Employee
from backoffice_api.models.payroll import PaymentMethod, PayrollRecord, PayrollStatus
from backoffice_api.services.attendance_aggregator import AttendanceAggregator
from backoffice_api.services.audit import AuditEmitter, AuditEvent
from backoffice_api.services.payroll_calculator import (
    DEFAULT_HOURS_PER_DAY,
    DEFAULT_INSS_RATE,
    ZERO,
    DerivedFields,
    ManualInputs,
    compute_attendance_derived,
    derive_all,
)
from backoffice_api.services.payroll_store import PayrollRecordStore

log = logging.getLogger(__name__)

MODULE = "payroll"
ENTITY = "payroll_record"

REOPEN_ROLES = frozenset({ADMIN, DIRECTOR})
PAY_ROLES = frozenset({ADMIN, SUPER_ADMIN, SECRETARIAT, HR})
REVERSE_ROLES = frozenset({ADMIN, DIRECTOR})

# status changes an ordinary update may request
UPDATE_TRANSITIONS = {
    PayrollStatus.DRAFT: {PayrollStatus.DRAFT, PayrollStatus.CALCULATED},
    PayrollStatus.CALCULATED: {PayrollStatus.DRAFT, PayrollStatus.CALCULATED},
}

MANUAL_FIELDS = (
    "bonus",
    "transport_benefit",
    "meal_benefit",
    "other_benefits",
    "irt",
    "other_deductions",
)

DERIVED_FIELDS = (
    "base_salary",
    "business_days",
    "daily_rate",
    "unjustified_absences",
    "absence_deduction",
    "hourly_rate",
    "overtime_hours",
    "overtime_pay",
    "bonus",
    "transport_benefit",
    "meal_benefit",
    "other_benefits",
    "inss",
    "inss_is_manual",
    "irt",
    "other_deductions",
    "net_salary",
)

SNAPSHOT_FIELDS = (
    "institution_id",
    "employee_id",
    "month",
    "year",
    *DERIVED_FIELDS,
    "notes",
    "status",
    "closed_at",
    "closed_by",
    "reopened_at",
    "reopened_by",
    "reopen_justification",
    "paid_at",
    "paid_by",
    "payment_method",
    "payment_reference",
    "payment_note",
)


@dataclass(frozen=True)
class PayrollInput:
    """
    Canonical create/update payload. `provided` holds the names of the keys
    present in the request, so an omitted key can be told apart from an
    explicit null (relevant for `inss`: null reverts to the default rate).
    """
    employee_id: Optional[int] = None
    month: Optional[int] = None
    year: Optional[int] = None
    overtime_hours: Optional[Decimal] = None
    bonus: Optional[Decimal] = None
    transport_benefit: Optional[Decimal] = None
    meal_benefit: Optional[Decimal] = None
    other_benefits: Optional[Decimal] = None
    inss: Optional[Decimal] = None
    irt: Optional[Decimal] = None
    other_deductions: Optional[Decimal] = None
    notes: Optional[str] = None
    status: Optional[PayrollStatus] = None
    provided: FrozenSet[str] = field(default_factory=frozenset)

    def has(self, name: str) -> bool:
        return name in self.provided


def _jsonable(v):
    if isinstance(v, Decimal):
        return str(v)
    if isinstance(v, enum.Enum):
        return v.value
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    return v


def snapshot(rec: PayrollRecord) -> Dict[str, Any]:
    return {f: _jsonable(getattr(rec, f)) for f in SNAPSHOT_FIELDS}


def diff(before: Dict[str, Any], after: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Only the keys whose value changed, as (before, after)."""
    keys = [k for k in after if before.get(k) != after.get(k)]
    return {k: before.get(k) for k in keys}, {k: after.get(k) for k in keys}


class PayrollLifecycleManager:
    def __init__(
        self,
        aggregator: Optional[AttendanceAggregator] = None,
        store: Optional[PayrollRecordStore] = None,
        audit: Optional[AuditEmitter] = None,
        inss_rate: Decimal = DEFAULT_INSS_RATE,
        hours_per_day: int = DEFAULT_HOURS_PER_DAY,
    ):
        self.hours_per_day = int(hours_per_day)
        self.aggregator = aggregator or AttendanceAggregator(hours_per_day=self.hours_per_day)
        self.store = store or PayrollRecordStore()
        self.audit = audit or AuditEmitter()
        self.inss_rate = Decimal(str(inss_rate))

    # ---------- helpers ----------
    def _audit(self, caller: CallerContext, event: AuditEvent) -> None:
        try:
            self.audit.log(caller, event)
        except Exception:
            log.warning(
                "audit emission failed for %s %s=%s", event.action, event.entity, event.entity_id,
                exc_info=True,
            )

    def _event(self, action: str, rec_id, institution_id=None, before=None, after=None, note=None) -> AuditEvent:
        return AuditEvent(
            module=MODULE,
            action=action,
            entity=ENTITY,
            entity_id=str(rec_id) if rec_id is not None else None,
            before=before,
            after=after,
            note=note,
            institution_id=institution_id,
        )

    def _require_roles(self, caller: CallerContext, allowed: FrozenSet[str], action: str, record_id) -> None:
        if caller.has_any_role(allowed):
            return
        needed = ", ".join(sorted(allowed))
        log.warning(
            "blocked %s on payroll record %s by %s (roles=%s)",
            action, record_id, caller.actor_id, sorted(caller.roles),
        )
        self._audit(caller, self._event(
            "BLOCK", record_id,
            institution_id=caller.tenant_id,
            note=f"{action} requires one of: {needed}",
        ))
        raise RoleForbiddenError(f"{action} requires one of the roles: {needed}")

    @staticmethod
    def _require_justification(justification: Optional[str]) -> str:
        text = str(justification).strip() if justification is not None else ""
        if not text:
            raise ValidationError("justification is required")
        return text

    def _resolve_employee(self, tenant_id: Optional[int], employee_id) -> Employee:
        if employee_id is None:
            raise ValidationError("employee_id is required")
        emp = self.aggregator.get_employee(employee_id)
        if emp is None:
            raise NotFoundError("Employee not found")
        if tenant_id is not None and emp.institution_id != tenant_id:
            raise TenantMismatchError("Access denied to this employee")
        return emp

    @staticmethod
    def _require_period(month, year) -> Tuple[int, int]:
        if month is None or year is None:
            raise ValidationError("month and year are required")
        if not 1 <= int(month) <= 12:
            raise ValidationError("month must be between 1 and 12")
        return int(month), int(year)

    @staticmethod
    def _manual_inputs(data: Optional[PayrollInput], rec: Optional[PayrollRecord]) -> ManualInputs:
        values: Dict[str, Any] = {}
        for name in MANUAL_FIELDS:
            if data is not None and data.has(name):
                values[name] = getattr(data, name) or ZERO
            elif rec is not None:
                values[name] = getattr(rec, name) or ZERO
            else:
                values[name] = ZERO

        if data is not None and data.has("inss"):
            values["inss"] = data.inss
        elif rec is not None and rec.inss_is_manual:
            values["inss"] = rec.inss
        else:
            values["inss"] = None
        return ManualInputs(**values)

    def _derive(self, employee_id: int, month: int, year: int, tenant_id: int,
                manual: ManualInputs, overtime_hours=None) -> DerivedFields:
        attendance = compute_attendance_derived(
            self.aggregator, employee_id, month, year, tenant_id,
            overtime_hours=overtime_hours,
            hours_per_day=self.hours_per_day,
        )
        return derive_all(attendance, manual, self.inss_rate)

    @staticmethod
    def _apply(rec: PayrollRecord, derived: DerivedFields) -> None:
        values = derived.as_dict()
        for name in DERIVED_FIELDS:
            setattr(rec, name, values[name])

    # ---------- reads ----------
    def list_records(self, caller: CallerContext, employee_id=None, month=None, year=None,
                     status: Optional[PayrollStatus] = None, page: int = 1, size: int = 20
                     ) -> Tuple[List[PayrollRecord], int]:
        tenant_id = caller.require_tenant()
        return self.store.list(tenant_id, employee_id=employee_id, month=month, year=year,
                               status=status, page=page, size=size)

    def get_record(self, caller: CallerContext, record_id: int) -> PayrollRecord:
        return self.store.get(record_id, caller.require_tenant())

    def preview(self, caller: CallerContext, employee_id, month, year) -> Dict[str, Any]:
        """Derive a month's payroll without persisting it, with default INSS."""
        month, year = self._require_period(month, year)
        tenant_id = caller.require_tenant()
        emp = self._resolve_employee(tenant_id, employee_id)
        tenant_id = emp.institution_id if tenant_id is None else tenant_id

        if self.aggregator.get_business_days(month, year, tenant_id) == 0:
            raise ValidationError("The selected month has no business days")

        derived = self._derive(emp.id, month, year, tenant_id, ManualInputs())
        summary = self.aggregator.attendance_summary(emp.id, month, year, tenant_id)

        self._audit(caller, AuditEvent(
            module=MODULE, action="CALCULATE", entity="employee", entity_id=str(emp.id),
            after={"month": month, "year": year, "net_salary": str(derived.net_salary)},
            institution_id=tenant_id,
        ))
        out = {"employee_id": emp.id, "month": month, "year": year}
        out.update(derived.as_dict())
        out["attendance"] = summary
        return out

    def base_salary(self, caller: CallerContext, employee_id) -> Dict[str, Any]:
        emp = self._resolve_employee(caller.require_tenant(), employee_id)
        return {"employee_id": emp.id, "base_salary": self.aggregator.get_base_salary(emp.id)}

    def absence_deduction(self, caller: CallerContext, employee_id, month, year) -> Dict[str, Any]:
        month, year = self._require_period(month, year)
        tenant_id = caller.require_tenant()
        emp = self._resolve_employee(tenant_id, employee_id)
        tenant_id = emp.institution_id if tenant_id is None else tenant_id

        att = compute_attendance_derived(
            self.aggregator, emp.id, month, year, tenant_id, hours_per_day=self.hours_per_day,
        )
        return {
            "employee_id": emp.id,
            "month": month,
            "year": year,
            "base_salary": att.base_salary,
            "business_days": att.business_days,
            "daily_rate": att.daily_rate,
            "unjustified_absences": att.unjustified_absences,
            "absence_deduction": att.absence_deduction,
        }

    # ---------- writes ----------
    def create(self, caller: CallerContext, data: PayrollInput) -> PayrollRecord:
        month, year = self._require_period(data.month, data.year)
        tenant_id = caller.require_tenant()
        emp = self._resolve_employee(tenant_id, data.employee_id)
        tenant_id = emp.institution_id if tenant_id is None else tenant_id

        with self.store.transaction():
            derived = self._derive(
                emp.id, month, year, tenant_id,
                self._manual_inputs(data, None),
                overtime_hours=data.overtime_hours,
            )
            rec = PayrollRecord(
                institution_id=tenant_id,
                employee_id=emp.id,
                month=month,
                year=year,
                status=PayrollStatus.DRAFT,
                notes=data.notes,
                created_by=caller.actor_id,
            )
            self._apply(rec, derived)
            self.store.insert(rec)

        log.info("payroll record %s created for employee %s %02d/%s by %s",
                 rec.id, emp.id, month, year, caller.actor_id)
        self._audit(caller, self._event("CREATE", rec.id, tenant_id, after=snapshot(rec)))
        return rec

    def update(self, caller: CallerContext, record_id: int, data: PayrollInput) -> PayrollRecord:
        tenant_id = caller.require_tenant()

        with self.store.transaction(record_id):
            rec = self.store.get(record_id, tenant_id, for_update=True)
            if rec.is_locked:
                raise RecordLockedError(
                    f"Payroll record is {rec.status.value} and can no longer be edited"
                )
            if data.status is not None and data.status not in UPDATE_TRANSITIONS[rec.status]:
                raise TransitionNotAllowedError(
                    f"Status change not allowed: {rec.status.value} -> {data.status.value}"
                )
            before = snapshot(rec)

            employee_id = data.employee_id if data.has("employee_id") else rec.employee_id
            month = data.month if data.has("month") else rec.month
            year = data.year if data.has("year") else rec.year
            month, year = self._require_period(month, year)
            if employee_id != rec.employee_id:
                employee_id = self._resolve_employee(rec.institution_id, employee_id).id

            derived = self._derive(
                employee_id, month, year, rec.institution_id,
                self._manual_inputs(data, rec),
                overtime_hours=data.overtime_hours,
            )
            rec.employee_id = employee_id
            rec.month = month
            rec.year = year
            self._apply(rec, derived)
            if data.has("notes"):
                rec.notes = data.notes
            if data.status is not None:
                rec.status = data.status
            self.store.session.flush()

        after = snapshot(rec)
        log.info("payroll record %s updated by %s", rec.id, caller.actor_id)
        b, a = diff(before, after)
        self._audit(caller, self._event("UPDATE", rec.id, rec.institution_id, before=b, after=a))
        return rec

    def delete(self, caller: CallerContext, record_id: int) -> None:
        tenant_id = caller.require_tenant()

        with self.store.transaction(record_id):
            rec = self.store.get(record_id, tenant_id, for_update=True)
            if rec.status != PayrollStatus.DRAFT:
                raise InvalidStateError(
                    f"Only DRAFT payroll records can be deleted (current status: {rec.status.value})"
                )
            before = snapshot(rec)
            institution_id = rec.institution_id
            self.store.delete(rec)

        log.info("payroll record %s deleted by %s", record_id, caller.actor_id)
        self._audit(caller, self._event("DELETE", record_id, institution_id, before=before))

    def close(self, caller: CallerContext, record_id: int) -> PayrollRecord:
        tenant_id = caller.require_tenant()

        with self.store.transaction(record_id):
            rec = self.store.get(record_id, tenant_id, for_update=True)
            if rec.status not in (PayrollStatus.DRAFT, PayrollStatus.CALCULATED):
                raise InvalidStateError(
                    f"Cannot close a payroll record in status {rec.status.value}"
                )
            before = snapshot(rec)
            derived = self._derive(
                rec.employee_id, rec.month, rec.year, rec.institution_id,
                self._manual_inputs(None, rec),
            )
            self._apply(rec, derived)
            rec.status = PayrollStatus.CLOSED
            rec.closed_at = utcnow()
            rec.closed_by = caller.actor_id

        log.info("payroll record %s closed by %s", rec.id, caller.actor_id)
        b, a = diff(before, snapshot(rec))
        self._audit(caller, self._event("CLOSE", rec.id, rec.institution_id, before=b, after=a))
        return rec

    def reopen(self, caller: CallerContext, record_id: int, justification: Optional[str]) -> PayrollRecord:
        justification = self._require_justification(justification)
        self._require_roles(caller, REOPEN_ROLES, "REOPEN", record_id)
        tenant_id = caller.require_tenant()

        with self.store.transaction(record_id):
            rec = self.store.get(record_id, tenant_id, for_update=True)
            if rec.status != PayrollStatus.CLOSED:
                raise InvalidStateError(
                    f"Only CLOSED payroll records can be reopened (current status: {rec.status.value})"
                )
            before = snapshot(rec)
            rec.status = PayrollStatus.DRAFT
            rec.closed_at = None
            rec.closed_by = None
            rec.reopened_at = utcnow()
            rec.reopened_by = caller.actor_id
            rec.reopen_justification = justification

        log.info("payroll record %s reopened by %s", rec.id, caller.actor_id)
        b, a = diff(before, snapshot(rec))
        self._audit(caller, self._event("REOPEN", rec.id, rec.institution_id,
                                        before=b, after=a, note=justification))
        return rec

    def pay(self, caller: CallerContext, record_id: int, method,
            reference: Optional[str] = None, note: Optional[str] = None) -> PayrollRecord:
        method = parse_payment_method(method)
        self._require_roles(caller, PAY_ROLES, "PAY", record_id)
        tenant_id = caller.require_tenant()

        with self.store.transaction(record_id):
            rec = self.store.get(record_id, tenant_id, for_update=True)
            if rec.status != PayrollStatus.CLOSED:
                raise InvalidStateError(
                    f"Only CLOSED payroll records can be paid (current status: {rec.status.value})"
                )
            before = snapshot(rec)
            rec.status = PayrollStatus.PAID
            rec.paid_at = utcnow()
            rec.paid_by = caller.actor_id
            rec.payment_method = method
            rec.payment_reference = (str(reference).strip() or None) if reference is not None else None
            rec.payment_note = (str(note).strip() or None) if note is not None else None

        log.info("payroll record %s paid (%s) by %s", rec.id, method.value, caller.actor_id)
        b, a = diff(before, snapshot(rec))
        self._audit(caller, self._event("PAY", rec.id, rec.institution_id, before=b, after=a))
        return rec

    def reverse_payment(self, caller: CallerContext, record_id: int, justification: Optional[str]) -> PayrollRecord:
        justification = self._require_justification(justification)
        self._require_roles(caller, REVERSE_ROLES, "REVERSE_PAYMENT", record_id)
        tenant_id = caller.require_tenant()

        with self.store.transaction(record_id):
            rec = self.store.get(record_id, tenant_id, for_update=True)
            if rec.status != PayrollStatus.PAID:
                raise InvalidStateError(
                    f"Only PAID payroll records can have their payment reversed (current status: {rec.status.value})"
                )
            before = snapshot(rec)
            rec.status = PayrollStatus.CLOSED
            rec.paid_at = None
            rec.paid_by = None
            rec.payment_method = None
            rec.payment_reference = None
            rec.payment_note = None

        log.info("payment of payroll record %s reversed by %s", rec.id, caller.actor_id)
        b, a = diff(before, snapshot(rec))
        self._audit(caller, self._event("REVERSE_PAYMENT", rec.id, rec.institution_id,
                                        before=b, after=a, note=justification))
        return rec


def parse_status(value) -> Optional[PayrollStatus]:
    if value is None or value == "":
        return None
    try:
        return PayrollStatus(str(value).strip().upper())
    except ValueError:
        allowed = ", ".join(s.value for s in PayrollStatus)
        raise ValidationError(f"Invalid status '{value}'. Allowed: {allowed}")


def parse_payment_method(value) -> PaymentMethod:
    if value is None or str(value).strip() == "":
        raise ValidationError("payment_method is required")
    try:
        return PaymentMethod(str(value).strip().upper())
    except ValueError:
        allowed = ", ".join(m.value for m in PaymentMethod)
        raise ValidationError(f"Invalid payment_method '{value}'. Allowed: {allowed}")
