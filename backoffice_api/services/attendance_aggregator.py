# backoffice_api/services/attendance_aggregator.py
from __future__ import annotations

import calendar as pycal
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional, Set, Tuple
import logging

from sqlalchemy import func, or_

from backoffice_api.extensions import db
from backoffice_api.models.attendance import EmployeeAttendance, Holiday
from backoffice_api.models.employee import Employee, EmployeeContract

log = logging.getLogger(__name__)

CENT = Decimal("0.01")


def _month_bounds(year: int, month: int) -> Tuple[date, date]:
    last = pycal.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


def _dec(x) -> Optional[Decimal]:
    if x is None or x == "":
        return None
    try:
        return Decimal(str(x))
    except Exception:
        return None


class AttendanceAggregator:
    """
    Monthly attendance facts for payroll, read straight from the database.

    Base salary precedence: employee > position > latest ACTIVE contract.
    Business days: Monday..Friday minus national holidays (institution_id NULL)
    and the institution's own holidays.
    """

    def __init__(self, session=None, hours_per_day: int = 8):
        self.session = session if session is not None else db.session
        self.hours_per_day = hours_per_day

    # ---------- employee master ----------
    def get_employee(self, employee_id: int) -> Optional[Employee]:
        return self.session.get(Employee, employee_id)

    def get_base_salary(self, employee_id: int) -> Optional[Decimal]:
        emp = self.get_employee(employee_id)
        if emp is None:
            return None

        base = _dec(emp.base_salary)
        if base is not None and base > 0:
            return base

        if emp.position is not None:
            base = _dec(emp.position.base_salary)
            if base is not None and base > 0:
                return base

        contract = (
            self.session.query(EmployeeContract)
            .filter(EmployeeContract.employee_id == employee_id)
            .filter(EmployeeContract.status == "ACTIVE")
            .order_by(EmployeeContract.start_date.desc(), EmployeeContract.id.desc())
            .first()
        )
        if contract is not None:
            base = _dec(contract.salary)
            if base is not None and base > 0:
                return base
        return None

    # ---------- calendar ----------
    def holidays_in_month(self, month: int, year: int, tenant_id: Optional[int]) -> Set[date]:
        d_from, d_to = _month_bounds(year, month)
        q = self.session.query(Holiday.date).filter(Holiday.date >= d_from, Holiday.date <= d_to)
        if tenant_id is not None:
            q = q.filter(or_(Holiday.institution_id.is_(None), Holiday.institution_id == tenant_id))
        else:
            q = q.filter(Holiday.institution_id.is_(None))
        return {row[0] for row in q.all()}

    def get_business_days(self, month: int, year: int, tenant_id: Optional[int]) -> int:
        d_from, d_to = _month_bounds(year, month)
        holidays = self.holidays_in_month(month, year, tenant_id)
        days = 0
        cur = d_from
        while cur <= d_to:
            # weekday(): 5 = Saturday, 6 = Sunday
            if cur.weekday() < 5 and cur not in holidays:
                days += 1
            cur += timedelta(days=1)
        return days

    # ---------- attendance ----------
    def _month_rows(self, employee_id: int, month: int, year: int):
        d_from, d_to = _month_bounds(year, month)
        return (
            self.session.query(EmployeeAttendance)
            .filter(EmployeeAttendance.employee_id == employee_id)
            .filter(EmployeeAttendance.work_date >= d_from, EmployeeAttendance.work_date <= d_to)
        )

    def count_unjustified_absences(self, employee_id: int, month: int, year: int) -> int:
        return (
            self._month_rows(employee_id, month, year)
            .filter(EmployeeAttendance.status == "UNJUSTIFIED_ABSENCE")
            .count()
        )

    def count_overtime_hours(self, employee_id: int, month: int, year: int) -> Decimal:
        d_from, d_to = _month_bounds(year, month)
        total = (
            self.session.query(func.coalesce(func.sum(EmployeeAttendance.overtime_hours), 0))
            .filter(EmployeeAttendance.employee_id == employee_id)
            .filter(EmployeeAttendance.work_date >= d_from, EmployeeAttendance.work_date <= d_to)
            .filter(EmployeeAttendance.overtime_hours > 0)
            .scalar()
        )
        return (_dec(total) or Decimal("0")).quantize(CENT, rounding=ROUND_HALF_UP)

    def compute_overtime_pay(self, employee_id: int, month: int, year: int, hours) -> Decimal:
        """hourly rate (base / (business days * hours per day)) times hours; 0 when undefined."""
        hours = _dec(hours) or Decimal("0")
        if hours <= 0:
            return Decimal("0.00")
        base = self.get_base_salary(employee_id)
        if base is None or base <= 0:
            return Decimal("0.00")
        emp = self.get_employee(employee_id)
        business_days = self.get_business_days(month, year, emp.institution_id if emp else None)
        if business_days == 0:
            return Decimal("0.00")
        hourly = base / (business_days * self.hours_per_day)
        return (hourly * hours).quantize(CENT, rounding=ROUND_HALF_UP)

    def attendance_summary(self, employee_id: int, month: int, year: int, tenant_id: Optional[int]) -> Dict[str, int]:
        q = self._month_rows(employee_id, month, year)
        if tenant_id is not None:
            q = q.filter(EmployeeAttendance.institution_id == tenant_id)
        rows = q.order_by(EmployeeAttendance.work_date.asc()).all()
        return {
            "present": sum(1 for r in rows if r.status == "PRESENT"),
            "late": sum(1 for r in rows if r.status == "LATE"),
            "absences": sum(1 for r in rows if r.status in ("UNJUSTIFIED_ABSENCE", "JUSTIFIED_ABSENCE")),
            "days_worked": sum(1 for r in rows if r.check_in is not None and r.check_out is not None),
        }
