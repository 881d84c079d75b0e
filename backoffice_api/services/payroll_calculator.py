# backoffice_api/services/payroll_calculator.py
"""
Monthly salary derivation.

Everything here is deterministic: identical facts and manual inputs always
produce identical Decimal amounts. Amounts are rounded half-up to 2 places.

    daily_rate        = base / business_days                 (0 without business days)
    hourly_rate       = base / (business_days * hours_per_day)
    absence_deduction = round2(base / business_days * unjustified_absences)
    inss              = round2(base * 0.03) unless supplied (0 counts as supplied)
    net               = max(0, round2(base + benefits - deductions))
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

from backoffice_api.common.errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0")
DEFAULT_INSS_RATE = Decimal("0.03")
DEFAULT_HOURS_PER_DAY = 8


class MissingBaseSalaryError(ValidationError):
    default_code = "MISSING_BASE_SALARY"


def _dec(x) -> Decimal:
    if x is None or x == "":
        return ZERO
    if isinstance(x, Decimal):
        return x
    return Decimal(str(x))


def round2(value) -> Decimal:
    return _dec(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class AttendanceDerived:
    base_salary: Decimal
    business_days: int
    daily_rate: Decimal
    unjustified_absences: int
    absence_deduction: Decimal
    hourly_rate: Decimal
    overtime_hours: Decimal
    overtime_pay: Decimal


@dataclass(frozen=True)
class ManualInputs:
    """Amounts typed in by an operator. inss=None means 'not supplied'."""
    bonus: Decimal = ZERO
    transport_benefit: Decimal = ZERO
    meal_benefit: Decimal = ZERO
    other_benefits: Decimal = ZERO
    inss: Optional[Decimal] = None
    irt: Decimal = ZERO
    other_deductions: Decimal = ZERO


@dataclass(frozen=True)
class DerivedFields:
    base_salary: Decimal
    business_days: int
    daily_rate: Decimal
    unjustified_absences: int
    absence_deduction: Decimal
    hourly_rate: Decimal
    overtime_hours: Decimal
    overtime_pay: Decimal
    bonus: Decimal
    transport_benefit: Decimal
    meal_benefit: Decimal
    other_benefits: Decimal
    inss: Decimal
    inss_is_manual: bool
    irt: Decimal
    other_deductions: Decimal
    gross_salary: Decimal
    total_deductions: Decimal
    net_salary: Decimal

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def compute_attendance_derived(
    aggregator,
    employee_id: int,
    month: int,
    year: int,
    tenant_id: int,
    overtime_hours=None,
    hours_per_day: int = DEFAULT_HOURS_PER_DAY,
) -> AttendanceDerived:
    """
    Pull the month's facts from the aggregator and derive the attendance-based
    line items. A supplied overtime_hours is used only when > 0; overtime pay
    is always recomputed by the aggregator for the resolved hours.
    """
    base = aggregator.get_base_salary(employee_id)
    if base is None or _dec(base) <= 0:
        raise MissingBaseSalaryError(
            "Employee has no base salary. Register a salary on the employee, position or contract."
        )
    base = _dec(base)

    business_days = int(aggregator.get_business_days(month, year, tenant_id) or 0)
    absences = int(aggregator.count_unjustified_absences(employee_id, month, year) or 0)

    raw_daily = base / business_days if business_days > 0 else ZERO
    month_hours = business_days * hours_per_day
    raw_hourly = base / month_hours if month_hours > 0 else ZERO
    deduction = round2(raw_daily * absences) if absences > 0 else ZERO

    supplied = _dec(overtime_hours)
    if supplied > 0:
        hours = supplied
    else:
        hours = _dec(aggregator.count_overtime_hours(employee_id, month, year))
    ot_pay = aggregator.compute_overtime_pay(employee_id, month, year, hours)

    return AttendanceDerived(
        base_salary=round2(base),
        business_days=business_days,
        daily_rate=round2(raw_daily),
        unjustified_absences=absences,
        absence_deduction=round2(deduction),
        hourly_rate=round2(raw_hourly),
        overtime_hours=round2(hours),
        overtime_pay=round2(ot_pay),
    )


def default_inss(base_salary, supplied_inss=None, rate: Decimal = DEFAULT_INSS_RATE) -> Decimal:
    if supplied_inss is None:
        return round2(_dec(base_salary) * _dec(rate))
    return _dec(supplied_inss)


def compute_net_salary(
    *,
    base_salary,
    bonus=ZERO,
    overtime_pay=ZERO,
    transport_benefit=ZERO,
    meal_benefit=ZERO,
    other_benefits=ZERO,
    absence_deduction=ZERO,
    inss=ZERO,
    irt=ZERO,
    other_deductions=ZERO,
) -> Decimal:
    benefits = _dec(bonus) + _dec(overtime_pay) + _dec(transport_benefit) + _dec(meal_benefit) + _dec(other_benefits)
    deductions = _dec(absence_deduction) + _dec(inss) + _dec(irt) + _dec(other_deductions)
    gross = _dec(base_salary) + benefits
    return max(ZERO, round2(gross - deductions))


def derive_all(
    attendance: AttendanceDerived,
    manual: ManualInputs,
    inss_rate: Decimal = DEFAULT_INSS_RATE,
) -> DerivedFields:
    bonus = round2(manual.bonus)
    transport = round2(manual.transport_benefit)
    meal = round2(manual.meal_benefit)
    other_b = round2(manual.other_benefits)
    irt = round2(manual.irt)
    other_d = round2(manual.other_deductions)
    inss = round2(default_inss(attendance.base_salary, manual.inss, inss_rate))

    gross = round2(attendance.base_salary + bonus + attendance.overtime_pay + transport + meal + other_b)
    total_deductions = round2(attendance.absence_deduction + inss + irt + other_d)
    net = compute_net_salary(
        base_salary=attendance.base_salary,
        bonus=bonus,
        overtime_pay=attendance.overtime_pay,
        transport_benefit=transport,
        meal_benefit=meal,
        other_benefits=other_b,
        absence_deduction=attendance.absence_deduction,
        inss=inss,
        irt=irt,
        other_deductions=other_d,
    )

    return DerivedFields(
        base_salary=attendance.base_salary,
        business_days=attendance.business_days,
        daily_rate=attendance.daily_rate,
        unjustified_absences=attendance.unjustified_absences,
        absence_deduction=attendance.absence_deduction,
        hourly_rate=attendance.hourly_rate,
        overtime_hours=attendance.overtime_hours,
        overtime_pay=attendance.overtime_pay,
        bonus=bonus,
        transport_benefit=transport,
        meal_benefit=meal,
        other_benefits=other_b,
        inss=inss,
        inss_is_manual=manual.inss is not None,
        irt=irt,
        other_deductions=other_d,
        gross_salary=gross,
        total_deductions=total_deductions,
        net_salary=net,
    )
