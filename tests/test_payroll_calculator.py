from decimal import Decimal

import pytest

from backoffice_api.services.payroll_calculator import (
    AttendanceDerived,
    ManualInputs,
    MissingBaseSalaryError,
    compute_attendance_derived,
    compute_net_salary,
    default_inss,
    derive_all,
    round2,
)


class FakeAggregator:
    def __init__(self, base="200000", business_days=20, absences=0, overtime_hours="0", hours_per_day=8):
        self.base = Decimal(base) if base is not None else None
        self.business_days = business_days
        self.absences = absences
        self.overtime_hours = Decimal(overtime_hours)
        self.hours_per_day = hours_per_day
        self.ot_calls = []

    def get_base_salary(self, employee_id):
        return self.base

    def get_business_days(self, month, year, tenant_id):
        return self.business_days

    def count_unjustified_absences(self, employee_id, month, year):
        return self.absences

    def count_overtime_hours(self, employee_id, month, year):
        return self.overtime_hours

    def compute_overtime_pay(self, employee_id, month, year, hours):
        self.ot_calls.append(hours)
        if not self.business_days or not hours:
            return Decimal("0.00")
        return round2(self.base / (self.business_days * self.hours_per_day) * Decimal(hours))


def _derive(agg, overtime_hours=None, **manual):
    att = compute_attendance_derived(agg, 1, 3, 2025, 1, overtime_hours=overtime_hours)
    return derive_all(att, ManualInputs(**manual))


def test_scenario_a_absences_and_default_inss():
    d = _derive(FakeAggregator(base="200000", business_days=20, absences=2))
    assert d.daily_rate == Decimal("10000.00")
    assert d.absence_deduction == Decimal("20000.00")
    assert d.inss == Decimal("6000.00")
    assert d.inss_is_manual is False
    assert d.net_salary == Decimal("174000.00")


def test_absence_deduction_uses_unrounded_daily_rate():
    # 100000 / 21 = 4761.904761...; x3 = 14285.714... -> 14285.71
    d = _derive(FakeAggregator(base="100000", business_days=21, absences=3))
    assert d.daily_rate == Decimal("4761.90")
    assert d.absence_deduction == Decimal("14285.71")


def test_no_absences_means_no_deduction():
    d = _derive(FakeAggregator(absences=0))
    assert d.absence_deduction == Decimal("0.00")


def test_zero_business_days_gives_zero_rates():
    d = _derive(FakeAggregator(business_days=0, absences=2))
    assert d.daily_rate == Decimal("0.00")
    assert d.hourly_rate == Decimal("0.00")
    assert d.absence_deduction == Decimal("0.00")


def test_explicit_zero_inss_is_kept():
    d = _derive(FakeAggregator(), inss=Decimal("0"))
    assert d.inss == Decimal("0.00")
    assert d.inss_is_manual is True
    assert d.net_salary == Decimal("200000.00")


def test_default_inss():
    assert default_inss(Decimal("200000")) == Decimal("6000.00")
    assert default_inss(Decimal("200000"), Decimal("1234.5")) == Decimal("1234.5")
    assert default_inss(Decimal("1000"), None, Decimal("0.05")) == Decimal("50.00")


def test_net_salary_never_negative():
    net = compute_net_salary(
        base_salary=Decimal("1000"),
        absence_deduction=Decimal("900"),
        inss=Decimal("30"),
        irt=Decimal("500"),
    )
    assert net == Decimal("0")


def test_net_salary_sums_benefits_and_deductions():
    net = compute_net_salary(
        base_salary=Decimal("100000"),
        bonus=Decimal("5000"),
        overtime_pay=Decimal("1250.50"),
        transport_benefit=Decimal("3000"),
        meal_benefit=Decimal("2000"),
        other_benefits=Decimal("100"),
        absence_deduction=Decimal("4761.90"),
        inss=Decimal("3000"),
        irt=Decimal("7000"),
        other_deductions=Decimal("88.60"),
    )
    assert net == Decimal("96500.00")


def test_supplied_overtime_hours_win_when_positive():
    agg = FakeAggregator(base="160000", business_days=20, overtime_hours="2")
    d = _derive(agg, overtime_hours=Decimal("5"))
    # hourly = 160000 / 160 = 1000
    assert d.hourly_rate == Decimal("1000.00")
    assert d.overtime_hours == Decimal("5.00")
    assert d.overtime_pay == Decimal("5000.00")
    assert agg.ot_calls == [Decimal("5")]


def test_zero_supplied_overtime_falls_back_to_attendance():
    agg = FakeAggregator(base="160000", business_days=20, overtime_hours="2")
    d = _derive(agg, overtime_hours=Decimal("0"))
    assert d.overtime_hours == Decimal("2.00")
    assert d.overtime_pay == Decimal("2000.00")


def test_gross_and_total_deductions():
    agg = FakeAggregator(base="200000", business_days=20, absences=1)
    d = _derive(agg, bonus=Decimal("10000"), irt=Decimal("15000"))
    assert d.gross_salary == Decimal("210000.00")
    assert d.total_deductions == Decimal("10000.00") + Decimal("6000.00") + Decimal("15000.00")
    assert d.net_salary == d.gross_salary - d.total_deductions


@pytest.mark.parametrize("base", [None, "0"])
def test_missing_base_salary_rejected(base):
    with pytest.raises(MissingBaseSalaryError) as ei:
        _derive(FakeAggregator(base=base))
    assert ei.value.status_code == 400
    assert ei.value.code == "MISSING_BASE_SALARY"


def test_derivation_is_deterministic():
    agg = FakeAggregator(base="123456.78", business_days=19, absences=3, overtime_hours="7.5")
    manual = dict(bonus=Decimal("1000.005"), irt=Decimal("2500"))
    assert _derive(agg, **manual) == _derive(agg, **manual)


def test_round2_half_up():
    assert round2("0.005") == Decimal("0.01")
    assert round2("2.675") == Decimal("2.68")
    assert round2(None) == Decimal("0.00")


def test_derive_all_with_prebuilt_facts():
    att = AttendanceDerived(
        base_salary=Decimal("50000.00"),
        business_days=22,
        daily_rate=Decimal("2272.73"),
        unjustified_absences=0,
        absence_deduction=Decimal("0.00"),
        hourly_rate=Decimal("284.09"),
        overtime_hours=Decimal("0.00"),
        overtime_pay=Decimal("0.00"),
    )
    d = derive_all(att, ManualInputs(meal_benefit=Decimal("1500")))
    assert d.inss == Decimal("1500.00")
    assert d.net_salary == Decimal("50000.00")
    assert d.as_dict()["meal_benefit"] == Decimal("1500.00")
