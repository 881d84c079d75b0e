import enum

from backoffice_api.extensions import db, utcnow


class PayrollStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    CALCULATED = "CALCULATED"
    CLOSED = "CLOSED"
    PAID = "PAID"


class PaymentMethod(str, enum.Enum):
    TRANSFER = "TRANSFER"
    CASH = "CASH"
    MOBILE_MONEY = "MOBILE_MONEY"
    CHEQUE = "CHEQUE"


LOCKED_STATUSES = (PayrollStatus.CLOSED, PayrollStatus.PAID)

_MONEY = db.Numeric(14, 2)


class PayrollRecord(db.Model):
    """Monthly payroll of one employee. Unique per (institution, employee, month, year)."""
    __tablename__ = "payroll_records"

    id = db.Column(db.Integer, primary_key=True)
    institution_id = db.Column(db.Integer, db.ForeignKey("institutions.id", ondelete="RESTRICT"), nullable=False, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False, index=True)
    month = db.Column(db.SmallInteger, nullable=False)
    year = db.Column(db.SmallInteger, nullable=False)

    # derived from attendance + employee master on every write
    business_days = db.Column(db.Integer, nullable=False, default=0)
    base_salary = db.Column(_MONEY, nullable=False, default=0)
    daily_rate = db.Column(_MONEY, nullable=False, default=0)
    unjustified_absences = db.Column(db.Integer, nullable=False, default=0)
    absence_deduction = db.Column(_MONEY, nullable=False, default=0)
    hourly_rate = db.Column(_MONEY, nullable=False, default=0)
    overtime_hours = db.Column(db.Numeric(8, 2), nullable=False, default=0)
    overtime_pay = db.Column(_MONEY, nullable=False, default=0)

    # manual inputs
    bonus = db.Column(_MONEY, nullable=False, default=0)
    transport_benefit = db.Column(_MONEY, nullable=False, default=0)
    meal_benefit = db.Column(_MONEY, nullable=False, default=0)
    other_benefits = db.Column(_MONEY, nullable=False, default=0)
    inss = db.Column(_MONEY, nullable=False, default=0)
    inss_is_manual = db.Column(db.Boolean, nullable=False, default=False)
    irt = db.Column(_MONEY, nullable=False, default=0)
    other_deductions = db.Column(_MONEY, nullable=False, default=0)

    net_salary = db.Column(_MONEY, nullable=False, default=0)
    notes = db.Column(db.Text)

    status = db.Column(
        db.Enum(PayrollStatus, name="payroll_status_enum"),
        nullable=False,
        default=PayrollStatus.DRAFT,
    )

    closed_at = db.Column(db.DateTime)
    closed_by = db.Column(db.Integer)
    reopened_at = db.Column(db.DateTime)
    reopened_by = db.Column(db.Integer)
    reopen_justification = db.Column(db.Text)
    paid_at = db.Column(db.DateTime)
    paid_by = db.Column(db.Integer)
    payment_method = db.Column(db.Enum(PaymentMethod, name="payment_method_enum"))
    payment_reference = db.Column(db.String(120))
    payment_note = db.Column(db.Text)

    created_by = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    version = db.Column(db.Integer, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("institution_id", "employee_id", "month", "year", name="uq_payroll_employee_period"),
        db.CheckConstraint("month BETWEEN 1 AND 12", name="ck_payroll_month"),
        db.CheckConstraint("net_salary >= 0", name="ck_payroll_net_non_negative"),
        db.Index("ix_payroll_period", "institution_id", "year", "month"),
    )
    __mapper_args__ = {"version_id_col": version}

    employee = db.relationship("Employee", lazy="select")

    @property
    def is_locked(self) -> bool:
        return self.status in LOCKED_STATUSES
