from backoffice_api.extensions import db, utcnow

ATTENDANCE_STATUSES = ("PRESENT", "LATE", "UNJUSTIFIED_ABSENCE", "JUSTIFIED_ABSENCE")


class Holiday(db.Model):
    __tablename__ = "holidays"
    id = db.Column(db.Integer, primary_key=True)
    # NULL institution => national holiday, applies to every tenant
    institution_id = db.Column(db.Integer, db.ForeignKey("institutions.id", ondelete="RESTRICT"), nullable=True, index=True)
    date        = db.Column(db.Date, nullable=False)
    name        = db.Column(db.String(120), nullable=False)
    created_at  = db.Column(db.DateTime, nullable=False, default=utcnow)
    __table_args__ = (
        db.UniqueConstraint("institution_id", "date", name="uq_holiday_institution_date"),
    )


class EmployeeAttendance(db.Model):
    """One row per employee per worked (or missed) day."""
    __tablename__ = "employee_attendance"
    id = db.Column(db.Integer, primary_key=True)
    institution_id = db.Column(db.Integer, db.ForeignKey("institutions.id", ondelete="RESTRICT"), nullable=False, index=True)
    employee_id    = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    work_date      = db.Column(db.Date, nullable=False)
    status         = db.Column(db.Enum(*ATTENDANCE_STATUSES, name="attendance_status_enum"), nullable=False)
    check_in       = db.Column(db.Time, nullable=True)
    check_out      = db.Column(db.Time, nullable=True)
    overtime_hours = db.Column(db.Numeric(6, 2), nullable=True)
    created_at     = db.Column(db.DateTime, nullable=False, default=utcnow)
    __table_args__ = (
        db.UniqueConstraint("employee_id", "work_date", name="uq_attendance_employee_date"),
    )
