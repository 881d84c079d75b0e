from backoffice_api.extensions import db, utcnow


class Employee(db.Model):
    __tablename__ = "employees"

    id = db.Column(db.Integer, primary_key=True)
    institution_id = db.Column(db.Integer, db.ForeignKey("institutions.id", ondelete="RESTRICT"), nullable=False)
    position_id    = db.Column(db.Integer, db.ForeignKey("positions.id", ondelete="RESTRICT"), nullable=True)

    code  = db.Column(db.String(32), nullable=False)    # unique per institution
    email = db.Column(db.String(255), unique=True, nullable=False)
    full_name = db.Column(db.String(160), nullable=False)

    base_salary = db.Column(db.Numeric(14, 2), nullable=True)  # wins over position/contract
    status = db.Column(db.String(16), default="active", nullable=False)  # active/inactive

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        db.UniqueConstraint("institution_id", "code", name="uq_employee_institution_code"),
        db.Index("ix_emp_institution_id", "institution_id"),
    )

    institution = db.relationship("Institution", lazy="joined")
    position    = db.relationship("Position", lazy="joined")


class EmployeeContract(db.Model):
    __tablename__ = "employee_contracts"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    salary = db.Column(db.Numeric(14, 2), nullable=True)
    status = db.Column(db.Enum("ACTIVE", "ENDED", name="contract_status_enum"), nullable=False, default="ACTIVE")
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    employee = db.relationship("Employee", lazy="joined")
