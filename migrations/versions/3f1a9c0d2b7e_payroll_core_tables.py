"""payroll core tables (institutions, employees, attendance, payroll records, audit)

Revision ID: 3f1a9c0d2b7e
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a9c0d2b7e'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(14, 2)


def upgrade() -> None:
    op.create_table(
        'institutions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=50), nullable=False, unique=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'positions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('institution_id', sa.Integer(), sa.ForeignKey('institutions.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('base_salary', MONEY, nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('institution_id', 'name', name='uq_position_institution_name'),
    )
    op.create_index('ix_positions_institution_id', 'positions', ['institution_id'])

    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('institution_id', sa.Integer(), sa.ForeignKey('institutions.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('position_id', sa.Integer(), sa.ForeignKey('positions.id', ondelete='RESTRICT'), nullable=True),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False, unique=True),
        sa.Column('full_name', sa.String(length=160), nullable=False),
        sa.Column('base_salary', MONEY, nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('institution_id', 'code', name='uq_employee_institution_code'),
    )
    op.create_index('ix_emp_institution_id', 'employees', ['institution_id'])

    contract_status = sa.Enum('ACTIVE', 'ENDED', name='contract_status_enum')
    op.create_table(
        'employee_contracts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('salary', MONEY, nullable=True),
        sa.Column('status', contract_status, nullable=False, server_default='ACTIVE'),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_employee_contracts_employee_id', 'employee_contracts', ['employee_id'])

    op.create_table(
        'holidays',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('institution_id', sa.Integer(), sa.ForeignKey('institutions.id', ondelete='RESTRICT'), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('institution_id', 'date', name='uq_holiday_institution_date'),
    )
    op.create_index('ix_holidays_institution_id', 'holidays', ['institution_id'])

    attendance_status = sa.Enum(
        'PRESENT', 'LATE', 'UNJUSTIFIED_ABSENCE', 'JUSTIFIED_ABSENCE', name='attendance_status_enum'
    )
    op.create_table(
        'employee_attendance',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('institution_id', sa.Integer(), sa.ForeignKey('institutions.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('work_date', sa.Date(), nullable=False),
        sa.Column('status', attendance_status, nullable=False),
        sa.Column('check_in', sa.Time(), nullable=True),
        sa.Column('check_out', sa.Time(), nullable=True),
        sa.Column('overtime_hours', sa.Numeric(6, 2), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('employee_id', 'work_date', name='uq_attendance_employee_date'),
    )
    op.create_index('ix_employee_attendance_institution_id', 'employee_attendance', ['institution_id'])
    op.create_index('ix_employee_attendance_employee_id', 'employee_attendance', ['employee_id'])

    payroll_status = sa.Enum('DRAFT', 'CALCULATED', 'CLOSED', 'PAID', name='payroll_status_enum')
    payment_method = sa.Enum('TRANSFER', 'CASH', 'MOBILE_MONEY', 'CHEQUE', name='payment_method_enum')
    op.create_table(
        'payroll_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('institution_id', sa.Integer(), sa.ForeignKey('institutions.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('employees.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('month', sa.SmallInteger(), nullable=False),
        sa.Column('year', sa.SmallInteger(), nullable=False),
        sa.Column('business_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('base_salary', MONEY, nullable=False, server_default='0'),
        sa.Column('daily_rate', MONEY, nullable=False, server_default='0'),
        sa.Column('unjustified_absences', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('absence_deduction', MONEY, nullable=False, server_default='0'),
        sa.Column('hourly_rate', MONEY, nullable=False, server_default='0'),
        sa.Column('overtime_hours', sa.Numeric(8, 2), nullable=False, server_default='0'),
        sa.Column('overtime_pay', MONEY, nullable=False, server_default='0'),
        sa.Column('bonus', MONEY, nullable=False, server_default='0'),
        sa.Column('transport_benefit', MONEY, nullable=False, server_default='0'),
        sa.Column('meal_benefit', MONEY, nullable=False, server_default='0'),
        sa.Column('other_benefits', MONEY, nullable=False, server_default='0'),
        sa.Column('inss', MONEY, nullable=False, server_default='0'),
        sa.Column('inss_is_manual', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('irt', MONEY, nullable=False, server_default='0'),
        sa.Column('other_deductions', MONEY, nullable=False, server_default='0'),
        sa.Column('net_salary', MONEY, nullable=False, server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', payroll_status, nullable=False, server_default='DRAFT'),
        sa.Column('closed_at', sa.DateTime(), nullable=True),
        sa.Column('closed_by', sa.Integer(), nullable=True),
        sa.Column('reopened_at', sa.DateTime(), nullable=True),
        sa.Column('reopened_by', sa.Integer(), nullable=True),
        sa.Column('reopen_justification', sa.Text(), nullable=True),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('paid_by', sa.Integer(), nullable=True),
        sa.Column('payment_method', payment_method, nullable=True),
        sa.Column('payment_reference', sa.String(length=120), nullable=True),
        sa.Column('payment_note', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.UniqueConstraint('institution_id', 'employee_id', 'month', 'year', name='uq_payroll_employee_period'),
        sa.CheckConstraint('month BETWEEN 1 AND 12', name='ck_payroll_month'),
        sa.CheckConstraint('net_salary >= 0', name='ck_payroll_net_non_negative'),
    )
    op.create_index('ix_payroll_records_institution_id', 'payroll_records', ['institution_id'])
    op.create_index('ix_payroll_records_employee_id', 'payroll_records', ['employee_id'])
    op.create_index('ix_payroll_period', 'payroll_records', ['institution_id', 'year', 'month'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('institution_id', sa.Integer(), nullable=True),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('module', sa.String(length=60), nullable=False),
        sa.Column('action', sa.String(length=40), nullable=False),
        sa.Column('entity', sa.String(length=60), nullable=False),
        sa.Column('entity_id', sa.String(length=64), nullable=True),
        sa.Column('before_json', sa.JSON(), nullable=True),
        sa.Column('after_json', sa.JSON(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_audit_logs_institution_id', 'audit_logs', ['institution_id'])


def downgrade() -> None:
    op.drop_index('ix_audit_logs_institution_id', table_name='audit_logs')
    op.drop_table('audit_logs')

    op.drop_index('ix_payroll_period', table_name='payroll_records')
    op.drop_index('ix_payroll_records_employee_id', table_name='payroll_records')
    op.drop_index('ix_payroll_records_institution_id', table_name='payroll_records')
    op.drop_table('payroll_records')

    op.drop_index('ix_employee_attendance_employee_id', table_name='employee_attendance')
    op.drop_index('ix_employee_attendance_institution_id', table_name='employee_attendance')
    op.drop_table('employee_attendance')

    op.drop_index('ix_holidays_institution_id', table_name='holidays')
    op.drop_table('holidays')

    op.drop_index('ix_employee_contracts_employee_id', table_name='employee_contracts')
    op.drop_table('employee_contracts')

    op.drop_index('ix_emp_institution_id', table_name='employees')
    op.drop_table('employees')

    op.drop_index('ix_positions_institution_id', table_name='positions')
    op.drop_table('positions')

    op.drop_table('institutions')

    bind = op.get_bind()
    for name in ('payment_method_enum', 'payroll_status_enum', 'attendance_status_enum', 'contract_status_enum'):
        sa.Enum(name=name).drop(bind, checkfirst=True)
