# backoffice_api/services/payroll_store.py
from __future__ import annotations

from contextlib import contextmanager
from typing import List, Optional, Tuple
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from backoffice_api.common.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    TenantMismatchError,
)
from backoffice_api.extensions import db
from backoffice_api.models.employee import Employee
from backoffice_api.models.payroll import PayrollRecord, PayrollStatus

log = logging.getLogger(__name__)


class PayrollRecordStore:
    """
    Tenant-scoped persistence for PayrollRecord.

    Uniqueness of (institution, employee, month, year) is left to the
    `uq_payroll_employee_period` constraint; a violation surfaces as a
    ConflictError when the surrounding transaction flushes or commits.
    """

    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    # ---------- reads ----------
    def list(
        self,
        tenant_id: Optional[int],
        employee_id: Optional[int] = None,
        month: Optional[int] = None,
        year: Optional[int] = None,
        status: Optional[PayrollStatus] = None,
        page: int = 1,
        size: int = 20,
    ) -> Tuple[List[PayrollRecord], int]:
        q = self.session.query(PayrollRecord)
        if tenant_id is not None:
            q = q.filter(PayrollRecord.institution_id == tenant_id)
        if employee_id is not None:
            q = q.filter(PayrollRecord.employee_id == employee_id)
        if month is not None:
            q = q.filter(PayrollRecord.month == month)
        if year is not None:
            q = q.filter(PayrollRecord.year == year)
        if status is not None:
            q = q.filter(PayrollRecord.status == status)

        total = q.count()
        items = (
            q.order_by(PayrollRecord.year.desc(), PayrollRecord.month.desc(), PayrollRecord.id.desc())
            .offset((page - 1) * size)
            .limit(size)
            .all()
        )
        return items, total

    def get(self, record_id: int, tenant_id: Optional[int], for_update: bool = False) -> PayrollRecord:
        q = self.session.query(PayrollRecord).filter(PayrollRecord.id == record_id)
        if tenant_id is not None:
            q = q.filter(PayrollRecord.institution_id == tenant_id)
        if for_update:
            q = q.with_for_update(of=PayrollRecord).populate_existing()
        rec = q.first()
        if rec is None:
            raise NotFoundError("Payroll record not found")

        if tenant_id is not None:
            emp = self.session.get(Employee, rec.employee_id)
            if emp is None or emp.institution_id != tenant_id:
                raise TenantMismatchError("Payroll record belongs to an employee of another institution")
        return rec

    def current_status(self, record_id: int) -> Optional[PayrollStatus]:
        return (
            self.session.query(PayrollRecord.status)
            .filter(PayrollRecord.id == record_id)
            .scalar()
        )

    # ---------- writes ----------
    def insert(self, rec: PayrollRecord) -> PayrollRecord:
        self.session.add(rec)
        self.session.flush()
        return rec

    def delete(self, rec: PayrollRecord) -> None:
        self.session.delete(rec)
        self.session.flush()

    @contextmanager
    def transaction(self, record_id: Optional[int] = None):
        """
        One unit of work: commit on success, roll back on any error.
        IntegrityError -> ConflictError (409). A lost optimistic-lock race
        (StaleDataError) -> InvalidStateError carrying the persisted status.
        """
        try:
            yield self.session
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            log.info("payroll write rejected by constraint: %s", getattr(e, "orig", e))
            raise ConflictError(
                "A payroll record already exists for this employee and period",
                code="DUPLICATE_PAYROLL",
            ) from e
        except StaleDataError as e:
            self.session.rollback()
            status = self.current_status(record_id) if record_id is not None else None
            label = status.value if status is not None else "DELETED"
            raise InvalidStateError(
                f"Payroll record was changed concurrently; current status is {label}",
                code="CONCURRENT_UPDATE",
                payload={"status": label},
            ) from e
        except Exception:
            self.session.rollback()
            raise
