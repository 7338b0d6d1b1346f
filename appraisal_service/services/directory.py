"""Read-only queries against the employee directory mirror."""
import uuid

from sqlalchemy.orm import Session

from appraisal_service.core.exceptions import NotFoundError
from appraisal_service.models.employee import Employee


def list_active_employees(db: Session) -> list[Employee]:
    return (
        db.query(Employee)
        .filter(Employee.is_active.is_(True))
        .order_by(Employee.employee_number)
        .all()
    )


def list_direct_reports(db: Session, manager_id: uuid.UUID) -> list[Employee]:
    return (
        db.query(Employee)
        .filter(Employee.manager_id == manager_id, Employee.is_active.is_(True))
        .order_by(Employee.employee_number)
        .all()
    )


def get_employee_or_404(db: Session, employee_id: uuid.UUID) -> Employee:
    emp = db.get(Employee, employee_id)
    if not emp:
        raise NotFoundError(f"Employee {employee_id} not found")
    return emp
