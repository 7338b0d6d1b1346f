import uuid

from sqlalchemy.orm import Session

from appraisal_service.core.exceptions import AuthorizationError
from appraisal_service.core.rbac import is_hr
from appraisal_service.models.appraisal import Appraisal
from appraisal_service.models.employee import Employee
from appraisal_service.models.goal import Goal
from appraisal_service.models.user import User


def get_employee_for_user(db: Session, user: User) -> Employee | None:
    return db.query(Employee).filter(Employee.user_id == user.id).one_or_none()


def require_employee(db: Session, user: User) -> Employee:
    emp = get_employee_for_user(db, user)
    if not emp:
        raise AuthorizationError("Current user is not linked to an employee record")
    return emp


def is_manager_of(db: Session, manager_id: uuid.UUID, employee_id: uuid.UUID) -> bool:
    emp = db.get(Employee, employee_id)
    return emp is not None and emp.manager_id == manager_id


def assert_can_manage_goal(db: Session, user: User, goal: Goal) -> Employee:
    emp = require_employee(db, user)
    if emp.id != goal.assigned_by and not is_manager_of(db, emp.id, goal.assigned_to):
        raise AuthorizationError("Only the assigning manager can approve or reject this goal")
    return emp


def assert_user_is_appraisee(db: Session, user: User, appraisal: Appraisal) -> Employee:
    emp = require_employee(db, user)
    if emp.id != appraisal.employee_id:
        raise AuthorizationError("Only the appraised employee can perform this action")
    return emp


def assert_user_is_rater(db: Session, user: User, appraisal: Appraisal) -> None:
    """Appraisal manager, or HR/Admin."""
    if is_hr(db, user):
        return
    emp = get_employee_for_user(db, user)
    if not emp or emp.id != appraisal.manager_id:
        raise AuthorizationError("Only the employee's manager or HR can rate this appraisal")


def assert_can_view_appraisal(db: Session, user: User, appraisal: Appraisal) -> None:
    if is_hr(db, user):
        return
    emp = get_employee_for_user(db, user)
    if not emp or emp.id not in (appraisal.employee_id, appraisal.manager_id):
        raise AuthorizationError("Not allowed to view this appraisal")
