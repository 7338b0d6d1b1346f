from datetime import date

from sqlalchemy.orm import Session

from appraisal_service.models.appraisal import Appraisal
from appraisal_service.models.appraisal_cycle import AppraisalCycle
from appraisal_service.models.competency import Competency
from appraisal_service.models.employee import Employee
from appraisal_service.models.goal import Goal
from appraisal_service.models.rbac import Role, UserRole
from appraisal_service.models.review import Review
from appraisal_service.models.user import User


def auth(email: str) -> dict[str, str]:
    return {"X-User-Email": email}


def ensure_role(db: Session, name: str) -> Role:
    r = db.query(Role).filter(Role.name == name).one_or_none()
    if r:
        return r
    r = Role(name=name)
    db.add(r)
    db.commit()
    db.refresh(r)
    return r


def create_user(db: Session, email: str, full_name: str = "User") -> User:
    u = User(email=email, full_name=full_name, is_active=True)
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def grant_role(db: Session, user: User, role_name: str) -> None:
    role = ensure_role(db, role_name)
    exists = db.query(UserRole).filter(UserRole.user_id == user.id, UserRole.role_id == role.id).one_or_none()
    if not exists:
        db.add(UserRole(user_id=user.id, role_id=role.id))
        db.commit()


def create_hr(db: Session, email: str = "hr@local.test") -> User:
    u = create_user(db, email, full_name="HR Partner")
    grant_role(db, u, "HR")
    return u


def create_employee(
    db: Session,
    employee_number: str,
    display_name: str,
    *,
    manager: Employee | None = None,
    with_user: bool = True,
    is_active: bool = True,
) -> Employee:
    """Employee plus (by default) a login user at <number>@local.test."""
    user = create_user(db, f"{employee_number.lower()}@local.test", full_name=display_name) if with_user else None
    e = Employee(
        employee_number=employee_number,
        display_name=display_name,
        manager_id=manager.id if manager else None,
        user_id=user.id if user else None,
        is_active=is_active,
    )
    db.add(e)
    db.commit()
    db.refresh(e)
    return e


def email_of(emp: Employee) -> str:
    return f"{emp.employee_number.lower()}@local.test"


def create_cycle(
    db: Session,
    created_by: User,
    *,
    status: str = "DRAFT",
    peer_review: bool = False,
    min_peer_reviewers: int = 0,
    max_peer_reviewers: int = 0,
    self_review: bool = True,
    manager_review: bool = True,
    subordinate_review: bool = False,
) -> AppraisalCycle:
    c = AppraisalCycle(
        name="FY26 Annual Review",
        cycle_type="ANNUAL",
        review_period_start=date(2026, 1, 1),
        review_period_end=date(2026, 12, 31),
        cycle_start=date(2026, 1, 1),
        cycle_end=date(2026, 12, 31),
        self_review=self_review,
        manager_review=manager_review,
        peer_review=peer_review,
        subordinate_review=subordinate_review,
        min_peer_reviewers=min_peer_reviewers,
        max_peer_reviewers=max_peer_reviewers,
        status=status,
        created_by_user_id=created_by.id,
    )
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


def create_appraisal(db: Session, cycle: AppraisalCycle, employee: Employee, **fields) -> Appraisal:
    a = Appraisal(
        cycle_id=cycle.id,
        employee_id=employee.id,
        manager_id=employee.manager_id,
        status=fields.pop("status", "NOT_STARTED"),
        peer_reviewers_assigned=[],
        peer_reviews_required=fields.pop("peer_reviews_required", cycle.min_peer_reviewers if cycle.peer_review else 0),
        peer_reviews_completed=0,
        **fields,
    )
    db.add(a)
    db.commit()
    db.refresh(a)
    return a


def create_competency(db: Session, code: str, *, weightage: int = 10, is_active: bool = True, category: str = "TECHNICAL") -> Competency:
    c = Competency(code=code, name=code.title(), category=category, weightage=weightage, is_active=is_active)
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


def create_goal(
    db: Session,
    *,
    employee: Employee,
    manager: Employee,
    cycle: AppraisalCycle | None = None,
    target_value: float | None = 100,
    achieved_value: float | None = None,
    weightage: int = 100,
    progress_pct: int = 0,
    status: str = "NOT_STARTED",
    title: str = "Ship it",
) -> Goal:
    g = Goal(
        cycle_id=cycle.id if cycle else None,
        assigned_to=employee.id,
        assigned_by=manager.id,
        pillar="CUSTOM",
        title=title,
        target_value=target_value,
        achieved_value=achieved_value,
        weightage=weightage,
        progress_pct=progress_pct,
        status=status,
    )
    db.add(g)
    db.commit()
    db.refresh(g)
    return g


def create_review(db: Session, appraisal: Appraisal, reviewer: Employee, reviewer_type: str) -> Review:
    r = Review(appraisal_id=appraisal.id, reviewer_id=reviewer.id, reviewer_type=reviewer_type, status="DRAFT")
    db.add(r)
    db.commit()
    db.refresh(r)
    return r
