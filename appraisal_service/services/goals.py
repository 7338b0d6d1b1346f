import logging
import uuid
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.orm import Session

from appraisal_service.core.access import (
    assert_can_manage_goal,
    get_employee_for_user,
    is_manager_of,
    require_employee,
)
from appraisal_service.core.audit import log_event
from appraisal_service.core.exceptions import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    TemplateLockedError,
    ValidationError,
)
from appraisal_service.core.optimistic_lock import assert_version_matches
from appraisal_service.core.rbac import is_hr
from appraisal_service.models.appraisal import Appraisal
from appraisal_service.models.goal import Goal
from appraisal_service.models.goal_template import GoalTemplate
from appraisal_service.models.user import User
from appraisal_service.schemas.goal import AdhocGoalCreate, GoalActualsSubmit
from appraisal_service.services.cycles import get_cycle_or_404
from appraisal_service.services.directory import get_employee_or_404, list_direct_reports
from appraisal_service.services.scoring import progress_from_actuals

logger = logging.getLogger(__name__)

FINAL_GOAL_STATUSES = ("COMPLETED", "CANCELLED")


def get_goal_or_404(db: Session, goal_id: uuid.UUID) -> Goal:
    g = db.get(Goal, goal_id)
    if not g:
        raise NotFoundError("Goal not found")
    return g


def _lock_goal_or_404(db: Session, goal_id: uuid.UUID) -> Goal:
    g = db.query(Goal).filter(Goal.id == goal_id).with_for_update().one_or_none()
    if not g:
        raise NotFoundError("Goal not found")
    return g


def _template_locked(db: Session, goal: Goal) -> bool:
    if goal.template_id is None:
        return False
    t = db.get(GoalTemplate, goal.template_id)
    return t is not None and t.status == "LOCKED"


def submit_actuals(
    db: Session,
    goal_id: uuid.UUID,
    payload: GoalActualsSubmit,
    *,
    actor: User,
    expected_version: int | None = None,
) -> Goal:
    """
    Employee reports achieved value and/or progress. An explicit progress_pct
    wins; otherwise it is derived from achieved/target when both are usable.
    """
    emp = require_employee(db, actor)

    with db.begin_nested():
        g = _lock_goal_or_404(db, goal_id)
        if g.assigned_to != emp.id:
            raise AuthorizationError("Only the assigned employee can submit actuals for this goal")

        assert_version_matches(current_version=g.version, if_match_version=expected_version)

        if _template_locked(db, g):
            raise TemplateLockedError()
        if g.manager_approved:
            raise InvalidStateError("Goal is already approved by the manager")
        if g.status == "CANCELLED":
            raise InvalidStateError("Goal has been cancelled")

        if payload.achieved_value is not None:
            g.achieved_value = payload.achieved_value

        if payload.progress_pct is not None:
            g.progress_pct = payload.progress_pct
        else:
            derived = progress_from_actuals(g.achieved_value, g.target_value)
            if derived is not None:
                g.progress_pct = derived

        if payload.self_comments is not None:
            g.self_comments = payload.self_comments

        prev = g.status
        g.employee_submitted = True
        g.submitted_at = datetime.utcnow()
        g.rejection_reason = None
        if g.status == "NOT_STARTED":
            g.status = "IN_PROGRESS"
        db.flush()

        log_event(
            db=db,
            actor=actor,
            action="GOAL_ACTUALS_SUBMITTED",
            entity_type="goal",
            entity_id=g.id,
            metadata={
                "from": prev,
                "to": g.status,
                "achieved_value": g.achieved_value,
                "progress_pct": g.progress_pct,
            },
        )
    return g


def approve_goal(db: Session, goal_id: uuid.UUID, *, actor: User, comment: str | None = None) -> Goal:
    with db.begin_nested():
        g = _lock_goal_or_404(db, goal_id)
        assert_can_manage_goal(db, actor, g)

        if g.status == "CANCELLED":
            raise InvalidStateError("Goal has been cancelled")
        if not g.employee_submitted:
            raise InvalidStateError("Goal has not been submitted by the employee")
        if g.manager_approved:
            raise InvalidStateError("Goal is already approved")

        prev = g.status
        g.manager_approved = True
        g.approved_at = datetime.utcnow()
        g.status = "COMPLETED" if g.progress_pct == 100 else "IN_PROGRESS"
        if comment is not None:
            g.manager_comments = comment
        db.flush()

        log_event(
            db=db,
            actor=actor,
            action="GOAL_APPROVED",
            entity_type="goal",
            entity_id=g.id,
            metadata={"from": prev, "to": g.status, "progress_pct": g.progress_pct},
        )
    return g


def reject_goal(db: Session, goal_id: uuid.UUID, *, actor: User, reason: str) -> Goal:
    """
    Sends a submitted goal back to the employee. The row lock makes a
    concurrent resubmission wait; it then sees employee_submitted=False.
    """
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A rejection reason is required")

    with db.begin_nested():
        g = _lock_goal_or_404(db, goal_id)
        assert_can_manage_goal(db, actor, g)

        if _template_locked(db, g):
            raise TemplateLockedError()
        if not g.employee_submitted:
            raise InvalidStateError("Goal has not been submitted by the employee")
        if g.manager_approved:
            raise InvalidStateError("Approved goals cannot be rejected")

        g.employee_submitted = False
        g.rejection_reason = reason
        g.rejected_at = datetime.utcnow()
        db.flush()

        log_event(
            db=db,
            actor=actor,
            action="GOAL_REJECTED",
            entity_type="goal",
            entity_id=g.id,
            metadata={"reason": reason},
        )
    return g


def get_my_goals(db: Session, *, actor: User, cycle_id: uuid.UUID | None = None) -> list[Goal]:
    emp = get_employee_for_user(db, actor)
    if not emp:
        return []
    query = db.query(Goal).filter(Goal.assigned_to == emp.id)
    if cycle_id:
        query = query.filter(Goal.cycle_id == cycle_id)
    return query.order_by(Goal.created_at, Goal.title).all()


def get_team_goals(db: Session, *, actor: User, cycle_id: uuid.UUID | None = None) -> list[Goal]:
    emp = require_employee(db, actor)
    report_ids = [e.id for e in list_direct_reports(db, emp.id)]

    query = db.query(Goal).filter(or_(Goal.assigned_by == emp.id, Goal.assigned_to.in_(report_ids)))
    if cycle_id:
        query = query.filter(Goal.cycle_id == cycle_id)
    return query.order_by(Goal.assigned_to, Goal.created_at).all()


def create_adhoc_goal(db: Session, payload: AdhocGoalCreate, *, actor: User) -> Goal:
    manager = require_employee(db, actor)

    title = payload.title.strip()
    if not title:
        raise ValidationError("Goal title is required")
    if not 1 <= payload.weightage <= 100:
        raise ValidationError("weightage must be between 1 and 100")

    assignee = get_employee_or_404(db, payload.assigned_to)
    if not is_manager_of(db, manager.id, assignee.id):
        raise AuthorizationError("Goals can only be assigned to your direct reports")
    if not assignee.is_active:
        raise ValidationError("Cannot assign goals to an inactive employee")

    appraisal_id = None
    if payload.cycle_id:
        cycle = get_cycle_or_404(db, payload.cycle_id)
        if cycle.status == "CLOSED":
            raise InvalidStateError("Cannot add goals to a CLOSED cycle")
        appraisal_id = (
            db.query(Appraisal.id)
            .filter(Appraisal.cycle_id == cycle.id, Appraisal.employee_id == assignee.id)
            .scalar()
        )

    g = Goal(
        cycle_id=payload.cycle_id,
        appraisal_id=appraisal_id,
        assigned_to=assignee.id,
        assigned_by=manager.id,
        pillar=payload.pillar,
        title=title,
        description=payload.description,
        unit=payload.unit,
        target_value=payload.target_value,
        weightage=payload.weightage,
        progress_pct=0,
        status="NOT_STARTED",
    )
    db.add(g)
    db.flush()

    log_event(
        db=db,
        actor=actor,
        action="GOAL_CREATED",
        entity_type="goal",
        entity_id=g.id,
        metadata={"assigned_to": str(assignee.id), "title": title, "cycle_id": str(payload.cycle_id) if payload.cycle_id else None},
    )
    return g


def set_goal_status(db: Session, goal_id: uuid.UUID, status: str, *, actor: User) -> Goal:
    """Manager puts a goal on hold, cancels it, or resumes it. COMPLETED and CANCELLED are final."""
    with db.begin_nested():
        g = _lock_goal_or_404(db, goal_id)
        assert_can_manage_goal(db, actor, g)

        if g.status in FINAL_GOAL_STATUSES:
            raise InvalidStateError(f"Goal status cannot change once {g.status}")
        if g.status == status:
            raise InvalidStateError(f"Goal is already {status}")

        prev = g.status
        g.status = status
        db.flush()

        log_event(
            db=db,
            actor=actor,
            action="GOAL_STATUS_CHANGED",
            entity_type="goal",
            entity_id=g.id,
            metadata={"from": prev, "to": status},
        )
    return g


def get_employee_goals(
    db: Session, employee_id: uuid.UUID, *, actor: User, cycle_id: uuid.UUID | None = None
) -> list[Goal]:
    """Visible to the employee, their manager, or HR."""
    target = get_employee_or_404(db, employee_id)
    if not is_hr(db, actor):
        emp = require_employee(db, actor)
        if emp.id != target.id and target.manager_id != emp.id:
            raise AuthorizationError("Not allowed to view this employee's goals")

    query = db.query(Goal).filter(Goal.assigned_to == target.id)
    if cycle_id:
        query = query.filter(Goal.cycle_id == cycle_id)
    return query.order_by(Goal.created_at, Goal.title).all()


def get_cycle_goals(db: Session, cycle_id: uuid.UUID, *, actor: User) -> list[Goal]:
    """HR sees the whole cycle; everyone else their own goals and the ones they manage."""
    cycle = get_cycle_or_404(db, cycle_id)
    query = db.query(Goal).filter(Goal.cycle_id == cycle.id)
    if not is_hr(db, actor):
        emp = get_employee_for_user(db, actor)
        if not emp:
            return []
        report_ids = [e.id for e in list_direct_reports(db, emp.id)]
        query = query.filter(
            or_(Goal.assigned_to == emp.id, Goal.assigned_by == emp.id, Goal.assigned_to.in_(report_ids))
        )
    return query.order_by(Goal.assigned_to, Goal.created_at).all()


def bulk_create_adhoc_goals(db: Session, payloads: list[AdhocGoalCreate], *, actor: User) -> list[Goal]:
    """All or nothing: the first invalid goal rolls back the whole batch."""
    if not payloads:
        raise ValidationError("At least one goal is required")
    with db.begin_nested():
        goals = [create_adhoc_goal(db, p, actor=actor) for p in payloads]
    logger.info("Bulk goal create", extra={"count": len(goals)})
    return goals


def add_manager_comment(db: Session, goal_id: uuid.UUID, comment: str, *, actor: User) -> Goal:
    comment = (comment or "").strip()
    if not comment:
        raise ValidationError("Comment must not be empty")

    with db.begin_nested():
        g = _lock_goal_or_404(db, goal_id)
        assert_can_manage_goal(db, actor, g)
        if g.status == "CANCELLED":
            raise InvalidStateError("Goal has been cancelled")

        g.manager_comments = comment
        db.flush()

        log_event(
            db=db,
            actor=actor,
            action="GOAL_COMMENTED",
            entity_type="goal",
            entity_id=g.id,
            metadata={"length": len(comment)},
        )
    return g


def delete_goal(db: Session, goal_id: uuid.UUID, *, actor: User) -> None:
    """Only goals the employee has not yet reported on can be removed."""
    with db.begin_nested():
        g = _lock_goal_or_404(db, goal_id)
        assert_can_manage_goal(db, actor, g)

        if _template_locked(db, g):
            raise TemplateLockedError()
        if g.employee_submitted or g.manager_approved or g.submitted_at is not None:
            raise InvalidStateError("Goals with submitted progress cannot be deleted; cancel them instead")

        log_event(
            db=db,
            actor=actor,
            action="GOAL_DELETED",
            entity_type="goal",
            entity_id=g.id,
            metadata={"assigned_to": str(g.assigned_to), "title": g.title},
        )
        db.delete(g)
        db.flush()
