import uuid

from fastapi import APIRouter, Depends, Header, Query, Response, status
from sqlalchemy.orm import Session

from appraisal_service.core.optimistic_lock import parse_if_match, set_etag
from appraisal_service.core.security import get_current_user
from appraisal_service.db.session import get_db
from appraisal_service.models.goal import Goal
from appraisal_service.models.user import User
from appraisal_service.schemas.goal import (
    AdhocGoalCreate,
    GoalActualsSubmit,
    GoalApprove,
    GoalBulkCreate,
    GoalComment,
    GoalOut,
    GoalReject,
    GoalStatusUpdate,
)
from appraisal_service.services import goals as goal_service

# employee/manager goal actions that live under the template namespace
template_goals_router = APIRouter(prefix="/goal-templates", tags=["goals"])
router = APIRouter(prefix="/goals", tags=["goals"])


def goal_to_out(g: Goal) -> GoalOut:
    return GoalOut(
        id=str(g.id),
        template_id=str(g.template_id) if g.template_id else None,
        metric_id=str(g.metric_id) if g.metric_id else None,
        cycle_id=str(g.cycle_id) if g.cycle_id else None,
        appraisal_id=str(g.appraisal_id) if g.appraisal_id else None,
        assigned_to=str(g.assigned_to),
        assigned_by=str(g.assigned_by),
        pillar=g.pillar,
        title=g.title,
        description=g.description,
        unit=g.unit,
        target_value=g.target_value,
        weightage=g.weightage,
        achieved_value=g.achieved_value,
        progress_pct=g.progress_pct,
        status=g.status,
        employee_submitted=g.employee_submitted,
        manager_approved=g.manager_approved,
        self_comments=g.self_comments,
        manager_comments=g.manager_comments,
        rejection_reason=g.rejection_reason,
        submitted_at=g.submitted_at,
        approved_at=g.approved_at,
        rejected_at=g.rejected_at,
        version=g.version,
        created_at=g.created_at,
        updated_at=g.updated_at,
    )


@template_goals_router.get("/my-goals", response_model=list[GoalOut])
def my_goals(
    cycle_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return [goal_to_out(g) for g in goal_service.get_my_goals(db, actor=current_user, cycle_id=cycle_id)]


@template_goals_router.put("/goals/{goal_id}/submit", response_model=GoalOut)
def submit_goal_actuals(
    goal_id: uuid.UUID,
    payload: GoalActualsSubmit,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    if_match: str | None = Header(default=None, alias="If-Match"),
):
    expected_version = parse_if_match(if_match)
    g = goal_service.submit_actuals(db, goal_id, payload, actor=current_user, expected_version=expected_version)
    db.commit()
    db.refresh(g)
    set_etag(response, g.version)
    return goal_to_out(g)


@template_goals_router.put("/goals/{goal_id}/approve", response_model=GoalOut)
def approve_goal(
    goal_id: uuid.UUID,
    payload: GoalApprove | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    g = goal_service.approve_goal(db, goal_id, actor=current_user, comment=payload.comment if payload else None)
    db.commit()
    db.refresh(g)
    return goal_to_out(g)


@template_goals_router.put("/goals/{goal_id}/reject", response_model=GoalOut)
def reject_goal(
    goal_id: uuid.UUID,
    payload: GoalReject,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    g = goal_service.reject_goal(db, goal_id, actor=current_user, reason=payload.reason)
    db.commit()
    db.refresh(g)
    return goal_to_out(g)


@router.post("", response_model=GoalOut, status_code=status.HTTP_201_CREATED)
def create_adhoc_goal(
    payload: AdhocGoalCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    g = goal_service.create_adhoc_goal(db, payload, actor=current_user)
    db.commit()
    db.refresh(g)
    return goal_to_out(g)


@router.get("/team", response_model=list[GoalOut])
def team_goals(
    cycle_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return [goal_to_out(g) for g in goal_service.get_team_goals(db, actor=current_user, cycle_id=cycle_id)]


@router.put("/{goal_id}/status", response_model=GoalOut)
def set_goal_status(
    goal_id: uuid.UUID,
    payload: GoalStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    g = goal_service.set_goal_status(db, goal_id, payload.status, actor=current_user)
    db.commit()
    db.refresh(g)
    return goal_to_out(g)


@router.post("/bulk", response_model=list[GoalOut], status_code=status.HTTP_201_CREATED)
def bulk_create_goals(
    payload: GoalBulkCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    goals = goal_service.bulk_create_adhoc_goals(db, payload.goals, actor=current_user)
    db.commit()
    for g in goals:
        db.refresh(g)
    return [goal_to_out(g) for g in goals]


@router.get("/employee/{employee_id}", response_model=list[GoalOut])
def employee_goals(
    employee_id: uuid.UUID,
    cycle_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    goals = goal_service.get_employee_goals(db, employee_id, actor=current_user, cycle_id=cycle_id)
    return [goal_to_out(g) for g in goals]


@router.get("/cycle/{cycle_id}", response_model=list[GoalOut])
def cycle_goals(
    cycle_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return [goal_to_out(g) for g in goal_service.get_cycle_goals(db, cycle_id, actor=current_user)]


@router.put("/{goal_id}/comment", response_model=GoalOut)
def comment_on_goal(
    goal_id: uuid.UUID,
    payload: GoalComment,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    g = goal_service.add_manager_comment(db, goal_id, payload.manager_comments, actor=current_user)
    db.commit()
    db.refresh(g)
    return goal_to_out(g)


@router.delete("/{goal_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_goal(
    goal_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    goal_service.delete_goal(db, goal_id, actor=current_user)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
