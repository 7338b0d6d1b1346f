import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from appraisal_service.api.appraisals import appraisal_to_out
from appraisal_service.core.rbac import require_roles
from appraisal_service.core.security import get_current_user
from appraisal_service.db.session import get_db
from appraisal_service.models.appraisal_cycle import AppraisalCycle
from appraisal_service.models.user import User
from appraisal_service.schemas.appraisal import AppraisalOut
from appraisal_service.schemas.cycle import (
    AppraisalCycleCreate,
    AppraisalCycleOut,
    AppraisalCycleUpdate,
    CycleActivationOut,
)
from appraisal_service.services import cycles as cycle_service
from appraisal_service.services import rating as rating_service

router = APIRouter(prefix="/appraisals/cycles", tags=["appraisal-cycles"])


def to_out(c: AppraisalCycle, warnings: list[str] | None = None) -> AppraisalCycleOut:
    return AppraisalCycleOut(
        id=str(c.id),
        name=c.name,
        description=c.description,
        cycle_type=c.cycle_type,
        review_period_start=c.review_period_start,
        review_period_end=c.review_period_end,
        cycle_start=c.cycle_start,
        cycle_end=c.cycle_end,
        self_review=c.self_review,
        manager_review=c.manager_review,
        peer_review=c.peer_review,
        subordinate_review=c.subordinate_review,
        min_peer_reviewers=c.min_peer_reviewers,
        max_peer_reviewers=c.max_peer_reviewers,
        status=c.status,
        created_by_user_id=str(c.created_by_user_id),
        activated_at=c.activated_at,
        closed_at=c.closed_at,
        created_at=c.created_at,
        updated_at=c.updated_at,
        warnings=warnings or [],
    )


@router.get("", response_model=list[AppraisalCycleOut])
def list_cycles(
    search: str | None = Query(default=None, description="Search by name"),
    status: str | None = Query(default=None, description="Filter by status (DRAFT, ACTIVE, CLOSED)"),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return [to_out(c) for c in cycle_service.list_cycles(db, status=status, search=search)]


@router.get("/active", response_model=list[AppraisalCycleOut])
def list_active_cycles(
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return [to_out(c) for c in cycle_service.list_cycles(db, status="ACTIVE")]


@router.post("", response_model=AppraisalCycleOut, status_code=status.HTTP_201_CREATED)
def create_cycle(
    payload: AppraisalCycleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("ADMIN", "HR")),
):
    c, warnings = cycle_service.create_cycle(db, payload, actor=current_user)
    db.commit()
    db.refresh(c)
    return to_out(c, warnings)


@router.get("/{cycle_id}", response_model=AppraisalCycleOut)
def get_cycle(
    cycle_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return to_out(cycle_service.get_cycle_or_404(db, cycle_id))


@router.patch("/{cycle_id}", response_model=AppraisalCycleOut)
def update_cycle(
    cycle_id: uuid.UUID,
    payload: AppraisalCycleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("ADMIN", "HR")),
):
    c, warnings = cycle_service.update_cycle(db, cycle_id, payload, actor=current_user)
    db.commit()
    db.refresh(c)
    return to_out(c, warnings)


@router.post("/{cycle_id}/activate", response_model=CycleActivationOut)
def activate_cycle(
    cycle_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("ADMIN", "HR")),
):
    c, created = cycle_service.activate_cycle(db, cycle_id, actor=current_user)
    db.commit()
    db.refresh(c)
    return CycleActivationOut(**to_out(c).model_dump(), appraisals_created=created)


@router.post("/{cycle_id}/close", response_model=AppraisalCycleOut)
def close_cycle(
    cycle_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("ADMIN", "HR")),
):
    c = cycle_service.close_cycle(db, cycle_id, actor=current_user)
    db.commit()
    db.refresh(c)
    return to_out(c)


@router.get("/{cycle_id}/appraisals", response_model=list[AppraisalOut])
def list_cycle_appraisals(
    cycle_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cycle = cycle_service.get_cycle_or_404(db, cycle_id)
    return [
        appraisal_to_out(a, cycle)
        for a in rating_service.get_cycle_appraisals(db, cycle_id, actor=current_user)
    ]
