import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from appraisal_service.core.rbac import require_roles
from appraisal_service.core.security import get_current_user
from appraisal_service.db.session import get_db
from appraisal_service.models.appraisal import Appraisal
from appraisal_service.models.appraisal_cycle import AppraisalCycle
from appraisal_service.models.user import User
from appraisal_service.schemas.appraisal import (
    AppraisalApprove,
    AppraisalCancel,
    AppraisalOut,
    FinalizeRating,
    RatingAcknowledge,
    RatingPreviewOut,
)
from appraisal_service.services import rating as rating_service

router = APIRouter(prefix="/appraisals", tags=["appraisals"])


def appraisal_to_out(a: Appraisal, cycle: AppraisalCycle) -> AppraisalOut:
    return AppraisalOut(
        id=str(a.id),
        cycle_id=str(a.cycle_id),
        employee_id=str(a.employee_id),
        manager_id=str(a.manager_id) if a.manager_id else None,
        status=a.status,
        self_review_completed=a.self_review_completed,
        manager_review_completed=a.manager_review_completed,
        peer_reviewers_assigned=list(a.peer_reviewers_assigned or []),
        peer_reviews_required=a.peer_reviews_required,
        peer_reviews_completed=a.peer_reviews_completed,
        completion_pct=rating_service.completion_for(a, cycle),
        overall_rating=a.overall_rating,
        final_score=a.final_score,
        performance_rating=a.performance_rating,
        employee_agreed=a.employee_agreed,
        employee_disagree_comments=a.employee_disagree_comments,
        approver_remarks=a.approver_remarks,
        finalized_at=a.finalized_at,
        acknowledged_at=a.acknowledged_at,
        approved_at=a.approved_at,
        created_at=a.created_at,
        updated_at=a.updated_at,
    )


def _out(db: Session, a: Appraisal) -> AppraisalOut:
    return appraisal_to_out(a, db.get(AppraisalCycle, a.cycle_id))


@router.get("/my-appraisals", response_model=list[AppraisalOut])
def my_appraisals(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return [_out(db, a) for a in rating_service.get_my_appraisals(db, actor=current_user)]


@router.get("/{appraisal_id}", response_model=AppraisalOut)
def get_appraisal(
    appraisal_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _out(db, rating_service.get_appraisal(db, appraisal_id, actor=current_user))


@router.get("/{appraisal_id}/rating-preview", response_model=RatingPreviewOut)
def rating_preview(
    appraisal_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return RatingPreviewOut(**rating_service.compute_rating_preview(db, appraisal_id, actor=current_user))


@router.put("/{appraisal_id}/finalize-rating", response_model=AppraisalOut)
def finalize_rating(
    appraisal_id: uuid.UUID,
    payload: FinalizeRating | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    a, _ = rating_service.finalize_rating(
        db,
        appraisal_id,
        actor=current_user,
        override_rating=payload.override_rating if payload else None,
    )
    db.commit()
    db.refresh(a)
    return _out(db, a)


@router.post("/{appraisal_id}/acknowledge", response_model=AppraisalOut)
def acknowledge_rating(
    appraisal_id: uuid.UUID,
    payload: RatingAcknowledge,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    a = rating_service.acknowledge_rating(
        db, appraisal_id, payload.agreed, actor=current_user, comments=payload.comments
    )
    db.commit()
    db.refresh(a)
    return _out(db, a)


@router.post("/{appraisal_id}/approve", response_model=AppraisalOut)
def approve_appraisal(
    appraisal_id: uuid.UUID,
    payload: AppraisalApprove | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("ADMIN", "HR")),
):
    a = rating_service.approve_appraisal(
        db, appraisal_id, actor=current_user, remarks=payload.remarks if payload else None
    )
    db.commit()
    db.refresh(a)
    return _out(db, a)


@router.post("/{appraisal_id}/cancel", response_model=AppraisalOut)
def cancel_appraisal(
    appraisal_id: uuid.UUID,
    payload: AppraisalCancel | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("ADMIN", "HR")),
):
    a = rating_service.cancel_appraisal(
        db, appraisal_id, actor=current_user, reason=payload.reason if payload else None
    )
    db.commit()
    db.refresh(a)
    return _out(db, a)
