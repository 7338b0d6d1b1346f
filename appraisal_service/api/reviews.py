import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from appraisal_service.api.competencies import to_out as competency_to_out
from appraisal_service.core.security import get_current_user
from appraisal_service.db.session import get_db
from appraisal_service.models.employee import Employee
from appraisal_service.models.appraisal_cycle import AppraisalCycle
from appraisal_service.models.review import Review
from appraisal_service.models.user import User
from appraisal_service.schemas.review import (
    PeerSelection,
    PendingReviewOut,
    RatingOut,
    ReviewDetailOut,
    ReviewOut,
    ReviewStart,
    ReviewSubmit,
)
from appraisal_service.services import reviews as review_service
from appraisal_service.services.competencies import list_competencies

router = APIRouter(prefix="/appraisals", tags=["reviews"])


def review_to_out(r: Review) -> ReviewOut:
    return ReviewOut(
        id=str(r.id),
        appraisal_id=str(r.appraisal_id),
        reviewer_id=str(r.reviewer_id),
        reviewer_type=r.reviewer_type,
        status=r.status,
        ratings=[
            RatingOut(competency_id=str(x.competency_id), rating=x.rating, comments=x.comments)
            for x in r.ratings
        ],
        strengths=r.strengths,
        areas_of_improvement=r.areas_of_improvement,
        overall_comments=r.overall_comments,
        overall_rating=r.overall_rating,
        submitted_at=r.submitted_at,
        created_at=r.created_at,
        updated_at=r.updated_at,
    )


@router.get("/my-reviews/pending", response_model=list[PendingReviewOut])
def my_pending_reviews(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return [
        PendingReviewOut(
            review_id=str(r.id),
            appraisal_id=str(a.id),
            reviewer_type=r.reviewer_type,
            employee_id=str(emp.id),
            employee_name=emp.display_name,
            cycle_id=str(c.id),
            cycle_name=c.name,
            cycle_end=c.cycle_end,
        )
        for r, a, emp, c in review_service.list_my_pending_reviews(db, actor=current_user)
    ]


@router.get("/reviews/{review_id}", response_model=ReviewDetailOut)
def get_review(
    review_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    r, a = review_service.get_review_details(db, review_id, actor=current_user)
    employee = db.get(Employee, a.employee_id)
    cycle = db.get(AppraisalCycle, a.cycle_id)
    return ReviewDetailOut(
        **review_to_out(r).model_dump(),
        employee_id=str(employee.id),
        employee_name=employee.display_name,
        cycle_id=str(cycle.id),
        cycle_name=cycle.name,
        competencies=[competency_to_out(c) for c in list_competencies(db, active_only=True)],
    )


@router.post("/reviews/{review_id}/submit", response_model=ReviewOut)
def submit_review(
    review_id: uuid.UUID,
    payload: ReviewSubmit,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    r = review_service.save_or_submit_review(db, review_id, payload, actor=current_user)
    db.commit()
    db.refresh(r)
    return review_to_out(r)


@router.post("/{appraisal_id}/reviews", response_model=ReviewOut, status_code=status.HTTP_201_CREATED)
def start_review(
    appraisal_id: uuid.UUID,
    payload: ReviewStart,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    r, created = review_service.start_review(
        db, appraisal_id, payload.reviewer_type, actor=current_user, reviewer_id=payload.reviewer_id
    )
    db.commit()
    db.refresh(r)
    if not created:
        response.status_code = status.HTTP_200_OK
    return review_to_out(r)


@router.post("/{appraisal_id}/peer-reviewers", response_model=list[ReviewOut], status_code=status.HTTP_201_CREATED)
def select_peer_reviewers(
    appraisal_id: uuid.UUID,
    payload: PeerSelection,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    reviews = review_service.select_peers(db, appraisal_id, payload.peer_ids, actor=current_user)
    db.commit()
    for r in reviews:
        db.refresh(r)
    return [review_to_out(r) for r in reviews]
