import logging
import uuid
from dataclasses import asdict
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.orm import Session

from appraisal_service.core.access import (
    assert_can_view_appraisal,
    assert_user_is_appraisee,
    assert_user_is_rater,
    get_employee_for_user,
)
from appraisal_service.core.audit import log_event
from appraisal_service.core.exceptions import AuthorizationError, InvalidStateError, ValidationError
from appraisal_service.core.rbac import is_hr
from appraisal_service.models.appraisal import TERMINAL_APPRAISAL_STATUSES, Appraisal
from appraisal_service.models.appraisal_cycle import AppraisalCycle
from appraisal_service.models.competency import Competency
from appraisal_service.models.employee import Employee
from appraisal_service.models.goal import Goal
from appraisal_service.models.review import Review, ReviewRating
from appraisal_service.models.user import User
from appraisal_service.services import notifications, scoring
from appraisal_service.services.cycles import get_cycle_or_404
from appraisal_service.services.reviews import get_appraisal_or_404, lock_appraisal_or_404

logger = logging.getLogger(__name__)


def completion_for(appraisal: Appraisal, cycle: AppraisalCycle) -> float:
    return scoring.completion_pct(
        self_enabled=cycle.self_review,
        manager_enabled=cycle.manager_review,
        self_done=appraisal.self_review_completed,
        manager_done=appraisal.manager_review_completed,
        peer_required=appraisal.peer_reviews_required,
        peer_completed=appraisal.peer_reviews_completed,
    )


def _scorable_goals(db: Session, appraisal: Appraisal) -> list[Goal]:
    return (
        db.query(Goal)
        .filter(
            Goal.assigned_to == appraisal.employee_id,
            Goal.cycle_id == appraisal.cycle_id,
            Goal.status != "CANCELLED",
        )
        .order_by(Goal.created_at, Goal.title)
        .all()
    )


def _submitted_ratings(db: Session, appraisal: Appraisal) -> list[tuple[int, float]]:
    rows = (
        db.query(ReviewRating.rating, Competency.weightage)
        .join(Review, Review.id == ReviewRating.review_id)
        .join(Competency, Competency.id == ReviewRating.competency_id)
        .filter(Review.appraisal_id == appraisal.id, Review.status == "SUBMITTED")
        .all()
    )
    return [(rating, weightage) for rating, weightage in rows]


def score(db: Session, appraisal: Appraisal) -> scoring.ScoreResult:
    return scoring.score_appraisal(_scorable_goals(db, appraisal), _submitted_ratings(db, appraisal))


def _review_comments(db: Session, appraisal: Appraisal) -> list[dict]:
    rows = (
        db.query(Review, Employee)
        .join(Employee, Employee.id == Review.reviewer_id)
        .filter(Review.appraisal_id == appraisal.id, Review.status == "SUBMITTED")
        .order_by(Review.submitted_at)
        .all()
    )
    comments = []
    for r, reviewer in rows:
        anonymous = r.reviewer_type == "PEER"
        comments.append(
            {
                "reviewer_type": r.reviewer_type,
                "reviewer_id": None if anonymous else str(reviewer.id),
                "reviewer_name": None if anonymous else reviewer.display_name,
                "overall_rating": r.overall_rating,
                "strengths": r.strengths,
                "areas_of_improvement": r.areas_of_improvement,
                "overall_comments": r.overall_comments,
            }
        )
    return comments


def compute_rating_preview(db: Session, appraisal_id: uuid.UUID, *, actor: User) -> dict:
    a = get_appraisal_or_404(db, appraisal_id)
    assert_user_is_rater(db, actor, a)

    result = score(db, a)
    preview = asdict(result)
    preview["appraisal_id"] = str(a.id)
    preview["goal_count"] = len(result.goals)
    preview["review_comments"] = _review_comments(db, a)
    return preview


def finalize_rating(
    db: Session, appraisal_id: uuid.UUID, *, actor: User, override_rating: str | None = None
) -> tuple[Appraisal, scoring.ScoreResult]:
    with db.begin_nested():
        a = lock_appraisal_or_404(db, appraisal_id)
        assert_user_is_rater(db, actor, a)

        if a.status in TERMINAL_APPRAISAL_STATUSES:
            raise InvalidStateError(f"Appraisal is {a.status}; the rating can no longer change")
        if not (a.self_review_completed or a.manager_review_completed):
            raise InvalidStateError("At least the self or manager review must be submitted before finalizing")

        result = score(db, a)
        prev = a.status
        a.final_score = result.final_score
        a.performance_rating = override_rating or result.suggested_rating
        a.overall_rating = scoring.display_rating(result.final_score)
        a.status = "COMPLETED"
        a.finalized_at = datetime.utcnow()
        # a new rating needs a new acknowledgement
        a.employee_agreed = None
        a.employee_disagree_comments = None
        a.acknowledged_at = None
        db.flush()

        log_event(
            db=db,
            actor=actor,
            action="RATING_FINALIZED",
            entity_type="appraisal",
            entity_id=a.id,
            metadata={
                "from": prev,
                "to": a.status,
                "final_score": a.final_score,
                "suggested_rating": result.suggested_rating,
                "performance_rating": a.performance_rating,
                "overridden": override_rating is not None and override_rating != result.suggested_rating,
            },
        )

    notifications.notify(
        db,
        recipients=[a.employee_id],
        event_type=notifications.RATING_FINALIZED,
        title="Your appraisal rating is ready",
        message=f"Your rating has been finalized as {a.performance_rating}. Please acknowledge it.",
        entity_type="appraisal",
        entity_id=a.id,
    )
    return a, result


def acknowledge_rating(
    db: Session, appraisal_id: uuid.UUID, agreed: bool, *, actor: User, comments: str | None = None
) -> Appraisal:
    with db.begin_nested():
        a = lock_appraisal_or_404(db, appraisal_id)
        assert_user_is_appraisee(db, actor, a)

        if a.status != "COMPLETED" or a.finalized_at is None:
            raise InvalidStateError("Only a finalized, COMPLETED appraisal can be acknowledged")
        if a.employee_agreed is not None:
            raise InvalidStateError("This rating has already been acknowledged")

        comments = (comments or "").strip() or None
        if not agreed and not comments:
            raise ValidationError("Comments are required when disagreeing with the rating")

        prev = a.status
        a.employee_agreed = agreed
        a.acknowledged_at = datetime.utcnow()
        if agreed:
            a.status = "APPROVED"
            a.approved_at = a.acknowledged_at
        else:
            a.employee_disagree_comments = comments
            a.status = "PENDING_MANAGER"
        db.flush()

        log_event(
            db=db,
            actor=actor,
            action="RATING_ACCEPTED" if agreed else "RATING_DISPUTED",
            entity_type="appraisal",
            entity_id=a.id,
            metadata={"from": prev, "to": a.status},
        )

    if not agreed:
        notifications.notify(
            db,
            recipients=[a.manager_id],
            event_type=notifications.RATING_DISPUTED,
            title="Appraisal rating disputed",
            message=comments,
            entity_type="appraisal",
            entity_id=a.id,
        )
    return a


def approve_appraisal(db: Session, appraisal_id: uuid.UUID, *, actor: User, remarks: str | None = None) -> Appraisal:
    """HR sign-off for a COMPLETED or disputed appraisal."""
    if not is_hr(db, actor):
        raise AuthorizationError("Only HR can approve appraisals")

    with db.begin_nested():
        a = lock_appraisal_or_404(db, appraisal_id)

        disputed = a.status == "PENDING_MANAGER" and a.performance_rating is not None
        if a.status != "COMPLETED" and not disputed:
            raise InvalidStateError(f"Only COMPLETED or disputed appraisals can be approved (appraisal is {a.status})")

        prev = a.status
        a.status = "APPROVED"
        a.approved_at = datetime.utcnow()
        a.approver_remarks = remarks
        db.flush()

        log_event(
            db=db,
            actor=actor,
            action="APPRAISAL_APPROVED",
            entity_type="appraisal",
            entity_id=a.id,
            metadata={"from": prev, "to": a.status, "performance_rating": a.performance_rating},
        )
    return a


def cancel_appraisal(db: Session, appraisal_id: uuid.UUID, *, actor: User, reason: str | None = None) -> Appraisal:
    if not is_hr(db, actor):
        raise AuthorizationError("Only HR can cancel appraisals")

    with db.begin_nested():
        a = lock_appraisal_or_404(db, appraisal_id)
        if a.status in TERMINAL_APPRAISAL_STATUSES:
            raise InvalidStateError(f"Appraisal is already {a.status}")

        prev = a.status
        a.status = "CANCELLED"
        a.approver_remarks = reason
        db.flush()

        log_event(
            db=db,
            actor=actor,
            action="APPRAISAL_CANCELLED",
            entity_type="appraisal",
            entity_id=a.id,
            metadata={"from": prev, "to": a.status, "reason": reason},
        )
    return a


def get_my_appraisals(db: Session, *, actor: User) -> list[Appraisal]:
    emp = get_employee_for_user(db, actor)
    if not emp:
        return []
    return (
        db.query(Appraisal)
        .filter(Appraisal.employee_id == emp.id)
        .order_by(Appraisal.created_at.desc())
        .all()
    )


def get_cycle_appraisals(db: Session, cycle_id: uuid.UUID, *, actor: User) -> list[Appraisal]:
    """HR sees the whole cycle; everyone else their own and their reports' appraisals."""
    cycle = get_cycle_or_404(db, cycle_id)
    query = db.query(Appraisal).filter(Appraisal.cycle_id == cycle.id)
    if not is_hr(db, actor):
        emp = get_employee_for_user(db, actor)
        if not emp:
            return []
        query = query.filter(or_(Appraisal.employee_id == emp.id, Appraisal.manager_id == emp.id))
    return query.order_by(Appraisal.created_at).all()


def get_appraisal(db: Session, appraisal_id: uuid.UUID, *, actor: User) -> Appraisal:
    a = get_appraisal_or_404(db, appraisal_id)
    assert_can_view_appraisal(db, actor, a)
    return a
