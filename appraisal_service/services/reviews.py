import logging
import uuid
from datetime import datetime

from sqlalchemy.orm import Session

from appraisal_service.core.access import (
    assert_can_view_appraisal,
    get_employee_for_user,
    is_manager_of,
    require_employee,
)
from appraisal_service.core.audit import log_event
from appraisal_service.core.exceptions import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from appraisal_service.core.rbac import is_hr
from appraisal_service.models.appraisal import TERMINAL_APPRAISAL_STATUSES, Appraisal
from appraisal_service.models.appraisal_cycle import AppraisalCycle
from appraisal_service.models.competency import Competency
from appraisal_service.models.employee import Employee
from appraisal_service.models.review import Review, ReviewRating
from appraisal_service.models.user import User
from appraisal_service.schemas.review import RatingIn, ReviewSubmit
from appraisal_service.services import notifications
from appraisal_service.services.scoring import RATING_MAX, RATING_MIN, weighted_mean

logger = logging.getLogger(__name__)

# appraisal states in which reviews may still be written
REVIEWABLE_STATUSES = ("NOT_STARTED", "IN_PROGRESS", "PENDING_MANAGER")

REVIEW_TYPE_TOGGLES = {
    "SELF": "self_review",
    "MANAGER": "manager_review",
    "PEER": "peer_review",
    "SUBORDINATE": "subordinate_review",
}


def get_appraisal_or_404(db: Session, appraisal_id: uuid.UUID) -> Appraisal:
    a = db.get(Appraisal, appraisal_id)
    if not a:
        raise NotFoundError("Appraisal not found")
    return a


def lock_appraisal_or_404(db: Session, appraisal_id: uuid.UUID) -> Appraisal:
    a = db.query(Appraisal).filter(Appraisal.id == appraisal_id).with_for_update().one_or_none()
    if not a:
        raise NotFoundError("Appraisal not found")
    return a


def get_review_or_404(db: Session, review_id: uuid.UUID) -> Review:
    r = db.get(Review, review_id)
    if not r:
        raise NotFoundError("Review not found")
    return r


def _lock_review_or_404(db: Session, review_id: uuid.UUID) -> Review:
    r = db.query(Review).filter(Review.id == review_id).with_for_update().one_or_none()
    if not r:
        raise NotFoundError("Review not found")
    return r


def record_completion(appraisal: Appraisal, reviewer_type: str, *, self_enabled: bool, manager_enabled: bool) -> None:
    """Bump the counter for one submitted review and advance the appraisal status."""
    match reviewer_type:
        case "SELF":
            appraisal.self_review_completed = True
        case "MANAGER":
            appraisal.manager_review_completed = True
        case "PEER":
            appraisal.peer_reviews_completed = (appraisal.peer_reviews_completed or 0) + 1
        case "SUBORDINATE":
            pass
        case _:
            raise ValueError(f"Unknown reviewer type: {reviewer_type}")

    if appraisal.status in REVIEWABLE_STATUSES:
        self_done = appraisal.self_review_completed or not self_enabled
        manager_outstanding = manager_enabled and not appraisal.manager_review_completed
        appraisal.status = "PENDING_MANAGER" if self_done and manager_outstanding else "IN_PROGRESS"


def apply_review_completion(db: Session, appraisal: Appraisal, review: Review, cycle: AppraisalCycle) -> None:
    """
    The only place appraisal review counters change. Also refreshes the
    appraisal's overall_rating as the mean of its submitted reviews.
    """
    record_completion(
        appraisal,
        review.reviewer_type,
        self_enabled=cycle.self_review,
        manager_enabled=cycle.manager_review,
    )
    db.flush()

    ratings = [
        r
        for (r,) in db.query(Review.overall_rating).filter(
            Review.appraisal_id == appraisal.id,
            Review.status == "SUBMITTED",
            Review.overall_rating.is_not(None),
        )
    ]
    appraisal.overall_rating = round(sum(ratings) / len(ratings), 2) if ratings else None


def _check_reviewer_relationship(db: Session, appraisal: Appraisal, reviewer_id: uuid.UUID, reviewer_type: str) -> None:
    if reviewer_type == "SELF":
        ok = reviewer_id == appraisal.employee_id
        msg = "A SELF review must be written by the appraised employee"
    elif reviewer_type == "MANAGER":
        ok = appraisal.manager_id is not None and reviewer_id == appraisal.manager_id
        msg = "A MANAGER review must be written by the employee's manager"
    elif reviewer_type == "PEER":
        ok = str(reviewer_id) in (appraisal.peer_reviewers_assigned or [])
        msg = "Only nominated peer reviewers can write a PEER review"
    else:
        ok = is_manager_of(db, appraisal.employee_id, reviewer_id)
        msg = "A SUBORDINATE review must be written by a direct report of the employee"
    if not ok:
        raise ValidationError(msg)


def start_review(
    db: Session,
    appraisal_id: uuid.UUID,
    reviewer_type: str,
    *,
    actor: User,
    reviewer_id: uuid.UUID | None = None,
) -> tuple[Review, bool]:
    """Returns (review, created). An existing DRAFT for the same triple is handed back."""
    a = get_appraisal_or_404(db, appraisal_id)

    me = get_employee_for_user(db, actor)
    if reviewer_id is None:
        if not me:
            raise AuthorizationError("Current user is not linked to an employee record")
        reviewer_id = me.id
    elif (not me or me.id != reviewer_id) and not is_hr(db, actor):
        raise AuthorizationError("Only HR can start a review on behalf of another employee")

    existing = (
        db.query(Review)
        .filter(
            Review.appraisal_id == a.id,
            Review.reviewer_id == reviewer_id,
            Review.reviewer_type == reviewer_type,
        )
        .one_or_none()
    )
    if existing:
        if existing.status == "SUBMITTED":
            raise InvalidStateError(f"A {reviewer_type} review by this reviewer has already been submitted")
        return existing, False

    if a.status in TERMINAL_APPRAISAL_STATUSES:
        raise InvalidStateError(f"Appraisal is {a.status}")

    reviewer = db.get(Employee, reviewer_id)
    if not reviewer or not reviewer.is_active:
        raise ValidationError("Reviewer must be an active employee")

    _check_reviewer_relationship(db, a, reviewer_id, reviewer_type)

    cycle = db.get(AppraisalCycle, a.cycle_id)
    if not getattr(cycle, REVIEW_TYPE_TOGGLES[reviewer_type]):
        raise InvalidStateError(f"{reviewer_type} reviews are not enabled for this cycle")

    r = Review(appraisal_id=a.id, reviewer_id=reviewer_id, reviewer_type=reviewer_type, status="DRAFT")
    db.add(r)
    db.flush()

    log_event(
        db=db,
        actor=actor,
        action="REVIEW_STARTED",
        entity_type="review",
        entity_id=r.id,
        metadata={"appraisal_id": str(a.id), "reviewer_type": reviewer_type},
    )
    return r, True


def _validate_ratings(db: Session, ratings: list[RatingIn]) -> dict[uuid.UUID, Competency]:
    seen: set[uuid.UUID] = set()
    for item in ratings:
        if item.competency_id in seen:
            raise ValidationError(f"Competency {item.competency_id} is rated more than once")
        seen.add(item.competency_id)
        if not RATING_MIN <= item.rating <= RATING_MAX:
            raise ValidationError(f"Ratings must be between {RATING_MIN} and {RATING_MAX}")

    if not seen:
        return {}
    found = {c.id: c for c in db.query(Competency).filter(Competency.id.in_(seen))}
    unknown = seen - found.keys()
    if unknown:
        raise ValidationError(f"Unknown competency id(s): {', '.join(sorted(str(u) for u in unknown))}")
    return found


def _replace_ratings(review: Review, ratings: list[RatingIn]) -> None:
    existing = {r.competency_id: r for r in review.ratings}
    incoming = {item.competency_id for item in ratings}

    for cid, row in existing.items():
        if cid not in incoming:
            review.ratings.remove(row)
    for item in ratings:
        row = existing.get(item.competency_id)
        if row is None:
            review.ratings.append(ReviewRating(competency_id=item.competency_id, rating=item.rating, comments=item.comments))
        else:
            row.rating = item.rating
            row.comments = item.comments


def _require_text(value: str | None, label: str) -> None:
    if not (value or "").strip():
        raise ValidationError(f"{label} is required to submit the review")


def save_or_submit_review(db: Session, review_id: uuid.UUID, payload: ReviewSubmit, *, actor: User) -> Review:
    """
    Saves a draft (is_draft=True) or submits the review. Fields left as None
    keep their drafted values, so a submission may carry only the flag.
    """
    emp = require_employee(db, actor)

    with db.begin_nested():
        r = _lock_review_or_404(db, review_id)
        if r.reviewer_id != emp.id:
            raise AuthorizationError("Only the reviewer can edit this review")
        if r.status != "DRAFT":
            raise InvalidStateError("Review has already been submitted")

        a = lock_appraisal_or_404(db, r.appraisal_id)
        cycle = db.get(AppraisalCycle, a.cycle_id)
        if cycle.status != "ACTIVE":
            raise InvalidStateError(f"Reviews can only be written while the cycle is ACTIVE (cycle is {cycle.status})")
        if a.status not in REVIEWABLE_STATUSES:
            raise InvalidStateError(f"Appraisal is {a.status}; reviews are closed")

        if payload.ratings is not None:
            _validate_ratings(db, payload.ratings)
            _replace_ratings(r, payload.ratings)
        for field in ("strengths", "areas_of_improvement", "overall_comments"):
            value = getattr(payload, field)
            if value is not None:
                setattr(r, field, value)
        db.flush()

        if payload.is_draft:
            log_event(
                db=db,
                actor=actor,
                action="REVIEW_DRAFT_SAVED",
                entity_type="review",
                entity_id=r.id,
                metadata={"ratings": len(r.ratings)},
            )
            return r

        active = db.query(Competency).filter(Competency.is_active.is_(True)).all()
        rated = {row.competency_id for row in r.ratings}
        missing = [c.name for c in active if c.id not in rated]
        if missing:
            raise ValidationError(
                f"Rate every active competency before submitting (missing: {', '.join(missing)})"
            )
        _require_text(r.strengths, "Strengths")
        _require_text(r.areas_of_improvement, "Areas of improvement")
        _require_text(r.overall_comments, "Overall comments")

        weights = {
            c.id: c.weightage
            for c in db.query(Competency).filter(Competency.id.in_(rated))
        } if rated else {}
        mean = weighted_mean((row.rating, weights.get(row.competency_id, 0)) for row in r.ratings)
        r.overall_rating = round(mean, 2) if mean is not None else None

        r.status = "SUBMITTED"
        r.submitted_at = datetime.utcnow()
        prev_status = a.status
        apply_review_completion(db, a, r, cycle)
        db.flush()

        log_event(
            db=db,
            actor=actor,
            action="REVIEW_SUBMITTED",
            entity_type="review",
            entity_id=r.id,
            metadata={
                "appraisal_id": str(a.id),
                "reviewer_type": r.reviewer_type,
                "overall_rating": r.overall_rating,
                "appraisal_status": {"from": prev_status, "to": a.status},
            },
        )

    if a.status == "PENDING_MANAGER" and prev_status != "PENDING_MANAGER":
        notifications.notify(
            db,
            recipients=[a.manager_id],
            event_type=notifications.REVIEW_DUE,
            title="Manager review due",
            message="A self review has been submitted and is waiting for your manager review.",
            entity_type="appraisal",
            entity_id=a.id,
        )
    return r


def select_peers(db: Session, appraisal_id: uuid.UUID, peer_ids: list[uuid.UUID], *, actor: User) -> list[Review]:
    """Nominate peer reviewers once per appraisal; creates one DRAFT PEER review each."""
    with db.begin_nested():
        a = lock_appraisal_or_404(db, appraisal_id)
        assert_can_view_appraisal(db, actor, a)

        cycle = db.get(AppraisalCycle, a.cycle_id)
        if not cycle.peer_review:
            raise InvalidStateError("Peer review is not enabled for this cycle")
        if a.status in TERMINAL_APPRAISAL_STATUSES:
            raise InvalidStateError(f"Appraisal is {a.status}")
        if a.peer_reviewers_assigned:
            raise InvalidStateError("Peer reviewers have already been selected for this appraisal")

        if len(set(peer_ids)) != len(peer_ids):
            raise ValidationError("Peer reviewer list contains duplicates")
        if len(peer_ids) < a.peer_reviews_required:
            raise ValidationError(f"Select at least {a.peer_reviews_required} peer reviewers")
        if len(peer_ids) > cycle.max_peer_reviewers:
            raise ValidationError(f"Select at most {cycle.max_peer_reviewers} peer reviewers")
        if a.employee_id in peer_ids:
            raise ValidationError("An employee cannot be their own peer reviewer")
        if a.manager_id is not None and a.manager_id in peer_ids:
            raise ValidationError("The employee's manager cannot be a peer reviewer")

        peers = {e.id: e for e in db.query(Employee).filter(Employee.id.in_(peer_ids))}
        for pid in peer_ids:
            peer = peers.get(pid)
            if peer is None:
                raise ValidationError(f"Employee {pid} not found")
            if not peer.is_active:
                raise ValidationError(f"Employee {peer.display_name} is not active")

        # reuse PEER drafts that already exist for a nominee
        existing = {
            r.reviewer_id: r
            for r in db.query(Review).filter(
                Review.appraisal_id == a.id,
                Review.reviewer_type == "PEER",
                Review.reviewer_id.in_(peer_ids),
            )
        }
        for pid, r in existing.items():
            if r.status == "SUBMITTED":
                raise ValidationError(f"Employee {peers[pid].display_name} already has a peer review for this appraisal")

        reviews = [
            existing.get(pid) or Review(appraisal_id=a.id, reviewer_id=pid, reviewer_type="PEER", status="DRAFT")
            for pid in peer_ids
        ]
        db.add_all([r for r in reviews if r.reviewer_id not in existing])
        a.peer_reviewers_assigned = [str(pid) for pid in peer_ids]
        db.flush()

        log_event(
            db=db,
            actor=actor,
            action="PEER_REVIEWERS_SELECTED",
            entity_type="appraisal",
            entity_id=a.id,
            metadata={"peer_ids": a.peer_reviewers_assigned},
        )

    notifications.notify(
        db,
        recipients=peer_ids,
        event_type=notifications.REVIEW_DUE,
        title="Peer review requested",
        message="You have been nominated as a peer reviewer. Please complete your review.",
        entity_type="appraisal",
        entity_id=a.id,
    )
    return reviews


def list_my_pending_reviews(db: Session, *, actor: User) -> list[tuple[Review, Appraisal, Employee, AppraisalCycle]]:
    emp = get_employee_for_user(db, actor)
    if not emp:
        return []
    return (
        db.query(Review, Appraisal, Employee, AppraisalCycle)
        .join(Appraisal, Appraisal.id == Review.appraisal_id)
        .join(Employee, Employee.id == Appraisal.employee_id)
        .join(AppraisalCycle, AppraisalCycle.id == Appraisal.cycle_id)
        .filter(
            Review.reviewer_id == emp.id,
            Review.status == "DRAFT",
            Appraisal.status.in_(REVIEWABLE_STATUSES),
            AppraisalCycle.status == "ACTIVE",
        )
        .order_by(AppraisalCycle.cycle_end, Employee.display_name)
        .all()
    )


def get_review_details(db: Session, review_id: uuid.UUID, *, actor: User) -> tuple[Review, Appraisal]:
    """Visible to the reviewer, the appraisee's manager, or HR."""
    r = get_review_or_404(db, review_id)
    a = get_appraisal_or_404(db, r.appraisal_id)
    if not is_hr(db, actor):
        emp = get_employee_for_user(db, actor)
        if not emp or emp.id not in (r.reviewer_id, a.manager_id):
            raise AuthorizationError("Not allowed to view this review")
    return r, a
