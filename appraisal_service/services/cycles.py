import logging
import uuid
from datetime import datetime

from sqlalchemy.orm import Session

from appraisal_service.core.audit import log_event
from appraisal_service.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from appraisal_service.models.appraisal import Appraisal
from appraisal_service.models.appraisal_cycle import MAX_PEER_REVIEWERS, AppraisalCycle
from appraisal_service.models.review import Review
from appraisal_service.models.user import User
from appraisal_service.schemas.cycle import AppraisalCycleCreate, AppraisalCycleUpdate
from appraisal_service.services import notifications
from appraisal_service.services.directory import list_active_employees

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name", "description", "cycle_type",
    "review_period_start", "review_period_end", "cycle_start", "cycle_end",
    "self_review", "manager_review", "peer_review", "subordinate_review",
    "min_peer_reviewers", "max_peer_reviewers",
)


def get_cycle_or_404(db: Session, cycle_id: uuid.UUID) -> AppraisalCycle:
    cycle = db.get(AppraisalCycle, cycle_id)
    if not cycle:
        raise NotFoundError("Cycle not found")
    return cycle


def _lock_cycle_or_404(db: Session, cycle_id: uuid.UUID) -> AppraisalCycle:
    cycle = (
        db.query(AppraisalCycle)
        .filter(AppraisalCycle.id == cycle_id)
        .with_for_update()
        .one_or_none()
    )
    if not cycle:
        raise NotFoundError("Cycle not found")
    return cycle


def validate_cycle_fields(values: dict) -> list[str]:
    """
    Raises ValidationError for hard violations; returns non-blocking warnings.
    """
    errors: list[dict] = []
    warnings: list[str] = []

    name = (values.get("name") or "").strip()
    if not name:
        errors.append({"field": "name", "code": "required", "message": "Cycle name is required"})

    rp_start, rp_end = values.get("review_period_start"), values.get("review_period_end")
    c_start, c_end = values.get("cycle_start"), values.get("cycle_end")

    if rp_start and rp_end and rp_start > rp_end:
        errors.append({"field": "review_period_end", "code": "order",
                       "message": "Review period end must not be before its start"})
    if c_start and c_end and c_start > c_end:
        errors.append({"field": "cycle_end", "code": "order",
                       "message": "Cycle end must not be before its start"})

    # finalizing a rating needs a submitted SELF or MANAGER review
    if not values.get("self_review", True) and not values.get("manager_review", True):
        errors.append({"field": "manager_review", "code": "required",
                       "message": "Enable at least one of self review or manager review"})

    if values.get("peer_review"):
        mn = values.get("min_peer_reviewers") or 0
        mx = values.get("max_peer_reviewers") or 0
        if mn < 1:
            errors.append({"field": "min_peer_reviewers", "code": "min",
                           "message": "At least 1 peer reviewer is required when peer review is enabled"})
        if mx < mn:
            errors.append({"field": "max_peer_reviewers", "code": "min",
                           "message": "Max peer reviewers must be >= min peer reviewers"})
        if mx > MAX_PEER_REVIEWERS:
            errors.append({"field": "max_peer_reviewers", "code": "max",
                           "message": f"Max peer reviewers must be <= {MAX_PEER_REVIEWERS}"})

    if errors:
        raise ValidationError(errors[0]["message"], errors=errors)

    if rp_start and c_start and rp_start < c_start:
        warnings.append("Review period starts before the cycle window")
    if rp_end and c_end and rp_end > c_end:
        warnings.append("Review period ends after the cycle window")
    return warnings


def _normalize_peer_bounds(values: dict) -> None:
    if not values.get("peer_review"):
        values["min_peer_reviewers"] = 0
        values["max_peer_reviewers"] = 0


def create_cycle(db: Session, payload: AppraisalCycleCreate, *, actor: User) -> tuple[AppraisalCycle, list[str]]:
    values = payload.model_dump()
    warnings = validate_cycle_fields(values)
    _normalize_peer_bounds(values)
    values["name"] = values["name"].strip()

    cycle = AppraisalCycle(**values, status="DRAFT", created_by_user_id=actor.id)
    db.add(cycle)
    db.flush()  # ensures cycle.id exists for audit

    log_event(
        db=db,
        actor=actor,
        action="CYCLE_CREATED",
        entity_type="appraisal_cycle",
        entity_id=cycle.id,
        metadata={"name": cycle.name, "cycle_type": cycle.cycle_type, "status": "DRAFT"},
    )
    return cycle, warnings


def update_cycle(
    db: Session, cycle_id: uuid.UUID, payload: AppraisalCycleUpdate, *, actor: User
) -> tuple[AppraisalCycle, list[str]]:
    cycle = get_cycle_or_404(db, cycle_id)
    if cycle.status != "DRAFT":
        raise InvalidStateError("Only DRAFT cycles can be updated")

    before = {f: getattr(cycle, f) for f in EDITABLE_FIELDS}
    merged = dict(before)
    merged.update(payload.model_dump(exclude_unset=True))
    warnings = validate_cycle_fields(merged)
    _normalize_peer_bounds(merged)
    merged["name"] = merged["name"].strip()

    for field in EDITABLE_FIELDS:
        setattr(cycle, field, merged[field])

    log_event(
        db=db,
        actor=actor,
        action="CYCLE_UPDATED",
        entity_type="appraisal_cycle",
        entity_id=cycle.id,
        metadata={
            "before": {k: str(v) for k, v in before.items()},
            "after": {k: str(merged[k]) for k in EDITABLE_FIELDS},
        },
    )
    db.flush()
    return cycle, warnings


def activate_cycle(db: Session, cycle_id: uuid.UUID, *, actor: User) -> tuple[AppraisalCycle, int]:
    """
    DRAFT -> ACTIVE, fanning out one Appraisal per active employee.
    Returns (cycle, appraisals_created). At-most-once: the status check happens
    under a row lock in the same savepoint as the fan-out.
    """
    with db.begin_nested():
        cycle = _lock_cycle_or_404(db, cycle_id)
        if cycle.status != "DRAFT":
            raise InvalidStateError(f"Only DRAFT cycles can be activated (cycle is {cycle.status})")

        peer_required = cycle.min_peer_reviewers if cycle.peer_review else 0
        appraisals: list[Appraisal] = []
        for emp in list_active_employees(db):
            a = Appraisal(
                cycle_id=cycle.id,
                employee_id=emp.id,
                manager_id=emp.manager_id,
                status="NOT_STARTED",
                peer_reviewers_assigned=[],
                peer_reviews_required=peer_required,
                peer_reviews_completed=0,
            )
            db.add(a)
            appraisals.append(a)
        db.flush()

        for a in appraisals:
            if cycle.self_review:
                db.add(Review(appraisal_id=a.id, reviewer_id=a.employee_id, reviewer_type="SELF", status="DRAFT"))
            if cycle.manager_review and a.manager_id:
                db.add(Review(appraisal_id=a.id, reviewer_id=a.manager_id, reviewer_type="MANAGER", status="DRAFT"))

        prev = cycle.status
        cycle.status = "ACTIVE"
        cycle.activated_at = datetime.utcnow()

        log_event(
            db=db,
            actor=actor,
            action="CYCLE_ACTIVATED",
            entity_type="appraisal_cycle",
            entity_id=cycle.id,
            metadata={"from": prev, "to": cycle.status, "appraisals_created": len(appraisals)},
        )
        db.flush()

    notifications.notify(
        db,
        recipients=[a.employee_id for a in appraisals],
        event_type=notifications.APPRAISAL_STARTED,
        title=f"Appraisal cycle '{cycle.name}' has started",
        message="Your appraisal is open. Complete your self review before the cycle closes.",
        entity_type="appraisal_cycle",
        entity_id=cycle.id,
    )
    logger.info("Cycle activated", extra={"cycle_id": str(cycle.id), "appraisals": len(appraisals)})
    return cycle, len(appraisals)


def close_cycle(db: Session, cycle_id: uuid.UUID, *, actor: User) -> AppraisalCycle:
    with db.begin_nested():
        cycle = _lock_cycle_or_404(db, cycle_id)
        if cycle.status != "ACTIVE":
            raise InvalidStateError(f"Only ACTIVE cycles can be closed (cycle is {cycle.status})")

        prev = cycle.status
        cycle.status = "CLOSED"
        cycle.closed_at = datetime.utcnow()

        log_event(
            db=db,
            actor=actor,
            action="CYCLE_CLOSED",
            entity_type="appraisal_cycle",
            entity_id=cycle.id,
            metadata={"from": prev, "to": cycle.status},
        )
        db.flush()
    return cycle


def list_cycles(db: Session, *, status: str | None = None, search: str | None = None) -> list[AppraisalCycle]:
    query = db.query(AppraisalCycle)
    if search:
        query = query.filter(AppraisalCycle.name.ilike(f"%{search.lower()}%"))
    if status:
        query = query.filter(AppraisalCycle.status == status)
    return query.order_by(AppraisalCycle.created_at.desc()).all()
