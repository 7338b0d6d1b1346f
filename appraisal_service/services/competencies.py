import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from appraisal_service.core.audit import log_event
from appraisal_service.core.exceptions import NotFoundError, ValidationError
from appraisal_service.models.competency import Competency
from appraisal_service.models.user import User
from appraisal_service.schemas.competency import CompetencyCreate, CompetencyUpdate


def get_competency_or_404(db: Session, competency_id: uuid.UUID) -> Competency:
    c = db.get(Competency, competency_id)
    if not c:
        raise NotFoundError("Competency not found")
    return c


def list_competencies(db: Session, *, active_only: bool = False) -> list[Competency]:
    query = db.query(Competency)
    if active_only:
        query = query.filter(Competency.is_active.is_(True))
    return query.order_by(Competency.display_order, Competency.name).all()


def _check_weightage(weightage: int) -> None:
    if weightage < 0:
        raise ValidationError("Competency weightage must be >= 0")


def create_competency(db: Session, payload: CompetencyCreate, *, actor: User) -> Competency:
    code = payload.code.strip().upper()
    name = payload.name.strip()
    if not code:
        raise ValidationError("Competency code is required")
    if not name:
        raise ValidationError("Competency name is required")
    _check_weightage(payload.weightage)

    c = Competency(
        code=code,
        name=name,
        description=payload.description,
        category=payload.category,
        weightage=payload.weightage,
        is_active=payload.is_active,
        display_order=payload.display_order,
    )
    # the unique index on code is the duplicate check
    try:
        with db.begin_nested():
            db.add(c)
            db.flush()
    except IntegrityError:
        raise ValidationError(f"Competency code '{code}' already exists")

    log_event(
        db=db,
        actor=actor,
        action="COMPETENCY_CREATED",
        entity_type="competency",
        entity_id=c.id,
        metadata={"code": c.code, "category": c.category, "weightage": c.weightage},
    )
    return c


def update_competency(db: Session, competency_id: uuid.UUID, payload: CompetencyUpdate, *, actor: User) -> Competency:
    c = get_competency_or_404(db, competency_id)
    changes = payload.model_dump(exclude_unset=True)

    if "name" in changes:
        if not (changes["name"] or "").strip():
            raise ValidationError("Competency name is required")
        changes["name"] = changes["name"].strip()
    if changes.get("weightage") is not None:
        _check_weightage(changes["weightage"])

    before = {k: getattr(c, k) for k in changes}
    for k, v in changes.items():
        if v is not None or k == "description":
            setattr(c, k, v)

    log_event(
        db=db,
        actor=actor,
        action="COMPETENCY_UPDATED",
        entity_type="competency",
        entity_id=c.id,
        metadata={"before": before, "after": {k: getattr(c, k) for k in changes}},
    )
    db.flush()
    return c
