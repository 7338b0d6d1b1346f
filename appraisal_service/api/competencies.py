import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from appraisal_service.core.rbac import require_roles
from appraisal_service.core.security import get_current_user
from appraisal_service.db.session import get_db
from appraisal_service.models.competency import Competency
from appraisal_service.models.user import User
from appraisal_service.schemas.competency import CompetencyCreate, CompetencyOut, CompetencyUpdate
from appraisal_service.services import competencies as competency_service

router = APIRouter(prefix="/appraisals/competencies", tags=["competencies"])


def to_out(c: Competency) -> CompetencyOut:
    return CompetencyOut(
        id=str(c.id),
        code=c.code,
        name=c.name,
        description=c.description,
        category=c.category,
        weightage=c.weightage,
        is_active=c.is_active,
        display_order=c.display_order,
        created_at=c.created_at,
        updated_at=c.updated_at,
    )


@router.get("", response_model=list[CompetencyOut])
def list_competencies(
    active_only: bool = Query(default=False),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return [to_out(c) for c in competency_service.list_competencies(db, active_only=active_only)]


@router.post("", response_model=CompetencyOut, status_code=status.HTTP_201_CREATED)
def create_competency(
    payload: CompetencyCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("ADMIN", "HR")),
):
    c = competency_service.create_competency(db, payload, actor=current_user)
    db.commit()
    db.refresh(c)
    return to_out(c)


@router.patch("/{competency_id}", response_model=CompetencyOut)
def update_competency(
    competency_id: uuid.UUID,
    payload: CompetencyUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("ADMIN", "HR")),
):
    c = competency_service.update_competency(db, competency_id, payload, actor=current_user)
    db.commit()
    db.refresh(c)
    return to_out(c)
