import uuid

from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session

from appraisal_service.api.goals import goal_to_out
from appraisal_service.core.idempotency import (
    begin_idempotent_request,
    complete_idempotent_request,
    fail_idempotent_request,
    is_replay,
)
from appraisal_service.core.security import get_current_user
from appraisal_service.db.session import get_db
from appraisal_service.models.goal_template import GoalTemplate, TemplateMetric
from appraisal_service.models.user import User
from appraisal_service.schemas.goal import GoalOut
from appraisal_service.schemas.goal_template import (
    GoalTemplateCreate,
    GoalTemplateOut,
    MetricBulkCreate,
    MetricCreate,
    MetricOut,
    PresetOut,
    PublishResultOut,
    WeightageCheck,
)
from appraisal_service.services import goal_templates as template_service

router = APIRouter(prefix="/goal-templates", tags=["goal-templates"])


def metric_to_out(m: TemplateMetric) -> MetricOut:
    return MetricOut(
        id=str(m.id),
        position=m.position,
        pillar=m.pillar,
        preset_key=m.preset_key,
        custom_name=m.custom_name,
        label=m.label,
        description=m.description,
        unit=m.unit,
        target_value=m.target_value,
        weightage=m.weightage,
    )


def to_out(t: GoalTemplate) -> GoalTemplateOut:
    return GoalTemplateOut(
        id=str(t.id),
        owner_employee_id=str(t.owner_employee_id),
        cycle_id=str(t.cycle_id),
        name=t.name,
        description=t.description,
        submission_deadline=t.submission_deadline,
        status=t.status,
        published_at=t.published_at,
        locked_at=t.locked_at,
        created_at=t.created_at,
        updated_at=t.updated_at,
        metrics=[metric_to_out(m) for m in t.metrics],
        weightage=template_service.check_weightage(t.metrics),
    )


@router.get("/preset-catalogue", response_model=dict[str, list[PresetOut]])
def preset_catalogue(_: User = Depends(get_current_user)):
    return template_service.preset_catalogue()


@router.get("", response_model=list[GoalTemplateOut])
def list_my_templates(
    cycle_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return [to_out(t) for t in template_service.list_my_templates(db, actor=current_user, cycle_id=cycle_id)]


@router.post("", response_model=GoalTemplateOut, status_code=status.HTTP_201_CREATED)
def create_template(
    payload: GoalTemplateCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    t = template_service.create_template(db, payload, actor=current_user)
    db.commit()
    db.refresh(t)
    return to_out(t)


@router.get("/{template_id}", response_model=GoalTemplateOut)
def get_template(
    template_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    t = template_service.get_template_or_404(db, template_id)
    template_service.assert_can_view_template(db, current_user, t)
    return to_out(t)


@router.post("/{template_id}/metrics", response_model=GoalTemplateOut, status_code=status.HTTP_201_CREATED)
def add_metric(
    template_id: uuid.UUID,
    payload: MetricCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    t = template_service.add_metric(db, template_id, payload, actor=current_user)
    db.commit()
    return to_out(t)


@router.post("/{template_id}/metrics/bulk", response_model=GoalTemplateOut, status_code=status.HTTP_201_CREATED)
def bulk_add_metrics(
    template_id: uuid.UUID,
    payload: MetricBulkCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    t = template_service.bulk_add_metrics(db, template_id, payload.metrics, actor=current_user)
    db.commit()
    return to_out(t)


@router.delete("/{template_id}/metrics/{metric_id}", response_model=GoalTemplateOut)
def remove_metric(
    template_id: uuid.UUID,
    metric_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    t = template_service.remove_metric(db, template_id, metric_id, actor=current_user)
    db.commit()
    return to_out(t)


@router.get("/{template_id}/weightage", response_model=WeightageCheck)
def check_weightage(
    template_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    t = template_service.get_template_or_404(db, template_id)
    template_service.assert_can_view_template(db, current_user, t)
    return template_service.check_weightage(t.metrics)


@router.post("/{template_id}/publish", response_model=PublishResultOut)
def publish_template(
    template_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
):
    idem_row = None
    if idempotency_key:
        idem_row = begin_idempotent_request(
            db=db,
            user=current_user,
            key=idempotency_key,
            method="POST",
            route="/goal-templates/{template_id}/publish",
            payload_for_hash={"template_id": str(template_id)},
        )
        if is_replay(idem_row):
            return PublishResultOut(**idem_row.response_body)

    try:
        t, goals_created, notified, weightage = template_service.publish_template(
            db, template_id, actor=current_user
        )
        out = PublishResultOut(
            template_id=str(t.id),
            status=t.status,
            goals_created=goals_created,
            employees_notified=notified,
            weightage=weightage,
        )
        if idem_row:
            complete_idempotent_request(
                db=db,
                row=idem_row,
                response_code=200,
                response_body=out.model_dump(mode="json"),
            )
        db.commit()
        return out

    except Exception:
        if idem_row:
            fail_idempotent_request(db=db, row=idem_row)
        raise


@router.post("/{template_id}/lock", response_model=GoalTemplateOut)
def lock_template(
    template_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    t = template_service.lock_template(db, template_id, actor=current_user)
    db.commit()
    db.refresh(t)
    return to_out(t)


@router.get("/{template_id}/goals", response_model=list[GoalOut])
def list_template_goals(
    template_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return [goal_to_out(g) for g in template_service.list_template_goals(db, template_id, actor=current_user)]
