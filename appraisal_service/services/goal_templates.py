import logging
import uuid
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from appraisal_service.core.access import get_employee_for_user, require_employee
from appraisal_service.core.audit import log_event
from appraisal_service.core.exceptions import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from appraisal_service.core.rbac import is_hr
from appraisal_service.models.appraisal import Appraisal
from appraisal_service.models.employee import Employee
from appraisal_service.models.goal import Goal
from appraisal_service.models.goal_template import GoalTemplate, TemplateMetric
from appraisal_service.models.user import User
from appraisal_service.schemas.goal_template import GoalTemplateCreate, MetricCreate, WeightageCheck
from appraisal_service.services import notifications
from appraisal_service.services.cycles import get_cycle_or_404
from appraisal_service.services.directory import list_direct_reports

logger = logging.getLogger(__name__)

# pillar -> preset key -> (label, default unit)
PRESET_CATALOGUE: dict[str, dict[str, tuple[str, str | None]]] = {
    "DELIVERY_EXECUTION": {
        "ON_TIME_DELIVERY": ("On-time delivery of committed work", "%"),
        "SPRINT_COMMITMENT": ("Sprint commitments met", "%"),
        "STORY_POINTS_DELIVERED": ("Story points delivered", "points"),
    },
    "QUALITY": {
        "PRODUCTION_DEFECTS": ("Defects leaked to production", "count"),
        "REOPENED_TICKETS": ("Reopened tickets", "count"),
        "CODE_REVIEW_COVERAGE": ("Changes reviewed before merge", "%"),
    },
    "ENGINEERING_EXCELLENCE": {
        "TEST_COVERAGE": ("Automated test coverage", "%"),
        "TECH_DEBT_ITEMS": ("Tech-debt items resolved", "count"),
        "DOCUMENTATION": ("Design docs and runbooks published", "count"),
    },
    "COLLABORATION": {
        "KNOWLEDGE_SHARING": ("Knowledge-sharing sessions delivered", "sessions"),
        "MENTORING": ("Team members mentored", "people"),
        "CROSS_TEAM_SUPPORT": ("Cross-team requests supported", "count"),
    },
    "CUSTOM": {},
}

WEIGHTAGE_TARGET = 100


def preset_catalogue() -> dict[str, list[dict]]:
    return {
        pillar: [{"key": k, "label": label, "unit": unit} for k, (label, unit) in presets.items()]
        for pillar, presets in PRESET_CATALOGUE.items()
    }


def get_template_or_404(db: Session, template_id: uuid.UUID) -> GoalTemplate:
    t = db.get(GoalTemplate, template_id)
    if not t:
        raise NotFoundError("Goal template not found")
    return t


def _lock_template_or_404(db: Session, template_id: uuid.UUID) -> GoalTemplate:
    t = (
        db.query(GoalTemplate)
        .filter(GoalTemplate.id == template_id)
        .with_for_update()
        .one_or_none()
    )
    if not t:
        raise NotFoundError("Goal template not found")
    return t


def assert_template_owner(db: Session, user: User, template: GoalTemplate) -> Employee:
    emp = require_employee(db, user)
    if emp.id != template.owner_employee_id:
        raise AuthorizationError("Only the manager who owns this template can change it")
    return emp


def assert_can_view_template(db: Session, user: User, template: GoalTemplate) -> None:
    if is_hr(db, user):
        return
    emp = get_employee_for_user(db, user)
    if not emp or emp.id != template.owner_employee_id:
        raise AuthorizationError("Not allowed to view this template")


def check_weightage(metrics) -> WeightageCheck:
    """
    Soft constraint: metric weightages should add up to 100. The result is
    returned to the caller; publishing is still allowed when it is off.
    """
    total = sum(m.weightage for m in metrics)
    if total == WEIGHTAGE_TARGET:
        return WeightageCheck(total=total, is_valid=True)
    return WeightageCheck(
        total=total,
        is_valid=False,
        warning=f"Metric weightages add up to {total}%, expected {WEIGHTAGE_TARGET}%",
    )


def resolve_metric(payload: MetricCreate, index: int | None = None) -> dict:
    """Validate one metric definition and resolve its label. Raises ValidationError."""
    where = f"Metric #{index + 1}: " if index is not None else ""

    if not 1 <= payload.weightage <= 100:
        raise ValidationError(f"{where}weightage must be between 1 and 100")

    preset_key = (payload.preset_key or "").strip() or None
    custom_name = (payload.custom_name or "").strip() or None
    unit = payload.unit

    if preset_key:
        presets = PRESET_CATALOGUE.get(payload.pillar, {})
        if preset_key not in presets:
            raise ValidationError(f"{where}unknown preset '{preset_key}' for pillar {payload.pillar}")
        label, default_unit = presets[preset_key]
        unit = unit or default_unit
        # a custom name on top of a preset overrides the catalogue label
        if custom_name:
            label = custom_name
    elif custom_name:
        label = custom_name
    else:
        raise ValidationError(f"{where}either a preset key or a custom name is required")

    return {
        "pillar": payload.pillar,
        "preset_key": preset_key,
        "custom_name": custom_name,
        "label": label,
        "description": payload.description,
        "unit": unit,
        "target_value": payload.target_value,
        "weightage": payload.weightage,
    }


def create_template(db: Session, payload: GoalTemplateCreate, *, actor: User) -> GoalTemplate:
    owner = require_employee(db, actor)

    name = payload.name.strip()
    if not name:
        raise ValidationError("Template name is required")

    cycle = get_cycle_or_404(db, payload.cycle_id)
    if cycle.status == "CLOSED":
        raise InvalidStateError("Cannot create templates for a CLOSED cycle")

    t = GoalTemplate(
        owner_employee_id=owner.id,
        cycle_id=cycle.id,
        name=name,
        description=payload.description,
        submission_deadline=payload.submission_deadline,
        status="DRAFT",
    )
    db.add(t)
    db.flush()

    log_event(
        db=db,
        actor=actor,
        action="TEMPLATE_CREATED",
        entity_type="goal_template",
        entity_id=t.id,
        metadata={"cycle_id": str(cycle.id), "name": name},
    )
    return t


def _require_draft(template: GoalTemplate) -> None:
    if template.status != "DRAFT":
        raise InvalidStateError(f"Metrics can only be changed while the template is DRAFT (template is {template.status})")


def bulk_add_metrics(
    db: Session, template_id: uuid.UUID, metrics: list[MetricCreate], *, actor: User
) -> GoalTemplate:
    """Append metrics in order. All rows are validated before any is written."""
    if not metrics:
        raise ValidationError("At least one metric is required")

    resolved = [resolve_metric(m, i if len(metrics) > 1 else None) for i, m in enumerate(metrics)]

    with db.begin_nested():
        t = _lock_template_or_404(db, template_id)
        assert_template_owner(db, actor, t)
        _require_draft(t)

        next_pos = (
            db.query(func.coalesce(func.max(TemplateMetric.position), 0))
            .filter(TemplateMetric.template_id == t.id)
            .scalar()
        ) + 1
        for offset, values in enumerate(resolved):
            db.add(TemplateMetric(template_id=t.id, position=next_pos + offset, **values))
        db.flush()

        log_event(
            db=db,
            actor=actor,
            action="TEMPLATE_METRICS_ADDED",
            entity_type="goal_template",
            entity_id=t.id,
            metadata={"count": len(resolved), "labels": [r["label"] for r in resolved]},
        )

    db.refresh(t)
    return t


def add_metric(db: Session, template_id: uuid.UUID, metric: MetricCreate, *, actor: User) -> GoalTemplate:
    return bulk_add_metrics(db, template_id, [metric], actor=actor)


def remove_metric(db: Session, template_id: uuid.UUID, metric_id: uuid.UUID, *, actor: User) -> GoalTemplate:
    with db.begin_nested():
        t = _lock_template_or_404(db, template_id)
        assert_template_owner(db, actor, t)
        _require_draft(t)

        m = db.get(TemplateMetric, metric_id)
        if not m or m.template_id != t.id:
            raise NotFoundError("Metric not found in this template")

        db.delete(m)
        db.flush()

        log_event(
            db=db,
            actor=actor,
            action="TEMPLATE_METRIC_REMOVED",
            entity_type="goal_template",
            entity_id=t.id,
            metadata={"metric_id": str(metric_id), "label": m.label},
        )

    db.refresh(t)
    return t


def publish_template(db: Session, template_id: uuid.UUID, *, actor: User) -> tuple[GoalTemplate, int, int, WeightageCheck]:
    """
    DRAFT -> PUBLISHED: one Goal per (metric x active direct report), in one
    savepoint. Returns (template, goals_created, employees_notified, weightage).
    """
    with db.begin_nested():
        t = _lock_template_or_404(db, template_id)
        assert_template_owner(db, actor, t)

        if t.status != "DRAFT":
            raise InvalidStateError(f"Only DRAFT templates can be published (template is {t.status})")
        if not t.metrics:
            raise ValidationError("Add at least one metric before publishing")

        weightage = check_weightage(t.metrics)
        reports = list_direct_reports(db, t.owner_employee_id)

        appraisal_ids = {
            a.employee_id: a.id
            for a in db.query(Appraisal).filter(
                Appraisal.cycle_id == t.cycle_id,
                Appraisal.employee_id.in_([r.id for r in reports]),
            )
        } if reports else {}

        goals_created = 0
        for emp in reports:
            for m in t.metrics:
                db.add(
                    Goal(
                        template_id=t.id,
                        metric_id=m.id,
                        cycle_id=t.cycle_id,
                        appraisal_id=appraisal_ids.get(emp.id),
                        assigned_to=emp.id,
                        assigned_by=t.owner_employee_id,
                        pillar=m.pillar,
                        title=m.label,
                        description=m.description,
                        unit=m.unit,
                        target_value=m.target_value,
                        weightage=m.weightage,
                        progress_pct=0,
                        status="NOT_STARTED",
                    )
                )
                goals_created += 1

        prev = t.status
        t.status = "PUBLISHED"
        t.published_at = datetime.utcnow()
        db.flush()

        log_event(
            db=db,
            actor=actor,
            action="TEMPLATE_PUBLISHED",
            entity_type="goal_template",
            entity_id=t.id,
            metadata={
                "from": prev,
                "to": t.status,
                "goals_created": goals_created,
                "employees": len(reports),
                "weightage_total": weightage.total,
            },
        )

    if not weightage.is_valid:
        logger.warning(weightage.warning, extra={"template_id": str(t.id)})
    if not reports:
        logger.warning("Template published with no direct reports", extra={"template_id": str(t.id)})

    notifications.notify(
        db,
        recipients=[e.id for e in reports],
        event_type=notifications.GOAL_PUBLISHED,
        title=f"New goals published: {t.name}",
        message=f"{len(t.metrics)} goal(s) have been assigned to you. Submit your actuals before the deadline.",
        entity_type="goal_template",
        entity_id=t.id,
    )
    return t, goals_created, len(reports), weightage


def lock_template(db: Session, template_id: uuid.UUID, *, actor: User) -> GoalTemplate:
    with db.begin_nested():
        t = _lock_template_or_404(db, template_id)
        assert_template_owner(db, actor, t)

        if t.status != "PUBLISHED":
            raise InvalidStateError(f"Only PUBLISHED templates can be locked (template is {t.status})")

        prev = t.status
        t.status = "LOCKED"
        t.locked_at = datetime.utcnow()
        db.flush()

        log_event(
            db=db,
            actor=actor,
            action="TEMPLATE_LOCKED",
            entity_type="goal_template",
            entity_id=t.id,
            metadata={"from": prev, "to": t.status},
        )
    return t


def list_my_templates(db: Session, *, actor: User, cycle_id: uuid.UUID | None = None) -> list[GoalTemplate]:
    emp = get_employee_for_user(db, actor)
    if not emp:
        return []
    query = db.query(GoalTemplate).filter(GoalTemplate.owner_employee_id == emp.id)
    if cycle_id:
        query = query.filter(GoalTemplate.cycle_id == cycle_id)
    return query.order_by(GoalTemplate.created_at.desc()).all()


def list_template_goals(db: Session, template_id: uuid.UUID, *, actor: User) -> list[Goal]:
    t = get_template_or_404(db, template_id)
    assert_can_view_template(db, actor, t)
    return (
        db.query(Goal)
        .filter(Goal.template_id == t.id)
        .order_by(Goal.assigned_to, Goal.created_at)
        .all()
    )
