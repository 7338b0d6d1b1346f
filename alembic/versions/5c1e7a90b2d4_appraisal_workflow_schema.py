"""appraisal workflow schema

Revision ID: 5c1e7a90b2d4
Revises:
Create Date: 2026-10-19 10:12:40.118204
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from appraisal_service.db.types import JSONType

revision: str = "5c1e7a90b2d4"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "roles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
    )
    op.create_table(
        "user_roles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role_id", sa.Uuid(), sa.ForeignKey("roles.id", ondelete="CASCADE"), nullable=False),
        sa.UniqueConstraint("user_id", "role_id", name="uq_user_role"),
    )

    op.create_table(
        "employees",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("employee_number", sa.String(50), nullable=False),
        sa.Column("display_name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("designation", sa.String(120), nullable=True),
        sa.Column("department", sa.String(120), nullable=True),
        sa.Column("manager_id", sa.Uuid(), sa.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    )
    op.create_index("ix_employees_employee_number", "employees", ["employee_number"], unique=True)
    op.create_index("ix_employees_manager_id", "employees", ["manager_id"])

    op.create_table(
        "appraisal_cycles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("cycle_type", sa.String(20), nullable=False),
        sa.Column("review_period_start", sa.Date(), nullable=True),
        sa.Column("review_period_end", sa.Date(), nullable=True),
        sa.Column("cycle_start", sa.Date(), nullable=True),
        sa.Column("cycle_end", sa.Date(), nullable=True),
        sa.Column("self_review", sa.Boolean(), nullable=False),
        sa.Column("manager_review", sa.Boolean(), nullable=False),
        sa.Column("peer_review", sa.Boolean(), nullable=False),
        sa.Column("subordinate_review", sa.Boolean(), nullable=False),
        sa.Column("min_peer_reviewers", sa.Integer(), nullable=False),
        sa.Column("max_peer_reviewers", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("created_by_user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("activated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "cycle_type IN ('ANNUAL','SEMI_ANNUAL','QUARTERLY','PROBATION','PIP','PROJECT_END')",
            name="ck_appraisal_cycles_type",
        ),
        sa.CheckConstraint("status IN ('DRAFT','ACTIVE','CLOSED')", name="ck_appraisal_cycles_status"),
    )

    op.create_table(
        "competencies",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("weightage", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "category IN ('TECHNICAL','BEHAVIORAL','LEADERSHIP','CORE_VALUES','FUNCTIONAL','MANAGERIAL')",
            name="ck_competencies_category",
        ),
        sa.CheckConstraint("weightage >= 0", name="ck_competencies_weightage"),
    )

    op.create_table(
        "appraisals",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("cycle_id", sa.Uuid(), sa.ForeignKey("appraisal_cycles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("employee_id", sa.Uuid(), sa.ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("manager_id", sa.Uuid(), sa.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("self_review_completed", sa.Boolean(), nullable=False),
        sa.Column("manager_review_completed", sa.Boolean(), nullable=False),
        sa.Column("peer_reviewers_assigned", JSONType, nullable=False),
        sa.Column("peer_reviews_required", sa.Integer(), nullable=False),
        sa.Column("peer_reviews_completed", sa.Integer(), nullable=False),
        sa.Column("overall_rating", sa.Float(), nullable=True),
        sa.Column("final_score", sa.Float(), nullable=True),
        sa.Column("performance_rating", sa.String(30), nullable=True),
        sa.Column("employee_agreed", sa.Boolean(), nullable=True),
        sa.Column("employee_disagree_comments", sa.Text(), nullable=True),
        sa.Column("approver_remarks", sa.Text(), nullable=True),
        sa.Column("finalized_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("cycle_id", "employee_id", name="uq_appraisal_cycle_employee"),
        sa.CheckConstraint(
            "status IN ('NOT_STARTED','IN_PROGRESS','PENDING_MANAGER','COMPLETED','APPROVED','CANCELLED')",
            name="ck_appraisals_status",
        ),
        sa.CheckConstraint(
            "performance_rating IS NULL OR performance_rating IN "
            "('OUTSTANDING','EXCEEDS','MEETS','NEEDS_IMPROVEMENT','UNSATISFACTORY')",
            name="ck_appraisals_band",
        ),
        sa.CheckConstraint("peer_reviews_completed >= 0", name="ck_appraisals_peer_completed"),
    )
    op.create_index("ix_appraisals_cycle_id", "appraisals", ["cycle_id"])
    op.create_index("ix_appraisals_employee_id", "appraisals", ["employee_id"])
    op.create_index("ix_appraisals_manager_id", "appraisals", ["manager_id"])

    op.create_table(
        "reviews",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("appraisal_id", sa.Uuid(), sa.ForeignKey("appraisals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("reviewer_id", sa.Uuid(), sa.ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("reviewer_type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("strengths", sa.Text(), nullable=True),
        sa.Column("areas_of_improvement", sa.Text(), nullable=True),
        sa.Column("overall_comments", sa.Text(), nullable=True),
        sa.Column("overall_rating", sa.Float(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("appraisal_id", "reviewer_id", "reviewer_type", name="uq_review_appraisal_reviewer_type"),
        sa.CheckConstraint("reviewer_type IN ('SELF','MANAGER','PEER','SUBORDINATE')", name="ck_reviews_reviewer_type"),
        sa.CheckConstraint("status IN ('DRAFT','SUBMITTED')", name="ck_reviews_status"),
        sa.CheckConstraint("(status <> 'SUBMITTED') OR (submitted_at IS NOT NULL)", name="ck_reviews_ts_submitted"),
    )
    op.create_index("ix_reviews_appraisal_id", "reviews", ["appraisal_id"])
    op.create_index("ix_reviews_reviewer_id", "reviews", ["reviewer_id"])

    op.create_table(
        "review_ratings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("review_id", sa.Uuid(), sa.ForeignKey("reviews.id", ondelete="CASCADE"), nullable=False),
        sa.Column("competency_id", sa.Uuid(), sa.ForeignKey("competencies.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.UniqueConstraint("review_id", "competency_id", name="uq_review_rating_competency"),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_review_ratings_range"),
    )

    pillars = "'DELIVERY_EXECUTION','QUALITY','ENGINEERING_EXCELLENCE','COLLABORATION','CUSTOM'"

    op.create_table(
        "goal_templates",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("owner_employee_id", sa.Uuid(), sa.ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("cycle_id", sa.Uuid(), sa.ForeignKey("appraisal_cycles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("submission_deadline", sa.Date(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("status IN ('DRAFT','PUBLISHED','LOCKED')", name="ck_goal_templates_status"),
    )
    op.create_index("ix_goal_templates_owner_employee_id", "goal_templates", ["owner_employee_id"])

    op.create_table(
        "template_metrics",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("template_id", sa.Uuid(), sa.ForeignKey("goal_templates.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("pillar", sa.String(30), nullable=False),
        sa.Column("preset_key", sa.String(60), nullable=True),
        sa.Column("custom_name", sa.String(200), nullable=True),
        sa.Column("label", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("unit", sa.String(40), nullable=True),
        sa.Column("target_value", sa.Float(), nullable=True),
        sa.Column("weightage", sa.Integer(), nullable=False),
        sa.UniqueConstraint("template_id", "position", name="uq_template_metric_position"),
        sa.CheckConstraint(f"pillar IN ({pillars})", name="ck_template_metrics_pillar"),
        sa.CheckConstraint("weightage BETWEEN 1 AND 100", name="ck_template_metrics_weightage"),
    )

    op.create_table(
        "goals",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("template_id", sa.Uuid(), sa.ForeignKey("goal_templates.id", ondelete="SET NULL"), nullable=True),
        sa.Column("metric_id", sa.Uuid(), sa.ForeignKey("template_metrics.id", ondelete="SET NULL"), nullable=True),
        sa.Column("cycle_id", sa.Uuid(), sa.ForeignKey("appraisal_cycles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("appraisal_id", sa.Uuid(), sa.ForeignKey("appraisals.id", ondelete="SET NULL"), nullable=True),
        sa.Column("assigned_to", sa.Uuid(), sa.ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("assigned_by", sa.Uuid(), sa.ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("pillar", sa.String(30), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("unit", sa.String(40), nullable=True),
        sa.Column("target_value", sa.Float(), nullable=True),
        sa.Column("weightage", sa.Integer(), nullable=False),
        sa.Column("achieved_value", sa.Float(), nullable=True),
        sa.Column("progress_pct", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("employee_submitted", sa.Boolean(), nullable=False),
        sa.Column("manager_approved", sa.Boolean(), nullable=False),
        sa.Column("self_comments", sa.Text(), nullable=True),
        sa.Column("manager_comments", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.CheckConstraint(
            "status IN ('NOT_STARTED','IN_PROGRESS','COMPLETED','ON_HOLD','CANCELLED')",
            name="ck_goals_status",
        ),
        sa.CheckConstraint(f"pillar IN ({pillars})", name="ck_goals_pillar"),
        sa.CheckConstraint("progress_pct BETWEEN 0 AND 100", name="ck_goals_progress"),
        sa.CheckConstraint("weightage BETWEEN 1 AND 100", name="ck_goals_weightage"),
        sa.CheckConstraint("(NOT manager_approved) OR employee_submitted", name="ck_goals_approved_submitted"),
    )
    op.create_index("ix_goals_template_id", "goals", ["template_id"])
    op.create_index("ix_goals_cycle_id", "goals", ["cycle_id"])
    op.create_index("ix_goals_assigned_to", "goals", ["assigned_to"])

    op.create_table(
        "notification_events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "recipient_employee_id", sa.Uuid(), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=True),
        sa.Column("entity_id", sa.Uuid(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("status IN ('PENDING','SENT','FAILED')", name="ck_notification_events_status"),
    )
    op.create_index(
        "ix_notification_events_recipient_employee_id", "notification_events", ["recipient_employee_id"]
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("actor_user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("event_metadata", JSONType, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_events_entity_id", "audit_events", ["entity_id"])

    op.create_table(
        "idempotency_keys",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("key", sa.String(128), nullable=False),
        sa.Column("method", sa.String(10), nullable=False),
        sa.Column("route", sa.String(300), nullable=False),
        sa.Column("request_hash", sa.String(64), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("response_code", sa.Integer(), nullable=True),
        sa.Column("response_body", JSONType, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "key", name="uq_idem_user_key"),
        sa.CheckConstraint("status IN ('IN_PROGRESS','COMPLETED','FAILED')", name="ck_idempotency_status"),
    )


def downgrade() -> None:
    op.drop_table("idempotency_keys")
    op.drop_index("ix_audit_events_entity_id", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_index("ix_notification_events_recipient_employee_id", table_name="notification_events")
    op.drop_table("notification_events")
    for ix in ("ix_goals_assigned_to", "ix_goals_cycle_id", "ix_goals_template_id"):
        op.drop_index(ix, table_name="goals")
    op.drop_table("goals")
    op.drop_table("template_metrics")
    op.drop_index("ix_goal_templates_owner_employee_id", table_name="goal_templates")
    op.drop_table("goal_templates")
    op.drop_table("review_ratings")
    op.drop_index("ix_reviews_reviewer_id", table_name="reviews")
    op.drop_index("ix_reviews_appraisal_id", table_name="reviews")
    op.drop_table("reviews")
    for ix in ("ix_appraisals_manager_id", "ix_appraisals_employee_id", "ix_appraisals_cycle_id"):
        op.drop_index(ix, table_name="appraisals")
    op.drop_table("appraisals")
    op.drop_table("competencies")
    op.drop_table("appraisal_cycles")
    op.drop_index("ix_employees_manager_id", table_name="employees")
    op.drop_index("ix_employees_employee_number", table_name="employees")
    op.drop_table("employees")
    op.drop_table("user_roles")
    op.drop_table("roles")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
