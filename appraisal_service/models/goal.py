import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column
import sqlalchemy as sa

from appraisal_service.db.base import Base
from appraisal_service.db.types import check_in
from appraisal_service.models.goal_template import PILLARS

GOAL_STATUSES = ("NOT_STARTED", "IN_PROGRESS", "COMPLETED", "ON_HOLD", "CANCELLED")


class Goal(Base):
    __tablename__ = "goals"
    __table_args__ = (
        check_in("status", GOAL_STATUSES, "ck_goals_status"),
        check_in("pillar", PILLARS, "ck_goals_pillar"),
        sa.CheckConstraint("progress_pct BETWEEN 0 AND 100", name="ck_goals_progress"),
        sa.CheckConstraint("weightage BETWEEN 1 AND 100", name="ck_goals_weightage"),
        # an approved goal must have been submitted
        sa.CheckConstraint(
            "(NOT manager_approved) OR employee_submitted",
            name="ck_goals_approved_submitted",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # null for ad-hoc goals
    template_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("goal_templates.id", ondelete="SET NULL"), nullable=True, index=True
    )
    metric_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("template_metrics.id", ondelete="SET NULL"), nullable=True
    )
    cycle_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("appraisal_cycles.id", ondelete="SET NULL"), nullable=True, index=True
    )
    appraisal_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("appraisals.id", ondelete="SET NULL"), nullable=True
    )

    assigned_to: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    assigned_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False
    )

    pillar: Mapped[str] = mapped_column(String(30), nullable=False, default="CUSTOM")
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    unit: Mapped[str | None] = mapped_column(String(40), nullable=True)
    target_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    weightage: Mapped[int] = mapped_column(Integer, nullable=False)

    achieved_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    progress_pct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="NOT_STARTED")

    employee_submitted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    manager_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    self_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    manager_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
        onupdate=datetime.utcnow,
    )
    # Optimistic locking
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version}
