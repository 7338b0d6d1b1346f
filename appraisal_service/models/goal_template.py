import uuid
from datetime import datetime, date

from sqlalchemy import Date, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
import sqlalchemy as sa

from appraisal_service.db.base import Base
from appraisal_service.db.types import check_in

TEMPLATE_STATUSES = ("DRAFT", "PUBLISHED", "LOCKED")
PILLARS = ("DELIVERY_EXECUTION", "QUALITY", "ENGINEERING_EXCELLENCE", "COLLABORATION", "CUSTOM")


class GoalTemplate(Base):
    __tablename__ = "goal_templates"
    __table_args__ = (
        check_in("status", TEMPLATE_STATUSES, "ck_goal_templates_status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    owner_employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    cycle_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("appraisal_cycles.id", ondelete="CASCADE"), nullable=False
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    submission_deadline: Mapped[date | None] = mapped_column(Date, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="DRAFT")
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
        onupdate=datetime.utcnow,
    )

    metrics = relationship(
        "TemplateMetric",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="TemplateMetric.position",
        lazy="selectin",
    )


class TemplateMetric(Base):
    __tablename__ = "template_metrics"
    __table_args__ = (
        UniqueConstraint("template_id", "position", name="uq_template_metric_position"),
        check_in("pillar", PILLARS, "ck_template_metrics_pillar"),
        sa.CheckConstraint("weightage BETWEEN 1 AND 100", name="ck_template_metrics_weightage"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("goal_templates.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    pillar: Mapped[str] = mapped_column(String(30), nullable=False)
    preset_key: Mapped[str | None] = mapped_column(String(60), nullable=True)
    custom_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    # preset catalogue label or custom name, resolved when the metric is added
    label: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    unit: Mapped[str | None] = mapped_column(String(40), nullable=True)
    target_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    weightage: Mapped[int] = mapped_column(Integer, nullable=False)

    template = relationship("GoalTemplate", back_populates="metrics")
