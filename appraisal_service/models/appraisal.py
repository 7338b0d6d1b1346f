import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column
import sqlalchemy as sa

from appraisal_service.db.base import Base
from appraisal_service.db.types import JSONType, check_in

APPRAISAL_STATUSES = ("NOT_STARTED", "IN_PROGRESS", "PENDING_MANAGER", "COMPLETED", "APPROVED", "CANCELLED")
TERMINAL_APPRAISAL_STATUSES = ("APPROVED", "CANCELLED")
PERFORMANCE_BANDS = ("OUTSTANDING", "EXCEEDS", "MEETS", "NEEDS_IMPROVEMENT", "UNSATISFACTORY")


class Appraisal(Base):
    __tablename__ = "appraisals"
    __table_args__ = (
        UniqueConstraint("cycle_id", "employee_id", name="uq_appraisal_cycle_employee"),
        check_in("status", APPRAISAL_STATUSES, "ck_appraisals_status"),
        sa.CheckConstraint(
            "performance_rating IS NULL OR performance_rating IN "
            "('OUTSTANDING','EXCEEDS','MEETS','NEEDS_IMPROVEMENT','UNSATISFACTORY')",
            name="ck_appraisals_band",
        ),
        sa.CheckConstraint("peer_reviews_completed >= 0", name="ck_appraisals_peer_completed"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    cycle_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("appraisal_cycles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    manager_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True, index=True
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="NOT_STARTED")

    self_review_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    manager_review_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # list of employee id strings
    peer_reviewers_assigned: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    peer_reviews_required: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    peer_reviews_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    overall_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    final_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    performance_rating: Mapped[str | None] = mapped_column(String(30), nullable=True)

    # None = not yet acknowledged
    employee_agreed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    employee_disagree_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    approver_remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
        onupdate=datetime.utcnow,
    )
