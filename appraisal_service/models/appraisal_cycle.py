import uuid
from datetime import datetime, date

from sqlalchemy import Boolean, String, Text, Date, DateTime, ForeignKey, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column
import sqlalchemy as sa

from appraisal_service.db.base import Base
from appraisal_service.db.types import check_in

CYCLE_TYPES = ("ANNUAL", "SEMI_ANNUAL", "QUARTERLY", "PROBATION", "PIP", "PROJECT_END")
CYCLE_STATUSES = ("DRAFT", "ACTIVE", "CLOSED")

MAX_PEER_REVIEWERS = 10


class AppraisalCycle(Base):
    __tablename__ = "appraisal_cycles"
    __table_args__ = (
        check_in("cycle_type", CYCLE_TYPES, "ck_appraisal_cycles_type"),
        check_in("status", CYCLE_STATUSES, "ck_appraisal_cycles_status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    cycle_type: Mapped[str] = mapped_column(String(20), nullable=False, default="ANNUAL")

    review_period_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    review_period_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    cycle_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    cycle_end: Mapped[date | None] = mapped_column(Date, nullable=True)

    self_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    manager_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    peer_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    subordinate_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    min_peer_reviewers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_peer_reviewers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="DRAFT")

    created_by_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    activated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
        onupdate=datetime.utcnow,
    )
