import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
import sqlalchemy as sa

from appraisal_service.db.base import Base
from appraisal_service.db.types import check_in

REVIEWER_TYPES = ("SELF", "MANAGER", "PEER", "SUBORDINATE")
REVIEW_STATUSES = ("DRAFT", "SUBMITTED")


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("appraisal_id", "reviewer_id", "reviewer_type", name="uq_review_appraisal_reviewer_type"),
        check_in("reviewer_type", REVIEWER_TYPES, "ck_reviews_reviewer_type"),
        check_in("status", REVIEW_STATUSES, "ck_reviews_status"),
        # SUBMITTED => must have submitted_at
        sa.CheckConstraint(
            "(status <> 'SUBMITTED') OR (submitted_at IS NOT NULL)",
            name="ck_reviews_ts_submitted",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    appraisal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("appraisals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    reviewer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    reviewer_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="DRAFT")

    strengths: Mapped[str | None] = mapped_column(Text, nullable=True)
    areas_of_improvement: Mapped[str | None] = mapped_column(Text, nullable=True)
    overall_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    overall_rating: Mapped[float | None] = mapped_column(Float, nullable=True)

    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
        onupdate=datetime.utcnow,
    )

    ratings = relationship(
        "ReviewRating",
        back_populates="review",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class ReviewRating(Base):
    __tablename__ = "review_ratings"
    __table_args__ = (
        UniqueConstraint("review_id", "competency_id", name="uq_review_rating_competency"),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_review_ratings_range"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    review_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("reviews.id", ondelete="CASCADE"), nullable=False
    )
    competency_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("competencies.id", ondelete="RESTRICT"), nullable=False
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    review = relationship("Review", back_populates="ratings")
