import uuid
from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field

from appraisal_service.schemas.competency import CompetencyOut

ReviewerType = Literal["SELF", "MANAGER", "PEER", "SUBORDINATE"]


class ReviewStart(BaseModel):
    reviewer_type: ReviewerType
    # defaults to the calling user's employee record
    reviewer_id: uuid.UUID | None = None


class RatingIn(BaseModel):
    competency_id: uuid.UUID
    rating: int
    comments: str | None = None


class ReviewSubmit(BaseModel):
    # None keeps what a previous draft stored
    ratings: list[RatingIn] | None = None
    strengths: str | None = None
    areas_of_improvement: str | None = None
    overall_comments: str | None = None
    is_draft: bool = False


class PeerSelection(BaseModel):
    peer_ids: list[uuid.UUID] = Field(min_length=1)


class RatingOut(BaseModel):
    competency_id: str
    rating: int
    comments: str | None


class ReviewOut(BaseModel):
    id: str
    appraisal_id: str
    reviewer_id: str
    reviewer_type: str
    status: str
    ratings: list[RatingOut]
    strengths: str | None
    areas_of_improvement: str | None
    overall_comments: str | None
    overall_rating: float | None
    submitted_at: datetime | None
    created_at: datetime
    updated_at: datetime


class ReviewDetailOut(ReviewOut):
    employee_id: str
    employee_name: str
    cycle_id: str
    cycle_name: str
    competencies: list[CompetencyOut]


class PendingReviewOut(BaseModel):
    review_id: str
    appraisal_id: str
    reviewer_type: str
    employee_id: str
    employee_name: str
    cycle_id: str
    cycle_name: str
    cycle_end: date | None = None
