from datetime import datetime
from typing import Literal

from pydantic import BaseModel

PerformanceBand = Literal["OUTSTANDING", "EXCEEDS", "MEETS", "NEEDS_IMPROVEMENT", "UNSATISFACTORY"]


class AppraisalOut(BaseModel):
    id: str
    cycle_id: str
    employee_id: str
    manager_id: str | None
    status: str
    self_review_completed: bool
    manager_review_completed: bool
    peer_reviewers_assigned: list[str]
    peer_reviews_required: int
    peer_reviews_completed: int
    completion_pct: float
    overall_rating: float | None
    final_score: float | None
    performance_rating: str | None
    employee_agreed: bool | None
    employee_disagree_comments: str | None
    approver_remarks: str | None
    finalized_at: datetime | None
    acknowledged_at: datetime | None
    approved_at: datetime | None
    created_at: datetime
    updated_at: datetime


class GoalBreakdownOut(BaseModel):
    goal_id: str
    title: str
    pillar: str
    unit: str | None
    target_value: float | None
    achieved_value: float | None
    progress_pct: int
    weightage: int
    achievement_ratio: float
    contribution: float


class ReviewCommentOut(BaseModel):
    reviewer_type: str
    # withheld for peer reviews
    reviewer_id: str | None
    reviewer_name: str | None
    overall_rating: float | None
    strengths: str | None
    areas_of_improvement: str | None
    overall_comments: str | None


class RatingPreviewOut(BaseModel):
    appraisal_id: str
    goal_score: float
    competency_score: float | None
    final_score: float
    suggested_rating: str
    goal_weight: int
    competency_weight: int
    has_competency_data: bool
    goal_count: int
    goals: list[GoalBreakdownOut]
    review_comments: list[ReviewCommentOut]


class FinalizeRating(BaseModel):
    override_rating: PerformanceBand | None = None


class RatingAcknowledge(BaseModel):
    agreed: bool
    comments: str | None = None


class AppraisalApprove(BaseModel):
    remarks: str | None = None


class AppraisalCancel(BaseModel):
    reason: str | None = None
