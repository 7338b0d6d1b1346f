from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field

CycleType = Literal["ANNUAL", "SEMI_ANNUAL", "QUARTERLY", "PROBATION", "PIP", "PROJECT_END"]


class AppraisalCycleCreate(BaseModel):
    name: str = Field(max_length=200)
    description: str | None = None
    cycle_type: CycleType = "ANNUAL"
    review_period_start: date | None = None
    review_period_end: date | None = None
    cycle_start: date | None = None
    cycle_end: date | None = None
    self_review: bool = True
    manager_review: bool = True
    peer_review: bool = False
    subordinate_review: bool = False
    min_peer_reviewers: int = 0
    max_peer_reviewers: int = 0


class AppraisalCycleUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    description: str | None = None
    cycle_type: CycleType | None = None
    review_period_start: date | None = None
    review_period_end: date | None = None
    cycle_start: date | None = None
    cycle_end: date | None = None
    self_review: bool | None = None
    manager_review: bool | None = None
    peer_review: bool | None = None
    subordinate_review: bool | None = None
    min_peer_reviewers: int | None = None
    max_peer_reviewers: int | None = None


class AppraisalCycleOut(BaseModel):
    id: str
    name: str
    description: str | None
    cycle_type: str
    review_period_start: date | None
    review_period_end: date | None
    cycle_start: date | None
    cycle_end: date | None
    self_review: bool
    manager_review: bool
    peer_review: bool
    subordinate_review: bool
    min_peer_reviewers: int
    max_peer_reviewers: int
    status: str
    created_by_user_id: str
    activated_at: datetime | None
    closed_at: datetime | None
    created_at: datetime
    updated_at: datetime
    warnings: list[str] = Field(default_factory=list)


class CycleActivationOut(AppraisalCycleOut):
    appraisals_created: int
