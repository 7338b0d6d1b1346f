import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from appraisal_service.schemas.goal_template import Pillar


class GoalActualsSubmit(BaseModel):
    achieved_value: float | None = None
    progress_pct: int | None = Field(default=None, ge=0, le=100)
    self_comments: str | None = None


class GoalApprove(BaseModel):
    comment: str | None = None


class GoalReject(BaseModel):
    reason: str


class AdhocGoalCreate(BaseModel):
    assigned_to: uuid.UUID
    cycle_id: uuid.UUID | None = None
    pillar: Pillar = "CUSTOM"
    title: str = Field(max_length=200)
    description: str | None = None
    unit: str | None = Field(default=None, max_length=40)
    target_value: float | None = None
    weightage: int = 100


class GoalStatusUpdate(BaseModel):
    status: Literal["IN_PROGRESS", "ON_HOLD", "CANCELLED"]


class GoalBulkCreate(BaseModel):
    goals: list[AdhocGoalCreate]


class GoalComment(BaseModel):
    manager_comments: str


class GoalOut(BaseModel):
    id: str
    template_id: str | None
    metric_id: str | None
    cycle_id: str | None
    appraisal_id: str | None
    assigned_to: str
    assigned_by: str
    pillar: str
    title: str
    description: str | None
    unit: str | None
    target_value: float | None
    weightage: int
    achieved_value: float | None
    progress_pct: int
    status: str
    employee_submitted: bool
    manager_approved: bool
    self_comments: str | None
    manager_comments: str | None
    rejection_reason: str | None
    submitted_at: datetime | None
    approved_at: datetime | None
    rejected_at: datetime | None
    version: int
    created_at: datetime
    updated_at: datetime
