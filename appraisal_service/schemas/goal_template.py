import uuid
from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field

Pillar = Literal["DELIVERY_EXECUTION", "QUALITY", "ENGINEERING_EXCELLENCE", "COLLABORATION", "CUSTOM"]


class PresetOut(BaseModel):
    key: str
    label: str
    unit: str | None


class GoalTemplateCreate(BaseModel):
    cycle_id: uuid.UUID
    name: str = Field(max_length=200)
    description: str | None = None
    submission_deadline: date | None = None


class MetricCreate(BaseModel):
    pillar: Pillar
    preset_key: str | None = Field(default=None, max_length=60)
    custom_name: str | None = Field(default=None, max_length=200)
    description: str | None = None
    unit: str | None = Field(default=None, max_length=40)
    target_value: float | None = None
    weightage: int


class MetricBulkCreate(BaseModel):
    metrics: list[MetricCreate] = Field(min_length=1)


class MetricOut(BaseModel):
    id: str
    position: int
    pillar: str
    preset_key: str | None
    custom_name: str | None
    label: str
    description: str | None
    unit: str | None
    target_value: float | None
    weightage: int


class WeightageCheck(BaseModel):
    total: int
    is_valid: bool
    warning: str | None = None


class GoalTemplateOut(BaseModel):
    id: str
    owner_employee_id: str
    cycle_id: str
    name: str
    description: str | None
    submission_deadline: date | None
    status: str
    published_at: datetime | None
    locked_at: datetime | None
    created_at: datetime
    updated_at: datetime
    metrics: list[MetricOut]
    weightage: WeightageCheck


class PublishResultOut(BaseModel):
    template_id: str
    status: str
    goals_created: int
    employees_notified: int
    weightage: WeightageCheck
