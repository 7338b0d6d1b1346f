from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

CompetencyCategory = Literal["TECHNICAL", "BEHAVIORAL", "LEADERSHIP", "CORE_VALUES", "FUNCTIONAL", "MANAGERIAL"]


class CompetencyCreate(BaseModel):
    code: str = Field(max_length=50)
    name: str = Field(max_length=200)
    description: str | None = None
    category: CompetencyCategory
    weightage: int = 10
    is_active: bool = True
    display_order: int = 0


class CompetencyUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    description: str | None = None
    category: CompetencyCategory | None = None
    weightage: int | None = None
    is_active: bool | None = None
    display_order: int | None = None


class CompetencyOut(BaseModel):
    id: str
    code: str
    name: str
    description: str | None
    category: str
    weightage: int
    is_active: bool
    display_order: int
    created_at: datetime
    updated_at: datetime
