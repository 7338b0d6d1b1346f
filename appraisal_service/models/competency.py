import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column
import sqlalchemy as sa

from appraisal_service.db.base import Base
from appraisal_service.db.types import check_in

COMPETENCY_CATEGORIES = ("TECHNICAL", "BEHAVIORAL", "LEADERSHIP", "CORE_VALUES", "FUNCTIONAL", "MANAGERIAL")


class Competency(Base):
    __tablename__ = "competencies"
    __table_args__ = (
        check_in("category", COMPETENCY_CATEGORIES, "ck_competencies_category"),
        sa.CheckConstraint("weightage >= 0", name="ck_competencies_weightage"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(20), nullable=False)

    weightage: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
        onupdate=datetime.utcnow,
    )
