"""JobCompletion — the work summary captured when a job is marked complete.

Purely informational; one row per job.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class JobCompletion(Base):
    __tablename__ = "job_completions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    job_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("jobs.id"), unique=True, nullable=False
    )

    work_summary: Mapped[str] = mapped_column(Text, nullable=False)
    actual_area_covered: Mapped[float | None] = mapped_column(Float)
    actual_labourers_used: Mapped[int | None] = mapped_column(Integer)
    actual_hours_worked: Mapped[float | None] = mapped_column(Float)
    # 1 (poor) .. 5 (excellent)
    work_quality_score: Mapped[int | None] = mapped_column(Integer)
    on_time_completion: Mapped[bool] = mapped_column(Boolean, default=True)
    farmer_satisfied: Mapped[bool] = mapped_column(Boolean, default=True)
    had_issues: Mapped[bool] = mapped_column(Boolean, default=False)
    issue_description: Mapped[str | None] = mapped_column(Text)

    completed_by: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
