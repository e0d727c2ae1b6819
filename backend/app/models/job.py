"""Job — one farmer's request for an activity on a given farm size and date.

Lifecycle:
    pending → confirmed → priced → (notified) → bidding → finalized
            → in_progress → completed
    cancelled is reachable from any non-terminal state.

Jobs are never deleted.  ``your_price_per_acre`` is set once the job is
priced; ``finalized_price`` only once a bid has been finalized.
"""

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import (
    Date, DateTime, Enum as SAEnum, Float, ForeignKey,
    Integer, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class JobStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PRICED = "priced"
    NOTIFIED = "notified"
    BIDDING = "bidding"
    FINALIZED = "finalized"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Job(Base):
    __tablename__ = "jobs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    # JOB-YYYYMMDD-NNN, unique
    job_code: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
    )

    # ── Request ──────────────────────────────────────────────
    farmer_id: Mapped[str | None] = mapped_column(String(36), index=True)
    activity_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("activities.id"), index=True
    )
    farm_size_acres: Mapped[float | None] = mapped_column(Float)
    location: Mapped[str | None] = mapped_column(String(255))
    requested_date: Mapped[date | None] = mapped_column(Date, index=True)
    requested_time: Mapped[str | None] = mapped_column(String(20))
    workers_needed: Mapped[int] = mapped_column(Integer, default=0)

    # ── Pricing (per acre) ───────────────────────────────────
    farmer_price_per_acre: Mapped[float | None] = mapped_column(Float)
    your_price_per_acre: Mapped[float | None] = mapped_column(Float)
    finalized_price: Mapped[float | None] = mapped_column(Float)
    advance_amount: Mapped[float] = mapped_column(Float, default=0.0)

    # ── Status ───────────────────────────────────────────────
    status: Mapped[JobStatus] = mapped_column(
        SAEnum(
            JobStatus,
            native_enum=False,
            length=20,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=JobStatus.PENDING,
        index=True,
    )
    finalized_team_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("labour_teams.id")
    )
    cancellation_reason: Mapped[str | None] = mapped_column(Text)

    # ── Transition timestamps ────────────────────────────────
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime)
    priced_at: Mapped[datetime | None] = mapped_column(DateTime)
    bidding_started_at: Mapped[datetime | None] = mapped_column(DateTime)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime)
    started_at: Mapped[datetime | None] = mapped_column(DateTime)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime)

    # ── Metadata ─────────────────────────────────────────────
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # ── Relationships ────────────────────────────────────────
    activity = relationship("Activity", lazy="selectin")
    finalized_team = relationship("LabourTeam", lazy="selectin")
