"""JobBid — a team's response to being notified of a job.

One row per (job, team).  Created ``pending`` at notification, moved
once by the team (interested / declined) and at most once more by the
operator (assigned).  At most one bid per job is ever ``assigned``; the
partial unique index enforces that at the storage level.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    DateTime, Enum as SAEnum, Float, ForeignKey, Index,
    Integer, String, Text, UniqueConstraint, text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class BidStatus(str, enum.Enum):
    PENDING = "pending"
    INTERESTED = "interested"
    DECLINED = "declined"
    ASSIGNED = "assigned"


class JobBid(Base):
    __tablename__ = "job_bids"
    __table_args__ = (
        UniqueConstraint("job_id", "team_id", name="uq_job_bid_team"),
        Index(
            "uq_job_bid_one_assigned",
            "job_id",
            unique=True,
            postgresql_where=text("status = 'assigned'"),
            sqlite_where=text("status = 'assigned'"),
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    # ── Links ────────────────────────────────────────────────
    job_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("jobs.id"), nullable=False, index=True
    )
    team_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("labour_teams.id"), nullable=False, index=True
    )

    # ── Response ─────────────────────────────────────────────
    status: Mapped[BidStatus] = mapped_column(
        SAEnum(
            BidStatus,
            native_enum=False,
            length=20,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=BidStatus.PENDING,
        index=True,
    )
    bid_price_per_acre: Mapped[float | None] = mapped_column(Float)
    estimated_duration_hours: Mapped[float | None] = mapped_column(Float)
    comments: Mapped[str | None] = mapped_column(Text)

    # 1 for the first fan-out, +1 for every reassign round
    round: Mapped[int] = mapped_column(Integer, default=1)

    # ── Timestamps ───────────────────────────────────────────
    notified_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime)
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime)

    # ── Relationships ────────────────────────────────────────
    team = relationship("LabourTeam", lazy="selectin")
