"""LabourTeam (mukadam) — a crew leader who bids on and executes jobs.

Each team quotes a rate per acre for the activities it performs
(TeamActivityRate).  Inactive teams are never recommended or notified.
Performance counters (notified / won / completed / average bid) are
derived from job_bids and jobs, not stored.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean, DateTime, Float, ForeignKey, Integer,
    String, Text, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class LabourTeam(Base):
    __tablename__ = "labour_teams"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), index=True)
    location: Mapped[str | None] = mapped_column(String(255))
    number_of_labourers: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # ── Relationships ────────────────────────────────────────
    rates = relationship(
        "TeamActivityRate",
        back_populates="team",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class TeamActivityRate(Base):
    __tablename__ = "team_activity_rates"
    __table_args__ = (
        UniqueConstraint("team_id", "activity_id", name="uq_team_activity_rate"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    team_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("labour_teams.id"), nullable=False, index=True
    )
    activity_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("activities.id"), nullable=False, index=True
    )
    rate_per_acre: Mapped[float] = mapped_column(Float, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    team = relationship("LabourTeam", back_populates="rates")
