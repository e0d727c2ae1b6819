"""AvailabilityInterval — a closed date range a team is Available / Busy / OnLeave.

For one team the intervals never overlap; gaps between them mean
"unknown".  Intervals change only by splitting (see
app.services.availability) or by explicit deletion, never by silent
overwrite.  Sub-team intervals may carry their own leader name/phone.
"""

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Enum as SAEnum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class AvailabilityStatus(str, enum.Enum):
    AVAILABLE = "available"
    BUSY = "busy"
    ON_LEAVE = "on_leave"


class AvailabilityInterval(Base):
    __tablename__ = "team_availability"
    __table_args__ = (
        Index("ix_team_availability_team_range", "team_id", "start_date", "end_date"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    team_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("labour_teams.id"), nullable=False, index=True
    )
    # Inclusive on both ends
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[AvailabilityStatus] = mapped_column(
        SAEnum(
            AvailabilityStatus,
            native_enum=False,
            length=20,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=AvailabilityStatus.AVAILABLE,
    )

    # Sub-team leader, when a crew splits across fields
    leader_name: Mapped[str | None] = mapped_column(String(255))
    leader_phone: Mapped[str | None] = mapped_column(String(20))

    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
