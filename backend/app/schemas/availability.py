"""Pydantic schemas for team availability intervals."""

from datetime import date, datetime

from pydantic import BaseModel, model_validator

from app.models.availability import AvailabilityStatus


class IntervalCreate(BaseModel):
    start_date: date
    end_date: date
    status: AvailabilityStatus = AvailabilityStatus.AVAILABLE
    leader_name: str | None = None
    leader_phone: str | None = None
    notes: str | None = None

    @model_validator(mode="after")
    def ordered(self):
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class IntervalOut(BaseModel):
    id: str
    team_id: str
    start_date: date
    end_date: date
    status: AvailabilityStatus
    leader_name: str | None
    leader_phone: str | None
    notes: str | None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class AvailabilityCheckOut(BaseModel):
    team_id: str
    start_date: date
    end_date: date
    is_available: bool
