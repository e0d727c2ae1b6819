"""Pydantic schemas for labour teams (mukadams) and their activity rates."""

from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator


class RateIn(BaseModel):
    activity_id: str
    rate_per_acre: float = Field(..., gt=0)


class RateOut(BaseModel):
    activity_id: str
    rate_per_acre: float

    model_config = {"from_attributes": True}


class TeamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone: str | None = None
    location: str | None = None
    number_of_labourers: int = Field(0, ge=0)
    is_active: bool = True
    notes: str | None = None
    rates: list[RateIn] = []

    # Onboarding window → one default "available" interval
    available_from: date | None = None
    available_to: date | None = None

    @model_validator(mode="after")
    def window_complete(self):
        if (self.available_from is None) != (self.available_to is None):
            raise ValueError("Provide both available_from and available_to, or neither")
        if self.available_from and self.available_from > self.available_to:
            raise ValueError("available_from must not be after available_to")
        return self


class TeamUpdate(BaseModel):
    name: str | None = None
    phone: str | None = None
    location: str | None = None
    number_of_labourers: int | None = Field(None, ge=0)
    is_active: bool | None = None
    notes: str | None = None


class TeamOut(BaseModel):
    id: str
    name: str
    phone: str | None
    location: str | None
    number_of_labourers: int
    is_active: bool
    notes: str | None
    rates: list[RateOut] = []
    created_at: datetime

    model_config = {"from_attributes": True}


class TeamPerformanceOut(BaseModel):
    team_id: str
    total_notified: int
    total_interested: int
    won: int
    completed: int
    win_rate: float
    avg_bid_price: float | None
