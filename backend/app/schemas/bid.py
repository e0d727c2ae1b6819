"""Pydantic schemas for bids and the bid board."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from app.models.bid import BidStatus


class BidResponseRequest(BaseModel):
    """A team's answer to a job notification."""
    decision: Literal["interested", "declined"]
    bid_price_per_acre: float | None = Field(None, gt=0)
    estimated_duration_hours: float | None = Field(None, gt=0)
    comments: str | None = None

    @model_validator(mode="after")
    def price_when_interested(self):
        if self.decision == "interested" and self.bid_price_per_acre is None:
            raise ValueError("bid_price_per_acre is required when interested")
        return self


class BidOut(BaseModel):
    id: str
    job_id: str
    team_id: str
    status: BidStatus
    bid_price_per_acre: float | None
    estimated_duration_hours: float | None
    comments: str | None
    round: int
    notified_at: datetime
    responded_at: datetime | None
    assigned_at: datetime | None

    model_config = {"from_attributes": True}


class RankedBidOut(BaseModel):
    rank: int
    bid: BidOut
    team_name: str
    margin_per_acre: float | None


class BidSummaryOut(BaseModel):
    total_bids: int
    pending_bids: int
    interested_bids: int
    declined_bids: int
    assigned_bids: int
    lowest_price: float | None
    highest_price: float | None
