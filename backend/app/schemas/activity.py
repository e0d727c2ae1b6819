"""Pydantic schemas for the activity catalogue."""

from datetime import datetime

from pydantic import BaseModel, Field


class ActivityCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    days_after_pruning: int | None = Field(None, ge=0)


class ActivityOut(BaseModel):
    id: str
    name: str
    description: str | None
    days_after_pruning: int | None
    created_at: datetime

    model_config = {"from_attributes": True}
