"""Pydantic schemas for jobs and their lifecycle operations."""

from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from app.models.job import JobStatus


# ── Create ───────────────────────────────────────────────────

class JobCreate(BaseModel):
    """A farmer's request.  Fields may be incomplete until confirmation."""
    farmer_id: str | None = None
    activity_id: str | None = None
    farm_size_acres: float | None = Field(None, gt=0)
    location: str | None = None
    requested_date: date | None = None
    requested_time: str | None = None
    workers_needed: int = Field(0, ge=0)
    farmer_price_per_acre: float | None = Field(None, gt=0)
    advance_amount: float = Field(0.0, ge=0)
    notes: str | None = None


class JobOut(BaseModel):
    id: str
    job_code: str
    farmer_id: str | None
    activity_id: str | None
    farm_size_acres: float | None
    location: str | None
    requested_date: date | None
    requested_time: str | None
    workers_needed: int
    farmer_price_per_acre: float | None
    your_price_per_acre: float | None
    finalized_price: float | None
    finalized_team_id: str | None
    advance_amount: float
    status: JobStatus
    cancellation_reason: str | None = None
    confirmed_at: datetime | None = None
    priced_at: datetime | None = None
    bidding_started_at: datetime | None = None
    finalized_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    notes: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Transition payloads ──────────────────────────────────────

class PriceRequest(BaseModel):
    your_price_per_acre: float = Field(..., gt=0)


class NotifyRequest(BaseModel):
    team_ids: list[str] = Field(..., min_length=1)


class ReassignRequest(BaseModel):
    team_ids: list[str] = Field(..., min_length=1)
    reason: str

    @field_validator("reason")
    @classmethod
    def reason_required(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("A reason is required for re-assignment")
        return v.strip()


class FinalizeRequest(BaseModel):
    bid_id: str
    final_price: float | None = Field(None, gt=0)


class CancelRequest(BaseModel):
    reason: str

    @field_validator("reason")
    @classmethod
    def reason_required(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("A cancellation reason is required")
        return v.strip()


class JobCompletionCreate(BaseModel):
    """Work summary captured at completion.  Informational only."""
    work_summary: str
    actual_area_covered: float | None = Field(None, ge=0)
    actual_labourers_used: int | None = Field(None, ge=0)
    actual_hours_worked: float | None = Field(None, ge=0)
    work_quality_score: int | None = Field(None, ge=1, le=5)
    on_time_completion: bool = True
    farmer_satisfied: bool = True
    had_issues: bool = False
    issue_description: str | None = None


# ── Recommendations ──────────────────────────────────────────

class CostEstimate(BaseModel):
    rate_per_acre: float
    total_cost: float | None = None
    your_margin: float | None = None


class CandidateOut(BaseModel):
    team_id: str
    team_name: str
    score: float
    is_available: bool
    already_notified: bool
    reasons: list[str]
    flags: list[str]
    cost_estimate: CostEstimate

    model_config = {"from_attributes": True}


class NotifyResultOut(BaseModel):
    job: JobOut
    created_bid_ids: list[str]
    skipped_team_ids: list[str]
    round: int
    delivered: int
