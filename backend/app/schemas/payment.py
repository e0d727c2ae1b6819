"""Pydantic schemas for payment reconciliation and recording."""

from datetime import date, datetime

from pydantic import BaseModel, Field


class CostBreakdownIn(BaseModel):
    labor_cost: float = Field(..., ge=0)
    transport_cost: float = Field(0.0, ge=0)
    accommodation_cost: float = Field(0.0, ge=0)
    other_cost: float = Field(0.0, ge=0)


class PaymentValidateRequest(BaseModel):
    breakdown: CostBreakdownIn
    balance_due: float


class PaymentValidateOut(BaseModel):
    ok: bool
    expected: float
    actual: float
    delta: float


class PaymentCreate(CostBreakdownIn):
    payment_method: str = Field(..., min_length=1, max_length=30)
    payment_date: date | None = None
    proof_reference: str | None = None
    collected_by: str | None = None
    notes: str | None = None


class PaymentOut(BaseModel):
    id: str
    job_id: str
    labor_cost: float
    transport_cost: float
    accommodation_cost: float
    other_cost: float
    balance_amount: float
    payment_method: str
    payment_date: date
    proof_reference: str | None
    collected_by: str | None
    notes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class PaymentAlertOut(BaseModel):
    payment_id: str
    job_id: str
    job_code: str
    severity: str
    title: str
    expected: float
    actual: float
    delta: float
    variance_pct: float
