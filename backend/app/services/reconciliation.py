"""Payment reconciliation — the cost breakdown must equal the balance due.

    balance_due = finalized_price_per_acre × farm_size_acres − advance_amount

A breakdown (labour + transport + accommodation + other) is accepted iff
``|sum − balance_due| ≤ tolerance`` (one currency minor unit by
default).  Amounts are compared as exact Decimals of their given values,
unrounded, so 4999.99 against 5000.00 is exactly 0.01 apart and
sub-cent components still count.

``check_breakdown`` is pure.  ``validate_payment`` raises on mismatch and
leaves the caller to decide between blocking and warning.
``audit_payments`` re-checks stored records against current job balances.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.middleware.exceptions import (
    InvalidStateError,
    ReconciliationMismatchError,
    ValidationError,
)
from app.models.job import Job, JobStatus
from app.models.payment_record import PaymentRecord
from app.schemas.payment import PaymentCreate
from app.services.lifecycle import get_job
from app.utils.activity import log_activity

logger = logging.getLogger("workcrop.reconciliation")

def _money(value) -> Decimal:
    # Exact decimal of the given amount; never rounded before comparison
    return Decimal(str(value or 0))


def _severity(variance_pct: float) -> str:
    """Map variance percentage to severity level."""
    abs_pct = abs(variance_pct) if variance_pct else 0
    if abs_pct >= 20:
        return "critical"
    if abs_pct >= 10:
        return "high"
    if abs_pct >= 5:
        return "medium"
    return "low"


def _safe_pct(expected: float, actual: float) -> float:
    """Calculate percentage variance safely."""
    if not expected:
        return 100.0 if actual else 0.0
    return round(abs(actual - expected) / abs(expected) * 100, 2)


@dataclass(frozen=True)
class CostBreakdown:
    labor_cost: float
    transport_cost: float = 0.0
    accommodation_cost: float = 0.0
    other_cost: float = 0.0

    def total(self) -> Decimal:
        return (
            _money(self.labor_cost)
            + _money(self.transport_cost)
            + _money(self.accommodation_cost)
            + _money(self.other_cost)
        )


@dataclass(frozen=True)
class ReconciliationResult:
    ok: bool
    expected: float
    actual: float
    delta: float


def balance_due(price_per_acre: float, farm_size_acres: float, advance_amount: float = 0.0) -> float:
    """Contracted total minus any advance already paid."""
    total = _money(price_per_acre) * _money(farm_size_acres)
    return float(total - _money(advance_amount))


def check_breakdown(
    breakdown: CostBreakdown,
    balance: float,
    tolerance: float | None = None,
) -> ReconciliationResult:
    tol = Decimal(str(settings.payment_tolerance if tolerance is None else tolerance))
    expected = _money(balance)
    actual = breakdown.total()
    delta = actual - expected
    return ReconciliationResult(
        ok=abs(delta) <= tol,
        expected=float(expected),
        actual=float(actual),
        delta=float(delta),
    )


def validate_payment(
    breakdown: CostBreakdown,
    balance: float,
    tolerance: float | None = None,
) -> ReconciliationResult:
    """Return the result when it reconciles; raise ReconciliationMismatchError otherwise."""
    if any(
        v is not None and v < 0
        for v in (
            breakdown.labor_cost, breakdown.transport_cost,
            breakdown.accommodation_cost, breakdown.other_cost,
        )
    ):
        raise ValidationError("Cost components cannot be negative")

    result = check_breakdown(breakdown, balance, tolerance)
    if not result.ok:
        logger.warning(
            "Payment breakdown mismatch: expected %.2f, got %.2f (delta %+.2f)",
            result.expected, result.actual, result.delta,
        )
        raise ReconciliationMismatchError(result.expected, result.actual, result.delta)
    return result


def job_balance_due(job: Job) -> float:
    if job.finalized_price is None or not job.farm_size_acres:
        raise InvalidStateError(
            f"Job {job.job_code} has no finalized price",
            current_status=job.status.value,
        )
    return balance_due(job.finalized_price, job.farm_size_acres, job.advance_amount)


# ── Recording ──────────────────────────────────────────────────


async def record_payment(
    db: AsyncSession,
    job_id: str,
    body: PaymentCreate,
    *,
    actor: str | None = None,
) -> PaymentRecord:
    """Store the reconciled balance payment for a completed job."""
    job = await get_job(db, job_id)
    if job.status != JobStatus.COMPLETED:
        raise InvalidStateError(
            f"Payment can only be recorded for a completed job (job {job.job_code} is {job.status.value})",
            current_status=job.status.value,
        )

    existing = (
        await db.execute(select(PaymentRecord.id).where(PaymentRecord.job_id == job.id))
    ).scalar_one_or_none()
    if existing:
        raise InvalidStateError(f"Payment already recorded for job {job.job_code}")

    due = job_balance_due(job)
    breakdown = CostBreakdown(
        labor_cost=body.labor_cost,
        transport_cost=body.transport_cost,
        accommodation_cost=body.accommodation_cost,
        other_cost=body.other_cost,
    )
    validate_payment(breakdown, due)

    record = PaymentRecord(
        job_id=job.id,
        labor_cost=body.labor_cost,
        transport_cost=body.transport_cost,
        accommodation_cost=body.accommodation_cost,
        other_cost=body.other_cost,
        balance_amount=due,
        payment_method=body.payment_method,
        payment_date=body.payment_date or date.today(),
        proof_reference=body.proof_reference,
        collected_by=body.collected_by or actor,
        notes=body.notes,
    )
    try:
        async with db.begin_nested():
            db.add(record)
            await db.flush()
    except IntegrityError:
        raise InvalidStateError(f"Payment already recorded for job {job.job_code}")

    await log_activity(
        db, actor, action="payment_recorded", entity_type="job",
        entity_id=job.id, entity_code=job.job_code,
        summary=f"Balance {due:,.2f} paid by {body.payment_method}",
    )
    logger.info("Job %s: payment of %.2f recorded", job.job_code, due)
    return record


# ── Audit ──────────────────────────────────────────────────────


@dataclass
class PaymentAlert:
    payment_id: str
    job_id: str
    job_code: str
    severity: str
    expected: float
    actual: float
    delta: float
    variance_pct: float

    @property
    def title(self) -> str:
        return f"Job {self.job_code}: payment ≠ balance due"


def audit_record(
    record: PaymentRecord,
    job: Job,
    tolerance: float | None = None,
) -> PaymentAlert | None:
    """Re-check one stored payment against its job; None when it still reconciles."""
    breakdown = CostBreakdown(
        labor_cost=record.labor_cost,
        transport_cost=record.transport_cost,
        accommodation_cost=record.accommodation_cost,
        other_cost=record.other_cost,
    )
    if job.finalized_price is None or not job.farm_size_acres:
        expected = 0.0
    else:
        expected = balance_due(job.finalized_price, job.farm_size_acres, job.advance_amount)

    result = check_breakdown(breakdown, expected, tolerance)
    if result.ok:
        return None
    pct = _safe_pct(result.expected, result.actual)
    return PaymentAlert(
        payment_id=record.id,
        job_id=job.id,
        job_code=job.job_code,
        severity=_severity(pct),
        expected=result.expected,
        actual=result.actual,
        delta=result.delta,
        variance_pct=pct,
    )


async def audit_payments(
    db: AsyncSession,
    tolerance: float | None = None,
) -> list[PaymentAlert]:
    """Every stored payment whose breakdown no longer matches its job."""
    rows = (
        await db.execute(
            select(PaymentRecord, Job)
            .join(Job, Job.id == PaymentRecord.job_id)
            .order_by(Job.job_code)
        )
    ).all()

    alerts = []
    for record, job in rows:
        alert = audit_record(record, job, tolerance)
        if alert:
            alerts.append(alert)

    if alerts:
        logger.warning("Payment audit: %d of %d record(s) mismatched", len(alerts), len(rows))
    else:
        logger.info("Payment audit: %d record(s) reconciled", len(rows))
    return alerts
