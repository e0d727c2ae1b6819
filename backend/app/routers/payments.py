"""Payment routes — reconcile a breakdown, record a job's balance payment, audit."""

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.middleware.exceptions import ResourceNotFoundError
from app.models.payment_record import PaymentRecord
from app.routers.deps import get_actor
from app.schemas.payment import (
    PaymentAlertOut,
    PaymentCreate,
    PaymentOut,
    PaymentValidateOut,
    PaymentValidateRequest,
)
from app.services import reconciliation
from app.services.reconciliation import CostBreakdown

router = APIRouter()


@router.post("/validate", response_model=PaymentValidateOut)
async def validate_breakdown(body: PaymentValidateRequest):
    """Pure check: raises RECONCILIATION_MISMATCH (422) when the sums disagree."""
    result = reconciliation.validate_payment(
        CostBreakdown(**body.breakdown.model_dump()), body.balance_due,
    )
    return PaymentValidateOut(
        ok=result.ok, expected=result.expected, actual=result.actual, delta=result.delta,
    )


@router.post(
    "/jobs/{job_id}",
    response_model=PaymentOut,
    status_code=status.HTTP_201_CREATED,
)
async def record_payment(
    job_id: str,
    body: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    actor: str | None = Depends(get_actor),
):
    record = await reconciliation.record_payment(db, job_id, body, actor=actor)
    return PaymentOut.model_validate(record)


@router.get("/jobs/{job_id}", response_model=PaymentOut)
async def get_payment(job_id: str, db: AsyncSession = Depends(get_db)):
    record = (
        await db.execute(select(PaymentRecord).where(PaymentRecord.job_id == job_id))
    ).scalar_one_or_none()
    if not record:
        raise ResourceNotFoundError("Payment for job", job_id)
    return PaymentOut.model_validate(record)


@router.get("/audit", response_model=list[PaymentAlertOut])
async def audit(db: AsyncSession = Depends(get_db)):
    alerts = await reconciliation.audit_payments(db)
    return [
        PaymentAlertOut(
            payment_id=a.payment_id,
            job_id=a.job_id,
            job_code=a.job_code,
            severity=a.severity,
            title=a.title,
            expected=a.expected,
            actual=a.actual,
            delta=a.delta,
            variance_pct=a.variance_pct,
        )
        for a in alerts
    ]
