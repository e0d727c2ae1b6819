"""Job lifecycle — guarded, monotonic status transitions.

    pending → confirmed → priced → (notified) → bidding → finalized
            → in_progress → completed
    cancelled from any non-terminal state

Every transition is a conditional UPDATE (``WHERE status IN (...)``)
checked by rowcount, so a transition either applies atomically or
raises without partial effect.  Two callers racing on the same job
cannot both move it: the second sees rowcount 0 and gets
InvalidStateError.  Bidding-phase transitions (notify, finalize) live in
app.services.bidding and use the same helper.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.middleware.exceptions import (
    InvalidStateError,
    ResourceNotFoundError,
    ValidationError,
)
from app.models.job import Job, JobStatus
from app.models.job_completion import JobCompletion
from app.schemas.job import JobCompletionCreate, JobCreate
from app.utils.activity import log_activity
from app.utils.clock import utcnow
from app.utils.numbering import generate_job_code

logger = logging.getLogger("workcrop.lifecycle")

TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.CANCELLED})

ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.CONFIRMED, JobStatus.CANCELLED}),
    JobStatus.CONFIRMED: frozenset({JobStatus.PRICED, JobStatus.CANCELLED}),
    JobStatus.PRICED: frozenset({JobStatus.NOTIFIED, JobStatus.BIDDING, JobStatus.CANCELLED}),
    JobStatus.NOTIFIED: frozenset({JobStatus.BIDDING, JobStatus.CANCELLED}),
    JobStatus.BIDDING: frozenset({JobStatus.FINALIZED, JobStatus.CANCELLED}),
    JobStatus.FINALIZED: frozenset({JobStatus.IN_PROGRESS, JobStatus.CANCELLED}),
    JobStatus.IN_PROGRESS: frozenset({JobStatus.COMPLETED, JobStatus.CANCELLED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def sources_for(target: JobStatus) -> frozenset[JobStatus]:
    """Every status from which ``target`` is reachable in one step."""
    return frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if target in targets)


async def get_job(db: AsyncSession, job_id: str) -> Job:
    job = (await db.execute(select(Job).where(Job.id == job_id))).scalar_one_or_none()
    if not job:
        raise ResourceNotFoundError("Job", job_id)
    return job


async def transition(
    db: AsyncSession,
    job: Job,
    target: JobStatus,
    *,
    from_statuses: frozenset[JobStatus] | None = None,
    **values,
) -> Job:
    """Move ``job`` to ``target`` iff its *stored* status is a legal source.

    ``values`` are written in the same UPDATE.  Raises InvalidStateError
    (carrying the current status) when the guard fails.
    """
    allowed = from_statuses if from_statuses is not None else sources_for(target)
    result = await db.execute(
        update(Job)
        .where(Job.id == job.id, Job.status.in_(list(allowed)))
        .values(status=target, updated_at=utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(job)
    if result.rowcount != 1:
        raise InvalidStateError(
            f"Job {job.job_code} cannot move to {target.value} from {job.status.value}",
            current_status=job.status.value,
        )
    return job


# ── Creation & confirmation ────────────────────────────────────


async def create_job(db: AsyncSession, body: JobCreate, actor: str | None = None) -> Job:
    """Record a farmer's request.  The job starts ``pending``."""
    job = Job(
        job_code=await generate_job_code(db),
        farmer_id=body.farmer_id,
        activity_id=body.activity_id,
        farm_size_acres=body.farm_size_acres,
        location=body.location,
        requested_date=body.requested_date,
        requested_time=body.requested_time,
        workers_needed=body.workers_needed,
        farmer_price_per_acre=body.farmer_price_per_acre,
        advance_amount=body.advance_amount,
        notes=body.notes,
        status=JobStatus.PENDING,
    )
    db.add(job)
    await db.flush()

    await log_activity(
        db, actor, action="created", entity_type="job",
        entity_id=job.id, entity_code=job.job_code,
        summary=f"Job {job.job_code} requested for {body.farm_size_acres} acres",
    )
    return job


REQUIRED_FOR_CONFIRM = (
    "farmer_id", "activity_id", "farm_size_acres",
    "requested_date", "farmer_price_per_acre",
)


async def confirm_job(
    db: AsyncSession,
    job_id: str,
    *,
    actor: str | None = None,
    now: datetime | None = None,
) -> Job:
    """pending → confirmed, once every request field is present."""
    job = await get_job(db, job_id)

    missing = [f for f in REQUIRED_FOR_CONFIRM if getattr(job, f) in (None, "")]
    if missing:
        raise ValidationError(
            f"Job {job.job_code} is missing required fields: {', '.join(missing)}",
            details={"missing": missing},
        )
    if job.farm_size_acres <= 0:
        raise ValidationError("Farm size must be positive")
    if job.farmer_price_per_acre <= 0:
        raise ValidationError("Farmer price per acre must be positive")

    await transition(db, job, JobStatus.CONFIRMED, confirmed_at=now or utcnow())
    await log_activity(
        db, actor, action="confirmed", entity_type="job",
        entity_id=job.id, entity_code=job.job_code,
    )
    logger.info("Job %s confirmed", job.job_code)
    return job


# ── Pricing ────────────────────────────────────────────────────


async def set_price(
    db: AsyncSession,
    job_id: str,
    your_price_per_acre: float,
    *,
    actor: str | None = None,
    now: datetime | None = None,
) -> Job:
    """confirmed → priced.  Sets the operator's own price per acre."""
    if your_price_per_acre is None or your_price_per_acre <= 0:
        raise ValidationError("Your price per acre must be a positive number")

    job = await get_job(db, job_id)
    await transition(
        db, job, JobStatus.PRICED,
        from_statuses=frozenset({JobStatus.CONFIRMED}),
        your_price_per_acre=your_price_per_acre,
        priced_at=now or utcnow(),
    )

    margin = (job.farmer_price_per_acre - your_price_per_acre) * job.farm_size_acres
    if margin < 0:
        logger.warning(
            "Job %s priced above farmer's offer (margin %.2f)", job.job_code, margin
        )
    await log_activity(
        db, actor, action="priced", entity_type="job",
        entity_id=job.id, entity_code=job.job_code,
        summary=f"Priced at {your_price_per_acre:,.2f}/acre",
        details={"your_price_per_acre": your_price_per_acre, "margin": margin},
    )
    logger.info("Job %s priced at %.2f/acre", job.job_code, your_price_per_acre)
    return job


# ── Execution ──────────────────────────────────────────────────


async def start_work(
    db: AsyncSession,
    job_id: str,
    *,
    actor: str | None = None,
    now: datetime | None = None,
) -> Job:
    """finalized → in_progress."""
    job = await get_job(db, job_id)
    await transition(db, job, JobStatus.IN_PROGRESS, started_at=now or utcnow())
    await log_activity(
        db, actor, action="started", entity_type="job",
        entity_id=job.id, entity_code=job.job_code,
    )
    logger.info("Job %s started", job.job_code)
    return job


async def complete_work(
    db: AsyncSession,
    job_id: str,
    record: JobCompletionCreate,
    *,
    actor: str | None = None,
    now: datetime | None = None,
) -> Job:
    """in_progress → completed, storing the work summary."""
    if not record.work_summary or not record.work_summary.strip():
        raise ValidationError("A work summary is required to complete a job")
    if record.had_issues and not (record.issue_description or "").strip():
        raise ValidationError("Describe the issues when had_issues is set")

    job = await get_job(db, job_id)
    await transition(db, job, JobStatus.COMPLETED, completed_at=now or utcnow())

    db.add(JobCompletion(
        job_id=job.id,
        work_summary=record.work_summary.strip(),
        actual_area_covered=record.actual_area_covered,
        actual_labourers_used=record.actual_labourers_used,
        actual_hours_worked=record.actual_hours_worked,
        work_quality_score=record.work_quality_score,
        on_time_completion=record.on_time_completion,
        farmer_satisfied=record.farmer_satisfied,
        had_issues=record.had_issues,
        issue_description=record.issue_description if record.had_issues else None,
        completed_by=actor,
    ))
    await db.flush()

    await log_activity(
        db, actor, action="completed", entity_type="job",
        entity_id=job.id, entity_code=job.job_code,
        summary=record.work_summary.strip()[:200],
    )
    logger.info("Job %s completed", job.job_code)
    return job


# ── Cancellation ───────────────────────────────────────────────


async def cancel_job(
    db: AsyncSession,
    job_id: str,
    reason: str,
    *,
    actor: str | None = None,
    now: datetime | None = None,
) -> Job:
    """Any non-terminal status → cancelled.  Bids are kept as they are."""
    if not reason or not reason.strip():
        raise ValidationError("A cancellation reason is required")

    job = await get_job(db, job_id)
    # A cancelled job has no agreed price; the audit row keeps what it was
    previous = {
        "status": job.status.value,
        "finalized_price": job.finalized_price,
        "finalized_team_id": job.finalized_team_id,
    }
    await transition(
        db, job, JobStatus.CANCELLED,
        cancelled_at=now or utcnow(),
        cancellation_reason=reason.strip(),
        finalized_price=None,
        finalized_team_id=None,
    )
    await log_activity(
        db, actor, action="cancelled", entity_type="job",
        entity_id=job.id, entity_code=job.job_code,
        summary=reason.strip(),
        details=previous,
    )
    logger.info("Job %s cancelled: %s", job.job_code, reason.strip())
    return job
