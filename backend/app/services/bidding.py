"""Bid board — notification fan-out, team responses, ranking and the
exclusive finalize.

Finalize is the one operation with a hard exclusivity guarantee: under
any number of concurrent callers for the same job, at most one wins.
Two independent guards provide it:

1. A conditional UPDATE moves the job ``bidding → finalized``; only one
   caller can see rowcount 1.
2. The partial unique index ``uq_job_bid_one_assigned`` rejects a second
   ``assigned`` bid for the job at the storage level.

Losers get AlreadyFinalizedError, never a silent overwrite.  Other bids
are left untouched: interested bids stay interested but are
unselectable once the job has moved past ``bidding``.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import exists, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.middleware.exceptions import (
    AlreadyFinalizedError,
    InvalidStateError,
    ResourceNotFoundError,
    ValidationError,
)
from app.models.bid import BidStatus, JobBid
from app.models.job import Job, JobStatus
from app.models.labour_team import LabourTeam
from app.services.lifecycle import get_job, transition
from app.services.notifications import Notifier, default_notifier
from app.utils.activity import log_activity
from app.utils.clock import utcnow

logger = logging.getLogger("workcrop.bidding")

NOTIFIABLE_STATUSES = frozenset({JobStatus.PRICED, JobStatus.NOTIFIED, JobStatus.BIDDING})
FINALIZED_STATUSES = frozenset({
    JobStatus.FINALIZED, JobStatus.IN_PROGRESS, JobStatus.COMPLETED,
})


async def list_bids(db: AsyncSession, job_id: str) -> list[JobBid]:
    await get_job(db, job_id)
    result = await db.execute(
        select(JobBid)
        .where(JobBid.job_id == job_id)
        .order_by(JobBid.round, JobBid.notified_at, JobBid.id)
    )
    return list(result.scalars().all())


async def get_bid(db: AsyncSession, bid_id: str) -> JobBid:
    bid = (await db.execute(select(JobBid).where(JobBid.id == bid_id))).scalar_one_or_none()
    if not bid:
        raise ResourceNotFoundError("Bid", bid_id)
    return bid


# ── Notification fan-out ───────────────────────────────────────


async def _resolve_teams(db: AsyncSession, team_ids: list[str]) -> list[str]:
    """De-duplicate and check every id names an active team."""
    unique_ids = list(dict.fromkeys(t for t in team_ids if t))
    if not unique_ids:
        raise ValidationError("At least one team must be selected")

    result = await db.execute(
        select(LabourTeam.id).where(
            LabourTeam.id.in_(unique_ids),
            LabourTeam.is_active == True,  # noqa: E712
        )
    )
    found = set(result.scalars().all())
    invalid = [t for t in unique_ids if t not in found]
    if invalid:
        raise ValidationError(
            f"Unknown or inactive team(s): {', '.join(invalid)}",
            details={"invalid_team_ids": invalid},
        )
    return unique_ids


async def _fan_out(
    db: AsyncSession,
    job: Job,
    team_ids: list[str],
    round_no: int,
    now: datetime,
) -> tuple[list[JobBid], list[str]]:
    """Create a pending bid for each team not already holding one."""
    existing = set(
        (await db.execute(select(JobBid.team_id).where(JobBid.job_id == job.id)))
        .scalars().all()
    )

    created: list[JobBid] = []
    skipped: list[str] = []
    for team_id in team_ids:
        if team_id in existing:
            skipped.append(team_id)
            continue
        bid = JobBid(
            job_id=job.id,
            team_id=team_id,
            status=BidStatus.PENDING,
            round=round_no,
            notified_at=now,
        )
        # A concurrent notify may have inserted the same (job, team) pair
        try:
            async with db.begin_nested():
                db.add(bid)
                await db.flush()
        except IntegrityError:
            skipped.append(team_id)
            continue
        created.append(bid)
    return created, skipped


async def _next_round(db: AsyncSession, job_id: str) -> int:
    current = await db.scalar(
        select(func.max(JobBid.round)).where(JobBid.job_id == job_id)
    )
    return (current or 0) + 1


async def _deliver(notifier: Notifier, job: Job, team_ids: list[str]) -> int:
    # Delivery is best-effort; bids stand whether or not it succeeds
    if not team_ids:
        return 0
    try:
        return await notifier.notify(job.id, team_ids)
    except Exception:
        logger.exception("Notification delivery failed for job %s", job.job_code)
        return 0


async def notify_teams(
    db: AsyncSession,
    job_id: str,
    team_ids: list[str],
    *,
    actor: str | None = None,
    notifier: Notifier | None = None,
    now: datetime | None = None,
) -> dict:
    """Fan a priced job out to teams and open bidding.

    Idempotent per team: teams already holding a bid are skipped.
    Returns the job, created bid ids, skipped team ids, the round
    number and how many notifications were delivered.
    """
    now = now or utcnow()
    job = await get_job(db, job_id)
    if job.status not in NOTIFIABLE_STATUSES:
        raise InvalidStateError(
            f"Job {job.job_code} cannot notify teams while {job.status.value}",
            current_status=job.status.value,
        )
    resolved = await _resolve_teams(db, team_ids)
    round_no = await _next_round(db, job.id)

    created, skipped = await _fan_out(db, job, resolved, round_no, now)

    if job.status != JobStatus.BIDDING:
        has_bids = created or await db.scalar(
            select(func.count(JobBid.id)).where(JobBid.job_id == job.id)
        )
        if has_bids:
            await transition(
                db, job, JobStatus.BIDDING,
                from_statuses=frozenset({JobStatus.PRICED, JobStatus.NOTIFIED}),
                bidding_started_at=now,
            )

    delivered = await _deliver(
        notifier or default_notifier, job, [b.team_id for b in created]
    )

    if created:
        await log_activity(
            db, actor, action="notified", entity_type="job",
            entity_id=job.id, entity_code=job.job_code,
            summary=f"Notified {len(created)} team(s) (round {round_no})",
            details={"team_ids": [b.team_id for b in created], "round": round_no},
        )
    logger.info(
        "Job %s: notified %d team(s), skipped %d, round %d",
        job.job_code, len(created), len(skipped), round_no,
    )
    return {
        "job": job,
        "created_bid_ids": [b.id for b in created],
        "skipped_team_ids": skipped,
        "round": round_no if created else round_no - 1,
        "delivered": delivered,
    }


async def reassign(
    db: AsyncSession,
    job_id: str,
    team_ids: list[str],
    reason: str,
    *,
    actor: str | None = None,
    notifier: Notifier | None = None,
    now: datetime | None = None,
) -> dict:
    """Widen the pool during bidding.  Existing bids are never touched."""
    if not reason or not reason.strip():
        raise ValidationError("A reason is required for re-assignment")

    job = await get_job(db, job_id)
    if job.status != JobStatus.BIDDING:
        raise InvalidStateError(
            f"Job {job.job_code} can only be re-assigned while bidding",
            current_status=job.status.value,
        )

    result = await notify_teams(
        db, job_id, team_ids, actor=actor, notifier=notifier, now=now,
    )
    await log_activity(
        db, actor, action="reassigned", entity_type="job",
        entity_id=job.id, entity_code=job.job_code,
        summary=reason.strip(),
        details={
            "added_team_ids": [t for t in team_ids if t not in result["skipped_team_ids"]],
            "round": result["round"],
        },
    )
    logger.info("Job %s re-assigned: %s", job.job_code, reason.strip())
    return result


# ── Team responses ─────────────────────────────────────────────


async def record_bid_response(
    db: AsyncSession,
    bid_id: str,
    decision: str,
    *,
    price: float | None = None,
    estimated_duration_hours: float | None = None,
    comments: str | None = None,
    actor: str | None = None,
    now: datetime | None = None,
) -> JobBid:
    """A team answers its notification: interested (with a price) or declined."""
    if decision not in (BidStatus.INTERESTED.value, BidStatus.DECLINED.value):
        raise ValidationError(f"Decision must be interested or declined, not {decision!r}")
    if decision == BidStatus.INTERESTED.value and (price is None or price <= 0):
        raise ValidationError("An interested bid needs a positive price per acre")

    bid = await get_bid(db, bid_id)
    job = await get_job(db, bid.job_id)
    if job.status != JobStatus.BIDDING:
        raise InvalidStateError(
            f"Job {job.job_code} is not open for bids",
            current_status=job.status.value,
        )

    interested = decision == BidStatus.INTERESTED.value
    # The job may leave bidding between the read above and this write
    still_bidding = exists().where(Job.id == bid.job_id, Job.status == JobStatus.BIDDING)
    result = await db.execute(
        update(JobBid)
        .where(JobBid.id == bid.id, JobBid.status == BidStatus.PENDING, still_bidding)
        .values(
            status=BidStatus(decision),
            bid_price_per_acre=price if interested else None,
            estimated_duration_hours=estimated_duration_hours,
            comments=comments,
            responded_at=now or utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    await db.refresh(bid)
    if result.rowcount != 1:
        if bid.status != BidStatus.PENDING:
            raise InvalidStateError(
                "This bid has already been answered",
                current_status=bid.status.value,
            )
        await db.refresh(job)
        raise InvalidStateError(
            f"Job {job.job_code} is not open for bids",
            current_status=job.status.value,
        )

    await log_activity(
        db, actor, action="bid_responded", entity_type="bid",
        entity_id=bid.id, entity_code=job.job_code,
        summary=f"Team {bid.team_id} {decision}",
        details={"bid_price_per_acre": bid.bid_price_per_acre},
    )
    logger.info(
        "Job %s: team %s %s%s",
        job.job_code, bid.team_id, decision,
        f" at {price:.2f}/acre" if interested else "",
    )
    return bid


# ── Board views ────────────────────────────────────────────────


def order_bids(bids: list[JobBid]) -> list[JobBid]:
    """Interested bids, cheapest first, earliest response breaking ties."""
    interested = [b for b in bids if b.status == BidStatus.INTERESTED]
    return sorted(
        interested,
        key=lambda b: (b.bid_price_per_acre, b.responded_at or datetime.max, b.id),
    )


async def rank_bids(db: AsyncSession, job_id: str) -> list[dict]:
    job = await get_job(db, job_id)
    bids = await list_bids(db, job_id)
    ranked = []
    for idx, bid in enumerate(order_bids(bids), start=1):
        margin = (
            round(job.your_price_per_acre - bid.bid_price_per_acre, 2)
            if job.your_price_per_acre else None
        )
        ranked.append({
            "rank": idx,
            "bid": bid,
            "team_name": bid.team.name if bid.team else "",
            "margin_per_acre": margin,
        })
    return ranked


async def bid_summary(db: AsyncSession, job_id: str) -> dict:
    bids = await list_bids(db, job_id)
    prices = [
        b.bid_price_per_acre for b in bids
        if b.status == BidStatus.INTERESTED and b.bid_price_per_acre is not None
    ]
    return {
        "total_bids": len(bids),
        "pending_bids": sum(1 for b in bids if b.status == BidStatus.PENDING),
        "interested_bids": sum(1 for b in bids if b.status == BidStatus.INTERESTED),
        "declined_bids": sum(1 for b in bids if b.status == BidStatus.DECLINED),
        "assigned_bids": sum(1 for b in bids if b.status == BidStatus.ASSIGNED),
        "lowest_price": min(prices) if prices else None,
        "highest_price": max(prices) if prices else None,
    }


# ── Exclusive finalize ─────────────────────────────────────────


def _state_error(job: Job) -> InvalidStateError:
    if job.status in FINALIZED_STATUSES:
        return AlreadyFinalizedError(job.id, current_status=job.status.value)
    return InvalidStateError(
        f"Job {job.job_code} is not in bidding",
        current_status=job.status.value,
    )


async def finalize(
    db: AsyncSession,
    job_id: str,
    bid_id: str,
    *,
    final_price: float | None = None,
    actor: str | None = None,
    now: datetime | None = None,
) -> Job:
    """Select ``bid_id`` as the job's winner.  At most one caller succeeds."""
    if final_price is not None and final_price <= 0:
        raise ValidationError("Final price must be positive")
    now = now or utcnow()

    job = await get_job(db, job_id)
    if job.status != JobStatus.BIDDING:
        raise _state_error(job)

    bid = await get_bid(db, bid_id)
    if bid.job_id != job.id:
        raise ValidationError(f"Bid {bid_id} does not belong to job {job.job_code}")
    if bid.status != BidStatus.INTERESTED:
        raise InvalidStateError(
            f"Only an interested bid can be finalized (bid is {bid.status.value})",
            current_status=bid.status.value,
        )

    price = final_price if final_price is not None else bid.bid_price_per_acre

    # Guard 1: the job moves out of bidding exactly once
    job_result = await db.execute(
        update(Job)
        .where(Job.id == job.id, Job.status == JobStatus.BIDDING)
        .values(
            status=JobStatus.FINALIZED,
            finalized_price=price,
            finalized_team_id=bid.team_id,
            finalized_at=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if job_result.rowcount != 1:
        await db.refresh(job)
        logger.warning(
            "Job %s: finalize of bid %s lost (job is %s)",
            job.job_code, bid.id, job.status.value,
        )
        raise _state_error(job)

    # Guard 2: one assigned bid per job, enforced by the partial unique index
    try:
        bid_result = await db.execute(
            update(JobBid)
            .where(JobBid.id == bid.id, JobBid.status == BidStatus.INTERESTED)
            .values(status=BidStatus.ASSIGNED, assigned_at=now)
            .execution_options(synchronize_session=False)
        )
    except IntegrityError:
        logger.warning("Job %s: second assigned bid rejected", job.job_code)
        raise AlreadyFinalizedError(job.id, current_status=JobStatus.FINALIZED.value)
    if bid_result.rowcount != 1:
        raise InvalidStateError(
            "Bid changed while finalizing; refresh and retry",
            current_status=bid.status.value,
        )

    await db.refresh(job)
    await db.refresh(bid)
    await log_activity(
        db, actor, action="finalized", entity_type="job",
        entity_id=job.id, entity_code=job.job_code,
        summary=f"Finalized team {bid.team_id} at {price:,.2f}/acre",
        details={"bid_id": bid.id, "team_id": bid.team_id, "finalized_price": price},
    )
    logger.info(
        "Job %s finalized: team %s at %.2f/acre", job.job_code, bid.team_id, price,
    )
    return job
