"""Recommendation ranking — which teams to offer a job to.

Candidates are every active team with a rate for the job's activity,
minus teams that already declined this job.  Each is scored by
app.services.scoring and ordered by (score desc, team id asc), so two
calls over the same snapshot return the same order.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.middleware.exceptions import InvalidStateError, ValidationError
from app.models.availability import AvailabilityInterval
from app.models.bid import BidStatus, JobBid
from app.models.job import Job, JobStatus
from app.models.labour_team import LabourTeam, TeamActivityRate
from app.services.lifecycle import get_job
from app.services.scoring import CandidateScore, ScoringWeights, score_candidate
from app.services.teams import team_histories

logger = logging.getLogger("workcrop.ranking")

RANKABLE_STATUSES = frozenset({JobStatus.PRICED, JobStatus.NOTIFIED, JobStatus.BIDDING})


def rank(scores: list[CandidateScore]) -> list[CandidateScore]:
    return sorted(scores, key=lambda s: (-s.score, s.team_id))


async def comparable_rates(db: AsyncSession, activity_id: str) -> list[float]:
    """Configured rates of active teams plus recent finalized prices."""
    configured = await db.execute(
        select(TeamActivityRate.rate_per_acre)
        .join(LabourTeam, LabourTeam.id == TeamActivityRate.team_id)
        .where(
            TeamActivityRate.activity_id == activity_id,
            LabourTeam.is_active == True,  # noqa: E712
        )
    )
    finalized = await db.execute(
        select(Job.finalized_price)
        .where(
            Job.activity_id == activity_id,
            Job.finalized_price.is_not(None),
        )
        .order_by(Job.finalized_at.desc(), Job.id)
        .limit(settings.comparable_rate_window)
    )
    return list(configured.scalars().all()) + list(finalized.scalars().all())


async def rank_candidates(
    db: AsyncSession,
    job_id: str,
    weights: ScoringWeights | None = None,
) -> list[CandidateScore]:
    job = await get_job(db, job_id)
    if job.status not in RANKABLE_STATUSES:
        raise InvalidStateError(
            f"Job {job.job_code} is not open for assignment",
            current_status=job.status.value,
        )
    if not job.activity_id:
        raise ValidationError(f"Job {job.job_code} has no activity")

    rows = (
        await db.execute(
            select(LabourTeam, TeamActivityRate.rate_per_acre)
            .join(TeamActivityRate, TeamActivityRate.team_id == LabourTeam.id)
            .where(
                TeamActivityRate.activity_id == job.activity_id,
                LabourTeam.is_active == True,  # noqa: E712
            )
            .order_by(LabourTeam.id)
        )
    ).all()

    bids = (
        await db.execute(select(JobBid.team_id, JobBid.status).where(JobBid.job_id == job.id))
    ).all()
    declined = {b.team_id for b in bids if b.status == BidStatus.DECLINED}
    notified = {b.team_id for b in bids}

    candidates = [(team, rate) for team, rate in rows if team.id not in declined]
    if not candidates:
        return []

    team_ids = [team.id for team, _ in candidates]
    histories = await team_histories(db, team_ids)
    rates = await comparable_rates(db, job.activity_id)

    intervals: dict[str, list[AvailabilityInterval]] = {tid: [] for tid in team_ids}
    if job.requested_date is not None:
        result = await db.execute(
            select(AvailabilityInterval).where(
                AvailabilityInterval.team_id.in_(team_ids),
                AvailabilityInterval.start_date <= job.requested_date,
                AvailabilityInterval.end_date >= job.requested_date,
            )
        )
        for interval in result.scalars().all():
            intervals[interval.team_id].append(interval)

    w = weights or ScoringWeights.from_settings()
    scores: list[CandidateScore] = []
    for team, rate in candidates:
        scored = score_candidate(
            job, team, rate, intervals[team.id], histories[team.id], rates, w,
        )
        if scored is None:
            continue
        scored.already_notified = team.id in notified
        scores.append(scored)

    ranked = rank(scores)
    logger.info(
        "Job %s: ranked %d candidate(s), %d declined excluded",
        job.job_code, len(ranked), len(declined),
    )
    return ranked
