"""Labour team (mukadam) management and derived performance counters.

Rates are the team's configuration: a team performs exactly the
activities it has a rate for.  Deactivating a team removes it from all
future recommendation and notification; existing bids are untouched.
"""

from __future__ import annotations

import logging

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.middleware.exceptions import ResourceNotFoundError, ValidationError
from app.models.activity import Activity
from app.models.bid import BidStatus, JobBid
from app.models.job import Job, JobStatus
from app.models.labour_team import LabourTeam, TeamActivityRate
from app.schemas.team import TeamCreate, TeamUpdate
from app.services.availability import create_default_interval
from app.services.scoring import TeamHistory

logger = logging.getLogger(__name__)


async def get_team(db: AsyncSession, team_id: str) -> LabourTeam:
    team = (
        await db.execute(select(LabourTeam).where(LabourTeam.id == team_id))
    ).scalar_one_or_none()
    if not team:
        raise ResourceNotFoundError("Labour team", team_id)
    return team


async def _ensure_activity(db: AsyncSession, activity_id: str) -> Activity:
    activity = (
        await db.execute(select(Activity).where(Activity.id == activity_id))
    ).scalar_one_or_none()
    if not activity:
        raise ValidationError(f"Unknown activity: {activity_id}")
    return activity


async def create_team(db: AsyncSession, body: TeamCreate) -> LabourTeam:
    """Onboard a team with its rates and (optionally) a default availability window."""
    team = LabourTeam(
        name=body.name,
        phone=body.phone,
        location=body.location,
        number_of_labourers=body.number_of_labourers,
        is_active=body.is_active,
        notes=body.notes,
    )
    db.add(team)
    await db.flush()

    for rate in body.rates:
        await set_team_rate(db, team.id, rate.activity_id, rate.rate_per_acre)

    if body.available_from and body.available_to:
        await create_default_interval(db, team, body.available_from, body.available_to)

    await db.refresh(team)
    logger.info("Onboarded team %s (%s) with %d rate(s)", team.name, team.id, len(body.rates))
    return team


async def update_team(db: AsyncSession, team_id: str, body: TeamUpdate) -> LabourTeam:
    team = await get_team(db, team_id)
    updates = body.model_dump(exclude_unset=True)
    for key, value in updates.items():
        setattr(team, key, value)
    await db.flush()
    await db.refresh(team)
    if updates.get("is_active") is False:
        logger.info("Team %s deactivated", team.id)
    return team


async def list_teams(
    db: AsyncSession,
    *,
    active_only: bool = False,
    limit: int = 200,
    offset: int = 0,
) -> tuple[list[LabourTeam], int]:
    count_stmt = select(func.count(LabourTeam.id))
    items_stmt = select(LabourTeam).order_by(LabourTeam.name, LabourTeam.id)
    if active_only:
        count_stmt = count_stmt.where(LabourTeam.is_active == True)  # noqa: E712
        items_stmt = items_stmt.where(LabourTeam.is_active == True)  # noqa: E712
    total = await db.scalar(count_stmt) or 0
    result = await db.execute(items_stmt.limit(limit).offset(offset))
    return list(result.scalars().all()), total


async def set_team_rate(
    db: AsyncSession,
    team_id: str,
    activity_id: str,
    rate_per_acre: float,
) -> TeamActivityRate:
    """Create or replace the team's rate for an activity."""
    if rate_per_acre is None or rate_per_acre <= 0:
        raise ValidationError("Rate per acre must be positive")
    await _ensure_activity(db, activity_id)

    existing = (
        await db.execute(
            select(TeamActivityRate).where(
                TeamActivityRate.team_id == team_id,
                TeamActivityRate.activity_id == activity_id,
            )
        )
    ).scalar_one_or_none()
    if existing:
        existing.rate_per_acre = rate_per_acre
        await db.flush()
        return existing

    rate = TeamActivityRate(
        team_id=team_id, activity_id=activity_id, rate_per_acre=rate_per_acre
    )
    db.add(rate)
    await db.flush()
    return rate


async def remove_team_rate(db: AsyncSession, team_id: str, activity_id: str) -> None:
    rate = (
        await db.execute(
            select(TeamActivityRate).where(
                TeamActivityRate.team_id == team_id,
                TeamActivityRate.activity_id == activity_id,
            )
        )
    ).scalar_one_or_none()
    if not rate:
        raise ResourceNotFoundError("Team rate", f"{team_id}/{activity_id}")
    await db.delete(rate)
    await db.flush()


# ── Performance ────────────────────────────────────────────────


async def team_histories(db: AsyncSession, team_ids: list[str]) -> dict[str, TeamHistory]:
    """Derived counters for many teams in two grouped queries."""
    if not team_ids:
        return {}
    histories = {tid: TeamHistory() for tid in team_ids}

    bid_rows = await db.execute(
        select(
            JobBid.team_id,
            func.count(JobBid.id).label("notified"),
            func.sum(case(
                (JobBid.status.in_([BidStatus.INTERESTED, BidStatus.ASSIGNED]), 1),
                else_=0,
            )).label("interested"),
            func.sum(case((JobBid.status == BidStatus.ASSIGNED, 1), else_=0)).label("won"),
            func.avg(JobBid.bid_price_per_acre).label("avg_price"),
        )
        .where(JobBid.team_id.in_(team_ids))
        .group_by(JobBid.team_id)
    )
    for row in bid_rows.all():
        h = histories[row.team_id]
        h.total_notified = int(row.notified or 0)
        h.total_interested = int(row.interested or 0)
        h.won = int(row.won or 0)
        h.avg_bid_price = float(row.avg_price) if row.avg_price is not None else None

    completed_rows = await db.execute(
        select(Job.finalized_team_id, func.count(Job.id).label("completed"))
        .where(
            Job.finalized_team_id.in_(team_ids),
            Job.status == JobStatus.COMPLETED,
        )
        .group_by(Job.finalized_team_id)
    )
    for row in completed_rows.all():
        histories[row.finalized_team_id].completed = int(row.completed or 0)

    return histories


async def team_performance(db: AsyncSession, team_id: str) -> TeamHistory:
    await get_team(db, team_id)
    return (await team_histories(db, [team_id]))[team_id]
