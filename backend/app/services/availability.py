"""Team availability calendar — non-overlapping date intervals per team.

Each team owns a set of closed ``[start, end]`` intervals tagged
available / busy / on_leave.  New intervals either land in a gap, or
are carved out of exactly one existing interval by splitting it:

    original  [Jan 1 ──────────────────────────── Jan 31]  available
    new range            [Jan 10 ── Jan 15]                on_leave
    result    [Jan 1 ─ Jan 9][Jan 10 ── Jan 15][Jan 16 ─ Jan 31]

The before/after slices inherit the original's status and leader
details; zero-length slices are never emitted.  A range that straddles
an interval boundary is rejected with OutOfBoundsError and nothing
changes.

``split_interval`` and ``is_available`` are pure and work on anything
shaped like an AvailabilityInterval (start_date, end_date, status,
leader_name, leader_phone, notes).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.middleware.exceptions import (
    OutOfBoundsError,
    ResourceNotFoundError,
    ValidationError,
)
from app.models.availability import AvailabilityInterval, AvailabilityStatus
from app.models.labour_team import LabourTeam
from app.utils.activity import log_activity

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


# ── Pure interval algebra ──────────────────────────────────────


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    @classmethod
    def of(cls, start: date, end: date | None = None) -> "DateRange":
        """Build a range, treating a missing end as a single day."""
        rng = cls(start, end if end is not None else start)
        if rng.start > rng.end:
            raise ValidationError(
                f"Start date {rng.start.isoformat()} is after end date {rng.end.isoformat()}"
            )
        return rng

    def overlaps(self, start: date, end: date) -> bool:
        return self.start <= end and self.end >= start

    def within(self, start: date, end: date) -> bool:
        return start <= self.start and self.end <= end


@dataclass
class IntervalSlice:
    """An interval not yet persisted; one piece of a split."""
    start_date: date
    end_date: date
    status: AvailabilityStatus
    leader_name: str | None = None
    leader_phone: str | None = None
    notes: str | None = None


def split_interval(
    original,
    new_range: DateRange,
    new_status: AvailabilityStatus,
    *,
    leader_name: str | None = None,
    leader_phone: str | None = None,
    notes: str | None = None,
) -> list[IntervalSlice]:
    """Carve ``new_range`` out of ``original`` and return the 1–3 slices.

    Raises OutOfBoundsError if ``new_range`` is not fully inside
    ``[original.start_date, original.end_date]``.
    """
    if not new_range.within(original.start_date, original.end_date):
        raise OutOfBoundsError(
            f"Range {new_range.start.isoformat()} → {new_range.end.isoformat()} is not "
            f"inside interval {original.start_date.isoformat()} → "
            f"{original.end_date.isoformat()}"
        )

    slices: list[IntervalSlice] = []

    if new_range.start > original.start_date:
        slices.append(IntervalSlice(
            start_date=original.start_date,
            end_date=new_range.start - ONE_DAY,
            status=original.status,
            leader_name=original.leader_name,
            leader_phone=original.leader_phone,
            notes=original.notes,
        ))

    slices.append(IntervalSlice(
        start_date=new_range.start,
        end_date=new_range.end,
        status=new_status,
        leader_name=leader_name if leader_name is not None else original.leader_name,
        leader_phone=leader_phone if leader_phone is not None else original.leader_phone,
        notes=notes,
    ))

    if new_range.end < original.end_date:
        slices.append(IntervalSlice(
            start_date=new_range.end + ONE_DAY,
            end_date=original.end_date,
            status=original.status,
            leader_name=original.leader_name,
            leader_phone=original.leader_phone,
            notes=original.notes,
        ))

    return slices


def find_overlaps(intervals) -> list[tuple]:
    """Return every pair of intervals whose ranges overlap (should be empty)."""
    ordered = sorted(intervals, key=lambda i: (i.start_date, i.end_date))
    clashes = []
    for idx, current in enumerate(ordered):
        for later in ordered[idx + 1:]:
            if later.start_date > current.end_date:
                break
            clashes.append((current, later))
    return clashes


def is_available(intervals, start: date, end: date | None = None) -> bool:
    """True iff some ``available`` interval overlaps the query range."""
    query = DateRange.of(start, end)
    return any(
        i.status == AvailabilityStatus.AVAILABLE
        and query.overlaps(i.start_date, i.end_date)
        for i in intervals
    )


# ── Persistence ────────────────────────────────────────────────


async def _get_team(db: AsyncSession, team_id: str) -> LabourTeam:
    team = (
        await db.execute(select(LabourTeam).where(LabourTeam.id == team_id))
    ).scalar_one_or_none()
    if not team:
        raise ResourceNotFoundError("Labour team", team_id)
    return team


async def list_intervals(
    db: AsyncSession,
    team_id: str,
    start: date | None = None,
    end: date | None = None,
) -> list[AvailabilityInterval]:
    """List a team's intervals in date order, optionally clipped to a window."""
    stmt = select(AvailabilityInterval).where(AvailabilityInterval.team_id == team_id)
    if start is not None:
        stmt = stmt.where(AvailabilityInterval.end_date >= start)
    if end is not None:
        stmt = stmt.where(AvailabilityInterval.start_date <= end)
    result = await db.execute(stmt.order_by(AvailabilityInterval.start_date))
    return list(result.scalars().all())


async def create_default_interval(
    db: AsyncSession,
    team: LabourTeam,
    start: date,
    end: date,
) -> AvailabilityInterval:
    """Onboarding: a single ``available`` interval for a brand-new team."""
    rng = DateRange.of(start, end)
    interval = AvailabilityInterval(
        team_id=team.id,
        start_date=rng.start,
        end_date=rng.end,
        status=AvailabilityStatus.AVAILABLE,
        leader_name=team.name,
        leader_phone=team.phone,
    )
    db.add(interval)
    await db.flush()
    return interval


async def _replace_with_slices(
    db: AsyncSession,
    original: AvailabilityInterval,
    slices: list[IntervalSlice],
) -> list[AvailabilityInterval]:
    team_id = original.team_id
    await db.delete(original)
    await db.flush()

    created = []
    for s in slices:
        interval = AvailabilityInterval(
            team_id=team_id,
            start_date=s.start_date,
            end_date=s.end_date,
            status=s.status,
            leader_name=s.leader_name,
            leader_phone=s.leader_phone,
            notes=s.notes,
        )
        db.add(interval)
        created.append(interval)
    await db.flush()
    return created


async def add_availability_interval(
    db: AsyncSession,
    team_id: str,
    start: date,
    end: date,
    status: AvailabilityStatus,
    *,
    leader_name: str | None = None,
    leader_phone: str | None = None,
    notes: str | None = None,
    actor: str | None = None,
) -> list[AvailabilityInterval]:
    """Declare a status for ``[start, end]`` and return the intervals it produced.

    - Range in a gap → inserted as a single interval.
    - Range inside one existing interval → that interval is split.
    - Range straddling an interval boundary → OutOfBoundsError.
    """
    team = await _get_team(db, team_id)
    rng = DateRange.of(start, end)

    # Lock every interval the new range touches
    result = await db.execute(
        select(AvailabilityInterval).where(
            AvailabilityInterval.team_id == team.id,
            AvailabilityInterval.start_date <= rng.end,
            AvailabilityInterval.end_date >= rng.start,
        ).with_for_update()
    )
    touching = list(result.scalars().all())

    if not touching:
        interval = AvailabilityInterval(
            team_id=team.id,
            start_date=rng.start,
            end_date=rng.end,
            status=status,
            leader_name=leader_name,
            leader_phone=leader_phone,
            notes=notes,
        )
        db.add(interval)
        await db.flush()
        logger.info(
            "Team %s: added %s interval %s → %s",
            team.id, status.value, rng.start, rng.end,
        )
        return [interval]

    if len(touching) > 1:
        raise OutOfBoundsError(
            f"Range {rng.start.isoformat()} → {rng.end.isoformat()} spans "
            f"{len(touching)} existing intervals; pick a range inside one of them"
        )

    return await _split_and_log(
        db, touching[0], rng, status,
        leader_name=leader_name, leader_phone=leader_phone, notes=notes, actor=actor,
    )


async def split_interval_by_id(
    db: AsyncSession,
    interval_id: str,
    start: date,
    end: date,
    status: AvailabilityStatus,
    *,
    leader_name: str | None = None,
    leader_phone: str | None = None,
    notes: str | None = None,
    actor: str | None = None,
) -> list[AvailabilityInterval]:
    """Split a named interval (the "edit slot" flow)."""
    original = (
        await db.execute(
            select(AvailabilityInterval)
            .where(AvailabilityInterval.id == interval_id)
            .with_for_update()
        )
    ).scalar_one_or_none()
    if not original:
        raise ResourceNotFoundError("Availability interval", interval_id)

    return await _split_and_log(
        db, original, DateRange.of(start, end), status,
        leader_name=leader_name, leader_phone=leader_phone, notes=notes, actor=actor,
    )


async def _split_and_log(
    db: AsyncSession,
    original: AvailabilityInterval,
    rng: DateRange,
    status: AvailabilityStatus,
    *,
    leader_name: str | None,
    leader_phone: str | None,
    notes: str | None,
    actor: str | None,
) -> list[AvailabilityInterval]:
    slices = split_interval(
        original, rng, status,
        leader_name=leader_name, leader_phone=leader_phone, notes=notes,
    )
    before = f"{original.start_date} → {original.end_date} ({original.status.value})"
    team_id = original.team_id
    created = await _replace_with_slices(db, original, slices)

    await log_activity(
        db, actor,
        action="availability_split",
        entity_type="availability",
        entity_id=team_id,
        summary=f"Split {before} into {len(created)} interval(s)",
        details={
            "range": [rng.start.isoformat(), rng.end.isoformat()],
            "status": status.value,
        },
    )
    logger.info("Team %s: split %s into %d interval(s)", team_id, before, len(created))
    return created


async def delete_interval(db: AsyncSession, interval_id: str) -> None:
    interval = (
        await db.execute(
            select(AvailabilityInterval).where(AvailabilityInterval.id == interval_id)
        )
    ).scalar_one_or_none()
    if not interval:
        raise ResourceNotFoundError("Availability interval", interval_id)
    await db.delete(interval)
    await db.flush()


async def team_is_available(
    db: AsyncSession,
    team_id: str,
    start: date,
    end: date | None = None,
) -> bool:
    rng = DateRange.of(start, end)
    intervals = await list_intervals(db, team_id, rng.start, rng.end)
    return is_available(intervals, rng.start, rng.end)
