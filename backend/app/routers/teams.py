"""Labour team routes — onboarding, rates, performance and availability."""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.routers.deps import get_actor
from app.schemas.availability import AvailabilityCheckOut, IntervalCreate, IntervalOut
from app.schemas.common import PaginatedResponse
from app.schemas.team import (
    RateIn,
    RateOut,
    TeamCreate,
    TeamOut,
    TeamPerformanceOut,
    TeamUpdate,
)
from app.services import availability, teams

router = APIRouter()


# ── Teams ────────────────────────────────────────────────────

@router.post("/", response_model=TeamOut, status_code=status.HTTP_201_CREATED)
async def create_team(body: TeamCreate, db: AsyncSession = Depends(get_db)):
    return TeamOut.model_validate(await teams.create_team(db, body))


@router.get("/", response_model=PaginatedResponse[TeamOut])
async def list_teams(
    active_only: bool = Query(False),
    limit: int = Query(200, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    items, total = await teams.list_teams(
        db, active_only=active_only, limit=limit, offset=offset,
    )
    return PaginatedResponse(
        items=[TeamOut.model_validate(t) for t in items],
        total=total, limit=limit, offset=offset,
    )


@router.get("/{team_id}", response_model=TeamOut)
async def get_team(team_id: str, db: AsyncSession = Depends(get_db)):
    return TeamOut.model_validate(await teams.get_team(db, team_id))


@router.patch("/{team_id}", response_model=TeamOut)
async def update_team(team_id: str, body: TeamUpdate, db: AsyncSession = Depends(get_db)):
    return TeamOut.model_validate(await teams.update_team(db, team_id, body))


@router.put("/{team_id}/rates", response_model=RateOut)
async def set_rate(team_id: str, body: RateIn, db: AsyncSession = Depends(get_db)):
    await teams.get_team(db, team_id)
    rate = await teams.set_team_rate(db, team_id, body.activity_id, body.rate_per_acre)
    return RateOut.model_validate(rate)


@router.delete("/{team_id}/rates/{activity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_rate(team_id: str, activity_id: str, db: AsyncSession = Depends(get_db)):
    await teams.remove_team_rate(db, team_id, activity_id)


@router.get("/{team_id}/performance", response_model=TeamPerformanceOut)
async def performance(team_id: str, db: AsyncSession = Depends(get_db)):
    history = await teams.team_performance(db, team_id)
    return TeamPerformanceOut(
        team_id=team_id,
        total_notified=history.total_notified,
        total_interested=history.total_interested,
        won=history.won,
        completed=history.completed,
        win_rate=round(history.win_rate, 4),
        avg_bid_price=history.avg_bid_price,
    )


# ── Availability ─────────────────────────────────────────────

@router.get("/{team_id}/availability", response_model=list[IntervalOut])
async def list_intervals(
    team_id: str,
    start: date | None = Query(None, alias="from"),
    end: date | None = Query(None, alias="to"),
    db: AsyncSession = Depends(get_db),
):
    await teams.get_team(db, team_id)
    intervals = await availability.list_intervals(db, team_id, start, end)
    return [IntervalOut.model_validate(i) for i in intervals]


@router.post(
    "/{team_id}/availability",
    response_model=list[IntervalOut],
    status_code=status.HTTP_201_CREATED,
)
async def add_interval(
    team_id: str,
    body: IntervalCreate,
    db: AsyncSession = Depends(get_db),
    actor: str | None = Depends(get_actor),
):
    created = await availability.add_availability_interval(
        db, team_id, body.start_date, body.end_date, body.status,
        leader_name=body.leader_name,
        leader_phone=body.leader_phone,
        notes=body.notes,
        actor=actor,
    )
    return [IntervalOut.model_validate(i) for i in created]


@router.post("/availability/{interval_id}/split", response_model=list[IntervalOut])
async def split_interval(
    interval_id: str,
    body: IntervalCreate,
    db: AsyncSession = Depends(get_db),
    actor: str | None = Depends(get_actor),
):
    created = await availability.split_interval_by_id(
        db, interval_id, body.start_date, body.end_date, body.status,
        leader_name=body.leader_name,
        leader_phone=body.leader_phone,
        notes=body.notes,
        actor=actor,
    )
    return [IntervalOut.model_validate(i) for i in created]


@router.delete("/availability/{interval_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_interval(interval_id: str, db: AsyncSession = Depends(get_db)):
    await availability.delete_interval(db, interval_id)


@router.get("/{team_id}/availability/check", response_model=AvailabilityCheckOut)
async def check_availability(
    team_id: str,
    start: date = Query(...),
    end: date | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    await teams.get_team(db, team_id)
    ok = await availability.team_is_available(db, team_id, start, end)
    return AvailabilityCheckOut(
        team_id=team_id, start_date=start, end_date=end or start, is_available=ok,
    )
