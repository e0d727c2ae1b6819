"""Job routes — lifecycle transitions, recommendations and the bid board."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.job import Job, JobStatus
from app.routers.deps import get_actor
from app.schemas.bid import BidOut, BidSummaryOut, RankedBidOut
from app.schemas.common import PaginatedResponse
from app.schemas.job import (
    CancelRequest,
    CandidateOut,
    CostEstimate,
    FinalizeRequest,
    JobCompletionCreate,
    JobCreate,
    JobOut,
    NotifyRequest,
    NotifyResultOut,
    PriceRequest,
    ReassignRequest,
)
from app.services import bidding, lifecycle, ranking

router = APIRouter()


def _notify_out(result: dict) -> NotifyResultOut:
    return NotifyResultOut(
        job=JobOut.model_validate(result["job"]),
        created_bid_ids=result["created_bid_ids"],
        skipped_team_ids=result["skipped_team_ids"],
        round=result["round"],
        delivered=result["delivered"],
    )


# ── CRUD ─────────────────────────────────────────────────────

@router.post("/", response_model=JobOut, status_code=status.HTTP_201_CREATED)
async def create_job(
    body: JobCreate,
    db: AsyncSession = Depends(get_db),
    actor: str | None = Depends(get_actor),
):
    job = await lifecycle.create_job(db, body, actor)
    return JobOut.model_validate(job)


@router.get("/", response_model=PaginatedResponse[JobOut])
async def list_jobs(
    status_filter: JobStatus | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    count_stmt = select(func.count(Job.id))
    items_stmt = select(Job).order_by(Job.created_at.desc(), Job.id)
    if status_filter is not None:
        count_stmt = count_stmt.where(Job.status == status_filter)
        items_stmt = items_stmt.where(Job.status == status_filter)

    total = await db.scalar(count_stmt) or 0
    result = await db.execute(items_stmt.limit(limit).offset(offset))
    items = [JobOut.model_validate(j) for j in result.scalars().all()]
    return PaginatedResponse(items=items, total=total, limit=limit, offset=offset)


@router.get("/{job_id}", response_model=JobOut)
async def get_job(job_id: str, db: AsyncSession = Depends(get_db)):
    return JobOut.model_validate(await lifecycle.get_job(db, job_id))


# ── Transitions ──────────────────────────────────────────────

@router.post("/{job_id}/confirm", response_model=JobOut)
async def confirm_job(
    job_id: str,
    db: AsyncSession = Depends(get_db),
    actor: str | None = Depends(get_actor),
):
    return JobOut.model_validate(await lifecycle.confirm_job(db, job_id, actor=actor))


@router.post("/{job_id}/price", response_model=JobOut)
async def set_price(
    job_id: str,
    body: PriceRequest,
    db: AsyncSession = Depends(get_db),
    actor: str | None = Depends(get_actor),
):
    job = await lifecycle.set_price(db, job_id, body.your_price_per_acre, actor=actor)
    return JobOut.model_validate(job)


@router.get("/{job_id}/recommendations", response_model=list[CandidateOut])
async def recommendations(job_id: str, db: AsyncSession = Depends(get_db)):
    ranked = await ranking.rank_candidates(db, job_id)
    return [
        CandidateOut(
            team_id=c.team_id,
            team_name=c.team_name,
            score=c.score,
            is_available=c.is_available,
            already_notified=c.already_notified,
            reasons=c.reasons,
            flags=c.flags,
            cost_estimate=CostEstimate(**c.cost_estimate),
        )
        for c in ranked
    ]


@router.post("/{job_id}/notify", response_model=NotifyResultOut)
async def notify_teams(
    job_id: str,
    body: NotifyRequest,
    db: AsyncSession = Depends(get_db),
    actor: str | None = Depends(get_actor),
):
    result = await bidding.notify_teams(db, job_id, body.team_ids, actor=actor)
    return _notify_out(result)


@router.post("/{job_id}/reassign", response_model=NotifyResultOut)
async def reassign(
    job_id: str,
    body: ReassignRequest,
    db: AsyncSession = Depends(get_db),
    actor: str | None = Depends(get_actor),
):
    result = await bidding.reassign(db, job_id, body.team_ids, body.reason, actor=actor)
    return _notify_out(result)


@router.post("/{job_id}/finalize", response_model=JobOut)
async def finalize(
    job_id: str,
    body: FinalizeRequest,
    db: AsyncSession = Depends(get_db),
    actor: str | None = Depends(get_actor),
):
    job = await bidding.finalize(
        db, job_id, body.bid_id, final_price=body.final_price, actor=actor,
    )
    return JobOut.model_validate(job)


@router.post("/{job_id}/start", response_model=JobOut)
async def start_work(
    job_id: str,
    db: AsyncSession = Depends(get_db),
    actor: str | None = Depends(get_actor),
):
    return JobOut.model_validate(await lifecycle.start_work(db, job_id, actor=actor))


@router.post("/{job_id}/complete", response_model=JobOut)
async def complete_work(
    job_id: str,
    body: JobCompletionCreate,
    db: AsyncSession = Depends(get_db),
    actor: str | None = Depends(get_actor),
):
    return JobOut.model_validate(await lifecycle.complete_work(db, job_id, body, actor=actor))


@router.post("/{job_id}/cancel", response_model=JobOut)
async def cancel_job(
    job_id: str,
    body: CancelRequest,
    db: AsyncSession = Depends(get_db),
    actor: str | None = Depends(get_actor),
):
    return JobOut.model_validate(await lifecycle.cancel_job(db, job_id, body.reason, actor=actor))


# ── Bid board ────────────────────────────────────────────────

@router.get("/{job_id}/bids", response_model=list[BidOut])
async def list_bids(job_id: str, db: AsyncSession = Depends(get_db)):
    return [BidOut.model_validate(b) for b in await bidding.list_bids(db, job_id)]


@router.get("/{job_id}/bids/ranking", response_model=list[RankedBidOut])
async def rank_bids(job_id: str, db: AsyncSession = Depends(get_db)):
    ranked = await bidding.rank_bids(db, job_id)
    return [
        RankedBidOut(
            rank=r["rank"],
            bid=BidOut.model_validate(r["bid"]),
            team_name=r["team_name"],
            margin_per_acre=r["margin_per_acre"],
        )
        for r in ranked
    ]


@router.get("/{job_id}/bids/summary", response_model=BidSummaryOut)
async def bid_summary(job_id: str, db: AsyncSession = Depends(get_db)):
    return BidSummaryOut(**await bidding.bid_summary(db, job_id))
