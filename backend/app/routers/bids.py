"""Bid routes — a team records its response to a notification."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.routers.deps import get_actor
from app.schemas.bid import BidOut, BidResponseRequest
from app.services import bidding

router = APIRouter()


@router.get("/{bid_id}", response_model=BidOut)
async def get_bid(bid_id: str, db: AsyncSession = Depends(get_db)):
    return BidOut.model_validate(await bidding.get_bid(db, bid_id))


@router.post("/{bid_id}/respond", response_model=BidOut)
async def respond(
    bid_id: str,
    body: BidResponseRequest,
    db: AsyncSession = Depends(get_db),
    actor: str | None = Depends(get_actor),
):
    bid = await bidding.record_bid_response(
        db,
        bid_id,
        body.decision,
        price=body.bid_price_per_acre,
        estimated_duration_hours=body.estimated_duration_hours,
        comments=body.comments,
        actor=actor,
    )
    return BidOut.model_validate(bid)
