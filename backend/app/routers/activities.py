"""Activity catalogue routes — create and list."""

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.middleware.exceptions import ValidationError
from app.models.activity import Activity
from app.schemas.activity import ActivityCreate, ActivityOut

router = APIRouter()


@router.post("/", response_model=ActivityOut, status_code=status.HTTP_201_CREATED)
async def create_activity(body: ActivityCreate, db: AsyncSession = Depends(get_db)):
    existing = await db.scalar(select(Activity.id).where(Activity.name == body.name))
    if existing:
        raise ValidationError(f"Activity already exists: {body.name}")
    activity = Activity(**body.model_dump())
    db.add(activity)
    await db.flush()
    await db.refresh(activity)
    return ActivityOut.model_validate(activity)


@router.get("/", response_model=list[ActivityOut])
async def list_activities(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Activity).order_by(Activity.name))
    return [ActivityOut.model_validate(a) for a in result.scalars().all()]
