"""Sequential job code generation.

Format: JOB-{date}-{seq:3}, where the sequence resets daily.
"""

from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.job import Job

JOB_PREFIX = "JOB"


def _build_prefix(today: date) -> str:
    return f"{JOB_PREFIX}-{today.strftime('%Y%m%d')}-"


async def generate_job_code(db: AsyncSession, today: date | None = None) -> str:
    """Generate the next job code for ``today``, e.g. "JOB-20260219-001"."""
    prefix = _build_prefix(today or date.today())
    result = await db.execute(
        select(func.count(Job.id)).where(Job.job_code.like(f"{prefix}%"))
    )
    count = result.scalar() or 0
    return f"{prefix}{count + 1:03d}"
