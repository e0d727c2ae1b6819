"""Aggregate model imports for Alembic auto-detection."""

from app.models.activity import Activity  # noqa: F401
from app.models.labour_team import LabourTeam, TeamActivityRate  # noqa: F401
from app.models.availability import AvailabilityInterval, AvailabilityStatus  # noqa: F401
from app.models.job import Job, JobStatus  # noqa: F401
from app.models.bid import BidStatus, JobBid  # noqa: F401
from app.models.job_completion import JobCompletion  # noqa: F401
from app.models.payment_record import PaymentRecord  # noqa: F401
from app.models.activity_log import ActivityLog  # noqa: F401
