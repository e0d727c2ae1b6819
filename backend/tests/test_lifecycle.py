"""Job lifecycle: guarded, monotonic status transitions."""

from datetime import date

import pytest
from sqlalchemy import select

from app.middleware.exceptions import InvalidStateError, ValidationError
from app.models.activity_log import ActivityLog
from app.models.job import JobStatus
from app.models.job_completion import JobCompletion
from app.schemas.job import JobCompletionCreate, JobCreate
from app.services import bidding, lifecycle
from app.services.lifecycle import can_transition


@pytest.mark.unit
class TestTransitionTable:

    def test_happy_path_is_allowed(self):
        path = [
            JobStatus.PENDING, JobStatus.CONFIRMED, JobStatus.PRICED,
            JobStatus.BIDDING, JobStatus.FINALIZED, JobStatus.IN_PROGRESS,
            JobStatus.COMPLETED,
        ]
        for current, target in zip(path, path[1:]):
            assert can_transition(current, target)

    def test_no_skipping_or_going_back(self):
        assert not can_transition(JobStatus.PENDING, JobStatus.PRICED)
        assert not can_transition(JobStatus.FINALIZED, JobStatus.BIDDING)
        assert not can_transition(JobStatus.COMPLETED, JobStatus.IN_PROGRESS)

    def test_cancel_from_every_non_terminal_state(self):
        for status in JobStatus:
            expected = status not in (JobStatus.COMPLETED, JobStatus.CANCELLED)
            assert can_transition(status, JobStatus.CANCELLED) is expected


@pytest.mark.integration
@pytest.mark.asyncio
class TestLifecycle:

    async def test_create_assigns_daily_job_code(self, db_session, pruning):
        first = await lifecycle.create_job(db_session, JobCreate(activity_id=pruning.id))
        second = await lifecycle.create_job(db_session, JobCreate(activity_id=pruning.id))
        today = date.today().strftime("%Y%m%d")
        assert first.job_code == f"JOB-{today}-001"
        assert second.job_code == f"JOB-{today}-002"
        assert first.status == JobStatus.PENDING

    async def test_confirm_requires_all_request_fields(self, db_session, pruning):
        job = await lifecycle.create_job(db_session, JobCreate(
            activity_id=pruning.id, farm_size_acres=5,
        ))
        with pytest.raises(ValidationError) as exc:
            await lifecycle.confirm_job(db_session, job.id)
        assert set(exc.value.details["missing"]) == {
            "farmer_id", "requested_date", "farmer_price_per_acre",
        }
        await db_session.refresh(job)
        assert job.status == JobStatus.PENDING

    async def test_set_price_moves_confirmed_to_priced(self, db_session, make_job):
        job = await make_job(your_price=None)
        assert job.status == JobStatus.CONFIRMED

        await lifecycle.set_price(db_session, job.id, 900)
        assert job.status == JobStatus.PRICED
        assert job.your_price_per_acre == 900
        assert job.priced_at is not None

    async def test_set_price_rejects_non_positive(self, db_session, make_job):
        job = await make_job(your_price=None)
        with pytest.raises(ValidationError):
            await lifecycle.set_price(db_session, job.id, 0)

    async def test_set_price_twice_is_invalid_state(self, db_session, make_job):
        job = await make_job()
        with pytest.raises(InvalidStateError) as exc:
            await lifecycle.set_price(db_session, job.id, 950)
        assert exc.value.current_status == "priced"
        assert job.your_price_per_acre == 900

    async def test_start_requires_finalized(self, db_session, make_job):
        job = await make_job()
        with pytest.raises(InvalidStateError):
            await lifecycle.start_work(db_session, job.id)
        assert job.status == JobStatus.PRICED

    async def test_cancel_records_reason(self, db_session, make_job):
        job = await make_job()
        await lifecycle.cancel_job(db_session, job.id, "Farmer postponed")
        assert job.status == JobStatus.CANCELLED
        assert job.cancellation_reason == "Farmer postponed"

        logs = (await db_session.execute(
            select(ActivityLog).where(
                ActivityLog.entity_id == job.id, ActivityLog.action == "cancelled",
            )
        )).scalars().all()
        assert [log.summary for log in logs] == ["Farmer postponed"]

    async def test_cancel_after_finalize_drops_agreed_price(self, db_session, make_team, make_job):
        team = await make_team("A")
        job = await make_job()
        await bidding.notify_teams(db_session, job.id, [team.id])
        (bid,) = await bidding.list_bids(db_session, job.id)
        await bidding.record_bid_response(db_session, bid.id, "interested", price=850)
        await bidding.finalize(db_session, job.id, bid.id)
        assert job.finalized_price == 850

        await lifecycle.cancel_job(db_session, job.id, "Farmer withdrew")
        assert job.status == JobStatus.CANCELLED
        assert job.finalized_price is None
        assert job.finalized_team_id is None

        log = (await db_session.execute(
            select(ActivityLog).where(
                ActivityLog.entity_id == job.id, ActivityLog.action == "cancelled",
            )
        )).scalar_one()
        assert log.details["finalized_price"] == 850
        assert log.details["status"] == "finalized"

    async def test_cancel_requires_reason(self, db_session, make_job):
        job = await make_job()
        with pytest.raises(ValidationError):
            await lifecycle.cancel_job(db_session, job.id, "   ")

    async def test_cancelled_is_terminal(self, db_session, make_job):
        job = await make_job()
        await lifecycle.cancel_job(db_session, job.id, "Rain")
        with pytest.raises(InvalidStateError):
            await lifecycle.cancel_job(db_session, job.id, "Again")

    async def test_complete_requires_in_progress(self, db_session, make_job):
        job = await make_job()
        with pytest.raises(InvalidStateError):
            await lifecycle.complete_work(
                db_session, job.id, JobCompletionCreate(work_summary="Done"),
            )

    async def test_complete_requires_issue_description(self, db_session, make_job):
        job = await make_job()
        with pytest.raises(ValidationError):
            await lifecycle.complete_work(
                db_session, job.id,
                JobCompletionCreate(work_summary="Done", had_issues=True),
            )
        assert (await db_session.scalar(select(JobCompletion.id))) is None
