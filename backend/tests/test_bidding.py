"""Bid board: notification fan-out, responses, ranking and exclusive finalize."""

import asyncio
from datetime import datetime

import pytest
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from app.middleware.exceptions import (
    AlreadyFinalizedError,
    InvalidStateError,
    ValidationError,
)
from app.models.bid import BidStatus, JobBid
from app.models.job import Job, JobStatus
from app.schemas.team import TeamUpdate
from app.services import bidding, lifecycle, ranking, teams


async def _bids_by_team(db, job_id):
    return {b.team_id: b for b in await bidding.list_bids(db, job_id)}


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.calls = []
        self.fail = fail

    async def notify(self, job_id, team_ids):
        self.calls.append((job_id, list(team_ids)))
        if self.fail:
            raise RuntimeError("SMS gateway down")
        return len(team_ids)


@pytest.mark.integration
@pytest.mark.asyncio
class TestNotify:

    async def test_notify_creates_pending_bids_and_opens_bidding(self, db_session, make_team, make_job):
        a = await make_team("A")
        b = await make_team("B")
        job = await make_job()
        notifier = RecordingNotifier()

        result = await bidding.notify_teams(db_session, job.id, [a.id, b.id], notifier=notifier)

        assert job.status == JobStatus.BIDDING
        assert job.bidding_started_at is not None
        assert len(result["created_bid_ids"]) == 2
        assert result["round"] == 1
        assert result["delivered"] == 2
        assert notifier.calls == [(job.id, [a.id, b.id])]
        bids = await _bids_by_team(db_session, job.id)
        assert {bid.status for bid in bids.values()} == {BidStatus.PENDING}

    async def test_renotify_is_idempotent(self, db_session, make_team, make_job):
        a = await make_team("A")
        job = await make_job()
        await bidding.notify_teams(db_session, job.id, [a.id])

        result = await bidding.notify_teams(db_session, job.id, [a.id, a.id])
        assert result["created_bid_ids"] == []
        assert result["skipped_team_ids"] == [a.id]
        assert len(await bidding.list_bids(db_session, job.id)) == 1

    async def test_notify_rejects_unknown_or_inactive_teams(self, db_session, make_team, make_job):
        a = await make_team("A")
        b = await make_team("B")
        await teams.update_team(db_session, b.id, TeamUpdate(is_active=False))
        job = await make_job()

        with pytest.raises(ValidationError) as exc:
            await bidding.notify_teams(db_session, job.id, [a.id, b.id, "no-such-team"])
        assert exc.value.details["invalid_team_ids"] == [b.id, "no-such-team"]
        assert await bidding.list_bids(db_session, job.id) == []
        assert job.status == JobStatus.PRICED

    async def test_notify_rejects_empty_list(self, db_session, make_job):
        job = await make_job()
        with pytest.raises(ValidationError):
            await bidding.notify_teams(db_session, job.id, [])

    async def test_notify_requires_priced_job(self, db_session, make_team, make_job):
        a = await make_team("A")
        job = await make_job(your_price=None)
        with pytest.raises(InvalidStateError):
            await bidding.notify_teams(db_session, job.id, [a.id])

    async def test_failed_delivery_keeps_bids(self, db_session, make_team, make_job):
        a = await make_team("A")
        job = await make_job()
        result = await bidding.notify_teams(
            db_session, job.id, [a.id], notifier=RecordingNotifier(fail=True),
        )
        assert result["delivered"] == 0
        assert len(result["created_bid_ids"]) == 1
        assert job.status == JobStatus.BIDDING


@pytest.mark.integration
@pytest.mark.asyncio
class TestResponses:

    async def test_interested_requires_positive_price(self, db_session, make_team, make_job):
        a = await make_team("A")
        job = await make_job()
        await bidding.notify_teams(db_session, job.id, [a.id])
        bid = (await _bids_by_team(db_session, job.id))[a.id]

        with pytest.raises(ValidationError):
            await bidding.record_bid_response(db_session, bid.id, "interested")
        with pytest.raises(ValidationError):
            await bidding.record_bid_response(db_session, bid.id, "maybe", price=800)
        assert bid.status == BidStatus.PENDING

    async def test_response_sets_timestamp_once(self, db_session, make_team, make_job):
        a = await make_team("A")
        job = await make_job()
        await bidding.notify_teams(db_session, job.id, [a.id])
        bid = (await _bids_by_team(db_session, job.id))[a.id]

        await bidding.record_bid_response(db_session, bid.id, "interested", price=850)
        assert bid.status == BidStatus.INTERESTED
        assert bid.bid_price_per_acre == 850
        assert bid.responded_at is not None

        with pytest.raises(InvalidStateError):
            await bidding.record_bid_response(db_session, bid.id, "declined")

    async def test_responses_closed_after_cancel(self, db_session, make_team, make_job):
        a = await make_team("A")
        job = await make_job()
        await bidding.notify_teams(db_session, job.id, [a.id])
        bid = (await _bids_by_team(db_session, job.id))[a.id]
        await lifecycle.cancel_job(db_session, job.id, "Farmer withdrew")

        with pytest.raises(InvalidStateError):
            await bidding.record_bid_response(db_session, bid.id, "interested", price=800)
        # Cancel never deletes bids
        assert len(await bidding.list_bids(db_session, job.id)) == 1

    async def test_response_racing_finalize_is_rejected(
        self, db_session, make_team, make_job, monkeypatch,
    ):
        a = await make_team("A")
        job = await make_job()
        await bidding.notify_teams(db_session, job.id, [a.id])
        bid = (await _bids_by_team(db_session, job.id))[a.id]

        # The job is read while still bidding, then closes before the bid write
        read_job = bidding.get_job

        async def get_job_then_close(db, job_id):
            loaded = await read_job(db, job_id)
            await db.execute(
                update(Job).where(Job.id == job_id)
                .values(status=JobStatus.FINALIZED)
                .execution_options(synchronize_session=False)
            )
            return loaded

        monkeypatch.setattr(bidding, "get_job", get_job_then_close)

        with pytest.raises(InvalidStateError) as exc:
            await bidding.record_bid_response(db_session, bid.id, "interested", price=800)
        assert exc.value.details["current_status"] == "finalized"

        await db_session.refresh(bid)
        assert bid.status == BidStatus.PENDING
        assert bid.responded_at is None


@pytest.mark.integration
@pytest.mark.asyncio
class TestBoard:

    async def test_rank_bids_cheapest_first_then_earliest(self, db_session, make_team, make_job):
        a = await make_team("A")
        b = await make_team("B")
        c = await make_team("C")
        job = await make_job()
        await bidding.notify_teams(db_session, job.id, [a.id, b.id, c.id])
        bids = await _bids_by_team(db_session, job.id)

        await bidding.record_bid_response(
            db_session, bids[b.id].id, "interested", price=820,
            now=datetime(2026, 3, 2, 9, 0),
        )
        await bidding.record_bid_response(
            db_session, bids[a.id].id, "interested", price=820,
            now=datetime(2026, 3, 2, 9, 30),
        )
        await bidding.record_bid_response(
            db_session, bids[c.id].id, "interested", price=780,
            now=datetime(2026, 3, 2, 10, 0),
        )

        ranked = await bidding.rank_bids(db_session, job.id)
        assert [r["bid"].team_id for r in ranked] == [c.id, b.id, a.id]
        assert [r["rank"] for r in ranked] == [1, 2, 3]
        assert ranked[0]["margin_per_acre"] == 120

    async def test_bid_summary(self, db_session, make_team, make_job):
        a = await make_team("A")
        b = await make_team("B")
        c = await make_team("C")
        job = await make_job()
        await bidding.notify_teams(db_session, job.id, [a.id, b.id, c.id])
        bids = await _bids_by_team(db_session, job.id)
        await bidding.record_bid_response(db_session, bids[a.id].id, "interested", price=850)
        await bidding.record_bid_response(db_session, bids[b.id].id, "declined")

        summary = await bidding.bid_summary(db_session, job.id)
        assert summary == {
            "total_bids": 3,
            "pending_bids": 1,
            "interested_bids": 1,
            "declined_bids": 1,
            "assigned_bids": 0,
            "lowest_price": 850,
            "highest_price": 850,
        }


@pytest.mark.integration
@pytest.mark.asyncio
class TestReassign:

    async def test_reassign_adds_only_new_teams_in_next_round(self, db_session, make_team, make_job):
        a = await make_team("A")
        b = await make_team("B")
        job = await make_job()
        await bidding.notify_teams(db_session, job.id, [a.id])

        result = await bidding.reassign(db_session, job.id, [a.id, b.id], "A is slow to respond")
        assert result["round"] == 2
        assert result["skipped_team_ids"] == [a.id]
        bids = await _bids_by_team(db_session, job.id)
        assert bids[a.id].round == 1
        assert bids[b.id].round == 2

    async def test_reassign_requires_reason(self, db_session, make_team, make_job):
        a = await make_team("A")
        job = await make_job()
        await bidding.notify_teams(db_session, job.id, [a.id])
        with pytest.raises(ValidationError):
            await bidding.reassign(db_session, job.id, [a.id], "")

    async def test_reassign_only_while_bidding(self, db_session, make_team, make_job):
        a = await make_team("A")
        b = await make_team("B")
        job = await make_job()
        with pytest.raises(InvalidStateError):
            await bidding.reassign(db_session, job.id, [a.id], "widen pool")

        await bidding.notify_teams(db_session, job.id, [a.id])
        bid = (await _bids_by_team(db_session, job.id))[a.id]
        await bidding.record_bid_response(db_session, bid.id, "interested", price=850)
        await bidding.finalize(db_session, job.id, bid.id)

        with pytest.raises(InvalidStateError):
            await bidding.reassign(db_session, job.id, [b.id], "widen pool")


@pytest.mark.integration
@pytest.mark.asyncio
class TestFinalize:

    async def test_end_to_end_scenario(self, db_session, make_team, make_job):
        a = await make_team("A")
        b = await make_team("B")
        job = await make_job(your_price=900)
        assert job.status == JobStatus.PRICED

        await bidding.notify_teams(db_session, job.id, [a.id, b.id])
        assert job.status == JobStatus.BIDDING
        bids = await _bids_by_team(db_session, job.id)
        assert {bid.status for bid in bids.values()} == {BidStatus.PENDING}

        await bidding.record_bid_response(db_session, bids[a.id].id, "interested", price=850)
        await bidding.record_bid_response(db_session, bids[b.id].id, "declined")

        candidates = await ranking.rank_candidates(db_session, job.id)
        assert [c.team_id for c in candidates] == [a.id]

        await bidding.finalize(db_session, job.id, bids[a.id].id)
        assert job.status == JobStatus.FINALIZED
        assert job.finalized_price == 850
        assert job.finalized_team_id == a.id
        await db_session.refresh(bids[a.id])
        assert bids[a.id].status == BidStatus.ASSIGNED

        with pytest.raises(AlreadyFinalizedError):
            await bidding.finalize(db_session, job.id, bids[b.id].id)

    async def test_final_price_override(self, db_session, make_team, make_job):
        a = await make_team("A")
        job = await make_job()
        await bidding.notify_teams(db_session, job.id, [a.id])
        bid = (await _bids_by_team(db_session, job.id))[a.id]
        await bidding.record_bid_response(db_session, bid.id, "interested", price=850)

        await bidding.finalize(db_session, job.id, bid.id, final_price=840)
        assert job.finalized_price == 840

    async def test_only_interested_bid_can_win(self, db_session, make_team, make_job):
        a = await make_team("A")
        job = await make_job()
        await bidding.notify_teams(db_session, job.id, [a.id])
        bid = (await _bids_by_team(db_session, job.id))[a.id]

        with pytest.raises(InvalidStateError):
            await bidding.finalize(db_session, job.id, bid.id)
        assert job.status == JobStatus.BIDDING

    async def test_finalize_outside_bidding_leaves_bids_unchanged(self, db_session, make_team, make_job):
        a = await make_team("A")
        b = await make_team("B")
        job = await make_job()
        await bidding.notify_teams(db_session, job.id, [a.id, b.id])
        bids = await _bids_by_team(db_session, job.id)
        await bidding.record_bid_response(db_session, bids[a.id].id, "interested", price=850)
        await lifecycle.cancel_job(db_session, job.id, "Weather")

        before = {
            bid.id: (bid.status, bid.bid_price_per_acre)
            for bid in await bidding.list_bids(db_session, job.id)
        }
        with pytest.raises(InvalidStateError) as exc:
            await bidding.finalize(db_session, job.id, bids[a.id].id)
        assert not isinstance(exc.value, AlreadyFinalizedError)

        after = {
            bid.id: (bid.status, bid.bid_price_per_acre)
            for bid in await bidding.list_bids(db_session, job.id)
        }
        assert after == before
        assert job.finalized_price is None

    async def test_storage_rejects_second_assigned_bid(self, db_session, make_team, make_job):
        a = await make_team("A")
        b = await make_team("B")
        job = await make_job()
        await bidding.notify_teams(db_session, job.id, [a.id, b.id])
        bids = await _bids_by_team(db_session, job.id)

        await db_session.execute(
            update(JobBid).where(JobBid.id == bids[a.id].id).values(status=BidStatus.ASSIGNED)
        )
        with pytest.raises(IntegrityError):
            await db_session.execute(
                update(JobBid).where(JobBid.id == bids[b.id].id).values(status=BidStatus.ASSIGNED)
            )

    @pytest.mark.slow
    async def test_concurrent_finalize_has_exactly_one_winner(
        self, db_session, session_factory, make_team, make_job,
    ):
        crews = [await make_team(f"Crew {i:02d}") for i in range(10)]
        job = await make_job()
        await bidding.notify_teams(db_session, job.id, [t.id for t in crews])
        bids = list((await _bids_by_team(db_session, job.id)).values())
        for i, bid in enumerate(bids):
            await bidding.record_bid_response(db_session, bid.id, "interested", price=800 + i)
        await db_session.commit()

        async def attempt(bid_id):
            async with session_factory() as session:
                try:
                    await bidding.finalize(session, job.id, bid_id)
                    await session.commit()
                    return "won"
                except AlreadyFinalizedError:
                    await session.rollback()
                    return "lost"

        results = await asyncio.gather(*(attempt(bid.id) for bid in bids))
        assert results.count("won") == 1
        assert results.count("lost") == 9

        async with session_factory() as session:
            assigned = (await session.execute(
                select(JobBid).where(JobBid.job_id == job.id, JobBid.status == BidStatus.ASSIGNED)
            )).scalars().all()
            final_job = await lifecycle.get_job(session, job.id)
            assert len(assigned) == 1
            assert final_job.status == JobStatus.FINALIZED
            assert final_job.finalized_team_id == assigned[0].team_id
            assert final_job.finalized_price == assigned[0].bid_price_per_acre

    @pytest.mark.slow
    async def test_concurrent_finalize_on_same_bid(
        self, db_session, session_factory, make_team, make_job,
    ):
        a = await make_team("A")
        job = await make_job()
        await bidding.notify_teams(db_session, job.id, [a.id])
        bid = (await _bids_by_team(db_session, job.id))[a.id]
        await bidding.record_bid_response(db_session, bid.id, "interested", price=850)
        await db_session.commit()

        async def attempt():
            async with session_factory() as session:
                try:
                    await bidding.finalize(session, job.id, bid.id)
                    await session.commit()
                    return True
                except AlreadyFinalizedError:
                    await session.rollback()
                    return False

        results = await asyncio.gather(*(attempt() for _ in range(10)))
        assert results.count(True) == 1
