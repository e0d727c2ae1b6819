"""HTTP surface: routing, status codes and the error envelope."""

import pytest
from httpx import AsyncClient

from app.middleware.exceptions import _constraint_error

ACTOR = {"X-Actor": "ops@workcrop.test"}


async def _setup(client: AsyncClient):
    activity = (await client.post("/api/activities/", json={"name": "Pruning"})).json()

    teams = []
    for name in ("A", "B"):
        resp = await client.post("/api/teams/", json={
            "name": name,
            "number_of_labourers": 10,
            "rates": [{"activity_id": activity["id"], "rate_per_acre": 850}],
            "available_from": "2026-03-01",
            "available_to": "2026-03-31",
        })
        assert resp.status_code == 201
        teams.append(resp.json())

    resp = await client.post("/api/jobs/", headers=ACTOR, json={
        "farmer_id": "farmer-1",
        "activity_id": activity["id"],
        "farm_size_acres": 5,
        "requested_date": "2026-03-15",
        "workers_needed": 8,
        "farmer_price_per_acre": 1000,
    })
    assert resp.status_code == 201
    return activity, teams, resp.json()


@pytest.mark.api
@pytest.mark.asyncio
class TestJobFlow:

    async def test_full_flow(self, client: AsyncClient):
        _, (a, b), job = await _setup(client)
        assert job["status"] == "pending"
        job_url = f"/api/jobs/{job['id']}"

        resp = await client.post(f"{job_url}/confirm", headers=ACTOR)
        assert resp.json()["status"] == "confirmed"

        resp = await client.post(f"{job_url}/price", json={"your_price_per_acre": 900})
        assert resp.json()["status"] == "priced"

        resp = await client.post(f"{job_url}/notify", json={"team_ids": [a["id"], b["id"]]})
        assert resp.status_code == 200
        body = resp.json()
        assert body["job"]["status"] == "bidding"
        assert len(body["created_bid_ids"]) == 2

        bids = {x["team_id"]: x for x in (await client.get(f"{job_url}/bids")).json()}
        resp = await client.post(
            f"/api/bids/{bids[a['id']]['id']}/respond",
            json={"decision": "interested", "bid_price_per_acre": 850},
        )
        assert resp.json()["status"] == "interested"
        await client.post(f"/api/bids/{bids[b['id']]['id']}/respond", json={"decision": "declined"})

        recs = (await client.get(f"{job_url}/recommendations")).json()
        assert [r["team_id"] for r in recs] == [a["id"]]
        assert recs[0]["cost_estimate"]["total_cost"] == 4250

        ranking = (await client.get(f"{job_url}/bids/ranking")).json()
        assert [r["bid"]["team_id"] for r in ranking] == [a["id"]]
        assert ranking[0]["margin_per_acre"] == 50

        resp = await client.post(f"{job_url}/finalize", json={"bid_id": bids[a["id"]]["id"]})
        assert resp.status_code == 200
        assert resp.json()["status"] == "finalized"
        assert resp.json()["finalized_price"] == 850

        resp = await client.post(f"{job_url}/finalize", json={"bid_id": bids[b["id"]]["id"]})
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "ALREADY_FINALIZED"

        assert (await client.post(f"{job_url}/start")).json()["status"] == "in_progress"
        resp = await client.post(f"{job_url}/complete", json={"work_summary": "All rows pruned"})
        assert resp.json()["status"] == "completed"

        resp = await client.post(f"/api/payments/jobs/{job['id']}", json={
            "labor_cost": 4000, "transport_cost": 250.01, "payment_method": "upi",
        })
        assert resp.status_code == 201
        assert resp.json()["balance_amount"] == 4250

        summary = (await client.get(f"{job_url}/bids/summary")).json()
        assert summary["assigned_bids"] == 1
        assert summary["declined_bids"] == 1

    async def test_invalid_transition_is_409_with_current_status(self, client: AsyncClient):
        _, _, job = await _setup(client)
        resp = await client.post(f"/api/jobs/{job['id']}/start")
        assert resp.status_code == 409
        error = resp.json()["error"]
        assert error["code"] == "INVALID_STATE"
        assert error["details"]["current_status"] == "pending"

    async def test_missing_job_is_404(self, client: AsyncClient):
        resp = await client.get("/api/jobs/does-not-exist")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "RESOURCE_NOT_FOUND"

    async def test_cancel_requires_reason(self, client: AsyncClient):
        _, _, job = await _setup(client)
        resp = await client.post(f"/api/jobs/{job['id']}/cancel", json={"reason": " "})
        assert resp.status_code == 422

    async def test_list_jobs_filters_by_status(self, client: AsyncClient):
        _, _, job = await _setup(client)
        await client.post(f"/api/jobs/{job['id']}/confirm")
        pending = (await client.get("/api/jobs/", params={"status": "pending"})).json()
        confirmed = (await client.get("/api/jobs/", params={"status": "confirmed"})).json()
        assert pending["total"] == 0
        assert [j["id"] for j in confirmed["items"]] == [job["id"]]


@pytest.mark.api
@pytest.mark.asyncio
class TestAvailabilityApi:

    async def test_split_and_out_of_bounds(self, client: AsyncClient):
        _, (a, _), _ = await _setup(client)
        url = f"/api/teams/{a['id']}/availability"

        resp = await client.post(url, json={
            "start_date": "2026-03-10", "end_date": "2026-03-15", "status": "on_leave",
        })
        assert resp.status_code == 201
        assert [(i["start_date"], i["end_date"], i["status"]) for i in resp.json()] == [
            ("2026-03-01", "2026-03-09", "available"),
            ("2026-03-10", "2026-03-15", "on_leave"),
            ("2026-03-16", "2026-03-31", "available"),
        ]

        resp = await client.post(url, json={
            "start_date": "2026-03-14", "end_date": "2026-03-20", "status": "busy",
        })
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "OUT_OF_BOUNDS"
        assert len((await client.get(url)).json()) == 3

        resp = await client.get(f"{url}/check", params={"start": "2026-03-12"})
        assert resp.json()["is_available"] is False


@pytest.mark.api
@pytest.mark.asyncio
class TestPaymentsApi:

    async def test_validate_accepts_within_tolerance(self, client: AsyncClient):
        resp = await client.post("/api/payments/validate", json={
            "breakdown": {"labor_cost": 4999.99}, "balance_due": 5000.00,
        })
        assert resp.status_code == 200
        assert resp.json()["ok"] is True

    async def test_validate_rejects_with_delta(self, client: AsyncClient):
        resp = await client.post("/api/payments/validate", json={
            "breakdown": {"labor_cost": 4999.99}, "balance_due": 5000.02,
        })
        assert resp.status_code == 422
        error = resp.json()["error"]
        assert error["code"] == "RECONCILIATION_MISMATCH"
        assert error["details"]["delta"] == pytest.approx(-0.03)


@pytest.mark.api
@pytest.mark.asyncio
class TestHealth:

    async def test_health(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["service"] == "WorkCrop"


@pytest.mark.unit
class TestIntegrityErrorCodes:

    def test_sqlite_messages(self):
        assert _constraint_error(
            "UNIQUE constraint failed: job_bids.job_id, job_bids.team_id"
        )[1] == "DUPLICATE_BID"
        assert _constraint_error("UNIQUE constraint failed: job_bids.job_id")[1] == "ALREADY_FINALIZED"
        assert _constraint_error("UNIQUE constraint failed: payment_records.job_id")[1] == "DUPLICATE_PAYMENT"

    def test_postgres_messages(self):
        msg = 'duplicate key value violates unique constraint "uq_job_bid_one_assigned"'
        assert _constraint_error(msg)[1] == "ALREADY_FINALIZED"

    def test_unknown_constraint_falls_through(self):
        assert _constraint_error("UNIQUE constraint failed: activities.name") is None
