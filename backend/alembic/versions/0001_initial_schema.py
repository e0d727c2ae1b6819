"""Initial WorkCrop schema: activities, teams, rates, availability, jobs,
bids, completions, payments, activity log.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    op.create_table(
        "activities",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text()),
        sa.Column("days_after_pruning", sa.Integer()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    # ── Labour teams ─────────────────────────────────────────
    op.create_table(
        "labour_teams",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(20)),
        sa.Column("location", sa.String(255)),
        sa.Column("number_of_labourers", sa.Integer(), server_default="0"),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_labour_teams_phone", "labour_teams", ["phone"])
    op.create_index("ix_labour_teams_is_active", "labour_teams", ["is_active"])

    op.create_table(
        "team_activity_rates",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("team_id", sa.String(36), sa.ForeignKey("labour_teams.id"), nullable=False),
        sa.Column("activity_id", sa.String(36), sa.ForeignKey("activities.id"), nullable=False),
        sa.Column("rate_per_acre", sa.Float(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("team_id", "activity_id", name="uq_team_activity_rate"),
    )
    op.create_index("ix_team_activity_rates_team_id", "team_activity_rates", ["team_id"])
    op.create_index("ix_team_activity_rates_activity_id", "team_activity_rates", ["activity_id"])

    op.create_table(
        "team_availability",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("team_id", sa.String(36), sa.ForeignKey("labour_teams.id"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(20)),
        sa.Column("leader_name", sa.String(255)),
        sa.Column("leader_phone", sa.String(20)),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_team_availability_team_id", "team_availability", ["team_id"])
    op.create_index(
        "ix_team_availability_team_range",
        "team_availability",
        ["team_id", "start_date", "end_date"],
    )

    # ── Jobs ─────────────────────────────────────────────────
    op.create_table(
        "jobs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("job_code", sa.String(50), nullable=False, unique=True),
        sa.Column("farmer_id", sa.String(36)),
        sa.Column("activity_id", sa.String(36), sa.ForeignKey("activities.id")),
        sa.Column("farm_size_acres", sa.Float()),
        sa.Column("location", sa.String(255)),
        sa.Column("requested_date", sa.Date()),
        sa.Column("requested_time", sa.String(20)),
        sa.Column("workers_needed", sa.Integer(), server_default="0"),
        sa.Column("farmer_price_per_acre", sa.Float()),
        sa.Column("your_price_per_acre", sa.Float()),
        sa.Column("finalized_price", sa.Float()),
        sa.Column("advance_amount", sa.Float(), server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("finalized_team_id", sa.String(36), sa.ForeignKey("labour_teams.id")),
        sa.Column("cancellation_reason", sa.Text()),
        sa.Column("confirmed_at", sa.DateTime()),
        sa.Column("priced_at", sa.DateTime()),
        sa.Column("bidding_started_at", sa.DateTime()),
        sa.Column("finalized_at", sa.DateTime()),
        sa.Column("started_at", sa.DateTime()),
        sa.Column("completed_at", sa.DateTime()),
        sa.Column("cancelled_at", sa.DateTime()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_jobs_job_code", "jobs", ["job_code"])
    op.create_index("ix_jobs_farmer_id", "jobs", ["farmer_id"])
    op.create_index("ix_jobs_activity_id", "jobs", ["activity_id"])
    op.create_index("ix_jobs_requested_date", "jobs", ["requested_date"])
    op.create_index("ix_jobs_status", "jobs", ["status"])

    # ── Bids ─────────────────────────────────────────────────
    op.create_table(
        "job_bids",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("job_id", sa.String(36), sa.ForeignKey("jobs.id"), nullable=False),
        sa.Column("team_id", sa.String(36), sa.ForeignKey("labour_teams.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("bid_price_per_acre", sa.Float()),
        sa.Column("estimated_duration_hours", sa.Float()),
        sa.Column("comments", sa.Text()),
        sa.Column("round", sa.Integer(), server_default="1"),
        sa.Column("notified_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("responded_at", sa.DateTime()),
        sa.Column("assigned_at", sa.DateTime()),
        sa.UniqueConstraint("job_id", "team_id", name="uq_job_bid_team"),
    )
    op.create_index("ix_job_bids_job_id", "job_bids", ["job_id"])
    op.create_index("ix_job_bids_team_id", "job_bids", ["team_id"])
    op.create_index("ix_job_bids_status", "job_bids", ["status"])
    # At most one assigned bid per job
    op.create_index(
        "uq_job_bid_one_assigned",
        "job_bids",
        ["job_id"],
        unique=True,
        postgresql_where=sa.text("status = 'assigned'"),
        sqlite_where=sa.text("status = 'assigned'"),
    )

    # ── Completion & payment ─────────────────────────────────
    op.create_table(
        "job_completions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("job_id", sa.String(36), sa.ForeignKey("jobs.id"), nullable=False, unique=True),
        sa.Column("work_summary", sa.Text(), nullable=False),
        sa.Column("actual_area_covered", sa.Float()),
        sa.Column("actual_labourers_used", sa.Integer()),
        sa.Column("actual_hours_worked", sa.Float()),
        sa.Column("work_quality_score", sa.Integer()),
        sa.Column("on_time_completion", sa.Boolean(), server_default=sa.true()),
        sa.Column("farmer_satisfied", sa.Boolean(), server_default=sa.true()),
        sa.Column("had_issues", sa.Boolean(), server_default=sa.false()),
        sa.Column("issue_description", sa.Text()),
        sa.Column("completed_by", sa.String(255)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "payment_records",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("job_id", sa.String(36), sa.ForeignKey("jobs.id"), nullable=False, unique=True),
        sa.Column("labor_cost", sa.Float(), nullable=False),
        sa.Column("transport_cost", sa.Float(), server_default="0"),
        sa.Column("accommodation_cost", sa.Float(), server_default="0"),
        sa.Column("other_cost", sa.Float(), server_default="0"),
        sa.Column("balance_amount", sa.Float(), nullable=False),
        sa.Column("payment_method", sa.String(30), nullable=False),
        sa.Column("payment_date", sa.Date()),
        sa.Column("proof_reference", sa.String(500)),
        sa.Column("collected_by", sa.String(255)),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    # ── Audit trail ──────────────────────────────────────────
    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("actor", sa.String(255), nullable=False, server_default="system"),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(36)),
        sa.Column("entity_code", sa.String(100)),
        sa.Column("summary", sa.Text()),
        sa.Column("details", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"])
    op.create_index("ix_activity_logs_entity_type", "activity_logs", ["entity_type"])
    op.create_index("ix_activity_logs_entity_id", "activity_logs", ["entity_id"])
    op.create_index("ix_activity_logs_created_at", "activity_logs", ["created_at"])


def downgrade() -> None:
    op.drop_table("activity_logs")
    op.drop_table("payment_records")
    op.drop_table("job_completions")
    op.drop_index("uq_job_bid_one_assigned", table_name="job_bids")
    op.drop_table("job_bids")
    op.drop_table("jobs")
    op.drop_table("team_availability")
    op.drop_table("team_activity_rates")
    op.drop_table("labour_teams")
    op.drop_table("activities")
