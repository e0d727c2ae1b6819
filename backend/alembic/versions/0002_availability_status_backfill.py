"""Backfill availability rows imported before status was tracked.

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

Rows carried over from the spreadsheet era have no status and no leader
name.  Treat them as open availability under the team's own name, then
make status mandatory.
"""

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None

from alembic import op


def upgrade() -> None:
    op.execute(
        "UPDATE team_availability SET status = 'available' WHERE status IS NULL"
    )
    op.execute(
        "UPDATE team_availability SET leader_name = ("
        "SELECT name FROM labour_teams WHERE labour_teams.id = team_availability.team_id"
        ") WHERE leader_name IS NULL"
    )
    op.alter_column(
        "team_availability",
        "status",
        nullable=False,
        server_default="available",
    )


def downgrade() -> None:
    op.alter_column(
        "team_availability",
        "status",
        nullable=True,
        server_default=None,
    )
