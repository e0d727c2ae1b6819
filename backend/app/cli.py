"""Management CLI for operational checks.

Usage:
    python -m app.cli check-availability   # Report overlapping availability intervals
    python -m app.cli audit-payments       # Report payments that no longer reconcile

Both commands exit 1 when they find a problem.
"""

import sys
from collections import defaultdict

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from app.config import settings
from app.models.availability import AvailabilityInterval
from app.models.job import Job
from app.models.payment_record import PaymentRecord
from app.services.availability import find_overlaps
from app.services.reconciliation import audit_record


def get_session() -> Session:
    engine = create_engine(settings.database_url_sync)
    return Session(engine)


def check_availability(session: Session) -> int:
    """Every team's intervals must be pairwise non-overlapping."""
    by_team = defaultdict(list)
    for interval in session.execute(select(AvailabilityInterval)).scalars():
        by_team[interval.team_id].append(interval)

    violations = 0
    for team_id, intervals in sorted(by_team.items()):
        for a, b in find_overlaps(intervals):
            violations += 1
            print(
                f"  {team_id}: {a.start_date} → {a.end_date} ({a.status.value}) "
                f"overlaps {b.start_date} → {b.end_date} ({b.status.value})"
            )

    print(f"\n{len(by_team)} team(s) checked, {violations} overlap(s)")
    return 1 if violations else 0


def audit_payments(session: Session) -> int:
    rows = session.execute(
        select(PaymentRecord, Job)
        .join(Job, Job.id == PaymentRecord.job_id)
        .order_by(Job.job_code)
    ).all()

    mismatches = 0
    for record, job in rows:
        alert = audit_record(record, job)
        if alert:
            mismatches += 1
            print(
                f"  [{alert.severity}] {alert.job_code}: expected {alert.expected:,.2f}, "
                f"recorded {alert.actual:,.2f} ({alert.delta:+,.2f})"
            )

    print(f"\n{len(rows)} payment(s) checked, {mismatches} mismatch(es)")
    return 1 if mismatches else 0


COMMANDS = {
    "check-availability": check_availability,
    "audit-payments": audit_payments,
}


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    cmd = args[0] if args else ""
    if cmd not in COMMANDS:
        print(f"Usage: python -m app.cli [{'|'.join(COMMANDS)}]")
        return 2
    with get_session() as session:
        return COMMANDS[cmd](session)


if __name__ == "__main__":
    sys.exit(main())
