"""Clock collaborator.

Timestamps are stored as naive UTC (matching ``datetime.utcnow`` column
defaults).  Services accept ``now=`` so tests can pin time.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
