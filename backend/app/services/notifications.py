"""Notification collaborator.

The engine only needs a best-effort ``notify(job_id, team_ids) -> int``.
Delivery (SMS / WhatsApp / push) is owned by whatever implements the
protocol; the returned count is informational and never affects bid
state.
"""

import logging
from typing import Protocol

logger = logging.getLogger("workcrop.notifications")


class Notifier(Protocol):
    async def notify(self, job_id: str, team_ids: list[str]) -> int: ...


class LoggingNotifier:
    """Default notifier: logs the fan-out and reports every team delivered."""

    async def notify(self, job_id: str, team_ids: list[str]) -> int:
        logger.info("Notify job %s → %d team(s): %s", job_id, len(team_ids), ", ".join(team_ids))
        return len(team_ids)


default_notifier = LoggingNotifier()
