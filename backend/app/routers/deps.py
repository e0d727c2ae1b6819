"""Shared router dependencies."""

from fastapi import Header


async def get_actor(x_actor: str | None = Header(None)) -> str | None:
    """Who is acting, for the audit trail.  Identity is not verified here."""
    return x_actor.strip() if x_actor and x_actor.strip() else None
