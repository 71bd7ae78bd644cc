"""Admission control for submissions: contest exists, is open, caller may compete."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import Forbidden, NotActive, NotFound
from app.models.contest import Contest
from app.models.user import User
from app.services.access import can_compete


def naive_utc(moment: datetime) -> datetime:
    """Contest times are stored as naive UTC; aware values are converted first."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


async def get_contest(db: AsyncSession, contest_id: str) -> Contest:
    result = await db.execute(select(Contest).where(Contest.id == contest_id))
    contest = result.scalar_one_or_none()
    if contest is None:
        raise NotFound("CONTEST_NOT_FOUND")
    return contest


def check_window(contest: Contest, user: User, now: Optional[datetime] = None) -> None:
    moment = naive_utc(now) if now is not None else utcnow()
    if not naive_utc(contest.start_time) <= moment <= naive_utc(contest.end_time):
        raise NotActive()
    if not can_compete(contest, user):
        raise Forbidden()


async def ensure_can_submit(
    db: AsyncSession,
    contest_id: str,
    user: User,
    now: Optional[datetime] = None,
) -> Contest:
    """Return the contest when ``user`` may submit to it right now.

    Re-evaluated on every call; the window moves with the wall clock.
    """
    contest = await get_contest(db, contest_id)
    check_window(contest, user, now)
    return contest


__all__ = ["check_window", "ensure_can_submit", "get_contest", "naive_utc", "utcnow"]
