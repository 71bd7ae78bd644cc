"""Contest leaderboard, recomputed from submission rows on every request."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.dsa_problem import DsaProblem
from app.models.mcq_question import McqQuestion
from app.models.submission import DsaSubmission, McqSubmission
from app.models.user import User
from app.services.window_guard import get_contest


@dataclass(frozen=True)
class LeaderboardEntry:
    user_id: str
    public_id: int
    name: str
    total_points: int
    rank: int


def public_user_id(user_id: str) -> int:
    """Stable numeric stand-in for a user id: first 48 bits of its SHA-256."""
    return int(hashlib.sha256(str(user_id).encode("utf-8")).hexdigest()[:12], 16)


def aggregate_totals(
    mcq_rows: Iterable[tuple[str, int]],
    dsa_rows: Iterable[tuple[str, str, int]],
) -> dict[str, int]:
    """Sum every MCQ row plus the best row per (user, problem) for DSA.

    ``mcq_rows`` are ``(user_id, points)``; ``dsa_rows`` are
    ``(user_id, problem_id, points)``. Users appear in first-seen order.
    """
    totals: dict[str, int] = {}
    for user_id, points in mcq_rows:
        totals[user_id] = totals.get(user_id, 0) + int(points or 0)

    best: dict[tuple[str, str], int] = {}
    for user_id, problem_id, points in dsa_rows:
        key = (user_id, problem_id)
        best[key] = max(best.get(key, 0), int(points or 0))
        totals.setdefault(user_id, 0)
    for (user_id, _problem_id), points in best.items():
        totals[user_id] += points
    return totals


def rank_totals(totals: dict[str, int]) -> list[tuple[str, int, int]]:
    """Standard competition ranking (1, 2, 2, 4) as ``(user_id, total, rank)``."""
    ordered = sorted(totals.items(), key=lambda item: -item[1])
    ranked: list[tuple[str, int, int]] = []
    prev_total, rank = None, 0
    for position, (user_id, total) in enumerate(ordered):
        if total != prev_total:
            rank = position + 1
            prev_total = total
        ranked.append((user_id, total, rank))
    return ranked


async def _mcq_rows(db: AsyncSession, contest_id: str) -> list[tuple[str, int]]:
    stmt = (
        select(McqSubmission.user_id, McqSubmission.points_earned)
        .join(McqQuestion, McqQuestion.id == McqSubmission.question_id)
        .where(McqQuestion.contest_id == contest_id)
        .order_by(McqSubmission.id)
    )
    return [(r.user_id, r.points_earned) for r in (await db.execute(stmt)).all()]


async def _dsa_rows(db: AsyncSession, contest_id: str) -> list[tuple[str, str, int]]:
    stmt = (
        select(
            DsaSubmission.user_id,
            DsaSubmission.problem_id,
            func.max(DsaSubmission.points_earned).label("points"),
        )
        .join(DsaProblem, DsaProblem.id == DsaSubmission.problem_id)
        .where(DsaProblem.contest_id == contest_id)
        .group_by(DsaSubmission.user_id, DsaSubmission.problem_id)
        .order_by(func.min(DsaSubmission.id))
    )
    return [(r.user_id, r.problem_id, r.points) for r in (await db.execute(stmt)).all()]


async def build_leaderboard(db: AsyncSession, contest_id: str) -> list[LeaderboardEntry]:
    await get_contest(db, contest_id)

    totals = aggregate_totals(await _mcq_rows(db, contest_id), await _dsa_rows(db, contest_id))
    if not totals:
        return []

    users = (await db.execute(select(User.id, User.name).where(User.id.in_(list(totals))))).all()
    names = {u.id: u.name for u in users}

    return [
        LeaderboardEntry(
            user_id=user_id,
            public_id=public_user_id(user_id),
            name=names.get(user_id) or "Anonymous",
            total_points=total,
            rank=rank,
        )
        for user_id, total, rank in rank_totals(totals)
    ]


__all__ = [
    "LeaderboardEntry",
    "aggregate_totals",
    "build_leaderboard",
    "public_user_id",
    "rank_totals",
]
