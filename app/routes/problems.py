from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.deps.security import require_user
from app.errors import NotFound, envelope
from app.models.dsa_problem import DsaProblem
from app.models.user import User
from app.routes.contests import problem_payload
from app.services.access import can_author
from app.services.window_guard import get_contest

router = APIRouter(prefix="/api/problems", tags=["Problems"])


@router.get("/{problem_id}")
async def read_problem(
    problem_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_user),
):
    """Problem statement; hidden test cases are shown to the contest creator only."""
    result = await db.execute(select(DsaProblem).where(DsaProblem.id == problem_id))
    problem = result.scalar_one_or_none()
    if problem is None:
        raise NotFound("PROBLEM_NOT_FOUND")

    contest = await get_contest(db, problem.contest_id)
    return envelope(problem_payload(problem, include_hidden=can_author(contest, user)))
