"""Persistence rules for graded submissions.

MCQ answers are create-only. DSA attempts are kept best-of: the stored row is
replaced as a whole only when the new attempt scores strictly more points.
Both rely on the (user, item) unique constraints so concurrent requests for
the same key cannot create two rows.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import Conflict, NotFound
from app.models.dsa_problem import DsaProblem
from app.models.mcq_question import McqQuestion
from app.models.submission import DsaSubmission, McqSubmission
from app.services.scoring import DsaScore, McqScore
from app.services.window_guard import utcnow

_LOGGER = logging.getLogger(__name__)


# -------------------------------------------------------------------
# Contest-scoped lookups
# -------------------------------------------------------------------
async def get_contest_question(db: AsyncSession, contest_id: str, question_id: str) -> McqQuestion:
    result = await db.execute(
        select(McqQuestion).where(
            McqQuestion.id == question_id,
            McqQuestion.contest_id == contest_id,
        )
    )
    question = result.scalar_one_or_none()
    if question is None:
        raise NotFound("QUESTION_NOT_FOUND")
    return question


async def get_contest_problem(db: AsyncSession, contest_id: str, problem_id: str) -> DsaProblem:
    result = await db.execute(
        select(DsaProblem).where(
            DsaProblem.id == problem_id,
            DsaProblem.contest_id == contest_id,
        )
    )
    problem = result.scalar_one_or_none()
    if problem is None:
        raise NotFound("PROBLEM_NOT_FOUND")
    return problem


# -------------------------------------------------------------------
# MCQ: first answer is final
# -------------------------------------------------------------------
async def has_mcq_submission(db: AsyncSession, user_id: str, question_id: str) -> bool:
    result = await db.execute(
        select(McqSubmission.id).where(
            McqSubmission.user_id == user_id,
            McqSubmission.question_id == question_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def ensure_mcq_not_submitted(db: AsyncSession, user_id: str, question_id: str) -> None:
    if await has_mcq_submission(db, user_id, question_id):
        raise Conflict("ALREADY_SUBMITTED")


async def record_mcq_submission(
    db: AsyncSession,
    *,
    user_id: str,
    question: McqQuestion,
    selected_index: int,
    score: McqScore,
) -> McqSubmission:
    submission = McqSubmission(
        user_id=user_id,
        question_id=question.id,
        selected_option_index=selected_index,
        is_correct=score.is_correct,
        points_earned=score.points_earned,
        submitted_at=utcnow(),
    )
    db.add(submission)
    try:
        await db.commit()
    except IntegrityError:
        # a concurrent request for the same key won the insert
        await db.rollback()
        raise Conflict("ALREADY_SUBMITTED")
    return submission


# -------------------------------------------------------------------
# DSA: best-of upsert
# -------------------------------------------------------------------
async def find_dsa_submission(db: AsyncSession, user_id: str, problem_id: str) -> Optional[DsaSubmission]:
    result = await db.execute(
        select(DsaSubmission)
        .where(
            DsaSubmission.user_id == user_id,
            DsaSubmission.problem_id == problem_id,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def _record_values(code: str, language: str, score: DsaScore, submitted_at: datetime) -> dict:
    return {
        "code": code,
        "language": language,
        "status": score.status,
        "points_earned": score.points_earned,
        "test_cases_passed": score.test_cases_passed,
        "total_test_cases": score.total_test_cases,
        "submitted_at": submitted_at,
    }


async def _replace_if_improved(
    db: AsyncSession,
    *,
    user_id: str,
    problem_id: str,
    values: dict,
) -> bool:
    """Single conditional UPDATE so the comparison and the write cannot interleave."""
    stmt = (
        update(DsaSubmission)
        .where(
            DsaSubmission.user_id == user_id,
            DsaSubmission.problem_id == problem_id,
            DsaSubmission.points_earned < values["points_earned"],
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    await db.commit()
    return (result.rowcount or 0) > 0


async def upsert_dsa_submission(
    db: AsyncSession,
    *,
    user_id: str,
    problem_id: str,
    code: str,
    language: str,
    score: DsaScore,
    submitted_at: Optional[datetime] = None,
) -> tuple[DsaSubmission, bool]:
    """Store ``score`` under (user, problem); returns ``(stored_row, changed)``.

    Ties keep the existing row untouched, code and timestamp included.
    """
    values = _record_values(code, language, score, submitted_at or utcnow())

    existing = await find_dsa_submission(db, user_id, problem_id)
    if existing is None:
        submission = DsaSubmission(user_id=user_id, problem_id=problem_id, **values)
        db.add(submission)
        try:
            await db.commit()
            return submission, True
        except IntegrityError:
            await db.rollback()
            _LOGGER.info(
                "DSA submission for user %s problem %s created concurrently; retrying as update",
                user_id,
                problem_id,
            )

    changed = await _replace_if_improved(db, user_id=user_id, problem_id=problem_id, values=values)
    stored = await find_dsa_submission(db, user_id, problem_id)
    return stored, changed


__all__ = [
    "ensure_mcq_not_submitted",
    "find_dsa_submission",
    "get_contest_problem",
    "get_contest_question",
    "has_mcq_submission",
    "record_mcq_submission",
    "upsert_dsa_submission",
]
