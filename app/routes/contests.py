# app/routes/contests.py
import logging
import math

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.deps.security import require_creator, require_user
from app.errors import Forbidden, TooManyRequests, ValidationFailed, envelope
from app.models.contest import Contest
from app.models.dsa_problem import DsaProblem, TestCase
from app.models.mcq_question import McqQuestion
from app.models.user import User
from app.rate_limiter import RateLimitExceeded, get_submission_rate_limiter
from app.schemas import (
    ContestCreate,
    ContestRead,
    DsaProblemCreate,
    DsaProblemRead,
    DsaProblemSummary,
    DsaSubmit,
    DsaSubmitResult,
    LeaderboardRow,
    McqCreate,
    McqRead,
    McqSubmit,
    McqSubmitResult,
    TestCaseRead,
)
from app.services.access import can_author
from app.services.leaderboard import build_leaderboard
from app.services.ledger import (
    ensure_mcq_not_submitted,
    get_contest_problem,
    get_contest_question,
    record_mcq_submission,
    upsert_dsa_submission,
)
from app.services.scoring import score_dsa, score_mcq
from app.services.verdicts import VerdictSource, get_verdict_source
from app.services.window_guard import ensure_can_submit, get_contest, naive_utc

router = APIRouter(prefix="/api/contests", tags=["Contests"])

_LOGGER = logging.getLogger(__name__)


# -------------------------------------------------------------------
# Serialization helpers
# -------------------------------------------------------------------
def mcq_payload(question: McqQuestion, *, reveal_answer: bool) -> dict:
    hidden = None if reveal_answer else {"correct_option_index"}
    return McqRead.model_validate(question).model_dump(by_alias=True, exclude=hidden)


def problem_payload(problem: DsaProblem, *, include_hidden: bool) -> dict:
    data = DsaProblemRead.model_validate(problem)
    data.test_cases = [
        TestCaseRead.model_validate(tc)
        for tc in problem.visible_test_cases(include_hidden=include_hidden)
    ]
    return data.model_dump(by_alias=True)


def contest_payload(contest: Contest, user: User) -> dict:
    author = can_author(contest, user)
    payload = ContestRead.model_validate(contest).model_dump(by_alias=True, mode="json")
    payload["mcqs"] = [mcq_payload(q, reveal_answer=author) for q in contest.mcq_questions or []]
    payload["dsaProblems"] = [
        DsaProblemSummary.model_validate(p).model_dump(by_alias=True)
        for p in contest.dsa_problems or []
    ]
    return payload


async def _throttle(user: User) -> None:
    limiter = get_submission_rate_limiter()
    if limiter is None:
        return
    try:
        await limiter.check(f"user:{user.id}")
    except RateLimitExceeded as exc:
        raise TooManyRequests(headers={"Retry-After": str(max(1, math.ceil(exc.retry_after)))})


async def _authored_contest(db: AsyncSession, contest_id: str, user: User) -> Contest:
    contest = await get_contest(db, contest_id)
    if not can_author(contest, user):
        raise Forbidden()
    return contest


# -------------------------------------------------------------------
# Contests
# -------------------------------------------------------------------
@router.post("", status_code=status.HTTP_201_CREATED)
async def create_contest(
    payload: ContestCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_creator),
):
    contest = Contest(
        title=payload.title,
        description=payload.description,
        creator_id=user.id,
        start_time=naive_utc(payload.start_time),
        end_time=naive_utc(payload.end_time),
    )
    db.add(contest)
    await db.commit()
    _LOGGER.info("User %s created contest %s", user.id, contest.id)
    return envelope(ContestRead.model_validate(contest).model_dump(by_alias=True, mode="json"))


@router.get("/{contest_id}")
async def read_contest(
    contest_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_user),
):
    contest = await get_contest(db, contest_id)
    return envelope(contest_payload(contest, user))


# -------------------------------------------------------------------
# MCQ questions
# -------------------------------------------------------------------
@router.post("/{contest_id}/mcq", status_code=status.HTTP_201_CREATED)
async def create_mcq(
    contest_id: str,
    payload: McqCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_user),
):
    contest = await _authored_contest(db, contest_id, user)
    question = McqQuestion(
        contest_id=contest.id,
        question_text=payload.question_text,
        options=list(payload.options),
        correct_option_index=payload.correct_option_index,
        points=payload.points,
    )
    db.add(question)
    await db.commit()
    return envelope(mcq_payload(question, reveal_answer=True))


@router.post("/{contest_id}/mcq/{question_id}/submit")
async def submit_mcq(
    contest_id: str,
    question_id: str,
    payload: McqSubmit,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_user),
):
    await _throttle(user)
    await ensure_can_submit(db, contest_id, user)
    question = await get_contest_question(db, contest_id, question_id)
    await ensure_mcq_not_submitted(db, user.id, question.id)

    if payload.selected_option_index >= len(question.options or []):
        raise ValidationFailed()

    score = score_mcq(question, payload.selected_option_index)
    await record_mcq_submission(
        db,
        user_id=user.id,
        question=question,
        selected_index=payload.selected_option_index,
        score=score,
    )
    result = McqSubmitResult(is_correct=score.is_correct, points_earned=score.points_earned)
    return envelope(result.model_dump(by_alias=True))


# -------------------------------------------------------------------
# DSA problems
# -------------------------------------------------------------------
@router.post("/{contest_id}/dsa", status_code=status.HTTP_201_CREATED)
async def create_dsa_problem(
    contest_id: str,
    payload: DsaProblemCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_user),
):
    contest = await _authored_contest(db, contest_id, user)
    problem = DsaProblem(
        contest_id=contest.id,
        title=payload.title,
        description=payload.description,
        tags=list(payload.tags),
        points=payload.points,
        time_limit=payload.time_limit,
        memory_limit=payload.memory_limit,
        test_cases=[
            TestCase(
                position=index,
                input=tc.input,
                expected_output=tc.expected_output,
                is_hidden=tc.is_hidden,
            )
            for index, tc in enumerate(payload.test_cases)
        ],
    )
    db.add(problem)
    await db.commit()
    return envelope(problem_payload(problem, include_hidden=True))


@router.post("/{contest_id}/dsa/{problem_id}/submit")
async def submit_dsa(
    contest_id: str,
    problem_id: str,
    payload: DsaSubmit,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_user),
    verdict_source: VerdictSource = Depends(get_verdict_source),
):
    await _throttle(user)
    await ensure_can_submit(db, contest_id, user)
    problem = await get_contest_problem(db, contest_id, problem_id)

    score = await score_dsa(problem, payload.code, payload.language, verdict_source)
    _stored, improved = await upsert_dsa_submission(
        db,
        user_id=user.id,
        problem_id=problem.id,
        code=payload.code,
        language=payload.language,
        score=score,
    )
    if not improved:
        _LOGGER.info("Kept earlier best attempt of user %s on problem %s", user.id, problem.id)

    result = DsaSubmitResult(
        status=score.status,
        points_earned=score.points_earned,
        test_cases_passed=score.test_cases_passed,
        total_test_cases=score.total_test_cases,
    )
    return envelope(result.model_dump(by_alias=True))


# -------------------------------------------------------------------
# Leaderboard
# -------------------------------------------------------------------
@router.get("/{contest_id}/leaderboard")
async def read_leaderboard(
    contest_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_user),
):
    entries = await build_leaderboard(db, contest_id)
    rows = [
        LeaderboardRow(
            user_id=entry.public_id,
            name=entry.name,
            total_points=entry.total_points,
            rank=entry.rank,
        ).model_dump(by_alias=True)
        for entry in entries
    ]
    return envelope(rows)
