"""Turn answers and per-test-case verdicts into statuses and points."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Iterable

from app.models.dsa_problem import DsaProblem, TestCase
from app.models.mcq_question import McqQuestion
from app.models.submission import DsaStatus
from app.services.verdicts import Verdict, VerdictSource

_LOGGER = logging.getLogger(__name__)

VERDICT_TIMEOUT_GRACE_SECONDS = float(os.getenv("VERDICT_TIMEOUT_GRACE_SECONDS", "5"))

# Checked in this order; the first kind present anywhere decides the status.
_STATUS_PRIORITY: tuple[tuple[frozenset[Verdict], str], ...] = (
    (frozenset({Verdict.RUNTIME_ERROR, Verdict.INTERNAL_ERROR}), DsaStatus.RUNTIME_ERROR),
    (frozenset({Verdict.TIME_LIMIT_EXCEEDED}), DsaStatus.TIME_LIMIT_EXCEEDED),
    (frozenset({Verdict.WRONG_ANSWER}), DsaStatus.WRONG_ANSWER),
)


@dataclass(frozen=True)
class McqScore:
    is_correct: bool
    points_earned: int


@dataclass(frozen=True)
class DsaScore:
    status: str
    points_earned: int
    test_cases_passed: int
    total_test_cases: int


def score_mcq(question: McqQuestion, selected_index: int) -> McqScore:
    is_correct = selected_index == question.correct_option_index
    return McqScore(is_correct=is_correct, points_earned=question.points if is_correct else 0)


def derive_status(verdicts: Iterable[Verdict]) -> str:
    """Overall status by verdict kind, independent of test-case order."""
    seen = set(verdicts)
    for kinds, status in _STATUS_PRIORITY:
        if seen & kinds:
            return status
    return DsaStatus.ACCEPTED


def proportional_points(passed: int, total: int, points: int) -> int:
    if total <= 0:
        return 0
    return (passed * points) // total


def grade_verdicts(verdicts: list[Verdict], points: int) -> DsaScore:
    passed = sum(1 for v in verdicts if v == Verdict.PASSED)
    return DsaScore(
        status=derive_status(verdicts),
        points_earned=proportional_points(passed, len(verdicts), points),
        test_cases_passed=passed,
        total_test_cases=len(verdicts),
    )


async def _judge_case(
    verdict_source: VerdictSource,
    problem: DsaProblem,
    test_case: TestCase,
    code: str,
    language: str,
) -> Verdict:
    time_limit = problem.time_limit_seconds
    try:
        raw = await asyncio.wait_for(
            verdict_source.judge(
                source_code=code,
                language=language,
                stdin=test_case.input or "",
                expected_output=test_case.expected_output or "",
                time_limit_seconds=time_limit,
                memory_limit_bytes=problem.memory_limit_bytes,
            ),
            timeout=time_limit + VERDICT_TIMEOUT_GRACE_SECONDS,
        )
        return Verdict(raw)
    except asyncio.TimeoutError:
        _LOGGER.warning("Verdict source timed out on test case %s of problem %s", test_case.id, problem.id)
        return Verdict.INTERNAL_ERROR
    except Exception:
        _LOGGER.exception("Verdict source failed on test case %s of problem %s", test_case.id, problem.id)
        return Verdict.INTERNAL_ERROR


async def score_dsa(
    problem: DsaProblem,
    code: str,
    language: str,
    verdict_source: VerdictSource,
) -> DsaScore:
    """Judge every test case concurrently and grade the combined verdicts.

    A problem without test cases is accepted with zero points.
    """
    test_cases = list(problem.test_cases or [])
    verdicts = await asyncio.gather(
        *(_judge_case(verdict_source, problem, tc, code, language) for tc in test_cases)
    )
    score = grade_verdicts(list(verdicts), problem.points or 0)
    _LOGGER.info(
        "Graded problem %s: %s (%s/%s) -> %s points",
        problem.id,
        score.status,
        score.test_cases_passed,
        score.total_test_cases,
        score.points_earned,
    )
    return score


__all__ = [
    "DsaScore",
    "McqScore",
    "derive_status",
    "grade_verdicts",
    "proportional_points",
    "score_dsa",
    "score_mcq",
]
