"""Submission and scoring services for contests."""

from .leaderboard import LeaderboardEntry, build_leaderboard
from .verdicts import StubVerdictSource, Verdict, VerdictSource, get_verdict_source

__all__ = [
    "LeaderboardEntry",
    "StubVerdictSource",
    "Verdict",
    "VerdictSource",
    "build_leaderboard",
    "get_verdict_source",
]
