"""ORM models; importing this package registers every table with ``Base``."""

from .user import User, UserRole
from .contest import Contest
from .mcq_question import McqQuestion
from .dsa_problem import DsaProblem, TestCase
from .submission import DsaStatus, DsaSubmission, McqSubmission

__all__ = [
    "Contest",
    "DsaProblem",
    "DsaStatus",
    "DsaSubmission",
    "McqQuestion",
    "McqSubmission",
    "TestCase",
    "User",
    "UserRole",
]
