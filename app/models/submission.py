# app/models/submission.py
from datetime import datetime

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, String, Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.database import Base


class DsaStatus:
    ACCEPTED = "accepted"
    WRONG_ANSWER = "wrong_answer"
    TIME_LIMIT_EXCEEDED = "time_limit_exceeded"
    RUNTIME_ERROR = "runtime_error"


class McqSubmission(Base):
    """One answer per (user, question); the first submission is final."""

    __tablename__ = "mcq_submissions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(String(36), ForeignKey("mcq_questions.id", ondelete="CASCADE"), nullable=False, index=True)

    selected_option_index = Column(Integer, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)
    points_earned = Column(Integer, nullable=False, default=0)
    submitted_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", lazy="selectin")
    question = relationship("McqQuestion", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("user_id", "question_id", name="uq_mcq_submissions_user_question"),
    )

    def __repr__(self) -> str:
        return f"<McqSubmission user={self.user_id} question={self.question_id} correct={self.is_correct}>"


class DsaSubmission(Base):
    """Best attempt per (user, problem); replaced only when the score improves."""

    __tablename__ = "dsa_submissions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    problem_id = Column(String(36), ForeignKey("dsa_problems.id", ondelete="CASCADE"), nullable=False, index=True)

    code = Column(Text, nullable=False)
    language = Column(String(32), nullable=False)
    status = Column(String(32), nullable=False, default=DsaStatus.WRONG_ANSWER)
    points_earned = Column(Integer, nullable=False, default=0)
    test_cases_passed = Column(Integer, nullable=False, default=0)
    total_test_cases = Column(Integer, nullable=False, default=0)
    submitted_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", lazy="selectin")
    problem = relationship("DsaProblem", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("user_id", "problem_id", name="uq_dsa_submissions_user_problem"),
    )

    def __repr__(self) -> str:
        return f"<DsaSubmission user={self.user_id} problem={self.problem_id} points={self.points_earned}>"
