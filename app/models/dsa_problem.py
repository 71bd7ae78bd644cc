import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from app.database import Base


class DsaProblem(Base):
    __tablename__ = "dsa_problems"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    contest_id = Column(String(36), ForeignKey("contests.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    points = Column(Integer, nullable=False, default=0)
    time_limit = Column(Integer, nullable=False, default=2000)  # milliseconds
    memory_limit = Column(Integer, nullable=False, default=256)  # megabytes
    created_at = Column(DateTime, default=func.now())

    contest = relationship("Contest", back_populates="dsa_problems")
    test_cases = relationship(
        "TestCase",
        back_populates="problem",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="TestCase.position",
    )

    @property
    def time_limit_seconds(self) -> float:
        return (self.time_limit or 0) / 1000.0

    @property
    def memory_limit_bytes(self) -> int:
        return (self.memory_limit or 0) * 1024 * 1024

    def visible_test_cases(self, *, include_hidden: bool) -> list["TestCase"]:
        return [tc for tc in (self.test_cases or []) if include_hidden or not tc.is_hidden]


class TestCase(Base):
    __tablename__ = "test_cases"
    __test__ = False  # keep pytest from collecting the model

    id = Column(Integer, primary_key=True)
    problem_id = Column(String(36), ForeignKey("dsa_problems.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    input = Column(Text, nullable=False, default="")
    expected_output = Column(Text, nullable=False, default="")
    is_hidden = Column(Boolean, nullable=False, default=False)

    problem = relationship("DsaProblem", back_populates="test_cases")
