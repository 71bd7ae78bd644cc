import uuid

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from app.database import Base


class McqQuestion(Base):
    __tablename__ = "mcq_questions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    contest_id = Column(String(36), ForeignKey("contests.id", ondelete="CASCADE"), nullable=False, index=True)
    question_text = Column(Text, nullable=False)
    options = Column(JSON, nullable=False, default=list)
    # zero-based; only ever shown to the contest creator
    correct_option_index = Column(Integer, nullable=False)
    points = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=func.now())

    contest = relationship("Contest", back_populates="mcq_questions")
