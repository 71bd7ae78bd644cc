import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import relationship

from app.database import Base


class Contest(Base):
    __tablename__ = "contests"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    creator_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    # inclusive window, stored as naive UTC
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=func.now())

    creator = relationship("User", back_populates="contests")

    mcq_questions = relationship(
        "McqQuestion",
        back_populates="contest",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="McqQuestion.created_at",
    )
    dsa_problems = relationship(
        "DsaProblem",
        back_populates="contest",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="DsaProblem.created_at",
    )

    def __repr__(self) -> str:
        return f"<Contest id={self.id} creator={self.creator_id}>"
