import uuid

from sqlalchemy import Column, DateTime, String, func
from sqlalchemy.orm import relationship

from app.database import Base


class UserRole:
    CREATOR = "creator"
    CONTESTEE = "contestee"

    ALL = (CREATOR, CONTESTEE)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    role = Column(String(16), nullable=False, default=UserRole.CONTESTEE)
    created_at = Column(DateTime, default=func.now())

    contests = relationship("Contest", back_populates="creator")

    def __repr__(self) -> str:
        return f"<User id={self.id} role={self.role}>"
