"""User database model with role enum.

Accounts are provisioned by the identity provider; this service only
references them.
"""

import enum
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Enum, Index
from classroom_live.database import Base


class UserRole(str, enum.Enum):
    """System roles."""
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), unique=True, nullable=False, index=True)  # student number for students
    name = Column(String(100), nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.STUDENT, index=True)
    avatar_url = Column(String(500), nullable=True)
    group = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_users_role_group", "role", "group"),
    )

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', role={self.role})>"
