"""Buzzer round model."""

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from classroom_live.database import Base


class BuzzResult(str, enum.Enum):
    WON = "WON"
    TOO_LATE = "TOO_LATE"


class BuzzerRound(Base):
    __tablename__ = "buzzer_rounds"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)
    # Written in the same statement as end_time
    winner_student_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    course = relationship("Course")
    winner = relationship("User")

    __table_args__ = (
        Index("ix_buzzer_rounds_course_end", "course_id", "end_time"),
        Index("ix_buzzer_rounds_course_start", "course_id", "start_time"),
    )

    @property
    def is_open(self) -> bool:
        return self.end_time is None
