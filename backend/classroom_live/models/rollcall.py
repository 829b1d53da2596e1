"""Roll-call session and check-in record models."""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    ForeignKey,
    Float,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from classroom_live.database import Base


class RollcallKind(str, enum.Enum):
    IMMEDIATE = "IMMEDIATE"
    GPS = "GPS"


class AttendanceStatus(str, enum.Enum):
    PRESENT = "PRESENT"
    LATE = "LATE"
    ABSENT = "ABSENT"
    LEAVE = "LEAVE"
    EARLY_LEAVE = "EARLY_LEAVE"


class CheckInResult(str, enum.Enum):
    """Outcome of a student check-in; none of these is an error."""
    ACCEPTED = "ACCEPTED"
    ALREADY_CHECKED_IN = "ALREADY_CHECKED_IN"
    ROLLCALL_CLOSED = "ROLLCALL_CLOSED"


class Rollcall(Base):
    __tablename__ = "rollcalls"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String(20), nullable=False, default=RollcallKind.IMMEDIATE.value)

    start_time = Column(DateTime(timezone=True), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)  # NULL while open

    target_lat = Column(Float, nullable=True)
    target_lng = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    course = relationship("Course")
    records = relationship("RollcallRecord", back_populates="rollcall", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_rollcalls_course_end", "course_id", "end_time"),
        Index("ix_rollcalls_course_start", "course_id", "start_time"),
    )

    @property
    def is_open(self) -> bool:
        return self.end_time is None


class RollcallRecord(Base):
    __tablename__ = "rollcall_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    rollcall_id = Column(Integer, ForeignKey("rollcalls.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=AttendanceStatus.PRESENT.value)
    recorded_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    # Raw device coordinates, stored as reported
    gps_lat = Column(Float, nullable=True)
    gps_lng = Column(Float, nullable=True)

    rollcall = relationship("Rollcall", back_populates="records")
    student = relationship("User")

    __table_args__ = (
        UniqueConstraint("rollcall_id", "student_id", name="uq_rollcall_student"),
        Index("ix_rollcall_records_student_status", "student_id", "status"),
    )
