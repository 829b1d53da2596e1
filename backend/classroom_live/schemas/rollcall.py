"""Pydantic schemas for roll-call sessions and check-in records."""

from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, Field, ConfigDict

from classroom_live.models.rollcall import RollcallKind, AttendanceStatus, CheckInResult


class RollcallCreate(BaseModel):
    kind: RollcallKind = RollcallKind.IMMEDIATE
    duration_minutes: int = Field(..., gt=0)
    target_lat: Optional[float] = Field(None, ge=-90, le=90)
    target_lng: Optional[float] = Field(None, ge=-180, le=180)


class RollcallResponse(BaseModel):
    id: int
    course_id: int
    kind: RollcallKind
    start_time: datetime
    duration_minutes: int
    end_time: Optional[datetime] = None
    target_lat: Optional[float] = None
    target_lng: Optional[float] = None
    is_open: bool
    remaining_seconds: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class RollcallListResponse(BaseModel):
    rollcalls: List[RollcallResponse]
    total: int


class RollcallStopResponse(BaseModel):
    id: int
    stopped: bool
    end_time: Optional[datetime] = None


class CheckInRequest(BaseModel):
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)


class RecordResponse(BaseModel):
    id: int
    rollcall_id: int
    student_id: int
    status: AttendanceStatus
    recorded_at: datetime
    gps_lat: Optional[float] = None
    gps_lng: Optional[float] = None

    model_config = ConfigDict(from_attributes=True)


class CheckInResponse(BaseModel):
    result: CheckInResult
    status: Optional[AttendanceStatus] = None
    record: Optional[RecordResponse] = None


class AttendanceStatusUpdate(BaseModel):
    status: AttendanceStatus


class RecordListResponse(BaseModel):
    records: List[RecordResponse]


class AttendanceStatsResponse(BaseModel):
    student_id: int
    course_id: Optional[int] = None
    total_rollcalls: int
    attended_count: int
    status_counts: dict[str, int]
