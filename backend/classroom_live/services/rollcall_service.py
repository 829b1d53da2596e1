"""Roll-call service: session lifecycle, check-in arbitration and attendance records."""

import logging
from collections import Counter
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from classroom_live.config import settings
from classroom_live.database import AsyncSessionLocal
from classroom_live.models.rollcall import (
    Rollcall,
    RollcallKind,
    RollcallRecord,
    AttendanceStatus,
    CheckInResult,
)
from classroom_live.schemas.rollcall import RollcallResponse, RecordResponse
from classroom_live.services.lifecycle import claim_if_open, close_open_and_create, to_utc
from classroom_live.services.live_feed import (
    course_rollcalls_topic,
    mark_changed,
    rollcall_records_topic,
    watch,
)

logger = logging.getLogger("classroom-live.rollcall")


def compute_checkin_status(start_time: datetime, duration_minutes: int, now: datetime) -> AttendanceStatus:
    """LATE strictly after ``duration_minutes`` have elapsed, PRESENT up to and including it."""
    elapsed_minutes = (to_utc(now) - to_utc(start_time)).total_seconds() / 60
    if elapsed_minutes > duration_minutes:
        return AttendanceStatus.LATE
    return AttendanceStatus.PRESENT


def remaining_seconds(rollcall: Rollcall, now: Optional[datetime] = None) -> Optional[int]:
    if not rollcall.is_open:
        return None
    elapsed = (to_utc(now) - to_utc(rollcall.start_time)).total_seconds()
    return max(int(rollcall.duration_minutes * 60 - elapsed), 0)


def to_rollcall_response(rollcall: Rollcall, now: Optional[datetime] = None) -> RollcallResponse:
    response = RollcallResponse.model_validate(rollcall)
    return response.model_copy(update={"remaining_seconds": remaining_seconds(rollcall, now)})


async def start_rollcall(
    db: AsyncSession,
    course_id: int,
    kind: RollcallKind,
    duration_minutes: int,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    now: Optional[datetime] = None,
) -> Rollcall:
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
        raise ValueError("Duration must be a whole number of minutes")
    if duration_minutes <= 0:
        raise ValueError("Duration must be a positive number of minutes")
    if (lat is None) != (lng is None):
        raise ValueError("Target latitude and longitude must be given together")

    kind = RollcallKind(kind)
    is_gps = kind == RollcallKind.GPS
    rollcall, closed = await close_open_and_create(
        db,
        Rollcall,
        {"course_id": course_id},
        now=now,
        kind=kind.value,
        duration_minutes=duration_minutes,
        target_lat=lat if is_gps else None,
        target_lng=lng if is_gps else None,
    )
    mark_changed(db, course_rollcalls_topic(course_id))
    logger.info(
        f"Roll-call {rollcall.id} started for course {course_id} "
        f"({kind.value}, {duration_minutes} min, superseded {closed})"
    )
    return rollcall


async def stop_rollcall(db: AsyncSession, rollcall_id: int, now: Optional[datetime] = None) -> bool:
    """Close the roll-call if it is still open. Stopping a closed roll-call is a no-op."""
    rollcall = await db.get(Rollcall, rollcall_id)
    if not rollcall:
        raise ValueError("Roll-call not found")

    stopped = await claim_if_open(db, Rollcall, rollcall_id, reraise=True, end_time=to_utc(now))
    await db.refresh(rollcall)
    if stopped:
        mark_changed(db, course_rollcalls_topic(rollcall.course_id))
        logger.info(f"Roll-call {rollcall_id} stopped")
    return stopped


async def get_rollcall_by_id(db: AsyncSession, rollcall_id: int) -> Optional[Rollcall]:
    return await db.get(Rollcall, rollcall_id)


async def get_active_rollcall(db: AsyncSession, course_id: int) -> Optional[Rollcall]:
    result = await db.execute(
        select(Rollcall)
        .where(Rollcall.course_id == course_id, Rollcall.end_time.is_(None))
        .order_by(Rollcall.start_time.desc(), Rollcall.id.desc())
    )
    open_rollcalls = list(result.scalars().all())
    if len(open_rollcalls) > 1:
        logger.warning(
            f"Course {course_id} has {len(open_rollcalls)} open roll-calls; "
            f"using {open_rollcalls[0].id} until the next start closes the rest"
        )
    return open_rollcalls[0] if open_rollcalls else None


async def list_course_rollcalls(db: AsyncSession, course_id: int) -> List[Rollcall]:
    result = await db.execute(
        select(Rollcall)
        .where(Rollcall.course_id == course_id)
        .order_by(Rollcall.start_time.desc(), Rollcall.id.desc())
    )
    return list(result.scalars().all())


async def get_record(db: AsyncSession, rollcall_id: int, student_id: int) -> Optional[RollcallRecord]:
    result = await db.execute(
        select(RollcallRecord).where(
            RollcallRecord.rollcall_id == rollcall_id,
            RollcallRecord.student_id == student_id,
        )
    )
    return result.scalar_one_or_none()


async def check_in(
    db: AsyncSession,
    student_id: int,
    rollcall_id: int,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    now: Optional[datetime] = None,
) -> Tuple[CheckInResult, Optional[RollcallRecord]]:
    """Record a student's check-in; the first one per (roll-call, student) wins.

    Coordinates are stored as given and never compared with the roll-call
    target.
    """
    if student_id is None:
        raise ValueError("Student is required")
    rollcall = await db.get(Rollcall, rollcall_id)
    if not rollcall:
        raise ValueError("Roll-call not found")

    existing = await get_record(db, rollcall_id, student_id)
    if existing:
        return CheckInResult.ALREADY_CHECKED_IN, existing

    if not rollcall.is_open and not settings.ALLOW_CHECKIN_AFTER_STOP:
        return CheckInResult.ROLLCALL_CLOSED, None

    now = to_utc(now)
    status = compute_checkin_status(rollcall.start_time, rollcall.duration_minutes, now)
    record = RollcallRecord(
        rollcall_id=rollcall_id,
        student_id=student_id,
        status=status.value,
        recorded_at=now,
        gps_lat=lat,
        gps_lng=lng,
    )
    db.add(record)
    try:
        await db.flush()
    except IntegrityError:
        # Lost a concurrent check-in for the same student
        await db.rollback()
        return CheckInResult.ALREADY_CHECKED_IN, await get_record(db, rollcall_id, student_id)

    await db.refresh(record)
    mark_changed(db, rollcall_records_topic(rollcall_id))
    return CheckInResult.ACCEPTED, record


async def set_attendance_status(
    db: AsyncSession,
    rollcall_id: int,
    student_id: int,
    status: AttendanceStatus,
    now: Optional[datetime] = None,
) -> RollcallRecord:
    """Teacher override: upsert the record with ``status``, whatever was there before."""
    rollcall = await db.get(Rollcall, rollcall_id)
    if not rollcall:
        raise ValueError("Roll-call not found")

    now = to_utc(now)
    status = AttendanceStatus(status)
    record = await get_record(db, rollcall_id, student_id)
    if record is None:
        record = RollcallRecord(
            rollcall_id=rollcall_id,
            student_id=student_id,
            status=status.value,
            recorded_at=now,
        )
        db.add(record)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            record = await get_record(db, rollcall_id, student_id)
            if record is None:
                raise

    record.status = status.value
    record.recorded_at = now
    await db.flush()
    await db.refresh(record)
    mark_changed(db, rollcall_records_topic(rollcall_id))
    logger.info(f"Roll-call {rollcall_id}: student {student_id} set to {status.value}")
    return record


async def list_rollcall_records(db: AsyncSession, rollcall_id: int) -> List[RollcallRecord]:
    result = await db.execute(
        select(RollcallRecord)
        .where(RollcallRecord.rollcall_id == rollcall_id)
        .order_by(RollcallRecord.recorded_at, RollcallRecord.id)
    )
    return list(result.scalars().all())


async def get_student_attendance_stats(
    db: AsyncSession,
    student_id: int,
    course_id: Optional[int] = None,
) -> Dict[str, Any]:
    query = select(RollcallRecord.status).where(RollcallRecord.student_id == student_id)
    if course_id is not None:
        query = query.join(Rollcall, Rollcall.id == RollcallRecord.rollcall_id).where(
            Rollcall.course_id == course_id
        )
    result = await db.execute(query)
    counts = Counter(row[0] for row in result.all())
    total = sum(counts.values())
    return {
        "student_id": student_id,
        "course_id": course_id,
        "total_rollcalls": total,
        "attended_count": total - counts.get(AttendanceStatus.ABSENT.value, 0),
        "status_counts": {status.value: counts.get(status.value, 0) for status in AttendanceStatus},
    }


def live_rollcalls(
    course_id: int,
    session_factory: async_sessionmaker = AsyncSessionLocal,
    poll_interval: Optional[float] = None,
) -> AsyncIterator[Optional[RollcallResponse]]:
    """Feed of the course's open roll-call (or None), re-emitted on change."""

    async def load(db: AsyncSession) -> Optional[RollcallResponse]:
        rollcall = await get_active_rollcall(db, course_id)
        if rollcall is None:
            return None
        # remaining_seconds is left out so the countdown alone does not re-emit
        return RollcallResponse.model_validate(rollcall)

    return watch(course_rollcalls_topic(course_id), load, session_factory, poll_interval)


def rollcall_records_feed(
    rollcall_id: int,
    session_factory: async_sessionmaker = AsyncSessionLocal,
    poll_interval: Optional[float] = None,
) -> AsyncIterator[List[RecordResponse]]:
    """Feed of every record of a roll-call, re-emitted in full on change."""

    async def load(db: AsyncSession) -> List[RecordResponse]:
        records = await list_rollcall_records(db, rollcall_id)
        return [RecordResponse.model_validate(record) for record in records]

    return watch(rollcall_records_topic(rollcall_id), load, session_factory, poll_interval)
