"""
Roll-call API routes.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status, WebSocket
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from classroom_live.database import get_db, get_session_factory
from classroom_live.middleware.rbac import (
    get_current_user,
    require_teacher,
    require_student,
    get_course_or_404,
    assert_course_teacher,
    assert_course_member,
)
from classroom_live.models.rollcall import Rollcall
from classroom_live.models.user import User, UserRole
from classroom_live.schemas.rollcall import (
    RollcallCreate,
    RollcallResponse,
    RollcallListResponse,
    RollcallStopResponse,
    CheckInRequest,
    CheckInResponse,
    AttendanceStatusUpdate,
    RecordResponse,
    RecordListResponse,
    AttendanceStatsResponse,
)
from classroom_live.services.course_service import is_student_enrolled
from classroom_live.services.rollcall_service import (
    start_rollcall,
    stop_rollcall,
    check_in,
    set_attendance_status,
    get_rollcall_by_id,
    get_active_rollcall,
    list_course_rollcalls,
    list_rollcall_records,
    get_student_attendance_stats,
    live_rollcalls,
    rollcall_records_feed,
    to_rollcall_response,
)
from classroom_live.services.user_service import get_user_by_id
from classroom_live.api.live import serve_feed

router = APIRouter(prefix="/api/v1", tags=["Roll-calls"])


async def _get_rollcall_or_404(db: AsyncSession, rollcall_id: int) -> Rollcall:
    rollcall = await get_rollcall_by_id(db, rollcall_id)
    if not rollcall:
        raise HTTPException(status_code=404, detail="Roll-call not found")
    return rollcall


@router.post(
    "/courses/{course_id}/rollcalls",
    response_model=RollcallResponse,
    status_code=status.HTTP_201_CREATED,
)
async def start_course_rollcall(
    course_id: int,
    body: RollcallCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    course = await get_course_or_404(db, course_id)
    assert_course_teacher(course, current_user)
    try:
        rollcall = await start_rollcall(
            db,
            course_id=course_id,
            kind=body.kind,
            duration_minutes=body.duration_minutes,
            lat=body.target_lat,
            lng=body.target_lng,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return to_rollcall_response(rollcall)


@router.get("/courses/{course_id}/rollcalls", response_model=RollcallListResponse)
async def get_course_rollcalls(
    course_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    course = await get_course_or_404(db, course_id)
    assert_course_teacher(course, current_user)
    rollcalls = await list_course_rollcalls(db, course_id)
    return RollcallListResponse(
        rollcalls=[to_rollcall_response(rc) for rc in rollcalls],
        total=len(rollcalls),
    )


@router.get("/courses/{course_id}/rollcalls/active", response_model=Optional[RollcallResponse])
async def get_course_active_rollcall(
    course_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    course = await get_course_or_404(db, course_id)
    await assert_course_member(db, course, current_user)
    rollcall = await get_active_rollcall(db, course_id)
    return to_rollcall_response(rollcall) if rollcall else None


@router.websocket("/courses/{course_id}/rollcalls/live/ws")
async def live_rollcall_socket(
    websocket: WebSocket,
    course_id: int,
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    async def authorize(db: AsyncSession, user: User) -> None:
        course = await get_course_or_404(db, course_id)
        await assert_course_member(db, course, user)

    await serve_feed(
        websocket,
        authorize,
        lambda: live_rollcalls(course_id, session_factory=session_factory),
        "rollcall_update",
        session_factory=session_factory,
    )


@router.post("/rollcalls/{rollcall_id}/stop", response_model=RollcallStopResponse)
async def stop_course_rollcall(
    rollcall_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    rollcall = await _get_rollcall_or_404(db, rollcall_id)
    course = await get_course_or_404(db, rollcall.course_id)
    assert_course_teacher(course, current_user)
    try:
        stopped = await stop_rollcall(db, rollcall_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return RollcallStopResponse(id=rollcall.id, stopped=stopped, end_time=rollcall.end_time)


@router.post("/rollcalls/{rollcall_id}/check-in", response_model=CheckInResponse)
async def check_in_rollcall(
    rollcall_id: int,
    body: CheckInRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_student),
):
    rollcall = await _get_rollcall_or_404(db, rollcall_id)
    if not await is_student_enrolled(db, rollcall.course_id, current_user.id):
        raise HTTPException(status_code=403, detail="Not enrolled in this course")
    if (body.lat is None) != (body.lng is None):
        raise HTTPException(status_code=400, detail="Latitude and longitude must be given together")
    try:
        result, record = await check_in(
            db,
            student_id=current_user.id,
            rollcall_id=rollcall_id,
            lat=body.lat,
            lng=body.lng,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return CheckInResponse(
        result=result,
        status=record.status if record else None,
        record=RecordResponse.model_validate(record) if record else None,
    )


@router.put("/rollcalls/{rollcall_id}/records/{student_id}", response_model=RecordResponse)
async def override_attendance_status(
    rollcall_id: int,
    student_id: int,
    body: AttendanceStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    rollcall = await _get_rollcall_or_404(db, rollcall_id)
    course = await get_course_or_404(db, rollcall.course_id)
    assert_course_teacher(course, current_user)
    student = await get_user_by_id(db, student_id)
    if not student or student.role != UserRole.STUDENT:
        raise HTTPException(status_code=404, detail="Student not found")
    try:
        record = await set_attendance_status(db, rollcall_id, student_id, body.status)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return RecordResponse.model_validate(record)


@router.get("/rollcalls/{rollcall_id}/records", response_model=RecordListResponse)
async def get_rollcall_records(
    rollcall_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    rollcall = await _get_rollcall_or_404(db, rollcall_id)
    course = await get_course_or_404(db, rollcall.course_id)
    assert_course_teacher(course, current_user)
    records = await list_rollcall_records(db, rollcall_id)
    return RecordListResponse(records=[RecordResponse.model_validate(r) for r in records])


@router.websocket("/rollcalls/{rollcall_id}/records/ws")
async def rollcall_records_socket(
    websocket: WebSocket,
    rollcall_id: int,
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    async def authorize(db: AsyncSession, user: User) -> None:
        rollcall = await _get_rollcall_or_404(db, rollcall_id)
        course = await get_course_or_404(db, rollcall.course_id)
        assert_course_teacher(course, user)

    await serve_feed(
        websocket,
        authorize,
        lambda: rollcall_records_feed(rollcall_id, session_factory=session_factory),
        "records_update",
        session_factory=session_factory,
    )


@router.get("/students/{student_id}/attendance-stats", response_model=AttendanceStatsResponse)
async def get_attendance_stats(
    student_id: int,
    course_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if current_user.role == UserRole.STUDENT and current_user.id != student_id:
        raise HTTPException(status_code=403, detail="Students can only view their own attendance")
    if current_user.role == UserRole.TEACHER:
        if course_id is None:
            raise HTTPException(status_code=400, detail="course_id is required")
        course = await get_course_or_404(db, course_id)
        assert_course_teacher(course, current_user)
    stats = await get_student_attendance_stats(db, student_id, course_id=course_id)
    return AttendanceStatsResponse(**stats)
