"""
Buzzer API routes.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, WebSocket
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
from classroom_live.models.buzzer import BuzzerRound
from classroom_live.models.user import User
from classroom_live.schemas.buzzer import BuzzerRoundResponse, BuzzerStopResponse, BuzzResponse
from classroom_live.services.buzzer_service import (
    start_buzzer,
    stop_buzzer,
    buzz,
    get_round_by_id,
    get_latest_round,
    latest_round_feed,
)
from classroom_live.services.course_service import is_student_enrolled
from classroom_live.api.live import serve_feed

router = APIRouter(prefix="/api/v1", tags=["Buzzer"])


async def _get_round_or_404(db: AsyncSession, round_id: int) -> BuzzerRound:
    buzzer_round = await get_round_by_id(db, round_id)
    if not buzzer_round:
        raise HTTPException(status_code=404, detail="Buzzer round not found")
    return buzzer_round


@router.post(
    "/courses/{course_id}/buzzers",
    response_model=BuzzerRoundResponse,
    status_code=status.HTTP_201_CREATED,
)
async def start_course_buzzer(
    course_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    course = await get_course_or_404(db, course_id)
    assert_course_teacher(course, current_user)
    buzzer_round = await start_buzzer(db, course_id)
    return BuzzerRoundResponse.model_validate(buzzer_round)


@router.get("/courses/{course_id}/buzzers/latest", response_model=Optional[BuzzerRoundResponse])
async def get_course_latest_round(
    course_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    course = await get_course_or_404(db, course_id)
    await assert_course_member(db, course, current_user)
    buzzer_round = await get_latest_round(db, course_id)
    return BuzzerRoundResponse.model_validate(buzzer_round) if buzzer_round else None


@router.websocket("/courses/{course_id}/buzzers/latest/ws")
async def latest_round_socket(
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
        lambda: latest_round_feed(course_id, session_factory=session_factory),
        "buzzer_update",
        session_factory=session_factory,
    )


@router.post("/buzzers/{round_id}/stop", response_model=BuzzerStopResponse)
async def stop_course_buzzer(
    round_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    buzzer_round = await _get_round_or_404(db, round_id)
    course = await get_course_or_404(db, buzzer_round.course_id)
    assert_course_teacher(course, current_user)
    try:
        stopped = await stop_buzzer(db, round_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return BuzzerStopResponse(id=buzzer_round.id, stopped=stopped, end_time=buzzer_round.end_time)


@router.post("/buzzers/{round_id}/buzz", response_model=BuzzResponse)
async def buzz_in(
    round_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_student),
):
    buzzer_round = await _get_round_or_404(db, round_id)
    if not await is_student_enrolled(db, buzzer_round.course_id, current_user.id):
        raise HTTPException(status_code=403, detail="Not enrolled in this course")
    try:
        result = await buzz(db, student_id=current_user.id, round_id=round_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return BuzzResponse(result=result, round=BuzzerRoundResponse.model_validate(buzzer_round))
