"""Buzzer service: round lifecycle and first-buzz-wins arbitration."""

import logging
from datetime import datetime
from typing import AsyncIterator, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from classroom_live.database import AsyncSessionLocal
from classroom_live.models.buzzer import BuzzerRound, BuzzResult
from classroom_live.schemas.buzzer import BuzzerRoundResponse
from classroom_live.services.lifecycle import claim_if_open, close_open_and_create, to_utc
from classroom_live.services.live_feed import course_buzzers_topic, mark_changed, watch

logger = logging.getLogger("classroom-live.buzzer")


async def start_buzzer(db: AsyncSession, course_id: int, now: Optional[datetime] = None) -> BuzzerRound:
    buzzer_round, closed = await close_open_and_create(
        db,
        BuzzerRound,
        {"course_id": course_id},
        now=now,
        winner_student_id=None,
    )
    mark_changed(db, course_buzzers_topic(course_id))
    logger.info(f"Buzzer round {buzzer_round.id} started for course {course_id} (superseded {closed})")
    return buzzer_round


async def get_round_by_id(db: AsyncSession, round_id: int) -> Optional[BuzzerRound]:
    return await db.get(BuzzerRound, round_id)


async def stop_buzzer(db: AsyncSession, round_id: int, now: Optional[datetime] = None) -> bool:
    """Close the round without a winner. No-op if it is already closed."""
    buzzer_round = await db.get(BuzzerRound, round_id)
    if not buzzer_round:
        raise ValueError("Buzzer round not found")

    stopped = await claim_if_open(db, BuzzerRound, round_id, reraise=True, end_time=to_utc(now))
    await db.refresh(buzzer_round)
    if stopped:
        mark_changed(db, course_buzzers_topic(buzzer_round.course_id))
        logger.info(f"Buzzer round {round_id} stopped without a winner")
    return stopped


async def buzz(
    db: AsyncSession,
    student_id: int,
    round_id: int,
    now: Optional[datetime] = None,
) -> BuzzResult:
    """First buzz on an open round wins it and closes it in the same write."""
    if student_id is None:
        raise ValueError("Student is required")
    buzzer_round = await db.get(BuzzerRound, round_id)
    if not buzzer_round:
        raise ValueError("Buzzer round not found")
    if buzzer_round.winner_student_id is not None or buzzer_round.end_time is not None:
        return BuzzResult.TOO_LATE

    won = await claim_if_open(
        db,
        BuzzerRound,
        round_id,
        winner_student_id=student_id,
        end_time=to_utc(now),
    )
    await db.refresh(buzzer_round)
    if not won:
        return BuzzResult.TOO_LATE

    mark_changed(db, course_buzzers_topic(buzzer_round.course_id))
    logger.info(f"Buzzer round {round_id} won by student {student_id}")
    return BuzzResult.WON


async def get_latest_round(db: AsyncSession, course_id: int) -> Optional[BuzzerRound]:
    result = await db.execute(
        select(BuzzerRound)
        .where(BuzzerRound.course_id == course_id)
        .order_by(BuzzerRound.start_time.desc(), BuzzerRound.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


def latest_round_feed(
    course_id: int,
    session_factory: async_sessionmaker = AsyncSessionLocal,
    poll_interval: Optional[float] = None,
) -> AsyncIterator[Optional[BuzzerRoundResponse]]:
    """Feed of the course's most recent round, re-emitted on start, win and stop."""

    async def load(db: AsyncSession) -> Optional[BuzzerRoundResponse]:
        buzzer_round = await get_latest_round(db, course_id)
        return BuzzerRoundResponse.model_validate(buzzer_round) if buzzer_round else None

    return watch(course_buzzers_topic(course_id), load, session_factory, poll_interval)
