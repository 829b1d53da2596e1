"""Shared open/close lifecycle for rows that carry an ``end_time`` open marker.

Roll-calls and buzzer rounds are both "open" while ``end_time`` is NULL.
Starting a new one supersedes whatever is open in the same scope, and the
first conditional write against an open row wins.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Type, TypeVar

from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from classroom_live.config import settings

logger = logging.getLogger("classroom-live.lifecycle")

ModelT = TypeVar("ModelT")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(dt: Optional[datetime]) -> datetime:
    if dt is None:
        return utcnow()
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


async def close_open_and_create(
    db: AsyncSession,
    model: Type[ModelT],
    scope: Dict[str, Any],
    now: Optional[datetime] = None,
    **fields: Any,
) -> Tuple[ModelT, int]:
    """Close every open row matching ``scope``, then insert one new open row.

    Returns the new row and how many rows were closed. The close and the
    insert are separate statements; a concurrent start can briefly leave two
    rows open, and the next call closes both.
    """
    now = to_utc(now)
    filters = [getattr(model, key) == value for key, value in scope.items()]
    result = await db.execute(
        update(model)
        .where(*filters, model.end_time.is_(None))
        .values(end_time=now)
        .execution_options(synchronize_session=False)
    )
    closed = result.rowcount or 0
    if closed:
        logger.info(f"Closed {closed} open {model.__tablename__} row(s) for {scope}")

    record = model(**scope, **fields, start_time=now, end_time=None)
    db.add(record)
    await db.flush()
    await db.refresh(record)
    return record, closed


async def claim_if_open(
    db: AsyncSession,
    model: Type[ModelT],
    record_id: int,
    reraise: bool = False,
    **claim_fields: Any,
) -> bool:
    """Atomically write ``claim_fields`` only if the row is still open.

    The row must have ``end_time`` NULL and every claimed column NULL. At most
    one concurrent caller sees ``True`` for a given row. Lock contention is
    retried a bounded number of times; after that the claim counts as lost,
    or the last ``OperationalError`` is raised when ``reraise`` is set.
    """
    conditions = [model.id == record_id, model.end_time.is_(None)]
    for key in claim_fields:
        if key != "end_time":
            conditions.append(getattr(model, key).is_(None))
    stmt = (
        update(model)
        .where(*conditions)
        .values(**claim_fields)
        .execution_options(synchronize_session=False)
    )

    attempts = max(settings.CLAIM_MAX_ATTEMPTS, 1)
    for attempt in range(1, attempts + 1):
        try:
            result = await db.execute(stmt)
        except OperationalError as exc:
            await db.rollback()
            if attempt == attempts:
                logger.warning(f"Claim on {model.__tablename__}#{record_id} gave up after {attempts} attempts")
                if reraise:
                    raise
                return False
            logger.info(f"Claim on {model.__tablename__}#{record_id} conflicted (attempt {attempt}/{attempts}): {exc}")
            continue
        return result.rowcount == 1
