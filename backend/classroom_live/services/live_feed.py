"""Push feeds of full current state, driven by committed changes.

Writers call :func:`mark_changed` with the topics they touched; the topics
are published to :data:`change_hub` only once the transaction commits.
:func:`watch` re-queries the state on every notification (and on a poll
interval, to pick up writes from other processes) and yields it whenever it
differs from the last value yielded.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional, Set

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Session

from classroom_live.config import settings
from classroom_live.database import AsyncSessionLocal

logger = logging.getLogger("classroom-live.feed")

_PENDING_TOPICS_KEY = "changed_topics"
_UNSET = object()


def course_rollcalls_topic(course_id: int) -> str:
    return f"course:{course_id}:rollcalls"


def rollcall_records_topic(rollcall_id: int) -> str:
    return f"rollcall:{rollcall_id}:records"


def course_buzzers_topic(course_id: int) -> str:
    return f"course:{course_id}:buzzers"


class ChangeHub:
    def __init__(self) -> None:
        self._subscribers: Dict[str, Set[asyncio.Queue]] = {}

    def publish(self, topic: str) -> None:
        for queue in list(self._subscribers.get(topic, ())):
            try:
                queue.put_nowait(topic)
            except asyncio.QueueFull:
                # A re-query is already pending for this subscriber
                pass

    @asynccontextmanager
    async def subscribe(self, topic: str) -> AsyncIterator[asyncio.Queue]:
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._subscribers.setdefault(topic, set()).add(queue)
        try:
            yield queue
        finally:
            subscribers = self._subscribers.get(topic)
            if subscribers is not None:
                subscribers.discard(queue)
                if not subscribers:
                    self._subscribers.pop(topic, None)

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))


change_hub = ChangeHub()


def mark_changed(db: AsyncSession, *topics: str) -> None:
    db.info.setdefault(_PENDING_TOPICS_KEY, set()).update(topics)


@event.listens_for(Session, "after_commit")
def _publish_committed_topics(session: Session) -> None:
    for topic in session.info.pop(_PENDING_TOPICS_KEY, ()):
        change_hub.publish(topic)


@event.listens_for(Session, "after_rollback")
def _discard_rolled_back_topics(session: Session) -> None:
    session.info.pop(_PENDING_TOPICS_KEY, None)


async def watch(
    topic: str,
    load: Callable[[AsyncSession], Awaitable[Any]],
    session_factory: async_sessionmaker = AsyncSessionLocal,
    poll_interval: Optional[float] = None,
) -> AsyncIterator[Any]:
    """Yield ``load``'s result now and again after every change to ``topic``.

    Closing the generator unregisters the subscription.
    """
    interval = settings.FEED_POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
    async with change_hub.subscribe(topic) as changes:
        last: Any = _UNSET
        while True:
            async with session_factory() as db:
                snapshot = await load(db)
            if last is _UNSET or snapshot != last:
                last = snapshot
                yield snapshot
            try:
                await asyncio.wait_for(changes.get(), timeout=interval if interval > 0 else None)
            except asyncio.TimeoutError:
                logger.debug(f"Polling {topic}")
