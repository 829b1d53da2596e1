"""
WebSocket plumbing shared by the live feed endpoints.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Callable

from fastapi import HTTPException, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.websockets import WebSocketState

from classroom_live.database import AsyncSessionLocal
from classroom_live.models.user import User
from classroom_live.services.auth_service import user_id_from_token
from classroom_live.services.user_service import get_user_by_id

logger = logging.getLogger("classroom-live.ws")

_CLOSE_CODES = {401: 4401, 403: 4403, 404: 4404}


async def _resolve_ws_user(db: AsyncSession, token: str) -> User:
    try:
        user_id = user_id_from_token(token)
    except JWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid or expired token") from exc

    user = await get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


async def _pump(websocket: WebSocket, feed: AsyncIterator[Any], message_type: str) -> None:
    async for snapshot in feed:
        await websocket.send_json(jsonable_encoder({"type": message_type, "data": snapshot}))


async def _report_dead_feed(websocket: WebSocket, pump: asyncio.Task, message_type: str) -> None:
    exc = pump.exception()
    if isinstance(exc, WebSocketDisconnect) or websocket.client_state != WebSocketState.CONNECTED:
        return
    if exc is None:
        await websocket.close(code=1000)
        return
    logger.error(f"Feed {message_type} failed: {exc!r}")
    await websocket.send_json({"type": "error", "detail": "Record store unavailable"})
    await websocket.close(code=1011, reason="Feed stopped")


async def serve_feed(
    websocket: WebSocket,
    authorize: Callable[[AsyncSession, User], Awaitable[None]],
    open_feed: Callable[[], AsyncIterator[Any]],
    message_type: str,
    session_factory: async_sessionmaker = AsyncSessionLocal,
) -> None:
    """Authenticate via ``?token=``, authorize, then push every feed snapshot.

    ``authorize`` raises HTTPException; its status maps to a 44xx close code.
    Incoming ``{"type": "ping"}`` messages are answered with ``pong``. If the
    feed dies, the client gets an error frame and the socket closes with 1011.
    """
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=4401, reason="Authentication required")
        return

    async with session_factory() as db:
        try:
            current_user = await _resolve_ws_user(db, token)
            await authorize(db, current_user)
        except HTTPException as exc:
            await websocket.close(code=_CLOSE_CODES.get(exc.status_code, 4400), reason=str(exc.detail))
            return

    await websocket.accept()
    feed = open_feed()
    pump = asyncio.create_task(_pump(websocket, feed, message_type))
    receiver = None
    try:
        while True:
            receiver = asyncio.create_task(websocket.receive_json())
            done, _ = await asyncio.wait({pump, receiver}, return_when=asyncio.FIRST_COMPLETED)
            if pump in done:
                receiver.cancel()
                await _report_dead_feed(websocket, pump, message_type)
                return

            try:
                payload = receiver.result()
            except ValueError:
                await websocket.send_json({"type": "error", "detail": "Invalid JSON payload"})
                continue

            message = str(payload.get("type") or "").strip().lower() if isinstance(payload, dict) else ""
            if message == "ping":
                await websocket.send_json({"type": "pong"})
            else:
                await websocket.send_json({"type": "error", "detail": "Unsupported message type"})
    except WebSocketDisconnect:
        pass
    finally:
        if receiver is not None:
            receiver.cancel()
        pump.cancel()
        pending = [task for task in (pump, receiver) if task is not None]
        results = await asyncio.gather(*pending, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception) and not isinstance(result, WebSocketDisconnect):
                logger.info(f"Feed {message_type} stopped: {result}")
        await feed.aclose()
