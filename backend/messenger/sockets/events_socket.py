# backend/messenger/sockets/events_socket.py
"""
Push relay: forwards change notifications from Redis pub/sub to a client socket.
The client reacts by re-running its HTTP queries.
"""
import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from redis.exceptions import RedisError

from messenger.core.exceptions import UnauthenticatedError
from messenger.core.security import verify_websocket_token
from messenger.db.database import AsyncSessionLocal
from messenger.db.database_redis import RedisManager, conversation_channel, user_channel
from messenger.services import conversation_service, user_service

logger = logging.getLogger(__name__)

router = APIRouter()


async def _resolve_channels(subject: str) -> Optional[tuple[int, list[str]]]:
    # DB 세션은 채널 계산에만 쓰고 바로 닫습니다.
    async with AsyncSessionLocal() as db:
        user = await user_service.get_user_by_subject(db, subject)
        if not user:
            return None
        conversation_ids = await conversation_service.get_conversation_ids_for_user(db, user.id)
    channels = [user_channel(user.id)] + [conversation_channel(cid) for cid in conversation_ids]
    return user.id, channels


async def _forward(pubsub, websocket: WebSocket):
    async for message in pubsub.listen():
        if message.get("type") != "message":
            continue
        await websocket.send_text(message["data"])


def _subscription_target(frame: dict) -> Optional[int]:
    conversation_id = frame.get("conversation_id")
    # bool is an int subclass
    if isinstance(conversation_id, bool) or not isinstance(conversation_id, int):
        return None
    return conversation_id


async def _handle_client(pubsub, websocket: WebSocket, user_id: int):
    """
    Client frames:
    {"type": "PING"} -> {"type": "PONG"}
    {"type": "subscribe", "conversation_id": 1} after joining a new conversation
    """
    while True:
        raw = await websocket.receive_text()
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"[EventsSocket] malformed frame from user {user_id}")
            continue
        if not isinstance(frame, dict):
            continue

        if frame.get("type") == "PING":
            await websocket.send_json({"type": "PONG"})
        elif frame.get("type") == "subscribe":
            conversation_id = _subscription_target(frame)
            if conversation_id is None:
                continue
            async with AsyncSessionLocal() as db:
                allowed = await conversation_service.is_member(db, conversation_id, user_id)
            if allowed:
                await pubsub.subscribe(conversation_channel(conversation_id))


@router.websocket("/ws/events")
async def events_endpoint(websocket: WebSocket, token: Optional[str] = None):
    # 1. 보안 검증
    try:
        subject = await verify_websocket_token(token)
    except UnauthenticatedError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    resolved = await _resolve_channels(subject)
    if resolved is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    user_id, channels = resolved

    await websocket.accept()
    pubsub = RedisManager.get_client().pubsub()
    try:
        await pubsub.subscribe(*channels)
        logger.info(f"[EventsSocket] user {user_id} subscribed to {len(channels)} channels")

        tasks = [
            asyncio.create_task(_forward(pubsub, websocket)),
            asyncio.create_task(_handle_client(pubsub, websocket, user_id)),
        ]
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in done:
            error = task.exception()
            if error and not isinstance(error, WebSocketDisconnect):
                raise error
    except WebSocketDisconnect:
        pass
    except RedisError as e:
        logger.error(f"[EventsSocket] redis error for user {user_id}: {e}")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
    finally:
        await pubsub.aclose()
        logger.info(f"[EventsSocket] user {user_id} disconnected")
