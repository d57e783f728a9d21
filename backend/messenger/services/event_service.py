# backend/messenger/services/event_service.py
"""
Change notifications for the push transport.
Events only say *what* changed; subscribers re-run their queries.
"""
import logging
from typing import Iterable

from messenger.db.database_redis import RedisManager, conversation_channel, user_channel

logger = logging.getLogger(__name__)

MESSAGE_CREATED = "message.created"
MESSAGE_UPDATED = "message.updated"
REACTION_CHANGED = "reaction.changed"
TYPING = "typing"
READ = "read"
CONVERSATION_CREATED = "conversation.created"


async def publish_conversation_event(conversation_id: int, event_type: str, **data) -> None:
    payload = {"type": event_type, "conversation_id": conversation_id, **data}
    await RedisManager.publish_event(conversation_channel(conversation_id), payload)


async def publish_user_event(user_ids: Iterable[int], event_type: str, **data) -> None:
    for user_id in user_ids:
        payload = {"type": event_type, "user_id": user_id, **data}
        await RedisManager.publish_event(user_channel(user_id), payload)
