# backend/messenger/services/unread_service.py
import logging
from datetime import datetime
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from messenger.core.time_utils import utc_now
from messenger.db.models.conversation import ConversationMember
from messenger.db.models.unread import UnreadCount
from messenger.db.upsert import dialect_insert
from messenger.services import event_service

logger = logging.getLogger(__name__)


async def increment_for_recipients(db: AsyncSession, conversation_id: int, sender_id: int) -> List[int]:
    """
    +1 for every member except the sender. Runs inside the caller's transaction
    (send), never commits on its own.

    The increment is evaluated by the database (count = count + 1) so two
    concurrent sends cannot overwrite each other's update.
    """
    result = await db.execute(
        select(ConversationMember.user_id).where(
            ConversationMember.conversation_id == conversation_id,
            ConversationMember.user_id != sender_id,
        )
    )
    recipient_ids = list(result.scalars().all())
    if not recipient_ids:
        return []

    table = UnreadCount.__table__
    stmt = dialect_insert(db, table).values([
        {"conversation_id": conversation_id, "user_id": user_id, "count": 1}
        for user_id in recipient_ids
    ])
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.conversation_id, table.c.user_id],
        set_={"count": table.c["count"] + 1},
    )
    await db.execute(stmt)
    return recipient_ids


async def get_unread_count(db: AsyncSession, conversation_id: int, user_id: int) -> int:
    result = await db.execute(
        select(UnreadCount.count).where(
            UnreadCount.conversation_id == conversation_id,
            UnreadCount.user_id == user_id,
        )
    )
    return result.scalar_one_or_none() or 0


async def mark_read(db: AsyncSession, user_id: Optional[int], conversation_id: int,
                    now: Optional[datetime] = None) -> bool:
    """
    Zeroes the caller's counter and stamps the read receipt.
    Never fails: unknown caller or missing rows are a no-op (returns False).
    """
    if user_id is None:
        return False
    now = now or utc_now()

    await db.execute(
        update(UnreadCount)
        .where(UnreadCount.conversation_id == conversation_id, UnreadCount.user_id == user_id)
        .values(count=0)
    )
    receipt = await db.execute(
        update(ConversationMember)
        .where(ConversationMember.conversation_id == conversation_id, ConversationMember.user_id == user_id)
        .values(last_read_at=now)
    )
    await db.commit()

    if receipt.rowcount:
        await event_service.publish_conversation_event(conversation_id, event_service.READ, user_id=user_id)
        return True
    return False
