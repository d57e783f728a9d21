# backend/messenger/services/typing_service.py
import logging
from datetime import datetime, timedelta
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, and_

from messenger.core.config import TYPING_WINDOW_SECONDS, TYPING_RETENTION_SECONDS
from messenger.core.time_utils import utc_now
from messenger.db.models.conversation import ConversationMember
from messenger.db.models.typing_indicator import TypingIndicator
from messenger.db.models.user import User
from messenger.db.upsert import dialect_insert
from messenger.schemas.message import TypingUser
from messenger.services import conversation_service, event_service

logger = logging.getLogger(__name__)


async def set_typing(db: AsyncSession, user_id: Optional[int], conversation_id: int,
                     now: Optional[datetime] = None) -> bool:
    """
    Upserts last_update = now. Best-effort: unknown callers and non-members
    are ignored. The server does not rate-limit; clients throttle.
    """
    if user_id is None:
        return False
    if not await conversation_service.is_member(db, conversation_id, user_id):
        return False
    now = now or utc_now()

    table = TypingIndicator.__table__
    stmt = dialect_insert(db, table).values(conversation_id=conversation_id, user_id=user_id, last_update=now)
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.conversation_id, table.c.user_id],
        set_={"last_update": stmt.excluded.last_update},
    )
    await db.execute(stmt)
    await purge_stale(db, conversation_id, now)
    await db.commit()

    await event_service.publish_conversation_event(conversation_id, event_service.TYPING, user_id=user_id)
    return True


async def purge_stale(db: AsyncSession, conversation_id: int, now: Optional[datetime] = None,
                      retention_seconds: float = TYPING_RETENTION_SECONDS) -> None:
    """Garbage-collects long-dead rows. Readers never depend on it."""
    now = now or utc_now()
    await db.execute(
        delete(TypingIndicator).where(
            TypingIndicator.conversation_id == conversation_id,
            TypingIndicator.last_update < now - timedelta(seconds=retention_seconds),
        )
    )


async def get_active_typers(db: AsyncSession, conversation_id: int, requester_id: Optional[int],
                            now: Optional[datetime] = None,
                            window_seconds: float = TYPING_WINDOW_SECONDS) -> List[TypingUser]:
    """
    Members other than the requester with now - last_update < window.
    Expiry is a read-time filter only. Unknown callers and non-members see nobody.
    """
    if requester_id is None:
        return []
    if not await conversation_service.is_member(db, conversation_id, requester_id):
        return []
    now = now or utc_now()
    threshold = now - timedelta(seconds=window_seconds)

    stmt = (
        select(User.id, User.name)
        .join(TypingIndicator, TypingIndicator.user_id == User.id)
        .join(ConversationMember, and_(
            ConversationMember.user_id == User.id,
            ConversationMember.conversation_id == conversation_id,
        ))
        .where(
            TypingIndicator.conversation_id == conversation_id,
            TypingIndicator.last_update > threshold,
            User.id != requester_id,
        )
        .order_by(TypingIndicator.last_update)
    )

    result = await db.execute(stmt)
    return [TypingUser(user_id=user_id, name=name or "Unknown") for user_id, name in result.all()]
