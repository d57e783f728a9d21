# backend/messenger/services/reaction_service.py
import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from messenger.core.exceptions import NotFoundError, ValidationError
from messenger.core.time_utils import utc_now
from messenger.db.models.message import Message, MessageReaction
from messenger.schemas.message import ReactionResult
from messenger.services import conversation_service, event_service

logger = logging.getLogger(__name__)


async def toggle_reaction(db: AsyncSession, user_id: int, message_id: int, emoji: str) -> ReactionResult:
    """
    One reaction per (message, user):
    - same emoji as the existing one -> removed (toggle off)
    - different emoji -> first row becomes the new emoji
    - none -> inserted
    Legacy duplicate rows for the user are deleted on the way, so at most one
    row remains after every call.
    """
    emoji = (emoji or "").strip()
    if not emoji:
        raise ValidationError("Emoji is required")

    # Row lock serializes concurrent toggles on the same message
    result = await db.execute(select(Message).where(Message.id == message_id).with_for_update())
    message = result.scalar_one_or_none()
    if not message:
        raise NotFoundError("Message not found")
    await conversation_service.require_member(db, message.conversation_id, user_id)
    if message.is_deleted:
        raise ValidationError("Cannot react to a deleted message")

    rows = await db.execute(
        select(MessageReaction)
        .where(MessageReaction.message_id == message_id, MessageReaction.user_id == user_id)
        .order_by(MessageReaction.id)
    )
    existing = list(rows.scalars().all())

    try:
        if any(r.emoji == emoji for r in existing):
            for reaction in existing:
                await db.delete(reaction)
            current = None
        elif existing:
            canonical, duplicates = existing[0], existing[1:]
            canonical.emoji = emoji
            for reaction in duplicates:
                await db.delete(reaction)
            current = emoji
        else:
            db.add(MessageReaction(message_id=message_id, user_id=user_id, emoji=emoji, created_at=utc_now()))
            current = emoji
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"[ReactionService] toggle failed (User {user_id}, Message {message_id}): {e}")
        raise

    if len(existing) > 1:
        logger.info(f"[ReactionService] collapsed {len(existing)} reactions of user {user_id} on message {message_id}")

    await event_service.publish_conversation_event(
        message.conversation_id, event_service.REACTION_CHANGED, message_id=message_id, user_id=user_id
    )
    return ReactionResult(message_id=message_id, emoji=current)
