# backend/messenger/services/conversation_service.py
import logging
from datetime import datetime
from typing import Optional, List, Iterable
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import aliased
from sqlalchemy.exc import IntegrityError

from messenger.core.exceptions import NotFoundError, SelfConversationError, UnauthorizedError, ValidationError
from messenger.core.time_utils import utc_now
from messenger.db.models.conversation import Conversation, ConversationMember
from messenger.db.models.message import Message
from messenger.db.models.unread import UnreadCount
from messenger.db.models.user import User
from messenger.schemas.conversation import ConversationRead
from messenger.schemas.message import MessageBrief
from messenger.services import event_service
from messenger.services.presence_service import to_user_read

logger = logging.getLogger(__name__)


def make_dm_key(user_a: int, user_b: int) -> str:
    """Order-independent key of a member pair."""
    low, high = sorted((user_a, user_b))
    return f"{low}:{high}"


async def get_conversation(db: AsyncSession, conversation_id: int) -> Conversation:
    conversation = await db.get(Conversation, conversation_id)
    if not conversation:
        raise NotFoundError("Conversation not found")
    return conversation


async def is_member(db: AsyncSession, conversation_id: int, user_id: int) -> bool:
    result = await db.execute(
        select(ConversationMember.id).where(
            ConversationMember.conversation_id == conversation_id,
            ConversationMember.user_id == user_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def require_member(db: AsyncSession, conversation_id: int, user_id: int) -> Conversation:
    conversation = await get_conversation(db, conversation_id)
    if not await is_member(db, conversation_id, user_id):
        raise UnauthorizedError("Not a member of this conversation")
    return conversation


async def get_member_ids(db: AsyncSession, conversation_id: int) -> List[int]:
    result = await db.execute(
        select(ConversationMember.user_id)
        .where(ConversationMember.conversation_id == conversation_id)
        .order_by(ConversationMember.id)
    )
    return list(result.scalars().all())


async def get_conversation_ids_for_user(db: AsyncSession, user_id: int) -> List[int]:
    result = await db.execute(
        select(ConversationMember.conversation_id).where(ConversationMember.user_id == user_id)
    )
    return list(result.scalars().all())


async def _ensure_users_exist(db: AsyncSession, user_ids: Iterable[int]) -> None:
    wanted = set(user_ids)
    if not wanted:
        return
    result = await db.execute(select(User.id).where(User.id.in_(wanted)))
    missing = wanted - set(result.scalars().all())
    if missing:
        raise NotFoundError(f"User not found: {sorted(missing)[0]}")


async def find_direct_conversation(db: AsyncSession, requester_id: int, participant_id: int) -> Optional[int]:
    """
    Existing non-group conversation containing both users, found through the
    requester's memberships.
    """
    mine = aliased(ConversationMember)
    theirs = aliased(ConversationMember)
    stmt = (
        select(Conversation.id)
        .join(mine, mine.conversation_id == Conversation.id)
        .join(theirs, theirs.conversation_id == Conversation.id)
        .where(
            Conversation.is_group.is_(False),
            mine.user_id == requester_id,
            theirs.user_id == participant_id,
        )
        .order_by(Conversation.id)
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_or_create_dm(db: AsyncSession, requester_id: int, participant_id: int) -> int:
    """
    Idempotent for the unordered pair: (A, B) and (B, A) return the same id.
    """
    if requester_id == participant_id:
        raise SelfConversationError()
    await _ensure_users_exist(db, [participant_id])

    existing_id = await find_direct_conversation(db, requester_id, participant_id)
    if existing_id is not None:
        return existing_id

    dm_key = make_dm_key(requester_id, participant_id)
    now = utc_now()
    conversation = Conversation(is_group=False, dm_key=dm_key, created_at=now)
    db.add(conversation)
    try:
        await db.flush()
        db.add_all([
            ConversationMember(conversation_id=conversation.id, user_id=requester_id, joined_at=now),
            ConversationMember(conversation_id=conversation.id, user_id=participant_id, joined_at=now),
        ])
        await db.commit()
    except IntegrityError:
        # Lost the race on dm_key: another transaction created this pair's DM
        await db.rollback()
        result = await db.execute(select(Conversation.id).where(Conversation.dm_key == dm_key))
        winner_id = result.scalar_one_or_none()
        if winner_id is None:
            raise
        logger.info(f"[ConversationService] concurrent DM creation resolved to {winner_id}")
        return winner_id

    conversation_id = conversation.id
    logger.info(f"[ConversationService] DM {conversation_id} created for {dm_key}")
    await event_service.publish_user_event(
        [requester_id, participant_id], event_service.CONVERSATION_CREATED, conversation_id=conversation_id
    )
    return conversation_id


async def create_group(db: AsyncSession, requester_id: int, name: str, participant_ids: List[int],
                       description: Optional[str] = None) -> int:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Group name is required")

    # dict.fromkeys keeps first-seen order while removing duplicates
    members = list(dict.fromkeys([*participant_ids, requester_id]))
    await _ensure_users_exist(db, members)

    now = utc_now()
    conversation = Conversation(
        is_group=True,
        name=name,
        description=description,
        admin_id=requester_id,
        created_at=now,
    )
    db.add(conversation)
    try:
        await db.flush()
        db.add_all([
            ConversationMember(conversation_id=conversation.id, user_id=user_id, joined_at=now)
            for user_id in members
        ])
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.error(f"[ConversationService] group creation failed: {e}")
        raise

    conversation_id = conversation.id
    logger.info(f"[ConversationService] group {conversation_id} created with {len(members)} members")
    await event_service.publish_user_event(
        members, event_service.CONVERSATION_CREATED, conversation_id=conversation_id
    )
    return conversation_id


async def list_conversations(db: AsyncSession, user_id: int,
                             now: Optional[datetime] = None) -> List[ConversationRead]:
    """
    The caller's conversations, newest activity first, each joined with the
    other member (DMs), the last message and the caller's unread count.
    """
    now = now or utc_now()

    result = await db.execute(
        select(Conversation)
        .join(ConversationMember, ConversationMember.conversation_id == Conversation.id)
        .where(ConversationMember.user_id == user_id)
    )
    conversations = list(result.scalars().all())
    if not conversations:
        return []
    conversation_ids = [c.id for c in conversations]

    # Other member of each DM
    dm_ids = [c.id for c in conversations if not c.is_group]
    other_users = {}
    if dm_ids:
        other_rows = await db.execute(
            select(ConversationMember.conversation_id, User)
            .join(User, User.id == ConversationMember.user_id)
            .where(ConversationMember.conversation_id.in_(dm_ids), ConversationMember.user_id != user_id)
            .order_by(ConversationMember.id)
        )
        for conversation_id, other in other_rows.all():
            other_users.setdefault(conversation_id, other)

    last_message_ids = [c.last_message_id for c in conversations if c.last_message_id]
    last_messages = {}
    if last_message_ids:
        message_rows = await db.execute(select(Message).where(Message.id.in_(last_message_ids)))
        last_messages = {m.id: m for m in message_rows.scalars().all()}

    unread_rows = await db.execute(
        select(UnreadCount.conversation_id, UnreadCount.count).where(
            UnreadCount.user_id == user_id,
            UnreadCount.conversation_id.in_(conversation_ids),
        )
    )
    unread = {conversation_id: count for conversation_id, count in unread_rows.all()}

    items = []
    for conversation in conversations:
        last_message = last_messages.get(conversation.last_message_id)
        other = other_users.get(conversation.id)
        items.append(ConversationRead(
            id=conversation.id,
            is_group=conversation.is_group,
            name=conversation.name,
            description=conversation.description,
            admin_id=conversation.admin_id,
            created_at=conversation.created_at,
            other_user=to_user_read(other, now) if other else None,
            last_message=MessageBrief.model_validate(last_message) if last_message else None,
            unread_count=unread.get(conversation.id, 0),
        ))

    def activity_key(item: ConversationRead):
        activity = item.last_message.created_at if item.last_message else item.created_at
        return (activity, item.created_at, item.id)

    items.sort(key=activity_key, reverse=True)
    return items
