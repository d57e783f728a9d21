# backend/messenger/services/message_service.py
import logging
from collections import defaultdict
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from messenger.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from messenger.core.exceptions import NotFoundError, UnauthorizedError, ValidationError, UnauthenticatedError
from messenger.core.pagination import decode_cursor, encode_cursor
from messenger.core.time_utils import utc_now
from messenger.db.models.conversation import ConversationMember
from messenger.db.models.message import Message, MessageReaction, HiddenMessage, MESSAGE_TYPES, DELETED_PLACEHOLDER
from messenger.schemas.message import MessagePage, MessageRead, ReactionRead, ReplyPreview
from messenger.services import attachment_service, conversation_service, event_service, unread_service

logger = logging.getLogger(__name__)

ATTACHMENT_PLACEHOLDERS = {
    "image": "📷 Image",
    "file": "📄 File",
}


async def get_message(db: AsyncSession, message_id: int) -> Message:
    message = await db.get(Message, message_id)
    if not message:
        raise NotFoundError("Message not found")
    return message


async def send(db: AsyncSession, sender_id: Optional[int], conversation_id: int, content: str = "",
               type: str = "text", storage_handle: Optional[str] = None,
               reply_to_id: Optional[int] = None) -> Message:
    """
    Appends a message. In the same transaction:
    1. conversation.last_message_id -> new message
    2. unread counter +1 for every other member
    """
    if sender_id is None:
        raise UnauthenticatedError()
    if type not in MESSAGE_TYPES:
        raise ValidationError(f"Unknown message type: {type}")

    content = (content or "").strip()
    if type == "text":
        if not content:
            raise ValidationError("Message content is empty")
    else:
        if not storage_handle:
            raise ValidationError(f"A storage handle is required for {type} messages")
        if not content:
            content = ATTACHMENT_PLACEHOLDERS[type]

    conversation = await conversation_service.require_member(db, conversation_id, sender_id)

    if reply_to_id is not None:
        target = await db.get(Message, reply_to_id)
        # Target must already exist in this conversation: no self/forward replies
        if not target or target.conversation_id != conversation_id:
            raise ValidationError("Reply target must be a message in the same conversation")

    message = Message(
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=content,
        type=type,
        storage_handle=storage_handle,
        reply_to_id=reply_to_id,
        is_deleted=False,
        is_edited=False,
        created_at=utc_now(),
    )
    try:
        db.add(message)
        await db.flush()
        conversation.last_message_id = message.id
        recipients = await unread_service.increment_for_recipients(db, conversation_id, sender_id)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"[MessageService] send failed (User {sender_id} -> Conversation {conversation_id}): {e}")
        raise

    logger.info(f"[MessageService] message {message.id} sent to conversation {conversation_id} "
                f"({len(recipients)} recipients)")
    await event_service.publish_conversation_event(
        conversation_id, event_service.MESSAGE_CREATED, message_id=message.id, sender_id=sender_id
    )
    return message


def _reply_preview(target: Message) -> ReplyPreview:
    return ReplyPreview(
        id=target.id,
        sender_id=target.sender_id,
        content=target.content,
        type=target.type,
        is_deleted=target.is_deleted,
        created_at=target.created_at,
    )


async def list_messages(db: AsyncSession, viewer_id: int, conversation_id: int,
                        cursor: Optional[str] = None,
                        page_size: int = DEFAULT_PAGE_SIZE) -> MessagePage:
    """
    Newest-first page over (created_at DESC, id DESC).

    The cursor marks the last row of the previous page; the next page holds
    strictly older rows, so messages inserted meanwhile (always newer) never
    shift the window.
    """
    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        raise ValidationError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")
    position = decode_cursor(cursor)
    await conversation_service.require_member(db, conversation_id, viewer_id)

    hidden = select(HiddenMessage.message_id).where(HiddenMessage.user_id == viewer_id)
    stmt = select(Message).where(
        Message.conversation_id == conversation_id,
        Message.id.not_in(hidden),
    )
    if position is not None:
        stmt = stmt.where(or_(
            Message.created_at < position.created_at,
            and_(Message.created_at == position.created_at, Message.id < position.id),
        ))
    stmt = stmt.order_by(Message.created_at.desc(), Message.id.desc()).limit(page_size + 1)

    result = await db.execute(stmt)
    rows = list(result.scalars().all())
    is_done = len(rows) <= page_size
    page = rows[:page_size]

    if page:
        continue_cursor = encode_cursor(page[-1].created_at, page[-1].id)
    else:
        continue_cursor = cursor

    return MessagePage(
        page=await _hydrate(db, conversation_id, page),
        continue_cursor=continue_cursor,
        is_done=is_done,
    )


async def _hydrate(db: AsyncSession, conversation_id: int, messages: List[Message]) -> List[MessageRead]:
    """Joins reactions, attachment URL, reply target and read receipts."""
    if not messages:
        return []
    message_ids = [m.id for m in messages]

    reactions = defaultdict(list)
    reaction_rows = await db.execute(
        select(MessageReaction)
        .where(MessageReaction.message_id.in_(message_ids))
        .order_by(MessageReaction.id)
    )
    for reaction in reaction_rows.scalars().all():
        reactions[reaction.message_id].append(ReactionRead.model_validate(reaction))

    reply_ids = {m.reply_to_id for m in messages if m.reply_to_id}
    replies = {}
    if reply_ids:
        reply_rows = await db.execute(select(Message).where(Message.id.in_(reply_ids)))
        replies = {m.id: m for m in reply_rows.scalars().all()}

    receipt_rows = await db.execute(
        select(ConversationMember.user_id, ConversationMember.last_read_at).where(
            ConversationMember.conversation_id == conversation_id,
            ConversationMember.last_read_at.is_not(None),
        )
    )
    receipts = receipt_rows.all()

    items = []
    for message in messages:
        # Deleted messages keep their row but their attachment and reactions are inert
        visible = not message.is_deleted
        target = replies.get(message.reply_to_id)
        items.append(MessageRead(
            id=message.id,
            conversation_id=message.conversation_id,
            sender_id=message.sender_id,
            content=message.content,
            type=message.type,
            storage_handle=message.storage_handle if visible else None,
            file_url=attachment_service.resolve_url(message.storage_handle) if visible else None,
            reply_to_id=message.reply_to_id,
            reply_to=_reply_preview(target) if target else None,
            reactions=reactions.get(message.id, []) if visible else [],
            read_by=[
                user_id for user_id, last_read_at in receipts
                if user_id != message.sender_id and last_read_at >= message.created_at
            ],
            is_deleted=message.is_deleted,
            is_edited=message.is_edited,
            created_at=message.created_at,
        ))
    return items


async def _get_own_message(db: AsyncSession, requester_id: int, message_id: int) -> Message:
    message = await get_message(db, message_id)
    if message.sender_id != requester_id:
        raise UnauthorizedError("Only the sender can change this message")
    return message


async def edit_message(db: AsyncSession, requester_id: int, message_id: int, content: str) -> Message:
    """Replaces content in place. No edit history is kept."""
    message = await _get_own_message(db, requester_id, message_id)
    if message.is_deleted:
        raise ValidationError("Cannot edit a deleted message")
    content = (content or "").strip()
    if not content:
        raise ValidationError("Message content is empty")

    message.content = content
    message.is_edited = True
    await db.commit()

    await event_service.publish_conversation_event(
        message.conversation_id, event_service.MESSAGE_UPDATED, message_id=message.id
    )
    return message


async def soft_delete(db: AsyncSession, requester_id: int, message_id: int) -> Message:
    """Irreversible. Deleting an already-deleted message is a no-op."""
    message = await _get_own_message(db, requester_id, message_id)
    if message.is_deleted:
        return message

    message.content = DELETED_PLACEHOLDER
    message.is_deleted = True
    await db.commit()

    logger.info(f"[MessageService] message {message.id} deleted by user {requester_id}")
    await event_service.publish_conversation_event(
        message.conversation_id, event_service.MESSAGE_UPDATED, message_id=message.id
    )
    return message


async def hide_for_me(db: AsyncSession, user_id: int, message_id: int) -> None:
    """
    Per-user overlay. Other members, unread counts and the conversation's
    last message are untouched.
    """
    message = await get_message(db, message_id)
    await conversation_service.require_member(db, message.conversation_id, user_id)

    result = await db.execute(
        select(HiddenMessage.id).where(HiddenMessage.message_id == message_id, HiddenMessage.user_id == user_id)
    )
    if result.scalar_one_or_none() is not None:
        return

    db.add(HiddenMessage(message_id=message_id, user_id=user_id, created_at=utc_now()))
    try:
        await db.commit()
    except IntegrityError:
        # Hidden concurrently by the same user
        await db.rollback()
