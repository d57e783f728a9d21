# backend/messenger/api/v1/conversations.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from messenger.api.deps import get_current_user, get_optional_user_id
from messenger.core.config import DEFAULT_PAGE_SIZE
from messenger.core.security import get_optional_subject
from messenger.db.database import get_db
from messenger.db.models.user import User
from messenger.schemas.conversation import (
    DirectConversationCreate,
    GroupCreate,
    ConversationCreated,
    ConversationRead,
)
from messenger.schemas.message import MessageSend, MessageRead, MessagePage, TypingUser
from messenger.services import (
    attachment_service,
    conversation_service,
    message_service,
    unread_service,
    typing_service,
    user_service,
)

router = APIRouter(prefix="/conversations", tags=["conversations"])

# --- Conversation Store ---

@router.post("/dm", response_model=ConversationCreated)
async def get_or_create_dm(
    body: DirectConversationCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Existing DM with the participant, or a new one."""
    conversation_id = await conversation_service.get_or_create_dm(db, current_user.id, body.participant_id)
    return ConversationCreated(conversation_id=conversation_id)

@router.post("/groups", response_model=ConversationCreated, status_code=status.HTTP_201_CREATED)
async def create_group(
    body: GroupCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    conversation_id = await conversation_service.create_group(
        db, current_user.id, body.name, body.participant_ids, body.description
    )
    return ConversationCreated(conversation_id=conversation_id)

@router.get("", response_model=List[ConversationRead])
async def get_conversations(
    subject: Optional[str] = Depends(get_optional_subject),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.get_user_by_subject(db, subject)
    if not user:
        return []
    return await conversation_service.list_conversations(db, user.id)

# --- Messages ---

@router.post("/{conversation_id}/messages", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
async def send_message(
    conversation_id: int,
    body: MessageSend,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    message = await message_service.send(
        db,
        current_user.id,
        conversation_id,
        content=body.content,
        type=body.type,
        storage_handle=body.storage_handle,
        reply_to_id=body.reply_to_id,
    )
    return MessageRead(
        id=message.id,
        conversation_id=message.conversation_id,
        sender_id=message.sender_id,
        content=message.content,
        type=message.type,
        storage_handle=message.storage_handle,
        file_url=attachment_service.resolve_url(message.storage_handle),
        reply_to_id=message.reply_to_id,
        is_deleted=message.is_deleted,
        is_edited=message.is_edited,
        created_at=message.created_at,
    )

@router.get("/{conversation_id}/messages", response_model=MessagePage)
async def list_messages(
    conversation_id: int,
    cursor: Optional[str] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Newest first. Pass continue_cursor back as cursor for older messages."""
    return await message_service.list_messages(db, current_user.id, conversation_id, cursor, page_size)

# --- Unread / Typing (best-effort) ---

@router.post("/{conversation_id}/read")
async def mark_read(
    conversation_id: int,
    user_id: Optional[int] = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
):
    marked = await unread_service.mark_read(db, user_id, conversation_id)
    return {"marked": marked}

@router.post("/{conversation_id}/typing")
async def set_typing(
    conversation_id: int,
    user_id: Optional[int] = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
):
    updated = await typing_service.set_typing(db, user_id, conversation_id)
    return {"updated": updated}

@router.get("/{conversation_id}/typing", response_model=List[TypingUser])
async def get_typing(
    conversation_id: int,
    user_id: Optional[int] = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await typing_service.get_active_typers(db, conversation_id, user_id)
