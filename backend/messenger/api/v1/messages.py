# backend/messenger/api/v1/messages.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from messenger.api.deps import get_current_user
from messenger.db.database import get_db
from messenger.db.models.user import User
from messenger.schemas.message import MessageEdit, MessageBrief, ReactionToggle, ReactionResult
from messenger.services import message_service, reaction_service

router = APIRouter(prefix="/messages", tags=["messages"])

@router.patch("/{message_id}", response_model=MessageBrief)
async def edit_message(
    message_id: int,
    body: MessageEdit,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Sender only."""
    return await message_service.edit_message(db, current_user.id, message_id, body.content)

@router.delete("/{message_id}", response_model=MessageBrief)
async def delete_message(
    message_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Soft delete for everyone (sender only)."""
    return await message_service.soft_delete(db, current_user.id, message_id)

@router.post("/{message_id}/hide", status_code=status.HTTP_204_NO_CONTENT)
async def hide_message(
    message_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete for me: hides the message from the caller's history only."""
    await message_service.hide_for_me(db, current_user.id, message_id)
    return None

@router.post("/{message_id}/reactions", response_model=ReactionResult)
async def toggle_reaction(
    message_id: int,
    body: ReactionToggle,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await reaction_service.toggle_reaction(db, current_user.id, message_id, body.emoji)
