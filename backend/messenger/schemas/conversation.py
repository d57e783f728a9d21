from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional

from messenger.schemas.user import UserRead
from messenger.schemas.message import MessageBrief

class DirectConversationCreate(BaseModel):
    participant_id: int

class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    participant_ids: List[int] = []
    description: Optional[str] = None

class ConversationCreated(BaseModel):
    conversation_id: int

class ConversationRead(BaseModel):
    id: int
    is_group: bool
    name: Optional[str] = None
    description: Optional[str] = None
    admin_id: Optional[int] = None
    created_at: datetime
    # DM only: the other member with derived presence
    other_user: Optional[UserRead] = None
    last_message: Optional[MessageBrief] = None
    unread_count: int = 0
