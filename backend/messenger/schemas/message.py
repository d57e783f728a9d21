from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import List, Literal, Optional

MessageType = Literal["text", "image", "file"]

class MessageSend(BaseModel):
    content: str = ""
    type: MessageType = "text"
    storage_handle: Optional[str] = None
    reply_to_id: Optional[int] = None

class MessageEdit(BaseModel):
    content: str

class ReactionToggle(BaseModel):
    emoji: str = Field(..., min_length=1, max_length=64)

class ReactionRead(BaseModel):
    id: int
    message_id: int
    user_id: int
    emoji: str

    model_config = ConfigDict(from_attributes=True)

class ReplyPreview(BaseModel):
    id: int
    sender_id: int
    content: str
    type: str
    is_deleted: bool
    created_at: datetime

class MessageRead(BaseModel):
    id: int
    conversation_id: int
    sender_id: int
    content: str
    type: str
    storage_handle: Optional[str] = None
    file_url: Optional[str] = None
    reply_to_id: Optional[int] = None
    reply_to: Optional[ReplyPreview] = None
    reactions: List[ReactionRead] = []
    read_by: List[int] = []
    is_deleted: bool
    is_edited: bool
    created_at: datetime

class MessagePage(BaseModel):
    page: List[MessageRead]
    continue_cursor: Optional[str] = None
    is_done: bool

class MessageBrief(BaseModel):
    """Denormalized last message shown in the conversation list."""
    id: int
    sender_id: int
    content: str
    type: str
    is_deleted: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class ReactionResult(BaseModel):
    message_id: int
    # Emoji the caller has on the message after the toggle, None when removed
    emoji: Optional[str] = None

class TypingUser(BaseModel):
    user_id: int
    name: str

class UploadTarget(BaseModel):
    upload_url: str
    storage_handle: str
