from sqlalchemy import Integer, String, Text, Boolean, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime
from typing import Optional, List, TYPE_CHECKING
from messenger.db.database import Base
from messenger.core.time_utils import utc_now

if TYPE_CHECKING:
    from messenger.db.models.user import User

MESSAGE_TYPES = ("text", "image", "file")
DELETED_PLACEHOLDER = "This message was deleted"

class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        # Pager index: newest first within a conversation
        Index("ix_messages_conversation_created", "conversation_id", "created_at", "id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    conversation_id: Mapped[int] = mapped_column(ForeignKey("conversations.id"), nullable=False)
    sender_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)

    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="text")  # text, image, file
    storage_handle: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    reply_to_id: Mapped[Optional[int]] = mapped_column(ForeignKey("messages.id"), nullable=True)

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_edited: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Assigned once at insert; the only ordering key
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    sender: Mapped["User"] = relationship("User", foreign_keys=[sender_id])
    reply_to: Mapped[Optional["Message"]] = relationship("Message", remote_side=[id])
    reactions: Mapped[List["MessageReaction"]] = relationship(
        "MessageReaction", back_populates="message", cascade="all, delete-orphan"
    )


class MessageReaction(Base):
    __tablename__ = "message_reactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    # Not unique on (message_id, user_id): legacy duplicates are collapsed by toggle_reaction
    message_id: Mapped[int] = mapped_column(ForeignKey("messages.id"), index=True, nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    emoji: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    message: Mapped["Message"] = relationship("Message", back_populates="reactions")


class HiddenMessage(Base):
    """Per-user "delete for me" overlay."""
    __tablename__ = "hidden_messages"
    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="uq_hidden_message_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    message_id: Mapped[int] = mapped_column(ForeignKey("messages.id"), index=True, nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
