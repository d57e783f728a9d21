from sqlalchemy import Integer, String, Text, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime
from typing import Optional, List, TYPE_CHECKING
from messenger.db.database import Base
from messenger.core.time_utils import utc_now

if TYPE_CHECKING:
    from messenger.db.models.user import User

class Conversation(Base):
    __tablename__ = "conversations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    is_group: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # 그룹 전용 필드
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    admin_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)

    # "<min_user_id>:<max_user_id>" for DMs, NULL for groups.
    # The unique index is what keeps one DM per pair under concurrent creation.
    dm_key: Mapped[Optional[str]] = mapped_column(String(64), unique=True, nullable=True)

    # Denormalized pointer, written in the same transaction as the insert
    last_message_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("messages.id", use_alter=True, name="fk_conversations_last_message_id"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    members: Mapped[List["ConversationMember"]] = relationship(
        "ConversationMember", back_populates="conversation", cascade="all, delete-orphan"
    )


class ConversationMember(Base):
    __tablename__ = "conversation_members"
    __table_args__ = (
        UniqueConstraint("conversation_id", "user_id", name="uq_conversation_member"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    conversation_id: Mapped[int] = mapped_column(ForeignKey("conversations.id"), index=True, nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    joined_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    # Read receipts: messages created at or before this were seen by the member
    last_read_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    conversation: Mapped["Conversation"] = relationship("Conversation", back_populates="members")
    user: Mapped["User"] = relationship("User", back_populates="memberships")
