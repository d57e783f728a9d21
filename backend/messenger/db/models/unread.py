from sqlalchemy import Integer, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from messenger.db.database import Base

class UnreadCount(Base):
    __tablename__ = "unread_counts"
    __table_args__ = (
        UniqueConstraint("conversation_id", "user_id", name="uq_unread_conversation_user"),
        CheckConstraint("count >= 0", name="ck_unread_count_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    conversation_id: Mapped[int] = mapped_column(ForeignKey("conversations.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
