from sqlalchemy import Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from messenger.db.database import Base
from messenger.core.time_utils import utc_now

class TypingIndicator(Base):
    """
    Ephemeral typing state. Rows are never expired by the store itself;
    readers compare last_update against the liveness window.
    """
    __tablename__ = "typing_indicators"
    __table_args__ = (
        UniqueConstraint("conversation_id", "user_id", name="uq_typing_conversation_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    conversation_id: Mapped[int] = mapped_column(ForeignKey("conversations.id"), index=True, nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    last_update: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
