# backend/messenger/api/deps.py
from typing import Optional
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from messenger.core.security import get_current_subject, get_optional_subject
from messenger.db.database import get_db
from messenger.db.models.user import User
from messenger.services import user_service


async def get_current_user(
    subject: str = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Authenticated and synced caller, or 401."""
    return await user_service.require_user(db, subject)


async def get_optional_user_id(
    subject: Optional[str] = Depends(get_optional_subject),
    db: AsyncSession = Depends(get_db),
) -> Optional[int]:
    """Caller id for best-effort endpoints; None instead of an error."""
    user = await user_service.get_user_by_subject(db, subject)
    return user.id if user else None
