# backend/messenger/services/presence_service.py
import logging
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from messenger.core.config import ONLINE_THRESHOLD_SECONDS
from messenger.core.time_utils import utc_now
from messenger.db.models.user import User
from messenger.schemas.user import UserRead

logger = logging.getLogger(__name__)


def is_online(last_seen: Optional[datetime], now: Optional[datetime] = None,
              threshold_seconds: float = ONLINE_THRESHOLD_SECONDS) -> bool:
    """
    Presence is recomputed from last_seen on every read.
    The stored is_online flag is never consulted here.
    """
    if last_seen is None:
        return False
    now = now or utc_now()
    return now - last_seen < timedelta(seconds=threshold_seconds)


def to_user_read(user: User, now: Optional[datetime] = None) -> UserRead:
    return UserRead(
        id=user.id,
        external_id=user.external_id,
        name=user.name,
        email=user.email,
        image_url=user.image_url,
        is_online=is_online(user.last_seen, now),
        last_seen=user.last_seen,
    )


async def update_status(db: AsyncSession, subject: Optional[str], online: bool,
                        now: Optional[datetime] = None) -> bool:
    """
    Heartbeat / visibility signal. Unknown callers are ignored (returns False).
    """
    if not subject:
        return False
    result = await db.execute(select(User).where(User.external_id == subject))
    user = result.scalar_one_or_none()
    if not user:
        return False

    user.is_online = online
    user.last_seen = now or utc_now()
    await db.commit()
    return True
