# backend/messenger/services/user_service.py
import logging
from datetime import datetime
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError

from messenger.core.exceptions import UnauthenticatedError
from messenger.core.time_utils import utc_now
from messenger.db.models.user import User
from messenger.schemas.user import UserSync, UserRead
from messenger.services.presence_service import to_user_read

logger = logging.getLogger(__name__)


async def get_user_by_subject(db: AsyncSession, subject: Optional[str]) -> Optional[User]:
    if not subject:
        return None
    result = await db.execute(select(User).where(User.external_id == subject))
    return result.scalar_one_or_none()


async def require_user(db: AsyncSession, subject: Optional[str]) -> User:
    """
    Maps the authenticated identity to the internal user.
    An identity that was never synced cannot perform transactional mutations.
    """
    user = await get_user_by_subject(db, subject)
    if not user:
        raise UnauthenticatedError("User not found")
    return user


async def sync_user(db: AsyncSession, subject: str, user_in: UserSync,
                    now: Optional[datetime] = None) -> User:
    """
    Upsert keyed on the external identity. Marks the user online.
    """
    if not subject:
        raise UnauthenticatedError()
    now = now or utc_now()

    user = await get_user_by_subject(db, subject)
    if user:
        return await _refresh_profile(db, user, user_in, now)

    user = User(
        external_id=subject,
        name=user_in.name,
        email=user_in.email,
        image_url=user_in.image_url,
        is_online=True,
        last_seen=now,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # Concurrent first sync for the same subject won the insert
        await db.rollback()
        existing = await get_user_by_subject(db, subject)
        if not existing:
            raise
        return await _refresh_profile(db, existing, user_in, now)

    logger.info(f"[UserService] user {user.id} created for subject {subject}")
    return user


async def _refresh_profile(db: AsyncSession, user: User, user_in: UserSync, now: datetime) -> User:
    user.name = user_in.name
    user.email = user_in.email
    user.image_url = user_in.image_url
    user.is_online = True
    user.last_seen = now
    await db.commit()
    return user


async def get_me(db: AsyncSession, subject: Optional[str],
                 now: Optional[datetime] = None) -> Optional[UserRead]:
    user = await get_user_by_subject(db, subject)
    return to_user_read(user, now) if user else None


async def get_users(db: AsyncSession, subject: Optional[str], search: Optional[str] = None,
                    now: Optional[datetime] = None) -> List[UserRead]:
    """Everyone except the caller, optionally filtered by name."""
    if not subject:
        return []
    stmt = select(User).where(User.external_id != subject)
    if search:
        stmt = stmt.where(func.lower(User.name).contains(search.lower(), autoescape=True))
    stmt = stmt.order_by(User.name, User.id)

    result = await db.execute(stmt)
    now = now or utc_now()
    return [to_user_read(u, now) for u in result.scalars().all()]
