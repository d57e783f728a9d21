# backend/messenger/api/v1/users.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from messenger.core.security import get_current_subject, get_optional_subject
from messenger.db.database import get_db
from messenger.schemas.user import UserSync, StatusUpdate, UserRead
from messenger.services import user_service, presence_service

router = APIRouter(prefix="/users", tags=["users"])

@router.post("/sync", response_model=UserRead)
async def sync_user(
    user_in: UserSync,
    subject: str = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db),
):
    """외부 Identity Provider의 프로필을 내부 유저로 동기화합니다."""
    user = await user_service.sync_user(db, subject, user_in)
    return presence_service.to_user_read(user)

@router.post("/status")
async def update_status(
    status_in: StatusUpdate,
    subject: Optional[str] = Depends(get_optional_subject),
    db: AsyncSession = Depends(get_db),
):
    """Presence heartbeat / visibility change. Unknown callers are ignored."""
    updated = await presence_service.update_status(db, subject, status_in.is_online)
    return {"updated": updated}

@router.get("/me", response_model=Optional[UserRead])
async def get_me(subject: Optional[str] = Depends(get_optional_subject), db: AsyncSession = Depends(get_db)):
    return await user_service.get_me(db, subject)

@router.get("", response_model=List[UserRead])
async def get_users(
    search: Optional[str] = None,
    subject: Optional[str] = Depends(get_optional_subject),
    db: AsyncSession = Depends(get_db),
):
    """전체 유저 목록 조회 (검색 기능 포함, 본인 제외)"""
    return await user_service.get_users(db, subject, search)
