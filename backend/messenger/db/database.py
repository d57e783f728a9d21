from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from typing import AsyncGenerator
import logging

from messenger.core.config import DATABASE_URL, DB_ECHO

logger = logging.getLogger(__name__)

engine = create_async_engine(DATABASE_URL, echo=DB_ECHO)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

class Base(DeclarativeBase):
    pass

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session

def import_models():
    # Base.metadata 등록을 위해 모델 임포트
    from messenger.db.models import user, conversation, message, unread, typing_indicator  # noqa: F401

async def init_db():
    """
    서버 시작 시 테이블을 생성합니다.
    """
    import_models()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("[DB] schema ready")
