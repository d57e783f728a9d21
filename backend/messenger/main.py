from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from messenger.core.config import ALLOWED_ORIGINS, LOG_LEVEL
from messenger.api.v1.routers import api_router
from messenger.sockets.events_socket import router as events_router
from messenger.db.database import init_db
from messenger.db.database_redis import RedisManager

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    서버 시작 시 DB 스키마를 준비하고, 종료 시 Redis 연결 풀을 닫습니다.
    """
    await init_db()
    yield
    await RedisManager.close()


app = FastAPI(title="Messenger API", lifespan=lifespan)

# CORS (Cross-Origin Resource Sharing) 미들웨어 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,  # 환경 변수 기반 설정
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 라우터 등록
app.include_router(api_router)
app.include_router(events_router)

@app.get("/")
async def root():
    """
    서버 상태 확인용 루트 엔드포인트입니다.
    """
    return {"message": "Messenger API is running"}
