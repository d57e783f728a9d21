# backend/messenger/api/v1/routers.py
from fastapi import APIRouter
from messenger.api.v1 import users, conversations, messages, attachments, config

# 메인 API 라우터 (/v1)
api_router = APIRouter(prefix="/v1")

api_router.include_router(users.router)
api_router.include_router(conversations.router)
api_router.include_router(messages.router)
api_router.include_router(attachments.router)
api_router.include_router(config.router)
