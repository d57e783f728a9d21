# backend/messenger/core/security.py
import logging
from typing import Optional
from jose import jwt, JWTError
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from messenger.core.config import (
    AUTH_JWT_KEY,
    AUTH_JWT_ALGORITHMS,
    AUTH_JWT_AUDIENCE,
    AUTH_JWT_ISSUER,
)
from messenger.core.exceptions import UnauthenticatedError

logger = logging.getLogger(__name__)

# 세션 발급은 외부 Identity Provider 담당. 여기서는 토큰 검증만 수행합니다.
bearer_scheme = HTTPBearer(auto_error=False)


def verify_token(token: str) -> str:
    """
    Decodes an identity-provider JWT and returns its subject (the external user id).
    """
    options = {"verify_aud": AUTH_JWT_AUDIENCE is not None}
    try:
        payload = jwt.decode(
            token,
            AUTH_JWT_KEY,
            algorithms=AUTH_JWT_ALGORITHMS,
            audience=AUTH_JWT_AUDIENCE,
            issuer=AUTH_JWT_ISSUER,
            options=options,
        )
    except JWTError as e:
        logger.info(f"[Security] token rejected: {e}")
        raise UnauthenticatedError("Could not validate credentials")

    subject = payload.get("sub")
    if not subject:
        raise UnauthenticatedError("Could not validate credentials")
    return str(subject)


async def get_optional_subject(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    """
    FastAPI Dependency: None when no bearer token was sent at all.
    A token that is present but invalid still raises.
    """
    if credentials is None:
        return None
    return verify_token(credentials.credentials)


async def get_current_subject(subject: Optional[str] = Depends(get_optional_subject)) -> str:
    """
    FastAPI Dependency: 헤더에서 토큰을 추출하고 검증하여 external subject를 반환합니다.
    """
    if subject is None:
        raise UnauthenticatedError()
    return subject


async def verify_websocket_token(token: Optional[str]) -> str:
    """
    WebSocket 연결 시 토큰을 검증합니다. (query string ?token=)
    """
    if not token:
        raise UnauthenticatedError()
    return verify_token(token)
