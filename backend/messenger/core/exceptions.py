# backend/messenger/core/exceptions.py
from fastapi import HTTPException


class MessengerError(HTTPException):
    """
    Base class for domain errors.
    Subclasses fix the HTTP status so services can raise them directly.
    """
    status_code = 400
    default_detail = "Request failed"

    def __init__(self, detail: str | None = None, headers: dict | None = None):
        super().__init__(
            status_code=self.status_code,
            detail=detail or self.default_detail,
            headers=headers,
        )


class UnauthenticatedError(MessengerError):
    status_code = 401
    default_detail = "Not authenticated"

    def __init__(self, detail: str | None = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class UnauthorizedError(MessengerError):
    status_code = 403
    default_detail = "Unauthorized"


class NotFoundError(MessengerError):
    status_code = 404
    default_detail = "Not found"


class SelfConversationError(MessengerError):
    status_code = 400
    default_detail = "Cannot chat with yourself"


class ValidationError(MessengerError):
    status_code = 422
    default_detail = "Invalid input"
