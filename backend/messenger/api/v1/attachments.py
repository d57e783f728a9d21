from fastapi import APIRouter, Depends

from messenger.api.deps import get_current_user
from messenger.db.models.user import User
from messenger.schemas.message import UploadTarget
from messenger.services import attachment_service

router = APIRouter(prefix="/attachments", tags=["attachments"])

@router.post("/upload-url", response_model=UploadTarget)
async def generate_upload_url(current_user: User = Depends(get_current_user)):
    """
    Presigned PUT target. The client uploads the bytes directly and then sends
    the returned storage_handle with its image/file message.
    """
    return attachment_service.generate_upload_url()
