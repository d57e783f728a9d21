# backend/messenger/services/attachment_service.py
"""
Attachment linker: message storage handles <-> S3 presigned URLs.
Bytes never pass through this service; clients upload to the presigned PUT URL.
"""
import logging
import re
import uuid
from typing import Optional

import boto3
from botocore.client import BaseClient
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from messenger.core import config
from messenger.schemas.message import UploadTarget

logger = logging.getLogger(__name__)

_client: Optional[BaseClient] = None


def get_s3_client() -> BaseClient:
    global _client
    if _client is None:
        _client = boto3.client(
            "s3",
            endpoint_url=config.S3_ENDPOINT_URL,
            region_name=config.S3_REGION,
            aws_access_key_id=config.S3_ACCESS_KEY_ID,
            aws_secret_access_key=config.S3_SECRET_ACCESS_KEY,
            config=Config(signature_version="s3v4"),
        )
    return _client


def set_s3_client(client: Optional[BaseClient]) -> None:
    global _client
    _client = client


def new_storage_handle() -> str:
    return f"{config.S3_KEY_PREFIX}{uuid.uuid4().hex}"


def is_valid_handle(storage_handle: Optional[str]) -> bool:
    if not storage_handle:
        return False
    pattern = re.escape(config.S3_KEY_PREFIX) + r"[0-9a-f]{32}"
    return re.fullmatch(pattern, storage_handle) is not None


def generate_upload_url() -> UploadTarget:
    storage_handle = new_storage_handle()
    url = get_s3_client().generate_presigned_url(
        "put_object",
        Params={"Bucket": config.S3_BUCKET, "Key": storage_handle},
        ExpiresIn=config.S3_PRESIGNED_TTL_SECONDS,
    )
    return UploadTarget(upload_url=url, storage_handle=storage_handle)


def resolve_url(storage_handle: Optional[str]) -> Optional[str]:
    """
    Best-effort: an unknown or malformed handle gives None, it never fails
    the surrounding message fetch.
    """
    if not is_valid_handle(storage_handle):
        if storage_handle:
            logger.warning(f"[AttachmentService] unresolvable storage handle: {storage_handle!r}")
        return None
    try:
        return get_s3_client().generate_presigned_url(
            "get_object",
            Params={"Bucket": config.S3_BUCKET, "Key": storage_handle},
            ExpiresIn=config.S3_PRESIGNED_TTL_SECONDS,
        )
    except (ClientError, BotoCoreError) as e:
        logger.warning(f"[AttachmentService] presign failed for {storage_handle}: {e}")
        return None
