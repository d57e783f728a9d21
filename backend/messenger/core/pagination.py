# backend/messenger/core/pagination.py
import base64
import binascii
import json
from dataclasses import dataclass
from datetime import datetime

from messenger.core.exceptions import ValidationError


@dataclass(frozen=True)
class Cursor:
    """Position in the (created_at DESC, id DESC) message index."""
    created_at: datetime
    id: int


def encode_cursor(created_at: datetime, message_id: int) -> str:
    raw = json.dumps({"t": created_at.isoformat(), "id": message_id}, separators=(",", ":"))
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def decode_cursor(token: str | None) -> Cursor | None:
    """
    Opaque cursor -> Cursor. None/empty means "start from the newest message".
    """
    if not token:
        return None
    try:
        padded = token + "=" * (-len(token) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        return Cursor(created_at=datetime.fromisoformat(data["t"]), id=int(data["id"]))
    except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError) as e:
        raise ValidationError(f"Invalid pagination cursor: {e}")
