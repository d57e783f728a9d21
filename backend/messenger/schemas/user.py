from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional

class UserSync(BaseModel):
    name: str = Field(..., max_length=255)
    email: str = Field("", max_length=320)
    image_url: str = Field("", max_length=1024)

class StatusUpdate(BaseModel):
    is_online: bool

class UserRead(BaseModel):
    id: int
    external_id: str
    name: str
    email: str
    image_url: str
    # Derived from last_seen at read time
    is_online: bool
    last_seen: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
