from typing import Literal, Optional
from pydantic import BaseModel

from schemas.documents import NotificationDoc


class NotificationCreate(BaseModel):
    title: str
    message: str
    type: Literal["general", "booking", "system", "promotion"] = "general"
    recipientType: Literal["all", "user"] = "all"
    recipientId: Optional[str] = None

class NotificationUpdate(BaseModel):
    title: Optional[str] = None
    message: Optional[str] = None
    type: Optional[Literal["general", "booking", "system", "promotion"]] = None

class NotificationRead(NotificationDoc):
    id: str
