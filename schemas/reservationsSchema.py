from typing import Optional
from pydantic import BaseModel, Field
from datetime import datetime

from schemas.documents import ReservationDoc


class ReservationCreate(BaseModel):
    spotId: str
    startTime: datetime
    endTime: datetime
    userId: Optional[str] = Field(None, description="Defaults to the requester; admins may book for others")


class ReservationRead(ReservationDoc):
    id: str
