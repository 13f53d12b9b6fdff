from typing import Optional
from pydantic import BaseModel, Field

from schemas.documents import BackupDoc, NotificationChannels, PaymentMethods, SettingsDoc, SystemLogDoc


class SettingsUpdate(BaseModel):
    commissionRate: Optional[float] = Field(None, ge=0, le=100)
    paymentMethods: Optional[PaymentMethods] = None
    notifications: Optional[NotificationChannels] = None
    appVersion: Optional[str] = None

class SettingsRead(SettingsDoc):
    id: str

class SystemLogCreate(BaseModel):
    action: str
    userId: Optional[str] = None

class SystemLogRead(SystemLogDoc):
    id: str

class BackupRead(BackupDoc):
    id: str
