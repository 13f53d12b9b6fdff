from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


class CallableRequest(BaseModel):
    data: Dict[str, Any] = Field(default_factory=dict)

class OtpEmailRequest(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    email: Optional[str] = None
    otp: Optional[str] = None

class OtpEmailResult(BaseModel):
    success: bool
    message: str
