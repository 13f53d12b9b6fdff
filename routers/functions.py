from typing import Any

from fastapi import APIRouter, Body, Depends
from pydantic import ValidationError

from config import get_settings
from mailer import CallableError, OtpEmailService
from schemas.functions_schema import CallableRequest, OtpEmailRequest, OtpEmailResult

router = APIRouter(prefix="/functions", tags=["functions"])


def get_otp_service() -> OtpEmailService:
    return OtpEmailService.from_settings(get_settings())


# No identity required: the caller is halfway through a two-factor login.
# The body is taken as raw JSON so a malformed call still gets the callable error envelope.
@router.post("/sendOTPEmail")
def send_otp_email(body: Any = Body(None), service: OtpEmailService = Depends(get_otp_service)):
    try:
        call = CallableRequest.model_validate(body)
        payload = OtpEmailRequest.model_validate(call.data)
    except ValidationError as e:
        raise CallableError("invalid-argument", "Email and OTP are required") from e

    result = service.send_otp_email(payload.email, payload.otp)
    return {"result": OtpEmailResult(**result).model_dump()}
