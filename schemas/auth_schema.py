# schemas/auth_schema.py
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)

class AuthLogin(BaseModel):
    email: EmailStr
    password: str

class TokenResponse(BaseModel):
    uid: str
    token: str
    expires_at: datetime

class PasswordChange(BaseModel):
    old_password: str
    new_password: str = Field(..., min_length=8, max_length=128)

class TwoFactorVerify(BaseModel):
    code: str = Field(..., pattern=r"^[0-9]{4,10}$") # length follows RAKNAGO_OTP_LENGTH

# --- Success Message Schema ---
class MessageResponse(BaseModel):
    message: str
