from pydantic import BaseModel, EmailStr
from typing import Literal, Optional

from schemas.documents import UserDoc


# --- Schema for profile creation (Input) ---
# The uid comes from the path and timestamps are set server side.
class UserCreate(BaseModel):
    email: EmailStr
    name: str
    isEmailVerified: bool = False
    phoneNumber: Optional[str] = None
    photoURL: Optional[str] = None
    gender: Optional[Literal["Male", "Female", "Other"]] = None
    dateOfBirth: Optional[str] = None

# --- Schema for profile updates (Input) ---
class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    phoneNumber: Optional[str] = None
    photoURL: Optional[str] = None
    gender: Optional[Literal["Male", "Female", "Other"]] = None
    dateOfBirth: Optional[str] = None
    profileCompleted: Optional[bool] = None
    isEmailVerified: Optional[bool] = None
    twoFactorEnabled: Optional[bool] = None
    role: Optional[Literal["user", "admin"]] = None
    status: Optional[Literal["active", "blocked"]] = None

class UserRead(UserDoc):
    id: str
